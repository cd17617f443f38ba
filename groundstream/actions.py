"""Action intent detection and the confirmation ledger.

Some user messages ask for something to be *done* (call me back, send an
SMS, open a ticket). Those are never executed directly: the detector turns
them into a suggestion, the client has to confirm it, and the ledger makes
sure each suggestion takes effect at most once.

Lifecycle of a suggestion id::

    pending --confirm--> executed --(max age)--> purged
    pending --(max age)--> expired

A repeat confirmation inside the cool-down window is a read that reports
"ignored"; it never runs the action again.
"""

from __future__ import annotations

import logging
import re
import threading
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from .types import ActionKind, ActionResult, ActionSuggestion, ExecutedAction
from .utils import collapse_whitespace

logger = logging.getLogger(__name__)


# Checked in order; the first trigger found in the text wins.
ACTION_TRIGGERS: List[Tuple[str, ActionKind]] = [
    ("ring mig", ActionKind.SCHEDULE_CALLBACK),
    ("ring upp", ActionKind.SCHEDULE_CALLBACK),
    ("skicka sms", ActionKind.SEND_SMS),
    ("sms:a", ActionKind.SEND_SMS),
    ("skapa ärende", ActionKind.CREATE_TICKET),
    ("öppna ticket", ActionKind.CREATE_TICKET),
]

DEFAULT_TICKET_SUBJECT = "Kundsupport"
COOLDOWN_SECONDS = 30.0
DEFAULT_MAX_AGE_SECONDS = 300.0

ALREADY_EXECUTED_MESSAGE = "Action already executed within 30 seconds"
NOT_FOUND_MESSAGE = "Action not found or expired"

_PHONE_RE = re.compile(r"\+?\d+[\s-]?\d+[\s-]?\d+[\s-]?\d+[\s-]?\d+")


def extract_phone(text: str) -> Optional[str]:
    """Return the first phone-like number in *text*, whitespace collapsed."""
    m = _PHONE_RE.search(text or "")
    return collapse_whitespace(m.group(0)) if m else None


def detect_action(
    text: str,
    triggers: List[Tuple[str, ActionKind]] = ACTION_TRIGGERS,
) -> Tuple[Optional[ActionKind], Dict[str, str]]:
    """Detect an actionable intent in a user message.

    Args:
        text: The user message (original case; the phone number is taken
            from it as written)
        triggers: Ordered (phrase, kind) table

    Returns:
        (kind, payload), or (None, {}) when no trigger phrase occurs

    Examples:
        >>> detect_action("Kan du ring mig på +46 8 123 45 67?")
        (<ActionKind.SCHEDULE_CALLBACK: 'schedule_callback'>, {'phone': '+46 8 123 45 67'})
        >>> detect_action("Vad kostar Basic?")
        (None, {})
    """
    lower = (text or "").lower()
    for phrase, kind in triggers:
        if phrase not in lower:
            continue
        payload: Dict[str, str] = {}
        phone = extract_phone(text)
        if phone:
            payload["phone"] = phone
        if kind is ActionKind.CREATE_TICKET:
            payload["subject"] = DEFAULT_TICKET_SUBJECT
        return kind, payload
    return None, {}


def describe_action(suggestion: ActionSuggestion) -> str:
    """Render the human-readable outcome of executing a suggestion."""
    phone = suggestion.payload.get("phone")
    if suggestion.kind is ActionKind.SCHEDULE_CALLBACK:
        return f"Callback scheduled to {phone}" if phone else "Callback scheduled"
    if suggestion.kind is ActionKind.SEND_SMS:
        return f"SMS sent to {phone}" if phone else "SMS sent"
    subject = suggestion.payload.get("subject")
    return f"Ticket created: {subject}" if subject else "Ticket created"


def new_suggestion_id(now: float) -> str:
    return f"action_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"


class ActionLedger:
    """Server-wide store of pending and executed action suggestions.

    Both stores sit behind a single lock. Confirmation (check executed,
    check pending, execute, move) and the expiry sweep each run entirely
    under it, which gives exactly-once execution per suggestion id even with
    concurrent confirmations and a sweep racing them.

    Args:
        cooldown_s: Window after execution during which a repeat
            confirmation is reported as ignored
        max_age_s: Age after which a pending suggestion can no longer be
            confirmed, and the default age limit of the expiry sweep
        clock: Returns the current time in seconds
        executor: Performs the action and returns its result message
    """

    def __init__(
        self,
        cooldown_s: float = COOLDOWN_SECONDS,
        max_age_s: float = DEFAULT_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
        executor: Callable[[ActionSuggestion], str] = describe_action,
    ):
        self.cooldown_s = cooldown_s
        self.max_age_s = max_age_s
        self._clock = clock
        self._executor = executor
        self._lock = threading.Lock()
        self._pending: Dict[str, ActionSuggestion] = {}
        self._executed: Dict[str, ExecutedAction] = {}

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def executed_count(self) -> int:
        with self._lock:
            return len(self._executed)

    def create_suggestion(self, kind: ActionKind, payload: Dict[str, str]) -> ActionSuggestion:
        """Store a new pending suggestion and return it."""
        now = self._clock()
        with self._lock:
            suggestion_id = new_suggestion_id(now)
            while suggestion_id in self._pending or suggestion_id in self._executed:
                suggestion_id = new_suggestion_id(now)
            suggestion = ActionSuggestion(
                id=suggestion_id, kind=kind, payload=dict(payload), created_at=now,
            )
            self._pending[suggestion_id] = suggestion
        logger.info(f"Suggested {kind.value} as {suggestion_id}")
        return suggestion

    def get_pending(self, suggestion_id: str) -> Optional[ActionSuggestion]:
        with self._lock:
            return self._pending.get(suggestion_id)

    def confirm(self, suggestion_id: str) -> ActionResult:
        """Execute a pending suggestion, at most once.

        Returns:
            ActionResult with ``ignored=True`` for a repeat inside the
            cool-down window, ``success=False`` for an unknown or expired
            id, and the executor's message otherwise
        """
        with self._lock:
            now = self._clock()
            executed = self._executed.get(suggestion_id)
            if executed is not None and now - executed.executed_at < self.cooldown_s:
                return ActionResult(
                    success=True,
                    ignored=True,
                    message=ALREADY_EXECUTED_MESSAGE,
                    suggestion_id=suggestion_id,
                )

            pending = self._pending.get(suggestion_id)
            if pending is not None and now - pending.created_at > self.max_age_s:
                del self._pending[suggestion_id]
                logger.info(f"Suggestion {suggestion_id} expired before confirmation")
                pending = None
            if pending is None:
                return ActionResult(
                    success=False,
                    message=NOT_FOUND_MESSAGE,
                    suggestion_id=suggestion_id,
                )

            result = ActionResult(
                success=True,
                message=self._executor(pending),
                suggestion_id=suggestion_id,
            )
            self._executed[suggestion_id] = ExecutedAction(
                suggestion_id=suggestion_id, executed_at=now, result=result,
            )
            del self._pending[suggestion_id]

        logger.info(f"Executed {pending.kind.value} {suggestion_id}: {result.message}")
        return result

    def sweep_expired(self, max_age_s: Optional[float] = None) -> int:
        """Drop pending and executed records older than *max_age_s*.

        Defaults to the ledger's own ``max_age_s``.

        Returns:
            Number of records removed
        """
        if max_age_s is None:
            max_age_s = self.max_age_s
        with self._lock:
            now = self._clock()
            stale_pending = [
                sid for sid, s in self._pending.items() if now - s.created_at > max_age_s
            ]
            stale_executed = [
                sid for sid, e in self._executed.items() if now - e.executed_at > max_age_s
            ]
            for sid in stale_pending:
                del self._pending[sid]
            for sid in stale_executed:
                del self._executed[sid]

        removed = len(stale_pending) + len(stale_executed)
        if removed:
            logger.info(
                f"Swept {len(stale_pending)} expired suggestions and "
                f"{len(stale_executed)} executed actions"
            )
        return removed
