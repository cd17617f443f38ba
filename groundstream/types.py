"""Type definitions for the groundstream library."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class NumericFact:
    """A numeric token extracted from text.

    Attributes:
        raw: The matched substring exactly as it appeared
        normalized: Decimal separator unified to "." and whitespace collapsed
        kind: Pattern class that produced the match
            ("phone", "date", "decimal", "percent" or "integer")
    """
    raw: str
    normalized: str
    kind: str


@dataclass(frozen=True)
class Document:
    """A knowledge corpus document.

    Attributes:
        id: Source identifier used in citations (e.g. "kb/priser.md")
        text: Full document text
        facts: Raw and normalized numeric facts found in the text
        path: Filesystem path the document was read from, if any
    """
    id: str
    text: str
    facts: FrozenSet[str] = frozenset()
    path: Optional[str] = None


@dataclass(frozen=True)
class Citation:
    """A single line of source text supporting an answer."""
    source_id: str
    snippet: str

    def to_dict(self) -> Dict[str, str]:
        return {"file": self.source_id, "snippet": self.snippet}


@dataclass
class GroundingResult:
    """Outcome of grounding verification.

    Attributes:
        accepted: Whether the answer is grounded in the corpus
        text: The answer verbatim when accepted, otherwise a refusal message
        citations: Supporting lines (empty when rejected)
        reason: None when accepted, "no_support" or "unverified_fact" otherwise
        unverified: The first fact that could not be matched, if any
    """
    accepted: bool
    text: str
    citations: List[Citation] = field(default_factory=list)
    reason: Optional[str] = None
    unverified: Optional[str] = None


class ActionKind(str, Enum):
    """Side-effecting actions that require explicit user confirmation."""
    SCHEDULE_CALLBACK = "schedule_callback"
    SEND_SMS = "send_sms"
    CREATE_TICKET = "create_ticket"


@dataclass
class ActionSuggestion:
    """An action proposed to the user and awaiting confirmation."""
    id: str
    kind: ActionKind
    payload: Dict[str, str]
    created_at: float


@dataclass
class ActionResult:
    """Result of a confirmation attempt.

    ``ignored`` is only set when a repeat confirmation landed inside the
    cool-down window and nothing was executed.
    """
    success: bool
    message: str
    suggestion_id: str
    ignored: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "suggestionId": self.suggestion_id,
        }
        if self.ignored:
            data["ignored"] = True
        return data


@dataclass
class ExecutedAction:
    """A confirmed action, kept for the cool-down and expiry windows."""
    suggestion_id: str
    executed_at: float
    result: ActionResult
