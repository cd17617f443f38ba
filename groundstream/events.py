"""Inbound event parsing and outbound event construction.

Events travel as JSON objects with a ``type`` field. Outbound builders
return plain dicts so any transport can frame them; :func:`encode` gives the
JSON text form used by the WebSocket server.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from .types import ActionResult, ActionSuggestion, Citation, GroundingResult


MESSAGE = "message"
CANCEL = "cancel"
CONFIRM_ACTION = "confirm_action"

REASON_DONE = "done"
REASON_CANCELLED = "cancelled"


class ProtocolError(ValueError):
    """An inbound event could not be understood."""


@dataclass
class InboundEvent:
    type: str
    message_id: Optional[str] = None
    text: Optional[str] = None
    suggestion_id: Optional[str] = None


def parse_inbound(raw: Union[str, bytes]) -> InboundEvent:
    """Parse one inbound frame.

    Raises:
        ProtocolError: If the frame is not a JSON object of a known type
            carrying the fields that type requires
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ProtocolError("Event must be a JSON object")

    event_type = data.get("type")
    if event_type == MESSAGE:
        text = data.get("text")
        if not isinstance(text, str):
            raise ProtocolError("message event requires a text string")
        message_id = data.get("id")
        if message_id is None:
            message_id = f"msg_{uuid.uuid4().hex[:12]}"
        return InboundEvent(type=MESSAGE, message_id=str(message_id), text=text)

    if event_type == CANCEL:
        return InboundEvent(type=CANCEL)

    if event_type == CONFIRM_ACTION:
        suggestion_id = data.get("suggestionId")
        if not isinstance(suggestion_id, str) or not suggestion_id:
            raise ProtocolError("confirm_action event requires a suggestionId")
        return InboundEvent(type=CONFIRM_ACTION, suggestion_id=suggestion_id)

    raise ProtocolError(f"Unknown event type: {event_type!r}")


def action_suggestion(suggestion: ActionSuggestion) -> Dict[str, Any]:
    return {
        "type": "action_suggestion",
        "suggestionId": suggestion.id,
        "action": suggestion.kind.value,
        "payload": dict(suggestion.payload),
    }


def stream_delta(delta: str, message_id: str) -> Dict[str, Any]:
    return {"type": "stream", "delta": delta, "messageId": message_id}


def stream_end(reason: str, message_id: Optional[str]) -> Dict[str, Any]:
    return {"type": "stream_end", "reason": reason, "messageId": message_id}


def response(result: GroundingResult, message_id: str) -> Dict[str, Any]:
    citations: List[Citation] = result.citations or []
    return {
        "type": "response",
        "text": result.text,
        "citations": [c.to_dict() for c in citations],
        "grounded": result.accepted,
        "messageId": message_id,
    }


def action_executed(result: ActionResult) -> Dict[str, Any]:
    return {
        "type": "action_executed",
        "suggestionId": result.suggestion_id,
        "result": result.to_dict(),
    }


def error(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}


def encode(event: Dict[str, Any]) -> str:
    return json.dumps(event, ensure_ascii=False)
