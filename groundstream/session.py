"""Per-connection streaming session controller.

A session turns inbound events into outbound ones::

    message  -> [action_suggestion] stream* stream_end(done) response
    cancel   -> stream_end(cancelled)
    confirm  -> action_executed

At most one generation is active per session. A new message supersedes
the active generation; a superseded or cancelled generation never emits
another event, and only completed generations go through grounding.

Generation runs as its own task: a producer drains the generator into a
:class:`~groundstream.generator.TokenChannel` while the consumer forwards
pieces as ``stream`` events and accumulates the answer. Inbound events keep
being handled while a generation streams.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from . import events
from .actions import ActionLedger, detect_action
from .generator import CancellationToken, GenerationCancelled, TokenChannel, TokenGenerator
from .verifier import GroundingVerifier

logger = logging.getLogger(__name__)

Send = Callable[[Dict[str, Any]], Awaitable[None]]

MALFORMED_MESSAGE = "Failed to process message"


class SessionState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"


@dataclass
class _Generation:
    message_id: str
    cancel: CancellationToken = field(default_factory=CancellationToken)
    channel: TokenChannel = field(default_factory=TokenChannel)

    def stop(self) -> None:
        self.cancel.cancel()
        self.channel.close()


class StreamingSession:
    """Streaming state for one client connection.

    Args:
        send: Coroutine function receiving each outbound event dict
        generator: Token producer
        verifier: Grounding verifier run on completed answers
        ledger: Shared action ledger
    """

    def __init__(
        self,
        send: Send,
        generator: TokenGenerator,
        verifier: GroundingVerifier,
        ledger: ActionLedger,
    ):
        self._send = send
        self._generator = generator
        self._verifier = verifier
        self._ledger = ledger
        self._active: Optional[_Generation] = None
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def state(self) -> SessionState:
        return SessionState.IDLE if self._active is None else SessionState.STREAMING

    @property
    def active_message_id(self) -> Optional[str]:
        return self._active.message_id if self._active else None

    async def handle_raw(self, raw: Union[str, bytes]) -> None:
        """Parse one inbound frame and act on it."""
        try:
            event = events.parse_inbound(raw)
        except events.ProtocolError as e:
            logger.warning(f"Rejected inbound event: {e}")
            await self._emit(events.error(MALFORMED_MESSAGE))
            return

        try:
            if event.type == events.MESSAGE:
                await self.start_generation(event.message_id, event.text)
            elif event.type == events.CANCEL:
                await self.cancel()
            elif event.type == events.CONFIRM_ACTION:
                await self.confirm_action(event.suggestion_id)
        except Exception:
            logger.exception(f"Failed to handle {event.type} event")
            await self._emit(events.error(MALFORMED_MESSAGE))

    async def start_generation(self, message_id: str, text: str) -> asyncio.Task:
        """Begin answering *text*, superseding any active generation.

        Returns:
            The task running the generation; it finishes once the final
            event for this message (or nothing, if superseded) was sent
        """
        previous = self._active
        if previous is not None:
            logger.debug(f"Message {message_id} supersedes {previous.message_id}")
            previous.stop()

        generation = _Generation(message_id=message_id)
        self._active = generation

        kind, payload = detect_action(text)
        if kind is not None:
            suggestion = self._ledger.create_suggestion(kind, payload)
            try:
                await self._emit(events.action_suggestion(suggestion))
            except BaseException:
                if self._active is generation:
                    self._active = None
                raise

        task = asyncio.create_task(self._run(generation, text))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def cancel(self) -> bool:
        """Cancel the active generation.

        Returns:
            False (and emits nothing) when the session is idle
        """
        generation = self._active
        if generation is None:
            return False
        self._active = None
        generation.stop()
        logger.debug(f"Cancelled generation for message {generation.message_id}")
        await self._emit(events.stream_end(events.REASON_CANCELLED, generation.message_id))
        return True

    async def confirm_action(self, suggestion_id: str) -> None:
        result = self._ledger.confirm(suggestion_id)
        await self._emit(events.action_executed(result))

    async def close(self) -> None:
        """Stop any generation without emitting and wait for session tasks."""
        self._closed = True
        if self._active is not None:
            self._active.stop()
            self._active = None
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _is_current(self, generation: _Generation) -> bool:
        return self._active is generation and not generation.cancel.cancelled

    async def _run(self, generation: _Generation, text: str) -> None:
        try:
            await self._deliver(generation, text)
        finally:
            if self._active is generation:
                self._active = None

    async def _deliver(self, generation: _Generation, text: str) -> None:
        producer = asyncio.create_task(self._produce(generation, text))
        parts: List[str] = []
        try:
            async for piece in generation.channel:
                if not self._is_current(generation):
                    break
                parts.append(piece)
                await self._emit(events.stream_delta(piece, generation.message_id))
        except BaseException:
            generation.stop()
            raise
        finally:
            await producer

        if not self._is_current(generation):
            logger.debug(f"Discarding stale generation for message {generation.message_id}")
            return

        self._active = None
        failure = generation.channel.error
        if failure is not None:
            logger.error(f"Generation for message {generation.message_id} failed: {failure}")
            await self._emit(events.error(str(failure) or type(failure).__name__))
            return

        await self._emit(events.stream_end(events.REASON_DONE, generation.message_id))
        result = self._verifier.verify("".join(parts).strip(), text)
        if not result.accepted:
            logger.info(
                f"Answer for message {generation.message_id} rejected ({result.reason})"
            )
        await self._emit(events.response(result, generation.message_id))

    async def _produce(self, generation: _Generation, text: str) -> None:
        error: Optional[BaseException] = None
        try:
            async with aclosing(self._generator.stream(text, generation.cancel)) as pieces:
                async for piece in pieces:
                    if generation.cancel.cancelled or not generation.channel.push(piece):
                        break
        except GenerationCancelled:
            pass
        except Exception as e:
            error = e
        finally:
            generation.channel.close(error)

    async def _emit(self, event: Dict[str, Any]) -> None:
        if self._closed:
            return
        await self._send(event)
