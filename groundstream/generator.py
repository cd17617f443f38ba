"""Token generation: the generator protocol, cancellation and the token channel.

The generative model is an external collaborator. All the session
controller relies on is :class:`TokenGenerator`: an async generator of text
pieces that checks a :class:`CancellationToken` between pieces. Running out
of pieces means completion, raising means failure, and raising
:class:`GenerationCancelled` means the generator noticed a cancellation.

:class:`CannedAnswerGenerator` is the demo stand-in used by the bundled
server. It answers a few customer-service topics and can be made to
hallucinate so the grounding step has something to reject.
"""

from __future__ import annotations

import asyncio
import random
from typing import AsyncGenerator, Dict, Optional, Protocol, Tuple


class GenerationCancelled(Exception):
    """Raised by a generator that stopped because its token was cancelled."""


class CancellationToken:
    """Cooperative cancellation signal shared by a session and a generator."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled()

    async def wait(self) -> None:
        await self._event.wait()


class TokenGenerator(Protocol):
    def stream(self, text: str, cancel: CancellationToken) -> AsyncGenerator[str, None]:
        ...


_CLOSED = object()


class TokenChannel:
    """Single-producer, single-consumer channel of generated text pieces.

    The producer pushes pieces and finally closes the channel, optionally
    with the error that ended generation. The consumer iterates with
    ``async for``; iteration ends once the channel is closed and drained.
    Closing early (on cancellation) unblocks a waiting consumer at once.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._closed = False
        self.error: Optional[BaseException] = None

    def push(self, piece: str) -> bool:
        """Queue a piece. Returns False if the channel is already closed."""
        if self._closed:
            return False
        self._queue.put_nowait(piece)
        return True

    def close(self, error: Optional[BaseException] = None) -> None:
        if self._closed:
            return
        self._closed = True
        self.error = error
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "TokenChannel":
        return self

    async def __anext__(self) -> str:
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any later reader.
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item  # type: ignore[return-value]


CANNED_ANSWERS: Dict[str, str] = {
    "pris": "Basic kostar 99 kr/månad, Standard 199 kr, Premium 399 kr.",
    "ångerrätt": "Privatpersoner har 30 dagars ångerrätt.",
    "kontakt": "Ring +46 8 123 45 67, öppet 08:00-18:00.",
}

HALLUCINATED_ANSWERS: Dict[str, str] = {
    "pris": "Basic kostar 75 kr/månad med 75% rabatt just nu!",
    "kontakt": "Ring +46 8 999 00 11, öppet dygnet runt!",
    "default": "Vi erbjuder 90% rabatt och 24/7 support på alla planer!",
}

UNKNOWN_ANSWER = "Jag vet inte svaret på den frågan."

_PRICE_WORDS = ("pris", "kostar", "kostnad", "premium", "basic", "standard")
_POLICY_WORDS = ("ångerrätt", "ångra")
_CONTACT_WORDS = ("kontakt", "ring", "telefon", "öppettid")


class CannedAnswerGenerator:
    """Demo generator streaming canned answers word by word.

    Args:
        delay_range: (min, max) seconds to sleep before each word
        hallucination_rate: Probability of a made-up answer for unknown topics
        rng: Random source for delays and hallucinations
    """

    def __init__(
        self,
        delay_range: Tuple[float, float] = (0.02, 0.08),
        hallucination_rate: float = 0.2,
        rng: Optional[random.Random] = None,
    ):
        self.delay_range = delay_range
        self.hallucination_rate = hallucination_rate
        self.rng = rng or random.Random()

    def answer_for(self, query: str) -> str:
        q = query.lower()

        if "hallucinate" in q:
            if "pris" in q or "kostar" in q:
                return HALLUCINATED_ANSWERS["pris"]
            if "kontakt" in q or "ring" in q:
                return HALLUCINATED_ANSWERS["kontakt"]
            return HALLUCINATED_ANSWERS["default"]

        if any(w in q for w in _PRICE_WORDS):
            return CANNED_ANSWERS["pris"]
        if any(w in q for w in _POLICY_WORDS):
            return CANNED_ANSWERS["ångerrätt"]
        if any(w in q for w in _CONTACT_WORDS):
            return CANNED_ANSWERS["kontakt"]

        if self.rng.random() < self.hallucination_rate:
            return HALLUCINATED_ANSWERS["default"]
        return UNKNOWN_ANSWER

    async def stream(self, text: str, cancel: CancellationToken) -> AsyncGenerator[str, None]:
        low, high = self.delay_range
        for word in self.answer_for(text).split(" "):
            cancel.raise_if_cancelled()
            if high > 0:
                await asyncio.sleep(self.rng.uniform(low, high))
            cancel.raise_if_cancelled()
            yield word + " "
