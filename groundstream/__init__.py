"""groundstream - Fail-closed grounding for streamed conversational answers.

Stream generated answers to clients, check every number they state against
a fixed knowledge corpus before final delivery, and turn action requests
into suggestions that take effect only after explicit confirmation.

Example:
    >>> from groundstream import KnowledgeCorpus, GroundingVerifier
    >>>
    >>> corpus = KnowledgeCorpus()
    >>> corpus.load("kb")
    >>> verifier = GroundingVerifier(corpus)
    >>>
    >>> result = verifier.verify("Basic kostar 777 kr/månad", "Vad kostar Basic?")
    >>> print(result.accepted)  # False
    >>> print(result.text)  # "Jag kan inte verifiera det."
"""

__version__ = "0.1.0"

from .types import (
    ActionKind,
    ActionResult,
    ActionSuggestion,
    Citation,
    Document,
    ExecutedAction,
    GroundingResult,
    NumericFact,
)
from .fact_extractor import extract_facts, iter_numeric_facts
from .corpus import KnowledgeCorpus, CorpusSnapshot, extract_keywords
from .verifier import GroundingVerifier, CANNOT_VERIFY_MESSAGE, NO_SUPPORT_MESSAGE
from .actions import ActionLedger, detect_action, describe_action
from .generator import (
    CancellationToken,
    CannedAnswerGenerator,
    GenerationCancelled,
    TokenChannel,
    TokenGenerator,
)
from .session import SessionState, StreamingSession
from .config import ServerConfig

__all__ = [
    "ActionKind",
    "ActionResult",
    "ActionSuggestion",
    "Citation",
    "Document",
    "ExecutedAction",
    "GroundingResult",
    "NumericFact",
    "extract_facts",
    "iter_numeric_facts",
    "KnowledgeCorpus",
    "CorpusSnapshot",
    "extract_keywords",
    "GroundingVerifier",
    "CANNOT_VERIFY_MESSAGE",
    "NO_SUPPORT_MESSAGE",
    "ActionLedger",
    "detect_action",
    "describe_action",
    "CancellationToken",
    "CannedAnswerGenerator",
    "GenerationCancelled",
    "TokenChannel",
    "TokenGenerator",
    "SessionState",
    "StreamingSession",
    "ServerConfig",
]
