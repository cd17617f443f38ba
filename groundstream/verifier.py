"""Core grounding verification logic for groundstream."""

from typing import Optional

from .corpus import CorpusSnapshot, KnowledgeCorpus
from .fact_extractor import extract_facts
from .types import GroundingResult
from .utils import normalize_number, parse_decimal


NO_SUPPORT_MESSAGE = "Jag hittar inget stöd i kunskapsbasen."
CANNOT_VERIFY_MESSAGE = "Jag kan inte verifiera det."


def is_fact_supported(fact: str, snapshot: CorpusSnapshot) -> bool:
    """Check one extracted fact against the corpus facts.

    A fact is supported when its raw or normalized form appears verbatim
    among the corpus facts, or when it reads as the same decimal value as
    some corpus fact ("08" supports "8").
    """
    if fact in snapshot.facts:
        return True
    normalized = normalize_number(fact)
    if normalized in snapshot.facts:
        return True
    value = parse_decimal(normalized)
    return value is not None and value in snapshot.numeric_values


class GroundingVerifier:
    """Fail-closed verifier for generated answers.

    An answer is accepted only when every number it states is found in the
    knowledge corpus AND the corpus has at least one line that is topically
    relevant to the original query. A single unsupported number rejects the
    whole answer; there is no partial credit.

    Example:
        >>> corpus = KnowledgeCorpus()
        >>> _ = corpus.load_documents({"kb/priser.md": "Basic kostar 99 kr/månad."})
        >>> verifier = GroundingVerifier(corpus)
        >>> verifier.verify("Basic kostar 99 kr", "Vad kostar Basic?").accepted
        True
        >>> verifier.verify("Basic kostar 777 kr", "Vad kostar Basic?").text
        'Jag kan inte verifiera det.'
    """

    def __init__(
        self,
        corpus: KnowledgeCorpus,
        no_support_message: str = NO_SUPPORT_MESSAGE,
        cannot_verify_message: str = CANNOT_VERIFY_MESSAGE,
    ):
        self.corpus = corpus
        self.no_support_message = no_support_message
        self.cannot_verify_message = cannot_verify_message

    def verify(self, answer: str, query: str) -> GroundingResult:
        """Decide whether *answer* is grounded in the corpus.

        Args:
            answer: The generated answer text
            query: The user message the answer responds to

        Returns:
            GroundingResult carrying the answer verbatim and its citations
            when accepted, or a refusal message when rejected
        """
        # One snapshot for the whole call so a reload can't mix old and new.
        snapshot = self.corpus.snapshot()

        unverified = self._first_unverified(extract_facts(answer), snapshot)
        if unverified is not None:
            return GroundingResult(
                accepted=False,
                text=self.cannot_verify_message,
                reason="unverified_fact",
                unverified=unverified,
            )

        citations = snapshot.search(query)
        if not citations:
            return GroundingResult(
                accepted=False,
                text=self.no_support_message,
                reason="no_support",
            )

        return GroundingResult(accepted=True, text=answer, citations=citations)

    @staticmethod
    def _first_unverified(facts, snapshot: CorpusSnapshot) -> Optional[str]:
        # Sorted so the reported fact is stable across runs.
        for fact in sorted(facts):
            if not is_fact_supported(fact, snapshot):
                return fact
        return None
