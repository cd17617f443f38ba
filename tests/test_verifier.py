"""Core tests for the grounding verifier."""

import pytest
from groundstream import KnowledgeCorpus, GroundingVerifier
from groundstream.verifier import CANNOT_VERIFY_MESSAGE, NO_SUPPORT_MESSAGE, is_fact_supported


def test_accepts_numbers_from_kb(verifier):
    """Correct numbers plus topical support pass verbatim."""
    result = verifier.verify("Basic kostar 99 kr/månad", "pris")

    assert result.accepted == True
    assert result.text == "Basic kostar 99 kr/månad"
    assert len(result.citations) >= 1
    assert result.reason is None


def test_rejects_hallucinated_number(verifier):
    result = verifier.verify("Basic kostar 777 kr/månad", "pris")

    assert result.accepted == False
    assert result.text == CANNOT_VERIFY_MESSAGE
    assert result.reason == "unverified_fact"
    assert result.unverified == "777"
    assert result.citations == []


def test_rejects_fake_phone_number(verifier):
    result = verifier.verify("Ring +46 8 999 00 11", "kontakt")

    assert result.accepted == False
    assert result.text == "Jag kan inte verifiera det."


def test_accepts_real_phone_number(verifier):
    result = verifier.verify("Ring +46 8 123 45 67, öppet 08:00-18:00.", "Hur kontaktar jag er via telefon?")

    assert result.accepted == True


def test_one_bad_number_rejects_whole_answer(verifier):
    """No partial credit: 99 and 199 are real, 75% is not."""
    result = verifier.verify("Basic 99 kr, Standard 199 kr, nu 75% rabatt", "Vad kostar Standard?")

    assert result.accepted == False
    assert result.text == CANNOT_VERIFY_MESSAGE


def test_bad_number_rejected_even_with_citations(verifier, corpus):
    assert corpus.search("pris")
    result = verifier.verify("Premium kostar 777 kr", "pris")
    assert result.text == CANNOT_VERIFY_MESSAGE


def test_no_numbers_with_citations_accepted(verifier):
    result = verifier.verify("Vi har flera planer", "pris")

    assert result.accepted == True
    assert result.text == "Vi har flera planer"
    assert result.citations


def test_fail_closed_without_sources(verifier):
    result = verifier.verify("Någon information", "xyzabc123")

    assert result.accepted == False
    assert result.text == NO_SUPPORT_MESSAGE
    assert result.reason == "no_support"


def test_verified_numbers_without_citations_fail_closed(verifier):
    """Numbers alone are not enough; the question needs topical evidence."""
    result = verifier.verify("Basic kostar 99 kr", "xyzabc123")

    assert result.accepted == False
    assert result.text == NO_SUPPORT_MESSAGE


def test_numeric_equality_matches_different_text():
    corpus = KnowledgeCorpus()
    corpus.load_documents({"kb/kontakt.md": "Vi öppnar 08:00 varje vardag."})
    verifier = GroundingVerifier(corpus)

    result = verifier.verify("Vi öppnar kl 8", "När öppnar ni?")
    assert result.accepted == True


def test_normalized_decimal_matches():
    corpus = KnowledgeCorpus()
    corpus.load_documents({"kb/priser.md": "Tillägget kostar 12.5 kr per dag."})
    verifier = GroundingVerifier(corpus)

    result = verifier.verify("Det kostar 12,5 kr per dag", "Vad kostar tillägget?")
    assert result.accepted == True


def test_empty_corpus_rejects_everything():
    verifier = GroundingVerifier(KnowledgeCorpus())

    assert verifier.verify("Hej", "pris").text == NO_SUPPORT_MESSAGE
    assert verifier.verify("99 kr", "pris").text == CANNOT_VERIFY_MESSAGE


def test_custom_refusal_messages(corpus):
    verifier = GroundingVerifier(
        corpus,
        no_support_message="No support found.",
        cannot_verify_message="Cannot verify.",
    )
    assert verifier.verify("Basic kostar 777 kr", "pris").text == "Cannot verify."
    assert verifier.verify("Hej", "xyzabc123").text == "No support found."


def test_verify_does_not_mutate_corpus(verifier, corpus):
    before = corpus.snapshot()
    verifier.verify("Basic kostar 777 kr", "pris")
    verifier.verify("Basic kostar 99 kr", "pris")
    assert corpus.snapshot() is before


@pytest.mark.parametrize("fact,expected", [
    ("99", True),
    ("99.0", True),
    ("+46 8 123 45 67", True),
    ("8", True),
    ("777", False),
    ("+46 8 999 00 11", False),
])
def test_is_fact_supported(corpus, fact, expected):
    assert is_fact_supported(fact, corpus.snapshot()) is expected
