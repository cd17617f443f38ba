"""Installability sanity tests for groundstream.

The core library must import with the standard library alone; only the
transports in groundstream_server need third-party packages.
"""

import pytest


def test_core_has_no_external_imports():
    """Core groundstream modules import without websockets or mcp."""
    import groundstream.actions
    import groundstream.corpus
    import groundstream.fact_extractor
    import groundstream.session
    import groundstream.types
    import groundstream.verifier


def test_version_exists():
    import groundstream
    assert hasattr(groundstream, '__version__')
    assert groundstream.__version__ == "0.1.0"


def test_core_exports():
    """All documented public exports must be importable."""
    from groundstream import ActionLedger
    from groundstream import GroundingVerifier
    from groundstream import KnowledgeCorpus
    from groundstream import StreamingSession
    from groundstream import extract_facts
    from groundstream import detect_action

    assert callable(GroundingVerifier)
    assert callable(extract_facts)
    assert callable(detect_action)


def test_basic_verify_works(kb_dir):
    """The example from the package docstring must actually work."""
    from groundstream import GroundingVerifier, KnowledgeCorpus

    corpus = KnowledgeCorpus()
    corpus.load(kb_dir)
    verifier = GroundingVerifier(corpus)

    result = verifier.verify("Basic kostar 777 kr/månad", "Vad kostar Basic?")

    assert result.accepted is False
    assert result.text == "Jag kan inte verifiera det."


def test_action_result_wire_form():
    from groundstream import ActionResult

    r = ActionResult(success=True, message="SMS sent", suggestion_id="a1")
    assert r.to_dict() == {"success": True, "message": "SMS sent", "suggestionId": "a1"}
    r.ignored = True
    assert r.to_dict()["ignored"] is True
