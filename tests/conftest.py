"""Shared fixtures: the bundled knowledge base and fresh core objects."""

from pathlib import Path

import pytest

from groundstream import ActionLedger, GroundingVerifier, KnowledgeCorpus


KB_DIR = Path(__file__).resolve().parent.parent / "kb"


class FakeClock:
    """Manually advanced clock for time-dependent ledger tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def kb_dir() -> Path:
    return KB_DIR


@pytest.fixture
def corpus(kb_dir) -> KnowledgeCorpus:
    c = KnowledgeCorpus()
    c.load(kb_dir)
    return c


@pytest.fixture
def verifier(corpus) -> GroundingVerifier:
    return GroundingVerifier(corpus)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ledger(clock) -> ActionLedger:
    return ActionLedger(clock=clock)
