"""Knowledge corpus index: documents, their numeric facts and lexical search.

The corpus is read-mostly shared state. A load builds a complete
``CorpusSnapshot`` off to the side and then replaces the active one with a
single assignment, so readers holding a snapshot never observe a partial
load.

Search is deliberately lexical and recall oriented: any line containing a
query keyword (or one of its synonyms) is a citation. Precision comes from
the grounding verifier, not from here.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from .fact_extractor import extract_facts
from .types import Citation, Document
from .utils import parse_decimal

logger = logging.getLogger(__name__)


MAX_CITATIONS = 5

DEFAULT_STOPWORDS: FrozenSet[str] = frozenset({
    "vad", "hur", "när", "var", "vilka", "vilken", "är", "den", "det",
    "de", "som", "på", "i", "för", "med", "att",
})

DEFAULT_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "kostar": ("pris", "kostnad", "avgift"),
    "pris": ("kostar", "kostnad", "avgift"),
    "premium": ("premium",),
    "basic": ("basic",),
    "standard": ("standard",),
    "ring": ("telefon", "kontakt"),
    "telefon": ("ring", "kontakt"),
    "ångerrätt": ("ångra", "villkor", "policy"),
    "ångerrätten": ("ångerrätt", "ångra", "villkor", "policy"),
    "lång": ("dagar", "tid"),
}

DEFAULT_SUFFIXES: Tuple[str, ...] = (".md", ".txt")

_PUNCT_RE = re.compile(r"[.,!?;:]")


def extract_keywords(
    query: str,
    stopwords: Iterable[str] = DEFAULT_STOPWORDS,
    synonyms: Mapping[str, Sequence[str]] = DEFAULT_SYNONYMS,
) -> List[str]:
    """Turn a query into the ordered, de-duplicated list of search keywords.

    Words are lowercased with punctuation stripped; stopwords and words of
    two characters or fewer are dropped; each surviving word is followed by
    its synonyms.

    >>> extract_keywords("Vad kostar Basic?")
    ['kostar', 'pris', 'kostnad', 'avgift', 'basic']
    """
    stop = set(stopwords)
    words = _PUNCT_RE.sub(" ", (query or "").lower()).split()
    expanded: Dict[str, None] = {}
    for word in words:
        if word in stop or len(word) <= 2:
            continue
        expanded[word] = None
        for related in synonyms.get(word, ()):
            expanded[related] = None
    return list(expanded)


class CorpusSnapshot:
    """An immutable view of a fully loaded corpus."""

    def __init__(
        self,
        documents: Sequence[Document],
        stopwords: FrozenSet[str] = DEFAULT_STOPWORDS,
        synonyms: Mapping[str, Sequence[str]] = DEFAULT_SYNONYMS,
    ):
        self.documents: Tuple[Document, ...] = tuple(documents)
        self.stopwords = stopwords
        self.synonyms = synonyms

        facts: Set[str] = set()
        for doc in self.documents:
            facts.update(doc.facts)
        self.facts: FrozenSet[str] = frozenset(facts)

        values = (parse_decimal(f) for f in self.facts)
        self.numeric_values: FrozenSet[float] = frozenset(v for v in values if v is not None)

    def __len__(self) -> int:
        return len(self.documents)

    def search(self, query: str, limit: int = MAX_CITATIONS) -> List[Citation]:
        """Find lines of source text that mention the query's keywords.

        Citations come back in the order they were found (document order,
        then keyword order, then line order), de-duplicated by
        (source, snippet) and truncated to *limit*.
        """
        keywords = extract_keywords(query, self.stopwords, self.synonyms)
        if not keywords:
            return []

        citations: List[Citation] = []
        seen: Set[Tuple[str, str]] = set()
        for doc in self.documents:
            lower_content = doc.text.lower()
            lower_id = doc.id.lower()
            lines = doc.text.split("\n")
            for keyword in keywords:
                if keyword not in lower_content and keyword not in lower_id:
                    continue
                for line in lines:
                    snippet = line.strip()
                    if not snippet or keyword not in line.lower():
                        continue
                    key = (doc.id, snippet)
                    if key in seen:
                        continue
                    seen.add(key)
                    citations.append(Citation(source_id=doc.id, snippet=snippet))
                    if len(citations) >= limit:
                        return citations
        return citations


class KnowledgeCorpus:
    """Process-wide knowledge corpus with atomic reload.

    Example:
        >>> corpus = KnowledgeCorpus()
        >>> corpus.load_documents({"kb/priser.md": "Basic kostar 99 kr/månad."})
        1
        >>> corpus.search("pris")[0].snippet
        'Basic kostar 99 kr/månad.'
    """

    def __init__(
        self,
        stopwords: Iterable[str] = DEFAULT_STOPWORDS,
        synonyms: Optional[Mapping[str, Sequence[str]]] = None,
        suffixes: Sequence[str] = DEFAULT_SUFFIXES,
    ):
        self.stopwords: FrozenSet[str] = frozenset(stopwords)
        self.synonyms: Mapping[str, Sequence[str]] = (
            DEFAULT_SYNONYMS if synonyms is None else dict(synonyms)
        )
        self.suffixes = tuple(s.lower() for s in suffixes)
        self.directory: Optional[Path] = None
        self._load_lock = threading.Lock()
        self._snapshot = CorpusSnapshot((), self.stopwords, self.synonyms)

    def __len__(self) -> int:
        return len(self._snapshot)

    @property
    def documents(self) -> Tuple[Document, ...]:
        return self._snapshot.documents

    def snapshot(self) -> CorpusSnapshot:
        """Return the active snapshot. Hold on to it for multi-step reads."""
        return self._snapshot

    def load(self, directory) -> int:
        """Load every eligible document under *directory*, replacing the corpus.

        Args:
            directory: Path to a directory of plain-text documents

        Returns:
            Number of documents loaded

        Raises:
            FileNotFoundError: If *directory* does not exist or is not a directory
        """
        path = Path(directory)
        if not path.is_dir():
            raise FileNotFoundError(f"Knowledge base directory not found: {path}")

        with self._load_lock:
            documents = []
            for file_path in sorted(path.iterdir(), key=lambda p: p.name):
                if not file_path.is_file() or file_path.suffix.lower() not in self.suffixes:
                    continue
                text = file_path.read_text(encoding="utf-8")
                documents.append(
                    Document(
                        id=f"{path.name}/{file_path.name}",
                        text=text,
                        facts=frozenset(extract_facts(text)),
                        path=str(file_path),
                    )
                )
            self._swap(documents)
            self.directory = path

        logger.info(f"Loaded {len(documents)} documents from {path}")
        return len(documents)

    def load_documents(self, texts: Mapping[str, str]) -> int:
        """Replace the corpus with in-memory ``{source_id: text}`` documents."""
        documents = [
            Document(id=doc_id, text=text, facts=frozenset(extract_facts(text)))
            for doc_id, text in texts.items()
        ]
        with self._load_lock:
            self._swap(documents)
        logger.info(f"Loaded {len(documents)} in-memory documents")
        return len(documents)

    def reload(self) -> int:
        """Re-read the directory passed to the last :meth:`load`."""
        if self.directory is None:
            raise ValueError("Knowledge corpus was never loaded from a directory")
        return self.load(self.directory)

    def search(self, query: str, limit: int = MAX_CITATIONS) -> List[Citation]:
        return self._snapshot.search(query, limit)

    def _swap(self, documents: Sequence[Document]) -> None:
        self._snapshot = CorpusSnapshot(documents, self.stopwords, self.synonyms)
