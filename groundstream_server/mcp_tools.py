"""groundstream MCP server — exposes search/verify/action tools via Model Context Protocol.

Usage:
    groundstream-mcp --kb kb
    groundstream-mcp --kb kb --verbose

    # Or via Python:
    python -m groundstream_server.mcp_tools --kb kb
"""

import argparse
import json
import logging
from typing import Optional

from mcp.server import FastMCP

from groundstream import (
    ActionLedger,
    GroundingVerifier,
    KnowledgeCorpus,
    ServerConfig,
    detect_action,
)

logger = logging.getLogger("groundstream-mcp")

# Global state
_corpus: Optional[KnowledgeCorpus] = None
_verifier: Optional[GroundingVerifier] = None
_ledger: Optional[ActionLedger] = None
_kb_dir: str = "kb"

mcp = FastMCP(
    "groundstream",
    instructions=(
        "groundstream checks answers against a fixed knowledge base. "
        "Call search_knowledge to find supporting lines for a question. "
        "Call verify_answer with your draft and the user's question before "
        "replying; if it is not accepted, send the returned text instead. "
        "When the user asks for a callback, an SMS or a support ticket, call "
        "suggest_action and only call confirm_action after the user agrees."
    ),
)


def _get_corpus() -> KnowledgeCorpus:
    global _corpus
    if _corpus is None:
        _corpus = KnowledgeCorpus()
        _corpus.load(_kb_dir)
    return _corpus


def _get_verifier() -> GroundingVerifier:
    global _verifier
    if _verifier is None:
        _verifier = GroundingVerifier(_get_corpus())
    return _verifier


def _get_ledger() -> ActionLedger:
    global _ledger
    if _ledger is None:
        _ledger = ActionLedger()
    return _ledger


@mcp.tool()
def search_knowledge(query: str) -> str:
    """Find knowledge base lines relevant to a question.

    Args:
        query: The user's question or search terms.
    """
    citations = _get_corpus().search(query)
    result = {
        "found": len(citations),
        "citations": [c.to_dict() for c in citations],
    }
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
def verify_answer(answer: str, query: str) -> str:
    """Verify a draft answer against the knowledge base before sending it.

    Every number in the answer must appear in the knowledge base and the
    question must have at least one supporting line. Otherwise the answer is
    rejected and 'text' holds the refusal to send instead.

    Args:
        answer: The draft answer.
        query: The user's question the answer responds to.
    """
    result = _get_verifier().verify(answer, query)
    output = {
        "accepted": result.accepted,
        "text": result.text,
        "reason": result.reason,
        "unverified": result.unverified,
        "citations": [c.to_dict() for c in result.citations],
    }
    return json.dumps(output, indent=2, ensure_ascii=False)


@mcp.tool()
def suggest_action(text: str) -> str:
    """Detect an action request in a user message and create a pending suggestion.

    Args:
        text: The user's message.
    """
    kind, payload = detect_action(text)
    if kind is None:
        return json.dumps({"suggested": False}, indent=2)

    suggestion = _get_ledger().create_suggestion(kind, payload)
    result = {
        "suggested": True,
        "suggestionId": suggestion.id,
        "action": suggestion.kind.value,
        "payload": suggestion.payload,
    }
    return json.dumps(result, indent=2, ensure_ascii=False)


@mcp.tool()
def confirm_action(suggestion_id: str) -> str:
    """Execute a suggested action after the user confirmed it.

    Repeating a confirmation within 30 seconds is reported as ignored and
    does not run the action again.

    Args:
        suggestion_id: The id returned by suggest_action.
    """
    result = _get_ledger().confirm(suggestion_id)
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


@mcp.tool()
def reload_knowledge() -> str:
    """Re-read the knowledge base directory."""
    corpus = _get_corpus()
    if corpus.directory is None:
        count = corpus.load(_kb_dir)
    else:
        count = corpus.reload()
    return json.dumps({"documents": count}, indent=2)


def main():
    """Entry point for the groundstream-mcp command."""
    defaults = ServerConfig.from_env()
    parser = argparse.ArgumentParser(description="groundstream MCP Server")
    parser.add_argument(
        "--kb",
        default=defaults.kb_dir,
        help=f"Knowledge base directory (default: {defaults.kb_dir})",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    global _kb_dir, _corpus
    _kb_dir = args.kb
    _corpus = KnowledgeCorpus()
    _corpus.load(_kb_dir)
    logger.info(f"groundstream MCP server started with kb={_kb_dir}, documents={len(_corpus)}")

    # Run via stdio (standard for MCP)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
