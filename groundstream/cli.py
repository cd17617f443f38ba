"""groundstream CLI — check answers against a knowledge base from the command line.

Usage:
    groundstream verify "Basic kostar 99 kr/månad" --query "Vad kostar Basic?" --kb kb
    groundstream search "Vad kostar Basic?" --kb kb
    groundstream extract "Ring +46 8 123 45 67"
    groundstream detect "Kan du ring mig?"
    groundstream version
"""

import argparse
import json
import sys
import time

from . import __version__
from .actions import detect_action
from .corpus import KnowledgeCorpus
from .fact_extractor import iter_numeric_facts
from .verifier import GroundingVerifier


def _load_corpus(path: str) -> KnowledgeCorpus:
    corpus = KnowledgeCorpus()
    count = corpus.load(path)
    if not count:
        print(f"Warning: no documents loaded from {path}", file=sys.stderr)
    return corpus


def cmd_verify(args: argparse.Namespace) -> int:
    """Run grounding verification and print the result."""
    try:
        corpus = _load_corpus(args.kb)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    verifier = GroundingVerifier(corpus)
    t0 = time.perf_counter()
    result = verifier.verify(args.text, args.query)
    elapsed_ms = (time.perf_counter() - t0) * 1000

    output = {
        "accepted": result.accepted,
        "text": result.text,
        "reason": result.reason,
        "unverified": result.unverified,
        "citations": [c.to_dict() for c in result.citations],
        "latency_ms": round(elapsed_ms, 2),
        "documents_count": len(corpus),
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0 if result.accepted else 1


def cmd_search(args: argparse.Namespace) -> int:
    """Search the knowledge base and print the citations."""
    try:
        corpus = _load_corpus(args.kb)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    citations = corpus.search(args.query)
    print(json.dumps([c.to_dict() for c in citations], indent=2, ensure_ascii=False))
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    """Extract numeric facts from text and print them."""
    output = [
        {"kind": f.kind, "raw": f.raw, "normalized": f.normalized}
        for f in iter_numeric_facts(args.text)
    ]
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def cmd_detect(args: argparse.Namespace) -> int:
    """Detect an action intent in text."""
    kind, payload = detect_action(args.text)
    output = {"action": kind.value if kind else None, "payload": payload}
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def cmd_version(_args: argparse.Namespace) -> int:
    """Print the version."""
    print(f"groundstream {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="groundstream",
        description="groundstream — fail-closed grounding checks for streamed answers",
    )
    sub = parser.add_subparsers(dest="command")

    # groundstream verify
    p_verify = sub.add_parser("verify", help="Verify an answer against the knowledge base")
    p_verify.add_argument("text", help="The answer to verify")
    p_verify.add_argument("--query", "-q", required=True, help="The question the answer responds to")
    p_verify.add_argument("--kb", default="kb", help="Knowledge base directory (default: kb)")
    p_verify.set_defaults(func=cmd_verify)

    # groundstream search
    p_search = sub.add_parser("search", help="Search the knowledge base")
    p_search.add_argument("query", help="The query to search for")
    p_search.add_argument("--kb", default="kb", help="Knowledge base directory (default: kb)")
    p_search.set_defaults(func=cmd_search)

    # groundstream extract
    p_extract = sub.add_parser("extract", help="Extract numeric facts from text")
    p_extract.add_argument("text", help="The text to extract facts from")
    p_extract.set_defaults(func=cmd_extract)

    # groundstream detect
    p_detect = sub.add_parser("detect", help="Detect an action intent in text")
    p_detect.add_argument("text", help="The user message")
    p_detect.set_defaults(func=cmd_detect)

    # groundstream version
    p_version = sub.add_parser("version", help="Show version")
    p_version.set_defaults(func=cmd_version)

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        sys.exit(0)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
