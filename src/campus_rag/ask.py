from __future__ import annotations

import argparse
import logging
import sys
from typing import TextIO

from campus_rag.config import get_settings
from campus_rag.context import build_context, build_query_engine
from campus_rag.errors import ConfigurationError, ProviderError
from campus_rag.services.rag.query import QueryEngine
from campus_rag.services.rag.types import AnswerResult

PROMPT = "\nEnter your query (type 'exit' to quit): "


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-ask",
        description="Ask questions against the local vector index",
    )
    parser.add_argument(
        "--question",
        default=None,
        help="Ask a single question and exit instead of starting the prompt loop",
    )
    return parser


def format_result(result: AnswerResult) -> str:
    lines = ["Answer:", result.answer]
    if result.follow_ups:
        lines.append("")
        lines.append("Follow-up suggestions:")
        lines.extend(f"- {follow_up}" for follow_up in result.follow_ups)
    if result.sources:
        lines.append("")
        lines.append("Sources:")
        for position, citation in enumerate(result.sources, start=1):
            lines.append(f"{position}. {citation.source}")
            lines.append(f"   Excerpt: {citation.excerpt}...")
    return "\n".join(lines)


def ask_once(engine: QueryEngine, question: str, *, out: TextIO = sys.stdout) -> bool:
    try:
        result = engine.query(question)
    except (ConfigurationError, ProviderError, ValueError) as exc:
        print(f"[rag-ask] could not answer: {exc}", file=sys.stderr, flush=True)
        return False
    print(format_result(result), file=out, flush=True)
    return True


def prompt_loop(engine: QueryEngine, *, stdin: TextIO = sys.stdin, out: TextIO = sys.stdout) -> None:
    while True:
        print(PROMPT, end="", file=out, flush=True)
        line = stdin.readline()
        if not line:
            break
        question = line.strip()
        if question.lower() == "exit":
            print("Goodbye!", file=out, flush=True)
            break
        if question:
            ask_once(engine, question, out=out)


def main(argv: list[str] | None = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)

    try:
        context = build_context(settings)
        if context.qa_log is not None:
            context.qa_log.create_schema()
        engine = build_query_engine(context)
    except ConfigurationError as exc:
        print(f"[rag-ask] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    if args.question is not None:
        if not ask_once(engine, args.question):
            raise SystemExit(1)
        return

    print("Ask me anything about the study programmes!", flush=True)
    prompt_loop(engine)


if __name__ == "__main__":
    main()
