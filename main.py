"""Command line front end running the Study Buddy pipeline on local files.

No host capabilities are registered here, so every step exercises the
deterministic fallbacks.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path

from study_buddy.config import StudyBuddyConfig
from study_buddy.errors import OperationResult
from study_buddy.pipeline import StudyBuddy

logger = logging.getLogger(__name__)


def read_text(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def render(result: OperationResult) -> str:
    if not result.ok:
        return f"[{result.error_kind}] {result.message}"
    value = result.value
    if is_dataclass(value):
        value = asdict(value)
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


async def run_note(assistant: StudyBuddy, args: argparse.Namespace) -> OperationResult:
    return await assistant.process_text(read_text(args.file))


async def run_quiz(assistant: StudyBuddy, args: argparse.Namespace) -> OperationResult:
    processed = await assistant.process_text(read_text(args.file))
    if not processed.ok:
        return processed
    created = await assistant.create_quiz(processed.value.id, question_count=args.count)
    if not created.ok:
        return created
    quiz = await created.value.upgraded()
    return OperationResult.success(quiz)


async def run_pack(assistant: StudyBuddy, args: argparse.Namespace) -> OperationResult:
    text = read_text(args.file)
    built = await assistant.build_study_pack(
        {"title": args.title or Path(args.file).stem, "url": args.url, "textContent": text}
    )
    if not built.ok:
        return built
    return OperationResult.success(await built.value.upgraded())


async def run(args: argparse.Namespace, config: StudyBuddyConfig) -> int:
    assistant = StudyBuddy(config=config)
    handlers = {"note": run_note, "quiz": run_quiz, "pack": run_pack}
    try:
        result = await handlers[args.command](assistant, args)
    finally:
        await assistant.close()
    print(render(result))
    return 0 if result.ok else 1


def main() -> None:
    config = StudyBuddyConfig.from_env()
    parser = argparse.ArgumentParser(description="Study Buddy notes, quizzes and study packs")
    parser.add_argument("--db", default=config.db_path, help="SQLite database path for history")
    parser.add_argument("--log-level", default=config.log_level, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    note_parser = subparsers.add_parser("note", help="Summarise a text file into a note")
    note_parser.add_argument("file")

    quiz_parser = subparsers.add_parser("quiz", help="Build a quiz from a text file")
    quiz_parser.add_argument("file")
    quiz_parser.add_argument("--count", type=int, default=config.question_count, help="Number of questions")

    pack_parser = subparsers.add_parser("pack", help="Build a study pack from a saved page")
    pack_parser.add_argument("file")
    pack_parser.add_argument("--title", default="")
    pack_parser.add_argument("--url", default="")

    args = parser.parse_args()
    config.db_path = args.db
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(run(args, config)))
    except FileNotFoundError as exc:
        sys.stderr.write(f"{exc}\n")
        sys.exit(2)


if __name__ == "__main__":
    main()
