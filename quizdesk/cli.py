"""Text driver for quizdesk sessions."""

from __future__ import annotations

import argparse
import asyncio
import functools
import logging
import sys
from typing import Callable, Sequence

from quizdesk.config import settings
from quizdesk.db.session import init_db
from quizdesk.identity import Identity, IdentityFeed
from quizdesk.logging_config import resolve_log_level, setup_logging
from quizdesk.quiz.bank import load_bank
from quizdesk.quiz.orchestrator import ActionResult, QuizOrchestrator
from quizdesk.quiz.views import QuestionView

logger = logging.getLogger(__name__)

Prompt = Callable[[str], str]


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quizdesk", description=__doc__)
    parser.add_argument("--user", help="Sign in with this user id (enables tracking, review and profile)")
    parser.add_argument("--name", help="Display name for --user")
    parser.add_argument("--email", help="E-mail stored with saved scores")
    parser.add_argument("--source", help=f"Question bank file or URL (default: {settings.QUESTIONS_SOURCE})")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("exams", help="List exam categories in the bank")

    quiz = commands.add_parser("quiz", help="Take a short random quiz")
    quiz.add_argument("--exam", default="all")
    quiz.add_argument("--answers", help="Comma separated option numbers, blank to skip (non-interactive)")

    timed = commands.add_parser("timed", help="Take or resume a timed quiz")
    timed.add_argument("--exam", default="all")
    timed.add_argument("--token", help="Open an existing quiz by its 4-letter token")
    timed.add_argument("--answers", help="Comma separated option numbers, blank to skip (non-interactive)")

    review = commands.add_parser("review", help="Retake previously missed questions")
    review.add_argument("--exam", default="all")
    review.add_argument("--answers", help="Comma separated option numbers, blank to skip (non-interactive)")

    commands.add_parser("profile", help="Show attempt history")
    return parser


def _print_question(view: QuestionView) -> None:
    print(view.meta)
    if view.missed_badge:
        print(f"  [{view.missed_badge}]")
    print(view.legend)
    for option in view.options:
        marker = " "
        if option.correct:
            marker = "+"
        elif option.wrong:
            marker = "x"
        elif option.chosen:
            marker = "*"
        print(f"  {marker} {option.index + 1}) {option.text}")
    if view.explanation_visible:
        print(f"  {view.explanation}")
    print()


def _print_result(result: ActionResult) -> None:
    for view in result.views:
        _print_question(view)
    if result.score is not None:
        print(f"{result.score.score_line}  ({result.score.percent_line})")
    if result.sync is not None and not result.sync.ok:
        print(f"Progress tracking: {len(result.sync.failures)} update(s) could not be saved.")


def _parse_answers(raw: str | None) -> list[int | None] | None:
    if raw is None:
        return None
    answers: list[int | None] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        answers.append(int(chunk) - 1 if chunk.isdigit() else None)
    return answers


async def _answer(orchestrator: QuizOrchestrator, scripted: list[int | None] | None, prompt: Prompt) -> ActionResult:
    started = orchestrator.views()
    for view in started:
        if orchestrator.result is not None:
            # the countdown ran out while answering
            break
        if scripted is None:
            _print_question(view)
            if orchestrator.remaining_text:
                print(f"Time left: {orchestrator.remaining_text}")
            raw = prompt(f"Answer 1-{len(view.options)} (blank to skip): ").strip()
            choice = int(raw) - 1 if raw.isdigit() else None
        else:
            choice = scripted[view.position] if view.position < len(scripted) else None
        if choice is not None:
            picked = orchestrator.choose(view.position, choice)
            if picked.error:
                print(picked.error)
    return await orchestrator.submit()


async def _run(args: argparse.Namespace, prompt: Prompt = input) -> int:
    setup_logging(settings.LOG_DIR, resolve_log_level(settings.LOG_LEVEL))
    await init_db()

    loader = functools.partial(load_bank, args.source) if args.source else None
    orchestrator = QuizOrchestrator(loader=loader)
    feed = IdentityFeed()
    feed.subscribe(orchestrator.hub)
    try:
        if args.user:
            await feed.sign_in(Identity(uid=args.user, display_name=args.name, email=args.email))

        loaded = await orchestrator.load()
        if loaded.error:
            print(loaded.error, file=sys.stderr)
            return 1

        if args.command == "exams":
            for exam in orchestrator.exams:
                print(exam)
            return 0

        if args.command == "profile":
            summary = await orchestrator.profile()
            if summary is None:
                print("Sign in with --user to see your profile.", file=sys.stderr)
                return 2
            print(f"Attempts: {summary.total}  Correct: {summary.correct}  Accuracy: {summary.accuracy_percent}%")
            for group in summary.groups:
                print(f"- {group.question_text or group.question_id}: {group.correct}/{len(group.attempts)}")
            return 0

        if args.command == "quiz":
            started = await orchestrator.shuffle(args.exam)
        elif args.command == "timed":
            if args.token:
                started = await orchestrator.open_by_token(args.token, args.exam)
            else:
                started = await orchestrator.create_timed(args.exam)
            if started.share_url:
                print(f"Share link: {started.share_url}")
        else:
            started = await orchestrator.review(args.exam)

        if started.error:
            print(started.error, file=sys.stderr)
            return 1

        graded = await _answer(orchestrator, _parse_answers(args.answers), prompt)
        _print_result(graded)
        if args.user:
            saved = await orchestrator.save_score()
            if saved.error:
                print(saved.error, file=sys.stderr)
        return 0
    finally:
        await orchestrator.aclose()


def main(argv: Sequence[str] | None = None, prompt: Prompt = input) -> int:
    args = _build_arg_parser().parse_args(argv)
    return asyncio.run(_run(args, prompt))


def run() -> None:
    raise SystemExit(main())


__all__ = ["main", "run"]
