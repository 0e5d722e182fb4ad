# notewright/main.py
"""
notewright CLI entrypoint.

Subcommands:
- interview : run a guided interview in the terminal, then write the article
- serve     : run the HTTP API with uvicorn

Interview commands typed at the prompt:
- /skip : skip the current question
- /done : finish the interview and write the article
- /close: finish the interview without writing an article
- exit  : leave without finishing (the interview stays active and can be resumed)
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from notewright.core import readiness as readiness_scale
from notewright.core.conductor import CompletionOptions, TurnOutcome, may_complete
from notewright.core.errors import NotewrightError
from notewright.core.services import Services, build_services
from notewright.memory import repository
from notewright.memory.models import ROLE_ASSISTANT
from notewright.prompts.context import DEFAULT_TARGET_LENGTH, WRITING_STYLES

CLI_USER = "local"


def _print_turn(outcome: TurnOutcome) -> None:
    last = outcome.messages[-1] if outcome.messages else None
    if last is not None and last.role == ROLE_ASSISTANT:
        print(f"\nInterviewer: {last.content}\n")

    display = outcome.readiness_display
    if display is not None:
        label, message = readiness_scale.stage(display)
        print(f"[readiness {readiness_scale.progress_percent(display)}% - {label}: {message}]")


def _resolve_theme(user_id: str, args: argparse.Namespace) -> int:
    if args.theme_id is not None:
        return repository.get_theme(user_id, args.theme_id).id
    theme = repository.create_theme(user_id, args.title, args.description or "")
    for memo in args.memo or []:
        repository.create_memo(user_id, theme.id, memo)
    print(f"[Created theme {theme.id}: {theme.title}]")
    return theme.id


async def run_interview(services: Services, args: argparse.Namespace) -> int:
    user_id = args.user
    theme_id = _resolve_theme(user_id, args)
    conductor = services.conductor

    outcome = await conductor.start(user_id, theme_id, args.target_length)
    print(f"notewright interview {outcome.interview.id}. Type /skip, /done, /close or 'exit'.")
    _print_turn(outcome)

    while True:
        try:
            user = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\n[Session paused; run again with --theme-id to resume]")
            return 0

        if not user:
            continue
        if user.lower() in {"exit", "quit"}:
            print("[Session paused; run again with --theme-id to resume]")
            return 0

        try:
            if user == "/skip":
                outcome = await conductor.skip(user_id, outcome.interview.id)
            elif user == "/close":
                interview = await conductor.close(user_id, outcome.interview.id)
                print(f"[Interview {interview.id} closed without an article]")
                return 0
            elif user == "/done":
                if not may_complete(outcome.messages):
                    print("[Answer at least one question before finishing]")
                    continue
                print("[Writing the article...]")
                done = await conductor.complete(
                    user_id,
                    outcome.interview.id,
                    CompletionOptions(pronoun=args.pronoun, writing_style=args.style),
                )
                article = done.article
                print(f"\n# {article.title}\n\n{article.content}\n")
                print(f"[Saved article {article.id}, {article.word_count} characters]")
                return 0
            else:
                outcome = await conductor.answer(user_id, outcome.interview.id, user)
        except NotewrightError as e:
            print(f"notewright (error): {e}")
            continue

        _print_turn(outcome)


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("notewright.api.server:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="notewright", description="Turn notes into an article through an interview.")
    sub = p.add_subparsers(dest="command", required=True)

    iv = sub.add_parser("interview", help="Run an interview in the terminal.")
    target = iv.add_mutually_exclusive_group(required=True)
    target.add_argument("--theme-id", type=int, default=None, help="Existing theme to interview on (resumes if active).")
    target.add_argument("--title", default=None, help="Create a new theme with this title.")
    iv.add_argument("--description", default="", help="Description for a new theme.")
    iv.add_argument("--memo", action="append", help="Memo for a new theme (repeatable).")
    iv.add_argument("--target-length", type=int, default=DEFAULT_TARGET_LENGTH, help="Target article length in characters.")
    iv.add_argument("--pronoun", default=None, help="First-person pronoun for the article.")
    iv.add_argument("--style", default=None, choices=list(WRITING_STYLES), help="Writing register.")
    iv.add_argument("--user", default=CLI_USER, help="Acting user id for stored records.")

    sv = sub.add_parser("serve", help="Run the HTTP API.")
    sv.add_argument("--host", default="127.0.0.1")
    sv.add_argument("--port", type=int, default=8000)
    sv.add_argument("--reload", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "serve":
        return serve(args)

    try:
        services = build_services()
        return asyncio.run(run_interview(services, args))
    except NotewrightError as e:
        print(f"notewright (error): {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
