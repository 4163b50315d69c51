"""Command line entry-point for the conversation router."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from .api import add_server_arguments, run_server
from .config import AppSettings
from .models import ActionOption, RouterResponse
from .router import FlowRouter
from .task_store import format_task_list
from .triggers import RESET_TRIGGER, VIEW_TASKS_TRIGGER

TERMINATION_TOKENS = {"exit", "quit", "q"}
SHORTCUTS = {":reset": RESET_TRIGGER, ":tasks": VIEW_TASKS_TRIGGER}


def _render(response: RouterResponse) -> List[ActionOption]:
    print()  # noqa: T201 - CLI UX newline
    print(f"Router: {response.response_text}")  # noqa: T201 - CLI output
    actions = response.actions or []
    for position, action in enumerate(actions, start=1):
        print(f"  [{position}] {action.label}")  # noqa: T201
    return actions


def _resolve_input(raw: str, actions: List[ActionOption]) -> str:
    """Map a numbered choice or shortcut onto the token the router expects."""

    text = raw.strip()
    if text in SHORTCUTS:
        return SHORTCUTS[text]
    if text.isdigit() and actions:
        index = int(text) - 1
        if 0 <= index < len(actions):
            return actions[index].trigger
    return text


async def run_chat(router: FlowRouter, session_id: str) -> None:
    """Interactive chat loop; type ``exit`` to leave."""

    actions = _render(await router.handle(RESET_TRIGGER, session_id=session_id))
    print("(':tasks' lists tasks, ':reset' starts over, 'exit' quits)")  # noqa: T201
    while True:
        try:
            raw = input("You: ")  # noqa: PLW1514 - intentional CLI input
        except EOFError:
            break
        if raw.strip().lower() in TERMINATION_TOKENS:
            break
        message = _resolve_input(raw, actions)
        response = await router.handle(message, session_id=session_id)
        new_actions = _render(response)
        if new_actions or response.actions is not None:
            actions = new_actions


def _run_tasks_command(argv: List[str]) -> None:
    parser = argparse.ArgumentParser(
        prog="conversation-router tasks",
        description="List stored tasks or mark one as completed.",
    )
    parser.add_argument(
        "--complete",
        metavar="TASK_ID",
        help="Mark the given task as completed before listing.",
    )
    args = parser.parse_args(argv)
    settings = AppSettings.load(require_model=False)
    if not settings.redis_url:
        logging.warning("ROUTER_REDIS_URL is not set; the task list is process-local.")
    router = FlowRouter.create(settings)
    if args.complete:
        if not router.tasks.update(args.complete, {"completed": True}):
            raise SystemExit(f"Unknown task: {args.complete}")
    print(format_task_list(router.tasks.list()))  # noqa: T201


def _run_serve_command(argv: List[str]) -> None:
    parser = argparse.ArgumentParser(
        prog="conversation-router serve",
        description="Serve the conversation router over HTTP.",
    )
    add_server_arguments(parser)
    args = parser.parse_args(argv)
    try:
        settings = AppSettings.load(require_model=False)
    except RuntimeError as exc:
        logging.error("Failed to load AppSettings: %s", exc)
        raise SystemExit(1) from exc
    run_server(
        settings,
        host=args.host,
        port=args.port,
        allow_origins=args.allow_origin,
        tracing=args.tracing,
        log_level=args.log_level,
    )


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="conversation-router",
        description=(
            "Chat with the flow router. Subcommands: 'serve' runs the HTTP API, "
            "'tasks' lists stored tasks."
        ),
    )
    parser.add_argument(
        "--session",
        default="cli",
        help="Session id to use for the chat (default: cli).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level.",
    )
    return parser.parse_args(argv)


def run_cli(argv: Optional[list[str]] = None) -> None:
    """Entry-point invoked from ``python -m conversation_router``."""

    arg_list = list(argv) if argv is not None else sys.argv[1:]
    logging.basicConfig(level=logging.INFO)
    if arg_list:
        command = arg_list[0]
        if command == "serve":
            _run_serve_command(arg_list[1:])
            return
        if command == "tasks":
            _run_tasks_command(arg_list[1:])
            return

    args = _parse_args(arg_list)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    settings = AppSettings.load(require_model=False)
    router = FlowRouter.create(settings)
    asyncio.run(run_chat(router, args.session))


if __name__ == "__main__":  # pragma: no cover - manual execution hook
    run_cli()
