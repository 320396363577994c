"""
Command-line front end for ketochat.

Usage:
    ketochat "What can I eat for breakfast?"
    ketochat "netcarbs 30 8 6"
    ketochat --new-thread "Meal prep" "Ideas for lunch?"
    ketochat --list-threads
    ketochat --thread <id> --history
    ketochat --thread <id> --rename "Snacks"
    echo "prompt" | ketochat -
"""

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import dotenv_values, load_dotenv

# Quiet LiteLLM before anything imports it; it reads LITELLM_LOG at import time.
# FEATURE_SUPPRESS_LITELLM_LOGGING (default: true) may come from the environment or ./.env.
_env_values = dotenv_values(Path.cwd() / ".env") if (Path.cwd() / ".env").exists() else {}
_suppress_litellm = os.environ.get(
    "FEATURE_SUPPRESS_LITELLM_LOGGING",
    _env_values.get("FEATURE_SUPPRESS_LITELLM_LOGGING") or "true",
).lower() in ("true", "1", "yes")
if _suppress_litellm and "LITELLM_LOG" not in os.environ:
    os.environ["LITELLM_LOG"] = "ERROR"
del _env_values, _suppress_litellm


def _get_env_file_from_args(argv: List[str]) -> tuple[Path, bool]:
    """Extract --env-file from argv without full parsing.

    Returns:
        Tuple of (env_path, is_custom) where is_custom is True if the user
        explicitly provided --env-file.
    """
    default_env = Path.cwd() / ".env"
    for i, arg in enumerate(argv):
        if arg == "--env-file" and i + 1 < len(argv):
            return Path(argv[i + 1]), True
        if arg.startswith("--env-file="):
            return Path(arg.split("=", 1)[1]), True
    return default_env, False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ketochat",
        description="Chat with the keto assistant. Conversations are kept between runs.",
    )
    parser.add_argument(
        "prompt",
        nargs="?",
        default=None,
        help="Message to send, or '-' to read from stdin. Try 'netcarbs <total> <fiber> <polyols>'.",
    )
    parser.add_argument("--thread", default=None, help="Thread id to use (default: newest thread).")
    parser.add_argument(
        "--new-thread",
        nargs="?",
        const="",
        default=None,
        metavar="TITLE",
        help="Start a new thread, optionally with a title, and use it.",
    )
    parser.add_argument("--list-threads", action="store_true", help="Print all threads and exit.")
    parser.add_argument("--history", action="store_true", help="Print the thread's messages.")
    parser.add_argument(
        "--rename",
        nargs="?",
        const="",
        default=None,
        metavar="TITLE",
        help="Rename the thread (defaults to the current date and time).",
    )
    parser.add_argument("--delete", action="store_true", help="Delete the thread and all its messages.")
    parser.add_argument("--json", dest="json_output", action="store_true", help="Output structured JSON.")
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file (default: ./.env). Parsed before anything else.",
    )
    return parser


def _emit(payload, json_output: bool, text: str) -> None:
    if json_output:
        print(json.dumps(payload, indent=2))
    else:
        print(text)


def _format_thread(thread) -> str:
    return f"{thread.id}  {thread.title}  ({thread.message_count} messages, created {thread.created_at:%Y-%m-%d %H:%M})"


def _format_message(message) -> str:
    speaker = "You" if message.is_user else "Assistant"
    return f"[{speaker}] {message.text}"


async def run(args: argparse.Namespace, controller) -> int:
    """Execute the parsed command against a ChatController."""
    from ketochat.application.chat.utilities.error_handler import user_message_for
    from ketochat.domain.errors import DomainError

    try:
        if args.list_threads:
            threads = await controller.list_threads()
            _emit(
                {"threads": [t.to_dict() for t in threads]},
                args.json_output,
                "\n".join(_format_thread(t) for t in threads) or "No threads yet.",
            )
            return 0

        if args.new_thread is not None:
            thread = await controller.start_thread(args.new_thread or None)
        elif args.thread:
            thread = await controller.thread_summary(args.thread)
        else:
            thread = await controller.active_thread()

        if args.delete:
            await controller.delete_thread(thread.id)
            _emit({"deleted": thread.id}, args.json_output, f"Deleted thread {thread.id}")
            return 0

        if args.rename is not None:
            thread = await controller.rename_thread(thread.id, args.rename or None)
            _emit(thread.to_dict(), args.json_output, f"Renamed thread to: {thread.title}")

        exit_code = 0
        prompt = args.prompt
        if prompt == "-":
            prompt = sys.stdin.read()
        if prompt is not None:
            turn = await controller.submit(thread.id, prompt)
            if turn.error is not None:
                exit_code = 1
                if not args.json_output:
                    print(f"Error: {turn.error_message}", file=sys.stderr)
            if args.json_output:
                print(json.dumps(turn.to_dict(), indent=2))
            elif turn.assistant_message is not None:
                print(turn.assistant_message.text)

        if args.history:
            messages = await controller.history(thread.id)
            _emit(
                {"thread": thread.to_dict(), "messages": [m.to_dict() for m in messages]},
                args.json_output,
                "\n".join(_format_message(m) for m in messages) or "No messages yet.",
            )

        if prompt is None and not args.history and args.rename is None:
            _emit(thread.to_dict(), args.json_output, _format_thread(thread))

        return exit_code
    except DomainError as exc:
        print(f"Error: {user_message_for(exc)}", file=sys.stderr)
        return 1


def main(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv

    env_file, is_custom = _get_env_file_from_args(argv)
    if is_custom and not env_file.exists():
        print(f"Error: specified env file not found: {env_file}", file=sys.stderr)
        sys.exit(2)
    if env_file.exists():
        load_dotenv(dotenv_path=str(env_file))

    args = build_parser().parse_args(argv)

    # Imported after the env file is loaded so settings see its values
    from ketochat.core.logging_config import setup_logging
    from ketochat.domain.errors import PersistenceError
    from ketochat.infrastructure.app_factory import AppFactory
    from ketochat.modules.config import config_manager
    from ketochat.version import VERSION

    settings = config_manager.app_settings
    setup_logging(
        "ketochat",
        VERSION,
        settings.log_level,
        settings.app_log_dir,
        settings.debug_mode,
        suppress_third_party=settings.feature_suppress_litellm_logging,
    )

    try:
        factory = AppFactory(config_manager)
    except PersistenceError as exc:
        print(f"Fatal: {exc.message}", file=sys.stderr)
        sys.exit(2)

    sys.exit(asyncio.run(run(args, factory.get_chat_controller())))


if __name__ == "__main__":
    main()
