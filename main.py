"""Command-line interface for the GameHub backend."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import List, Sequence, Tuple

from pymongo.errors import PyMongoError

from gamehub.config import ConfigurationError, Settings, load_settings
from gamehub.database import Database, connect_database

logger = logging.getLogger("gamehub.main")

PASSWORD_MIN_LENGTH = 6
KNOWN_COMMANDS = {"serve", "init-db", "create-user", "history"}


def _split_global_options(args_list: List[str]) -> Tuple[List[str], List[str]]:
    """Separate leading ``--config`` options from the command and its arguments."""

    global_args: List[str] = []
    index = 0
    while index < len(args_list):
        item = args_list[index]
        if item == "--config" and index + 1 < len(args_list):
            global_args.extend(args_list[index : index + 2])
            index += 2
        elif item.startswith("--config="):
            global_args.append(item)
            index += 1
        else:
            break
    return global_args, args_list[index:]


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="GameHub backend utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML configuration file (default: GAMEHUB_CONFIG or config/gamehub.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("init-db", help="Create the indexes the service relies on")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP and realtime server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from configuration)")
    serve_parser.add_argument("--port", type=int, default=None, help="Listen port (default: from configuration)")

    user_parser = subparsers.add_parser("create-user", help="Register an account from the command line")
    user_parser.add_argument("username", help="Unique username")
    user_parser.add_argument("email", help="Unique email address for login")

    history_parser = subparsers.add_parser("history", help="Print the most recent chat messages")
    history_parser.add_argument("--limit", type=int, default=20, help="Number of messages to show")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    global_args, rest = _split_global_options(args_list)

    if not rest:
        rest = ["serve"]
    elif rest[0] not in KNOWN_COMMANDS and not any(flag in rest for flag in ("-h", "--help")):
        rest = ["serve", *rest]

    return parser.parse_args([*global_args, *rest])


def _initialise_database(settings: Settings) -> Database:
    database = connect_database(settings)
    database.initialize()
    logger.info("Database %s initialised", settings.mongo_database)
    return database


def _serve(*, settings: Settings, database: Database, host: str | None, port: int | None) -> None:
    from gamehub.application import create_application
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting GameHub on http://%s:%s (%s)", bind_host, bind_port, settings.environment)

    app = create_application(settings, database=database)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level=settings.log_level.lower())


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {PASSWORD_MIN_LENGTH} characters): ")
        if len(password) < PASSWORD_MIN_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _create_user(database: Database, username: str, email: str) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Aborted creating user.", file=sys.stderr)
        return 1

    try:
        account = database.accounts.create(username, email, password)
    except ValueError as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 1

    print(f"Created user {account.id}: {account.username} <{account.email}>")
    return 0


def _print_history(database: Database, limit: int) -> None:
    messages = database.messages.recent(limit)
    if not messages:
        print("No chat messages have been recorded.")
        return

    for message in reversed(messages):
        created = message.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{created}] {message.username}: {message.message}")


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        logger.error("Configuration error: %s", exc)
        return 1

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        database = _initialise_database(settings)
    except PyMongoError as exc:
        logger.error("Could not reach the document store: %s", exc)
        return 1

    try:
        if args.command == "serve":
            _serve(settings=settings, database=database, host=args.host, port=args.port)
        elif args.command == "create-user":
            return _create_user(database, args.username, args.email)
        elif args.command == "history":
            _print_history(database, args.limit)
        elif args.command == "init-db":
            print("Database initialisation complete.")
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
