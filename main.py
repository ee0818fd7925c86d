"""Command-line interface for the roster user registry."""

from __future__ import annotations
import argparse
import locale
import logging
import sys
from typing import Sequence

import anyio
from pydantic import ValidationError

from roster.config import RosterConfig, load_config
from roster.errors import PersistenceError
from roster.models import User
from roster.service import UserPayload
from roster.store import RecordStore
from roster.view import SortDirection, ViewParams, derive_view

logger = logging.getLogger("roster.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Roster user registry utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the registry database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )

    list_parser = subparsers.add_parser("list", help="Print one page of registered users")
    list_parser.add_argument("--search", default="", help="Case-insensitive search term")
    list_parser.add_argument("--page", type=int, default=1, help="1-based page number")
    list_parser.add_argument("--page-size", type=int, default=None, help="Users per page")
    list_parser.add_argument(
        "--newest-first",
        action="store_true",
        help="Order by creation time, newest first",
    )
    list_parser.add_argument(
        "--oldest-age-first",
        action="store_true",
        help="Order by age, oldest first",
    )
    list_parser.add_argument(
        "--name-desc",
        action="store_true",
        help="Order by name, Z to A",
    )

    add_parser = subparsers.add_parser("add", help="Register a new user")
    add_parser.add_argument("name")
    add_parser.add_argument("email")
    add_parser.add_argument("age", type=int)

    delete_parser = subparsers.add_parser("delete", help="Remove a user by id")
    delete_parser.add_argument("user_id", type=int)

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list", "add", "delete"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _direction(descending: bool) -> SortDirection:
    return SortDirection.DESC if descending else SortDirection.ASC


def _build_view_params(args: argparse.Namespace, config: RosterConfig) -> ViewParams:
    return ViewParams(
        search_term=args.search,
        creation_order=_direction(args.newest_first),
        age_order=_direction(args.oldest_age_first),
        name_order=_direction(args.name_desc),
        current_page=args.page,
        page_size=args.page_size or config.page_size,
    )


async def _initialise_store(config: RosterConfig) -> RecordStore:
    store = await RecordStore.at_path(config.database_path).open()
    logger.info("Database initialised at %s", config.database_path)
    return store


def _serve(*, config: RosterConfig, host: str, port: int) -> None:
    from roster.service import create_app
    import uvicorn

    logger.info("Starting roster API on http://%s:%s", host, port)
    app = create_app(config=config)
    uvicorn.run(app, host=host, port=port, log_level="info")


async def _list_users(store: RecordStore, params: ViewParams) -> None:
    view = derive_view(await store.list_all(), params)

    print(f"Results found: {view.filtered_count} / Total users: {view.total_count}")
    if not view.page_items:
        if view.filtered_count:
            print(f"Page {params.current_page} is out of range (1-{view.total_pages}).")
        else:
            print("No users match.")
        return

    print(f"{'ID':>4}  {'Name':<20}  {'Email':<30}  {'Age':>3}  Created")
    print("-" * 84)
    for user in view.page_items:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z") if user.created_at else "-"
        print(
            f"{user.id:>4}  {user.name or '':<20}  {user.email or '':<30}  "
            f"{'' if user.age is None else user.age:>3}  {created}"
        )
    print(f"Page {view.current_page} of {view.total_pages}")


async def _add_user(store: RecordStore, name: str, email: str, age: int) -> int:
    try:
        payload = UserPayload(name=name, email=email, age=age)
    except ValidationError as exc:
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"])
            print(f"Invalid {field}: {error['msg']}")
        return 2

    user = await store.create(User(name=payload.name, email=payload.email, age=payload.age))
    print(f"Created user #{user.id}: {user.name} <{user.email}>")
    return 0


async def _delete_user(store: RecordStore, user_id: int) -> int:
    await store.delete(user_id)
    print(f"User #{user_id} removed.")
    return 0


async def _run_command(args: argparse.Namespace, config: RosterConfig) -> int:
    store = await _initialise_store(config)

    if args.command == "list":
        await _list_users(store, _build_view_params(args, config))
        return 0
    if args.command == "add":
        return await _add_user(store, args.name, args.email, args.age)
    if args.command == "delete":
        return await _delete_user(store, args.user_id)

    print("Database initialisation complete.")
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error:
        logger.warning("Unable to apply the environment's collation locale; using the default")

    args = _parse_args(argv)
    config = load_config()

    if args.command == "serve":
        _serve(config=config, host=args.host, port=args.port)
        return

    try:
        exit_code = anyio.run(_run_command, args, config)
    except PersistenceError as exc:
        raise SystemExit(f"Storage failure: {exc}") from exc
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    if exit_code:
        raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
