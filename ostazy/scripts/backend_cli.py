"""
Command line access to the backend.
Signs in, inspects the current user, queries tables and uploads files using the
durable session file, so a login persists across invocations.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional, Sequence

from ostazy.config.settings import settings
from ostazy.database.client import BackendClient, create_client

logger = logging.getLogger(__name__)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump()
    if isinstance(value, dict):
        return {k: _dump(v) for k, v in value.items()}
    if isinstance(value, BaseException):
        return str(value)
    return value


def parse_filters(items: Optional[List[str]]) -> List[tuple]:
    filters = []
    for item in items or []:
        column, sep, value = item.partition("=")
        if not sep or not column:
            raise ValueError(f"Filter must look like column=value, got {item!r}")
        filters.append((column, value))
    return filters


async def run(args: argparse.Namespace, client: BackendClient) -> int:
    if args.command == "login":
        result = await client.auth.sign_in_with_password(args.email, args.password)
    elif args.command == "logout":
        result = await client.auth.sign_out()
    elif args.command == "whoami":
        user = await client.auth.get_current_user_with_profile()
        _print(user)
        return 0 if user else 1
    elif args.command == "select":
        query = client.from_(args.table).select(args.columns)
        for column, value in parse_filters(args.eq):
            query = query.eq(column, value)
        if args.order:
            query = query.order(args.order, ascending=not args.desc)
        if args.limit is not None:
            query = query.limit(args.limit)
        if args.single:
            query = query.maybe_single()
        result = await query
    elif args.command == "upload":
        with open(args.file, "rb") as f:
            result = await client.storage.from_(args.bucket).upload(args.path, f)
    elif args.command == "public-url":
        result = client.storage.from_(args.bucket).get_public_url(args.path)
    else:
        raise ValueError(f"Unknown command {args.command}")

    _print(_dump(result))
    return 1 if result.error else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ostazy backend client")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in with email and password")
    login.add_argument("email")
    login.add_argument("password")

    sub.add_parser("logout", help="Sign out and forget the stored session")
    sub.add_parser("whoami", help="Show the current user merged with its profile")

    select = sub.add_parser("select", help="Query a table")
    select.add_argument("table")
    select.add_argument("--columns", default="*")
    select.add_argument("--eq", action="append", metavar="COLUMN=VALUE", help="Equality filter, repeatable")
    select.add_argument("--order", help="Column to order by")
    select.add_argument("--desc", action="store_true", help="Order descending")
    select.add_argument("--limit", type=int)
    select.add_argument("--single", action="store_true", help="Return one row or null")

    upload = sub.add_parser("upload", help="Upload a file to a storage bucket")
    upload.add_argument("bucket")
    upload.add_argument("path")
    upload.add_argument("file")

    public_url = sub.add_parser("public-url", help="Print the public URL of a stored object")
    public_url.add_argument("bucket")
    public_url.add_argument("path")
    return parser


async def _main(args: argparse.Namespace) -> int:
    async with create_client() as client:
        return await run(args, client)


def main(argv: Optional[Sequence[str]] = None) -> int:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except ValueError as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
