"""
Rebuild the full-text search indexes.

    python -m sayings.reindex [--create]

Database triggers keep the indexes current for normal writes. Run this after
restoring a dump or bulk loading posts and users with triggers disabled.
"""

import argparse
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from sayings.config import settings
from sayings.database import AsyncSessionLocal, engine
from sayings.middleware.logging import setup_structured_logging
from sayings.services.fulltext import create_search_indexes, reindex_all

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Rebuild the post and user full-text search indexes.")
    parser.add_argument(
        "--create",
        action="store_true",
        help="Create missing index tables and sync triggers before rebuilding",
    )
    return parser


async def run(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    bind: AsyncEngine = engine,
    create: bool = False,
) -> dict[str, int]:
    if create:
        async with bind.begin() as conn:
            if not await create_search_indexes(conn):
                raise RuntimeError("Full-text indexes are not supported by this database")

    async with session_factory() as db:
        return await reindex_all(db)


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    async def _run() -> dict[str, int]:
        try:
            return await run(create=args.create)
        finally:
            await engine.dispose()

    counts = asyncio.run(_run())
    logger.info(f"Search indexes rebuilt: {counts['posts']} posts, {counts['users']} users")


if __name__ == "__main__":
    main()
