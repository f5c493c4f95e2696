"""
Tests for the reindex command
"""

from sqlalchemy import text
from utils.factories import create_test_post, create_test_user

from sayings.reindex import build_arg_parser, run
from sayings.services.fulltext import POST_INDEX, drop_search_indexes
from sayings.services.post_search_service import search_posts


class TestReindexCommand:
    def test_arguments(self):
        assert build_arg_parser().parse_args([]).create is False
        assert build_arg_parser().parse_args(["--create"]).create is True

    async def test_rebuilds_emptied_index(self, test_db, session_factory, test_engine):
        await create_test_user(test_db, "alice")
        await create_test_post(test_db, title="Tidal notes")
        await test_db.execute(text(f"DELETE FROM {POST_INDEX}"))
        await test_db.commit()

        counts = await run(session_factory, test_engine)

        assert counts == {"posts": 1, "users": 1}
        async with session_factory() as session:
            result = await search_posts(session, "tidal")
        assert [item["title"] for item in result.items] == ["Tidal notes"]

    async def test_create_restores_dropped_index(self, test_db, session_factory, test_engine):
        await create_test_post(test_db, title="Tidal notes")
        async with test_engine.begin() as conn:
            await drop_search_indexes(conn)

        await run(session_factory, test_engine, create=True)

        async with session_factory() as session:
            result = await search_posts(session, "tidal")
        assert result.used_fallback is False
        assert [item["title"] for item in result.items] == ["Tidal notes"]
