"""
Tests for user search
"""

from sayings.services.fulltext import drop_search_indexes
from sayings.services.user_search_service import search_users
from utils.factories import create_test_user


class TestUserSearch:
    async def test_username_match_outranks_bio_match(self, test_db, session_factory):
        bio_match = await create_test_user(test_db, "storyteller", bio="I record piano covers")
        name_match = await create_test_user(test_db, "piano_man", bio="Hello there")

        async with session_factory() as session:
            results = await search_users(session, "piano")

        assert [user["id"] for user in results] == [name_match.id, bio_match.id]
        assert all(user["score"] > 0 for user in results)

    async def test_anonymous_users_are_excluded(self, test_db, session_factory):
        visible = await create_test_user(test_db, "cellist", bio="cello every day")
        await create_test_user(test_db, "hidden_cellist", bio="cello at night", is_anonymous=True)

        async with session_factory() as session:
            results = await search_users(session, "cello cellist")

        assert [user["id"] for user in results] == [visible.id]

    async def test_limit_is_clamped_to_twenty(self, test_db, session_factory):
        for i in range(25):
            await create_test_user(test_db, f"drummer{i}", bio="drums")

        async with session_factory() as session:
            assert len(await search_users(session, "drums", limit=100)) == 20
        async with session_factory() as session:
            assert len(await search_users(session, "drums", limit=3)) == 3

    async def test_fallback_when_index_missing(self, test_db, session_factory, test_engine):
        await create_test_user(test_db, "violinist", bio="Strings")
        await create_test_user(test_db, "secret_violinist", is_anonymous=True)

        async with test_engine.begin() as conn:
            await drop_search_indexes(conn)

        async with session_factory() as session:
            results = await search_users(session, "VIOLIN")

        assert [user["username"] for user in results] == ["violinist"]
        assert results[0]["score"] is None

    async def test_serialized_fields(self, test_db, session_factory):
        user = await create_test_user(test_db, "Banjo_Kid", bio="banjo")

        async with session_factory() as session:
            results = await search_users(session, "banjo")

        assert results == [{"id": user.id, "username": "banjo_kid", "avatar": None, "bio": "banjo", "score": results[0]["score"]}]

    async def test_anonymous_ghost_never_returned(self, test_db, session_factory, test_engine):
        await create_test_user(test_db, "ghost", bio="ghost stories", is_anonymous=True)

        async with session_factory() as session:
            assert await search_users(session, "ghost") == []

        async with test_engine.begin() as conn:
            await drop_search_indexes(conn)

        async with session_factory() as session:
            assert await search_users(session, "ghost") == []
