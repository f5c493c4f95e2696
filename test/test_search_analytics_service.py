"""
Tests for search analytics

Tests query logging, click validation in permissive and strict modes, and
the analytics summary.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select

from sayings.exceptions import SearchQueryNotFoundError, ValidationError
from sayings.models.search_click import SearchClick
from sayings.models.search_query import SearchQuery
from sayings.schemas.search import SearchClickCreate
from sayings.services.search_analytics_service import (
    RequesterContext,
    get_search_analytics,
    log_search_query,
    record_click,
    validate_click,
)


async def log(session_factory, query: str, results_count: int = 1) -> int:
    return await log_search_query(
        session_factory, query=query, sort="relevance", mode="keyword", filters={}, results_count=results_count
    )


class TestLogSearchQuery:
    async def test_returns_new_id(self, session_factory):
        query_id = await log_search_query(
            session_factory,
            query="  Jazz Night ",
            sort="recent",
            mode="semantic",
            filters={"topic": "Music"},
            results_count=4,
            requester=RequesterContext(user_id=None, ip="1.2.3.4", user_agent="ua"),
            execution_time_ms=12.3456,
        )

        async with session_factory() as session:
            record = await session.get(SearchQuery, query_id)
        assert record.normalized_query == "jazz night"
        assert record.mode == "semantic"
        assert record.execution_time_ms == pytest.approx(12.35)

    async def test_failure_is_swallowed(self):
        def broken_factory():
            raise RuntimeError("database is down")

        assert await log_search_query(broken_factory, "q", "relevance", "keyword", {}, 0) is None


class TestValidateClick:
    def test_valid_payload(self):
        payload = SearchClickCreate(query_id="12", target_type="POST", target_id=99, position=0)
        assert validate_click(payload) == (12, "post", "99", 0)

    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"target_type": "post", "target_id": "1"}, "queryId"),
            ({"query_id": "abc", "target_type": "post", "target_id": "1"}, "queryId"),
            ({"query_id": 1, "target_id": "1"}, "targetType"),
            ({"query_id": 1, "target_type": "video", "target_id": "1"}, "targetType"),
            ({"query_id": 1, "target_type": "user"}, "targetId"),
            ({"query_id": 1, "target_type": "user", "target_id": "  "}, "targetId"),
            ({"query_id": 1, "target_type": "user", "target_id": "1", "position": -1}, "position"),
        ],
    )
    def test_invalid_payloads(self, payload, field):
        with pytest.raises(ValidationError) as exc_info:
            validate_click(SearchClickCreate(**payload))
        assert exc_info.value.details["field"] == field
        assert exc_info.value.status_code == 400


class TestRecordClick:
    async def test_permissive_mode_accepts_unknown_query(self, test_db):
        click = await record_click(
            test_db,
            SearchClickCreate(query_id=424242, target_type="topic", target_id="7"),
            RequesterContext(ip="5.6.7.8"),
            require_known_query=False,
        )

        stored = (await test_db.execute(select(SearchClick))).scalar_one()
        assert stored.id == click.id
        assert stored.query_id == 424242
        assert stored.ip == "5.6.7.8"

    async def test_strict_mode_rejects_unknown_query(self, test_db):
        with pytest.raises(SearchQueryNotFoundError) as exc_info:
            await record_click(
                test_db,
                SearchClickCreate(query_id=424242, target_type="topic", target_id="7"),
                require_known_query=True,
            )
        assert exc_info.value.status_code == 404

    async def test_strict_mode_accepts_known_query(self, test_db, session_factory):
        query_id = await log(session_factory, "jazz")

        click = await record_click(
            test_db,
            SearchClickCreate(query_id=query_id, target_type="post", target_id="3", position=2),
            require_known_query=True,
        )
        assert click.position == 2


class TestSearchAnalytics:
    async def test_summary(self, test_db, session_factory):
        first = await log(session_factory, "Jazz", results_count=3)
        await log(session_factory, "jazz", results_count=1)
        await log(session_factory, "polka", results_count=0)

        await record_click(test_db, SearchClickCreate(query_id=first, target_type="post", target_id="1", position=0))
        await record_click(test_db, SearchClickCreate(query_id=first, target_type="user", target_id="2", position=1))
        await record_click(test_db, SearchClickCreate(query_id=999, target_type="post", target_id="3"))

        summary = await get_search_analytics(test_db, days=30)

        assert summary["total_searches"] == 3
        assert summary["unique_queries"] == 2
        assert summary["top_queries"][0] == {"query": "jazz", "count": 2, "avg_results": 2.0}
        assert summary["zero_result_queries"] == [{"query": "polka", "count": 1}]
        assert summary["total_clicks"] == 3
        # Only the first query was clicked through; the orphan click is not counted
        assert summary["click_through_rate"] == pytest.approx(1 / 3, abs=1e-4)
        assert summary["clicks_by_position"] == [{"position": 0, "count": 1}, {"position": 1, "count": 1}]
        assert summary["clicks_by_target_type"] == {"post": 2, "user": 1}

    async def test_window_excludes_old_searches(self, test_db):
        test_db.add(SearchQuery(query="old", normalized_query="old", created_at=datetime.utcnow() - timedelta(days=40)))
        await test_db.commit()

        summary = await get_search_analytics(test_db, days=30)
        assert summary["total_searches"] == 0
        assert summary["click_through_rate"] == 0.0
