"""
Search Analytics Service

Persists executed search queries and result clicks, and summarizes them
for administrators.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sayings.config import settings
from sayings.exceptions import DatabaseError, SearchQueryNotFoundError, ValidationError
from sayings.models.search_click import TARGET_TYPES, SearchClick
from sayings.models.search_query import SearchQuery
from sayings.schemas.search import SearchClickCreate
from sayings.utils.metrics import record_analytics_write

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequesterContext:
    """Who issued a request, as far as the API can tell"""

    user_id: int | None = None
    ip: str | None = None
    user_agent: str | None = None


async def log_search_query(
    session_factory: async_sessionmaker,
    query: str,
    sort: str,
    mode: str,
    filters: dict | None,
    results_count: int,
    requester: RequesterContext | None = None,
    typeahead: bool = False,
    execution_time_ms: float | None = None,
) -> int | None:
    """
    Persist an executed search.

    Failures are logged and swallowed so that analytics never break a search.

    Returns:
        The new SearchQuery id, or None when the write failed
    """
    requester = requester or RequesterContext()
    try:
        async with session_factory() as db:
            record = SearchQuery(
                query=query,
                normalized_query=query.strip().lower(),
                sort=sort,
                mode=mode,
                filters=filters or {},
                results_count=results_count,
                typeahead=typeahead,
                user_id=requester.user_id,
                ip=requester.ip,
                user_agent=requester.user_agent,
                execution_time_ms=round(execution_time_ms, 2) if execution_time_ms is not None else None,
            )
            db.add(record)
            await db.commit()
            record_analytics_write("query", "success")
            return record.id
    except Exception:
        logger.warning("Failed to log search query", exc_info=True)
        record_analytics_write("query", "failure")
        return None


def _parse_query_id(value: int | str | None) -> int:
    if isinstance(value, bool) or value is None:
        raise ValidationError("queryId is required", field="queryId")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text.isdigit():
        raise ValidationError("queryId must be an integer", field="queryId")
    return int(text)


def validate_click(payload: SearchClickCreate) -> tuple[int, str, str, int | None]:
    """
    Validate a click payload.

    Returns:
        ``(query_id, target_type, target_id, position)``

    Raises:
        ValidationError: a required field is missing or malformed
    """
    query_id = _parse_query_id(payload.query_id)

    target_type = (payload.target_type or "").strip().lower()
    if not target_type:
        raise ValidationError("targetType is required", field="targetType")
    if target_type not in TARGET_TYPES:
        raise ValidationError(
            f"targetType must be one of: {', '.join(TARGET_TYPES)}",
            field="targetType",
            details={"allowed": list(TARGET_TYPES)},
        )

    target_id = "" if payload.target_id is None else str(payload.target_id).strip()
    if not target_id:
        raise ValidationError("targetId is required", field="targetId")

    position = payload.position
    if position is not None and position < 0:
        raise ValidationError("position must be zero or greater", field="position")

    return query_id, target_type, target_id, position


async def record_click(
    db: AsyncSession,
    payload: SearchClickCreate,
    requester: RequesterContext | None = None,
    require_known_query: bool | None = None,
) -> SearchClick:
    """
    Store a click on a search result.

    Args:
        db: Database session
        payload: Click body
        requester: Caller context
        require_known_query: Reject clicks whose query id was never logged.
            Defaults to ``click_require_known_query``.

    Raises:
        ValidationError: invalid payload (400)
        SearchQueryNotFoundError: unknown query id in strict mode (404)
        DatabaseError: the click could not be written (500)
    """
    query_id, target_type, target_id, position = validate_click(payload)
    requester = requester or RequesterContext()
    strict = settings.click_require_known_query if require_known_query is None else require_known_query

    if strict and await db.get(SearchQuery, query_id) is None:
        raise SearchQueryNotFoundError(query_id)

    click = SearchClick(
        query_id=query_id,
        target_type=target_type,
        target_id=target_id,
        position=position,
        user_id=requester.user_id,
        ip=requester.ip,
        user_agent=requester.user_agent,
    )
    try:
        db.add(click)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        record_analytics_write("click", "failure")
        logger.error(f"Failed to record search click for query {query_id}: {e}")
        raise DatabaseError("Failed to record click", operation="record_click") from e

    record_analytics_write("click", "success")
    return click


async def get_search_analytics(db: AsyncSession, days: int = 30) -> dict:
    """
    Summarize searches and clicks for the last ``days`` days.

    Returns:
        dict matching SearchAnalyticsResponse schema
    """
    since = datetime.utcnow() - timedelta(days=days)
    in_window = SearchQuery.created_at >= since

    total_searches = (await db.execute(select(func.count(SearchQuery.id)).where(in_window))).scalar() or 0

    unique_queries = (
        await db.execute(select(func.count(func.distinct(SearchQuery.normalized_query))).where(in_window))
    ).scalar() or 0

    avg_results_count = float(
        (await db.execute(select(func.avg(SearchQuery.results_count)).where(in_window))).scalar() or 0
    )

    avg_execution_time_ms = float(
        (await db.execute(select(func.avg(SearchQuery.execution_time_ms)).where(in_window))).scalar() or 0
    )

    # Top queries
    top_queries_result = await db.execute(
        select(
            SearchQuery.normalized_query,
            func.count(SearchQuery.id).label("count"),
            func.avg(SearchQuery.results_count).label("avg_results"),
        )
        .where(in_window)
        .group_by(SearchQuery.normalized_query)
        .order_by(func.count(SearchQuery.id).desc(), SearchQuery.normalized_query.asc())
        .limit(20)
    )
    top_queries = [
        {"query": row[0], "count": row[1], "avg_results": round(float(row[2] or 0), 1)}
        for row in top_queries_result.all()
    ]

    # Zero-result queries
    zero_result = await db.execute(
        select(SearchQuery.normalized_query, func.count(SearchQuery.id).label("count"))
        .where(in_window, SearchQuery.results_count == 0)
        .group_by(SearchQuery.normalized_query)
        .order_by(func.count(SearchQuery.id).desc(), SearchQuery.normalized_query.asc())
        .limit(10)
    )
    zero_result_queries = [{"query": row[0], "count": row[1]} for row in zero_result.all()]

    # Clicks
    clicks_in_window = SearchClick.created_at >= since
    total_clicks = (await db.execute(select(func.count(SearchClick.id)).where(clicks_in_window))).scalar() or 0

    clicked_queries = (
        await db.execute(
            select(func.count(func.distinct(SearchClick.query_id))).where(
                clicks_in_window, SearchClick.query_id.in_(select(SearchQuery.id).where(in_window))
            )
        )
    ).scalar() or 0
    click_through_rate = clicked_queries / total_searches if total_searches else 0.0

    position_result = await db.execute(
        select(SearchClick.position, func.count(SearchClick.id))
        .where(clicks_in_window, SearchClick.position.is_not(None))
        .group_by(SearchClick.position)
        .order_by(SearchClick.position.asc())
    )
    clicks_by_position = [{"position": row[0], "count": row[1]} for row in position_result.all()]

    type_result = await db.execute(
        select(SearchClick.target_type, func.count(SearchClick.id))
        .where(clicks_in_window)
        .group_by(SearchClick.target_type)
    )
    clicks_by_target_type = {row[0]: row[1] for row in type_result.all()}

    return {
        "total_searches": total_searches,
        "unique_queries": unique_queries,
        "avg_results_count": round(avg_results_count, 1),
        "avg_execution_time_ms": round(avg_execution_time_ms, 2),
        "total_clicks": total_clicks,
        "click_through_rate": round(click_through_rate, 4),
        "top_queries": top_queries,
        "zero_result_queries": zero_result_queries,
        "clicks_by_position": clicks_by_position,
        "clicks_by_target_type": clicks_by_target_type,
    }
