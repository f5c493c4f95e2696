"""
Search Routes

API endpoints for unified search, trending topics and search analytics.
"""

import logging
import secrets
from datetime import date, datetime, time, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sayings.config import settings
from sayings.database import get_db, get_session_factory
from sayings.exceptions import AuthorizationError
from sayings.middleware.logging import get_client_ip
from sayings.schemas.search import (
    SearchAnalyticsResponse,
    SearchClickCreate,
    SearchClickResponse,
    SearchFilters,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchSort,
    TrendingTopicsResponse,
)
from sayings.services.search_analytics_service import RequesterContext, get_search_analytics, record_click
from sayings.services.search_service import SearchService
from sayings.services.trending_service import TrendingTopicsCache, get_trending_cache

logger = logging.getLogger(__name__)

router = APIRouter()

FILTER_KEYS = ("topic", "emotion", "creator", "from", "to")


def parse_filter_string(raw: str | None) -> dict[str, str]:
    """
    Parse ``key:value,key:value`` filter syntax.

    Keys are case-insensitive; unknown keys and empty values are ignored.
    Values may themselves contain ``:`` (e.g. ISO timestamps).
    """
    parsed: dict[str, str] = {}
    if not raw:
        return parsed
    for part in raw.split(","):
        key, sep, value = part.partition(":")
        key, value = key.strip().lower(), value.strip()
        if sep and key in FILTER_KEYS and value:
            parsed[key] = value
    return parsed


def parse_date_param(value: str | None, name: str, end_of_day: bool = False) -> datetime | None:
    """
    Parse an ISO date or datetime query value into naive UTC.

    A bare date used as an upper bound covers that whole day.

    Raises:
        HTTPException: 400 when the value is not a valid date
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        if len(text) == 10:
            day = date.fromisoformat(text)
            return datetime.combine(day, time.max if end_of_day else time.min)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as err:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid '{name}' date. Use ISO 8601, e.g. 2024-01-31",
        ) from err
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def build_filters(
    filter_string: str | None,
    topic: str | None,
    emotion: str | None,
    creator: str | None,
    date_from: str | None,
    date_to: str | None,
) -> SearchFilters:
    """Merge the ``filter`` string with discrete params; discrete params win."""
    merged = parse_filter_string(filter_string)
    discrete = {"topic": topic, "emotion": emotion, "creator": creator, "from": date_from, "to": date_to}
    for key, value in discrete.items():
        if value is not None and value.strip():
            merged[key] = value.strip()

    return SearchFilters(
        topic=merged.get("topic"),
        emotion=merged.get("emotion"),
        creator=merged.get("creator"),
        date_from=parse_date_param(merged.get("from"), "from"),
        date_to=parse_date_param(merged.get("to"), "to", end_of_day=True),
    )


def get_requester(request: Request) -> RequesterContext:
    """Caller context; ``request.state.user_id`` is set by upstream authentication."""
    return RequesterContext(
        user_id=getattr(request.state, "user_id", None),
        ip=get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


def get_search_service(session_factory: async_sessionmaker = Depends(get_session_factory)) -> SearchService:
    return SearchService(session_factory)


def require_admin_key(x_admin_key: str | None = Header(None)) -> None:
    if not settings.admin_api_key or not x_admin_key:
        raise AuthorizationError()
    if not secrets.compare_digest(x_admin_key, settings.admin_api_key):
        raise AuthorizationError()


@router.get("", response_model=SearchResponse)
async def unified_search(
    q: str | None = Query(None, max_length=200, description="Search text"),
    sort: str | None = Query(None, description="relevance (default) or recent"),
    mode: str | None = Query(None, description="keyword (default) or semantic"),
    filter_string: str | None = Query(None, alias="filter", description="key:value pairs, comma-separated"),
    topic: str | None = None,
    emotion: str | None = None,
    creator: str | None = Query(None, description="Username or user id"),
    date_from: str | None = Query(None, alias="from", description="ISO date or datetime (inclusive)"),
    date_to: str | None = Query(None, alias="to", description="ISO date or datetime (inclusive)"),
    limit: int | None = Query(None, description="Post page size, clamped to 1..50"),
    cursor: str | None = Query(None, description="nextCursor from the previous page"),
    typeahead: bool = Query(False, description="Small, untracked result sets for autocomplete"),
    track: bool = Query(True, description="Log this search for analytics"),
    requester: RequesterContext = Depends(get_requester),
    service: SearchService = Depends(get_search_service),
):
    """
    Search posts, users and topics at once.

    Posts are ranked by weighted full-text relevance (or recency) and
    paginated with ``cursor``; users and topics return a single page.
    """
    if q is None or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'q' is required",
        )

    search_request = SearchRequest(
        q=q.strip(),
        filters=build_filters(filter_string, topic, emotion, creator, date_from, date_to),
        sort=SearchSort.normalize(sort),
        mode=SearchMode.normalize(mode),
        cursor=cursor,
        limit=limit,
        typeahead=typeahead,
        track=track,
    )
    return await service.search(search_request, requester)


@router.get("/trending", response_model=TrendingTopicsResponse)
async def trending_topics(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    cache: TrendingTopicsCache = Depends(get_trending_cache),
):
    """Most popular topics, cached for up to an hour."""
    return {"topics": await cache.get(db, limit=limit)}


@router.post("/analytics/click", response_model=SearchClickResponse, status_code=status.HTTP_201_CREATED)
async def log_search_click(
    payload: SearchClickCreate,
    requester: RequesterContext = Depends(get_requester),
    db: AsyncSession = Depends(get_db),
):
    """Record a click on a search result."""
    click = await record_click(db, payload, requester)
    return {"ok": True, "id": click.id}


@router.get("/analytics", response_model=SearchAnalyticsResponse, dependencies=[Depends(require_admin_key)])
async def search_analytics(
    days: int = Query(30, ge=1, le=365, description="Number of days to analyze"),
    db: AsyncSession = Depends(get_db),
):
    """
    Search volume, top and zero-result queries, and click-through data.
    Requires the ``X-Admin-Key`` header.
    """
    return await get_search_analytics(db, days=days)
