"""
Topic Routes

Topic listing and topic name search.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sayings.database import get_db
from sayings.schemas.search import TrendingTopicsResponse
from sayings.services.topic_search_service import search_topics, serialize_topic
from sayings.services.topic_service import get_top_topics

router = APIRouter()


@router.get("/top", response_model=TrendingTopicsResponse)
async def top_topics(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
):
    """Most popular topics, read directly from the database."""
    topics = await get_top_topics(db, limit=limit)
    return {"topics": [serialize_topic(topic) for topic in topics]}


@router.get("/search", response_model=TrendingTopicsResponse)
async def topic_search(
    q: str | None = Query(None, max_length=100),
    limit: int | None = Query(None, description="Clamped to 1..20"),
    db: AsyncSession = Depends(get_db),
):
    """
    Search topics by name. Every matched topic gains a little popularity.
    """
    if q is None or not q.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Query parameter 'q' is required",
        )
    return {"topics": await search_topics(db, q, limit=limit, bump_popularity=True)}
