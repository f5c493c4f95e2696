"""
Topic Search Service

Substring search over topic names ordered by popularity. Searching can
optionally reward matched topics with a small popularity increase.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sayings.config import settings
from sayings.models.topic import Topic
from sayings.utils.pagination import clamp_limit

logger = logging.getLogger(__name__)

MAX_TOPIC_RESULTS = 20


def _name_matches(needle: str):
    return func.lower(Topic.name).contains(needle, autoescape=True)


def serialize_topic(topic: Topic) -> dict:
    return {"id": topic.id, "name": topic.name, "popularity": topic.popularity}


async def bump_matching_topics(db: AsyncSession, needle: str, increment: float) -> int:
    """
    Increase popularity of every topic whose name contains ``needle``.

    Runs as a single UPDATE so concurrent searches never lose increments.
    Failures are logged and swallowed.

    Returns:
        Number of topics updated (0 on failure)
    """
    try:
        result = await db.execute(
            update(Topic)
            .where(_name_matches(needle))
            .values(popularity=Topic.popularity + increment, last_updated=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        await db.commit()
        return result.rowcount or 0
    except SQLAlchemyError as e:
        logger.warning(f"Failed to bump topic popularity for '{needle}': {e}")
        await db.rollback()
        return 0


async def search_topics(
    db: AsyncSession,
    q: str,
    limit: int | None = None,
    bump_popularity: bool = False,
) -> list[dict]:
    """
    Search topics by name.

    Args:
        db: Database session
        q: Query text, matched as a case-insensitive substring
        limit: Max topics, clamped to [1, 20]
        bump_popularity: Add ``topic_search_popularity_increment`` to every
            matched topic after reading the results

    Returns:
        Matched topics, most popular first
    """
    needle = q.strip().lower()
    if not needle:
        return []

    size = clamp_limit(limit, settings.search_topic_limit, MAX_TOPIC_RESULTS)
    result = await db.execute(
        select(Topic).where(_name_matches(needle)).order_by(Topic.popularity.desc(), Topic.id.asc()).limit(size)
    )
    topics = [serialize_topic(topic) for topic in result.scalars().all()]

    if bump_popularity and topics:
        await bump_matching_topics(db, needle, settings.topic_search_popularity_increment)

    return topics
