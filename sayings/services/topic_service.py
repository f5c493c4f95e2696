"""
Topic Service

Maintains topic popularity as posts are ingested and lists the most
popular topics.

:func:`record_post_topics` is the hook the ingestion worker calls once a
post has been transcribed and categorized, inside the same transaction that
writes the post's ``post_topics`` rows.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sayings.config import settings
from sayings.models.topic import Topic

logger = logging.getLogger(__name__)

CATEGORY_SEPARATOR = ">"


def extract_topic_name(category: str | None) -> str:
    """
    Return the most specific segment of a hierarchical category.

    Examples:
        "Entertainment > Music" -> "Music"
        "Science" -> "Science"
    """
    if not category:
        return ""
    return category.split(CATEGORY_SEPARATOR)[-1].strip()


async def record_post_topics(
    db: AsyncSession,
    extracted: list[tuple[str, float]],
    min_confidence: float | None = None,
) -> list[tuple[str, float]]:
    """
    Update topic popularity for the categories extracted from a new post.

    Every category counts toward popularity: a new topic starts at its
    confidence, an existing one gains it. Only categories at or above
    ``min_confidence`` are returned for attachment to the post. The caller
    commits.

    Args:
        db: Database session
        extracted: ``(category, confidence)`` pairs from topic extraction
        min_confidence: Attachment threshold, defaults to
            ``topic_min_confidence``

    Returns:
        ``(topic_name, confidence)`` pairs to attach to the post
    """
    threshold = settings.topic_min_confidence if min_confidence is None else min_confidence
    attached: list[tuple[str, float]] = []
    seen: dict[str, Topic] = {}

    for category, confidence in extracted:
        name = extract_topic_name(category)
        if not name:
            continue

        topic = seen.get(name)
        if topic is None:
            result = await db.execute(select(Topic).where(Topic.name == name))
            topic = result.scalar_one_or_none()

        if topic is None:
            topic = Topic(name=name, popularity=confidence)
            db.add(topic)
        else:
            topic.popularity = (topic.popularity or 0.0) + confidence
            topic.last_updated = datetime.utcnow()
        seen[name] = topic

        if confidence >= threshold:
            attached.append((name, confidence))

    await db.flush()
    logger.debug(f"Recorded {len(seen)} topics, attaching {len(attached)}")
    return attached


async def get_top_topics(db: AsyncSession, limit: int = 10) -> list[Topic]:
    """Most popular topics first; ties keep creation order."""
    result = await db.execute(select(Topic).order_by(Topic.popularity.desc(), Topic.id.asc()).limit(limit))
    return list(result.scalars().all())
