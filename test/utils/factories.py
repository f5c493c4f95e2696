"""
Factories for search test data

Rows are written to their own tables only; the database triggers keep the
full-text index in sync.
"""

from datetime import datetime

from sayings.models.post import Post, PostEmotion, PostTopic, Sentiment
from sayings.models.topic import Topic
from sayings.models.user import User


async def create_test_user(
    db_session,
    username: str,
    bio: str | None = None,
    is_anonymous: bool = False,
):
    user = User(username=username, bio=bio, is_anonymous=is_anonymous)
    db_session.add(user)
    await db_session.commit()
    return user


async def create_test_post(
    db_session,
    title: str | None = None,
    transcript: str | None = None,
    description: str | None = None,
    summary: str | None = None,
    user: User | None = None,
    topics: list[tuple[str, float]] | None = None,
    emotions: list[tuple[str, float]] | None = None,
    sentiment: Sentiment = Sentiment.NEUTRAL,
    created_at: datetime | None = None,
    timestamp: datetime | None = None,
):
    post = Post(
        title=title,
        transcript=transcript,
        description=description,
        summary=summary,
        user_id=user.id if user else None,
        general_sentiment=sentiment,
        created_at=created_at or datetime.utcnow(),
        timestamp=timestamp,
    )
    post.topics = [PostTopic(topic=name, confidence=confidence) for name, confidence in topics or []]
    post.emotions = [PostEmotion(name=name, score=score) for name, score in emotions or []]
    db_session.add(post)
    await db_session.commit()
    return post


async def create_test_topic(db_session, name: str, popularity: float = 0.0):
    topic = Topic(name=name, popularity=popularity)
    db_session.add(topic)
    await db_session.commit()
    return topic
