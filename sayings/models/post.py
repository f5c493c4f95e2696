from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sayings.database import Base
from datetime import datetime
import enum


class Sentiment(str, enum.Enum):
    POSITIVE = "POSITIVE"
    NEGATIVE = "NEGATIVE"
    NEUTRAL = "NEUTRAL"


class Post(Base):
    __tablename__ = "posts"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    audio_url = Column(String, nullable=True)
    ipfs_hash = Column(String, nullable=True)

    title = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    transcript = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)

    general_sentiment = Column(Enum(Sentiment), default=Sentiment.NEUTRAL, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    # Legacy posts carry their creation time here instead of created_at
    timestamp = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="posts", lazy="selectin")
    topics = relationship("PostTopic", back_populates="post", cascade="all, delete-orphan", lazy="selectin")
    emotions = relationship("PostEmotion", back_populates="post", cascade="all, delete-orphan", lazy="selectin")

    __table_args__ = (
        Index("ix_posts_created_at_id", "created_at", "id"),
        Index("ix_posts_timestamp", "timestamp"),
        Index("ix_posts_general_sentiment", "general_sentiment"),
    )


class PostTopic(Base):
    __tablename__ = "post_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    topic = Column(String, nullable=False, index=True)
    confidence = Column(Float, nullable=False, default=0.0)

    post = relationship("Post", back_populates="topics")


class PostEmotion(Base):
    __tablename__ = "post_emotions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    post_id = Column(Integer, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False, index=True)
    score = Column(Float, nullable=False, default=0.0)

    post = relationship("Post", back_populates="emotions")
