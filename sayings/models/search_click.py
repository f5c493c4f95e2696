"""
SearchClick Model

Records a click on a search result, linked back to the query that produced it.
"""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from sayings.database import Base

TARGET_TYPES = ("post", "user", "topic")


class SearchClick(Base):
    __tablename__ = "search_clicks"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # Not a database foreign key: permissive mode accepts clicks whose query
    # row has not been committed (or was never stored)
    query_id = Column(Integer, nullable=False, index=True)
    target_type = Column(String(10), nullable=False)
    target_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    ip = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_search_clicks_created_at", "created_at"),)
