from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.orm import relationship, validates
from sayings.database import Base
from datetime import datetime


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    bio = Column(Text, nullable=True)
    avatar = Column(String, nullable=True)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    posts = relationship("Post", back_populates="user")

    @validates("username")
    def normalize_username(self, key, value):
        # Usernames are unique case-insensitively; store them lowercased
        return value.strip().lower() if value else value
