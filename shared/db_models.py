"""SQLAlchemy database models for the local post cache."""

from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from shared.models import Post


Base = declarative_base()


class PostRecord(Base):
    """Model for posts table."""
    __tablename__ = 'posts'

    id = Column(Integer, primary_key=True, autoincrement=False)
    user_id = Column(Integer, nullable=False)
    title = Column(Text, nullable=False)
    body = Column(Text, nullable=False)
    is_favorite = Column(Boolean, nullable=False, default=False, server_default='0')

    def to_post(self) -> Post:
        return Post(
            id=self.id,
            user_id=self.user_id,
            title=self.title,
            body=self.body,
            is_favorite=bool(self.is_favorite)
        )


class UserRecord(Base):
    """Model for users table."""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(255), nullable=False, unique=True)
    password = Column(String(255), nullable=False)  # Clear text


class PreferenceEntry(Base):
    """Model for preferences table (session, last sync time, theme)."""
    __tablename__ = 'preferences'

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())


# Tables dropped and recreated when the schema version changes
CACHE_TABLES = [PostRecord.__table__, UserRecord.__table__]
