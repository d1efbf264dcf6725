"""
Projects database models.

One row per portfolio project. The markdown text is cached in the row so
public pages and the chat endpoint never have to fetch it from storage.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB

from portfolio.projects.validation import DEFAULT_CATEGORY
from portfolio.shared.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONList = JSON().with_variant(JSONB(), "postgresql")


def generate_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(Base):
    """
    Project model for portfolio projects.

    Stores:
    - Identity (opaque id, unique slug derived from the title)
    - Content (description, category, tags, markdown file + cached text)
    - Media (thumbnail and image URLs, all under projects/{slug}/ in storage)
    - Display state (published, featured, view count)
    """
    __tablename__ = "projects"

    id = Column(String(32), primary_key=True, default=generate_id)
    slug = Column(String(200), unique=True, index=True, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(50), nullable=False, default=DEFAULT_CATEGORY, index=True)
    tags = Column(JSONList, nullable=False, default=list)
    thumbnail = Column(String(1000))
    markdown_file_url = Column(String(1000), nullable=False)
    markdown_content = Column(Text, nullable=False)
    image_urls = Column(JSONList, nullable=False, default=list)
    is_published = Column(Boolean, nullable=False, default=False, index=True)
    published_at = Column(DateTime(timezone=True))
    is_featured = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<Project {self.slug}>"
