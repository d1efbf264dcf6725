"""
Pydantic schemas for Projects API.

Field names are camelCase on the wire (`markdownFileUrl`, `isPublished`)
and snake_case in Python.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ProjectSummary(CamelModel):
    """List view of a project."""
    id: str
    slug: str
    title: str
    description: str
    category: str
    tags: list[str] = []
    thumbnail: Optional[str] = None
    is_published: bool = False
    is_featured: bool = False
    view_count: int = 0
    created_at: Optional[datetime] = None


class ProjectResponse(ProjectSummary):
    """Full project, including markdown and image URLs."""
    markdown_file_url: str
    markdown_content: str
    image_urls: list[str] = []
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProjectUpdateBody(CamelModel):
    """JSON body for PATCH /projects/{id}. All fields optional."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list] = None
    is_published: Optional[bool] = None
    markdown_content: Optional[str] = None


class PublishBody(CamelModel):
    is_published: StrictBool


class FeatureBody(CamelModel):
    is_featured: StrictBool
