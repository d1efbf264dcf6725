"""
Projects API

Public showcase endpoints and the admin CRUD API for portfolio projects.
Admin writes accept JSON or multipart form data with file parts
(`thumbnail`, `markdown`, `image_0` ... `image_N`).
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from portfolio.projects.schemas import (
    FeatureBody,
    ProjectResponse,
    ProjectSummary,
    ProjectUpdateBody,
    PublishBody,
)
from portfolio.projects.service import (
    IncomingFile,
    ProjectCreateRequest,
    ProjectService,
    ProjectUpdateRequest,
)
from portfolio.projects.store import ProjectStore
from portfolio.shared.auth import AdminIdentity, require_admin
from portfolio.shared.config import Settings, get_settings
from portfolio.shared.database import check_db_connection, get_db
from portfolio.shared.errors import InvalidRequest, InvalidTags
from portfolio.storage.blob_store import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["projects"])


def get_project_store(db: Session = Depends(get_db)) -> ProjectStore:
    return ProjectStore(db)


def get_project_service(
    store: ProjectStore = Depends(get_project_store),
    blobs: BlobStore = Depends(get_blob_store),
    settings: Settings = Depends(get_settings),
) -> ProjectService:
    return ProjectService(store, blobs, bucket=settings.storage_bucket)


# ──────────────────────────────────────────────────────────────────────────────
# Request parsing
# ──────────────────────────────────────────────────────────────────────────────

async def _read_file(value) -> Optional[IncomingFile]:
    # Browsers send an empty part when no file was picked
    if not isinstance(value, UploadFile) or not value.filename:
        return None
    content = await value.read()
    if not content:
        return None
    return IncomingFile(filename=value.filename, content=content, content_type=value.content_type)


async def _read_image_files(form) -> list[IncomingFile]:
    images = []
    for key, value in form.multi_items():
        if key.startswith("image_"):
            image = await _read_file(value)
            if image:
                images.append(image)
    return images


def _parse_tags(raw: Optional[str]) -> Optional[list]:
    if raw is None:
        return None
    try:
        tags = json.loads(raw or "[]")
    except json.JSONDecodeError as e:
        raise InvalidTags("Invalid tags format") from e
    return tags


def _form_text(form, key: str) -> Optional[str]:
    value = form.get(key)
    return value if isinstance(value, str) else None


def _is_multipart(request: Request) -> bool:
    return "multipart/form-data" in request.headers.get("content-type", "")


async def parse_create_request(request: Request) -> ProjectCreateRequest:
    if not _is_multipart(request):
        raise InvalidRequest("Expected multipart form data")
    form = await request.form()

    markdown_file = await _read_file(form.get("markdown"))
    if markdown_file is None:
        raise InvalidRequest("Markdown file is required")

    return ProjectCreateRequest(
        title=_form_text(form, "title") or "",
        description=_form_text(form, "description") or "",
        category=_form_text(form, "category") or "",
        tags=_parse_tags(_form_text(form, "tags")) or [],
        markdown_file=markdown_file,
        thumbnail_file=await _read_file(form.get("thumbnail")),
        image_files=await _read_image_files(form),
    )


async def parse_update_request(request: Request) -> ProjectUpdateRequest:
    if _is_multipart(request):
        form = await request.form()
        is_published = _form_text(form, "isPublished")
        return ProjectUpdateRequest(
            title=_form_text(form, "title"),
            description=_form_text(form, "description"),
            category=_form_text(form, "category"),
            tags=_parse_tags(_form_text(form, "tags")),
            is_published=None if is_published is None else is_published == "true",
            markdown_content=_form_text(form, "markdownContent"),
            thumbnail_file=await _read_file(form.get("thumbnail")),
            markdown_file=await _read_file(form.get("markdown")),
            image_files=await _read_image_files(form),
        )

    try:
        body = ProjectUpdateBody.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise InvalidRequest("Invalid request body") from e
    return ProjectUpdateRequest(**body.model_dump(exclude_unset=True))


# ──────────────────────────────────────────────────────────────────────────────
# Public endpoints (no auth required)
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/health")
def health():
    """Health check endpoint."""
    db_connected = check_db_connection()
    return {
        "status": "ok" if db_connected else "degraded",
        "service": "projects",
        "database": "connected" if db_connected else "disconnected",
    }


@router.get("", response_model=list[ProjectSummary])
def list_published_projects(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    store: ProjectStore = Depends(get_project_store),
):
    """List published projects, newest first. Optional category/tag filters."""
    return store.list_published(category=category, tag=tag)


@router.get("/featured", response_model=list[ProjectSummary])
def list_featured_projects(store: ProjectStore = Depends(get_project_store)):
    """List published, featured projects (for homepage display)."""
    return store.list_featured()


# ──────────────────────────────────────────────────────────────────────────────
# Admin endpoints
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/admin/all", response_model=list[ProjectSummary])
def list_all_projects(
    admin: AdminIdentity = Depends(require_admin),
    store: ProjectStore = Depends(get_project_store),
):
    """List all projects including unpublished (admin only)."""
    return store.list_all()


@router.get("/admin/{project_id}", response_model=ProjectResponse)
def get_project_admin(
    project_id: str,
    admin: AdminIdentity = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Get any project by id (admin only, includes unpublished)."""
    return service.get(project_id)


@router.post("", response_model=ProjectResponse, status_code=201)
def create_project(
    admin: AdminIdentity = Depends(require_admin),
    payload: ProjectCreateRequest = Depends(parse_create_request),
    service: ProjectService = Depends(get_project_service),
):
    """Create a new project. Always created as a draft."""
    return service.create(payload)


@router.patch("/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    admin: AdminIdentity = Depends(require_admin),
    payload: ProjectUpdateRequest = Depends(parse_update_request),
    service: ProjectService = Depends(get_project_service),
):
    """
    Update a project. Changing the title changes the slug; if no files are
    uploaded in the same request the existing files move to the new folder.
    """
    return service.update(project_id, payload)


@router.patch("/{project_id}/publish", response_model=ProjectResponse)
def publish_project(
    project_id: str,
    body: PublishBody,
    admin: AdminIdentity = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Publish or unpublish a project."""
    return service.set_published(project_id, body.is_published)


@router.patch("/{project_id}/feature", response_model=ProjectResponse)
def feature_project(
    project_id: str,
    body: FeatureBody,
    admin: AdminIdentity = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Feature or unfeature a project on the homepage."""
    return service.set_featured(project_id, body.is_featured)


@router.delete("/{project_id}", status_code=204)
def delete_project(
    project_id: str,
    admin: AdminIdentity = Depends(require_admin),
    service: ProjectService = Depends(get_project_service),
):
    """Delete a project record. Stored files are not removed."""
    service.delete(project_id)
    return Response(status_code=204)


# Registered last so it does not shadow /featured, /health and /admin/*
@router.get("/{slug}", response_model=ProjectResponse)
def get_project(slug: str, service: ProjectService = Depends(get_project_service)):
    """Get a single published project by slug and count the view."""
    return service.record_view(slug)
