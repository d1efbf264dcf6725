"""
Project service

Creates and edits projects while keeping three things consistent:
- the database row
- the files in blob storage (always under projects/{slug}/)
- the markdown text cached in the row and the content.md it came from

Storage is written first and the database last. There is no transaction
spanning both: if the final database write fails, storage is left ahead
of the row. Old blobs may be orphaned, but a row never points at a blob
that was not written.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from portfolio.projects import paths
from portfolio.projects.markdown import extract_image_references, rewrite_paths
from portfolio.projects.models import Project, utcnow
from portfolio.projects.slugs import is_valid_slug, slugify
from portfolio.projects.store import ProjectStore
from portfolio.projects.validation import (
    normalize_tags,
    validate_category,
    validate_image_upload,
)
from portfolio.shared.errors import (
    InvalidRequest,
    InvalidUpload,
    MigrationFailed,
    PortfolioError,
    ProjectNotFound,
    SlugConflict,
)
from portfolio.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "projects"


@dataclass
class IncomingFile:
    """A file received in a multipart request."""
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    def text(self) -> str:
        try:
            return self.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidUpload(f"{self.filename} is not valid UTF-8 text") from e


@dataclass
class ProjectCreateRequest:
    title: str
    description: str
    category: str
    markdown_file: IncomingFile
    tags: list = field(default_factory=list)
    thumbnail_file: Optional[IncomingFile] = None
    image_files: list[IncomingFile] = field(default_factory=list)


@dataclass
class ProjectUpdateRequest:
    """Partial update. None means "leave unchanged"."""
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[list] = None
    is_published: Optional[bool] = None
    markdown_content: Optional[str] = None
    thumbnail_file: Optional[IncomingFile] = None
    markdown_file: Optional[IncomingFile] = None
    image_files: list[IncomingFile] = field(default_factory=list)

    @property
    def has_files(self) -> bool:
        return bool(self.thumbnail_file or self.markdown_file or self.image_files)


def publication_changes(project: Project, is_published: bool, now: datetime) -> dict:
    """
    Publish date is set once, on the first publish, and cleared on unpublish.
    Re-publishing an already published project keeps the original date.
    """
    changes = {"is_published": is_published}
    if not is_published:
        changes["published_at"] = None
    elif project.published_at is None:
        changes["published_at"] = now
    return changes


class ProjectService:
    def __init__(
        self,
        store: ProjectStore,
        blobs: BlobStore,
        bucket: str = DEFAULT_BUCKET,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.blobs = blobs
        self.bucket = bucket
        self.clock = clock

    # ──────────────────────────────────────────────────────────────────────
    # Reads
    # ──────────────────────────────────────────────────────────────────────

    def get(self, project_id: str) -> Project:
        project = self.store.get(project_id)
        if project is None:
            raise ProjectNotFound()
        return project

    def record_view(self, slug: str) -> Project:
        """Public page view: published projects only, counts once per call."""
        if not is_valid_slug(slug):
            raise ProjectNotFound()
        project = self.store.get_by_slug(slug, published_only=True)
        if project is None:
            raise ProjectNotFound()
        return self.store.increment_views(project)

    # ──────────────────────────────────────────────────────────────────────
    # Create
    # ──────────────────────────────────────────────────────────────────────

    def create(self, request: ProjectCreateRequest) -> Project:
        title = (request.title or "").strip()
        if not title:
            raise InvalidRequest("Title is required")
        if not (request.description or "").strip():
            raise InvalidRequest("Description is required")
        if not request.category:
            raise InvalidRequest("Category is required")
        category = validate_category(request.category)
        tags = normalize_tags(request.tags)
        markdown = request.markdown_file.text()
        self._validate_images(request.thumbnail_file, request.image_files)

        slug = slugify(title)
        if not slug:
            raise InvalidRequest("Title must contain at least one letter or digit")
        if self.store.slug_taken(slug):
            raise SlugConflict()

        image_urls = self._upload_images(slug, request.image_files)
        markdown = self._link_uploaded_images(markdown, request.image_files, image_urls)
        markdown_file_url = self._write_markdown(slug, markdown)

        thumbnail_url = None
        if request.thumbnail_file:
            thumbnail_url = self._upload_thumbnail(slug, request.thumbnail_file)

        now = self.clock()
        project = self.store.insert({
            "title": title,
            "slug": slug,
            "description": request.description,
            "category": category,
            "tags": tags,
            "thumbnail": thumbnail_url,
            "markdown_file_url": markdown_file_url,
            "markdown_content": markdown,
            "image_urls": image_urls,
            "is_published": False,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Created project {project.id} ({slug}) with {len(image_urls)} images")
        return project

    # ──────────────────────────────────────────────────────────────────────
    # Update
    # ──────────────────────────────────────────────────────────────────────

    def update(self, project_id: str, request: ProjectUpdateRequest) -> Project:
        project = self.get(project_id)

        # Everything that can be rejected is rejected before storage is touched
        changes = {}
        if request.description is not None:
            changes["description"] = request.description
        if request.category is not None:
            changes["category"] = validate_category(request.category)
        if request.tags is not None:
            changes["tags"] = normalize_tags(request.tags)
        uploaded_markdown = request.markdown_file.text() if request.markdown_file else None
        self._validate_images(request.thumbnail_file, request.image_files)

        title_changed = request.title is not None and request.title != project.title
        target_slug = project.slug
        if title_changed:
            new_slug = slugify(request.title)
            if not new_slug:
                raise InvalidRequest("Title must contain at least one letter or digit")
            if new_slug != project.slug and self.store.slug_taken(new_slug, exclude_id=project.id):
                raise SlugConflict()
            target_slug = new_slug
            changes["title"] = request.title
            changes["slug"] = new_slug

        # New uploads always land in the target slug's folder
        if request.thumbnail_file:
            changes["thumbnail"] = self._upload_thumbnail(target_slug, request.thumbnail_file)

        new_image_urls = self._upload_images(target_slug, request.image_files)
        if new_image_urls:
            changes["image_urls"] = list(project.image_urls or []) + new_image_urls

        if uploaded_markdown is not None:
            markdown = self._link_uploaded_images(
                uploaded_markdown,
                request.image_files,
                new_image_urls,
                existing_urls=project.image_urls or [],
            )
            changes["markdown_file_url"] = self._write_markdown(target_slug, markdown)
            changes["markdown_content"] = markdown

        url_map = {}
        if title_changed and target_slug != project.slug and not request.has_files:
            migrated, url_map = self._migrate_assets(project, target_slug)
            changes.update(migrated)

        if uploaded_markdown is None:
            self._sync_edited_markdown(project, request.markdown_content, target_slug, url_map, changes)

        now = self.clock()
        if request.is_published is not None:
            changes.update(publication_changes(project, request.is_published, now))
        changes["updated_at"] = now

        if title_changed:
            logger.info(f"Project {project.id} renamed: {project.slug} -> {target_slug}")
        return self.store.update(project, changes)

    def _sync_edited_markdown(self, project, edited, target_slug, url_map, changes) -> None:
        """
        Keep content.md equal to the cached markdown after a text edit or a
        migration that moved images the markdown points at.
        """
        current = project.markdown_content or ""
        markdown = edited if edited is not None else current
        if url_map:
            markdown = rewrite_paths(markdown, url_map)
        if markdown == current:
            return

        changes["markdown_file_url"] = self._write_markdown(target_slug, markdown)
        changes["markdown_content"] = markdown

    # ──────────────────────────────────────────────────────────────────────
    # Migration
    # ──────────────────────────────────────────────────────────────────────

    def _migrate_assets(self, project: Project, new_slug: str) -> tuple[dict, dict]:
        """
        Copy the markdown file, thumbnail and every image into the new slug's
        folder, then remove what was left behind.

        Files are moved from whichever slug folder they sit in, which is not
        always the current one: a rename that came with an upload leaves the
        unreplaced files in the folder before it.

        Returns (field changes, old URL -> new URL for moved images). Any
        copy failure aborts before anything is deleted.
        """
        old_slug = project.slug
        changes = {}
        image_map = {}
        moved = []

        try:
            if project.markdown_file_url:
                changes["markdown_file_url"] = self._relocate(project.markdown_file_url, new_slug, moved)
            if project.thumbnail:
                changes["thumbnail"] = self._relocate(project.thumbnail, new_slug, moved)
            if project.image_urls:
                new_urls = []
                for url in project.image_urls:
                    new_url = self._relocate(url, new_slug, moved)
                    if new_url != url:
                        image_map[url] = new_url
                    new_urls.append(new_url)
                changes["image_urls"] = new_urls
        except PortfolioError as e:
            logger.error(f"Migration {old_slug} -> {new_slug} aborted: {e.message}")
            raise MigrationFailed() from e

        self._remove_old_files(project, new_slug, moved)
        logger.info(f"Migrated project files: {paths.project_folder(old_slug)} -> {paths.project_folder(new_slug)}")
        return changes, image_map

    def _relocate(self, url: str, new_slug: str, moved: list) -> str:
        """Copy the blob behind url into the new slug folder and return its new URL."""
        old_path = self.blobs.storage_path(self.bucket, url)
        new_path = paths.relocate(old_path, new_slug) if old_path else None
        if new_path is None:
            # External URL, or already in the new folder: nothing to move
            return url
        self.blobs.copy(self.bucket, old_path, new_path)
        moved.append(old_path)
        return self.blobs.get_public_url(self.bucket, new_path)

    def _remove_old_files(self, project: Project, new_slug: str, moved: list) -> None:
        """
        Best effort. The current slug's folder is emptied. Older folders only
        lose the files that were copied out of them, and are left alone if
        another project has since taken that slug.
        """
        old_slug = project.slug
        for folder in (paths.images_folder(old_slug), paths.project_folder(old_slug)):
            try:
                self.blobs.delete_folder(self.bucket, folder)
            except PortfolioError as e:
                # Copies exist under the new slug; leftovers here are only orphans
                logger.warning(f"Could not delete old folder {folder}: {e.message}")

        for path in moved:
            slug = paths.slug_of(path)
            if slug in (old_slug, new_slug) or self.store.slug_taken(slug, exclude_id=project.id):
                continue
            try:
                self.blobs.delete(self.bucket, path)
            except PortfolioError as e:
                logger.warning(f"Could not delete old file {path}: {e.message}")

    # ──────────────────────────────────────────────────────────────────────
    # Publish / feature / delete
    # ──────────────────────────────────────────────────────────────────────

    def set_published(self, project_id: str, is_published: bool) -> Project:
        project = self.get(project_id)
        changes = publication_changes(project, is_published, self.clock())
        return self.store.update(project, changes)

    def set_featured(self, project_id: str, is_featured: bool) -> Project:
        project = self.get(project_id)
        return self.store.update(project, {"is_featured": is_featured})

    def delete(self, project_id: str) -> None:
        # Storage is left as is; blobs under projects/{slug}/ become orphans
        project = self.get(project_id)
        self.store.delete(project)
        logger.info(f"Deleted project {project_id} ({project.slug})")

    # ──────────────────────────────────────────────────────────────────────
    # Storage helpers
    # ──────────────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_images(thumbnail: Optional[IncomingFile], images: list[IncomingFile]) -> None:
        for upload in ([thumbnail] if thumbnail else []) + list(images):
            validate_image_upload(upload.filename, upload.content_type, upload.size)

    def _write_markdown(self, slug: str, markdown: str) -> str:
        path = paths.markdown_path(slug)
        self.blobs.upload(
            self.bucket, path, markdown.encode("utf-8"),
            content_type="text/markdown; charset=utf-8", upsert=True,
        )
        return self.blobs.get_public_url(self.bucket, path)

    def _upload_thumbnail(self, slug: str, upload: IncomingFile) -> str:
        path = paths.thumbnail_path(slug, upload.filename)
        self.blobs.upload(self.bucket, path, upload.content, content_type=upload.content_type, upsert=True)
        return self.blobs.get_public_url(self.bucket, path)

    def _upload_images(self, slug: str, images: list[IncomingFile]) -> list[str]:
        timestamp_ms = int(time.time() * 1000)
        urls = []
        for index, image in enumerate(images):
            path = paths.image_path(slug, image.filename, index, timestamp_ms)
            self.blobs.upload(self.bucket, path, image.content, content_type=image.content_type)
            urls.append(self.blobs.get_public_url(self.bucket, path))
        return urls

    @staticmethod
    def _link_uploaded_images(markdown, images, image_urls, existing_urls=()) -> str:
        """
        Point `![alt](chart.png)` style references at stored images, matching
        on file name. Images uploaded in this request win over older ones.
        """
        by_name = {paths.original_filename(url): url for url in existing_urls}
        for image, url in zip(images, image_urls):
            by_name[paths.safe_filename(image.filename)] = url

        mapping = {}
        for reference in extract_image_references(markdown):
            if reference in mapping or reference.startswith(("http://", "https://")):
                continue
            name = paths.safe_filename(reference)
            if name in by_name:
                mapping[reference] = by_name[name]
        return rewrite_paths(markdown, mapping) if mapping else markdown
