"""
Project record store

CRUD over the `projects` table. Database driver errors stay inside this
module: a unique-constraint violation comes out as SlugConflict and any
other SQLAlchemy failure as DatabaseError, after rolling the session back.
"""
import logging
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portfolio.projects.models import Project
from portfolio.shared.errors import DatabaseError, SlugConflict

logger = logging.getLogger(__name__)


class ProjectStore:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Project {action} violated a unique constraint: {e.orig}")
            raise SlugConflict("Project with this slug already exists", status_code=409) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Project {action} failed: {e}")
            raise DatabaseError() from e

    def _query(self, action: str, build):
        try:
            return build()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Project {action} failed: {e}")
            raise DatabaseError() from e

    def get(self, project_id: str) -> Optional[Project]:
        return self._query("lookup", lambda: self.db.get(Project, project_id))

    def get_by_slug(self, slug: str, published_only: bool = False) -> Optional[Project]:
        def build():
            query = self.db.query(Project).filter(Project.slug == slug)
            if published_only:
                query = query.filter(Project.is_published == True)  # noqa: E712
            return query.first()
        return self._query("lookup", build)

    def slug_taken(self, slug: str, exclude_id: Optional[str] = None) -> bool:
        def build():
            query = self.db.query(Project.id).filter(Project.slug == slug)
            if exclude_id is not None:
                query = query.filter(Project.id != exclude_id)
            return query.first() is not None
        return self._query("slug check", build)

    def list_all(self) -> list[Project]:
        return self._query(
            "listing",
            lambda: self.db.query(Project).order_by(Project.created_at.desc()).all(),
        )

    def list_published(self, category: Optional[str] = None, tag: Optional[str] = None) -> list[Project]:
        def build():
            query = self.db.query(Project).filter(Project.is_published == True)  # noqa: E712
            if category:
                query = query.filter(Project.category == category)
            return query.order_by(Project.created_at.desc()).all()

        projects = self._query("listing", build)
        if tag:
            # Tags are a JSON array; filter here so it works on every backend
            wanted = tag.strip().lower()
            projects = [p for p in projects if wanted in (p.tags or [])]
        return projects

    def list_featured(self) -> list[Project]:
        return self._query(
            "listing",
            lambda: (
                self.db.query(Project)
                .filter(Project.is_published == True, Project.is_featured == True)  # noqa: E712
                .order_by(Project.created_at.desc())
                .all()
            ),
        )

    def insert(self, values: dict[str, Any]) -> Project:
        project = Project(**values)
        self.db.add(project)
        self._commit("insert")
        self.db.refresh(project)
        return project

    def update(self, project: Project, changes: dict[str, Any]) -> Project:
        """Apply all changes in one commit."""
        for key, value in changes.items():
            setattr(project, key, value)
        self._commit("update")
        self.db.refresh(project)
        return project

    def delete(self, project: Project) -> None:
        self.db.delete(project)
        self._commit("delete")

    def increment_views(self, project: Project) -> Project:
        # Single UPDATE so concurrent page views are not lost
        self._query(
            "view count",
            lambda: self.db.execute(
                update(Project)
                .where(Project.id == project.id)
                .values(view_count=Project.view_count + 1)
            ),
        )
        self._commit("view count")
        self.db.refresh(project)
        return project
