"""Shared fixtures: in-memory SQLite, on-disk blob store, API client with overrides."""
import os

# Must be set before the app modules read their settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import portfolio.projects.models  # noqa: F401  registers the Project table
from app.main import app
from portfolio.projects.service import IncomingFile, ProjectCreateRequest, ProjectService
from portfolio.projects.store import ProjectStore
from portfolio.shared.auth import get_session_validator
from portfolio.shared.config import Settings, get_settings
from portfolio.shared.database import Base, get_db
from portfolio.storage.blob_store import LocalBlobStore, get_blob_store

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
BASE_URL = "https://cdn.test/uploads"
BUCKET = "projects"
API_KEY = "test-admin-key"


def png(name: str = "chart.png") -> IncomingFile:
    return IncomingFile(filename=name, content=PNG_BYTES, content_type="image/png")


def markdown_file(text: str, name: str = "README.md") -> IncomingFile:
    return IncomingFile(filename=name, content=text.encode("utf-8"), content_type="text/markdown")


def blob_url(path: str) -> str:
    return f"{BASE_URL}/{BUCKET}/{path}"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def blobs(tmp_path):
    return LocalBlobStore(str(tmp_path / "uploads"), BASE_URL)


@pytest.fixture
def store(db_session):
    return ProjectStore(db_session)


@pytest.fixture
def service(store, blobs):
    return ProjectService(store, blobs, bucket=BUCKET)


@pytest.fixture
def create_project(service):
    """Factory creating a project through the real create flow."""

    def _create(title="My Cool Analysis", markdown="# Results\n\n![Chart](chart.png)\n",
                images=None, thumbnail=None, category="analysis", tags=("Python",)):
        return service.create(ProjectCreateRequest(
            title=title,
            description=f"About {title}",
            category=category,
            tags=list(tags),
            markdown_file=markdown_file(markdown),
            thumbnail_file=thumbnail,
            image_files=[png()] if images is None else list(images),
        ))

    return _create


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        environment="test",
        database_url="sqlite://",
        storage_backend="local",
        storage_bucket=BUCKET,
        upload_dir=str(tmp_path / "uploads"),
        upload_base_url=BASE_URL,
        internal_api_key=API_KEY,
        anthropic_api_key="test-anthropic-key",
    )


@pytest.fixture
def client(db_session, blobs, test_settings):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_blob_store] = lambda: blobs
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_session_validator] = lambda: None
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-API-Key": API_KEY}
