"""
Blob storage adapters

Path-addressed object storage for project files. Two backends share one
interface:
- SupabaseBlobStore: Supabase Storage over its REST API (production)
- LocalBlobStore: files on disk served from UPLOAD_BASE_URL (development)

Neither backend has a server-side copy, so `copy` is an explicit
download followed by an upload.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional
from urllib.parse import quote, unquote

import requests
from fastapi import Depends

from portfolio.shared.config import Settings, get_settings
from portfolio.shared.errors import AlreadyExists, BlobNotFound, StoreUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobEntry:
    """One item returned by `list`. Folders have `is_folder=True`."""
    name: str
    path: str
    is_folder: bool = False
    size: Optional[int] = None


class BlobStore:
    """Common interface; `copy` and `delete_folder` are built on the primitives."""

    def upload(self, bucket: str, path: str, content: bytes,
               content_type: Optional[str] = None, upsert: bool = False) -> str:
        raise NotImplementedError

    def get_public_url(self, bucket: str, path: str) -> str:
        raise NotImplementedError

    def download(self, bucket: str, path: str) -> bytes:
        raise NotImplementedError

    def delete(self, bucket: str, path: str) -> None:
        raise NotImplementedError

    def list(self, bucket: str, folder: str) -> list[BlobEntry]:
        raise NotImplementedError

    def copy(self, bucket: str, from_path: str, to_path: str) -> str:
        content = self.download(bucket, from_path)
        return self.upload(bucket, to_path, content, upsert=True)

    def delete_folder(self, bucket: str, folder: str) -> int:
        """Delete every file directly inside `folder`. Returns the count removed."""
        files = [entry for entry in self.list(bucket, folder) if not entry.is_folder]
        for entry in files:
            self.delete(bucket, entry.path)
        return len(files)

    def close(self) -> None:
        """Release any connections held by the backend."""

    def storage_path(self, bucket: str, url: str) -> Optional[str]:
        """Return the object path behind a public URL, or None if it is not ours."""
        if not url:
            return None
        prefix = self.get_public_url(bucket, "")
        if not url.startswith(prefix):
            return None
        path = url[len(prefix):].split("?", 1)[0]
        return unquote(path) or None


def _json_or_empty(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class SupabaseBlobStore(BlobStore):
    """Supabase Storage REST client using the service role key."""

    def __init__(self, supabase_url: str, service_key: str, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.base_url = f"{supabase_url.rstrip('/')}/storage/v1"
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def close(self):
        self.session.close()

    def _headers(self, **extra) -> dict:
        headers = {
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Storage request {method} {url} failed: {e}")
            raise StoreUnavailable() from e

    @staticmethod
    def _is_conflict(response: requests.Response) -> bool:
        if response.status_code == 409:
            return True
        # Supabase reports duplicates as 400 with statusCode "409" in the body
        body = _json_or_empty(response)
        return str(body.get("statusCode")) == "409" or body.get("error") == "Duplicate"

    @staticmethod
    def _is_missing(response: requests.Response) -> bool:
        if response.status_code == 404:
            return True
        return str(_json_or_empty(response).get("statusCode")) == "404"

    def upload(self, bucket, path, content, content_type=None, upsert=False):
        response = self._request(
            "POST",
            f"{self.base_url}/object/{bucket}/{path}",
            data=content,
            headers=self._headers(**{
                "Content-Type": content_type or "application/octet-stream",
                "Cache-Control": "max-age=3600",
                "x-upsert": "true" if upsert else "false",
            }),
        )
        if response.ok:
            return path
        if self._is_conflict(response):
            raise AlreadyExists(f"File already exists in storage: {path}")
        logger.error(f"Upload of {path} failed with HTTP {response.status_code}: {response.text}")
        raise StoreUnavailable(f"File upload failed: {path}")

    def get_public_url(self, bucket, path):
        return f"{self.base_url}/object/public/{bucket}/{quote(path, safe='/')}"

    def download(self, bucket, path):
        response = self._request(
            "GET", f"{self.base_url}/object/{bucket}/{path}", headers=self._headers()
        )
        if response.ok:
            return response.content
        if self._is_missing(response):
            raise BlobNotFound(f"File not found in storage: {path}")
        logger.error(f"Download of {path} failed with HTTP {response.status_code}")
        raise StoreUnavailable(f"File download failed: {path}")

    def delete(self, bucket, path):
        self._remove(bucket, [path])

    def _remove(self, bucket: str, paths: list[str]) -> None:
        response = self._request(
            "DELETE",
            f"{self.base_url}/object/{bucket}",
            json={"prefixes": paths},
            headers=self._headers(),
        )
        if not response.ok:
            logger.error(f"Delete of {paths} failed with HTTP {response.status_code}")
            raise StoreUnavailable("File delete failed")

    def list(self, bucket, folder):
        folder = folder.strip("/")
        response = self._request(
            "POST",
            f"{self.base_url}/object/list/{bucket}",
            json={
                "prefix": folder,
                "limit": 1000,
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
            headers=self._headers(),
        )
        if not response.ok and self._is_missing(response):
            return []
        if not response.ok:
            logger.error(f"Listing {folder} failed with HTTP {response.status_code}")
            raise StoreUnavailable(f"File listing failed: {folder}")

        entries = []
        for item in response.json() or []:
            name = item.get("name")
            if not name or name == ".emptyFolderPlaceholder":
                continue
            metadata = item.get("metadata") or {}
            entries.append(BlobEntry(
                name=name,
                path=f"{folder}/{name}" if folder else name,
                # Supabase returns folders as entries without an id
                is_folder=item.get("id") is None,
                size=metadata.get("size"),
            ))
        return entries

    def delete_folder(self, bucket, folder):
        # One request for the whole folder instead of one per file
        files = [entry.path for entry in self.list(bucket, folder) if not entry.is_folder]
        if files:
            self._remove(bucket, files)
        return len(files)


class LocalBlobStore(BlobStore):
    """
    Stores blobs as files under `root/<bucket>/<path>`.
    Public URLs are `<base_url>/<bucket>/<path>`.
    """

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _file(self, bucket: str, path: str) -> Path:
        bucket_root = (self.root / bucket).resolve()
        target = (bucket_root / path.strip("/")).resolve()
        if bucket_root != target and bucket_root not in target.parents:
            raise ValueError(f"Path escapes bucket: {path}")
        return target

    def upload(self, bucket, path, content, content_type=None, upsert=False):
        target = self._file(bucket, path)
        if target.exists() and not upsert:
            raise AlreadyExists(f"File already exists in storage: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        except OSError as e:
            raise StoreUnavailable(f"File upload failed: {path}") from e
        return path

    def get_public_url(self, bucket, path):
        return f"{self.base_url}/{bucket}/{quote(path, safe='/')}"

    def download(self, bucket, path):
        target = self._file(bucket, path)
        if not target.is_file():
            raise BlobNotFound(f"File not found in storage: {path}")
        return target.read_bytes()

    def delete(self, bucket, path):
        target = self._file(bucket, path)
        if target.is_file():
            target.unlink()

    def list(self, bucket, folder):
        folder = folder.strip("/")
        directory = self._file(bucket, folder)
        if not directory.is_dir():
            return []
        entries = []
        for child in sorted(directory.iterdir()):
            entries.append(BlobEntry(
                name=child.name,
                path=f"{folder}/{child.name}" if folder else child.name,
                is_folder=child.is_dir(),
                size=child.stat().st_size if child.is_file() else None,
            ))
        return entries

    def delete_folder(self, bucket, folder):
        removed = super().delete_folder(bucket, folder)
        directory = self._file(bucket, folder.strip("/"))
        # Drop the directory itself once nothing is left in it
        if directory.is_dir() and not any(directory.iterdir()):
            shutil.rmtree(directory)
        return removed


def build_blob_store(settings: Settings) -> BlobStore:
    if settings.storage_backend == "local":
        return LocalBlobStore(settings.upload_dir, settings.upload_base_url)
    if not settings.supabase_url or not settings.supabase_service_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set for Supabase storage")
    return SupabaseBlobStore(settings.supabase_url, settings.supabase_service_key)


def get_blob_store(settings: Settings = Depends(get_settings)) -> Iterator[BlobStore]:
    """FastAPI dependency yielding the configured storage backend, closed after the request."""
    blobs = build_blob_store(settings)
    try:
        yield blobs
    finally:
        blobs.close()
