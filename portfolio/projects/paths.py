"""
Storage layout for project files:

    projects/{slug}/content.md
    projects/{slug}/thumbnail.{ext}
    projects/{slug}/images/{timestamp}-{index}-{filename}
    projects/{slug}/{filename}            (older uploads, still read and migrated)
"""
import re
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote

PROJECTS_ROOT = "projects"
MARKDOWN_FILENAME = "content.md"
IMAGES_FOLDER = "images"

_UPLOAD_PREFIX = re.compile(r"^\d+-\d+-")


def project_folder(slug: str) -> str:
    return f"{PROJECTS_ROOT}/{slug}"


def images_folder(slug: str) -> str:
    return f"{project_folder(slug)}/{IMAGES_FOLDER}"


def markdown_path(slug: str) -> str:
    return f"{project_folder(slug)}/{MARKDOWN_FILENAME}"


def file_extension(filename: str, default: str = "jpg") -> str:
    name = PurePosixPath(filename).name
    return name.rsplit(".", 1)[-1].lower() if "." in name else default


def thumbnail_path(slug: str, filename: str) -> str:
    return f"{project_folder(slug)}/thumbnail.{file_extension(filename)}"


def image_path(slug: str, filename: str, index: int, timestamp_ms: int) -> str:
    return f"{images_folder(slug)}/{timestamp_ms}-{index}-{safe_filename(filename)}"


def safe_filename(filename: str) -> str:
    """Drop any directory part a client put in the file name."""
    return PurePosixPath(filename.replace("\\", "/")).name


def original_filename(path: str) -> str:
    """`projects/x/images/1700000000000-0-chart.png` -> `chart.png`."""
    return _UPLOAD_PREFIX.sub("", unquote(PurePosixPath(path.split("?", 1)[0]).name))


def slug_of(path: str) -> Optional[str]:
    """`projects/{slug}/...` -> `{slug}`; None for paths outside the projects root."""
    parts = path.split("/", 2)
    if len(parts) < 3 or parts[0] != PROJECTS_ROOT or not parts[1] or not parts[2]:
        return None
    return parts[1]


def relocate(path: str, new_slug: str) -> Optional[str]:
    """
    Move a path from whichever slug folder holds it into the new slug folder.
    Files left behind by earlier renames move too. None if there is nothing
    to move: the path is outside the projects root or already in place.
    """
    slug = slug_of(path)
    if slug is None or slug == new_slug:
        return None
    return project_folder(new_slug) + "/" + path.split("/", 2)[2]
