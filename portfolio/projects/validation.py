"""Validation for project categories, tags and uploaded files."""
from typing import Optional

from portfolio.shared.errors import InvalidCategory, InvalidTags, InvalidUpload

PROJECT_CATEGORIES = ("article", "analysis", "tutorial", "software_implementation", "other")
DEFAULT_CATEGORY = "other"

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB


def validate_category(value) -> str:
    """Return the category unchanged, or raise InvalidCategory."""
    if not isinstance(value, str) or value not in PROJECT_CATEGORIES:
        raise InvalidCategory(
            f'Invalid category: "{value}". Must be one of: {", ".join(PROJECT_CATEGORIES)}'
        )
    return value


def normalize_tags(tags) -> list[str]:
    """
    Trim, lowercase and de-duplicate tags, keeping first-seen order.
    ["Python", " python ", "ML"] -> ["python", "ml"]
    """
    if not isinstance(tags, (list, tuple)):
        raise InvalidTags("Tags must be an array")

    normalized = []
    for tag in tags:
        if not isinstance(tag, str) or not tag.strip():
            raise InvalidTags("All tags must be non-empty strings")
        value = tag.strip().lower()
        if value not in normalized:
            normalized.append(value)
    return normalized


def validate_image_upload(filename: str, content_type: Optional[str], size: int) -> None:
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise InvalidUpload(
            f"Invalid file type for {filename}. Allowed: {', '.join(sorted(ALLOWED_IMAGE_TYPES))}"
        )
    if size > MAX_FILE_SIZE:
        raise InvalidUpload(
            f"File {filename} too large. Max size: {MAX_FILE_SIZE // (1024 * 1024)} MB"
        )
