"""URL slugs for projects. A project's slug is also its storage folder name."""
import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_VALID_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(title: str) -> str:
    """
    Lowercase the title, collapse every run of characters outside [a-z0-9]
    into a single hyphen and strip hyphens from both ends.

    >>> slugify("My Cool Analysis!")
    'my-cool-analysis'
    """
    return _NON_ALNUM.sub("-", title.lower()).strip("-")


def is_valid_slug(value: str) -> bool:
    return bool(_VALID_SLUG.match(value))
