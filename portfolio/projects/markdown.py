"""
Markdown helpers

Finds image references in project markdown and points them at stored
files, plus a few read-side utilities used by the chat endpoint.
"""
import math
import re

from portfolio.projects.slugs import slugify

IMAGE_PATTERN = re.compile(r"!\[.*?\]\((.*?)\)")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+)$", re.MULTILINE)

# Rough budget: ~4 characters per token, ~1000 tokens per image
CHARS_PER_TOKEN = 4
TOKENS_PER_IMAGE = 1000


def extract_image_references(markdown: str) -> list[str]:
    """Return the path of every `![alt](path)` in document order, duplicates included."""
    return IMAGE_PATTERN.findall(markdown)


def rewrite_paths(markdown: str, mapping: dict[str, str]) -> str:
    """
    Replace `![alt](original)` with `![alt](new_url)` for every entry in mapping.
    The alt text is kept; references not in mapping are left alone.
    """
    for original_path, new_url in mapping.items():
        pattern = re.compile(r"!\[([^\]]*)\]\(" + re.escape(original_path) + r"\)")
        # Function replacement so backslashes in URLs are not read as group refs
        markdown = pattern.sub(lambda match, url=new_url: f"![{match.group(1)}]({url})", markdown)
    return markdown


def extract_table_of_contents(markdown: str) -> list[dict]:
    toc = []
    for match in HEADING_PATTERN.finditer(markdown):
        text = match.group(2).strip()
        toc.append({"id": slugify(text), "level": len(match.group(1)), "text": text})
    return toc


def estimate_token_count(text: str) -> int:
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def fits_in_context_window(markdown: str, image_count: int, max_tokens: int = 150_000) -> bool:
    total = estimate_token_count(markdown) + image_count * TOKENS_PER_IMAGE
    return total < max_tokens
