import pytest

from portfolio.projects.validation import (
    MAX_FILE_SIZE,
    PROJECT_CATEGORIES,
    normalize_tags,
    validate_category,
    validate_image_upload,
)
from portfolio.shared.errors import InvalidCategory, InvalidTags, InvalidUpload


def test_tags_are_trimmed_lowercased_and_deduplicated():
    assert set(normalize_tags(["Python", " python ", "ML"])) == {"python", "ml"}


def test_tag_order_follows_first_occurrence():
    assert normalize_tags(["ML", "python", "ml"]) == ["ml", "python"]


def test_empty_tag_list_is_allowed():
    assert normalize_tags([]) == []


@pytest.mark.parametrize("tags", ["python", None, {"a": 1}, ["ok", 3], ["ok", "   "]])
def test_invalid_tags(tags):
    with pytest.raises(InvalidTags):
        normalize_tags(tags)


@pytest.mark.parametrize("category", PROJECT_CATEGORIES)
def test_known_categories(category):
    assert validate_category(category) == category


@pytest.mark.parametrize("category", ["Article", "blog", "", None, 3])
def test_unknown_categories(category):
    with pytest.raises(InvalidCategory) as exc:
        validate_category(category)
    assert exc.value.status_code == 400


def test_image_upload_checks():
    validate_image_upload("a.png", "image/png", 10)
    with pytest.raises(InvalidUpload):
        validate_image_upload("a.svg", "image/svg+xml", 10)
    with pytest.raises(InvalidUpload):
        validate_image_upload("a.png", "image/png", MAX_FILE_SIZE + 1)
