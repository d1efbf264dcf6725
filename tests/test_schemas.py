import warnings

from portfolio.projects.models import Project
from portfolio.projects.schemas import ProjectSummary, ProjectUpdateBody, PublishBody
from portfolio.projects.validation import DEFAULT_CATEGORY


def test_camel_case_aliases_and_field_names_both_accepted():
    assert ProjectUpdateBody.model_validate({"markdownContent": "# x"}).markdown_content == "# x"
    assert ProjectUpdateBody.model_validate({"markdown_content": "# x"}).markdown_content == "# x"
    assert PublishBody.model_validate({"isPublished": True}).is_published is True


def test_schemas_build_from_orm_objects_without_warnings():
    project = Project(id="abc", slug="demo", title="Demo", description="d", category="other",
                      tags=["python"], is_published=False, is_featured=False, view_count=0)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        dumped = ProjectSummary.model_validate(project).model_dump(by_alias=True)

    assert dumped["isPublished"] is False
    assert dumped["viewCount"] == 0


def test_category_column_defaults_to_the_shared_constant():
    assert Project.__table__.c.category.default.arg == DEFAULT_CATEGORY
