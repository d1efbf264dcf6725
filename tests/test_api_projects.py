import json

import pytest

from conftest import PNG_BYTES, blob_url


def create_via_api(client, headers, title="My Cool Analysis", tags=("Python", "ML"), category="analysis"):
    return client.post(
        "/projects",
        headers=headers,
        data={
            "title": title,
            "description": "A look at some data",
            "category": category,
            "tags": json.dumps(list(tags)),
        },
        files={
            "markdown": ("README.md", b"# Results\n\n![Chart](chart.png)\n", "text/markdown"),
            "image_0": ("chart.png", PNG_BYTES, "image/png"),
        },
    )


@pytest.fixture
def created(client, admin_headers):
    response = create_via_api(client, admin_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def published(client, admin_headers, created):
    response = client.patch(f"/projects/{created['id']}/publish", json={"isPublished": True}, headers=admin_headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestAdminAuth:
    @pytest.mark.parametrize("method,path", [
        ("get", "/projects/admin/all"),
        ("get", "/projects/admin/abc"),
        ("delete", "/projects/abc"),
    ])
    def test_admin_routes_need_a_key(self, client, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_wrong_key(self, client):
        response = client.get("/projects/admin/all", headers={"X-API-Key": "wrong"})
        assert response.status_code == 401

    def test_create_without_key_stores_nothing(self, client, blobs):
        response = create_via_api(client, headers={})
        assert response.status_code == 401
        assert blobs.list("projects", "projects") == []

    def test_publish_without_key(self, client, created):
        response = client.patch(f"/projects/{created['id']}/publish", json={"isPublished": True})
        assert response.status_code == 401


class TestCreateAndUpdate:
    def test_create_returns_camel_case_project(self, created):
        assert created["slug"] == "my-cool-analysis"
        assert created["isPublished"] is False
        assert created["isFeatured"] is False
        assert created["viewCount"] == 0
        assert created["publishedAt"] is None
        assert created["tags"] == ["python", "ml"]
        assert created["markdownFileUrl"] == blob_url("projects/my-cool-analysis/content.md")
        assert created["imageUrls"][0] in created["markdownContent"]

    def test_create_requires_markdown(self, client, admin_headers):
        response = client.post(
            "/projects",
            headers=admin_headers,
            data={"title": "No Markdown", "description": "x", "category": "other"},
            files={"image_0": ("chart.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Markdown file is required"}

    def test_create_rejects_json(self, client, admin_headers):
        response = client.post("/projects", headers=admin_headers, json={"title": "x"})
        assert response.status_code == 400

    def test_create_rejects_unknown_category(self, client, admin_headers):
        response = create_via_api(client, admin_headers, category="blog")
        assert response.status_code == 400
        assert "Invalid category" in response.json()["error"]

    def test_create_rejects_malformed_tags(self, client, admin_headers):
        response = client.post(
            "/projects",
            headers=admin_headers,
            data={"title": "T", "description": "x", "category": "other", "tags": "not json"},
            files={"markdown": ("README.md", b"# x", "text/markdown")},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid tags format"}

    def test_duplicate_title(self, client, admin_headers, created):
        response = create_via_api(client, admin_headers, title="my cool analysis")
        assert response.status_code == 400
        assert response.json() == {"error": "A project with this title already exists"}

    def test_admin_lists_drafts(self, client, admin_headers, created):
        response = client.get("/projects/admin/all", headers=admin_headers)
        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [created["id"]]

        response = client.get(f"/projects/admin/{created['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["markdownContent"] == created["markdownContent"]

    def test_json_update(self, client, admin_headers, created):
        response = client.patch(
            f"/projects/{created['id']}",
            headers=admin_headers,
            json={"description": "New description", "tags": ["Stats"], "markdownContent": "# Edited"},
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["description"] == "New description"
        assert body["tags"] == ["stats"]
        assert body["markdownContent"] == "# Edited"
        assert body["slug"] == created["slug"]

    def test_json_title_change_migrates(self, client, admin_headers, blobs, created):
        response = client.patch(f"/projects/{created['id']}", headers=admin_headers, json={"title": "Renamed Study"})
        assert response.status_code == 200
        body = response.json()
        assert body["slug"] == "renamed-study"
        assert body["markdownFileUrl"] == blob_url("projects/renamed-study/content.md")
        assert blobs.list("projects", "projects/my-cool-analysis") == []

    def test_multipart_update_appends_images(self, client, admin_headers, created):
        response = client.patch(
            f"/projects/{created['id']}",
            headers=admin_headers,
            data={"description": "With another figure", "isPublished": "true"},
            files={"image_0": ("extra.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 200, response.text
        body = response.json()
        assert body["description"] == "With another figure"
        assert body["isPublished"] is True
        assert body["imageUrls"][0] == created["imageUrls"][0]
        assert body["imageUrls"][1].endswith("-0-extra.png")

    def test_update_rejects_bad_values(self, client, admin_headers, created):
        path = f"/projects/{created['id']}"
        assert client.patch(path, headers=admin_headers, json={"category": "blog"}).status_code == 400
        assert client.patch(path, headers=admin_headers, json={"tags": [""]}).status_code == 400
        assert client.patch(path, headers=admin_headers, json=["not", "an", "object"]).status_code == 400

    def test_update_missing_project(self, client, admin_headers):
        response = client.patch("/projects/missing", headers=admin_headers, json={"description": "x"})
        assert response.status_code == 404
        assert response.json() == {"error": "Project not found"}


class TestPublishFeatureDelete:
    def test_publish_then_unpublish(self, client, admin_headers, published):
        assert published["isPublished"] is True
        assert published["publishedAt"] is not None

        response = client.patch(f"/projects/{published['id']}/publish", json={"isPublished": False}, headers=admin_headers)
        assert response.json()["isPublished"] is False
        assert response.json()["publishedAt"] is None

    @pytest.mark.parametrize("body", [{"isPublished": "yes"}, {}, {"isPublished": None}])
    def test_publish_needs_a_boolean(self, client, admin_headers, created, body):
        response = client.patch(f"/projects/{created['id']}/publish", json=body, headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_feature(self, client, admin_headers, published):
        assert client.get("/projects/featured").json() == []

        response = client.patch(f"/projects/{published['id']}/feature", json={"isFeatured": True}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["isFeatured"] is True
        assert [p["slug"] for p in client.get("/projects/featured").json()] == ["my-cool-analysis"]

    def test_feature_needs_a_boolean(self, client, admin_headers, created):
        response = client.patch(f"/projects/{created['id']}/feature", json={"isFeatured": 1}, headers=admin_headers)
        assert response.status_code == 400

    def test_delete(self, client, admin_headers, created):
        response = client.delete(f"/projects/{created['id']}", headers=admin_headers)
        assert response.status_code == 204

        response = client.get(f"/projects/admin/{created['id']}", headers=admin_headers)
        assert response.status_code == 404

        response = client.delete(f"/projects/{created['id']}", headers=admin_headers)
        assert response.status_code == 404


class TestPublicEndpoints:
    def test_drafts_are_hidden(self, client, created):
        assert client.get("/projects").json() == []
        response = client.get("/projects/my-cool-analysis")
        assert response.status_code == 404
        assert response.json() == {"error": "Project not found"}

    def test_list_filters(self, client, published):
        assert [p["slug"] for p in client.get("/projects").json()] == ["my-cool-analysis"]
        assert len(client.get("/projects", params={"category": "analysis"}).json()) == 1
        assert client.get("/projects", params={"category": "article"}).json() == []
        assert len(client.get("/projects", params={"tag": "Python"}).json()) == 1
        assert client.get("/projects", params={"tag": "rust"}).json() == []

    def test_detail_counts_views(self, client, published):
        first = client.get("/projects/my-cool-analysis")
        assert first.status_code == 200
        assert first.json()["viewCount"] == 1
        assert first.json()["markdownContent"].startswith("# Results")

        assert client.get("/projects/my-cool-analysis").json()["viewCount"] == 2

    def test_health(self, client):
        response = client.get("/projects/health")
        assert response.status_code == 200
        assert response.json()["service"] == "projects"
