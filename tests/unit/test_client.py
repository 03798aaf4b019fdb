"""Tests for GitLab API client."""

from __future__ import annotations

import base64
import json

import httpx
import pytest
import respx

from mcp_gitlab_review.client import GitLabClient, _project_path_from_url
from mcp_gitlab_review.config import GitLabConfig
from mcp_gitlab_review.exceptions import (
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
    ReviewInputError,
)

BASE = "https://gitlab.example.com/api/v4"


def _make_client(**kwargs) -> GitLabClient:
    return GitLabClient(
        GitLabConfig(url="https://gitlab.example.com", token="test-token", **kwargs)
    )


class TestEncodeId:
    def test_numeric_string(self):
        assert GitLabClient._encode_id("123") == "123"

    def test_integer(self):
        assert GitLabClient._encode_id(123) == "123"

    def test_path(self):
        assert GitLabClient._encode_id("my-group/my-project") == "my-group%2Fmy-project"


def test_client_requires_token():
    with pytest.raises(ValueError, match="GITLAB_TOKEN"):
        GitLabClient(GitLabConfig(url="https://gitlab.example.com", token=""))


class TestRequest:
    @pytest.mark.asyncio
    async def test_get_project(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/123").mock(
                return_value=httpx.Response(200, json={"id": 123, "name": "test"})
            )
            client = _make_client()
            result = await client.get_project(123)
            assert result["id"] == 123
            assert route.calls.last.request.headers["PRIVATE-TOKEN"] == "test-token"

    @pytest.mark.asyncio
    async def test_auth_error_401(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(return_value=httpx.Response(401, text="Unauthorized"))
            client = _make_client()
            with pytest.raises(GitLabAuthError) as exc_info:
                await client.get_project(123)
            assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_forbidden_403(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(return_value=httpx.Response(403, text="Forbidden"))
            client = _make_client()
            with pytest.raises(GitLabAuthError) as exc_info:
                await client.get_project(123)
            assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_not_found_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/999").mock(return_value=httpx.Response(404, text="Not Found"))
            client = _make_client()
            with pytest.raises(GitLabNotFoundError):
                await client.get_project(999)

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(500, text="Internal Server Error")
            )
            client = _make_client()
            with pytest.raises(GitLabApiError) as exc_info:
                await client.get_project(123)
            assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_html_response_error(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(
                    200,
                    text="<html><body>Login</body></html>",
                    headers={"content-type": "text/html"},
                )
            )
            client = _make_client()
            with pytest.raises(GitLabApiError, match="HTML"):
                await client.get_project(123)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123").mock(
                return_value=httpx.Response(
                    200, text="{oops", headers={"content-type": "application/json"}
                )
            )
            client = _make_client()
            with pytest.raises(GitLabApiError, match="JSON parse error"):
                await client.get_project(123)

    @pytest.mark.asyncio
    async def test_path_encoding(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/my-group%2Fmy-project").mock(
                return_value=httpx.Response(200, json={"id": 1})
            )
            client = _make_client()
            await client.get_project("my-group/my-project")
            assert route.called


class TestResolveProjectId:
    @pytest.mark.asyncio
    async def test_numeric(self):
        client = _make_client()
        assert await client.resolve_project_id(42) == 42
        assert await client.resolve_project_id(" 42 ") == 42

    @pytest.mark.asyncio
    async def test_project_map_by_name(self):
        client = _make_client(project_map={"web-app": 77})
        assert await client.resolve_project_id("frontend/web-app") == 77

    @pytest.mark.asyncio
    async def test_url_uses_project_map(self):
        client = _make_client(project_map={"web-app": 77})
        url = "https://gitlab.example.com/frontend/web-app/-/merge_requests/3"
        assert await client.resolve_project_id(url) == 77

    @pytest.mark.asyncio
    async def test_api_lookup_is_cached(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/group%2Fsvc").mock(
                return_value=httpx.Response(200, json={"id": 555, "name": "svc"})
            )
            client = _make_client()
            assert await client.resolve_project_id("group/svc") == 555
            assert await client.resolve_project_id("group/svc") == 555
            assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_empty_path(self):
        client = _make_client()
        with pytest.raises(ReviewInputError):
            await client.resolve_project_id("https://gitlab.example.com/")


class TestProjectPathFromUrl:
    def test_mr_url(self):
        url = "https://gitlab.example.com/a/b/c/-/merge_requests/1"
        assert _project_path_from_url(url) == "a/b/c"

    def test_project_url(self):
        assert _project_path_from_url("https://gitlab.example.com/a/b") == "a/b"


class TestRepository:
    @pytest.mark.asyncio
    async def test_list_branches(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/123/repository/branches").mock(
                return_value=httpx.Response(200, json=[{"name": "main"}, {"name": "develop"}])
            )
            client = _make_client()
            result = await client.list_branches(123)
            assert [b["name"] for b in result] == ["main", "develop"]
            assert route.calls.last.request.url.params["per_page"] == "100"

    @pytest.mark.asyncio
    async def test_list_branch_files_keeps_blobs(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/123/repository/tree").mock(
                return_value=httpx.Response(
                    200,
                    json=[
                        {"path": "src", "type": "tree"},
                        {"path": "src/main.go", "type": "blob"},
                        {"path": "go.mod", "type": "blob"},
                    ],
                )
            )
            client = _make_client()
            files = await client.list_branch_files(123, "develop")
            assert [f["path"] for f in files] == ["src/main.go", "go.mod"]
            params = route.calls.last.request.url.params
            assert params["ref"] == "develop"
            assert params["recursive"] == "true"

    @pytest.mark.asyncio
    async def test_get_file_content_base64(self):
        encoded = base64.b64encode(b"package main\n").decode()
        async with respx.mock(base_url=BASE) as router:
            route = router.get("/projects/123/repository/files/src%2Fmain.go").mock(
                return_value=httpx.Response(
                    200, json={"file_path": "src/main.go", "encoding": "base64", "content": encoded}
                )
            )
            client = _make_client()
            content = await client.get_file_content(123, "src/main.go", "main")
            assert content == "package main\n"
            assert route.calls.last.request.url.params["ref"] == "main"

    @pytest.mark.asyncio
    async def test_get_file_content_bad_base64(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/repository/files/a.txt").mock(
                return_value=httpx.Response(200, json={"encoding": "base64", "content": "abc"})
            )
            client = _make_client()
            with pytest.raises(GitLabApiError, match="base64"):
                await client.get_file_content(123, "a.txt", "main")


class TestCommitsAndNotes:
    @pytest.mark.asyncio
    async def test_add_commit_comment(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.post("/projects/123/repository/commits/abc123/comments").mock(
                return_value=httpx.Response(201, json={"note": "LGTM"})
            )
            client = _make_client()
            result = await client.add_commit_comment(123, "abc123", "LGTM")
            assert result["note"] == "LGTM"
            assert json.loads(route.calls.last.request.content) == {"note": "LGTM"}

    @pytest.mark.asyncio
    async def test_add_mr_note(self):
        async with respx.mock(base_url=BASE) as router:
            route = router.post("/projects/123/merge_requests/7/notes").mock(
                return_value=httpx.Response(201, json={"id": 1, "body": "Looks good"})
            )
            client = _make_client()
            result = await client.add_mr_note(123, 7, "Looks good", internal=True)
            assert result["id"] == 1
            sent = json.loads(route.calls.last.request.content)
            assert sent == {"body": "Looks good", "internal": True}

    @pytest.mark.asyncio
    async def test_merge_request_changes(self):
        async with respx.mock(base_url=BASE) as router:
            router.get("/projects/123/merge_requests/7/changes").mock(
                return_value=httpx.Response(200, json={"iid": 7, "changes": []})
            )
            client = _make_client()
            result = await client.get_merge_request_changes(123, 7)
            assert result["iid"] == 7
