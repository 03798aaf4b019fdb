"""Tool-level tests: call @mcp.tool functions via FastMCP Client with mocked API."""

from __future__ import annotations

import base64
import json
from contextlib import asynccontextmanager
from typing import Any

import pytest
import respx
from fastmcp import Client
from fastmcp.exceptions import ToolError
from httpx import Response

from mcp_gitlab_review.servers.gitlab import mcp

API = "https://gitlab.example.com/api/v4"
LARK_URL = "https://open.larksuite.com/open-apis/bot/v2/hook/test-hook"
MR_URL = "https://gitlab.example.com/team/proj/-/merge_requests/7"

MR = {
    "id": 1001,
    "iid": 7,
    "project_id": 123,
    "title": "Tidy up request handling",
    "description": "Smaller handlers",
    "state": "opened",
    "source_branch": "feature/handlers",
    "target_branch": "main",
    "author": {"id": 5, "username": "dev", "name": "Dev One"},
    "web_url": MR_URL,
}
CHANGES = {
    **MR,
    "changes": [
        {
            "old_path": "src/server.go",
            "new_path": "src/server.go",
            "diff": "@@ -1 +1 @@\n-old\n+new",
        }
    ],
}
PROJECT = {"id": 123, "name": "proj", "path_with_namespace": "team/proj"}


@asynccontextmanager
async def _session(patched_env, **env: str):
    patched_env(**env)
    with respx.mock(assert_all_called=False) as router:
        async with Client(mcp) as client:
            yield client, router


@pytest.fixture
async def tool_client(patched_env, store):
    """FastMCP test client with env-driven lifespan and respx-mocked HTTP."""
    async with _session(patched_env) as pair:
        yield pair


@pytest.fixture
async def readonly_client(patched_env, store):
    async with _session(patched_env, GITLAB_READ_ONLY="true") as pair:
        yield pair


@pytest.fixture
async def webhook_client(patched_env, store):
    async with _session(
        patched_env, NOTIFICATION_MODE="webhook", LARK_WEBHOOK_URL=LARK_URL
    ) as pair:
        yield pair


@pytest.fixture
async def both_client(patched_env, store):
    async with _session(patched_env, NOTIFICATION_MODE="both", LARK_WEBHOOK_URL=LARK_URL) as pair:
        yield pair


def _text(result: Any) -> str:
    """Extract the text payload of a tool call result."""
    if hasattr(result, "content"):
        for item in result.content:
            if hasattr(item, "text"):
                return item.text
    for item in result:
        if hasattr(item, "text"):
            return item.text
    return str(result)


def _parse(result: Any) -> dict | list:
    return json.loads(_text(result))


def _mock_mr(router: respx.MockRouter, project: dict = PROJECT) -> None:
    router.get(f"{API}/projects/123/merge_requests/7").mock(return_value=Response(200, json=MR))
    router.get(f"{API}/projects/123/merge_requests/7/changes").mock(
        return_value=Response(200, json=CHANGES)
    )
    router.get(f"{API}/projects/123").mock(return_value=Response(200, json=project))


# ═══════════════════════════════════════════════════════
# Merge requests
# ═══════════════════════════════════════════════════════


class TestListMrs:
    async def test_happy_path(self, tool_client):
        client, router = tool_client
        route = router.get(f"{API}/projects/123/merge_requests").mock(
            return_value=Response(200, json=[{"iid": 1}, {"iid": 2}])
        )
        result = await client.call_tool(
            "gitlab_list_mrs", {"project_id": "123", "state": "opened"}
        )
        parsed = _parse(result)
        assert parsed["count"] == 2
        assert parsed["items"][0]["iid"] == 1
        assert route.calls.last.request.url.params["state"] == "opened"

    async def test_auth_error(self, tool_client):
        client, router = tool_client
        router.get(f"{API}/projects/123/merge_requests").mock(
            return_value=Response(401, json={"message": "401 Unauthorized"})
        )
        parsed = _parse(await client.call_tool("gitlab_list_mrs", {"project_id": "123"}))
        assert "error" in parsed
        assert "GITLAB_TOKEN" in parsed["hint"]


class TestGetMr:
    async def test_by_url_uses_project_map(self, tool_client):
        client, router = tool_client
        router.get(f"{API}/projects/123/merge_requests/7").mock(
            return_value=Response(200, json=MR)
        )
        parsed = _parse(await client.call_tool("gitlab_get_mr", {"project_id": MR_URL}))
        assert parsed["iid"] == 7

    async def test_by_id_and_iid(self, tool_client):
        client, router = tool_client
        router.get(f"{API}/projects/123/merge_requests/7").mock(
            return_value=Response(200, json=MR)
        )
        parsed = _parse(
            await client.call_tool("gitlab_get_mr", {"project_id": "123", "mr_iid": 7})
        )
        assert parsed["title"] == MR["title"]

    async def test_missing_iid(self, tool_client):
        client, _ = tool_client
        parsed = _parse(await client.call_tool("gitlab_get_mr", {"project_id": "123"}))
        assert "error" in parsed
        assert "mr_iid" in parsed["hint"]

    async def test_not_found(self, tool_client):
        client, router = tool_client
        router.get(f"{API}/projects/123/merge_requests/99").mock(
            return_value=Response(404, json={"message": "404 Not found"})
        )
        parsed = _parse(
            await client.call_tool("gitlab_get_mr", {"project_id": "123", "mr_iid": 99})
        )
        assert parsed["status_code"] == 404
        assert "Verify" in parsed["hint"]


async def test_mr_changes(tool_client):
    client, router = tool_client
    router.get(f"{API}/projects/123/merge_requests/7/changes").mock(
        return_value=Response(200, json=CHANGES)
    )
    parsed = _parse(await client.call_tool("gitlab_mr_changes", {"project_id": MR_URL}))
    assert parsed["changes"][0]["new_path"] == "src/server.go"


# ═══════════════════════════════════════════════════════
# Writing review notes
# ═══════════════════════════════════════════════════════


class TestWriteMrNote:
    async def test_gitlab_mode(self, tool_client):
        client, router = tool_client
        route = router.post(f"{API}/projects/123/merge_requests/7/notes").mock(
            return_value=Response(201, json={"id": 55, "body": "LGTM"})
        )
        parsed = _parse(
            await client.call_tool("gitlab_write_mr_note", {"url": MR_URL, "note": "LGTM"})
        )
        assert parsed["notification_mode"] == "gitlab"
        assert parsed["note"]["id"] == 55
        assert "webhook" not in parsed
        assert json.loads(route.calls.last.request.content) == {"body": "LGTM"}

    async def test_invalid_url(self, tool_client):
        client, _ = tool_client
        parsed = _parse(
            await client.call_tool(
                "gitlab_write_mr_note",
                {"url": "https://gitlab.example.com/team/proj", "note": "LGTM"},
            )
        )
        assert "Invalid GitLab merge request URL" in parsed["error"]

    async def test_read_only(self, readonly_client):
        client, _ = readonly_client
        parsed = _parse(
            await client.call_tool("gitlab_write_mr_note", {"url": MR_URL, "note": "LGTM"})
        )
        assert "read-only" in parsed["hint"]

    async def test_webhook_mode(self, webhook_client):
        client, router = webhook_client
        notes = router.post(f"{API}/projects/123/merge_requests/7/notes")
        router.get(f"{API}/projects/123/merge_requests/7").mock(
            return_value=Response(200, json=MR)
        )
        router.get(f"{API}/projects/123").mock(return_value=Response(200, json=PROJECT))
        hook = router.post(LARK_URL).mock(return_value=Response(200, json={"code": 0}))
        parsed = _parse(
            await client.call_tool(
                "gitlab_write_mr_note", {"project_id": "123", "mr_iid": 7, "note": "LGTM"}
            )
        )
        assert parsed == {"notification_mode": "webhook", "webhook": "sent"}
        assert not notes.called
        card = json.loads(hook.calls.last.request.content)["card"]
        assert card["elements"][0]["text"]["content"] == "**Project**: proj"

    async def test_webhook_failure_in_webhook_mode(self, webhook_client):
        client, router = webhook_client
        router.get(f"{API}/projects/123/merge_requests/7").mock(
            return_value=Response(200, json=MR)
        )
        router.get(f"{API}/projects/123").mock(return_value=Response(200, json=PROJECT))
        router.post(LARK_URL).mock(return_value=Response(400, text="bad request"))
        parsed = _parse(
            await client.call_tool("gitlab_write_mr_note", {"url": MR_URL, "note": "LGTM"})
        )
        assert parsed["status_code"] == 400
        assert "LARK_WEBHOOK_URL" in parsed["hint"]

    async def test_both_mode_reports_webhook_failure(self, both_client):
        client, router = both_client
        router.post(f"{API}/projects/123/merge_requests/7/notes").mock(
            return_value=Response(201, json={"id": 56})
        )
        router.get(f"{API}/projects/123/merge_requests/7").mock(
            return_value=Response(200, json=MR)
        )
        router.get(f"{API}/projects/123").mock(return_value=Response(200, json=PROJECT))
        router.post(LARK_URL).mock(
            return_value=Response(200, json={"code": 19021, "msg": "sign match fail"})
        )
        parsed = _parse(
            await client.call_tool("gitlab_write_mr_note", {"url": MR_URL, "note": "LGTM"})
        )
        assert parsed["note"]["id"] == 56
        assert parsed["webhook"] == "failed"
        assert "sign match fail" in parsed["webhook_error"]

    async def test_webhook_not_configured(self, patched_env, store):
        async with _session(patched_env, NOTIFICATION_MODE="webhook") as (client, _):
            parsed = _parse(
                await client.call_tool("gitlab_write_mr_note", {"url": MR_URL, "note": "LGTM"})
            )
        assert parsed == {"notification_mode": "webhook", "webhook": "not_configured"}


# ═══════════════════════════════════════════════════════
# Repository
# ═══════════════════════════════════════════════════════


async def test_list_branches(tool_client):
    client, router = tool_client
    router.get(f"{API}/projects/123/repository/branches").mock(
        return_value=Response(200, json=[{"name": "main"}])
    )
    parsed = _parse(await client.call_tool("gitlab_list_branches", {"project_id": "123"}))
    assert parsed["items"] == [{"name": "main"}]


async def test_get_file(tool_client):
    client, router = tool_client
    encoded = base64.b64encode(b"module example.com/svc\n").decode()
    router.get(f"{API}/projects/123/repository/files/go.mod").mock(
        return_value=Response(200, json={"encoding": "base64", "content": encoded})
    )
    parsed = _parse(
        await client.call_tool(
            "gitlab_get_file", {"project_id": "123", "file_path": "go.mod", "ref": "develop"}
        )
    )
    assert parsed == {
        "file_path": "go.mod",
        "ref": "develop",
        "content": "module example.com/svc\n",
    }


class TestCommits:
    async def test_get_commit_with_diff(self, tool_client):
        client, router = tool_client
        router.get(f"{API}/projects/123/repository/commits/abc123").mock(
            return_value=Response(200, json={"id": "abc123", "title": "Fix"})
        )
        router.get(f"{API}/projects/123/repository/commits/abc123/diff").mock(
            return_value=Response(200, json=[{"new_path": "a.go", "diff": "+x"}])
        )
        parsed = _parse(
            await client.call_tool(
                "gitlab_get_commit", {"project_id": "123", "sha": "abc123", "include_diff": True}
            )
        )
        assert parsed["title"] == "Fix"
        assert parsed["diffs"][0]["new_path"] == "a.go"

    async def test_write_commit_note_from_url(self, tool_client):
        client, router = tool_client
        route = router.post(f"{API}/projects/123/repository/commits/abc123/comments").mock(
            return_value=Response(201, json={"note": "nice"})
        )
        parsed = _parse(
            await client.call_tool(
                "gitlab_write_commit_note",
                {
                    "project_id": "https://gitlab.example.com/team/proj/-/commit/abc123",
                    "note": "nice",
                },
            )
        )
        assert parsed["note"] == "nice"
        assert route.called

    async def test_write_commit_note_needs_sha(self, tool_client):
        client, _ = tool_client
        parsed = _parse(
            await client.call_tool("gitlab_write_commit_note", {"project_id": "123", "note": "x"})
        )
        assert "commit SHA" in parsed["error"]

    async def test_write_commit_note_read_only(self, readonly_client):
        client, _ = readonly_client
        parsed = _parse(
            await client.call_tool(
                "gitlab_write_commit_note", {"project_id": "123", "sha": "abc", "note": "x"}
            )
        )
        assert "read-only" in parsed["hint"]


# ═══════════════════════════════════════════════════════
# Rule lookup
# ═══════════════════════════════════════════════════════


class TestRuleTools:
    async def test_rules_without_input_lists_types(self, tool_client):
        client, _ = tool_client
        text = _text(await client.call_tool("get_code_review_rules", {}))
        assert text.startswith("🔍 **Available Project Types:**")

    async def test_rules_undetectable(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool("get_code_review_rules", {"file_paths": ["README.md"]})
        )
        assert text.startswith("❌ Could not detect project type")

    async def test_rules_for_types(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool(
                "get_code_review_rules", {"project_types": ["go"], "severity": "error"}
            )
        )
        assert text.startswith("🎯 **Detected Project Types:** Go")
        assert "⚠️ **Severity Filter:** error" in text
        assert "Go Error Handling" in text
        assert "Go Context Usage" not in text

    async def test_rules_for_file(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool(
                "get_code_review_rules",
                {"file_paths": ["web/App.tsx"], "file_name": "App.tsx", "include_universal": False},
            )
        )
        assert "📄 **File:** App.tsx" in text
        assert "React Hooks Dependencies" in text
        assert "TypeScript Strict Mode" in text

    async def test_list_all_rules(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool("list_all_code_review_rules", {"category": "security"})
        )
        assert text.startswith("📚 **All Available Code Review Rules**")
        assert "Server-Side Request Forgery" in text
        assert "Go Error Handling" not in text

    async def test_list_all_rules_by_type(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool("list_all_code_review_rules", {"project_type": "python"})
        )
        assert "Python Type Hints" in text
        assert "No Hardcoded Secrets" in text
        assert "Go Error Handling" not in text

    async def test_invalid_category(self, tool_client):
        client, _ = tool_client
        with pytest.raises(ToolError):
            await client.call_tool("list_all_code_review_rules", {"category": "fun"})

    async def test_project_types(self, tool_client):
        client, _ = tool_client
        text = _text(await client.call_tool("get_project_types", {"file_paths": ["main.rs"]}))
        assert "🔍 **Detected Types for provided files:** rust" in text

    async def test_project_specific_list(self, tool_client):
        client, _ = tool_client
        text = _text(await client.call_tool("get_project_specific_rules", {}))
        assert "📋 **Configured Projects with Specific Rules**" in text
        assert "Payment Service" in text

    async def test_project_specific_detail(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool(
                "get_project_specific_rules", {"project_identifier": "backend/api-service"}
            )
        )
        assert "🎯 **Project**: API Service" in text
        assert "API Rate Limiting" in text
        assert "📚 **Applicable Default Rules**" in text

    async def test_project_specific_missing(self, tool_client):
        client, _ = tool_client
        text = _text(
            await client.call_tool("get_project_specific_rules", {"project_identifier": "x/y"})
        )
        assert text == "❌ No project-specific rules found for project: x/y"


# ═══════════════════════════════════════════════════════
# Reviews
# ═══════════════════════════════════════════════════════


class TestCodeReview:
    async def test_standard(self, tool_client):
        client, router = tool_client
        _mock_mr(router)
        text = _text(await client.call_tool("gitlab_code_review", {"url": MR_URL}))
        assert text.startswith("🔍 **Merge Request Code Review**")
        assert "src/server.go" in text
        assert "Go Error Handling" in text
        assert "📚 **Applicable review rules** (5 rules):" in text

    async def test_standard_with_project_config(self, tool_client):
        client, router = tool_client
        _mock_mr(router, {**PROJECT, "path_with_namespace": "microservices/payment-service"})
        text = _text(
            await client.call_tool("gitlab_code_review", {"project_id": "123", "mr_iid": 7})
        )
        assert "🎯 **Project configuration**: Payment Service" in text
        assert "Payment Idempotency" in text

    async def test_security_mode_with_custom_rules(self, tool_client):
        client, router = tool_client
        _mock_mr(router)
        custom = [
            {
                "id": "team-tokens",
                "title": "Token Storage",
                "description": "Tokens live in the vault",
                "severity": "error",
                "category": "security",
            },
            {
                "id": "team-naming",
                "title": "Team Naming",
                "severity": "info",
                "category": "style",
            },
        ]
        text = _text(
            await client.call_tool(
                "gitlab_code_review", {"url": MR_URL, "mode": "security", "custom_rules": custom}
            )
        )
        assert text.startswith("🔍 **General Security Scan**")
        assert "🧩 **Custom rules** (1 rules):" in text
        assert "Token Storage" in text
        assert "Team Naming" not in text
        assert "Server-Side Request Forgery" not in text

    async def test_professional_mode(self, tool_client):
        client, router = tool_client
        _mock_mr(router)
        text = _text(
            await client.call_tool(
                "gitlab_code_review", {"url": MR_URL, "mode": "professional-security"}
            )
        )
        assert "Server-Side Request Forgery" in text
        assert "No Hardcoded Secrets" not in text

    async def test_invalid_custom_rule(self, tool_client):
        client, router = tool_client
        _mock_mr(router)
        parsed = _parse(
            await client.call_tool(
                "gitlab_code_review",
                {"url": MR_URL, "mode": "style", "custom_rules": [{"id": "x"}]},
            )
        )
        assert "Custom rules need" in parsed["hint"]

    async def test_missing_reference(self, tool_client):
        client, _ = tool_client
        parsed = _parse(await client.call_tool("gitlab_code_review", {}))
        assert "error" in parsed

    async def test_invalid_mode(self, tool_client):
        client, _ = tool_client
        with pytest.raises(ToolError):
            await client.call_tool("gitlab_code_review", {"url": MR_URL, "mode": "quick"})


async def test_branch_review(tool_client):
    client, router = tool_client
    router.get(f"{API}/projects/123/repository/branches/develop").mock(
        return_value=Response(
            200,
            json={"name": "develop", "commit": {"short_id": "abc1234", "title": "Add worker"}},
        )
    )
    router.get(f"{API}/projects/123/repository/tree").mock(
        return_value=Response(
            200,
            json=[
                {"path": "cmd", "type": "tree", "mode": "040000"},
                {"path": "cmd/main.go", "type": "blob", "mode": "100644"},
                {"path": "go.mod", "type": "blob", "mode": "100644"},
            ],
        )
    )
    router.get(f"{API}/projects/123").mock(return_value=Response(200, json=PROJECT))
    text = _text(
        await client.call_tool("gitlab_branch_review", {"project_id": "123", "branch": "develop"})
    )
    assert text.startswith("🌿 **Branch Code Review**")
    assert "- **Files**: 2" in text
    assert "- **Detected project types**: Go" in text
    assert "Go Error Handling" in text


async def test_commit_review(tool_client):
    client, router = tool_client
    router.get(f"{API}/projects/123/repository/commits/abc123").mock(
        return_value=Response(
            200,
            json={
                "id": "abc123",
                "short_id": "abc123",
                "title": "Guard nil request",
                "message": "Guard nil request",
                "author_name": "Dev One",
            },
        )
    )
    router.get(f"{API}/projects/123/repository/commits/abc123/diff").mock(
        return_value=Response(
            200, json=[{"old_path": "lib/util.py", "new_path": "lib/util.py", "diff": "+x = 1"}]
        )
    )
    router.get(f"{API}/projects/123").mock(return_value=Response(200, json=PROJECT))
    text = _text(
        await client.call_tool("gitlab_commit_review", {"project_id": "123", "sha": "abc123"})
    )
    assert text.startswith("📝 **Commit Code Review**")
    assert "🎯 **Detected project types**: Python" in text
    assert "Python Type Hints" in text
