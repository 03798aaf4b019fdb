"""Shared test fixtures for mcp-gitlab-review."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
import respx

from mcp_gitlab_review.client import GitLabClient
from mcp_gitlab_review.config import GitLabConfig
from mcp_gitlab_review.rules.project_config import ProjectRulesStore, set_store

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"
API = f"{TEST_URL}/api/v4"
LARK_URL = "https://open.larksuite.com/open-apis/bot/v2/hook/test-hook"


@pytest.fixture
def config() -> GitLabConfig:
    return GitLabConfig(url=TEST_URL, token=TEST_TOKEN)


@pytest.fixture
def client(config: GitLabConfig) -> GitLabClient:
    return GitLabClient(config)


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url=API) as router:
        yield router


@pytest.fixture
def store(tmp_path: Path) -> ProjectRulesStore:
    """Process-wide rules store rooted at an empty temp dir (built-ins only)."""
    new_store = ProjectRulesStore(base_dir=tmp_path)
    previous = set_store(new_store)
    yield new_store
    set_store(previous)


def _server_env(**overrides: str) -> dict[str, str]:
    env = {
        "GITLAB_URL": TEST_URL,
        "GITLAB_TOKEN": TEST_TOKEN,
        "GITLAB_READ_ONLY": "false",
        "GITLAB_PROJECT_MAP": json.dumps({"proj": 123}),
        "LARK_WEBHOOK_URL": "",
        "LARK_SECRET_KEY": "",
        "LARK_ENABLE_NOTIFICATION": "true",
        "NOTIFICATION_MODE": "gitlab",
    }
    env.update(overrides)
    return env


@pytest.fixture
def patched_env():
    """Patch os.environ for the server lifespan; call with overrides."""
    patchers = []

    def _apply(**overrides: str) -> None:
        p = patch.dict(os.environ, _server_env(**overrides), clear=False)
        p.start()
        patchers.append(p)

    yield _apply
    for p in reversed(patchers):
        p.stop()
