"""GitLab review server configuration."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

NOTIFICATION_MODES = ("gitlab", "webhook", "both")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _load_project_map(raw: str | None) -> dict[str, int]:
    """Parse ``GITLAB_PROJECT_MAP`` (project name → numeric id)."""
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.error("Error parsing GITLAB_PROJECT_MAP environment variable: %s", e)
        return {}
    if not isinstance(data, dict):
        logger.error("GITLAB_PROJECT_MAP must be a JSON object, ignoring it")
        return {}
    project_map: dict[str, int] = {}
    for name, value in data.items():
        try:
            project_map[str(name)] = int(value)
        except (TypeError, ValueError):
            logger.warning("GITLAB_PROJECT_MAP: ignoring non-numeric id for %r", name)
    return project_map


@dataclass
class GitLabConfig:
    """Configuration for the GitLab API client, loaded from environment variables."""

    url: str = ""
    token: str = ""
    read_only: bool = False
    timeout: int = 30
    ssl_verify: bool = True
    project_map: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> GitLabConfig:
        url = os.getenv("GITLAB_URL", "").rstrip("/")
        token = (
            os.getenv("GITLAB_TOKEN")
            or os.getenv("GITLAB_PAT")
            or os.getenv("GITLAB_PERSONAL_ACCESS_TOKEN")
            or os.getenv("GITLAB_API_TOKEN", "")
        )
        read_only = _env_flag("GITLAB_READ_ONLY", "false")
        timeout = int(os.getenv("GITLAB_TIMEOUT", "30"))
        ssl_verify = os.getenv("GITLAB_SSL_VERIFY", "true").lower() not in (
            "false",
            "0",
            "no",
        )

        return cls(
            url=url,
            token=token,
            read_only=read_only,
            timeout=timeout,
            ssl_verify=ssl_verify,
            project_map=_load_project_map(os.getenv("GITLAB_PROJECT_MAP")),
        )

    @property
    def api_url(self) -> str:
        return f"{self.url}/api/v4"

    def validate(self) -> None:
        if not self.url:
            msg = "GITLAB_URL environment variable is required"
            raise ValueError(msg)
        if not self.token:
            msg = (
                "GitLab token is required. Set one of: GITLAB_TOKEN, GITLAB_PAT, "
                "GITLAB_PERSONAL_ACCESS_TOKEN, or GITLAB_API_TOKEN"
            )
            raise ValueError(msg)


@dataclass
class WebhookConfig:
    """Chat webhook (Lark/Feishu) settings for mirroring review notes."""

    url: str = ""
    secret: str = ""
    enabled: bool = True
    notification_mode: str = "gitlab"
    timeout: int = 10

    @classmethod
    def from_env(cls) -> WebhookConfig:
        return cls(
            url=os.getenv("LARK_WEBHOOK_URL", ""),
            secret=os.getenv("LARK_SECRET_KEY", ""),
            enabled=os.getenv("LARK_ENABLE_NOTIFICATION", "true").lower() != "false",
            notification_mode=os.getenv("NOTIFICATION_MODE", "gitlab").lower(),
            timeout=int(os.getenv("LARK_TIMEOUT", "10")),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.url) and self.enabled

    @property
    def posts_to_gitlab(self) -> bool:
        return self.notification_mode in ("gitlab", "both")

    @property
    def posts_to_webhook(self) -> bool:
        return self.notification_mode in ("webhook", "both")

    def validate(self) -> None:
        if self.notification_mode not in NOTIFICATION_MODES:
            msg = (
                f"Unknown NOTIFICATION_MODE {self.notification_mode!r}. "
                f"Valid modes: {', '.join(NOTIFICATION_MODES)}"
            )
            raise ValueError(msg)
