"""Project model."""

from __future__ import annotations

from .base import GitLabModel


class Project(GitLabModel):
    id: int
    name: str = ""
    path: str = ""
    path_with_namespace: str = ""
    default_branch: str = ""
    web_url: str = ""
