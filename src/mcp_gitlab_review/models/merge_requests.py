"""Merge request models."""

from __future__ import annotations

from .base import GitLabModel
from .common import User
from .projects import Project


class MergeRequest(GitLabModel):
    id: int | None = None
    iid: int
    project_id: int | None = None
    title: str = ""
    description: str | None = None
    state: str = ""
    source_branch: str = ""
    target_branch: str = ""
    author: User | None = None
    assignees: list[User] = []
    reviewers: list[User] = []
    draft: bool = False
    work_in_progress: bool = False
    has_conflicts: bool = False
    merge_status: str = ""
    detailed_merge_status: str = ""
    user_notes_count: int = 0
    upvotes: int = 0
    downvotes: int = 0
    created_at: str = ""
    updated_at: str = ""
    web_url: str = ""
    # Not part of the REST payload; filled in by the tools when known.
    project: Project | None = None
