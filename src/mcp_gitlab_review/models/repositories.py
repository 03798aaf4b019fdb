"""Repository models: branches, commits, tree entries."""

from __future__ import annotations

from .base import GitLabModel


class Commit(GitLabModel):
    id: str = ""
    short_id: str = ""
    title: str = ""
    message: str = ""
    author_name: str = ""
    author_email: str = ""
    committer_name: str = ""
    committer_email: str = ""
    committed_date: str = ""
    web_url: str = ""


class Branch(GitLabModel):
    name: str = ""
    merged: bool = False
    protected: bool = False
    default: bool = False
    web_url: str = ""
    commit: Commit | None = None


class TreeItem(GitLabModel):
    id: str = ""
    name: str = ""
    type: str = ""
    path: str = ""
    mode: str = ""
