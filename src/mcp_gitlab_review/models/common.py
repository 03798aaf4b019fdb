"""Common GitLab models shared across domains."""

from __future__ import annotations

from .base import GitLabModel


class User(GitLabModel):
    id: int | None = None
    username: str = ""
    name: str = ""
    web_url: str = ""


class Diff(GitLabModel):
    """One changed file of a merge request or commit."""

    old_path: str = ""
    new_path: str = ""
    diff: str = ""
    new_file: bool = False
    renamed_file: bool = False
    deleted_file: bool = False

    @property
    def path(self) -> str:
        return self.new_path or self.old_path

    @property
    def file_name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def status(self) -> str:
        if self.new_file:
            return "added"
        if self.deleted_file:
            return "deleted"
        if self.renamed_file:
            return "renamed"
        return "modified"
