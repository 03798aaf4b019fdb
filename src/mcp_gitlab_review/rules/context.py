"""Merge request context consumed by the rule engine."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from ..models.common import Diff
from ..models.merge_requests import MergeRequest


class MergeRequestContext(BaseModel):
    """The slice of a merge request the rule engine needs."""

    model_config = ConfigDict(frozen=True)

    project_id: str | int | None = None
    project_path: str | None = None
    project_name: str = ""
    iid: int | None = None
    title: str = ""
    description: str = ""
    source_branch: str = ""
    target_branch: str = ""
    author: str = ""
    state: str = ""
    web_url: str = ""
    changes: tuple[Diff, ...] = ()

    @property
    def project_identifier(self) -> str | int | None:
        """Namespaced path when known, else the numeric or opaque id."""
        return self.project_path or self.project_id

    @property
    def analysis_text(self) -> str:
        parts = (self.project_name, self.source_branch, self.title, self.description)
        return " ".join(part for part in parts if part)

    @property
    def file_paths(self) -> list[str]:
        return [change.path for change in self.changes if change.path]

    @classmethod
    def from_api(
        cls,
        mr: dict[str, Any],
        changes: dict[str, Any] | list[dict[str, Any]] | None = None,
        project: dict[str, Any] | None = None,
    ) -> MergeRequestContext:
        """Build a context from GitLab REST payloads.

        *changes* may be the ``/changes`` response (a dict with a ``changes``
        list) or a plain list of diffs.
        """
        model = MergeRequest.model_validate({**mr, "project": project or mr.get("project")})
        if isinstance(changes, dict):
            raw_changes = changes.get("changes") or []
        else:
            raw_changes = changes or []
        return cls(
            project_id=model.project_id,
            project_path=model.project.path_with_namespace if model.project else None,
            project_name=model.project.name if model.project else "",
            iid=model.iid,
            title=model.title,
            description=model.description or "",
            source_branch=model.source_branch,
            target_branch=model.target_branch,
            author=model.author.name if model.author else "",
            state=model.state,
            web_url=model.web_url,
            changes=tuple(Diff.model_validate(change) for change in raw_changes),
        )
