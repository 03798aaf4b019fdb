"""MCP prompts: review workflow templates."""

from __future__ import annotations

from pathlib import Path
from string import Template

from fastmcp.prompts.prompt import Message

from ._helpers import _load_file, _parse_gitlab_mr_url, _parse_gitlab_project_url
from .gitlab import mcp

_PROMPTS_DIR = str(Path(__file__).resolve().parent.parent / "resources" / "prompts")


def _render(filename: str, **kwargs: str) -> str:
    """Load a prompt template and substitute ``$var`` placeholders.

    string.Template leaves unknown placeholders and curly braces alone.
    """
    return Template(_load_file(_PROMPTS_DIR, filename)).safe_substitute(kwargs)


@mcp.prompt(tags={"gitlab", "review"})
def review_mr(project_id: str, mr_iid: str = "", mode: str = "standard") -> list[Message]:
    """Review a GitLab merge request: build the review brief, read the
    changed files, and post the findings as a note.

    Accepts a full MR URL (e.g. https://gitlab.com/group/project/-/merge_requests/42)
    as project_id; mr_iid is then extracted from it.
    """
    parsed_project, parsed_iid = _parse_gitlab_mr_url(project_id)
    if parsed_iid:
        project_id, mr_iid = parsed_project, parsed_iid
    else:
        project_id = _parse_gitlab_project_url(project_id)
    text = _render("review-mr.md", project_id=project_id, mr_iid=mr_iid, mode=mode)
    return [
        Message(role="user", content=text),
        Message(
            role="assistant",
            content=(
                f"I'll review MR !{mr_iid} in project {project_id} ({mode} mode). "
                "Let me start by building the review brief."
            ),
        ),
    ]


_PROMPT_FILES = ["review-mr.md"]


def _validate_prompts() -> None:
    """Verify all expected prompt files exist at import time."""
    _dir = Path(_PROMPTS_DIR)
    missing = [f for f in _PROMPT_FILES if not (_dir / f).is_file()]
    if missing:
        msg = f"Missing prompt files (packaging error): {missing}"
        raise RuntimeError(msg)


_validate_prompts()
