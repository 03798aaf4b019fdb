"""GitLab code review MCP server: tool registrations."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any, Literal

from fastmcp import Context, FastMCP
from pydantic import Field, ValidationError

from ..client import GitLabClient
from ..config import GitLabConfig, WebhookConfig
from ..exceptions import (
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
    GitLabWriteDisabledError,
    ReviewInputError,
    WebhookError,
)
from ..models.common import Diff
from ..models.merge_requests import MergeRequest
from ..models.repositories import Branch, Commit, TreeItem
from ..review import (
    build_branch_report,
    build_commit_report,
    build_profile_report,
    build_review_report,
)
from ..rules import (
    ALL_RULES,
    PROFILES,
    MergeRequestContext,
    ProjectRulesStore,
    Rule,
    collect_merge_request_rules,
    collect_profile_rules,
    detect_merge_request_types,
    detect_project_types,
    filter_rules,
    format_rules,
    get_applicable_rules,
    get_default_rules_for_project_types,
)
from ..rules.catalog import project_type_name
from ..rules.formatting import (
    format_configured_projects,
    format_project_config,
    format_project_type_choices,
    format_project_types,
)
from ..rules.project_config import get_store
from ..webhook import WebhookNotifier
from ._helpers import _parse_gitlab_commit_url, _parse_gitlab_mr_url, _parse_gitlab_project_url

logger = logging.getLogger(__name__)

Category = Literal["security", "performance", "maintainability", "style", "best-practice"]
Severity = Literal["error", "warning", "info"]
ReviewMode = Literal["standard", "style", "security", "professional-security"]


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
    config = GitLabConfig.from_env()
    config.validate()
    webhook_config = WebhookConfig.from_env()
    webhook_config.validate()
    client = GitLabClient(config)
    notifier = WebhookNotifier(webhook_config)
    try:
        yield {"client": client, "config": config, "webhook": notifier, "store": get_store()}
    finally:
        await notifier.close()
        await client.close()


mcp = FastMCP(
    name="GitLab Code Review MCP Server",
    instructions=(
        "Reviews GitLab merge requests, branches and commits against a catalog of"
        " code review rules, with per-project rule overrides and optional chat"
        " notifications for posted review notes."
    ),
    lifespan=lifespan,
)


def _get_client(ctx: Context) -> GitLabClient:
    return ctx.request_context.lifespan_context["client"]


def _get_config(ctx: Context) -> GitLabConfig:
    return ctx.request_context.lifespan_context["config"]


def _get_webhook(ctx: Context) -> WebhookNotifier:
    return ctx.request_context.lifespan_context["webhook"]


def _get_store(ctx: Context) -> ProjectRulesStore:
    return ctx.request_context.lifespan_context.get("store") or get_store()


def _check_write(ctx: Context) -> None:
    if _get_config(ctx).read_only:
        raise GitLabWriteDisabledError


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _paginated(items: list, total: int | None = None) -> str:
    """Wrap a list response with pagination metadata."""
    return json.dumps(
        {
            "items": items,
            "count": len(items),
            "total": total,
            "has_more": total is not None and len(items) < total,
        },
        indent=2,
        ensure_ascii=False,
    )


def _err(error: Exception) -> str:
    detail: dict[str, Any] = {"error": str(error)}
    if isinstance(error, GitLabNotFoundError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = "Verify the project path, MR IID, branch or SHA."
    elif isinstance(error, GitLabAuthError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = "Check GITLAB_TOKEN permissions. Token needs 'api' scope."
    elif isinstance(error, GitLabWriteDisabledError):
        detail["hint"] = "Server is in read-only mode. Set GITLAB_READ_ONLY=false to enable writes."
    elif isinstance(error, GitLabApiError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        if error.status_code == 422:
            detail["hint"] = "Validation failed, check required fields and formats."
        elif error.status_code == 429:
            detail["hint"] = "Rate limited. Wait before retrying."
    elif isinstance(error, ReviewInputError):
        detail["hint"] = "Pass project_id and mr_iid, or a full merge request URL."
    elif isinstance(error, WebhookError):
        detail["status_code"] = error.status_code
        detail["code"] = error.code
        detail["hint"] = "Check LARK_WEBHOOK_URL and LARK_SECRET_KEY."
    elif isinstance(error, ValidationError):
        detail["hint"] = "Custom rules need id, title, description, severity and category."
    return json.dumps(detail, indent=2, ensure_ascii=False)


def _resolve_mr_ref(
    project_id: str | None, mr_iid: int | None, url: str | None
) -> tuple[str, int]:
    """Work out (project, iid) from explicit arguments or a merge request URL.

    A URL wins over explicit arguments. *project_id* may itself be an MR URL.
    """
    for candidate in (url, project_id):
        if candidate:
            project, iid = _parse_gitlab_mr_url(candidate)
            if iid:
                return project, int(iid)
    if url:
        msg = f"Invalid GitLab merge request URL: {url}"
        raise ReviewInputError(msg)
    if project_id and mr_iid is not None:
        return _parse_gitlab_project_url(project_id), mr_iid
    msg = "Provide project_id and mr_iid, or a full GitLab merge request URL"
    raise ReviewInputError(msg)


async def _load_merge_request(
    client: GitLabClient, project: str, mr_iid: int
) -> tuple[dict, dict, dict]:
    project_id = await client.resolve_project_id(project)
    return await asyncio.gather(
        client.get_merge_request(project_id, mr_iid),
        client.get_merge_request_changes(project_id, mr_iid),
        client.get_project(project_id),
    )


# ════════════════════════════════════════════════════════════════════
# Merge Requests
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_list_mrs(
    ctx: Context,
    project_id: Annotated[str, Field(description="Project ID, path or URL", min_length=1)],
    state: Annotated[str | None, Field(description="opened, closed, merged, or all")] = None,
    source_branch: Annotated[str | None, Field(description="Filter by source branch")] = None,
    target_branch: Annotated[str | None, Field(description="Filter by target branch")] = None,
    search: Annotated[str | None, Field(description="Search in title/description")] = None,
    page: Annotated[int | None, Field(description="Page number", ge=1)] = None,
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List merge requests for a project."""
    try:
        params: dict[str, Any] = {}
        if state:
            params["state"] = state
        if source_branch:
            params["source_branch"] = source_branch
        if target_branch:
            params["target_branch"] = target_branch
        if search:
            params["search"] = search
        if page:
            params["page"] = page
        if per_page:
            params["per_page"] = per_page
        client = _get_client(ctx)
        pid = await client.resolve_project_id(_parse_gitlab_project_url(project_id))
        data = await client.list_merge_requests(pid, params or None)
        return _paginated(data)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_get_mr(
    ctx: Context,
    project_id: Annotated[
        str, Field(description="Project ID, path, or a full merge request URL", min_length=1)
    ],
    mr_iid: Annotated[
        int | None, Field(description="Merge request IID (omit when passing a URL)")
    ] = None,
) -> str:
    """Get merge request details.

    Returns title, state, source/target branches, author and merge status.
    """
    try:
        project, iid = _resolve_mr_ref(project_id, mr_iid, None)
        client = _get_client(ctx)
        pid = await client.resolve_project_id(project)
        data = await client.get_merge_request(pid, iid)
        return _ok(data)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "merge_requests", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_mr_changes(
    ctx: Context,
    project_id: Annotated[
        str, Field(description="Project ID, path, or a full merge request URL", min_length=1)
    ],
    mr_iid: Annotated[
        int | None, Field(description="Merge request IID (omit when passing a URL)")
    ] = None,
) -> str:
    """Get file changes of a merge request. Returns list of diffs with old/new paths and content."""
    try:
        project, iid = _resolve_mr_ref(project_id, mr_iid, None)
        client = _get_client(ctx)
        pid = await client.resolve_project_id(project)
        data = await client.get_merge_request_changes(pid, iid)
        return _ok(data)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "notes", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def gitlab_write_mr_note(
    ctx: Context,
    note: Annotated[str, Field(description="Comment body (markdown)", min_length=1)],
    project_id: Annotated[
        str | None, Field(description="Project ID, path, or a full merge request URL")
    ] = None,
    mr_iid: Annotated[int | None, Field(description="Merge request IID")] = None,
    url: Annotated[str | None, Field(description="GitLab merge request URL")] = None,
) -> str:
    """Write a review note to a merge request.

    Depending on NOTIFICATION_MODE the note is posted to GitLab, sent to the
    chat webhook as a card, or both.
    """
    try:
        _check_write(ctx)
        project, iid = _resolve_mr_ref(project_id, mr_iid, url)
        client = _get_client(ctx)
        notifier = _get_webhook(ctx)
        mode = notifier.config.notification_mode
        pid = await client.resolve_project_id(project)

        result: dict[str, Any] = {"notification_mode": mode}
        if notifier.config.posts_to_gitlab:
            result["note"] = await client.add_mr_note(pid, iid, note)

        if notifier.config.posts_to_webhook:
            if not notifier.is_configured:
                result["webhook"] = "not_configured"
            else:
                mr_data, project_data = await asyncio.gather(
                    client.get_merge_request(pid, iid), client.get_project(pid)
                )
                mr = MergeRequest.model_validate(mr_data)
                card = notifier.build_mr_note_card(
                    project_name=project_data.get("name", str(project)),
                    mr_title=mr.title,
                    mr_url=mr.web_url,
                    note=note,
                    author=mr.author.name if mr.author else None,
                    mr_iid=mr.iid,
                )
                try:
                    await notifier.send_card(card)
                    result["webhook"] = "sent"
                except WebhookError as e:
                    if not notifier.config.posts_to_gitlab:
                        raise
                    # The GitLab note already went out; report the webhook failure alongside it.
                    logger.warning("Note posted to GitLab but webhook failed: %s", e)
                    result["webhook"] = "failed"
                    result["webhook_error"] = str(e)
        return _ok(result)
    except Exception as e:
        return _err(e)


# ════════════════════════════════════════════════════════════════════
# Repository: branches, files, commits
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "branches", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_list_branches(
    ctx: Context,
    project_id: Annotated[str, Field(description="Project ID, path or URL", min_length=1)],
    search: Annotated[str | None, Field(description="Filter by branch name")] = None,
    per_page: Annotated[
        int | None, Field(description="Results per page (1-100)", ge=1, le=100)
    ] = None,
) -> str:
    """List repository branches."""
    try:
        params: dict[str, Any] = {}
        if search:
            params["search"] = search
        if per_page:
            params["per_page"] = per_page
        client = _get_client(ctx)
        pid = await client.resolve_project_id(_parse_gitlab_project_url(project_id))
        data = await client.list_branches(pid, params or None)
        return _paginated(data)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "repository", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_get_file(
    ctx: Context,
    project_id: Annotated[str, Field(description="Project ID, path or URL", min_length=1)],
    file_path: Annotated[
        str, Field(description="Path of the file in the repository", min_length=1)
    ],
    ref: Annotated[str, Field(description="Branch, tag or commit SHA")] = "main",
) -> str:
    """Get the decoded content of a repository file."""
    try:
        client = _get_client(ctx)
        pid = await client.resolve_project_id(_parse_gitlab_project_url(project_id))
        content = await client.get_file_content(pid, file_path, ref)
        return _ok({"file_path": file_path, "ref": ref, "content": content})
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "commits", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_get_commit(
    ctx: Context,
    project_id: Annotated[
        str, Field(description="Project ID, path, or a full commit URL", min_length=1)
    ],
    sha: Annotated[str | None, Field(description="Commit SHA (omit when passing a URL)")] = None,
    include_diff: Annotated[bool, Field(description="Include file diffs")] = False,
) -> str:
    """Get a specific commit, optionally with diff."""
    try:
        project, sha = _resolve_commit_ref(project_id, sha)
        client = _get_client(ctx)
        pid = await client.resolve_project_id(project)
        commit = await client.get_commit(pid, sha)
        if include_diff:
            commit["diffs"] = await client.get_commit_diff(pid, sha)
        return _ok(commit)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "commits", "write"},
    annotations={"readOnlyHint": False, "openWorldHint": True},
)
async def gitlab_write_commit_note(
    ctx: Context,
    project_id: Annotated[
        str, Field(description="Project ID, path, or a full commit URL", min_length=1)
    ],
    note: Annotated[str, Field(description="Comment body (markdown)", min_length=1)],
    sha: Annotated[str | None, Field(description="Commit SHA (omit when passing a URL)")] = None,
) -> str:
    """Write a review comment on a commit."""
    try:
        _check_write(ctx)
        project, sha = _resolve_commit_ref(project_id, sha)
        client = _get_client(ctx)
        pid = await client.resolve_project_id(project)
        data = await client.add_commit_comment(pid, sha, note)
        return _ok(data)
    except Exception as e:
        return _err(e)


def _resolve_commit_ref(project_id: str, sha: str | None) -> tuple[str, str]:
    project, parsed_sha = _parse_gitlab_commit_url(project_id)
    if parsed_sha:
        return project, parsed_sha
    if not sha:
        msg = "Provide a commit SHA or a full GitLab commit URL"
        raise ReviewInputError(msg)
    return _parse_gitlab_project_url(project_id), sha


# ════════════════════════════════════════════════════════════════════
# Review rules
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"rules", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def get_code_review_rules(
    project_types: Annotated[
        list[str] | None,
        Field(description="Project types to get rules for, e.g. ['typescript', 'react']"),
    ] = None,
    file_paths: Annotated[
        list[str] | None,
        Field(description="File paths used to detect project types when none are given"),
    ] = None,
    file_name: Annotated[
        str | None, Field(description="Single file to get applicable rules for, e.g. 'App.tsx'")
    ] = None,
    category: Annotated[Category | None, Field(description="Filter rules by category")] = None,
    severity: Annotated[Severity | None, Field(description="Filter rules by severity")] = None,
    include_universal: Annotated[
        bool, Field(description="Include rules that apply to every file")
    ] = True,
) -> str:
    """Get code review rules for project types or files.

    Types are detected from file_paths when not given. With file_name the
    rules matching that file are returned, otherwise the types' default rules.
    """
    if project_types:
        types: tuple[str, ...] = tuple(project_types)
    elif file_paths:
        types = detect_project_types(file_paths)
        if types == ("*",):
            return (
                "❌ Could not detect project type from provided file paths. "
                "Please specify project types manually."
            )
    else:
        return format_project_type_choices()

    if file_name:
        rules = get_applicable_rules(file_name, types, include_universal)
    else:
        rules = get_default_rules_for_project_types(types)
    rules = filter_rules(rules, category, severity)

    lines = [f"🎯 **Detected Project Types:** {', '.join(project_type_name(t) for t in types)}"]
    if file_name:
        lines.append(f"📄 **File:** {file_name}")
    if category:
        lines.append(f"🏷️ **Category Filter:** {category}")
    if severity:
        lines.append(f"⚠️ **Severity Filter:** {severity}")
    return "\n\n".join(lines) + "\n\n" + format_rules(rules)


@mcp.tool(
    tags={"rules", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def list_all_code_review_rules(
    category: Annotated[Category | None, Field(description="Filter rules by category")] = None,
    severity: Annotated[Severity | None, Field(description="Filter rules by severity")] = None,
    project_type: Annotated[
        str | None, Field(description="Filter by project type, e.g. 'go'")
    ] = None,
) -> str:
    """List every rule in the catalog, optionally filtered."""
    rules = filter_rules(ALL_RULES.values(), category, severity)
    if project_type:
        rules = [r for r in rules if project_type in r.project_types or r.is_universal]

    lines = ["📚 **All Available Code Review Rules**"]
    if category:
        lines.append(f"🏷️ **Category Filter:** {category}")
    if severity:
        lines.append(f"⚠️ **Severity Filter:** {severity}")
    if project_type:
        lines.append(f"🎯 **Project Type Filter:** {project_type}")
    return "\n\n".join(lines) + "\n\n" + format_rules(rules)


@mcp.tool(
    tags={"rules", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def get_project_types(
    file_paths: Annotated[
        list[str] | None, Field(description="File paths to run type detection on")
    ] = None,
) -> str:
    """Describe the known project types, with detection results for file_paths."""
    if file_paths:
        return format_project_types(detect_project_types(file_paths), file_paths)
    return format_project_types()


@mcp.tool(
    tags={"rules", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": False},
)
def get_project_specific_rules(
    ctx: Context,
    project_identifier: Annotated[
        str | None,
        Field(description="Project path or ID; omit to list every configured project"),
    ] = None,
    include_builtin_rules: Annotated[
        bool, Field(description="Also list the default rules the project still applies")
    ] = True,
) -> str:
    """Show a project's rule configuration, or list all configured projects."""
    store = _get_store(ctx)
    if not project_identifier:
        return format_configured_projects(store.list_configured())

    config = store.lookup(_parse_gitlab_project_url(project_identifier))
    if config is None:
        return f"❌ No project-specific rules found for project: {project_identifier}"

    default_rules = None
    if include_builtin_rules and config.enable_default_rules:
        excluded = set(config.exclude_default_rules)
        default_rules = [
            rule
            for rule in get_default_rules_for_project_types(config.additional_project_types)
            if rule.id not in excluded
        ]
    return format_project_config(config, default_rules)


# ════════════════════════════════════════════════════════════════════
# Reviews
# ════════════════════════════════════════════════════════════════════


@mcp.tool(
    tags={"gitlab", "review", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_code_review(
    ctx: Context,
    project_id: Annotated[str | None, Field(description="Project ID or path")] = None,
    mr_iid: Annotated[int | None, Field(description="Merge request IID")] = None,
    url: Annotated[str | None, Field(description="GitLab merge request URL")] = None,
    mode: Annotated[
        ReviewMode,
        Field(description="standard, style, security, or professional-security"),
    ] = "standard",
    custom_rules: Annotated[
        list[dict[str, Any]] | None,
        Field(description="Extra rules for style/security modes (id, title, description, ...)"),
    ] = None,
) -> str:
    """Build a code review brief for a merge request.

    Fetches the MR and its diffs, detects project types, resolves the
    applicable rules (including any project-specific configuration) and
    returns a markdown report to review against.
    """
    try:
        project, iid = _resolve_mr_ref(project_id, mr_iid, url)
        mr, changes, project_data = await _load_merge_request(_get_client(ctx), project, iid)
        context = MergeRequestContext.from_api(mr, changes, project_data)
        store = _get_store(ctx)

        if mode == "standard":
            result = collect_merge_request_rules(context, store=store)
            logger.info(
                "Review of %s!%s: types=%s rules=%d project=%d file=%d",
                context.project_identifier,
                iid,
                ",".join(result.detected_types),
                len(result.all_rules),
                len(result.project_specific_rules),
                len(result.file_specific_rules),
            )
            return build_review_report(context, result)

        profile = PROFILES[mode]
        extra = [Rule.model_validate(raw) for raw in custom_rules or ()]
        profile_result = collect_profile_rules(profile, context, custom_rules=extra, store=store)
        logger.info(
            "%s review of %s!%s: types=%s rules=%d",
            profile.name,
            context.project_identifier,
            iid,
            ",".join(profile_result.detected_types),
            len(profile_result.all_rules),
        )
        return build_profile_report(context, profile_result, profile.title)
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "review", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_branch_review(
    ctx: Context,
    project_id: Annotated[str, Field(description="Project ID, path or URL", min_length=1)],
    branch: Annotated[str, Field(description="Branch to review")] = "main",
) -> str:
    """Build a review brief for a whole branch from its file tree."""
    try:
        client = _get_client(ctx)
        pid = await client.resolve_project_id(_parse_gitlab_project_url(project_id))
        branch_data, tree, project_data = await asyncio.gather(
            client.get_branch(pid, branch),
            client.list_branch_files(pid, branch),
            client.get_project(pid),
        )
        files = [TreeItem.model_validate(item) for item in tree]
        detected = detect_project_types([item.path for item in files])
        context = MergeRequestContext(
            project_id=pid,
            project_path=project_data.get("path_with_namespace"),
            project_name=project_data.get("name", ""),
            source_branch=branch,
        )
        result = collect_merge_request_rules(
            context, changed_files=(), detected_types=detected, store=_get_store(ctx)
        )
        return build_branch_report(
            Branch.model_validate(branch_data),
            files,
            context.project_name,
            result.detected_types,
            result.all_rules,
        )
    except Exception as e:
        return _err(e)


@mcp.tool(
    tags={"gitlab", "review", "read"},
    annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
)
async def gitlab_commit_review(
    ctx: Context,
    project_id: Annotated[
        str, Field(description="Project ID, path, or a full commit URL", min_length=1)
    ],
    sha: Annotated[str | None, Field(description="Commit SHA (omit when passing a URL)")] = None,
) -> str:
    """Build a review brief for a single commit and its diff."""
    try:
        project, sha = _resolve_commit_ref(project_id, sha)
        client = _get_client(ctx)
        pid = await client.resolve_project_id(project)
        commit_data, diff_data, project_data = await asyncio.gather(
            client.get_commit(pid, sha),
            client.get_commit_diff(pid, sha),
            client.get_project(pid),
        )
        commit = Commit.model_validate(commit_data)
        changes = tuple(Diff.model_validate(item) for item in diff_data or ())
        context = MergeRequestContext(
            project_id=pid,
            project_path=project_data.get("path_with_namespace"),
            project_name=project_data.get("name", ""),
            title=commit.title,
            description=commit.message,
            author=commit.author_name,
            changes=changes,
        )
        result = collect_merge_request_rules(
            context, detected_types=detect_merge_request_types(context), store=_get_store(ctx)
        )
        return build_commit_report(
            commit, changes, context.project_name, result.detected_types, result.all_rules
        )
    except Exception as e:
        return _err(e)
