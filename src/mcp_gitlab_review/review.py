"""Markdown review reports for merge requests, branches and commits."""

from __future__ import annotations

from collections.abc import Sequence

from .models.common import Diff
from .models.merge_requests import MergeRequest
from .models.repositories import Branch, Commit, TreeItem
from .rules.aggregation import ProfileResolutionResult, RuleResolutionResult
from .rules.catalog import project_type_name
from .rules.context import MergeRequestContext
from .rules.formatting import format_rules_by_category
from .rules.models import Rule

MAX_TREE_FILES = 20

STATUS_LABELS = {
    "added": "🆕 Added",
    "deleted": "🗑️ Deleted",
    "renamed": "📝 Renamed",
    "modified": "✏️ Modified",
}

REVIEW_CHECKLIST = (
    "Logic is correct and does what the MR says",
    "Project conventions and best practices are followed",
    "Errors are handled",
    "No obvious performance problems",
    "Input validation and access control are in place",
    "Tests cover the change",
    "Docs and comments are clear",
    "No duplicated code that should be refactored",
)

STYLE_CHECKLIST = (
    "Names are consistent and descriptive",
    "Functions are short and do one thing",
    "No copy-pasted blocks",
    "APIs follow the existing conventions",
    "Formatting matches the project's linters",
)

SECURITY_CHECKLIST = (
    "All external input is validated",
    "No secrets or credentials in code or logs",
    "Queries and shell commands are not built from raw input",
    "Authentication and authorization are checked on every path",
    "Dependencies have no known vulnerabilities",
    "Errors do not leak internal details",
)

PROFILE_CHECKLISTS = {
    "style": STYLE_CHECKLIST,
    "security": SECURITY_CHECKLIST,
    "professional-security": SECURITY_CHECKLIST,
}

NEXT_STEPS = (
    "Post the review with `gitlab_write_mr_note` (or `gitlab_write_commit_note` for a commit).",
    "Cite the rules you applied next to each finding.",
)


def _user_label(name: str | None, username: str | None) -> str:
    return f"{name or 'Unknown'} (@{username or 'unknown'})"


def _bullets(items: Sequence[str], mark: str = "-") -> str:
    return "\n".join(f"{mark} {item}" for item in items)


def _type_names(types: Sequence[str]) -> str:
    return ", ".join(project_type_name(t) for t in types)


def format_merge_request(mr: MergeRequest) -> str:
    status = "🚧 Draft" if mr.draft or mr.work_in_progress else mr.state
    conflicts = "⚠️ Has conflicts" if mr.has_conflicts else "✅ No conflicts"
    author = mr.author
    assignees = ", ".join(_user_label(a.name, a.username) for a in mr.assignees) or "None"
    reviewers = ", ".join(_user_label(r.name, r.username) for r in mr.reviewers) or "None"
    lines = [
        f"📋 **Merge Request #{mr.iid}**",
        f"📌 **Title**: {mr.title}",
        f"📊 **Status**: {status}",
        f"🔀 **Branch**: {mr.source_branch} → {mr.target_branch}",
        f"👤 **Author**: {_user_label(author.name, author.username) if author else 'Unknown'}",
        f"👥 **Assignees**: {assignees}",
        f"👁️ **Reviewers**: {reviewers}",
        f"🔄 **Merge Status**: {mr.detailed_merge_status or mr.merge_status or 'unknown'}",
        conflicts,
        f"💬 **Comments**: {mr.user_notes_count}",
        f"👍 **Upvotes**: {mr.upvotes} | 👎 **Downvotes**: {mr.downvotes}",
        f"📅 **Created**: {mr.created_at}",
        f"📝 **Updated**: {mr.updated_at}",
        f"🔗 **URL**: {mr.web_url}",
        "",
        "**Description**:",
        mr.description or "No description provided",
    ]
    return "\n".join(lines)


def format_changes(
    changes: Sequence[Diff],
    *,
    max_diff_lines: int = 20,
    max_files: int = 10,
    show_full: bool = False,
) -> str:
    """Summarize file diffs; *show_full* disables both the file and line limits."""
    if not changes:
        return "No file changes found"

    shown = changes if show_full else changes[:max_files]
    out = [f"📁 **File Changes Summary** ({len(changes)} files total)", ""]
    for change in shown:
        out.append(f"{STATUS_LABELS[change.status]} **{change.path}**")
        if change.renamed_file and change.old_path != change.new_path:
            out.append(f"   📂 {change.old_path} → {change.new_path}")
        if change.diff:
            diff_lines = change.diff.split("\n")
            if show_full or len(diff_lines) <= max_diff_lines:
                out.append(f"```diff\n{change.diff}\n```")
            else:
                preview = "\n".join(diff_lines[:max_diff_lines])
                out.append(f"```diff\n{preview}\n```")
                out.append(f"   *... {len(diff_lines) - max_diff_lines} more lines*")
        out.append("")

    remaining = len(changes) - len(shown)
    if remaining > 0:
        out.append(f"📋 **{remaining} more files not shown**")
    return "\n".join(out)


def _mr_header(
    context: MergeRequestContext, title: str, detected_types: Sequence[str]
) -> list[str]:
    lines = [
        f"🔍 **{title}**",
        "",
        "📋 **Merge Request**",
        f"- **Title**: {context.title}",
        f"- **Branch**: {context.source_branch} → {context.target_branch}",
        f"- **Author**: {context.author or 'Unknown'}",
        f"- **State**: {context.state}",
        f"- **Project**: {context.project_name}",
        "",
    ]
    if detected_types and "*" not in detected_types:
        lines.extend([f"🎯 **Detected project types**: {_type_names(detected_types)}", ""])
    return lines


def _project_config_section(result: RuleResolutionResult | ProfileResolutionResult) -> list[str]:
    config = result.project_config
    if not result.has_project_config or config is None:
        return []
    lines = [f"🎯 **Project configuration**: {config.display_name}"]
    if config.description:
        lines.append(f"📝 {config.description}")
    lines.append("")
    if result.project_specific_rules:
        lines.append(
            f"📋 **Project-specific rules** ({len(result.project_specific_rules)} rules):"
        )
        lines.append("")
        lines.append(format_rules_by_category(result.project_specific_rules, "project"))
    return lines


def _closing(checklist: Sequence[str]) -> list[str]:
    return [
        "📝 **Review checklist**:",
        "",
        _bullets(checklist, "- ✅"),
        "",
        "🔧 **Next steps**:",
        _bullets(NEXT_STEPS),
    ]


def build_review_report(context: MergeRequestContext, result: RuleResolutionResult) -> str:
    """Full review brief: MR summary, diffs, and every applicable rule."""
    lines = _mr_header(context, "Merge Request Code Review", result.detected_types)

    if context.changes:
        lines.append("🔍 **Diff**")
        lines.append(format_changes(context.changes, show_full=True))
        lines.append("")
        if result.file_specific_rules:
            paths = context.file_paths
            lines.append(f"📁 **Rules from changed files** ({len(paths)} files):")
            lines.append("Changed files: " + ", ".join(f"`{p}`" for p in paths))
            lines.append("")

    lines.extend(_project_config_section(result))

    if result.all_rules:
        lines.append(f"📚 **Applicable review rules** ({len(result.all_rules)} rules):")
        lines.append("")
        lines.append(format_rules_by_category(result.all_rules))

    lines.extend(_closing(REVIEW_CHECKLIST))
    return "\n".join(lines)


def build_profile_report(
    context: MergeRequestContext, result: ProfileResolutionResult, title: str
) -> str:
    """Focused review brief for one profile (style or security)."""
    lines = _mr_header(context, title, result.detected_types)

    if context.changes:
        lines.append("🔍 **Diff**")
        lines.append(format_changes(context.changes, show_full=True))
        lines.append("")

    lines.extend(_project_config_section(result))

    if result.custom_rules:
        lines.append(f"🧩 **Custom rules** ({len(result.custom_rules)} rules):")
        lines.append("")
        lines.append(format_rules_by_category(result.custom_rules, "custom"))

    if result.all_rules:
        lines.append(f"📚 **{title} rules** ({len(result.all_rules)} rules):")
        lines.append("")
        lines.append(format_rules_by_category(result.all_rules))
    else:
        lines.append("No rules from this profile apply to the detected project types.")
        lines.append("")

    lines.extend(_closing(PROFILE_CHECKLISTS.get(result.profile, REVIEW_CHECKLIST)))
    return "\n".join(lines)


def build_branch_report(
    branch: Branch,
    files: Sequence[TreeItem],
    project_name: str,
    detected_types: Sequence[str],
    rules: Sequence[Rule],
) -> str:
    commit = branch.commit or Commit()
    lines = [
        "🌿 **Branch Code Review**",
        "",
        "📋 **Branch**",
        f"- **Name**: {branch.name}",
        f"- **Project**: {project_name}",
        f"- **Latest commit**: {commit.short_id} - {commit.title}",
        f"- **Author**: {commit.author_name}",
        f"- **Committed**: {commit.committed_date}",
        "",
        "📂 **Overview**",
        f"- **Files**: {len(files)}",
        f"- **Detected project types**: {_type_names(detected_types)}",
        "",
        "📁 **Files**",
        _bullets([f"{item.path} ({item.mode})" for item in files[:MAX_TREE_FILES]]),
    ]
    if len(files) > MAX_TREE_FILES:
        lines.append(f"... {len(files) - MAX_TREE_FILES} more files")
    lines.append("")
    if rules:
        lines.append(f"📚 **Applicable review rules** ({len(rules)} rules):")
        lines.append("")
        lines.append(format_rules_by_category(rules))
    lines.extend(_closing(REVIEW_CHECKLIST))
    return "\n".join(lines)


def build_commit_report(
    commit: Commit,
    changes: Sequence[Diff],
    project_name: str,
    detected_types: Sequence[str],
    rules: Sequence[Rule],
) -> str:
    lines = [
        "📝 **Commit Code Review**",
        "",
        "📋 **Commit**",
        f"- **SHA**: {commit.short_id} ({commit.id})",
        f"- **Project**: {project_name}",
        f"- **Title**: {commit.title}",
        f"- **Author**: {commit.author_name} <{commit.author_email}>",
        f"- **Committed**: {commit.committed_date}",
        f"- **Committer**: {commit.committer_name} <{commit.committer_email}>",
        "",
        "📝 **Message**:",
        commit.message or "No message",
        "",
    ]
    if detected_types and "*" not in detected_types:
        lines.extend([f"🎯 **Detected project types**: {_type_names(detected_types)}", ""])
    lines.append("🔍 **Diff**")
    lines.append(format_changes(changes))
    lines.append("")
    if rules:
        lines.append(f"📚 **Applicable review rules** ({len(rules)} rules):")
        lines.append("")
        lines.append(format_rules_by_category(rules))
    lines.extend(_closing(REVIEW_CHECKLIST))
    return "\n".join(lines)
