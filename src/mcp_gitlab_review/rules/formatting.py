"""Markdown rendering of rules, project types and project configurations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .catalog import PROJECT_TYPES
from .models import Rule, sort_by_severity
from .project_config import ConfiguredProject, ProjectSpecificConfig

CATEGORY_EMOJIS = {
    "security": "🔒",
    "performance": "⚡",
    "maintainability": "🔧",
    "style": "🎨",
    "best-practice": "✨",
}

SEVERITY_EMOJIS = {
    "error": "🚨",
    "warning": "⚠️",
    "info": "ℹ️",
}


def category_emoji(category: str) -> str:
    return CATEGORY_EMOJIS.get(category, "📌")


def severity_emoji(severity: str) -> str:
    return SEVERITY_EMOJIS.get(severity, "📝")


def group_by_category(rules: Iterable[Rule]) -> dict[str, list[Rule]]:
    """Group rules by category (first-seen order), severity-sorted within a group."""
    grouped: dict[str, list[Rule]] = {}
    for rule in rules:
        grouped.setdefault(rule.category, []).append(rule)
    return {category: sort_by_severity(items) for category, items in grouped.items()}


def format_rules(rules: Sequence[Rule]) -> str:
    """Detailed listing used by the rule lookup tools."""
    if not rules:
        return "No applicable rules found."

    lines = [f"📋 **Code Review Rules ({len(rules)} total)**", ""]
    for category, category_rules in group_by_category(rules).items():
        lines.append(
            f"{category_emoji(category)} **{category.upper()}** ({len(category_rules)} rules)"
        )
        lines.append("")
        for rule in category_rules:
            files = ", ".join(rule.applicable_files) or "All"
            lines.append(f"  {severity_emoji(rule.severity)} **{rule.title}**")
            lines.append(f"     {rule.description}")
            lines.append(f"     🎯 Files: {files}")
            lines.append("")
    return "\n".join(lines) + "\n"


def format_rules_by_category(rules: Sequence[Rule], prefix: str = "") -> str:
    """Compact numbered listing used inside review reports."""
    suffix = f" ({prefix})" if prefix else ""
    lines: list[str] = []
    for category, category_rules in group_by_category(rules).items():
        lines.append(f"{category_emoji(category)} **{category.upper()}{suffix}**")
        for index, rule in enumerate(category_rules, start=1):
            lines.append(
                f"{index}. {severity_emoji(rule.severity)} **{rule.title}**: {rule.description}"
            )
        lines.append("")
    return "\n".join(lines) + ("\n" if lines else "")


def format_project_types(
    detected: Sequence[str] | None = None, analyzed: Sequence[str] | None = None
) -> str:
    lines = ["🏗️ **Available Project Types**", ""]
    if analyzed:
        shown = ", ".join(t for t in detected or () if t != "*") or "None detected"
        lines.append(f"🔍 **Detected Types for provided files:** {shown}")
        lines.append("")
        lines.append(f"📁 **Analyzed Files:** {', '.join(analyzed)}")
        lines.append("")
    for type_id, definition in PROJECT_TYPES.items():
        lines.append(f"🎯 **{definition.name}** ({type_id})")
        lines.append(f"   📝 {definition.description}")
        lines.append(f"   🔍 Detection patterns: {', '.join(definition.patterns)}")
        lines.append(f"   📋 Default rules: {len(definition.default_rules)} rules")
        lines.append("")
    return "\n".join(lines)


def format_project_type_choices() -> str:
    """Guidance listing shown when there is nothing to detect types from."""
    available = "\n".join(
        f"• **{definition.name}** ({type_id}): {definition.description}"
        for type_id, definition in PROJECT_TYPES.items()
    )
    return (
        f"🔍 **Available Project Types:**\n\n{available}\n\n"
        "Please specify projectTypes parameter or provide filePaths for auto-detection."
    )


def format_project_config(
    config: ProjectSpecificConfig, default_rules: Sequence[Rule] | None = None
) -> str:
    lines = [
        "📋 **Project-Specific Rules Configuration**",
        "",
        f"🎯 **Project**: {config.display_name}",
        f"📌 **Identifier**: {config.project_identifier}",
    ]
    if config.description:
        lines.append(f"📝 **Description**: {config.description}")
    lines.append("")
    lines.append("⚙️ **Configuration**:")
    lines.append(f"- Enable Default Rules: {'✅' if config.enable_default_rules else '❌'}")
    if config.exclude_default_rules:
        lines.append(f"- Excluded Default Rules: {', '.join(config.exclude_default_rules)}")
    if config.additional_project_types:
        lines.append(f"- Additional Project Types: {', '.join(config.additional_project_types)}")
    lines.append("")
    lines.append(f"📚 **Project-Specific Rules** ({len(config.rules)} rules):")
    lines.append("")
    output = "\n".join(lines) + "\n" + format_rules(config.rules)

    if default_rules is not None:
        output += f"\n📚 **Applicable Default Rules** ({len(default_rules)} rules):\n\n"
        output += format_rules(default_rules)
    return output


def format_configured_projects(projects: Sequence[ConfiguredProject]) -> str:
    if not projects:
        return (
            "❌ No project-specific rules configured. Add a project-rules.config.json "
            "file to configure project rules."
        )
    lines = [
        "📋 **Configured Projects with Specific Rules**",
        "",
        f"Total: {len(projects)} projects",
        "",
    ]
    for project in projects:
        lines.append(f"🎯 **{project.name or project.identifier}**")
        lines.append(f"   📌 Identifier: {project.identifier}")
        if project.description:
            lines.append(f"   📝 Description: {project.description}")
        lines.append(f"   📚 Rules: {project.rule_count} project-specific rules")
        lines.append("")
    lines.append(
        "💡 Use `get_project_specific_rules` with a projectIdentifier to see detailed "
        "rules for a specific project."
    )
    return "\n".join(lines)
