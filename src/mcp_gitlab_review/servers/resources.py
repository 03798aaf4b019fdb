"""MCP resources exposing the review rule catalog."""

from __future__ import annotations

import json

from ..rules import ALL_RULES, PROJECT_TYPES, format_rules
from ..rules.catalog import get_rule
from ..rules.formatting import format_configured_projects, format_project_types
from ..rules.project_config import get_store
from .gitlab import mcp

# ════════════════════════════════════════════════════════════════════
# Rule catalog
# ════════════════════════════════════════════════════════════════════


@mcp.resource(
    "resource://rules/catalog",
    name="Code Review Rule Catalog",
    description="Every built-in code review rule, grouped by category",
    mime_type="text/markdown",
    tags={"rule", "catalog"},
)
def rule_catalog() -> str:
    """All catalog rules as markdown."""
    return format_rules(list(ALL_RULES.values()))


@mcp.resource(
    "resource://rules/catalog.json",
    name="Code Review Rule Catalog (JSON)",
    description="Every built-in code review rule as JSON",
    mime_type="application/json",
    tags={"rule", "catalog"},
)
def rule_catalog_json() -> str:
    return json.dumps([rule.to_dict() for rule in ALL_RULES.values()], indent=2, ensure_ascii=False)


@mcp.resource(
    "resource://rules/{rule_id}",
    name="Code Review Rule",
    description="A single catalog rule by id",
    mime_type="application/json",
    tags={"rule"},
)
def rule_by_id(rule_id: str) -> str:
    rule = get_rule(rule_id)
    if rule is None:
        msg = f"Unknown rule: {rule_id}"
        raise ValueError(msg)
    return json.dumps(rule.to_dict(), indent=2, ensure_ascii=False)


# ════════════════════════════════════════════════════════════════════
# Project types and project configuration
# ════════════════════════════════════════════════════════════════════


@mcp.resource(
    "resource://project-types",
    name="Project Types",
    description="Known project types with detection patterns and default rule counts",
    mime_type="text/markdown",
    tags={"project-type"},
)
def project_types() -> str:
    return format_project_types()


@mcp.resource(
    "resource://project-types.json",
    name="Project Types (JSON)",
    description="Known project types with detection patterns and default rule ids",
    mime_type="application/json",
    tags={"project-type"},
)
def project_types_json() -> str:
    return json.dumps(
        [definition.to_dict() for definition in PROJECT_TYPES.values()],
        indent=2,
        ensure_ascii=False,
    )


@mcp.resource(
    "resource://projects/configured",
    name="Configured Projects",
    description="Projects with project-specific review rules",
    mime_type="text/markdown",
    tags={"project-config"},
)
def configured_projects() -> str:
    return format_configured_projects(get_store().list_configured())
