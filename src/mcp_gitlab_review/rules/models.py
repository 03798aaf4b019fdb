"""Rule and project-type models for the code review rule engine."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .matching import WILDCARD, matches_any

Severity = Literal["error", "warning", "info"]
Category = Literal["security", "performance", "maintainability", "style", "best-practice"]

SEVERITIES: tuple[str, ...] = ("error", "warning", "info")
CATEGORIES: tuple[str, ...] = (
    "security",
    "performance",
    "maintainability",
    "style",
    "best-practice",
)

SEVERITY_ORDER: dict[str, int] = {name: rank for rank, name in enumerate(SEVERITIES)}


class RuleModel(BaseModel):
    """Immutable base for rule-engine models; JSON keys are camelCase."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Rule(RuleModel):
    """A single code review checkpoint."""

    id: str = Field(min_length=1)
    title: str
    description: str = ""
    severity: Severity
    category: Category
    applicable_files: tuple[str, ...] = Field(default=(), alias="applicableFiles")
    project_types: tuple[str, ...] = Field(default=(), alias="projectTypes")

    @property
    def severity_rank(self) -> int:
        return SEVERITY_ORDER[self.severity]

    @property
    def is_universal(self) -> bool:
        """True when the rule is declared for every project type."""
        return WILDCARD in self.project_types

    @property
    def matches_any_file(self) -> bool:
        return not self.applicable_files or WILDCARD in self.applicable_files

    def applies_to_types(self, project_types: Iterable[str]) -> bool:
        if not self.project_types:
            return True
        wanted = set(project_types)
        return any(pt == WILDCARD or pt in wanted for pt in self.project_types)

    def applies_to_file(self, file_name: str) -> bool:
        if not self.applicable_files:
            return True
        return matches_any(self.applicable_files, file_name)


class ProjectTypeDefinition(RuleModel):
    """A technology or role that can be detected from changed files."""

    type_id: str = Field(alias="typeId")
    name: str
    description: str = ""
    patterns: tuple[str, ...] = ()
    default_rules: tuple[str, ...] = Field(default=(), alias="defaultRules")


def sort_by_severity(rules: Iterable[Rule]) -> list[Rule]:
    """Stable sort: errors first, then warnings, then info."""
    return sorted(rules, key=lambda rule: rule.severity_rank)
