"""Project-specific rule configuration.

Per-project overrides come from a built-in table overlaid by the first JSON
file found on a fixed search path (relative to the working directory)::

    {"projects": {"group/project": {"projectIdentifier": "group/project",
                                    "projectName": "...",
                                    "rules": [...]}}}

An external entry replaces the built-in entry with the same key as a whole.
A missing or broken file leaves the built-in table in effect.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import Field, ValidationError

from .models import Rule, RuleModel

logger = logging.getLogger(__name__)

CONFIG_SEARCH_PATHS: tuple[str, ...] = (
    "project-rules.config.json",
    "config/project-rules.json",
    ".mcp/project-rules.json",
)


class ProjectSpecificConfig(RuleModel):
    """Per-repository customization of the rule set."""

    project_identifier: str | int = Field(alias="projectIdentifier")
    project_name: str = Field(default="", alias="projectName")
    description: str | None = None
    enable_default_rules: bool = Field(default=True, alias="enableDefaultRules")
    exclude_default_rules: tuple[str, ...] = Field(default=(), alias="excludeDefaultRules")
    additional_project_types: tuple[str, ...] = Field(default=(), alias="additionalProjectTypes")
    rules: tuple[Rule, ...] = ()

    @property
    def display_name(self) -> str:
        return self.project_name or str(self.project_identifier)


@dataclass(frozen=True)
class ConfiguredProject:
    identifier: str | int
    name: str
    description: str | None
    rule_count: int


def _project(key: str, **fields: Any) -> ProjectSpecificConfig:
    return ProjectSpecificConfig(project_identifier=key, **fields)


BUILTIN_PROJECT_RULES: Mapping[str, ProjectSpecificConfig] = MappingProxyType(
    {
        "backend/api-service": _project(
            "backend/api-service",
            project_name="API Service",
            description="Backend API service",
            enable_default_rules=True,
            exclude_default_rules=("no-any-type",),
            additional_project_types=("backend", "node"),
            rules=(
                Rule(
                    id="api-rate-limiting",
                    title="API Rate Limiting",
                    description="Every public API endpoint must be protected by rate limiting",
                    severity="error",
                    category="security",
                    applicable_files=("**/controllers/*.js", "**/routes/*.js"),
                    project_types=("backend",),
                ),
                Rule(
                    id="api-auth-check",
                    title="API Authentication Check",
                    description=(
                        "Endpoints that require authentication must use the auth middleware"
                    ),
                    severity="error",
                    category="security",
                    applicable_files=("**/routes/*.js", "**/middleware/*.js"),
                    project_types=("backend",),
                ),
                Rule(
                    id="api-response-format",
                    title="API Response Format",
                    description="Keep API responses in the standard response envelope",
                    severity="warning",
                    category="maintainability",
                    applicable_files=("**/controllers/*.js",),
                    project_types=("backend",),
                ),
                Rule(
                    id="database-transaction",
                    title="Database Transaction Management",
                    description="Multiple related database writes must run in one transaction",
                    severity="error",
                    category="best-practice",
                    applicable_files=("**/services/*.js", "**/models/*.js"),
                    project_types=("backend",),
                ),
            ),
        ),
        "frontend/web-app": _project(
            "frontend/web-app",
            project_name="Web Application",
            description="Frontend web application",
            enable_default_rules=True,
            additional_project_types=("react", "typescript"),
            rules=(
                Rule(
                    id="component-folder-structure",
                    title="Component Folder Structure",
                    description=(
                        "Components use one folder layout: Component/index.tsx, "
                        "Component/styles.ts, Component/types.ts"
                    ),
                    severity="warning",
                    category="maintainability",
                    applicable_files=("**/components/**/*.tsx",),
                    project_types=("react",),
                ),
                Rule(
                    id="use-custom-hooks",
                    title="Use Custom Hooks",
                    description="Move complex state logic into custom hooks",
                    severity="info",
                    category="best-practice",
                    applicable_files=("**/components/**/*.tsx", "**/hooks/*.ts"),
                    project_types=("react",),
                ),
                Rule(
                    id="accessibility-requirements",
                    title="Accessibility Requirements",
                    description=(
                        "Interactive elements need ARIA labels and keyboard support"
                    ),
                    severity="warning",
                    category="best-practice",
                    applicable_files=("**/components/**/*.tsx",),
                    project_types=("react",),
                ),
            ),
        ),
        "microservices/payment-service": _project(
            "microservices/payment-service",
            project_name="Payment Service",
            description="Payment microservice",
            enable_default_rules=True,
            additional_project_types=("go", "backend"),
            rules=(
                Rule(
                    id="payment-security-audit",
                    title="Payment Security Audit",
                    description=(
                        "Payment code needs a strict security audit, including "
                        "encryption and log masking"
                    ),
                    severity="error",
                    category="security",
                    applicable_files=("**/payment/*.go", "**/transaction/*.go"),
                    project_types=("go",),
                ),
                Rule(
                    id="payment-idempotency",
                    title="Payment Idempotency",
                    description="Every payment operation must be idempotent",
                    severity="error",
                    category="best-practice",
                    applicable_files=("**/handlers/*.go", "**/services/*.go"),
                    project_types=("go",),
                ),
                Rule(
                    id="payment-logging",
                    title="Payment Transaction Logging",
                    description=(
                        "Every payment transaction is logged in full with sensitive "
                        "fields masked"
                    ),
                    severity="error",
                    category="security",
                    applicable_files=("**/payment/*.go", "**/logger/*.go"),
                    project_types=("go",),
                ),
            ),
        ),
        "blockchain/smart-contracts": _project(
            "blockchain/smart-contracts",
            project_name="Smart Contracts",
            description="Smart contract project",
            enable_default_rules=False,
            rules=(
                Rule(
                    id="reentrancy-guard",
                    title="Reentrancy Guard",
                    description="Every external call must be protected against reentrancy",
                    severity="error",
                    category="security",
                    applicable_files=("*.sol",),
                    project_types=("solidity",),
                ),
                Rule(
                    id="overflow-protection",
                    title="Integer Overflow Protection",
                    description="Use SafeMath or the built-in checks of Solidity 0.8+",
                    severity="error",
                    category="security",
                    applicable_files=("*.sol",),
                    project_types=("solidity",),
                ),
                Rule(
                    id="gas-optimization",
                    title="Gas Optimization",
                    description="Reduce storage writes and loop work to lower gas usage",
                    severity="warning",
                    category="performance",
                    applicable_files=("*.sol",),
                    project_types=("solidity",),
                ),
            ),
        ),
    }
)


def _parse_projects(raw: Any, source: Path) -> dict[str, ProjectSpecificConfig]:
    if not isinstance(raw, dict):
        logger.error("Project rules file %s: top level must be a JSON object", source)
        return {}
    projects = raw.get("projects") or {}
    if not isinstance(projects, dict):
        logger.error("Project rules file %s: 'projects' must be a JSON object", source)
        return {}

    parsed: dict[str, ProjectSpecificConfig] = {}
    for key, entry in projects.items():
        if not isinstance(entry, dict):
            logger.error("Project rules file %s: entry %r is not an object, skipped", source, key)
            continue
        data = {"projectIdentifier": key, **entry}
        try:
            parsed[key] = ProjectSpecificConfig.model_validate(data)
        except ValidationError as e:
            logger.error("Project rules file %s: entry %r is invalid, skipped: %s", source, key, e)
    return parsed


def load_external_rules(
    base_dir: Path, search_paths: Sequence[str | Path] = CONFIG_SEARCH_PATHS
) -> tuple[dict[str, ProjectSpecificConfig], Path | None]:
    """Read the first existing project rules file on the search path.

    Returns the parsed projects and the file they came from. Read or parse
    failures are logged and yield an empty mapping.
    """
    for candidate in search_paths:
        path = base_dir / candidate
        if not path.is_file():
            continue
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error("Failed to load project rules from %s: %s", path, e)
            return {}, None
        logger.info("Loaded project-specific rules from: %s", path)
        return _parse_projects(raw, path), path

    logger.info("No external project rules configuration found, using built-in defaults")
    return {}, None


class ProjectRulesStore:
    """Snapshot of project configurations: built-ins overlaid by the external file.

    The merged mapping is built locally and published as a read-only view in one
    assignment, so readers never see a half-loaded table.
    """

    def __init__(
        self,
        base_dir: str | Path | None = None,
        search_paths: Sequence[str | Path] = CONFIG_SEARCH_PATHS,
        builtin: Mapping[str, ProjectSpecificConfig] = BUILTIN_PROJECT_RULES,
    ) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.search_paths = tuple(search_paths)
        self.builtin = builtin
        self.source: Path | None = None
        self._projects: Mapping[str, ProjectSpecificConfig] | None = None

    def load(self) -> Mapping[str, ProjectSpecificConfig]:
        base_dir = self.base_dir if self.base_dir is not None else Path.cwd()
        external, source = load_external_rules(base_dir, self.search_paths)
        merged = {**self.builtin, **external}
        self.source = source
        self._projects = MappingProxyType(merged)
        return self._projects

    reload = load

    @property
    def projects(self) -> Mapping[str, ProjectSpecificConfig]:
        projects = self._projects
        if projects is None:
            projects = self.load()
        return projects

    def lookup(self, identifier: str | int) -> ProjectSpecificConfig | None:
        """Find a project by map key, then by its own ``projectIdentifier``."""
        projects = self.projects
        key = str(identifier)
        if key in projects:
            return projects[key]
        for config in projects.values():
            if str(config.project_identifier) == key:
                return config
        return None

    def list_configured(self) -> list[ConfiguredProject]:
        return [
            ConfiguredProject(
                identifier=config.project_identifier,
                name=config.project_name,
                description=config.description,
                rule_count=len(config.rules),
            )
            for config in self.projects.values()
        ]


_store = ProjectRulesStore()


def get_store() -> ProjectRulesStore:
    return _store


def set_store(store: ProjectRulesStore) -> ProjectRulesStore:
    """Replace the process-wide store and return the previous one."""
    global _store
    previous, _store = _store, store
    return previous


def get_project_specific_rules(identifier: str | int) -> ProjectSpecificConfig | None:
    return _store.lookup(identifier)


def list_configured_projects() -> list[ConfiguredProject]:
    return _store.list_configured()
