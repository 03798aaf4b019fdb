"""Merge request rule aggregation.

Rules come from four sources, merged by id with fixed precedence:
project-specific > file-specific > default > universal.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from ..models.common import Diff
from .catalog import ALL_RULES, PROFESSIONAL_RULE_PREFIX
from .context import MergeRequestContext
from .detection import detect_merge_request_types
from .models import Rule, sort_by_severity
from .project_config import ProjectRulesStore, ProjectSpecificConfig, get_store
from .resolver import (
    get_applicable_rules,
    get_default_rules_for_project_types,
    get_universal_rules,
    merge_rule_sets,
)

STYLE_ID_MARKERS: tuple[str, ...] = (
    "naming",
    "duplication",
    "function-length",
    "api-design",
    "style",
)


@dataclass(frozen=True)
class RuleResolutionResult:
    all_rules: tuple[Rule, ...]
    project_specific_rules: tuple[Rule, ...]
    file_specific_rules: tuple[Rule, ...]
    has_project_config: bool
    project_config: ProjectSpecificConfig | None
    # Detected types plus any the project configuration adds.
    detected_types: tuple[str, ...]


@dataclass(frozen=True)
class ProfileResolutionResult:
    profile: str
    all_rules: tuple[Rule, ...]
    project_specific_rules: tuple[Rule, ...]
    custom_rules: tuple[Rule, ...]
    has_project_config: bool
    project_config: ProjectSpecificConfig | None
    detected_types: tuple[str, ...]


def _without(rules: Iterable[Rule], excluded: set[str]) -> list[Rule]:
    return [rule for rule in rules if rule.id not in excluded]


def _enlarge_types(
    detected_types: Sequence[str], config: ProjectSpecificConfig | None
) -> tuple[str, ...]:
    types = list(detected_types)
    if config is not None:
        types.extend(t for t in config.additional_project_types if t not in types)
    return tuple(types)


def _resolve_inputs(
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None,
    detected_types: Sequence[str] | None,
    store: ProjectRulesStore | None,
) -> tuple[Sequence[Diff], tuple[str, ...], ProjectSpecificConfig | None]:
    changes = context.changes if changed_files is None else changed_files
    if detected_types is None:
        detected_types = detect_merge_request_types(context, changes)
    identifier = context.project_identifier
    config = None
    if identifier is not None:
        config = (store or get_store()).lookup(identifier)
    return changes, tuple(detected_types), config


def collect_merge_request_rules(
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None = None,
    detected_types: Sequence[str] | None = None,
    *,
    store: ProjectRulesStore | None = None,
) -> RuleResolutionResult:
    """Resolve the full rule set for a merge request.

    *changed_files* defaults to ``context.changes``; *detected_types* defaults
    to MR-level detection. The input sequence is never modified; the enlarged
    type set is returned as ``detected_types``.

    A project with ``enableDefaultRules`` off drops the default and
    file-specific layers entirely instead of only skipping exclusions;
    universal rules and the project's own rules still apply.
    """
    changes, types, config = _resolve_inputs(context, changed_files, detected_types, store)

    default_rules = get_default_rules_for_project_types(types)
    file_specific_rules = merge_rule_sets(
        *(
            get_applicable_rules(change.file_name, types, False)
            for change in changes
            if change.path
        )
    )

    project_specific_rules: list[Rule] = []
    excluded: set[str] = set()
    if config is not None:
        project_specific_rules = list(config.rules)
        enlarged = _enlarge_types(types, config)
        if enlarged != types:
            types = enlarged
            default_rules = get_default_rules_for_project_types(types)
        if not config.enable_default_rules:
            default_rules = []
            file_specific_rules = []
        excluded = set(config.exclude_default_rules)

    universal_rules = get_universal_rules()
    if excluded:
        default_rules = _without(default_rules, excluded)
        file_specific_rules = _without(file_specific_rules, excluded)
        universal_rules = _without(universal_rules, excluded)

    all_rules = merge_rule_sets(
        project_specific_rules, file_specific_rules, default_rules, universal_rules
    )
    return RuleResolutionResult(
        all_rules=tuple(all_rules),
        project_specific_rules=tuple(project_specific_rules),
        file_specific_rules=tuple(file_specific_rules),
        has_project_config=config is not None,
        project_config=config,
        detected_types=types,
    )


# ════════════════════════════════════════════════════════════════════
# Review profiles
# ════════════════════════════════════════════════════════════════════


def is_professional_rule(rule: Rule) -> bool:
    return rule.id.startswith(PROFESSIONAL_RULE_PREFIX)


def is_style_rule(rule: Rule) -> bool:
    if rule.category == "style":
        return True
    return rule.category == "best-practice" and any(m in rule.id for m in STYLE_ID_MARKERS)


def is_security_rule(rule: Rule) -> bool:
    return rule.category == "security"


def is_general_security_rule(rule: Rule) -> bool:
    return is_security_rule(rule) and not is_professional_rule(rule)


@dataclass(frozen=True)
class ReviewProfile:
    """A narrowed view of the catalog used for a focused review."""

    name: str
    title: str
    selects: Callable[[Rule], bool]
    # Filter for the project's own rules and caller-supplied custom rules.
    accepts_project_rule: Callable[[Rule], bool]


STYLE_PROFILE = ReviewProfile(
    name="style",
    title="Code Style Optimization",
    selects=is_style_rule,
    accepts_project_rule=is_style_rule,
)
GENERAL_SECURITY_PROFILE = ReviewProfile(
    name="security",
    title="General Security Scan",
    selects=is_general_security_rule,
    accepts_project_rule=is_security_rule,
)
PROFESSIONAL_SECURITY_PROFILE = ReviewProfile(
    name="professional-security",
    title="Professional Security Scan",
    selects=is_professional_rule,
    accepts_project_rule=is_security_rule,
)

PROFILES: dict[str, ReviewProfile] = {
    profile.name: profile
    for profile in (STYLE_PROFILE, GENERAL_SECURITY_PROFILE, PROFESSIONAL_SECURITY_PROFILE)
}


def profile_candidate_rules(profile: ReviewProfile, project_types: Iterable[str]) -> list[Rule]:
    """Catalog rules selected by *profile* that apply to any of *project_types*."""
    types = set(project_types)
    return sort_by_severity(
        rule for rule in ALL_RULES.values() if profile.selects(rule) and rule.applies_to_types(types)
    )


def collect_profile_rules(
    profile: ReviewProfile,
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None = None,
    detected_types: Sequence[str] | None = None,
    custom_rules: Sequence[Rule] | None = None,
    *,
    store: ProjectRulesStore | None = None,
) -> ProfileResolutionResult:
    """Resolve rules for a focused review profile.

    Precedence is project-specific > custom > catalog candidates. The project's
    exclusions and extra types apply as in the full resolution.
    """
    _, types, config = _resolve_inputs(context, changed_files, detected_types, store)
    types = _enlarge_types(types, config)
    candidates = profile_candidate_rules(profile, types)
    custom = [rule for rule in custom_rules or () if profile.accepts_project_rule(rule)]

    project_specific_rules: list[Rule] = []
    if config is not None:
        project_specific_rules = [r for r in config.rules if profile.accepts_project_rule(r)]
        if not config.enable_default_rules:
            candidates = [rule for rule in candidates if rule.is_universal]
        candidates = _without(candidates, set(config.exclude_default_rules))

    all_rules = merge_rule_sets(project_specific_rules, custom, candidates)
    return ProfileResolutionResult(
        profile=profile.name,
        all_rules=tuple(all_rules),
        project_specific_rules=tuple(project_specific_rules),
        custom_rules=tuple(custom),
        has_project_config=config is not None,
        project_config=config,
        detected_types=types,
    )


def collect_style_rules(
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None = None,
    detected_types: Sequence[str] | None = None,
    custom_rules: Sequence[Rule] | None = None,
    *,
    store: ProjectRulesStore | None = None,
) -> ProfileResolutionResult:
    return collect_profile_rules(
        STYLE_PROFILE, context, changed_files, detected_types, custom_rules, store=store
    )


def collect_general_security_rules(
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None = None,
    detected_types: Sequence[str] | None = None,
    custom_rules: Sequence[Rule] | None = None,
    *,
    store: ProjectRulesStore | None = None,
) -> ProfileResolutionResult:
    return collect_profile_rules(
        GENERAL_SECURITY_PROFILE, context, changed_files, detected_types, custom_rules, store=store
    )


def collect_professional_security_rules(
    context: MergeRequestContext,
    changed_files: Sequence[Diff] | None = None,
    detected_types: Sequence[str] | None = None,
    custom_rules: Sequence[Rule] | None = None,
    *,
    store: ProjectRulesStore | None = None,
) -> ProfileResolutionResult:
    return collect_profile_rules(
        PROFESSIONAL_SECURITY_PROFILE,
        context,
        changed_files,
        detected_types,
        custom_rules,
        store=store,
    )
