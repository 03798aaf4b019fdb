"""Rule resolution: which catalog rules apply to a file or set of project types."""

from __future__ import annotations

from collections.abc import Iterable

from .catalog import PROJECT_TYPES, RULES
from .models import Rule, sort_by_severity


def get_applicable_rules(
    file_name: str,
    project_types: Iterable[str],
    include_universal: bool = True,
) -> list[Rule]:
    """Rules that apply to *file_name* for the given project types.

    A rule qualifies when it targets one of the types (or all types) and either
    its file patterns match *file_name* or ``include_universal`` is set and the
    rule targets every file. The result is ordered error → warning → info,
    keeping catalog order within a severity.
    """
    types = set(project_types)
    applicable = [
        rule
        for rule in RULES.values()
        if rule.applies_to_types(types)
        and (rule.applies_to_file(file_name) or (include_universal and rule.matches_any_file))
    ]
    return sort_by_severity(applicable)


def get_default_rules_for_project_types(project_types: Iterable[str]) -> list[Rule]:
    """Union of each type's default rules; unknown types and rule ids are skipped."""
    rule_ids: dict[str, None] = {}
    for type_id in project_types:
        definition = PROJECT_TYPES.get(type_id)
        if definition is not None:
            rule_ids.update(dict.fromkeys(definition.default_rules))
    return [RULES[rule_id] for rule_id in rule_ids if rule_id in RULES]


def get_universal_rules() -> list[Rule]:
    """Rules declared for every project type."""
    return [rule for rule in get_applicable_rules("", ["*"], True) if rule.is_universal]


def filter_rules(
    rules: Iterable[Rule],
    category: str | None = None,
    severity: str | None = None,
) -> list[Rule]:
    return [
        rule
        for rule in rules
        if (category is None or rule.category == category)
        and (severity is None or rule.severity == severity)
    ]


def merge_rule_sets(*rule_sets: Iterable[Rule]) -> list[Rule]:
    """Merge rule sets by id, highest precedence first.

    The first set that provides an id wins, and the output keeps first-seen
    order across the sets as given.
    """
    merged: dict[str, Rule] = {}
    for rule_set in rule_sets:
        for rule in rule_set:
            merged.setdefault(rule.id, rule)
    return list(merged.values())
