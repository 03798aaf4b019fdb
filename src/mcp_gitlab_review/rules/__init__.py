"""Code review rule engine: catalog, detection, resolution and aggregation."""

from .aggregation import (
    PROFILES,
    ProfileResolutionResult,
    ReviewProfile,
    RuleResolutionResult,
    collect_general_security_rules,
    collect_merge_request_rules,
    collect_professional_security_rules,
    collect_profile_rules,
    collect_style_rules,
)
from .catalog import ALL_RULES, PROFILE_RULES, PROJECT_TYPES, RULES
from .context import MergeRequestContext
from .detection import detect_merge_request_types, detect_project_types
from .formatting import format_rules, format_rules_by_category
from .matching import WILDCARD
from .models import ProjectTypeDefinition, Rule
from .project_config import (
    ConfiguredProject,
    ProjectRulesStore,
    ProjectSpecificConfig,
    get_project_specific_rules,
    list_configured_projects,
)
from .resolver import (
    filter_rules,
    get_applicable_rules,
    get_default_rules_for_project_types,
    merge_rule_sets,
)

__all__ = [
    "ALL_RULES",
    "PROFILES",
    "PROFILE_RULES",
    "PROJECT_TYPES",
    "RULES",
    "WILDCARD",
    "ConfiguredProject",
    "MergeRequestContext",
    "ProfileResolutionResult",
    "ProjectRulesStore",
    "ProjectSpecificConfig",
    "ProjectTypeDefinition",
    "ReviewProfile",
    "Rule",
    "RuleResolutionResult",
    "collect_general_security_rules",
    "collect_merge_request_rules",
    "collect_professional_security_rules",
    "collect_profile_rules",
    "collect_style_rules",
    "detect_merge_request_types",
    "detect_project_types",
    "filter_rules",
    "format_rules",
    "format_rules_by_category",
    "get_applicable_rules",
    "get_default_rules_for_project_types",
    "get_project_specific_rules",
    "list_configured_projects",
    "merge_rule_sets",
]
