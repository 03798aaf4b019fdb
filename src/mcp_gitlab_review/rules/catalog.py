"""Built-in rule catalog and project-type definitions.

Both tables are read-only mappings built once at import time. Iteration order
is the declaration order below and is part of the observable output.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from .matching import WILDCARD
from .models import ProjectTypeDefinition, Rule

PROFESSIONAL_RULE_PREFIX = "professional-"

_TS_FILES = ("*.ts", "*.tsx")
_REACT_FILES = ("*.tsx", "*.jsx")
_RUST_FILES = ("*.rs",)
_SH_FILES = ("*.sh", "*.bash")
_ALL = (WILDCARD,)

_RULES: tuple[Rule, ...] = (
    # ── TypeScript / JavaScript ─────────────────────────────────
    Rule(
        id="ts-strict-mode",
        title="TypeScript Strict Mode",
        description="Ensure TypeScript strict mode is enabled for better type safety",
        severity="warning",
        category="best-practice",
        applicable_files=_TS_FILES,
        project_types=("typescript", "react", "node"),
    ),
    Rule(
        id="no-any-type",
        title="Avoid any Type",
        description='Avoid using "any" type, prefer specific types or unknown',
        severity="warning",
        category="maintainability",
        applicable_files=_TS_FILES,
        project_types=("typescript", "react", "node"),
    ),
    Rule(
        id="async-await-best-practice",
        title="Async/Await Best Practices",
        description="Use proper error handling with async/await, avoid mixing with .then()",
        severity="warning",
        category="best-practice",
        applicable_files=("*.ts", "*.tsx", "*.js", "*.jsx"),
        project_types=("typescript", "javascript", "react", "node"),
    ),
    Rule(
        id="environment-variables",
        title="Environment Variables Validation",
        description="Validate environment variables at startup and provide defaults",
        severity="error",
        category="security",
        applicable_files=("*.ts", "*.js"),
        project_types=("node", "backend"),
    ),
    # ── React ───────────────────────────────────────────────────
    Rule(
        id="react-hooks-dependencies",
        title="React Hooks Dependencies",
        description=(
            "Ensure all dependencies are included in useEffect, useMemo, "
            "useCallback dependency arrays"
        ),
        severity="error",
        category="best-practice",
        applicable_files=_REACT_FILES,
        project_types=("react",),
    ),
    Rule(
        id="react-key-prop",
        title="React Key Prop",
        description="Provide unique key prop for list items, avoid using array index",
        severity="warning",
        category="performance",
        applicable_files=_REACT_FILES,
        project_types=("react",),
    ),
    Rule(
        id="react-component-naming",
        title="React Component Naming",
        description="Use PascalCase for React components and meaningful names",
        severity="info",
        category="style",
        applicable_files=_REACT_FILES,
        project_types=("react",),
    ),
    # ── Go ──────────────────────────────────────────────────────
    Rule(
        id="go-error-handling",
        title="Go Error Handling",
        description="Always handle errors explicitly, avoid ignoring them with _",
        severity="error",
        category="best-practice",
        applicable_files=("*.go",),
        project_types=("go",),
    ),
    Rule(
        id="go-context-usage",
        title="Go Context Usage",
        description="Pass context as first parameter in functions that need it",
        severity="warning",
        category="best-practice",
        applicable_files=("*.go",),
        project_types=("go",),
    ),
    Rule(
        id="go-interface-naming",
        title="Go Interface Naming",
        description="Interface names should end with -er when possible (e.g., Reader, Writer)",
        severity="info",
        category="style",
        applicable_files=("*.go",),
        project_types=("go",),
    ),
    # ── Python ──────────────────────────────────────────────────
    Rule(
        id="python-type-hints",
        title="Python Type Hints",
        description="Use type hints for function parameters and return values",
        severity="warning",
        category="maintainability",
        applicable_files=("*.py",),
        project_types=("python",),
    ),
    Rule(
        id="python-docstrings",
        title="Python Docstrings",
        description="Provide docstrings for public functions and classes",
        severity="info",
        category="maintainability",
        applicable_files=("*.py",),
        project_types=("python",),
    ),
    Rule(
        id="python-exception-handling",
        title="Python Exception Handling",
        description="Catch specific exceptions instead of bare except clauses",
        severity="warning",
        category="best-practice",
        applicable_files=("*.py",),
        project_types=("python",),
    ),
    # ── Rust ────────────────────────────────────────────────────
    Rule(
        id="rust-error-handling",
        title="Rust Error Handling",
        description=(
            "Use Result<T, E> for recoverable errors and proper error propagation with ?"
        ),
        severity="error",
        category="best-practice",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-option-handling",
        title="Rust Option Handling",
        description="Prefer pattern matching or combinator methods over unwrap() for Option types",
        severity="warning",
        category="best-practice",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-ownership-borrowing",
        title="Rust Ownership and Borrowing",
        description="Use borrowing (&) instead of moving when possible, avoid unnecessary clones",
        severity="warning",
        category="performance",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-lifetime-management",
        title="Rust Lifetime Management",
        description=(
            "Use explicit lifetime annotations when necessary and prefer static "
            "lifetimes for constants"
        ),
        severity="warning",
        category="maintainability",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-memory-safety",
        title="Rust Memory Safety",
        description=(
            "Avoid unsafe code unless absolutely necessary, document unsafe blocks thoroughly"
        ),
        severity="error",
        category="security",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-concurrency",
        title="Rust Concurrency Safety",
        description=(
            "Use thread-safe types (Arc, Mutex) for shared data, prefer channels for communication"
        ),
        severity="warning",
        category="security",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-performance-clones",
        title="Rust Performance - Avoid Unnecessary Clones",
        description="Minimize clone() calls, use references or move semantics appropriately",
        severity="warning",
        category="performance",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-naming-conventions",
        title="Rust Naming Conventions",
        description=(
            "Use snake_case for functions/variables, PascalCase for types, "
            "SCREAMING_SNAKE_CASE for constants"
        ),
        severity="info",
        category="style",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-module-organization",
        title="Rust Module Organization",
        description="Organize code into logical modules, use pub carefully for API design",
        severity="info",
        category="maintainability",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-clippy-lints",
        title="Rust Clippy Lints",
        description=(
            "Address Clippy warnings and suggestions, use #[allow] sparingly with justification"
        ),
        severity="warning",
        category="best-practice",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-documentation",
        title="Rust Documentation",
        description=(
            "Provide documentation comments (///) for public APIs, include examples in doc tests"
        ),
        severity="info",
        category="maintainability",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    Rule(
        id="rust-testing",
        title="Rust Testing",
        description=(
            "Write unit tests with #[test], integration tests in tests/ directory, use #[cfg(test)]"
        ),
        severity="warning",
        category="best-practice",
        applicable_files=_RUST_FILES,
        project_types=("rust",),
    ),
    # ── Shell ───────────────────────────────────────────────────
    Rule(
        id="sh-shebang",
        title="Shell Script Shebang",
        description="Always include shebang (#!/bin/bash or #!/bin/sh) at the top of shell scripts",
        severity="warning",
        category="best-practice",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-error-handling",
        title="Shell Script Error Handling",
        description=(
            'Use "set -e" to exit on error, "set -u" for undefined variables, '
            "and proper error checking"
        ),
        severity="error",
        category="best-practice",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-variable-quoting",
        title="Shell Variable Quoting",
        description=(
            'Always quote variables to prevent word splitting and globbing: "$VAR" not $VAR'
        ),
        severity="warning",
        category="security",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-command-substitution",
        title="Shell Command Substitution",
        description="Use $(command) instead of `command` for better readability and nesting",
        severity="info",
        category="style",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-function-naming",
        title="Shell Function Naming",
        description="Use snake_case for function names and avoid spaces in function declarations",
        severity="info",
        category="style",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-array-handling",
        title="Shell Array Handling",
        description='Use "${array[@]}" to properly expand arrays, avoid unquoted array expansions',
        severity="warning",
        category="best-practice",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    Rule(
        id="sh-portability",
        title="Shell Script Portability",
        description="Avoid bash-specific features if using #!/bin/sh, use POSIX-compliant syntax",
        severity="warning",
        category="maintainability",
        applicable_files=("*.sh",),
        project_types=("sh",),
    ),
    Rule(
        id="sh-debugging",
        title="Shell Script Debugging",
        description=(
            'Consider using "set -x" for debugging, but remove or make conditional in production'
        ),
        severity="info",
        category="best-practice",
        applicable_files=_SH_FILES,
        project_types=("sh",),
    ),
    # ── Universal security ──────────────────────────────────────
    Rule(
        id="no-hardcoded-secrets",
        title="No Hardcoded Secrets",
        description="Avoid hardcoding API keys, passwords, or sensitive data in source code",
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="input-validation",
        title="Input Validation",
        description="Validate and sanitize all user inputs before processing",
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="sql-injection-prevention",
        title="SQL Injection Prevention",
        description="Use parameterized queries or ORM methods to prevent SQL injection",
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=("backend", "database"),
    ),
    # ── Performance ─────────────────────────────────────────────
    Rule(
        id="large-file-handling",
        title="Large File Handling",
        description="Use streaming for large file operations instead of loading into memory",
        severity="warning",
        category="performance",
        applicable_files=_ALL,
        project_types=("backend", "node"),
    ),
    Rule(
        id="database-n-plus-one",
        title="Database N+1 Query Problem",
        description="Avoid N+1 query problems by using eager loading or batch queries",
        severity="warning",
        category="performance",
        applicable_files=_ALL,
        project_types=("backend", "database"),
    ),
)

# Only reachable through review profiles; kept out of standard resolution.
_PROFILE_RULES: tuple[Rule, ...] = (
    # ── Code style and structure ────────────────────────────────
    Rule(
        id="consistent-naming",
        title="Consistent Naming",
        description=(
            "Names should follow the language convention and describe intent; "
            "avoid abbreviations and single-letter names outside tight loops"
        ),
        severity="info",
        category="best-practice",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="code-duplication",
        title="Code Duplication",
        description="Extract repeated logic into shared functions instead of copy-pasting blocks",
        severity="warning",
        category="best-practice",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="function-length",
        title="Function Length",
        description=(
            "Keep functions short and focused on one task; split functions that "
            "need scrolling to read"
        ),
        severity="info",
        category="best-practice",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="api-design-consistency",
        title="API Design Consistency",
        description=(
            "Public interfaces should use consistent parameter order, naming and "
            "error reporting across modules"
        ),
        severity="warning",
        category="best-practice",
        applicable_files=_ALL,
        project_types=("backend", "node", "go", "python", "rust", "typescript"),
    ),
    # ── Professional security audit ─────────────────────────────
    Rule(
        id="professional-ssrf-prevention",
        title="Server-Side Request Forgery",
        description=(
            "Outbound requests built from user input must use an allow-list of "
            "hosts and schemes and must not reach internal addresses"
        ),
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="professional-deserialization-safety",
        title="Unsafe Deserialization",
        description=(
            "Never deserialize untrusted data with formats that can instantiate "
            "arbitrary types (pickle, Java serialization, YAML full loader)"
        ),
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="professional-authz-bypass",
        title="Authorization Bypass",
        description=(
            "Every object access must verify ownership or role; check for IDOR "
            "and missing authorization on new endpoints"
        ),
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="professional-crypto-misuse",
        title="Cryptography Misuse",
        description=(
            "Use vetted algorithms and modes, random IVs and salts, and constant-time "
            "comparison for secrets; no MD5/SHA1 for security purposes"
        ),
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="professional-path-traversal",
        title="Path Traversal",
        description=(
            "File paths derived from input must be normalized and confined to an "
            "allowed base directory"
        ),
        severity="error",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
    Rule(
        id="professional-supply-chain",
        title="Dependency Supply Chain",
        description=(
            "New dependencies must be pinned, come from trusted registries and be "
            "checked for known vulnerabilities"
        ),
        severity="warning",
        category="security",
        applicable_files=_ALL,
        project_types=_ALL,
    ),
)

_PROJECT_TYPES: tuple[ProjectTypeDefinition, ...] = (
    ProjectTypeDefinition(
        type_id="typescript",
        name="TypeScript",
        description="TypeScript project",
        patterns=("tsconfig.json", "*.ts", "*.tsx"),
        default_rules=(
            "ts-strict-mode",
            "no-any-type",
            "async-await-best-practice",
            "no-hardcoded-secrets",
            "input-validation",
        ),
    ),
    ProjectTypeDefinition(
        type_id="javascript",
        name="JavaScript",
        description="JavaScript project",
        patterns=("package.json", "*.js", "*.jsx"),
        default_rules=("async-await-best-practice", "no-hardcoded-secrets", "input-validation"),
    ),
    ProjectTypeDefinition(
        type_id="react",
        name="React",
        description="React application",
        patterns=("package.json", "src/**/*.tsx", "src/**/*.jsx", "react"),
        default_rules=(
            "ts-strict-mode",
            "no-any-type",
            "react-hooks-dependencies",
            "react-key-prop",
            "react-component-naming",
            "no-hardcoded-secrets",
        ),
    ),
    ProjectTypeDefinition(
        type_id="node",
        name="Node.js",
        description="Node.js application",
        patterns=("package.json", "server.js", "app.js", "index.js"),
        default_rules=(
            "async-await-best-practice",
            "environment-variables",
            "no-hardcoded-secrets",
            "input-validation",
            "large-file-handling",
        ),
    ),
    ProjectTypeDefinition(
        type_id="go",
        name="Go",
        description="Go application",
        patterns=("go.mod", "go.sum", "*.go"),
        default_rules=(
            "go-error-handling",
            "go-context-usage",
            "go-interface-naming",
            "no-hardcoded-secrets",
            "input-validation",
        ),
    ),
    ProjectTypeDefinition(
        type_id="python",
        name="Python",
        description="Python application",
        patterns=("requirements.txt", "pyproject.toml", "*.py"),
        default_rules=(
            "python-type-hints",
            "python-docstrings",
            "python-exception-handling",
            "no-hardcoded-secrets",
            "input-validation",
        ),
    ),
    ProjectTypeDefinition(
        type_id="rust",
        name="Rust",
        description="Rust application",
        patterns=("Cargo.toml", "Cargo.lock", "*.rs", "src/main.rs", "src/lib.rs"),
        default_rules=(
            "rust-error-handling",
            "rust-option-handling",
            "rust-ownership-borrowing",
            "rust-memory-safety",
            "rust-concurrency",
            "rust-performance-clones",
            "rust-clippy-lints",
            "rust-testing",
            "no-hardcoded-secrets",
            "input-validation",
        ),
    ),
    ProjectTypeDefinition(
        type_id="sh",
        name="Shell Script",
        description="Shell/Bash scripting",
        patterns=("*.sh", "*.bash", "*.zsh", "bashrc", "zshrc"),
        default_rules=(
            "sh-shebang",
            "sh-error-handling",
            "sh-variable-quoting",
            "sh-command-substitution",
            "no-hardcoded-secrets",
            "input-validation",
        ),
    ),
    ProjectTypeDefinition(
        type_id="backend",
        name="Backend",
        description="Backend application",
        patterns=("api", "server", "backend"),
        default_rules=(
            "environment-variables",
            "no-hardcoded-secrets",
            "input-validation",
            "sql-injection-prevention",
            "large-file-handling",
            "database-n-plus-one",
        ),
    ),
    ProjectTypeDefinition(
        type_id="database",
        name="Database",
        description="Database related code",
        patterns=("*.sql", "migrations", "schema"),
        default_rules=("sql-injection-prevention", "database-n-plus-one"),
    ),
)

RULES: Mapping[str, Rule] = MappingProxyType({rule.id: rule for rule in _RULES})
PROFILE_RULES: Mapping[str, Rule] = MappingProxyType({rule.id: rule for rule in _PROFILE_RULES})
ALL_RULES: Mapping[str, Rule] = MappingProxyType({**RULES, **PROFILE_RULES})
PROJECT_TYPES: Mapping[str, ProjectTypeDefinition] = MappingProxyType(
    {definition.type_id: definition for definition in _PROJECT_TYPES}
)


def get_rule(rule_id: str) -> Rule | None:
    return ALL_RULES.get(rule_id)


def project_type_name(type_id: str) -> str:
    """Display name for a type tag; unknown tags are returned unchanged."""
    definition = PROJECT_TYPES.get(type_id)
    return definition.name if definition else type_id
