"""Project-type detection from file paths and merge request text."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING

from .catalog import PROJECT_TYPES
from .matching import WILDCARD, matches_any

if TYPE_CHECKING:
    from .context import MergeRequestContext
    from ..models.common import Diff

# Extension → implied types. A file may imply several types (.tsx is both).
EXTENSION_TYPES: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    ((".ts", ".tsx"), ("typescript",)),
    ((".jsx", ".tsx"), ("react",)),
    ((".js", ".mjs"), ("javascript", "node")),
    ((".go",), ("go",)),
    ((".py",), ("python",)),
    ((".rs",), ("rust",)),
    ((".sh", ".bash", ".zsh"), ("sh",)),
    ((".sql",), ("database",)),
)

# Well-known file names, matched as substrings of the path.
FILE_NAME_TYPES: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("package.json", "node_modules"), ("node",)),
    (("tsconfig.json",), ("typescript",)),
    (("go.mod", "go.sum"), ("go",)),
    (("requirements.txt", "pyproject.toml", "setup.py"), ("python",)),
    (("Cargo.toml", "Cargo.lock"), ("rust",)),
    (("Dockerfile", "docker-compose"), ("backend",)),
    (("migration", "schema"), ("database",)),
)

KEYWORD_TYPES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("typescript", "tsx", "ts"), "typescript"),
    (("react", "jsx"), "react"),
    (("node", "npm", "nodejs"), "node"),
    (("go", "golang"), "go"),
    (("python", "py", "pip"), "python"),
    (("rust", "rs", "cargo"), "rust"),
    (("shell", "sh", "bash", "zsh"), "sh"),
    (("backend", "api", "server"), "backend"),
    (("database", "sql", "migration", "migrations"), "database"),
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def _ordered(found: set[str]) -> tuple[str, ...]:
    """Catalog order first, then unknown tags alphabetically."""
    known = [type_id for type_id in PROJECT_TYPES if type_id in found]
    extra = sorted(found.difference(PROJECT_TYPES))
    result = tuple(known + extra)
    return result or (WILDCARD,)


def detect_by_patterns(file_paths: Iterable[str]) -> set[str]:
    """Types whose catalog detection patterns match any of *file_paths*."""
    paths = list(file_paths)
    return {
        type_id
        for type_id, definition in PROJECT_TYPES.items()
        if any(matches_any(definition.patterns, path) for path in paths)
    }


def detect_by_extension(file_paths: Iterable[str]) -> set[str]:
    found: set[str] = set()
    for path in file_paths:
        for extensions, types in EXTENSION_TYPES:
            if path.endswith(extensions):
                found.update(types)
    return found


def detect_by_file_name(file_paths: Iterable[str]) -> set[str]:
    found: set[str] = set()
    for path in file_paths:
        for names, types in FILE_NAME_TYPES:
            if any(name in path for name in names):
                found.update(types)
    return found


def detect_by_keywords(text: str | None) -> set[str]:
    """Case-insensitive keyword detection; keywords must match a whole token."""
    if not text:
        return set()
    tokens = set(_TOKEN_RE.findall(text.lower()))
    return {type_id for keywords, type_id in KEYWORD_TYPES if tokens.intersection(keywords)}


def detect_project_types(
    file_paths: Sequence[str], text_context: str | None = None
) -> tuple[str, ...]:
    """Infer project types from file paths and optional free text.

    The result is the union of catalog pattern matches, extension-implied
    types and keyword matches. It is never empty: when nothing matches the
    single wildcard tag is returned so universal rules still apply.
    """
    found = detect_by_patterns(file_paths)
    found |= detect_by_extension(file_paths)
    found |= detect_by_keywords(text_context)
    return _ordered(found)


def detect_merge_request_types(
    context: MergeRequestContext, changed_files: Sequence[Diff] | None = None
) -> tuple[str, ...]:
    """Infer project types for a merge request.

    Uses the MR text (project name, source branch, title, description) and the
    extension and file-name tables over the changed paths.
    """
    changes = context.changes if changed_files is None else changed_files
    paths = [change.path for change in changes if change.path]

    found = detect_by_keywords(context.analysis_text)
    found |= detect_by_extension(paths)
    found |= detect_by_file_name(paths)
    if "react" in found and any(path.endswith(".tsx") for path in paths):
        found.add("typescript")
    return _ordered(found)
