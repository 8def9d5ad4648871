"""
OpenLog — Commit classification, grouping and chunking.

Conventional-commit prefixes (``feat:``, ``fix(scope):``) decide which
changelog section a commit lands in. Everything here is pure.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Sequence, TypeVar

if TYPE_CHECKING:
    from openlog.models.commit import Commit

T = TypeVar("T")

KNOWN_TYPES = ("feat", "fix", "perf", "docs", "style", "refactor", "test", "chore", "misc")

COMMIT_TYPES = ("feat", "fix", "chore", "misc")

_PREFIX_RE = re.compile(r"^\s*([a-zA-Z]+)(?:\(|:)")


def extract_type_from_message(message: str) -> str:
    """Return the lowercased conventional-commit prefix, or ``misc``."""
    m = _PREFIX_RE.match(message or "")
    if m:
        return m.group(1).lower()
    return "misc"


def classify_commit(message: str) -> str:
    """Map a commit message onto the coarse feat/fix/chore/misc category."""
    t = extract_type_from_message(message)
    return t if t in COMMIT_TYPES else "misc"


def normalize_type(t: str | None) -> str:
    if not t:
        return "misc"
    lower = t.lower()
    return lower if lower in KNOWN_TYPES else "misc"


def section_type(commit: "Commit") -> str:
    """Fine-grained type of a commit, read from its message."""
    return normalize_type(extract_type_from_message(commit.message))


def group_commits_by_type(commits: Sequence["Commit"]) -> dict[str, list["Commit"]]:
    """
    Bucket commits by their fine-grained type.

    Every known type is present as a key, in canonical order, so callers
    can walk the sections deterministically.
    """
    groups: dict[str, list["Commit"]] = {k: [] for k in KNOWN_TYPES}
    for c in commits:
        groups[section_type(c)].append(c)
    return groups


def format_commit_line(commit: "Commit") -> str:
    """Prompt line for a single commit: ``- perf: message — author``."""
    return f"- {section_type(commit)}: {commit.message} — {commit.author_name or 'unknown'}"


def chunk_list(items: Sequence[T], size: int) -> list[list[T]]:
    if size <= 0:
        return [list(items)]
    return [list(items[i:i + size]) for i in range(0, len(items), size)]
