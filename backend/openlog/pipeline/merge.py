"""
OpenLog — Post-processing merge of per-chunk changelog outputs.

Each chunk is summarised independently, so the concatenated output repeats
section headings and sometimes bullets. The merge folds sections with the
same heading together, normalises bullet glyphs and drops duplicates.
"""

from __future__ import annotations

import re

_HEADING_RE = re.compile(r"^##(?!#)\s*(.*)")

# Leading bullet runs such as "- • ", "* ", "•", "◦ - "
_BULLET_RE = re.compile(
    r"^(?:[-*]\s+|[•◦°‣․∙·○●]\s*)+"
)

_INTRO = "__intro__"
_UNTITLED = "Other"


def normalize_bullet(line: str) -> str:
    """Collapse any leading bullet run to a single ``- ``."""
    trimmed = line.strip()
    if _BULLET_RE.match(trimmed):
        return "- " + _BULLET_RE.sub("", trimmed, count=1)
    return trimmed


def split_sections(text: str) -> dict[str, list[str]]:
    """Map heading text to its non-blank lines, in first-seen order."""
    sections: dict[str, list[str]] = {_INTRO: []}
    current = _INTRO
    for line in text.splitlines():
        m = _HEADING_RE.match(line)
        if m:
            current = m.group(1).strip() or _UNTITLED
            sections.setdefault(current, [])
        elif line.strip():
            sections[current].append(line)
    return sections


def post_process_merge(text: str) -> str:
    out: list[str] = []
    for heading, items in split_sections(text).items():
        if not items:
            continue
        if heading == _INTRO:
            out.append("\n".join(items))
            continue

        seen: set[str] = set()
        kept: list[str] = []
        for item in items:
            line = normalize_bullet(item)
            if not line or line == "-" or line in seen:
                continue
            seen.add(line)
            kept.append(line)
        if not kept:
            continue
        out.append(f"## {heading}")
        out.extend(kept)
    return "\n\n".join(out)
