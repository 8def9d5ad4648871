"""Prompt templates for changelog generation."""

from __future__ import annotations

SYSTEM_PROMPT = "You are an expert technical writer who turns git history into release notes."

_CHUNK_TEMPLATE = """\
You are an expert technical writer tasked with creating a short, user-friendly
Markdown changelog for "{project}" from raw git commit messages. Follow these
rules exactly:

1) Output must be valid Markdown.
2) Group items into the following sections when relevant: "🚀 Features",
   "🐛 Bug Fixes", "⚡ Improvements", "🔧 Chore".
3) Do not include commit hashes or long diffs. Keep entries as 1-2 concise
   sentences per grouped item.
4) If multiple commits are similar, combine them into one bullet.
5) Remove internal-only technical jargon; make language readable by non-devs.

Example Input:
- feat: add user auth flow — alice
- fix: correct token refresh bug — bob

Example Output:
## 🚀 Features
- **User authentication**: Add user authentication flow (alice)

## 🐛 Bug Fixes
- **Token refresh**: Fix token refresh in background sync (bob)

Now process the raw commits below and return only the Markdown changelog.

Raw commits:
{commits}

Format every bullet point exactly like this: **Title of Change**: Description of change. Do not use sub-bullets. Keep it clean.
"""


def build_chunk_prompt(lines: list[str], project: str = "project") -> str:
    return _CHUNK_TEMPLATE.format(project=project or "project", commits="\n".join(lines))
