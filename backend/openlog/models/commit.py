"""
OpenLog — Commit and repository models.

Commits are fetched once per repository load and never mutated. The
category is derived from the message, never trusted from upstream.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from openlog.pipeline.grouping import classify_commit

CommitType = Literal["feat", "fix", "chore", "misc"]


class Commit(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str = Field(min_length=1, max_length=64)
    message: str
    date: str = ""
    author_name: str = "unknown"
    type: CommitType = "misc"

    @model_validator(mode="before")
    @classmethod
    def _derive_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "message" in data:
            data = dict(data)
            data["type"] = classify_commit(str(data["message"]))
        return data

    @classmethod
    def from_github(cls, payload: dict[str, Any]) -> "Commit":
        """Build a Commit from a GitHub ``/repos/{repo}/commits`` item."""
        inner = payload.get("commit") or {}
        author = inner.get("author") or {}
        return cls(
            hash=payload.get("sha", ""),
            message=inner.get("message", ""),
            date=author.get("date") or "",
            author_name=author.get("name") or "unknown",
        )

    @property
    def subject(self) -> str:
        """First line of the commit message."""
        return self.message.split("\n", 1)[0]


class Repo(BaseModel):
    id: int
    name: str
    full_name: str
    private: bool = False
    html_url: str = ""
    description: str | None = None
    updated_at: str = ""
    language: str | None = None
    owner_login: str = ""

    @classmethod
    def from_github(cls, payload: dict[str, Any]) -> "Repo":
        owner = payload.get("owner") or {}
        return cls(
            id=payload["id"],
            name=payload["name"],
            full_name=payload["full_name"],
            private=payload.get("private", False),
            html_url=payload.get("html_url", ""),
            description=payload.get("description"),
            updated_at=payload.get("updated_at", ""),
            language=payload.get("language"),
            owner_login=owner.get("login", ""),
        )
