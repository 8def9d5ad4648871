"""
OpenLog — Release publishing contracts.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ReleaseModel(BaseModel):
    """A GitHub release, built right before publishing and never persisted."""

    repo_full_name: str = Field(min_length=3, max_length=200, pattern=r"^[^/\s]+/[^/\s]+$")
    tag_name: str = Field(max_length=100)
    title: str = Field(default="New Release", max_length=300)
    body: str = Field(default="", max_length=125000)

    def to_github_payload(self) -> dict:
        return {
            "tag_name": self.tag_name,
            "name": self.title,
            "body": self.body,
            "draft": False,
            "prerelease": False,
        }


class PublishResult(BaseModel):
    """Outcome of a publish call. Callers check ``success``, nothing is raised."""

    success: bool
    url: str | None = None
    error: str | None = None
