"""
OpenLog — GitHub REST API client.

Endpoints used:
  GET  /user/repos?sort=updated      — repositories of the signed-in user
  GET  /repos/{owner}/{repo}/commits — recent commits, newest first
  POST /repos/{owner}/{repo}/releases — create a release
"""

from __future__ import annotations

from typing import Any

import httpx

from openlog.core.config import GitHubConfig
from openlog.errors import GitHubAPIError, ValidationError
from openlog.models.commit import Commit, Repo
from openlog.models.release import ReleaseModel
from openlog.utils.logging import logger, step_timer


def split_repo(full_name: str) -> tuple[str, str]:
    """Split ``owner/name``; raise ValidationError for anything else."""
    parts = (full_name or "").strip().strip("/").split("/")
    if len(parts) != 2 or not all(parts):
        raise ValidationError([f"Repository must look like 'owner/name', got {full_name!r}"])
    return parts[0], parts[1]


class GitHubClient:
    """Thin async wrapper around the GitHub REST API for one user token."""

    def __init__(
        self,
        token: str,
        config: GitHubConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.config = config
        self.base_url = config.api_base_url.rstrip("/")
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
        }

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
            resp = await client.request(
                method, f"{self.base_url}{path}", headers=self._headers(), **kwargs
            )
        if not resp.is_success:
            logger.error(
                "  GitHub %s returned %d: %s", operation, resp.status_code, resp.text[:500]
            )
            raise GitHubAPIError(operation, resp.status_code, resp.text)
        return resp.json()

    async def list_repos(self) -> list[Repo]:
        with step_timer("GitHub — list repositories"):
            data = await self._request(
                "GET", "/user/repos", "list repos",
                params={"sort": "updated", "per_page": self.config.repos_per_page},
            )
        return [Repo.from_github(item) for item in data]

    async def list_commits(self, full_name: str) -> list[Commit]:
        owner, name = split_repo(full_name)
        with step_timer(f"GitHub — list commits of {owner}/{name}"):
            data = await self._request(
                "GET", f"/repos/{owner}/{name}/commits", "list commits",
                params={"per_page": self.config.commits_per_page},
            )
        commits = [Commit.from_github(item) for item in data if item.get("sha")]
        logger.info("  Fetched %d commits for %s/%s", len(commits), owner, name)
        return commits

    async def create_release(self, release: ReleaseModel) -> dict[str, Any]:
        owner, name = split_repo(release.repo_full_name)
        with step_timer(f"GitHub — create release {release.tag_name}"):
            return await self._request(
                "POST", f"/repos/{owner}/{name}/releases", "create release",
                json=release.to_github_payload(),
            )
