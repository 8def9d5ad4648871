"""
OpenLog — Publish a generated changelog as a GitHub release.

Callers always get a PublishResult back and must check ``success``.
"""

from __future__ import annotations

import re

import httpx
from pydantic import ValidationError as PydanticValidationError

from openlog.core.config import GitHubConfig
from openlog.errors import GitHubAPIError, ValidationError
from openlog.github.client import GitHubClient, split_repo
from openlog.github.identity import ClerkIdentity
from openlog.models.release import PublishResult, ReleaseModel
from openlog.utils.logging import logger

DEFAULT_TITLE = "New Release"

_TITLE_PREFIX_RE = re.compile(r"^[#*]+\s*")


def derive_release_title(text: str) -> str:
    """Release title from the first line of the document, heading marks removed."""
    first = (text or "").split("\n", 1)[0]
    title = _TITLE_PREFIX_RE.sub("", first).replace("**", "").strip()
    return title or DEFAULT_TITLE


async def publish_release(
    identity: ClerkIdentity,
    github_config: GitHubConfig,
    user_id: str,
    repo_full_name: str,
    tag_name: str,
    title: str,
    body: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PublishResult:
    if not (tag_name or "").strip():
        return PublishResult(success=False, error="Please enter a version tag (e.g. v1.0.0)")
    try:
        split_repo(repo_full_name)
    except ValidationError as exc:
        return PublishResult(success=False, error=exc.message)

    token = await identity.get_oauth_token(user_id)
    if not token:
        return PublishResult(success=False, error="No GitHub token found")

    try:
        release = ReleaseModel(
            repo_full_name=repo_full_name.strip().strip("/"),
            tag_name=tag_name.strip(),
            title=(title or DEFAULT_TITLE)[:300],
            body=body,
        )
    except PydanticValidationError as exc:
        logger.warning("  Release payload rejected: %s", exc.errors()[0].get("msg"))
        return PublishResult(success=False, error="Release is too large or malformed")

    client = GitHubClient(token, github_config, transport=transport)
    try:
        data = await client.create_release(release)
    except GitHubAPIError as exc:
        logger.warning("  Release %s on %s rejected: %s", release.tag_name, repo_full_name, exc.code)
        return PublishResult(success=False, error="Failed to publish release. Check permissions.")
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("  Error creating GitHub release: %s", exc)
        return PublishResult(success=False, error="Failed to publish release")

    url = data.get("html_url") if isinstance(data, dict) else None
    logger.info("  Published %s on %s → %s", release.tag_name, repo_full_name, url)
    return PublishResult(success=True, url=url if isinstance(url, str) else None)
