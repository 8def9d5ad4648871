"""
OpenLog — Async HTTP client for the OpenLog API.

Used by the generation session and the terminal client. Every call opens
its own connection; the user id header stands in for the gateway that
normally sets it.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Sequence

import httpx

from openlog.errors import APIRequestError, GenerationStreamError
from openlog.models.commit import Commit, Repo
from openlog.models.release import PublishResult
from openlog.utils.logging import logger

USER_HEADER = "X-Clerk-User-Id"


def _error_message(resp: httpx.Response) -> str:
    """Pull the short message out of a structured error body."""
    try:
        body = resp.json()
    except ValueError:
        return ""
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return detail.get("message", "")
    if isinstance(detail, str):
        return detail
    return ""


class OpenLogClient:
    def __init__(
        self,
        base_url: str,
        user_id: str | None = None,
        user_header: str = USER_HEADER,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.user_header = user_header
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {self.user_header: self.user_id} if self.user_id else {}

    def _client(self, timeout: httpx.Timeout | float | None = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._headers(),
            timeout=self.timeout if timeout is None else timeout,
            transport=self._transport,
        )

    async def _get_json(self, path: str, **params: Any) -> Any:
        async with self._client() as client:
            resp = await client.get(path, params=params or None)
        if not resp.is_success:
            raise APIRequestError(path, resp.status_code, _error_message(resp))
        return resp.json()

    async def list_repos(self) -> list[Repo]:
        return [Repo(**item) for item in await self._get_json("/v1/repos")]

    async def list_commits(self, repo: str) -> list[Commit]:
        return [Commit(**item) for item in await self._get_json("/v1/commits", repo=repo)]

    async def list_models(self) -> list[dict[str, Any]]:
        return (await self._get_json("/v1/models"))["models"]

    async def stream_generate(
        self,
        repo: str,
        commits: Sequence[Commit],
        model: str | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield raw body chunks of ``POST /v1/generate`` as they arrive."""
        payload = {
            "repo": repo,
            "commits": [c.model_dump() for c in commits],
            "model": model,
        }
        # no read deadline: chunks arrive as the model writes them
        timeout = httpx.Timeout(self.timeout, read=None)
        async with self._client(timeout) as client:
            async with client.stream("POST", "/v1/generate", json=payload) as resp:
                if not resp.is_success:
                    await resp.aread()
                    raise GenerationStreamError(
                        _error_message(resp) or f"Generation request failed with HTTP {resp.status_code}",
                        status=resp.status_code,
                    )
                async for chunk in resp.aiter_bytes():
                    yield chunk

    async def publish(self, repo: str, tag_name: str, title: str, body: str) -> PublishResult:
        payload = {"repo": repo, "tag_name": tag_name, "title": title, "body": body}
        try:
            async with self._client() as client:
                resp = await client.post("/v1/releases", json=payload)
        except httpx.HTTPError as exc:
            logger.error("  Publish request failed: %s", exc)
            return PublishResult(success=False, error="Failed to publish release")
        if not resp.is_success:
            return PublishResult(
                success=False,
                error=_error_message(resp) or f"Publish failed with HTTP {resp.status_code}",
            )
        return PublishResult(**resp.json())
