"""
OpenLog — Structured error catalog.

Every error has a code, human message, suggested fix and the HTTP status
the API answers with. No raw exceptions leak to the client.
"""

from __future__ import annotations

import json
from typing import Any


class OpenLogError(Exception):
    """Base error with structured code + suggestion."""

    status_code = 422

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class ValidationError(OpenLogError):
    status_code = 400

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(
            code="VALIDATION_FAILED",
            message=f"Input validation failed: {'; '.join(errors)}",
            suggestion="Check the request fields and try again.",
            detail=errors,
        )


class NotAuthenticatedError(OpenLogError):
    status_code = 401

    def __init__(self):
        super().__init__(
            code="UNAUTHORIZED",
            message="Not logged in",
            suggestion="Sign in and retry.",
        )


class GitHubNotLinkedError(OpenLogError):
    status_code = 403

    def __init__(self):
        super().__init__(
            code="GITHUB_NOT_CONNECTED",
            message="No GitHub token found",
            suggestion="Link your GitHub account and retry.",
        )


class GitHubAPIError(OpenLogError):
    status_code = 502

    def __init__(self, operation: str, status: int, body: str = ""):
        self.upstream_status = status
        super().__init__(
            code=f"GITHUB_{operation.upper().replace(' ', '_')}_ERROR",
            message=f"GitHub {operation} returned HTTP {status}",
            suggestion=_github_suggestion(status),
            detail=_github_message(body),
        )


def _github_message(body: str) -> str | None:
    """GitHub's own short reason (e.g. "Not Found"), never the raw body."""
    try:
        data = json.loads(body) if body else None
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"][:200]
    return None


def _github_suggestion(status: int) -> str:
    if status in (401, 403):
        return "Check that your GitHub account grants access to this repository."
    if status == 404:
        return "Check the repository name (owner/name)."
    if status == 429:
        return "GitHub rate limit reached. Wait a moment and retry."
    return "Retry in a moment."


class LLMNotConfiguredError(OpenLogError):
    status_code = 503

    def __init__(self, model: str, env_var: str):
        super().__init__(
            code="LLM_NOT_CONFIGURED",
            message=f"No API key configured for model {model}",
            suggestion=f"Set {env_var} in backend/.env.",
        )


class LLMProviderError(OpenLogError):
    status_code = 502

    def __init__(self, model: str, message: str):
        super().__init__(
            code="LLM_PROVIDER_ERROR",
            message=f"Model {model} failed: {message}",
            suggestion="Retry generation or pick another model.",
        )


class GenerationStreamError(OpenLogError):
    status_code = 502

    def __init__(self, message: str, status: int | None = None):
        self.upstream_status = status
        super().__init__(
            code="GENERATION_FAILED",
            message=message,
            suggestion="Retry generation.",
        )


class APIRequestError(OpenLogError):
    """The OpenLog API answered a client call with a non-2xx status."""

    def __init__(self, path: str, status: int, message: str = ""):
        self.upstream_status = status
        super().__init__(
            code="API_REQUEST_FAILED",
            message=message or f"{path} returned HTTP {status}",
            suggestion="Sign in again if the session expired, then retry.",
        )
