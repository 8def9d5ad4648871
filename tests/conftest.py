"""Shared test configuration and fixtures for the OpenLog test suite."""

import json
import sys
from pathlib import Path

import httpx
import pytest

# Add backend to Python path so imports work
backend_dir = str(Path(__file__).parent.parent / "backend")
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from openlog.core.config import ClerkConfig, GitHubConfig  # noqa: E402
from openlog.errors import LLMProviderError  # noqa: E402
from openlog.github.identity import ClerkIdentity  # noqa: E402

USER_ID = "user_123"
UNLINKED_USER_ID = "user_nolink"
GITHUB_TOKEN = "gho_testtoken"


def github_commit(sha: str, message: str, author: str = "alice", date: str = "2026-01-02T10:00:00Z") -> dict:
    return {
        "sha": sha,
        "commit": {"message": message, "author": {"name": author, "date": date}},
        "html_url": f"https://github.com/acme/widgets/commit/{sha}",
        "author": {"login": author, "avatar_url": ""},
    }


COMMITS = [
    github_commit("a1" * 20, "feat(api): add export endpoint"),
    github_commit("b2" * 20, "fix: handle empty payloads", author="bob"),
    github_commit("c3" * 20, "chore: bump deps"),
    github_commit("d4" * 20, "Merge branch 'main' into dev", author="carol"),
]

REPOS = [
    {
        "id": 1,
        "name": "widgets",
        "full_name": "acme/widgets",
        "private": False,
        "html_url": "https://github.com/acme/widgets",
        "description": "Widgets",
        "updated_at": "2026-01-02T10:00:00Z",
        "language": "Python",
        "owner": {"login": "acme", "avatar_url": ""},
    }
]


class GitHubStub:
    """Records requests and answers like the GitHub REST API."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.release_status = 201
        self.fail_transport = False

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        if request.method == "GET" and path == "/user/repos":
            return httpx.Response(200, json=REPOS)
        if request.method == "GET" and path == "/repos/acme/widgets/commits":
            return httpx.Response(200, json=COMMITS)
        if request.method == "POST" and path == "/repos/acme/widgets/releases":
            if self.release_status >= 300:
                return httpx.Response(self.release_status, json={"message": "Validation Failed"})
            tag = json.loads(request.content)["tag_name"]
            return httpx.Response(
                201, json={"html_url": f"https://github.com/acme/widgets/releases/tag/{tag}"}
            )
        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class ClerkStub:
    """Answers the Clerk oauth_access_tokens lookup."""

    def __init__(self):
        self.calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        assert request.headers["Authorization"] == "Bearer sk_test"
        if f"/v1/users/{USER_ID}/" in request.url.path:
            return httpx.Response(200, json=[{"token": GITHUB_TOKEN, "provider": "oauth_github"}])
        return httpx.Response(200, json=[])


class FakeLLM:
    """Stands in for ChangelogLLM; streams canned text word by word."""

    def __init__(self, outputs: list[str] | None = None, fail_on: tuple[int, ...] = ()):
        self.outputs = outputs or []
        self.fail_on = fail_on
        self.prompts: list[str] = []

    def resolve_model(self, model):
        return model or "fake-model"

    def ensure_configured(self, model):
        return None

    async def stream_text(self, prompt, model):
        self.prompts.append(prompt)
        index = len(self.prompts) - 1
        if index in self.fail_on:
            raise LLMProviderError(model, "boom")
        if index < len(self.outputs):
            text = self.outputs[index]
        else:
            text = f"## 🚀 Features\n- **Chunk {index}**: Something new"
        for part in text.split(" "):
            yield part + " "


@pytest.fixture
def github_stub():
    return GitHubStub()


@pytest.fixture
def clerk_stub():
    return ClerkStub()


@pytest.fixture
def github_config():
    return GitHubConfig(
        api_base_url="https://api.github.test",
        commits_per_page=20,
        repos_per_page=30,
        timeout=5.0,
    )


@pytest.fixture
def identity(clerk_stub):
    config = ClerkConfig(
        api_base_url="https://clerk.test",
        secret_key="sk_test",
        oauth_provider="oauth_github",
        user_header="X-Clerk-User-Id",
    )
    return ClerkIdentity(config, transport=httpx.MockTransport(clerk_stub.handler))


@pytest.fixture
def fake_llm():
    return FakeLLM()
