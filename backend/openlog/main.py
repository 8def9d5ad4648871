"""
OpenLog — FastAPI Backend

Endpoints:
  GET  /v1/repos          — repositories of the signed-in user
  GET  /v1/commits        — recent commits of one repository
  POST /v1/generate       — selected commits → streamed Markdown changelog
  POST /v1/releases       — publish a changelog as a GitHub release
  GET  /v1/models         — configured LLM models (development only)
  GET  /health            — Health check
"""

import time
from functools import lru_cache

import httpx
from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from openlog.core.config import AppConfig, missing_credentials, settings
from openlog.errors import (
    GitHubNotLinkedError,
    NotAuthenticatedError,
    OpenLogError,
    ValidationError,
)
from openlog.github.client import GitHubClient
from openlog.github.identity import ClerkIdentity
from openlog.github.publish import publish_release
from openlog.llm.client import ChangelogLLM, list_models
from openlog.models.commit import Commit, Repo
from openlog.models.release import PublishResult
from openlog.pipeline.generate import ChangelogGenerator
from openlog.utils.logging import logger, new_request_id


app = FastAPI(
    title="OpenLog API",
    description=(
        "Turn selected GitHub commits into a streamed, AI-written changelog "
        "and publish it to GitHub Releases."
    ),
    version=settings.version,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id", "X-OpenLog-Model"],
)


@app.on_event("startup")
async def _startup_banner():
    logger.info("")
    logger.info("╔══════════════════════════════════════════════════╗")
    logger.info("║              OpenLog  ·  API Server              ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  GET  /v1/repos         → User repositories      ║")
    logger.info("║  GET  /v1/commits       → Repository commits     ║")
    logger.info("║  POST /v1/generate      → Streamed changelog     ║")
    logger.info("║  POST /v1/releases      → Publish release        ║")
    logger.info("║  GET  /v1/models        → Model list (dev)       ║")
    logger.info("║  GET  /health           → Health check           ║")
    logger.info("╠══════════════════════════════════════════════════╣")
    logger.info("║  GitHub API  : %-33s║", settings.github.api_base_url)
    logger.info("║  Model       : %-33s║", settings.llm.default_model)
    logger.info("║  Chunk size  : %-33s║", settings.chunking.effective_chunk_size)
    logger.info("╚══════════════════════════════════════════════════╝")
    for name in missing_credentials(settings):
        logger.warning("  Missing credential: %s", name)
    logger.info("")


# ──────────────────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────────────────

def get_settings() -> AppConfig:
    return settings


def get_github_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outgoing GitHub calls; tests swap in a mock."""
    return None


@lru_cache
def _default_identity() -> ClerkIdentity:
    return ClerkIdentity(settings.clerk)


def get_identity() -> ClerkIdentity:
    return _default_identity()


@lru_cache
def _default_llm() -> ChangelogLLM:
    return ChangelogLLM(settings.llm)


def get_llm() -> ChangelogLLM:
    return _default_llm()


def _http_error(exc: OpenLogError) -> HTTPException:
    logger.warning("%s: %s", exc.code, exc.message)
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


async def current_user(request: Request, identity: ClerkIdentity = Depends(get_identity)) -> str:
    user_id = identity.user_id_from_headers(request.headers)
    if not user_id:
        exc = NotAuthenticatedError()
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    return user_id


async def github_client(
    user_id: str = Depends(current_user),
    identity: ClerkIdentity = Depends(get_identity),
    cfg: AppConfig = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_github_transport),
) -> GitHubClient:
    """GitHub client for the signed-in user; the token is fetched fresh for every request."""
    token = await identity.get_oauth_token(user_id)
    if not token:
        exc = GitHubNotLinkedError()
        raise HTTPException(status_code=exc.status_code, detail=exc.to_dict())
    return GitHubClient(token, cfg.github, transport=transport)


# ──────────────────────────────────────────────────────────
# Request models
# ──────────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    repo: str = Field(default="project", max_length=200, description="Repository full name (owner/name)")
    commits: list[Commit] = Field(..., description="Commits selected for the changelog")
    model: str | None = Field(default=None, description="LLM model id; defaults to the configured model")


class PublishRequest(BaseModel):
    repo: str = Field(..., description="Repository full name (owner/name)")
    tag_name: str = Field(default="", description="Release tag, e.g. v1.0.0")
    title: str = Field(default="", description="Release title")
    body: str = Field(default="", description="Release notes in Markdown")


# ──────────────────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────────────────

@app.get("/health")
async def health():
    return {"status": "ok", "service": "openlog-api", "version": settings.version}


@app.get("/v1/repos", response_model=list[Repo])
async def get_repos(client: GitHubClient = Depends(github_client)):
    """Most recently updated repositories the signed-in user can access."""
    new_request_id()
    logger.info("GET /v1/repos")
    try:
        return await client.list_repos()
    except OpenLogError as exc:
        raise _http_error(exc)
    except httpx.HTTPError:
        logger.exception("GitHub unreachable")
        raise HTTPException(status_code=502, detail="GitHub is unreachable")
    except Exception:
        logger.exception("Listing repositories failed")
        raise HTTPException(status_code=500, detail="Failed to list repositories")


@app.get("/v1/commits", response_model=list[Commit])
async def get_commits(
    request: Request,
    repo: str | None = Query(default=None, description="Repository full name (owner/name)"),
    identity: ClerkIdentity = Depends(get_identity),
    cfg: AppConfig = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_github_transport),
):
    """Recent commits of ``repo``, newest first, each tagged with its category."""
    new_request_id()
    logger.info("GET /v1/commits — %s", repo)

    if not repo:
        raise _http_error(ValidationError(["Missing query parameter: 'repo'"]))
    user_id = await current_user(request, identity)
    client = await github_client(user_id, identity, cfg, transport)

    try:
        return await client.list_commits(repo)
    except OpenLogError as exc:
        raise _http_error(exc)
    except httpx.HTTPError:
        logger.exception("GitHub unreachable")
        raise HTTPException(status_code=502, detail="GitHub is unreachable")
    except Exception:
        logger.exception("Listing commits of %s failed", repo)
        raise HTTPException(status_code=500, detail="Failed to list commits")


@app.post(
    "/v1/generate",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"text/plain": {}}, "description": "Framed changelog stream"},
        400: {"description": "No commits selected"},
        503: {"description": "Model not configured"},
    },
)
async def generate_changelog(
    req: GenerateRequest,
    user_id: str = Depends(current_user),
    llm: ChangelogLLM = Depends(get_llm),
    cfg: AppConfig = Depends(get_settings),
):
    """
    Stream a Markdown changelog for the selected commits.

    The body interleaves ``~~JSON~~`` control records (progress) with
    content; see ``openlog.pipeline.framing`` for the grammar.
    """
    request_id = new_request_id()
    start = time.perf_counter()

    try:
        if not req.commits:
            raise ValidationError(["Invalid commits data: select at least one commit"])
        model = llm.resolve_model(req.model)
        llm.ensure_configured(model)
    except OpenLogError as exc:
        raise _http_error(exc)

    logger.info(
        "POST /v1/generate — %s, %d commits, model=%s, user=%s",
        req.repo, len(req.commits), model, user_id,
    )
    generator = ChangelogGenerator(
        repo=req.repo,
        commits=req.commits,
        llm=llm,
        model=model,
        chunking=cfg.chunking,
    )

    async def body():
        try:
            async for segment in generator.stream():
                yield segment
        finally:
            logger.info(
                "Stream closed after %.0f ms", (time.perf_counter() - start) * 1000
            )

    return StreamingResponse(
        body(),
        media_type="text/plain; charset=utf-8",
        headers={
            "Cache-Control": "no-cache",
            "X-Request-Id": request_id,
            "X-OpenLog-Model": model,
        },
    )


@app.post("/v1/releases", response_model=PublishResult)
async def create_release(
    req: PublishRequest,
    user_id: str = Depends(current_user),
    identity: ClerkIdentity = Depends(get_identity),
    cfg: AppConfig = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_github_transport),
):
    """
    Publish ``body`` as a GitHub release.

    Always answers 200 with a PublishResult; check ``success``.
    """
    new_request_id()
    logger.info("POST /v1/releases — %s %s", req.repo, req.tag_name)
    try:
        result = await publish_release(
            identity,
            cfg.github,
            user_id=user_id,
            repo_full_name=req.repo,
            tag_name=req.tag_name,
            title=req.title,
            body=req.body,
            transport=transport,
        )
    except Exception:
        logger.exception("Publishing %s %s failed", req.repo, req.tag_name)
        result = PublishResult(success=False, error="Failed to publish release")
    if not result.success:
        logger.warning("Publish failed: %s", result.error)
    return result


@app.get("/v1/models")
async def get_models(cfg: AppConfig = Depends(get_settings)):
    """Configured LLM models. Only exposed in development."""
    if not cfg.is_development:
        raise HTTPException(
            status_code=403, detail="Models listing available in development only"
        )
    return {
        "default": cfg.llm.default_model,
        "models": [
            {"id": m.id, "provider": m.provider, "description": m.description}
            for m in list_models()
        ],
    }
