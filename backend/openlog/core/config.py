"""
OpenLog — Backend Configuration
Loads .env automatically, then reads all settings from environment variables.
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).resolve().parent.parent.parent / ".env"
load_dotenv(_env_path)


@dataclass(frozen=True)
class GitHubConfig:
    """GitHub REST API settings."""
    api_base_url: str
    commits_per_page: int
    repos_per_page: int
    timeout: float


@dataclass(frozen=True)
class ClerkConfig:
    """Clerk Backend API credentials used to fetch delegated OAuth tokens."""
    api_base_url: str
    secret_key: str
    oauth_provider: str
    user_header: str


@dataclass(frozen=True)
class LLMConfig:
    """OpenAI-compatible provider credentials and generation knobs."""
    groq_api_key: str
    groq_base_url: str
    moonshot_api_key: str
    moonshot_base_url: str
    default_model: str
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class ChunkingConfig:
    """How selected commits are split into per-request prompt chunks."""
    chunk_size: int
    disable_chunking: bool
    dynamic_chunking: bool
    max_chunk_lines: int

    @property
    def effective_chunk_size(self) -> int:
        if self.disable_chunking:
            return -1
        if self.dynamic_chunking:
            return min(self.chunk_size, self.max_chunk_lines)
        return self.chunk_size


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""
    host: str
    port: int
    debug: bool
    env: str
    version: str
    github: GitHubConfig
    clerk: ClerkConfig
    llm: LLMConfig
    chunking: ChunkingConfig
    autosave_delay: float

    @property
    def is_development(self) -> bool:
        return self.env == "development"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _load_config() -> AppConfig:
    return AppConfig(
        host=os.getenv("APP_HOST", "0.0.0.0"),
        port=int(os.getenv("APP_PORT", "8000")),
        debug=_env_bool("APP_DEBUG", "false"),
        env=os.getenv("APP_ENV", "production"),
        version="1.0.0",
        github=GitHubConfig(
            api_base_url=os.getenv("GITHUB_API_BASE_URL", "https://api.github.com"),
            commits_per_page=int(os.getenv("COMMITS_PER_PAGE", "20")),
            repos_per_page=int(os.getenv("REPOS_PER_PAGE", "30")),
            timeout=float(os.getenv("GITHUB_TIMEOUT", "30.0")),
        ),
        clerk=ClerkConfig(
            api_base_url=os.getenv("CLERK_API_BASE_URL", "https://api.clerk.com"),
            secret_key=os.getenv("CLERK_SECRET_KEY", ""),
            oauth_provider=os.getenv("CLERK_OAUTH_PROVIDER", "oauth_github"),
            user_header=os.getenv("AUTH_USER_HEADER", "X-Clerk-User-Id"),
        ),
        llm=LLMConfig(
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            groq_base_url=os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1"),
            moonshot_api_key=os.getenv("MOONSHOT_API_KEY", ""),
            moonshot_base_url=os.getenv("MOONSHOT_BASE_URL", "https://api.moonshot.cn/v1"),
            default_model=os.getenv("LLM_DEFAULT_MODEL", "llama-3.3-70b-versatile"),
            temperature=float(os.getenv("GENERATION_TEMPERATURE", "0.2")),
            max_tokens=int(os.getenv("GENERATION_MAX_TOKENS", "1024")),
        ),
        chunking=ChunkingConfig(
            chunk_size=int(os.getenv("COMMIT_CHUNK_SIZE", "20")),
            disable_chunking=_env_bool("DISABLE_CHUNKING", "false"),
            dynamic_chunking=_env_bool("DYNAMIC_CHUNKING", "true"),
            max_chunk_lines=int(os.getenv("MAX_CHUNK_LINES", "40")),
        ),
        autosave_delay=float(os.getenv("AUTOSAVE_DELAY", "0.8")),
    )


def missing_credentials(cfg: AppConfig) -> list[str]:
    """Names of credential variables that are unset."""
    missing: list[str] = []
    if not cfg.clerk.secret_key:
        missing.append("CLERK_SECRET_KEY")
    if not cfg.llm.groq_api_key and not cfg.llm.moonshot_api_key:
        missing.append("GROQ_API_KEY or MOONSHOT_API_KEY")
    return missing


settings = _load_config()
