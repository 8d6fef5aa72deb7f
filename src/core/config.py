"""Application settings and outbound fetch policy."""

import json
import os
from functools import lru_cache
from pathlib import Path

from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from services.url_safety import FetchPolicy


DEFAULT_ALLOWED_DOMAINS = ["wikipedia.org", "github.com", ".edu", ".gov"]


def _parse_list_value(name: str, v: object) -> list[str]:
    """Allow list, CSV string, or JSON array string for list settings."""
    if isinstance(v, list | tuple):
        return [str(i).strip() for i in v if str(i).strip()]
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        if s.startswith("["):
            try:
                parsed = json.loads(s)
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"{name} must be a CSV list or JSON array string"
                ) from e
            if not isinstance(parsed, list):
                raise ValueError(f"{name} JSON must be a list")
            return [str(i).strip() for i in parsed if str(i).strip()]
        # CSV fallback
        return [i.strip() for i in s.split(",") if i.strip()]
    raise ValueError(f"Invalid {name} type; expected str or list[str]")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "MCP Learning Server"
    ENVIRONMENT: str = "development"  # development | production | test

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    # Static bearer keys with full access; CSV or JSON array in env
    MCP_API_KEYS: list[str] | str = []

    # Outbound fetch policy
    ALLOWED_DOMAINS: list[str] | str = DEFAULT_ALLOWED_DOMAINS
    FETCH_TIMEOUT_MS: int = Field(default=10_000, gt=0)
    MAX_FETCH_BYTES: int = Field(default=1_048_576, gt=0)
    FETCH_MAX_REDIRECTS: int = Field(default=5, ge=0)
    FETCH_RESOLVE_DNS: bool = False
    FETCH_USER_AGENT: str = "MCP-Learning-Server/1.0"

    # Storage
    SQLITE_PATH: str = "./data/learning.db"

    # Daily learning job
    CRON_ENABLED: bool = False
    CRON_SCHEDULE_DAILY_LEARN: str = "0 2 * * *"  # 2 AM UTC daily

    # Upstash Rate Limiting
    # REST URL and token for Upstash Redis; optional in development/test
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None

    # Rate limit settings (requests per window)
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    @field_validator("MCP_API_KEYS", mode="before")
    @classmethod
    def assemble_api_keys(cls, v: object) -> list[str]:
        return _parse_list_value("MCP_API_KEYS", v)

    @field_validator("ALLOWED_DOMAINS", mode="before")
    @classmethod
    def assemble_allowed_domains(cls, v: object) -> list[str]:
        """Normalize domain patterns to lower case, dropping empty entries."""
        return [d.lower() for d in _parse_list_value("ALLOWED_DOMAINS", v)]

    @field_validator("CRON_SCHEDULE_DAILY_LEARN")
    @classmethod
    def validate_cron_schedule(cls, v: str) -> str:
        try:
            CronTrigger.from_crontab(v, timezone="UTC")
        except ValueError as e:
            raise ValueError(
                f"CRON_SCHEDULE_DAILY_LEARN is not a valid crontab: {v!r}"
            ) from e
        return v

    @model_validator(mode="after")
    def _normalize_lists(self) -> "Settings":
        # Normalize in case the union allows a stray string at runtime
        if isinstance(self.MCP_API_KEYS, str):
            self.MCP_API_KEYS = self.assemble_api_keys(self.MCP_API_KEYS)
        if isinstance(self.ALLOWED_DOMAINS, str):
            self.ALLOWED_DOMAINS = self.assemble_allowed_domains(
                self.ALLOWED_DOMAINS
            )
        return self

    @property
    def database_url(self) -> str:
        if self.SQLITE_PATH == ":memory:":
            return "sqlite+aiosqlite:///:memory:"
        return f"sqlite+aiosqlite:///{Path(self.SQLITE_PATH).expanduser()}"

    def fetch_policy(self) -> FetchPolicy:
        """Snapshot the fetch-related settings as an immutable policy."""
        return FetchPolicy(
            allowed_domains=tuple(self.ALLOWED_DOMAINS),
            fetch_timeout_ms=self.FETCH_TIMEOUT_MS,
            max_fetch_bytes=self.MAX_FETCH_BYTES,
            max_redirects=self.FETCH_MAX_REDIRECTS,
            resolve_dns=self.FETCH_RESOLVE_DNS,
            user_agent=self.FETCH_USER_AGENT,
        )


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""
    if env_file and not os.path.exists(env_file):  # pragma: no cover - defensive
        # Only provide a dev fallback in non-production environments
        if env == "development":
            os.environ.setdefault("SECRET_KEY", "dev-test-secret")
    # If we're in production, ensure SECRET_KEY is set and not the dev default
    if env == "production":
        sec = os.getenv("SECRET_KEY")
        if not sec or sec == "dev-test-secret":
            raise RuntimeError("SECRET_KEY must be set to a secure value in production")

    # `_env_file` is a runtime-only kwarg of pydantic-settings.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
