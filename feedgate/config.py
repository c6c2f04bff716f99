"""Environment-driven configuration.

Values are read from `os.environ` (populated from `.env` by python-dotenv in
`web_app.py`). Anything malformed or missing raises `ConfigurationError`
instead of being discovered halfway through a request.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Mapping, Optional

from feedgate.errors import ConfigurationError


def _env(environ: Mapping[str, str], name: str, default: str = "") -> str:
    return (environ.get(name) or default).strip()


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = _env(environ, name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(environ: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = _env(environ, name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {raw!r}")
    return value


def _env_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _env(environ, name)
    if not raw:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class FeedCheckConfig:
    timeout: float = 15.0
    connect_timeout: float = 5.0
    max_bytes: int = 1_048_576
    max_redirects: int = 3

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FeedCheckConfig":
        env = os.environ if environ is None else environ
        return cls(
            timeout=_env_float(env, "FEED_CHECK_TIMEOUT", cls.timeout),
            connect_timeout=_env_float(env, "FEED_CHECK_CONNECT_TIMEOUT", cls.connect_timeout),
            max_bytes=_env_int(env, "FEED_CHECK_MAX_BYTES", cls.max_bytes, minimum=1),
            max_redirects=_env_int(env, "FEED_CHECK_MAX_REDIRECTS", cls.max_redirects),
        )


@dataclass(frozen=True)
class DispatchConfig:
    """Target of the workflow dispatch call.

    token/owner/repo have no defaults; `from_env` refuses to build a config
    without all three.
    """

    token: str
    owner: str
    repo: str
    workflow: str = "rss-scraper.yml"
    ref: str = "main"
    api_url: str = "https://api.github.com"
    timeout: float = 15.0

    REQUIRED_VARS = ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO")

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DispatchConfig":
        env = os.environ if environ is None else environ
        missing: List[str] = [name for name in cls.REQUIRED_VARS if not _env(env, name)]
        if missing:
            raise ConfigurationError(
                "GitHub configuration missing: " + ", ".join(missing),
                missing=missing,
            )
        return cls(
            token=_env(env, "GITHUB_TOKEN"),
            owner=_env(env, "GITHUB_OWNER"),
            repo=_env(env, "GITHUB_REPO"),
            workflow=_env(env, "GITHUB_WORKFLOW", cls.workflow),
            ref=_env(env, "GITHUB_REF", cls.ref),
            api_url=_env(env, "GITHUB_API_URL", cls.api_url).rstrip("/"),
            timeout=_env_float(env, "DISPATCH_TIMEOUT", cls.timeout),
        )


@dataclass(frozen=True)
class ServiceSettings:
    feed_check: FeedCheckConfig
    rate_limit_enabled: bool = True
    feed_check_rate_limit: str = "30 per minute"
    dispatch_rate_limit: str = "10 per minute"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceSettings":
        env = os.environ if environ is None else environ
        return cls(
            feed_check=FeedCheckConfig.from_env(env),
            rate_limit_enabled=_env_bool(env, "RATELIMIT_ENABLED", True),
            feed_check_rate_limit=_env(env, "FEED_CHECK_RATE_LIMIT", cls.feed_check_rate_limit),
            dispatch_rate_limit=_env(env, "DISPATCH_RATE_LIMIT", cls.dispatch_rate_limit),
            log_level=_env(env, "LOG_LEVEL", cls.log_level).upper(),
        )
