from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
CacheProviderName = Literal["auto", "memory", "redis"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("", "0", "false", "no", "off")


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: str = "false") -> bool:
    raw = _getenv(name, default).lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _getint(name: str, default: str, *, minimum: int = 1) -> int:
    raw = _getenv(name, default)
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum} (got {value})")
    return value


def _getfloat(name: str, default: str) -> float:
    raw = _getenv(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    redis_url: str | None
    cache_provider: CacheProviderName = "auto"
    cache_default_ttl: int = 3600
    cache_key_prefix: str = "cache:"
    cache_timeout_seconds: float = 2.0
    cache_scan_count: int = 100
    cache_strict_startup: bool = False
    jwt_secret: str = "dev-only-insecure-secret"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"

    @property
    def use_redis_cache(self) -> bool:
        """Remote store wins when asked for explicitly or when credentials exist."""
        if self.cache_provider == "redis":
            return True
        if self.cache_provider == "memory":
            return False
        return self.redis_url is not None


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    redis_url = _getenv("REDIS_URL", "") or None

    cache_provider_raw = _getenv("CACHE_PROVIDER", "auto").lower() or "auto"
    if cache_provider_raw not in ("auto", "memory", "redis"):
        raise ValueError(
            f"CACHE_PROVIDER must be auto|memory|redis (got {cache_provider_raw!r})"
        )
    if cache_provider_raw == "redis" and redis_url is None:
        raise ValueError("CACHE_PROVIDER=redis requires REDIS_URL to be set")

    jwt_secret = _getenv("JWT_SECRET", "")
    if not jwt_secret:
        if app_env_raw == "prod":
            raise ValueError("JWT_SECRET must be set when APP_ENV=prod")
        jwt_secret = "dev-only-insecure-secret"

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON"),
        port=port,
        redis_url=redis_url,
        cache_provider=cache_provider_raw,
        cache_default_ttl=_getint("CACHE_DEFAULT_TTL", "3600"),
        cache_key_prefix=_getenv("CACHE_KEY_PREFIX", "cache:"),
        cache_timeout_seconds=_getfloat("CACHE_TIMEOUT_SECONDS", "2.0"),
        cache_scan_count=_getint("CACHE_SCAN_COUNT", "100"),
        cache_strict_startup=_getbool("CACHE_STRICT_STARTUP"),
        jwt_secret=jwt_secret,
    )


SETTINGS = load_settings()
