from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


_USERNAME_ENV = "WATTTIME_USERNAME"
_PASSWORD_ENV = "WATTTIME_PASSWORD"
_TOKEN_ENV = "WATTTIME_TOKEN"
_BASE_URL_ENV = "WATTTIME_BASE_URL"
_LOGIN_URL_ENV = "WATTTIME_LOGIN_URL"
_MAX_SPAN_ENV = "MAX_SPAN_SECONDS"
_HTTP_TIMEOUT_ENV = "HTTP_TIMEOUT_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_ENV_INDIRECTION_PREFIX = "ENV_"

DEFAULT_BASE_URL = "https://api2.watttime.org/v2"
DEFAULT_LOGIN_URL = "https://api.watttime.org/login"
# WattTime only serves up to 32 days per query.
DEFAULT_MAX_SPAN_SECONDS = 32 * 24 * 60 * 60


@dataclass(frozen=True)
class WattTimeCredentials:
    username: str
    password: str
    token: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    login_url: str = DEFAULT_LOGIN_URL


@dataclass(frozen=True)
class Settings:
    watttime_username: str
    watttime_password: str
    watttime_token: Optional[str]
    watttime_base_url: str
    watttime_login_url: str
    max_span_seconds: int
    http_timeout: float
    log_level: str

    def credentials(self) -> WattTimeCredentials:
        return WattTimeCredentials(
            username=self.watttime_username,
            password=self.watttime_password,
            token=self.watttime_token,
            base_url=self.watttime_base_url,
            login_url=self.watttime_login_url,
        )


def resolve_env_reference(value: str) -> str:
    """Resolve ``ENV_<NAME>`` values to the content of environment variable ``NAME``."""
    if value.startswith(_ENV_INDIRECTION_PREFIX):
        return os.getenv(value[len(_ENV_INDIRECTION_PREFIX):], "")
    return value


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_secret_env(name: str) -> str:
    return resolve_env_reference(_read_str_env(name, ""))


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    token = _read_optional_env(_TOKEN_ENV, None)
    if token is not None:
        token = resolve_env_reference(token) or None
    return Settings(
        watttime_username=_read_secret_env(_USERNAME_ENV),
        watttime_password=_read_secret_env(_PASSWORD_ENV),
        watttime_token=token,
        watttime_base_url=_read_str_env(_BASE_URL_ENV, DEFAULT_BASE_URL).rstrip("/"),
        watttime_login_url=_read_str_env(_LOGIN_URL_ENV, DEFAULT_LOGIN_URL),
        max_span_seconds=_read_positive_int(_MAX_SPAN_ENV, DEFAULT_MAX_SPAN_SECONDS),
        http_timeout=_read_positive_float(_HTTP_TIMEOUT_ENV, 30.0),
        log_level=_read_log_level("INFO"),
    )
