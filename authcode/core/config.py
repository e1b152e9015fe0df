from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]
MismatchPolicy = Literal["delete", "retain"]

# Authorization codes must stay short-lived (RFC 6749 §4.1.2 recommends <= 10 min)
MIN_AUTH_CODE_TTL_SEC = 60
MAX_AUTH_CODE_TTL_SEC = 600


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    auth_code_ttl_sec: int = 120
    sweep_interval_sec: float = 30.0
    auth_code_max_attempts: int = 3
    store_timeout_sec: float = 2.0
    client_mismatch_policy: MismatchPolicy = "delete"
    sweeper_enabled: bool = True

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
    def store_backend(self) -> str:
        if self.database_url:
            return "postgres"
        if self.redis_url:
            return "redis"
        return "memory"


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

    port = _parse_int("PORT", port_raw)
    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))

    ttl = _parse_int("AUTH_CODE_TTL_SEC", _getenv("AUTH_CODE_TTL_SEC", "120"))
    if not MIN_AUTH_CODE_TTL_SEC <= ttl <= MAX_AUTH_CODE_TTL_SEC:
        raise ValueError(
            f"AUTH_CODE_TTL_SEC must be between {MIN_AUTH_CODE_TTL_SEC} and "
            f"{MAX_AUTH_CODE_TTL_SEC} (got {ttl})"
        )

    sweep_interval = _parse_float(
        "SWEEP_INTERVAL_SEC", _getenv("SWEEP_INTERVAL_SEC", "30")
    )
    if sweep_interval <= 0 or sweep_interval >= ttl:
        raise ValueError(
            f"SWEEP_INTERVAL_SEC must be positive and shorter than "
            f"AUTH_CODE_TTL_SEC={ttl} (got {sweep_interval})"
        )

    max_attempts = _parse_int(
        "AUTH_CODE_MAX_ATTEMPTS", _getenv("AUTH_CODE_MAX_ATTEMPTS", "3")
    )
    if max_attempts < 1:
        raise ValueError(f"AUTH_CODE_MAX_ATTEMPTS must be >= 1 (got {max_attempts})")

    store_timeout = _parse_float("STORE_TIMEOUT_SEC", _getenv("STORE_TIMEOUT_SEC", "2"))
    if store_timeout <= 0:
        raise ValueError(f"STORE_TIMEOUT_SEC must be positive (got {store_timeout})")

    policy_raw = _getenv("CLIENT_MISMATCH_POLICY", "delete").lower()
    if policy_raw not in ("delete", "retain"):
        raise ValueError(
            f"CLIENT_MISMATCH_POLICY must be delete|retain (got {policy_raw!r})"
        )

    sweeper_enabled = _parse_bool(
        "SWEEPER_ENABLED", _getenv("SWEEPER_ENABLED", "true")
    )

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        auth_code_ttl_sec=ttl,
        sweep_interval_sec=sweep_interval,
        auth_code_max_attempts=max_attempts,
        store_timeout_sec=store_timeout,
        client_mismatch_policy=policy_raw,
        sweeper_enabled=sweeper_enabled,
    )


SETTINGS = load_settings()
