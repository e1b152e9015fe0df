from __future__ import annotations

import pytest

from authcode.core.config import AppEnv, Settings, load_settings

# ---- valid values ----


def test_load_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APP_ENV",
        "LOG_LEVEL",
        "AUTH_CODE_TTL_SEC",
        "SWEEP_INTERVAL_SEC",
        "CLIENT_MISMATCH_POLICY",
        "SWEEPER_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.app_env == "dev"
    assert settings.log_level == "info"
    assert settings.auth_code_ttl_sec == 120
    assert settings.sweep_interval_sec == 30.0
    assert settings.client_mismatch_policy == "delete"
    assert settings.sweeper_enabled is True


def test_load_settings_respects_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "error")
    monkeypatch.setenv("AUTH_CODE_TTL_SEC", "300")
    monkeypatch.setenv("SWEEP_INTERVAL_SEC", "15.5")
    monkeypatch.setenv("AUTH_CODE_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("STORE_TIMEOUT_SEC", "0.5")
    monkeypatch.setenv("CLIENT_MISMATCH_POLICY", "retain")
    monkeypatch.setenv("SWEEPER_ENABLED", "off")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "error"
    assert settings.auth_code_ttl_sec == 300
    assert settings.sweep_interval_sec == 15.5
    assert settings.auth_code_max_attempts == 5
    assert settings.store_timeout_sec == 0.5
    assert settings.client_mismatch_policy == "retain"
    assert settings.sweeper_enabled is False


def test_load_settings_normalizes_case(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "PROD")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("CLIENT_MISMATCH_POLICY", "RETAIN")
    settings = load_settings()
    assert settings.app_env == "prod"
    assert settings.log_level == "debug"
    assert settings.client_mismatch_policy == "retain"


def test_load_settings_strips_whitespace(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "  test  ")
    monkeypatch.setenv("LOG_LEVEL", "  warning  ")
    monkeypatch.setenv("AUTH_CODE_TTL_SEC", " 90 ")
    settings = load_settings()
    assert settings.app_env == "test"
    assert settings.log_level == "warning"
    assert settings.auth_code_ttl_sec == 90


# ---- invalid APP_ENV / LOG_LEVEL ----


def test_load_settings_rejects_invalid_app_env(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(ValueError, match="APP_ENV must be dev|test|prod"):
        load_settings()


def test_load_settings_rejects_invalid_log_level(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    with pytest.raises(ValueError, match="LOG_LEVEL must be debug|info|warning|error"):
        load_settings()


# ---- authorization code settings ----


@pytest.mark.parametrize("ttl", ["0", "59", "601", "3600"])
def test_load_settings_rejects_ttl_out_of_range(
    monkeypatch: pytest.MonkeyPatch, ttl: str
) -> None:
    monkeypatch.setenv("AUTH_CODE_TTL_SEC", ttl)
    with pytest.raises(ValueError, match="AUTH_CODE_TTL_SEC must be between"):
        load_settings()


def test_load_settings_rejects_non_integer_ttl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("AUTH_CODE_TTL_SEC", "two minutes")
    with pytest.raises(ValueError, match="AUTH_CODE_TTL_SEC must be an integer"):
        load_settings()


@pytest.mark.parametrize("interval", ["0", "-1", "120", "500"])
def test_load_settings_rejects_sweep_interval_not_below_ttl(
    monkeypatch: pytest.MonkeyPatch, interval: str
) -> None:
    monkeypatch.setenv("AUTH_CODE_TTL_SEC", "120")
    monkeypatch.setenv("SWEEP_INTERVAL_SEC", interval)
    with pytest.raises(ValueError, match="SWEEP_INTERVAL_SEC must be positive"):
        load_settings()


def test_load_settings_rejects_zero_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_CODE_MAX_ATTEMPTS", "0")
    with pytest.raises(ValueError, match="AUTH_CODE_MAX_ATTEMPTS must be >= 1"):
        load_settings()


def test_load_settings_rejects_non_positive_timeout(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("STORE_TIMEOUT_SEC", "0")
    with pytest.raises(ValueError, match="STORE_TIMEOUT_SEC must be positive"):
        load_settings()


def test_load_settings_rejects_unknown_mismatch_policy(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("CLIENT_MISMATCH_POLICY", "ignore")
    with pytest.raises(ValueError, match="CLIENT_MISMATCH_POLICY must be"):
        load_settings()


def test_load_settings_rejects_garbage_boolean(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("SWEEPER_ENABLED", "maybe")
    with pytest.raises(ValueError, match="SWEEPER_ENABLED must be a boolean"):
        load_settings()


# ---- Settings properties ----


def _make_settings(
    app_env: AppEnv = "dev",
    *,
    database_url: str | None = None,
    redis_url: str | None = None,
) -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=app_env,
        log_level="info",
        log_json=False,
        port=8000,
        database_url=database_url,
        redis_url=redis_url,
    )


def test_settings_env_flags() -> None:
    assert _make_settings("dev").is_dev is True
    assert _make_settings("test").is_test is True
    prod = _make_settings("prod")
    assert prod.is_prod is True
    assert prod.is_dev is False


def test_settings_code_defaults() -> None:
    s = _make_settings()
    assert s.auth_code_ttl_sec == 120
    assert s.auth_code_max_attempts == 3
    assert s.client_mismatch_policy == "delete"


@pytest.mark.parametrize(
    ("database_url", "redis_url", "backend"),
    [
        (None, None, "memory"),
        (None, "redis://localhost:6379/0", "redis"),
        ("postgresql+asyncpg://db/authcode", None, "postgres"),
        ("postgresql+asyncpg://db/authcode", "redis://localhost:6379/0", "postgres"),
    ],
)
def test_settings_store_backend(
    database_url: str | None, redis_url: str | None, backend: str
) -> None:
    s = _make_settings(database_url=database_url, redis_url=redis_url)
    assert s.store_backend == backend


def test_settings_is_frozen() -> None:
    s = _make_settings()
    with pytest.raises(AttributeError):
        s.auth_code_ttl_sec = 3600  # type: ignore[misc]
