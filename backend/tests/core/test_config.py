"""Tests for Settings: required values fail fast, defaults, masked URL."""

import pytest
from pydantic import ValidationError

from user_api.core.config import Settings

REQUIRED = {
    "PORT": "8080",
    "MYSQL_USER": "app",
    "MYSQL_PASSWORD": "secret",
    "MYSQL_HOST": "db",
    "MYSQL_DATABASE": "users",
}


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for key, value in REQUIRED.items():
        monkeypatch.setenv(key, value)
    return monkeypatch


def test_settings_from_env(env: pytest.MonkeyPatch) -> None:
    s = Settings(_env_file=None)  # type: ignore[call-arg]
    assert s.PORT == 8080
    assert s.MYSQL_HOST == "db"
    assert s.MYSQL_PORT == 3306
    assert s.ENVIRONMENT == "local"
    assert s.SENTRY_DSN is None


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_missing_required_value(env: pytest.MonkeyPatch, missing: str) -> None:
    env.delenv(missing)
    with pytest.raises(ValidationError) as exc:
        Settings(_env_file=None)  # type: ignore[call-arg]
    assert missing in str(exc.value)


def test_empty_required_value_counts_as_missing(env: pytest.MonkeyPatch) -> None:
    env.setenv("MYSQL_PASSWORD", "")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_mysql_url_masks_password(env: pytest.MonkeyPatch) -> None:
    s = Settings(_env_file=None)  # type: ignore[call-arg]
    assert s.mysql_url == "mysql+pymysql://app:***@db:3306/users"
    assert "secret" not in s.mysql_url
