from datetime import timedelta

import pytest
from pydantic import ValidationError

from authflow.shared.config import AppConfig, MailConfig, SecurityConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "APP_ENV",
        "SECRET_KEY",
        "PASSWORD_LOG_ROUNDS",
        "AUTH_TOKEN_TTL",
        "SMTP_HOST",
        "SMTP_BACKGROUND",
        "TRUST_PROXY_HEADERS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir("/")


def test_security_defaults() -> None:
    security = SecurityConfig()

    assert security.password_log_rounds == 10
    assert security.token_ttl == timedelta(hours=24)
    assert security.enable_rate_limit is True
    assert security.trust_forwarded_for is False
    assert MailConfig().send_in_background is True


def test_values_are_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PASSWORD_LOG_ROUNDS", "12")
    monkeypatch.setenv("AUTH_TOKEN_TTL", "PT1H")
    monkeypatch.setenv("ENABLE_RATE_LIMIT", "no")
    monkeypatch.setenv("TRUST_PROXY_HEADERS", "yes")
    monkeypatch.setenv("SMTP_BACKGROUND", "0")

    security = SecurityConfig()

    assert security.password_log_rounds == 12
    assert security.token_ttl == timedelta(hours=1)
    assert security.enable_rate_limit is False
    assert security.trust_forwarded_for is True
    assert MailConfig().send_in_background is False


@pytest.mark.parametrize("rounds", [3, 32])
def test_log_rounds_outside_bcrypt_range_are_rejected(rounds: int) -> None:
    with pytest.raises(ValidationError):
        SecurityConfig(PASSWORD_LOG_ROUNDS=rounds)


def test_token_ttl_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        SecurityConfig(AUTH_TOKEN_TTL=timedelta(0))


def test_public_base_url_loses_trailing_slash() -> None:
    config = AppConfig(PUBLIC_BASE_URL="https://auth.example.test/")

    assert config.public_base_url == "https://auth.example.test"


def test_mail_is_disabled_without_host() -> None:
    assert MailConfig().is_enabled() is False
    assert MailConfig(SMTP_HOST="smtp.example.test").is_enabled() is True


def test_production_refuses_default_secret() -> None:
    with pytest.raises(SystemExit):
        AppConfig(APP_ENV="production", SECRET_KEY="dev")


def test_production_warns_about_weak_settings(capsys: pytest.CaptureFixture[str]) -> None:
    config = AppConfig(
        APP_ENV="prod",
        SECRET_KEY="a-long-random-production-secret",
        PUBLIC_BASE_URL="http://auth.example.test",
    )

    assert config.is_production()
    err = capsys.readouterr().err
    assert "PUBLIC_BASE_URL is not HTTPS" in err
    assert "SMTP_HOST is not set" in err
