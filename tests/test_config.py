"""
Tests for environment-based configuration.
"""

import pytest

from tgauth.config import (
    ArtifactConfig,
    BotSettings,
    ConfigurationError,
    EnvConfigProvider,
    SessionConfig,
)

ENV_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_BOT_USERNAME",
    "TELEGRAM_WEBHOOK_SECRET",
    "AUTH_METHODS",
    "DEEPLINK_LIFETIME",
    "LOGIN_CODE_LIFETIME",
    "LOGIN_CODE_LENGTH",
    "TWOFA_CODE_LENGTH",
    "TWOFA_CODE_LIFETIME",
    "TWOFA_MAX_ATTEMPTS",
    "SESSION_LIFETIME",
    "SESSION_SWEEP_INTERVAL",
    "DELIVERY_CHANNELS",
    "DELIVERY_REST_ENDPOINT",
    "DELIVERY_REST_TIMEOUT",
    "REDIS_URL",
    "LOG_LEVEL",
]


@pytest.fixture
def env(monkeypatch):
    """Clean environment with only the bot token and webhook secret set."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123456:ENV-TOKEN")
    monkeypatch.setenv("TELEGRAM_WEBHOOK_SECRET", "env-secret")
    return monkeypatch


def test_missing_bot_token(env):
    env.delenv("TELEGRAM_BOT_TOKEN")
    with pytest.raises(ConfigurationError, match="TELEGRAM_BOT_TOKEN"):
        EnvConfigProvider().get_auth_config()


def test_defaults(env):
    """Test defaults match the documented values."""
    config = EnvConfigProvider().get_auth_config()

    assert config.bot.bot_token == "123456:ENV-TOKEN"
    assert config.methods.deeplink and config.methods.code
    assert config.methods.widget and config.methods.two_factor
    assert config.artifacts.deeplink_lifetime is None
    assert config.artifacts.code_lifetime is None
    assert config.artifacts.code_length == 6
    assert config.challenge.code_length == 6
    assert config.challenge.code_lifetime == 300
    assert config.challenge.max_attempts == 3
    assert config.session.lifetime == 30 * 24 * 60 * 60
    assert config.session.sweep_interval == 3600
    assert config.delivery.channels == frozenset({"callback"})
    assert config.redis_url is None
    assert config.webhook_secret == "env-secret"
    assert config.log_level == "INFO"


def test_missing_webhook_secret(env):
    """Bot-facing methods refuse to start without a webhook secret."""
    env.delenv("TELEGRAM_WEBHOOK_SECRET")
    with pytest.raises(ConfigurationError, match="TELEGRAM_WEBHOOK_SECRET"):
        EnvConfigProvider().get_auth_config()

    env.setenv("AUTH_METHODS", "code")
    with pytest.raises(ConfigurationError, match="TELEGRAM_WEBHOOK_SECRET"):
        EnvConfigProvider().get_auth_config()


def test_widget_only_needs_no_webhook_secret(env):
    env.delenv("TELEGRAM_WEBHOOK_SECRET")
    env.setenv("AUTH_METHODS", "widget")

    config = EnvConfigProvider().get_auth_config()

    assert config.webhook_secret is None
    assert config.bot_endpoints_enabled is False


def test_overrides(env):
    env.setenv("TELEGRAM_BOT_USERNAME", "@login_bot")
    env.setenv("AUTH_METHODS", "widget, TWO_FACTOR")
    env.setenv("LOGIN_CODE_LIFETIME", "600")
    env.setenv("TWOFA_MAX_ATTEMPTS", "5")
    env.setenv("SESSION_LIFETIME", "86400")
    env.setenv("DELIVERY_CHANNELS", "rest,websocket")
    env.setenv("DELIVERY_REST_ENDPOINT", "https://app.example.com/auth")
    env.setenv("REDIS_URL", "redis://cache:6379/1")
    env.setenv("LOG_LEVEL", "debug")

    config = EnvConfigProvider().get_auth_config()

    assert config.bot.get_bot_username() == "login_bot"
    assert not config.methods.deeplink and not config.methods.code
    assert config.methods.widget and config.methods.two_factor
    assert config.artifacts.code_lifetime == 600.0
    assert config.challenge.max_attempts == 5
    assert config.session.lifetime == 86400.0
    assert config.delivery.channels == frozenset({"rest", "websocket"})
    assert config.delivery.rest_endpoint == "https://app.example.com/auth"
    assert config.redis_url == "redis://cache:6379/1"
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name,value",
    [
        ("TWOFA_MAX_ATTEMPTS", "three"),
        ("TWOFA_MAX_ATTEMPTS", "0"),
        ("SESSION_LIFETIME", "-1"),
        ("LOGIN_CODE_LENGTH", "40"),
        ("DEEPLINK_LIFETIME", "soon"),
    ],
)
def test_invalid_numbers(env, name, value):
    env.setenv(name, value)
    with pytest.raises(ConfigurationError):
        EnvConfigProvider().get_auth_config()


def test_configuration_error_is_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_bot_settings():
    settings = BotSettings.from_token("1:x", messages={"greeting": "Hi {name}, code {code}"})

    assert settings.get_bot_username() == "YOUR_BOT_USERNAME"
    assert settings.get_message("greeting", "unused", name="Ann", code=7) == "Hi Ann, code 7"
    assert settings.get_message("missing", "Default {x}", x=1) == "Default 1"

    with pytest.raises(ConfigurationError):
        BotSettings.from_token("")


def test_dataclass_validation():
    with pytest.raises(ConfigurationError):
        ArtifactConfig(code_length=0)
    with pytest.raises(ConfigurationError):
        ArtifactConfig(deeplink_lifetime=0)
    with pytest.raises(ConfigurationError):
        SessionConfig(sweep_interval=0)
