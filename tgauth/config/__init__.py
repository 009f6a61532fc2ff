"""
Config Module - Black Box Interface

Purpose: Authentication stack configuration
Interface: EnvConfigProvider.get_auth_config(), TelegramAuthConfig
Hidden: Environment parsing, validation rules

Can be replaced with any provider that returns a TelegramAuthConfig.
"""

from .provider import (
    ArtifactConfig,
    AuthMethodsConfig,
    BotSettings,
    ChallengeConfig,
    ConfigProvider,
    ConfigurationError,
    DeliveryConfig,
    EnvConfigProvider,
    SessionConfig,
    TelegramAuthConfig,
)

__all__ = [
    "ArtifactConfig",
    "AuthMethodsConfig",
    "BotSettings",
    "ChallengeConfig",
    "ConfigProvider",
    "ConfigurationError",
    "DeliveryConfig",
    "EnvConfigProvider",
    "SessionConfig",
    "TelegramAuthConfig",
]
