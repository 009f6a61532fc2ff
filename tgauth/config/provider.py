"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Optional, Protocol


class ConfigurationError(ValueError):
    """Raised when required settings are missing or invalid at construction time."""


@dataclass(frozen=True)
class BotSettings:
    """Telegram bot identity and the message templates it sends."""
    bot_token: str
    bot_username: Optional[str] = None
    messages: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not self.bot_token:
            raise ConfigurationError(
                "bot_token is required. Set TELEGRAM_BOT_TOKEN or pass BotSettings explicitly."
            )

    @classmethod
    def from_token(
        cls,
        bot_token: str,
        bot_username: Optional[str] = None,
        messages: Optional[Dict[str, str]] = None,
    ) -> "BotSettings":
        """Build settings from a raw token/username pair."""
        return cls(bot_token=bot_token, bot_username=bot_username, messages=dict(messages or {}))

    def get_bot_username(self) -> str:
        """Bot username without the leading @, or a placeholder when unset."""
        return (self.bot_username or "YOUR_BOT_USERNAME").lstrip("@")

    def get_message(self, key: str, default: str, **params: Any) -> str:
        """
        Get a message template with ``{name}`` placeholders substituted.

        Args:
            key: Message key (e.g. "two_fa_code")
            default: Template used when no custom message is configured
            **params: Values substituted into the template

        Returns:
            Rendered message
        """
        message = self.messages.get(key) or default
        for name, value in params.items():
            message = message.replace(f"{{{name}}}", str(value))
        return message


@dataclass
class ChallengeConfig:
    """Two-factor challenge configuration."""
    code_length: int = 6
    code_lifetime: float = 5 * 60
    max_attempts: int = 3

    def __post_init__(self):
        if self.code_length < 1:
            raise ConfigurationError("code_length must be at least 1")
        if self.code_lifetime <= 0:
            raise ConfigurationError("code_lifetime must be positive")
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")


@dataclass
class ArtifactConfig:
    """Deeplink/code artifact configuration. A lifetime of None never expires."""
    deeplink_lifetime: Optional[float] = None
    code_lifetime: Optional[float] = None
    code_length: int = 6

    def __post_init__(self):
        if not 1 <= self.code_length <= 18:
            raise ConfigurationError("code_length must be between 1 and 18")
        for name in ("deeplink_lifetime", "code_lifetime"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigurationError(f"{name} must be positive or None")


@dataclass
class SessionConfig:
    """Session store configuration."""
    lifetime: float = 30 * 24 * 60 * 60
    sweep_interval: float = 60 * 60

    def __post_init__(self):
        if self.lifetime <= 0:
            raise ConfigurationError("session lifetime must be positive")
        if self.sweep_interval <= 0:
            raise ConfigurationError("sweep_interval must be positive")


@dataclass
class DeliveryConfig:
    """Result delivery configuration."""
    channels: FrozenSet[str] = frozenset({"callback"})
    rest_endpoint: Optional[str] = None
    rest_timeout: float = 10.0


@dataclass
class AuthMethodsConfig:
    """Which authentication methods are enabled."""
    deeplink: bool = True
    code: bool = True
    widget: bool = True
    two_factor: bool = True


@dataclass
class TelegramAuthConfig:
    """Complete configuration for the authentication stack."""
    bot: BotSettings
    methods: AuthMethodsConfig = field(default_factory=AuthMethodsConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)
    challenge: ChallengeConfig = field(default_factory=ChallengeConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)
    redis_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    log_level: str = "INFO"

    @property
    def bot_endpoints_enabled(self) -> bool:
        """Whether any method needs the bot to call back into the service."""
        return self.methods.deeplink or self.methods.code or self.methods.two_factor


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_auth_config(self) -> TelegramAuthConfig:
        """Get the full authentication configuration."""
        ...


def _env_number(name: str, default: Optional[str], cast=float):
    raw = os.getenv(name) or default
    if raw is None:
        return None
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


def _env_set(name: str, default: str) -> FrozenSet[str]:
    raw = os.getenv(name, default)
    return frozenset(item.strip().lower() for item in raw.split(",") if item.strip())


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_bot_settings(self) -> BotSettings:
        """Get bot settings from environment variables."""
        # Bot token is required - no default for security
        bot_token = os.getenv("TELEGRAM_BOT_TOKEN")
        if not bot_token:
            raise ConfigurationError(
                "TELEGRAM_BOT_TOKEN environment variable is required. "
                "Use the token issued by @BotFather."
            )
        return BotSettings.from_token(bot_token, os.getenv("TELEGRAM_BOT_USERNAME"))

    def get_auth_config(self) -> TelegramAuthConfig:
        """Get authentication configuration from environment variables."""
        methods = _env_set("AUTH_METHODS", "deeplink,code,widget,two_factor")

        config = TelegramAuthConfig(
            bot=self.get_bot_settings(),
            methods=AuthMethodsConfig(
                deeplink="deeplink" in methods,
                code="code" in methods,
                widget="widget" in methods,
                two_factor="two_factor" in methods,
            ),
            artifacts=ArtifactConfig(
                deeplink_lifetime=_env_number("DEEPLINK_LIFETIME", None),
                code_lifetime=_env_number("LOGIN_CODE_LIFETIME", None),
                code_length=_env_number("LOGIN_CODE_LENGTH", "6", int),
            ),
            challenge=ChallengeConfig(
                code_length=_env_number("TWOFA_CODE_LENGTH", "6", int),
                code_lifetime=_env_number("TWOFA_CODE_LIFETIME", "300"),
                max_attempts=_env_number("TWOFA_MAX_ATTEMPTS", "3", int),
            ),
            session=SessionConfig(
                lifetime=_env_number("SESSION_LIFETIME", str(30 * 24 * 60 * 60)),
                sweep_interval=_env_number("SESSION_SWEEP_INTERVAL", "3600"),
            ),
            delivery=DeliveryConfig(
                channels=_env_set("DELIVERY_CHANNELS", "callback"),
                rest_endpoint=os.getenv("DELIVERY_REST_ENDPOINT"),
                rest_timeout=_env_number("DELIVERY_REST_TIMEOUT", "10"),
            ),
            redis_url=os.getenv("REDIS_URL"),
            webhook_secret=os.getenv("TELEGRAM_WEBHOOK_SECRET"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

        # Bot-facing endpoints trust the identity in the request body
        if config.bot_endpoints_enabled and not config.webhook_secret:
            raise ConfigurationError(
                "TELEGRAM_WEBHOOK_SECRET environment variable is required when deeplink, "
                "code or two_factor authentication is enabled."
            )
        return config
