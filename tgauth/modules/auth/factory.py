"""
Authentication Factory following Black Box Design principles.

This factory:
- Constructs the authentication stack based on configuration
- Wires dependencies together
- Returns only the service facade (hiding implementation)
"""

import logging
from typing import Any, Callable, Optional

import httpx

from ...config.provider import (
    BotSettings,
    ConfigProvider,
    DeliveryConfig,
    TelegramAuthConfig,
)
from ..audit import AuditService, MemoryAuditStorage, RedisAuditStorage
from ..dispatch import ResultDispatcher
from ..session import SessionStore
from ..storage import InMemorySessionPersistence, RedisSessionPersistence
from .artifact import ArtifactKind, ArtifactStore, DeeplinkAuth
from .challenge import ChallengeStore
from .service import TelegramAuth
from .widget import SignatureVerifier

logger = logging.getLogger(__name__)


class TelegramAuthFactory:
    """
    Factory for building the authentication stack.

    This is the composition root that:
    - Creates all auth components
    - Wires them together via dependency injection
    - Returns only the public interface
    """

    @staticmethod
    def build(
        config_provider: ConfigProvider,
        redis_client: Optional[Any] = None,
        on_auth: Optional[Callable] = None,
        realtime_handle: Optional[Any] = None,
        save_handler: Optional[Callable] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> TelegramAuth:
        """
        Build the complete authentication stack.

        Args:
            config_provider: Configuration provider
            redis_client: Optional Redis client for audit trail and session snapshots
            on_auth: Callback channel target
            realtime_handle: Websocket channel target (object with emit())
            save_handler: Always-invoked result hook
            http_client: Optional shared client for REST delivery

        Returns:
            TelegramAuth facade (hides all implementation details)

        Raises:
            ConfigurationError: If configuration is incomplete
        """
        return TelegramAuthFactory.build_from_config(
            config_provider.get_auth_config(),
            redis_client=redis_client,
            on_auth=on_auth,
            realtime_handle=realtime_handle,
            save_handler=save_handler,
            http_client=http_client,
        )

    @staticmethod
    def build_from_config(
        config: TelegramAuthConfig,
        redis_client: Optional[Any] = None,
        on_auth: Optional[Callable] = None,
        realtime_handle: Optional[Any] = None,
        save_handler: Optional[Callable] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> TelegramAuth:
        """Build the stack from an already loaded configuration."""
        clock_kwargs = {"clock": clock} if clock is not None else {}

        if redis_client is not None:
            logger.info("Building authentication stack with Redis audit trail and sessions")
            audit = AuditService(RedisAuditStorage(redis_client), **clock_kwargs)
            persistence = RedisSessionPersistence(redis_client)
        else:
            logger.info("Building in-memory authentication stack")
            audit = AuditService(MemoryAuditStorage(), **clock_kwargs)
            persistence = InMemorySessionPersistence()

        dispatcher = ResultDispatcher(
            channels=config.delivery.channels,
            on_auth=on_auth,
            rest_endpoint=config.delivery.rest_endpoint,
            realtime_handle=realtime_handle,
            save_handler=save_handler,
            http_client=http_client,
            rest_timeout=config.delivery.rest_timeout,
        )

        auth = TelegramAuth(
            sessions=SessionStore(
                config=config.session, persistence=persistence, audit=audit, **clock_kwargs
            ),
            dispatcher=dispatcher,
            audit=audit,
        )

        methods = config.methods
        if methods.deeplink:
            auth.deeplink = DeeplinkAuth(
                config.bot,
                dispatcher,
                audit=audit,
                lifetime=config.artifacts.deeplink_lifetime,
                **clock_kwargs,
            )
        if methods.code:
            auth.code = ArtifactStore(
                ArtifactKind.CODE,
                dispatcher,
                audit=audit,
                lifetime=config.artifacts.code_lifetime,
                code_length=config.artifacts.code_length,
                **clock_kwargs,
            )
        if methods.widget:
            auth.widget = SignatureVerifier(
                config.bot.bot_token, dispatcher, audit=audit, **clock_kwargs
            )
        if methods.two_factor:
            auth.two_fa = ChallengeStore(
                dispatcher,
                config=config.challenge,
                audit=audit,
                bot_settings=config.bot,
                **clock_kwargs,
            )

        enabled = [
            name
            for name in ("deeplink", "code", "widget", "two_fa")
            if getattr(auth, name) is not None
        ]
        logger.info(f"Authentication methods enabled: {', '.join(enabled) or 'none'}")
        return auth

    @staticmethod
    def build_for_testing(
        bot_token: str = "123456:TEST-TOKEN",
        on_auth: Optional[Callable] = None,
        clock: Optional[Callable[[], float]] = None,
        **overrides: Any,
    ) -> TelegramAuth:
        """
        Build an in-memory stack for tests.

        Args:
            bot_token: Bot token used for widget signatures
            on_auth: Optional callback; enables the callback channel when given
            clock: Optional shared time source
            **overrides: TelegramAuthConfig fields to replace
        """
        if on_auth is None and "delivery" not in overrides:
            overrides["delivery"] = DeliveryConfig(channels=frozenset())
        config = TelegramAuthConfig(bot=BotSettings.from_token(bot_token, "test_bot"), **overrides)
        return TelegramAuthFactory.build_from_config(config, on_auth=on_auth, clock=clock)
