"""
Result dispatcher.

Fans a successful authentication result out to every enabled delivery
channel. Delivery is detached from the state change that triggered it and
each channel is isolated: a failing channel is logged and skipped, the others
still run, and nothing is rolled back.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Set

import httpx

from ...config.provider import ConfigurationError
from ..identity import Identity

logger = logging.getLogger(__name__)


class DeliveryChannel(str, Enum):
    """Delivery channels a result can be sent through."""

    CALLBACK = "callback"
    REST = "rest"
    WEBSOCKET = "websocket"


class DeliveryEvent(str, Enum):
    """Real-time event names, one per artifact family."""

    LOGIN = "tg-auth"
    WIDGET = "tgauth:widget"
    TWO_FA = "tgauth:2fa"


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class ResultDispatcher:
    """
    Delivery policy consulted by every store on a successful result.

    The save handler is always attempted; callback, REST and websocket
    delivery run only when their channel is enabled.
    """

    def __init__(
        self,
        channels: Iterable[Any] = (),
        on_auth: Optional[Callable[[Identity], Any]] = None,
        rest_endpoint: Optional[str] = None,
        realtime_handle: Optional[Any] = None,
        save_handler: Optional[Callable[[Identity], Any]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        rest_timeout: float = 10.0,
    ):
        """
        Initialize dispatcher and validate channel configuration.

        Args:
            channels: Enabled channels (DeliveryChannel members or their names)
            on_auth: Callable invoked with the Identity (callback channel)
            rest_endpoint: URL receiving the Identity as a JSON POST (rest channel)
            realtime_handle: Object with emit(event, data) (websocket channel)
            save_handler: Callable always invoked with the Identity
            http_client: Optional shared httpx client for REST delivery
            rest_timeout: REST request timeout in seconds

        Raises:
            ConfigurationError: If an enabled channel lacks its configuration
        """
        try:
            self.channels: Set[DeliveryChannel] = {DeliveryChannel(c) for c in channels}
        except ValueError as e:
            raise ConfigurationError(f"Unknown delivery channel: {e}") from None

        if DeliveryChannel.CALLBACK in self.channels and not callable(on_auth):
            raise ConfigurationError("callback channel enabled but on_auth is not callable")
        if DeliveryChannel.REST in self.channels and not rest_endpoint:
            raise ConfigurationError("rest channel enabled but no rest_endpoint configured")
        if DeliveryChannel.WEBSOCKET in self.channels and not callable(
            getattr(realtime_handle, "emit", None)
        ):
            raise ConfigurationError("websocket channel enabled but handle has no emit()")
        if save_handler is not None and not callable(save_handler):
            raise ConfigurationError("save_handler must be callable")

        self.on_auth = on_auth
        self.rest_endpoint = rest_endpoint
        self.realtime_handle = realtime_handle
        self.save_handler = save_handler
        self.http_client = http_client
        self.rest_timeout = rest_timeout

        self._pending: Set[asyncio.Task] = set()
        self.stats = {"dispatched": 0, "delivered": 0, "failed": 0}

    def dispatch(self, event: DeliveryEvent, identity: Identity) -> asyncio.Task:
        """
        Schedule delivery of a result and return immediately.

        Must be called from a running event loop.

        Args:
            event: Event family of the result
            identity: Authenticated identity to deliver

        Returns:
            The detached delivery task
        """
        self.stats["dispatched"] += 1
        task = asyncio.get_running_loop().create_task(self.deliver(event, identity.copy()))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def deliver(self, event: DeliveryEvent, identity: Identity) -> Dict[str, bool]:
        """
        Deliver a result to every enabled channel.

        Returns:
            Mapping of channel name to delivery success
        """
        payload = identity.to_dict()
        outcome: Dict[str, bool] = {}

        if self.save_handler is not None:
            outcome["save_handler"] = await self._run("save_handler", self.save_handler, identity)

        if DeliveryChannel.CALLBACK in self.channels:
            outcome[DeliveryChannel.CALLBACK.value] = await self._run(
                "callback", self.on_auth, identity
            )

        if DeliveryChannel.REST in self.channels:
            outcome[DeliveryChannel.REST.value] = await self._run(
                "rest", self._post, payload
            )

        if DeliveryChannel.WEBSOCKET in self.channels:
            outcome[DeliveryChannel.WEBSOCKET.value] = await self._run(
                "websocket", self.realtime_handle.emit, DeliveryEvent(event).value, payload
            )

        return outcome

    async def drain(self) -> None:
        """Wait for all outstanding deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, channel: str, func: Callable, *args) -> bool:
        try:
            await _maybe_await(func(*args))
        except Exception as e:
            self.stats["failed"] += 1
            logger.error(f"Delivery via {channel} failed: {e}")
            return False
        self.stats["delivered"] += 1
        return True

    async def _post(self, payload: Dict[str, Any]) -> None:
        if self.http_client is not None:
            response = await self.http_client.post(
                self.rest_endpoint, json=payload, timeout=self.rest_timeout
            )
        else:
            async with httpx.AsyncClient(timeout=self.rest_timeout) as client:
                response = await client.post(self.rest_endpoint, json=payload)
        response.raise_for_status()
