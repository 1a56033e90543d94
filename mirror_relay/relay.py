# relay.py
"""
The relay object: owns the session store, connection registry, router and
sweeper for one server, and runs the WebSocket server on top of them.
"""
import logging
from typing import Callable, Optional

from websockets import serve

from mirror_relay.config import RelaySettings
from mirror_relay.handlers.connection import ConnectionHandler
from mirror_relay.handlers.http_handler import HttpHandler
from mirror_relay.handlers.signaling_handler import SignalingRouter
from mirror_relay.services.descriptor import DescriptorGenerator
from mirror_relay.services.rate_limiter import RateLimiter
from mirror_relay.services.registry import ConnectionRegistry
from mirror_relay.services.session_store import SessionStore
from mirror_relay.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)


class SignalingRelay:
    """
    One signaling relay instance.

    Built at process start, started with ``start()`` inside a running event
    loop and torn down with ``stop()``. All state lives on the instance.
    """

    def __init__(self, settings: RelaySettings = None, clock: Callable[[], float] = None):
        """
        Args:
            settings (RelaySettings, optional): Runtime settings. Defaults to ``RelaySettings()``.
            clock (Callable[[], float], optional): Epoch-seconds clock shared by store and sweeper.
        """
        self.settings = settings or RelaySettings()
        clock_kwargs = {"clock": clock} if clock is not None else {}

        self.store = SessionStore(**clock_kwargs)
        self.registry = ConnectionRegistry(self.store)
        self.router = SignalingRouter(self.registry)
        self.generator = DescriptorGenerator(
            self.store,
            port=self.settings.port,
            public_host=self.settings.public_host,
            scheme=self.settings.scheme,
        )
        self.sweeper = ExpirySweeper(
            self.store,
            ttl=self.settings.session_ttl,
            interval=self.settings.sweep_interval,
            **clock_kwargs,
        )
        self.rate_limiter = RateLimiter(
            window_seconds=self.settings.rate_window_seconds,
            max_messages=self.settings.rate_max_messages,
            ban_seconds=self.settings.rate_ban_seconds,
        )
        self.http = HttpHandler(self.generator, self.registry)
        self._server = None

    @property
    def port(self) -> Optional[int]:
        """
        Port actually bound, useful when the configured port is 0.
        """
        if self._server is None:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def handle_connection(self, ws) -> None:
        await ConnectionHandler(ws, self.router, self.rate_limiter).handle_connection()

    async def start(self) -> None:
        """
        Start the sweeper and begin accepting connections.
        """
        await self.generator.resolve_host()
        self._server = await serve(
            self.handle_connection,
            host=self.settings.host,
            port=self.settings.port,
            ssl=self.settings.ssl_context(),
            process_request=self.http.process_request,
            ping_interval=self.settings.heartbeat_interval,
            ping_timeout=self.settings.heartbeat_timeout,
            max_size=self.settings.max_message_bytes,
        )
        if self.settings.port == 0:
            # Advertise the ephemeral port in descriptors
            self.generator.port = self.port
        self.sweeper.start()
        logger.info(f"Signaling relay listening on {self.settings.host}:{self.port}")

    async def stop(self) -> None:
        """
        Stop the sweeper and close the server and every open connection.
        """
        await self.sweeper.stop()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("Signaling relay stopped")
