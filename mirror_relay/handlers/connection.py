# handlers/connection.py

import asyncio
import itertools
import json
import logging
from typing import Optional

import websockets

from mirror_relay.constants import EVT_PONG, MSG_PING, RATE_LIMIT_CLOSE_CODE
from mirror_relay.handlers.signaling_handler import SignalingRouter
from mirror_relay.services.errors import InvalidMessage, RelayError
from mirror_relay.services.messaging import encode_message, error_message, message_type, structure_message
from mirror_relay.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Process-unique connection ids
_connection_ids = itertools.count(1)


def next_connection_id() -> str:
    return f"conn-{next(_connection_ids)}"


class ConnectionHandler:
    """
    Manages a single WebSocket connection: registration, the
    parse/dispatch loop, the outbound writer and cleanup on disconnect.

    Outbound messages go through a per-connection queue drained by a writer
    task, so routing never waits on a slow peer and messages to one peer are
    written in the order they were queued.
    """

    def __init__(self, ws, router: SignalingRouter, rate_limiter: RateLimiter):
        """
        Initialize the ConnectionHandler with a WebSocket instance.

        Args:
            ws (websockets.asyncio.server.ServerConnection): The accepted connection.
            router (SignalingRouter): Router shared by all connections of the relay.
            rate_limiter (RateLimiter): Limiter shared by all connections of the relay.
        """
        self.ws = ws
        self.router = router
        self.registry = router.registry
        self.rate_limiter = rate_limiter
        self.connection_id = next_connection_id()
        self._outbox: "asyncio.Queue[dict]" = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None

    @property
    def remote_ip(self) -> Optional[str]:
        address = getattr(self.ws, "remote_address", None)
        return address[0] if address else None

    def enqueue(self, message: dict) -> None:
        """
        Queue a structured message for delivery. Never blocks.
        """
        self._outbox.put_nowait(message)

    async def handle_connection(self) -> None:
        """
        Main entry point for handling a new WebSocket connection.

        Registers the connection, starts the writer, then parses and
        dispatches every inbound frame until the client goes away. However
        the loop ends, the connection is detached from its session.

        Returns:
            None
        """
        ip = self.remote_ip
        logger.info(f"Client connected: {self.connection_id} from {ip}")
        self.registry.register(self)
        self._writer = asyncio.create_task(self._write_loop())

        try:
            async for raw in self.ws:
                if ip is not None and not self.rate_limiter.allow(ip):
                    logger.warning(f"Rate limit exceeded by {ip}, closing {self.connection_id}")
                    await self.ws.close(code=RATE_LIMIT_CLOSE_CODE, reason="Rate limit exceeded")
                    break

                try:
                    data = self._parse(raw)
                except InvalidMessage as e:
                    logger.warning(f"Invalid message from {self.connection_id}: {e.message}")
                    self.enqueue(error_message(e.error_code, e.message))
                    continue

                # Heartbeat
                if message_type(data) == MSG_PING:
                    self.enqueue(structure_message(EVT_PONG))
                    continue

                self._dispatch(data)
        except websockets.exceptions.ConnectionClosed:
            logger.info(f"Connection {self.connection_id} closed by client")
        except Exception as e:
            logger.error("Connection loop error", exc_info=e)
        finally:
            self._cleanup(ip)
            await self._stop_writer()

    def _parse(self, raw) -> dict:
        """
        Decode a text frame into a message dictionary.

        Raises:
            InvalidMessage: For binary frames, malformed JSON or non-object JSON.
        """
        if isinstance(raw, bytes):
            raise InvalidMessage("Only text frames are accepted")
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            raise InvalidMessage("Invalid message format")
        if not isinstance(data, dict):
            raise InvalidMessage("Message must be a JSON object")
        return data

    def _dispatch(self, data: dict) -> None:
        """
        Hand a message to the router and turn failures into ``error`` events.

        Routing errors only concern this connection; the loop keeps running.
        """
        msg_type = message_type(data)
        try:
            self.router.dispatch(self.connection_id, data)
        except RelayError as e:
            logger.warning(f"{msg_type} from {self.connection_id} rejected: {e.error_code}")
            self.enqueue(error_message(e.error_code, e.message, msg_type))
        except Exception as e:
            logger.error(f"Handler for {msg_type} failed", exc_info=e)
            self.enqueue(error_message("INTERNAL_ERROR", "Internal server error", msg_type))

    async def _write_loop(self) -> None:
        while True:
            message = await self._outbox.get()
            try:
                await self.ws.send(encode_message(message))
            except websockets.exceptions.ConnectionClosed:
                logger.debug(f"Dropping {message.get('msg_type')} for closed {self.connection_id}")
                break

    async def _stop_writer(self) -> None:
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._writer = None

    def _cleanup(self, ip: Optional[str]) -> None:
        """
        Detach and forget this connection, and reset the rate limiter for its IP unless banned.
        """
        logger.info(f"Client disconnected: {self.connection_id}")
        self.registry.unregister(self.connection_id)
        if ip is not None and not self.rate_limiter.is_banned(ip):
            self.rate_limiter.forget(ip)
