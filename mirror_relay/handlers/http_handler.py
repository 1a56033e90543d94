# handlers/http_handler.py
"""
Plain HTTP endpoints served on the WebSocket port.

``websockets`` hands every incoming request to ``process_request`` before the
handshake; requests that are not WebSocket upgrades are answered here.
"""
import email.utils
import json
import logging
from http import HTTPStatus

from websockets.datastructures import Headers
from websockets.http11 import Response

from mirror_relay.constants import GENERATE_SESSION_PATH, HEALTH_PATH
from mirror_relay.services.descriptor import DescriptorGenerator
from mirror_relay.services.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def json_response(status: HTTPStatus, body: dict) -> Response:
    """
    Build an HTTP response with a JSON body.

    Args:
        status (HTTPStatus): Response status.
        body (dict): Data to serialize.

    Returns:
        Response: Response object accepted by ``process_request``.
    """
    data = json.dumps(body).encode()
    headers = Headers([
        ("Date", email.utils.formatdate(usegmt=True)),
        ("Connection", "close"),
        ("Content-Type", "application/json"),
        ("Content-Length", str(len(data))),
        ("Access-Control-Allow-Origin", "*"),
    ])
    return Response(status.value, status.phrase, headers, data)


class HttpHandler:
    """
    Serves descriptor generation and health checks.
    """

    def __init__(self, generator: DescriptorGenerator, registry: ConnectionRegistry):
        self.generator = generator
        self.registry = registry

    def process_request(self, connection, request):
        """
        Answer plain HTTP requests; let WebSocket upgrades through.

        Args:
            connection: The ``ServerConnection`` being opened.
            request (websockets.http11.Request): The parsed HTTP request.

        Returns:
            Response or None: A response for plain HTTP, None to continue the handshake.
        """
        if "websocket" in request.headers.get("Upgrade", "").lower():
            return None

        path = request.path.split("?", 1)[0]
        if path == GENERATE_SESSION_PATH:
            return self.generate_session()
        if path == HEALTH_PATH:
            return self.health()

        logger.debug(f"No route for {path}")
        return json_response(HTTPStatus.NOT_FOUND, {"success": False, "error": "Not found"})

    def generate_session(self) -> Response:
        try:
            descriptor = self.generator.new_descriptor()
        except Exception as e:
            logger.error("Error generating session", exc_info=e)
            return json_response(HTTPStatus.INTERNAL_SERVER_ERROR,
                                 {"success": False, "error": "Could not create session"})
        return json_response(HTTPStatus.OK, {"success": True, **descriptor.to_dict()})

    def health(self) -> Response:
        """
        Report session and connection counts.

        ``idle_sessions`` counts sessions nobody is bound to, which only the
        sweeper will ever remove.
        """
        sessions = self.registry.store.sessions()
        return json_response(HTTPStatus.OK, {
            "status": "ok",
            "sessions": len(sessions),
            "idle_sessions": sum(1 for session in sessions if session.is_empty()),
            "connections": len(self.registry),
        })
