# handlers/signaling_handler.py
import logging
from typing import Optional

from mirror_relay.constants import (
    MSG_ANSWER, MSG_ICE_CANDIDATE, MSG_JOIN, MSG_LEAVE, MSG_OFFER,
    ROLE_SOURCE, ROLE_VIEWER, ROLES,
)
from mirror_relay.services.errors import InvalidMessage, InvalidRole, RoutingDropped, UnknownMessageType
from mirror_relay.services.messaging import error_message, message_type, structure_message
from mirror_relay.services.registry import Binding, ConnectionRegistry
from mirror_relay.services.session_store import counterpart_role

logger = logging.getLogger(__name__)

# Device names used by the first generation of clients
ROLE_ALIASES = {
    "pc": ROLE_SOURCE,
    "mobile": ROLE_VIEWER,
}


def normalize_role(role) -> Optional[str]:
    """
    Map a client-supplied role (or legacy device type) to a relay role.

    Returns:
        str or None: ``source``/``viewer``, or None if the value is not a known role.
    """
    if not isinstance(role, str):
        return None
    role = role.strip().lower()
    role = ROLE_ALIASES.get(role, role)
    return role if role in ROLES else None


class SignalingRouter:
    """
    Routes negotiation messages between the two endpoints of a session.

    The router never inspects offer, answer or candidate bodies; it only
    decides where they go. It is also the registry's notifier, turning
    binding changes into outbound events.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry
        registry.notifier = self

        # Mapping of message types to handler functions
        self.handlers = {
            MSG_JOIN:          self.handle_join,
            MSG_LEAVE:         self.handle_leave,
            MSG_OFFER:         self.handle_offer,
            MSG_ANSWER:        self.handle_answer,
            MSG_ICE_CANDIDATE: self.handle_ice_candidate,
        }

    # -------------------------------------------------------------------------
    # Outbound delivery
    # -------------------------------------------------------------------------
    def deliver(self, connection_id: str, msg_type: str, payload: dict = None) -> bool:
        """
        Queue an event for a connection without waiting for it to be written.

        Args:
            connection_id (str): Recipient.
            msg_type (str): Outbound event type.
            payload (dict, optional): Event payload.

        Returns:
            bool: False if the connection is no longer registered.
        """
        connection = self.registry.connection(connection_id)
        if connection is None:
            logger.debug(f"Dropping {msg_type} for unknown connection {connection_id}")
            return False
        connection.enqueue(structure_message(msg_type, success=True, payload=payload))
        return True

    def deliver_error(self, connection_id: str, error, request_type: str = None) -> bool:
        """
        Queue an ``error`` event built from a RelayError.
        """
        connection = self.registry.connection(connection_id)
        if connection is None:
            return False
        connection.enqueue(error_message(error.error_code, error.message, request_type))
        return True

    # -------------------------------------------------------------------------
    # Inbound dispatch
    # -------------------------------------------------------------------------
    def dispatch(self, connection_id: str, data: dict) -> None:
        """
        Dispatch a parsed message to the handler for its type.

        Args:
            connection_id (str): Sender.
            data (dict): Parsed message with ``msg_type`` (or ``type``), ``token`` and ``payload``.

        Raises:
            UnknownMessageType: If no handler exists for the message type.
            InvalidMessage: If the payload is not an object or the token is not a string.
            RelayError: Whatever the handler raises.
        """
        msg_type = message_type(data)
        handler = self.handlers.get(msg_type)
        if handler is None:
            raise UnknownMessageType(f"Unknown message type: {msg_type}")

        payload = data.get("payload", {})
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            raise InvalidMessage(f"Payload of {msg_type} must be an object")

        token = data.get("token") or payload.get("token")
        if token is not None and not isinstance(token, str):
            raise InvalidMessage(f"Token of {msg_type} must be a string")
        handler(connection_id, token, payload)

    def handle_join(self, connection_id: str, token: str, payload: dict) -> None:
        """
        Bind the sender to a session role.

        The registry acknowledges with ``joined`` and notifies the peer.
        """
        role = normalize_role(payload.get("role", payload.get("deviceType")))
        if role is None:
            raise InvalidRole(f"Role must be one of {', '.join(ROLES)}")
        if not token:
            raise InvalidMessage("join requires a session token")
        self.registry.attach(connection_id, token, role)

    def handle_leave(self, connection_id: str, token: str, payload: dict) -> None:
        """
        Explicitly release the sender's role slot.

        A leave for a session the sender is not bound to is ignored.
        """
        binding = self.registry.binding(connection_id)
        if binding is None or (token and binding.token != token):
            logger.debug(f"Ignoring leave from unbound connection {connection_id}")
            return
        self.registry.detach(connection_id)

    def handle_offer(self, connection_id: str, token: str, payload: dict) -> None:
        self._forward(connection_id, token, MSG_OFFER, payload)

    def handle_answer(self, connection_id: str, token: str, payload: dict) -> None:
        self._forward(connection_id, token, MSG_ANSWER, payload)

    def handle_ice_candidate(self, connection_id: str, token: str, payload: dict) -> None:
        """
        Forward an ICE candidate to the role named by the sender.

        The recipient is never inferred from the sender's own role.
        """
        target = normalize_role(payload.get("targetRole", payload.get("target")))
        if target is None:
            raise InvalidRole("ice-candidate requires targetRole 'source' or 'viewer'")
        self._forward(connection_id, token, MSG_ICE_CANDIDATE, payload, role=target)

    # -------------------------------------------------------------------------
    # Routing helpers
    # -------------------------------------------------------------------------
    def _forward(self, sender_id: str, token: str, msg_type: str, payload: dict,
                 role: Optional[str] = None) -> bool:
        """
        Relay a negotiation message to the sender's peer.

        Offers and answers go to the counterpart of the sender's own role.
        Senders not currently bound to ``token`` (never joined, left, or
        displaced by a newer connection) are dropped.
        """
        try:
            binding = self._sender_binding(sender_id, token)
            role = role or counterpart_role(binding.role)
            target_id = self._resolve(sender_id, token, role)
        except RoutingDropped as e:
            logger.debug(f"Dropped {msg_type} from {sender_id}: {e.message}")
            return False

        logger.info(f"Forwarding {msg_type} to {role}: token={token}")
        return self.deliver(target_id, msg_type, payload)

    def _sender_binding(self, sender_id: str, token: str) -> Binding:
        if not token:
            raise RoutingDropped("message carries no session token")
        binding = self.registry.binding(sender_id)
        if binding is None or binding.token != token:
            raise RoutingDropped(f"sender is not bound to token={token}")
        return binding

    def _resolve(self, sender_id: str, token: str, role: str) -> str:
        target_id = self.registry.lookup(token, role)
        if target_id is None:
            raise RoutingDropped(f"no {role} attached to token={token}")
        if target_id == sender_id:
            raise RoutingDropped(f"sender holds the {role} role itself")
        return target_id
