# services/registry.py
"""
Connection registry.

Tracks which live connection holds which (session, role) and the reverse.
Connections are owned by their transport handler; the registry only keeps a
weak reference so a forgotten connection can never be kept alive here.

Lifecycle events produced by binding changes (joined, peer-joined,
peer-left, peer-replaced) are handed to ``notifier.deliver``; the signaling
router installs itself as the notifier.
"""
import logging
import weakref
from dataclasses import dataclass
from typing import Dict, Optional

from mirror_relay.constants import (
    EVT_JOINED, EVT_PEER_JOINED, EVT_PEER_LEFT, EVT_PEER_REPLACED,
    ROLE_SOURCE, ROLE_VIEWER, ROLES,
)
from mirror_relay.services.errors import InvalidRole, SessionNotFound
from mirror_relay.services.session_store import Session, SessionStore, counterpart_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    token: str
    role: str


class ConnectionRegistry:
    """
    Bidirectional index between connections and session role slots.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store
        self.notifier = None
        self._connections: "weakref.WeakValueDictionary[str, object]" = weakref.WeakValueDictionary()
        self._bindings: Dict[str, Binding] = {}
        store.add_eviction_listener(self.evict_session)

    def __len__(self) -> int:
        return len(self._connections)

    # -------------------------------------------------------------------------
    # Connection tracking
    # -------------------------------------------------------------------------
    def register(self, connection) -> None:
        """
        Start tracking a live connection.

        Args:
            connection: Object exposing ``connection_id`` and ``enqueue(message)``.
        """
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> None:
        """
        Forget a connection, detaching it from its session first.
        """
        self.detach(connection_id)
        self._connections.pop(connection_id, None)

    def connection(self, connection_id: str):
        return self._connections.get(connection_id)

    def binding(self, connection_id: str) -> Optional[Binding]:
        return self._bindings.get(connection_id)

    # -------------------------------------------------------------------------
    # Session binding
    # -------------------------------------------------------------------------
    def attach(self, connection_id: str, token: str, role: str) -> Session:
        """
        Bind a connection to a session role.

        A connection already bound elsewhere is detached from its old slot
        first. A slot held by another connection is taken over (last writer
        wins). The displaced connection is unbound and, like the counterpart,
        is told with ``peer-replaced`` (flagged ``displaced`` for the former
        holder). Once both roles are occupied the source receives
        ``peer-joined``.

        Args:
            connection_id (str): Connection asking to join.
            token (str): Session token from the descriptor.
            role (str): ``source`` or ``viewer``.

        Returns:
            Session: The session the connection is now bound to.

        Raises:
            InvalidRole: If ``role`` is not a known role.
            SessionNotFound: If ``token`` is unknown or expired.
        """
        if role not in ROLES:
            raise InvalidRole(f"Unknown role {role!r}")
        session = self.store.get(token)

        current = self._bindings.get(connection_id)
        if current == Binding(token, role):
            logger.debug(f"Connection {connection_id} already bound: token={token} role={role}")
            self._emit(connection_id, EVT_JOINED, {"token": token, "role": role})
            return session
        if current is not None:
            self.detach(connection_id)

        counterpart = counterpart_role(role)
        occupant = session.connection_for(role)
        if occupant is not None and occupant != connection_id:
            self._bindings.pop(occupant, None)
            logger.info(
                f"Connection {occupant} displaced by {connection_id}: token={token} role={role}")
            self._emit(occupant, EVT_PEER_REPLACED, {"token": token, "role": role, "displaced": True})
            peer = session.connection_for(counterpart)
            if peer is not None:
                self._emit(peer, EVT_PEER_REPLACED, {"token": token, "role": role})

        session.set_connection(role, connection_id)
        self._bindings[connection_id] = Binding(token, role)
        logger.info(f"{role.capitalize()} joined session: token={token} connection={connection_id}")
        self._emit(connection_id, EVT_JOINED, {"token": token, "role": role})

        if session.source_connection_id is not None and session.viewer_connection_id is not None:
            self._emit(session.source_connection_id, EVT_PEER_JOINED,
                       {"token": token, "role": ROLE_VIEWER})
        return session

    def detach(self, connection_id: str) -> Optional[Binding]:
        """
        Release the role slot held by a connection.

        Safe to call any number of times: only the first call for a binding
        clears the slot and notifies the counterpart with ``peer-left``. The
        session stays in the store so the peer can rejoin with the same token
        until the sweeper expires it.

        Returns:
            Binding or None: The binding that was released, if any.
        """
        binding = self._bindings.pop(connection_id, None)
        if binding is None:
            return None

        try:
            session = self.store.get(binding.token)
        except SessionNotFound:
            return binding

        if session.connection_for(binding.role) == connection_id:
            session.set_connection(binding.role, None)
        logger.info(
            f"{binding.role.capitalize()} left session: token={binding.token} connection={connection_id}")

        peer = session.connection_for(counterpart_role(binding.role))
        if peer is not None:
            self._emit(peer, EVT_PEER_LEFT, {"token": binding.token, "role": binding.role})
        return binding

    def lookup(self, token: str, role: str) -> Optional[str]:
        """
        Resolve the connection holding ``role`` in session ``token``.

        Returns:
            str or None: Connection id, or None if the session is gone or the slot is empty.
        """
        try:
            session = self.store.get(token)
        except SessionNotFound:
            return None
        return session.connection_for(role)

    def evict_session(self, session: Session) -> None:
        """
        Drop every connection bound to an expiring session.

        Each connection that was bound is told ``peer-left`` so its UI does not
        keep waiting on a session that no longer exists.
        """
        evicted = []
        for role in (ROLE_SOURCE, ROLE_VIEWER):
            connection_id = session.connection_for(role)
            if connection_id is None:
                continue
            self._bindings.pop(connection_id, None)
            session.set_connection(role, None)
            evicted.append((connection_id, role))

        for connection_id, role in evicted:
            self._emit(connection_id, EVT_PEER_LEFT, {
                "token": session.token,
                "role": counterpart_role(role),
                "reason": "expired",
            })

    def _emit(self, connection_id: str, msg_type: str, payload: dict) -> None:
        if self.notifier is None:
            logger.debug(f"No notifier installed, dropping {msg_type} for {connection_id}")
            return
        self.notifier.deliver(connection_id, msg_type, payload)
