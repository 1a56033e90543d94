# services/session_store.py
"""
In-memory session store.

Maps session tokens to ``Session`` records. The store is owned by the relay
instance; nothing here is module-global, so several relays (or tests) can
coexist in one process.
"""
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from mirror_relay.constants import ROLE_SOURCE, ROLE_VIEWER, TOKEN_ATTEMPTS
from mirror_relay.services.errors import InvalidRole, SessionNotFound, TokenSpaceExhausted

logger = logging.getLogger(__name__)

EvictionListener = Callable[["Session"], None]


@dataclass
class Session:
    """
    A pairing context between one source and one viewer connection.

    Attributes:
        token (str): Opaque unique identifier handed out in the descriptor.
        created_at (float): Creation time, epoch seconds.
        source_connection_id (str, optional): Connection currently holding the source role.
        viewer_connection_id (str, optional): Connection currently holding the viewer role.
    """
    token: str
    created_at: float
    source_connection_id: Optional[str] = None
    viewer_connection_id: Optional[str] = None

    def connection_for(self, role: str) -> Optional[str]:
        if role == ROLE_SOURCE:
            return self.source_connection_id
        if role == ROLE_VIEWER:
            return self.viewer_connection_id
        raise InvalidRole(f"Unknown role {role!r}")

    def set_connection(self, role: str, connection_id: Optional[str]) -> None:
        if role == ROLE_SOURCE:
            self.source_connection_id = connection_id
        elif role == ROLE_VIEWER:
            self.viewer_connection_id = connection_id
        else:
            raise InvalidRole(f"Unknown role {role!r}")

    def is_empty(self) -> bool:
        return self.source_connection_id is None and self.viewer_connection_id is None

    def age(self, now: float) -> float:
        return now - self.created_at


def counterpart_role(role: str) -> str:
    """
    Return the role on the other side of a session.

    Raises:
        InvalidRole: If ``role`` is neither source nor viewer.
    """
    if role == ROLE_SOURCE:
        return ROLE_VIEWER
    if role == ROLE_VIEWER:
        return ROLE_SOURCE
    raise InvalidRole(f"Unknown role {role!r}")


def generate_token() -> str:
    """
    Generate a random session token.

    Returns:
        str: A UUID4 string; random rather than sequential so tokens cannot be guessed.
    """
    return str(uuid.uuid4())


class SessionStore:
    """
    Token → Session mapping with creation, lookup, removal and TTL sweeping.
    """

    def __init__(self, clock: Callable[[], float] = time.time,
                 token_factory: Callable[[], str] = generate_token) -> None:
        """
        Initialize an empty store.

        Args:
            clock (Callable[[], float]): Source of the current time in epoch seconds.
            token_factory (Callable[[], str]): Produces candidate session tokens.
        """
        self._sessions: Dict[str, Session] = {}
        self._clock = clock
        self._token_factory = token_factory
        self._eviction_listeners: List[EvictionListener] = []

    def __contains__(self, token: str) -> bool:
        return token in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def add_eviction_listener(self, listener: EvictionListener) -> None:
        """
        Register a callback invoked for every session removed by ``sweep_expired``.

        Listeners run before the session leaves the mapping, so they can still
        resolve the session's connections.
        """
        self._eviction_listeners.append(listener)

    def create(self) -> Session:
        """
        Create and store a new session with both role slots empty.

        Returns:
            Session: The freshly inserted session.

        Raises:
            TokenSpaceExhausted: If the token factory keeps returning tokens already in use.
        """
        for _ in range(TOKEN_ATTEMPTS):
            token = self._token_factory()
            if token not in self._sessions:
                break
        else:
            raise TokenSpaceExhausted(
                f"No unused token after {TOKEN_ATTEMPTS} attempts")

        session = Session(token=token, created_at=self._clock())
        self._sessions[token] = session
        logger.info(f"New session created: token={token}")
        return session

    def get(self, token: str) -> Session:
        """
        Look up a session by token.

        Raises:
            SessionNotFound: If the token is unknown, stale or already cleaned up.
        """
        session = self._sessions.get(token)
        if session is None:
            raise SessionNotFound(token)
        return session

    def remove(self, token: str) -> None:
        if self._sessions.pop(token, None) is not None:
            logger.info(f"Session removed: token={token}")

    def sessions(self) -> List[Session]:
        return list(self._sessions.values())

    def sweep_expired(self, now: float, ttl: float) -> List[Session]:
        """
        Remove every session older than ``ttl`` seconds.

        Eviction listeners are notified for each expired session before it is
        deleted; a failing listener is logged and does not stop the sweep.

        Args:
            now (float): Current time, epoch seconds.
            ttl (float): Maximum session age in seconds.

        Returns:
            List[Session]: The sessions that were evicted.
        """
        expired = [s for s in self._sessions.values() if s.age(now) > ttl]
        for session in expired:
            logger.info(f"Cleaning up old session: token={session.token}")
            for listener in self._eviction_listeners:
                try:
                    listener(session)
                except Exception as e:
                    logger.error(
                        f"Eviction listener failed for token={session.token}", exc_info=e)
            self._sessions.pop(session.token, None)
        return expired
