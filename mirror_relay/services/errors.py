# services/errors.py
"""
Exception hierarchy for the signaling relay.

Every error that can be reported back to a client carries an ``error_code``
which ends up in the outbound ``error`` event.
"""


class RelayError(Exception):
    """Base class for relay errors that are reported to the sender."""

    error_code = "RELAY_ERROR"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class SessionNotFound(RelayError):
    """Session token is unknown or has expired."""

    error_code = "SESSION_NOT_FOUND"

    def __init__(self, token: str = None):
        super().__init__(f"Session {token} not found" if token else None)
        self.token = token


class InvalidRole(RelayError):
    """Role must be 'source' or 'viewer'."""

    error_code = "INVALID_ROLE"


class InvalidMessage(RelayError):
    """Message could not be parsed."""

    error_code = "INVALID_MESSAGE"


class UnknownMessageType(RelayError):
    """Message type is not supported."""

    error_code = "UNKNOWN_MESSAGE_TYPE"


class RoutingDropped(RelayError):
    """No counterpart attached; the message was discarded."""

    error_code = "ROUTING_DROPPED"


class TokenSpaceExhausted(RuntimeError):
    """
    Raised when no unique session token could be generated.

    This points at a broken token generator, not at load, and is not
    reported to clients.
    """
