# services/messaging.py
import json
import logging
import uuid
from datetime import datetime, timezone

from mirror_relay.constants import EVT_ERROR

logger = logging.getLogger(__name__)


def structure_message(
    msg_type,
    success=True,
    payload=None,
    error_code=None,
    error_message=None,
):
    """
    Build a structured outbound message.

    Args:
        msg_type (str): Message type identifier.
        success (bool, optional): Operation status. Defaults to True.
        payload (dict, optional): Event data. Defaults to {}.
        error_code (str, optional): Error code on failure.
        error_message (str, optional): Error description on failure.

    The structured message contains:
      - message_id: A new unique identifier for each message.
      - timestamp: The UTC timestamp when the message was created.
      - msg_type: The type of message.
      - success: Boolean indicator of operation status.
      - error_code and error_message: Only populated if the request failed.
      - payload: Event-specific data. Forwarded negotiation bodies are placed
        here untouched.

    Returns:
        dict: The message, ready for ``encode_message``.
    """
    message = {
        "message_id": str(uuid.uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "msg_type": msg_type,
        "success": success,
        "payload": payload if payload is not None else {}
    }
    if not success:
        message["error_code"] = error_code if error_code else "UNKNOWN_ERROR"
        message["error_message"] = error_message if error_message else "An unknown error occurred."
    return message


def error_message(error_code, error_message, request_type=None):
    """
    Build an ``error`` event.

    Args:
        error_code (str): Error code identifier, also exposed as ``payload.reason``.
        error_message (str): Human-readable error message.
        request_type (str, optional): Type of the inbound message that failed.

    Returns:
        dict: Structured error message.
    """
    payload = {"reason": error_code}
    if request_type:
        payload["request_type"] = request_type
    return structure_message(
        EVT_ERROR,
        success=False,
        payload=payload,
        error_code=error_code,
        error_message=error_message,
    )


def encode_message(message: dict) -> str:
    return json.dumps(message)


def message_type(data: dict):
    """Return the inbound message type, accepting the legacy ``type`` key."""
    return data.get("msg_type") or data.get("type")
