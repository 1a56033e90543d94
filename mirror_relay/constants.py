"""
Application-wide constants for the relay protocol, session lifecycle, WebSocket and rate limiting.

Values that operators may want to tune are read from the environment (a ``.env``
file is honoured) and fall back to the defaults below.
"""
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables for configuration
load_dotenv()


def optional_seconds(value) -> Optional[float]:
    """Parse a duration where an empty value, `0`, `off` or `none` means disabled."""
    if value is None:
        return None
    value = str(value).strip().lower()
    if value in ("", "off", "none"):
        return None
    return float(value) or None

# --- Roles ---
#: Endpoint that shares its screen and expects to receive the viewer's offer.
ROLE_SOURCE: str = "source"
#: Endpoint that displays the remote stream.
ROLE_VIEWER: str = "viewer"
#: All roles a connection can join a session with.
ROLES = (ROLE_SOURCE, ROLE_VIEWER)

# --- Inbound message types ---
MSG_JOIN: str = "join"
MSG_LEAVE: str = "leave"
MSG_OFFER: str = "offer"
MSG_ANSWER: str = "answer"
MSG_ICE_CANDIDATE: str = "ice-candidate"
MSG_PING: str = "ping"

# --- Outbound event types ---
EVT_JOINED: str = "joined"
EVT_PEER_JOINED: str = "peer-joined"
EVT_PEER_LEFT: str = "peer-left"
EVT_PEER_REPLACED: str = "peer-replaced"
EVT_ERROR: str = "error"
EVT_PONG: str = "pong"

# --- Session Lifecycle ---
#: Seconds after creation before a session is evicted by the sweeper.
SESSION_TTL: float = float(os.getenv("SESSION_TTL", 60 * 60))
#: Seconds between two sweeper runs.
SWEEP_INTERVAL: float = float(os.getenv("SWEEP_INTERVAL", 5 * 60))
#: Attempts to draw an unused token before giving up.
TOKEN_ATTEMPTS: int = 8

# --- Network ---
#: Address the server binds to.
RELAY_HOST: str = os.getenv("RELAY_HOST", "0.0.0.0")
#: Port for both the WebSocket endpoint and the descriptor endpoint.
RELAY_PORT: int = int(os.getenv("RELAY_PORT", 3000))
#: Host advertised in session descriptors; detected from the interfaces when unset.
RELAY_PUBLIC_HOST: str = os.getenv("RELAY_PUBLIC_HOST", "")

# --- SSL Certificate Paths ---
#: Path to the server's SSL certificate file (PEM format). TLS is off when empty.
SSL_CERT_FILE: str = os.getenv("SSL_CERT_FILE", "")
#: Path to the server's SSL private key file (PEM format).
SSL_KEY_FILE: str = os.getenv("SSL_KEY_FILE", "")

# --- WebSocket Heartbeat Configuration ---
#: Interval (in seconds) between heartbeat pings to clients; `0`, `off` or `none` disables them.
HEARTBEAT_INTERVAL: Optional[float] = optional_seconds(os.getenv("HEARTBEAT_INTERVAL", "10"))
#: Timeout (in seconds) to wait for a heartbeat pong before closing.
HEARTBEAT_TIMEOUT: float = float(os.getenv("HEARTBEAT_TIMEOUT", 15))
#: Largest inbound frame accepted, in bytes.
MAX_MESSAGE_BYTES: int = int(os.getenv("MAX_MESSAGE_BYTES", 64 * 1024))

# --- Rate Limiting ---
#: Length of the sliding window in seconds.
RATE_WINDOW_SECONDS: float = float(os.getenv("RATE_WINDOW_SECONDS", 5))
#: Messages allowed per client IP within the window. ICE trickling is bursty.
RATE_MAX_MESSAGES: int = int(os.getenv("RATE_MAX_MESSAGES", 120))
#: Ban duration in seconds once the limit is exceeded.
RATE_BAN_SECONDS: float = float(os.getenv("RATE_BAN_SECONDS", 30))
#: Close code sent when a client is rate limited.
RATE_LIMIT_CLOSE_CODE: int = 4008

# --- HTTP Endpoints ---
GENERATE_SESSION_PATH: str = "/generate-session"
HEALTH_PATH: str = "/health"
