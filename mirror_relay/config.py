# config.py
import os
import ssl
from dataclasses import dataclass
from typing import Optional

from mirror_relay import constants


@dataclass
class RelaySettings:
    """
    Runtime settings for one relay instance.

    Defaults mirror the values in ``constants``; ``from_env`` re-reads the
    environment so a relay can be configured after import time.
    """
    host: str = constants.RELAY_HOST
    port: int = constants.RELAY_PORT
    public_host: str = constants.RELAY_PUBLIC_HOST
    session_ttl: float = constants.SESSION_TTL
    sweep_interval: float = constants.SWEEP_INTERVAL
    heartbeat_interval: Optional[float] = constants.HEARTBEAT_INTERVAL
    heartbeat_timeout: Optional[float] = constants.HEARTBEAT_TIMEOUT
    max_message_bytes: int = constants.MAX_MESSAGE_BYTES
    rate_window_seconds: float = constants.RATE_WINDOW_SECONDS
    rate_max_messages: int = constants.RATE_MAX_MESSAGES
    rate_ban_seconds: float = constants.RATE_BAN_SECONDS
    ssl_cert_file: str = constants.SSL_CERT_FILE
    ssl_key_file: str = constants.SSL_KEY_FILE

    @classmethod
    def from_env(cls) -> "RelaySettings":
        """
        Build settings from environment variables.

        Returns:
            RelaySettings: Settings with every unset variable left at its default.
        """
        return cls(
            host=os.getenv("RELAY_HOST", constants.RELAY_HOST),
            port=int(os.getenv("RELAY_PORT", constants.RELAY_PORT)),
            public_host=os.getenv("RELAY_PUBLIC_HOST", constants.RELAY_PUBLIC_HOST),
            session_ttl=float(os.getenv("SESSION_TTL", constants.SESSION_TTL)),
            sweep_interval=float(os.getenv("SWEEP_INTERVAL", constants.SWEEP_INTERVAL)),
            heartbeat_interval=constants.optional_seconds(
                os.getenv("HEARTBEAT_INTERVAL", constants.HEARTBEAT_INTERVAL)),
            heartbeat_timeout=float(os.getenv("HEARTBEAT_TIMEOUT", constants.HEARTBEAT_TIMEOUT)),
            max_message_bytes=int(os.getenv("MAX_MESSAGE_BYTES", constants.MAX_MESSAGE_BYTES)),
            rate_window_seconds=float(os.getenv("RATE_WINDOW_SECONDS", constants.RATE_WINDOW_SECONDS)),
            rate_max_messages=int(os.getenv("RATE_MAX_MESSAGES", constants.RATE_MAX_MESSAGES)),
            rate_ban_seconds=float(os.getenv("RATE_BAN_SECONDS", constants.RATE_BAN_SECONDS)),
            ssl_cert_file=os.getenv("SSL_CERT_FILE", constants.SSL_CERT_FILE),
            ssl_key_file=os.getenv("SSL_KEY_FILE", constants.SSL_KEY_FILE),
        )

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_cert_file and self.ssl_key_file)

    @property
    def scheme(self) -> str:
        return "wss" if self.tls_enabled else "ws"

    def ssl_context(self) -> Optional[ssl.SSLContext]:
        """
        Create the server SSL context when a certificate and key are configured.

        Returns:
            ssl.SSLContext or None: Context loaded with the certificate chain, or None for plain ws://.
        """
        if not self.tls_enabled:
            return None
        ssl_ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        ssl_ctx.load_cert_chain(certfile=self.ssl_cert_file, keyfile=self.ssl_key_file)
        return ssl_ctx
