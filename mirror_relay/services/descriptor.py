# services/descriptor.py
"""
Session descriptor generation.

A descriptor is the bundle a prospective second participant receives out of
band (usually rendered as a QR code by the web client): the session token,
the address of this relay and the creation time.
"""
import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Callable

from mirror_relay.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Descriptor:
    token: str
    address: str
    created_at: float

    def to_dict(self) -> dict:
        """
        Serialize the descriptor for the HTTP endpoint.

        Returns:
            dict: ``token``, ``address`` and ``createdAt`` (epoch milliseconds).
        """
        return {
            "token": self.token,
            "address": self.address,
            "createdAt": int(self.created_at * 1000),
        }


def get_local_ip_address() -> str:
    """
    Find the first non-loopback IPv4 address of this machine.

    Tries the addresses bound to the hostname first, then asks the kernel which
    interface would route to a public address (no packet is sent).

    Returns:
        str: The address, or ``"localhost"`` when nothing usable is found.
    """
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            addr = info[4][0]
            if not ipaddress.ip_address(addr).is_loopback:
                return addr
    except (socket.gaierror, ValueError):
        pass

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect(("10.255.255.255", 1))
        addr = sock.getsockname()[0]
        if not ipaddress.ip_address(addr).is_loopback and addr != "0.0.0.0":
            return addr
    except OSError:
        pass
    finally:
        sock.close()
    return "localhost"


class DescriptorGenerator:
    """
    Creates sessions and the descriptors that point clients at them.
    """

    def __init__(self, store: SessionStore, port: int, public_host: str = "",
                 scheme: str = "ws", host_resolver: Callable[[], str] = get_local_ip_address):
        """
        Args:
            store (SessionStore): Store new sessions are created in.
            port (int): Public port of the relay.
            public_host (str): Advertised host; detected once via ``host_resolver`` when empty.
            scheme (str): ``ws`` or ``wss``.
            host_resolver (Callable[[], str]): Fallback used to detect the local address.
        """
        self.store = store
        self.port = port
        self.public_host = public_host
        self.scheme = scheme
        self._host_resolver = host_resolver

    @property
    def address(self) -> str:
        if not self.public_host:
            self.public_host = self._host_resolver()
        return f"{self.scheme}://{self.public_host}:{self.port}"

    async def resolve_host(self) -> str:
        """
        Detect the advertised host once, off the event loop.

        Returns:
            str: The host descriptors will carry from now on.
        """
        if not self.public_host:
            loop = asyncio.get_running_loop()
            self.public_host = await loop.run_in_executor(None, self._host_resolver)
            logger.info(f"Advertising detected host {self.public_host}")
        return self.public_host

    def new_descriptor(self) -> Descriptor:
        """
        Create a session and describe how to reach it.

        Returns:
            Descriptor: Token, relay address and creation time of the new session.
        """
        session = self.store.create()
        descriptor = Descriptor(
            token=session.token,
            address=self.address,
            created_at=session.created_at,
        )
        logger.info(
            f"Descriptor issued: token={descriptor.token} address={descriptor.address}")
        return descriptor
