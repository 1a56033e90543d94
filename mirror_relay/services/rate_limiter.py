"""
Sliding-window rate limiter with temporary bans, keyed by client IP.

Signaling traffic is small but bursty (a handful of offers and answers plus
trickled ICE candidates), so the window is generous; a client that floods
the relay is banned for a while and its connection closed.

Usage:
    limiter = RateLimiter()
    if limiter.allow(ip):
        # process message
    else:
        # reject or close connection
    limiter.forget(ip)  # clear state, e.g., on disconnect
"""
import time
from collections import deque, defaultdict
from typing import Callable, Deque, Dict

from mirror_relay.constants import RATE_BAN_SECONDS, RATE_MAX_MESSAGES, RATE_WINDOW_SECONDS


class _Window:
    """
    Timestamps of the events recorded for one key.
    """
    __slots__ = ("hits",)

    def __init__(self) -> None:
        self.hits: Deque[float] = deque()


class RateLimiter:
    """
    Per-key sliding window limiter.

    Keys exceeding ``max_messages`` within ``window_seconds`` are banned for
    ``ban_seconds``.
    """

    def __init__(self,
                 window_seconds: float = RATE_WINDOW_SECONDS,
                 max_messages: int = RATE_MAX_MESSAGES,
                 ban_seconds: float = RATE_BAN_SECONDS,
                 clock: Callable[[], float] = time.monotonic) -> None:
        """
        Initialize the rate limiter.

        Args:
            window_seconds (float): Length of the sliding window.
            max_messages (int): Messages allowed within one window.
            ban_seconds (float): Ban duration once the limit is exceeded.
            clock (Callable[[], float]): Monotonic time source.
        """
        self.window_seconds = window_seconds
        self.max_messages = max_messages
        self.ban_seconds = ban_seconds
        self._clock = clock
        self._wins: Dict[str, _Window] = defaultdict(_Window)
        self._banned_until: Dict[str, float] = {}

    def allow(self, key: str) -> bool:
        """
        Determine whether an action for `key` should be allowed.

        Args:
            key (str): Identifier for the client being rate-limited.

        Returns:
            bool: True if action is allowed; False if rate limit exceeded or currently banned.
        """
        now = self._clock()

        # Check existing ban
        ban_deadline = self._banned_until.get(key)
        if ban_deadline and now < ban_deadline:
            return False
        if ban_deadline:
            # Ban expired
            del self._banned_until[key]

        # Record the current event timestamp
        win = self._wins[key].hits
        win.append(now)

        # Remove timestamps outside the sliding window
        while win and now - win[0] > self.window_seconds:
            win.popleft()

        if len(win) > self.max_messages:
            self._banned_until[key] = now + self.ban_seconds
            win.clear()
            return False
        return True

    def is_banned(self, key: str) -> bool:
        return self._banned_until.get(key, 0) > self._clock()

    def forget(self, key: str) -> None:
        """
        Clear the sliding window for `key`. Active bans are kept.
        """
        self._wins.pop(key, None)
