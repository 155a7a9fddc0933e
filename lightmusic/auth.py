"""Authentication errors, password validation context and login throttling."""

from __future__ import annotations

import ipaddress
import threading
import time
from dataclasses import dataclass
from typing import Callable, Union

Address = Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address]
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class AuthError(Exception):
    """Base class for authentication failures."""


class UserNotFoundError(AuthError):
    """Raised when a user cannot be found."""

    def __init__(self) -> None:
        super().__init__("User not found")


@dataclass(frozen=True)
class PasswordValidationContext:
    """What a password is checked against when judging its acceptability."""

    login_name: str = ""
    user_type: str = "regular"


@dataclass
class _Entry:
    bad_attempt_count: int
    last_attempt: float


class LoginThrottler:
    """Throttles clients that fail to log in too many times in a row.

    A client is throttled once it has made ``MAX_BAD_CONSECUTIVE_ATTEMPTS``
    bad attempts, until ``THROTTLE_DURATION`` seconds have passed since its
    last attempt. At most ``max_entries`` clients are tracked; the one with
    the oldest attempt is forgotten first.
    """

    MAX_BAD_CONSECUTIVE_ATTEMPTS = 5
    THROTTLE_DURATION = 60.0

    def __init__(self, max_entries: int, clock: Callable[[], float] = time.monotonic) -> None:
        if max_entries < 0:
            raise ValueError("max_entries must not be negative")
        self._max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[IPAddress, _Entry] = {}

    @staticmethod
    def _normalize(address: Address) -> IPAddress:
        if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return address
        return ipaddress.ip_address(address)

    def _remove_outdated_entries(self, now: float) -> None:
        outdated = [
            addr
            for addr, entry in self._entries.items()
            if now - entry.last_attempt >= self.THROTTLE_DURATION
        ]
        for addr in outdated:
            del self._entries[addr]

    def is_client_throttled(self, address: Address) -> bool:
        """Return True if the client must currently be refused."""
        key = self._normalize(address)
        with self._lock:
            now = self._clock()
            self._remove_outdated_entries(now)
            entry = self._entries.get(key)
            if entry is None:
                return False
            return (
                entry.bad_attempt_count >= self.MAX_BAD_CONSECUTIVE_ATTEMPTS
                and now - entry.last_attempt < self.THROTTLE_DURATION
            )

    def on_bad_client_attempt(self, address: Address) -> None:
        """Record a failed login attempt from the client."""
        key = self._normalize(address)
        with self._lock:
            now = self._clock()
            self._remove_outdated_entries(now)
            entry = self._entries.setdefault(key, _Entry(0, now))
            entry.bad_attempt_count += 1
            entry.last_attempt = now

            if len(self._entries) > self._max_entries:
                oldest = min(self._entries, key=lambda addr: self._entries[addr].last_attempt)
                del self._entries[oldest]

    def on_good_client_attempt(self, address: Address) -> None:
        """Forget the client's failed attempts after a successful login."""
        key = self._normalize(address)
        with self._lock:
            self._entries.pop(key, None)