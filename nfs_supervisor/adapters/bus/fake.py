"""Fake SignalBus for testing.

Records match rules and calls in memory, lets tests emit signals to the
registered handlers, and returns canned replies for method calls.
"""

import asyncio
from collections.abc import Sequence
from typing import Any, Optional

from nfs_supervisor.core.exceptions import BusCallError
from nfs_supervisor.core.protocols.bus import BusSignal, SignalHandler


class FakeSignalBus:
    """In-memory spy implementing the SignalBus protocol."""

    def __init__(self) -> None:
        self.matches: list[str] = []
        self.removed_matches: list[str] = []
        self.handlers: list[SignalHandler] = []
        self.calls: list[tuple[str, str, str, tuple[Any, ...]]] = []
        self.disconnected = False
        self.subscribed = asyncio.Event()
        self._replies: dict[str, list[Any]] = {}
        self._call_errors: dict[str, Exception] = {}
        self._match_error: Optional[Exception] = None

    # -- SignalBus protocol methods --

    async def add_match(self, rule: str) -> None:
        if self._match_error is not None:
            raise self._match_error
        self.matches.append(rule)
        self.subscribed.set()

    async def remove_match(self, rule: str) -> None:
        self.removed_matches.append(rule)
        if rule in self.matches:
            self.matches.remove(rule)

    def add_signal_handler(self, handler: SignalHandler) -> None:
        if handler not in self.handlers:
            self.handlers.append(handler)

    def remove_signal_handler(self, handler: SignalHandler) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        method = f"{interface}.{member}"
        self.calls.append((destination, path, method, tuple(body)))
        if method in self._call_errors:
            raise self._call_errors[method]
        if method not in self._replies:
            raise BusCallError(member, "org.freedesktop.DBus.Error.UnknownMethod")
        return list(self._replies[method])

    def disconnect(self) -> None:
        self.disconnected = True

    # -- test helpers --

    def emit(self, signal: BusSignal) -> None:
        """Deliver ``signal`` to every registered handler."""
        for handler in list(self.handlers):
            handler(signal)

    def seed_reply(self, method: str, body: list[Any]) -> None:
        """Return ``body`` for calls to ``interface.member``."""
        self._replies[method] = body

    def set_call_error(self, method: str, error: Exception) -> None:
        self._call_errors[method] = error

    def set_match_error(self, error: Exception) -> None:
        self._match_error = error
