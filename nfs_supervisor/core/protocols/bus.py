"""SignalBus protocol for the control-plane message bus.

The supervisor only needs a narrow slice of the bus: match-rule based
signal subscription and plain method calls.  Production uses a dbus-fast
connection to the system bus; tests inject a fake that lets them emit
signals and seed call replies in memory.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class BusSignal:
    """A signal message received from the bus."""

    path: str
    interface: str
    member: str
    body: tuple[Any, ...] = field(default_factory=tuple)
    sender: str = ""


SignalHandler = Callable[[BusSignal], None]


@runtime_checkable
class SignalBus(Protocol):
    """Protocol for an established bus connection."""

    async def add_match(self, rule: str) -> None:
        """Ask the bus daemon to route signals matching ``rule`` to us."""
        ...

    async def remove_match(self, rule: str) -> None:
        """Remove a match rule previously added with ``add_match``."""
        ...

    def add_signal_handler(self, handler: SignalHandler) -> None:
        """Register a callback invoked for every signal received."""
        ...

    def remove_signal_handler(self, handler: SignalHandler) -> None:
        """Deregister a signal callback.  Unknown handlers are ignored."""
        ...

    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        """Call a method and return the reply body.

        Raises:
            BusCallError: If the reply is an error.
        """
        ...

    def disconnect(self) -> None:
        """Close the connection."""
        ...
