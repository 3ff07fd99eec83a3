"""dbus-fast implementation of the SignalBus protocol."""

from collections.abc import Sequence
from typing import Any

from dbus_fast import BusType, Message, MessageType
from dbus_fast.aio import MessageBus

from nfs_supervisor.core.exceptions import BusCallError
from nfs_supervisor.core.protocols.bus import BusSignal, SignalHandler

_DBUS_NAME = "org.freedesktop.DBus"
_DBUS_PATH = "/org/freedesktop/DBus"


class DBusConnection:
    """An authenticated connection to the system bus.

    Use ``connect()`` to build one; the handshake (auth + Hello) happens
    there, so a returned instance is always usable.
    """

    def __init__(self, bus: MessageBus) -> None:
        self._bus = bus
        self._handlers: dict[SignalHandler, Any] = {}

    @classmethod
    async def connect(cls, bus_type: BusType = BusType.SYSTEM) -> "DBusConnection":
        """Open and authenticate a new private connection."""
        bus = await MessageBus(bus_type=bus_type).connect()
        return cls(bus)

    async def add_match(self, rule: str) -> None:
        await self.call(_DBUS_NAME, _DBUS_PATH, _DBUS_NAME, "AddMatch", "s", [rule])

    async def remove_match(self, rule: str) -> None:
        await self.call(_DBUS_NAME, _DBUS_PATH, _DBUS_NAME, "RemoveMatch", "s", [rule])

    def add_signal_handler(self, handler: SignalHandler) -> None:
        if handler in self._handlers:
            return

        def _on_message(msg: Message) -> None:
            if msg.message_type != MessageType.SIGNAL:
                return
            handler(
                BusSignal(
                    path=msg.path or "",
                    interface=msg.interface or "",
                    member=msg.member or "",
                    body=tuple(msg.body),
                    sender=msg.sender or "",
                )
            )

        self._handlers[handler] = _on_message
        self._bus.add_message_handler(_on_message)

    def remove_signal_handler(self, handler: SignalHandler) -> None:
        wrapped = self._handlers.pop(handler, None)
        if wrapped is not None:
            self._bus.remove_message_handler(wrapped)

    async def call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        reply = await self._bus.call(
            Message(
                destination=destination,
                path=path,
                interface=interface,
                member=member,
                signature=signature,
                body=list(body),
            )
        )
        if reply.message_type == MessageType.ERROR:
            detail = reply.body[0] if reply.body else ""
            raise BusCallError(member, reply.error_name or "unknown", str(detail))
        return list(reply.body)

    def disconnect(self) -> None:
        self._bus.disconnect()
