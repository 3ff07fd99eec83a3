"""Typed models for nfs-ganesha statistics replies.

Replies arrive as positional bus structs.  The ``from_reply`` helpers map
them onto these models and raise ``StatsDecodeError`` on any mismatch
instead of letting a malformed reply crash the caller.
"""

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, StrictBool, StrictInt, StrictStr, ValidationError

from nfs_supervisor.core.exceptions import StatsDecodeError


class _StatsModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class Timespec(_StatsModel):
    """Seconds/nanoseconds timestamp as sent by the server."""

    seconds: StrictInt
    nanoseconds: StrictInt


class BasicIO(_StatsModel):
    """Basic counters for one direction (read or write) of NFS I/O.

    Each counter only grows until the server restarts or its stats are reset.
    ``latency`` and ``queue_wait`` are cumulative nanoseconds.
    """

    requested: StrictInt
    transferred: StrictInt
    total: StrictInt
    errors: StrictInt
    latency: StrictInt
    queue_wait: StrictInt


class StatsBaseAnswer(_StatsModel):
    """Leading fields of every statistics reply."""

    status: StrictBool
    error: StrictStr
    time: Timespec


class BasicStats(StatsBaseAnswer):
    """Per-client I/O stats.  ``read``/``write`` are unset when ``status`` is false."""

    read: BasicIO | None = None
    write: BasicIO | None = None


class ExportIOStats(_StatsModel):
    """I/O stats for one export over one protocol (``name``, e.g. ``NFSv41``)."""

    export_id: StrictInt
    name: StrictStr
    read: BasicIO
    write: BasicIO


class ExportIOStatsList(StatsBaseAnswer):
    """Per-export I/O stats for every protocol used to access each export."""

    exports: list[ExportIOStats] = []


class Client(_StatsModel):
    """A client connection known to the server.

    A protocol flag is set once traffic for that protocol has been seen from
    the client, so several may be set at once.
    """

    client: StrictStr
    nfsv3: StrictBool
    mntv3: StrictBool
    nlmv4: StrictBool
    rquota: StrictBool
    nfsv40: StrictBool
    nfsv41: StrictBool
    nfsv42: StrictBool
    plan9: StrictBool
    last_time: Timespec


def _timespec(raw: Any) -> dict[str, Any]:
    seconds, nanoseconds = raw
    return {"seconds": seconds, "nanoseconds": nanoseconds}


def _basic_io(raw: Any) -> dict[str, Any]:
    requested, transferred, total, errors, latency, queue_wait = raw
    return {
        "requested": requested,
        "transferred": transferred,
        "total": total,
        "errors": errors,
        "latency": latency,
        "queue_wait": queue_wait,
    }


def _base(body: Sequence[Any]) -> dict[str, Any]:
    return {"status": body[0], "error": body[1], "time": _timespec(body[2])}


def basic_stats_from_reply(body: Sequence[Any]) -> BasicStats:
    """Decode a ``GetNFSv4xIO`` reply: status, error, time[, read, write]."""
    try:
        fields = _base(body)
        if body[0] is True:
            fields["read"] = _basic_io(body[3])
            fields["write"] = _basic_io(body[4])
        return BasicStats.model_validate(fields)
    except (ValidationError, IndexError, TypeError, ValueError) as e:
        raise StatsDecodeError(f"malformed client stats reply: {e}") from e


def export_stats_from_reply(body: Sequence[Any]) -> ExportIOStatsList:
    """Decode a ``GetNFSIO`` reply: status, error, time[, exports]."""
    try:
        fields = _base(body)
        if body[0] is True:
            fields["exports"] = [
                {
                    "export_id": export_id,
                    "name": name,
                    "read": _basic_io(read),
                    "write": _basic_io(write),
                }
                for export_id, name, read, write in body[3]
            ]
        return ExportIOStatsList.model_validate(fields)
    except (ValidationError, IndexError, TypeError, ValueError) as e:
        raise StatsDecodeError(f"malformed export stats reply: {e}") from e


def clients_from_reply(body: Sequence[Any]) -> list[Client]:
    """Decode a ``ShowClients`` reply: time, clients."""
    try:
        return [
            Client(
                client=raw[0],
                nfsv3=raw[1],
                mntv3=raw[2],
                nlmv4=raw[3],
                rquota=raw[4],
                nfsv40=raw[5],
                nfsv41=raw[6],
                nfsv42=raw[7],
                plan9=raw[8],
                last_time=Timespec(**_timespec(raw[9])),
            )
            for raw in body[1]
        ]
    except (ValidationError, IndexError, TypeError, ValueError) as e:
        raise StatsDecodeError(f"malformed client list reply: {e}") from e
