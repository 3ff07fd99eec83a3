"""Bus connection adapters."""

from nfs_supervisor.adapters.bus.fake import FakeSignalBus

__all__ = ["FakeSignalBus"]
