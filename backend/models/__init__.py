from models.device import Device
from models.sync_event import SyncEvent

__all__ = ["Device", "SyncEvent"]
