from repositories.device_repository import DeviceRepository
from repositories.sync_event_repository import SyncEventRepository

__all__ = ["DeviceRepository", "SyncEventRepository"]
