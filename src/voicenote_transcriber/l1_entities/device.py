"""Device capability snapshot: supplied per call, never polled by the core."""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict, Field

_MB = 1024 * 1024


class NetworkClass(enum.Enum):
    UNMETERED = 'unmetered'
    METERED = 'metered'
    OFFLINE = 'offline'


class DeviceInfo(BaseModel):
    """Point-in-time view of the resources the pipeline is gated on."""

    model_config = ConfigDict(frozen=True)

    total_memory_bytes: int = Field(ge=0)
    available_storage_bytes: int = Field(ge=0)
    network: NetworkClass = NetworkClass.OFFLINE
    is_charging: bool = False
    battery_low: bool = False

    @property
    def total_memory_mb(self) -> int:
        return self.total_memory_bytes // _MB

    @property
    def available_storage_mb(self) -> int:
        return self.available_storage_bytes // _MB

    @property
    def is_unmetered(self) -> bool:
        return self.network == NetworkClass.UNMETERED

    @property
    def is_online(self) -> bool:
        return self.network != NetworkClass.OFFLINE
