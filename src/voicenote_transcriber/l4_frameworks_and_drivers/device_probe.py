"""Device snapshot from psutil (implements DeviceProbe port)."""

from __future__ import annotations

import logging
from pathlib import Path

import psutil

from voicenote_transcriber.l1_entities.device import DeviceInfo, NetworkClass

log = logging.getLogger('vnt.device')

BATTERY_LOW_PERCENT = 15


class PsutilDeviceProbe:
    """Reads memory, free storage under *storage_dir*, power and network state.

    psutil cannot tell a metered link from an unmetered one, so any live
    non-loopback interface counts as unmetered unless *network_override* says otherwise.
    """

    def __init__(self, storage_dir: Path, network_override: str | None = None) -> None:
        self._storage_dir = storage_dir
        self._network_override = NetworkClass(network_override) if network_override else None

    def snapshot(self) -> DeviceInfo:
        is_charging, battery_low = self._power()
        return DeviceInfo(
            total_memory_bytes=psutil.virtual_memory().total,
            available_storage_bytes=self._free_storage(),
            network=self._network_override or self._network(),
            is_charging=is_charging,
            battery_low=battery_low,
        )

    def _free_storage(self) -> int:
        path = self._storage_dir
        while not path.exists() and path != path.parent:
            path = path.parent
        return psutil.disk_usage(str(path)).free

    @staticmethod
    def _power() -> tuple[bool, bool]:
        battery = psutil.sensors_battery()
        if battery is None:
            # No battery: mains powered.
            return True, False
        plugged = bool(battery.power_plugged)
        return plugged, (not plugged and battery.percent <= BATTERY_LOW_PERCENT)

    @staticmethod
    def _network() -> NetworkClass:
        for name, stats in psutil.net_if_stats().items():
            if stats.isup and not name.startswith('lo'):
                return NetworkClass.UNMETERED
        return NetworkClass.OFFLINE
