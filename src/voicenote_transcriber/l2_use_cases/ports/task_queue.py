"""Port: deferred execution under environmental constraints."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from voicenote_transcriber.l1_entities.device import DeviceInfo


@dataclass(frozen=True)
class Constraints:
    requires_charging: bool = False
    requires_battery_not_low: bool = False

    def satisfied_by(self, device: DeviceInfo) -> bool:
        if self.requires_charging and not device.is_charging:
            return False
        return not (self.requires_battery_not_low and device.battery_low)


# A task receives an ``is_cancelled`` callable and polls it between steps.
Task = Callable[[Callable[[], bool]], object]


class TaskQueue(Protocol):
    def submit(self, key: str, task: Task, constraints: Constraints) -> bool:
        """Enqueue *task* under *key*. Returns False when *key* is already queued or running."""
        ...

    def cancel(self, key: str) -> bool: ...


class DeviceProbe(Protocol):
    def snapshot(self) -> DeviceInfo: ...
