"""Constraint-gated background task queue on a bounded thread pool (implements TaskQueue port)."""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass, field

from voicenote_transcriber.l1_entities.device import DeviceInfo
from voicenote_transcriber.l2_use_cases.ports.task_queue import Constraints, DeviceProbe, Task

log = logging.getLogger('vnt.queue')


@dataclass
class _Entry:
    key: str
    task: Task
    constraints: Constraints
    cancel_event: threading.Event = field(default_factory=threading.Event)
    stopped_by_constraints: bool = False
    future: concurrent.futures.Future | None = None


class ThreadPoolTaskQueue:
    """Holds tasks until a device snapshot satisfies their constraints, then runs them.

    A key is unique across queued and running tasks. A running task whose
    constraints stop holding is asked to cancel and, if it reports a cancelled
    result, goes back to the queue to resume on a later snapshot.
    """

    def __init__(self, max_workers: int = 2) -> None:
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix='vnt-worker'
        )
        self._lock = threading.Lock()
        self._pending: dict[str, _Entry] = {}
        self._running: dict[str, _Entry] = {}
        self._results: dict[str, object] = {}
        self._closed = False
        self._stop = threading.Event()
        self._watcher: threading.Thread | None = None

    def submit(self, key: str, task: Task, constraints: Constraints) -> bool:
        with self._lock:
            if self._closed:
                raise RuntimeError('Task queue is shut down')
            if key in self._pending or key in self._running:
                return False
            self._pending[key] = _Entry(key=key, task=task, constraints=constraints)
            self._results.pop(key, None)
        log.debug('Queued %s', key)
        return True

    def cancel(self, key: str) -> bool:
        with self._lock:
            entry = self._pending.pop(key, None)
            if entry is None:
                entry = self._running.get(key)
            if entry is None:
                return False
            entry.stopped_by_constraints = False
            entry.cancel_event.set()
        log.info('Cancelled %s', key)
        return True

    def pending_keys(self) -> list[str]:
        with self._lock:
            return list(self._pending)

    def running_keys(self) -> list[str]:
        with self._lock:
            return list(self._running)

    def result(self, key: str) -> object | None:
        """Return value of the last completed run of *key*, if any. Consumed on read."""
        with self._lock:
            return self._results.pop(key, None)

    def run_pending(self, device: DeviceInfo) -> int:
        """Start every queued task whose constraints *device* satisfies. Returns the number started."""
        started = 0
        with self._lock:
            if self._closed:
                return 0
            for entry in self._running.values():
                if not entry.cancel_event.is_set() and not entry.constraints.satisfied_by(device):
                    log.info('Constraints no longer met for %s; stopping', entry.key)
                    entry.stopped_by_constraints = True
                    entry.cancel_event.set()

            ready = [e for e in self._pending.values() if e.constraints.satisfied_by(device)]
            for entry in ready:
                del self._pending[entry.key]
                self._running[entry.key] = entry
                entry.future = self._executor.submit(self._run, entry)
                started += 1
        if started:
            log.debug('Started %d task(s)', started)
        return started

    def wait(self, timeout: float | None = None) -> None:
        """Block until every task started so far has finished."""
        with self._lock:
            futures = [e.future for e in self._running.values() if e.future is not None]
        concurrent.futures.wait(futures, timeout=timeout)

    def start_watching(self, probe: DeviceProbe, interval: float) -> None:
        if self._watcher is not None:
            return

        def _watch() -> None:
            while True:
                try:
                    self.run_pending(probe.snapshot())
                except Exception:
                    log.error('Device snapshot failed', exc_info=True)
                if self._stop.wait(interval):
                    return

        self._watcher = threading.Thread(target=_watch, name='vnt-queue-watcher', daemon=True)
        self._watcher.start()

    def shutdown(self, wait: bool = True) -> None:
        self._stop.set()
        if self._watcher is not None:
            self._watcher.join()
            self._watcher = None
        with self._lock:
            self._closed = True
            for entry in self._pending.values():
                entry.cancel_event.set()
            dropped = len(self._pending)
            self._pending.clear()
        if dropped:
            log.info('Dropped %d queued task(s) on shutdown', dropped)
        self._executor.shutdown(wait=wait)

    def _run(self, entry: _Entry) -> object:
        result: object = None
        try:
            result = entry.task(entry.cancel_event.is_set)
        except Exception:
            log.error('Task %s raised', entry.key, exc_info=True)
        with self._lock:
            self._running.pop(entry.key, None)
            if entry.stopped_by_constraints and getattr(result, 'cancelled', False) and not self._closed:
                self._pending[entry.key] = _Entry(key=entry.key, task=entry.task, constraints=entry.constraints)
                log.info('Re-queued %s until constraints hold again', entry.key)
            else:
                self._results[entry.key] = result
        return result
