from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from threading import Event, Lock
from time import monotonic, sleep

logger = logging.getLogger(__name__)

MAX_POLL_INTERVAL = 1.0


@dataclass(slots=True, frozen=True)
class RateWindowConfig:
    quota: int
    window_seconds: float

    def __post_init__(self) -> None:
        if self.quota <= 0:
            raise ValueError("quota must be greater than zero")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be greater than zero")


@dataclass(slots=True)
class _RateWindow:
    count: int = 0
    started_at: float = 0.0


class AdmissionController:
    """Fixed-window request quota, tracked independently per resource name.

    A window opens on the first call for a resource and is replaced by a fresh
    one once ``window_seconds`` have elapsed since it opened. Every call inside
    a window counts, admitted or not.
    """

    def __init__(
        self,
        default: RateWindowConfig,
        overrides: Mapping[str, RateWindowConfig] | None = None,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self.default = default
        self.overrides: dict[str, RateWindowConfig] = dict(overrides or {})
        self._clock = clock
        self._windows: dict[str, _RateWindow] = {}
        self._lock = Lock()

    def config_for(self, resource: str) -> RateWindowConfig:
        return self.overrides.get(resource, self.default)

    def admit(self, resource: str, now: float | None = None) -> bool:
        current = self._clock() if now is None else now
        cfg = self.config_for(resource)
        with self._lock:
            window = self._windows.get(resource)
            if window is None or (current - window.started_at) >= cfg.window_seconds:
                window = _RateWindow(count=0, started_at=current)
                self._windows[resource] = window
            window.count += 1
            return window.count <= cfg.quota

    def wait_until_admitted(
        self,
        resource: str,
        *,
        poll_interval: float = MAX_POLL_INTERVAL,
        timeout: float | None = None,
        cancel: Event | None = None,
    ) -> bool:
        """Block until ``resource`` is admitted.

        Returns False if ``cancel`` gets set or ``timeout`` seconds pass first.
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be greater than zero")
        interval = min(poll_interval, MAX_POLL_INTERVAL)
        deadline = None if timeout is None else self._clock() + timeout

        while not self.admit(resource):
            if cancel is not None and cancel.is_set():
                return False
            delay = interval
            remaining = self.time_until_reset(resource)
            if remaining > 0:
                delay = min(remaining, interval)
            if deadline is not None:
                left = deadline - self._clock()
                if left <= 0:
                    logger.debug("Gave up waiting for %s admission", resource)
                    return False
                delay = min(delay, left)
            if cancel is not None:
                if cancel.wait(delay):
                    return False
            else:
                sleep(delay)
        return True

    def current_count(self, resource: str) -> int:
        with self._lock:
            window = self._windows.get(resource)
            return window.count if window is not None else 0

    def time_until_reset(self, resource: str, now: float | None = None) -> float:
        current = self._clock() if now is None else now
        cfg = self.config_for(resource)
        with self._lock:
            window = self._windows.get(resource)
            if window is None:
                return 0.0
            return max(0.0, cfg.window_seconds - (current - window.started_at))

    def status(self, resources: Iterable[str] | None = None) -> dict[str, dict[str, float | int]]:
        with self._lock:
            names = list(resources) if resources is not None else sorted(self._windows)
        result: dict[str, dict[str, float | int]] = {}
        for name in names:
            cfg = self.config_for(name)
            result[name] = {
                "current_requests": self.current_count(name),
                "time_until_reset": round(self.time_until_reset(name), 3),
                "quota": cfg.quota,
                "window_seconds": cfg.window_seconds,
            }
        return result

    def reset(self, resource: str) -> None:
        with self._lock:
            self._windows.pop(resource, None)

    def reset_all(self) -> None:
        with self._lock:
            self._windows.clear()
