"""
Local model lifecycle helpers.

SingleFlightLoader guarantees one load per owner; the keep-alive timer and
memory-pressure monitor run on daemon threads beside request handling.
"""

import threading
from concurrent.futures import Future
from enum import Enum, auto
from typing import Callable, Generic, Optional, TypeVar

import psutil

from ..utils.logger import get_logger
from .settings.config import (
    KEEP_ALIVE_INTERVAL_SECONDS,
    MEMORY_PRESSURE_CRITICAL_PERCENT,
    MEMORY_PRESSURE_POLL_SECONDS,
    MEMORY_PRESSURE_WARNING_PERCENT,
)

logger = get_logger(__name__)

T = TypeVar("T")


class LoadState(Enum):
    UNLOADED = auto()
    LOADING = auto()
    LOADED = auto()


class SingleFlightLoader(Generic[T]):
    """
    Loads a value at most once at a time and shares it with every caller.

    The first caller runs ``load_fn``; callers arriving during the load wait
    on the same future. A failed load returns the loader to UNLOADED so the
    next call retries.
    """

    def __init__(self, load_fn: Callable[[], T], name: str = "model"):
        self._load_fn = load_fn
        self._name = name
        self._lock = threading.Lock()
        self._state = LoadState.UNLOADED
        self._value: Optional[T] = None
        self._future: Optional[Future] = None

    @property
    def state(self) -> LoadState:
        with self._lock:
            return self._state

    @property
    def is_loaded(self) -> bool:
        return self.state == LoadState.LOADED

    def get(self, timeout: Optional[float] = None) -> T:
        with self._lock:
            if self._state == LoadState.LOADED:
                return self._value
            if self._state == LoadState.LOADING:
                future = self._future
                owner = False
            else:
                future = Future()
                self._future = future
                self._state = LoadState.LOADING
                owner = True

        if not owner:
            return future.result(timeout=timeout)

        logger.info(f"Loading {self._name}...")
        try:
            value = self._load_fn()
        except BaseException as e:
            with self._lock:
                self._state = LoadState.UNLOADED
                self._future = None
            future.set_exception(e)
            logger.error(f"Loading {self._name} failed: {e}")
            raise

        with self._lock:
            self._value = value
            self._state = LoadState.LOADED
            self._future = None
        future.set_result(value)
        logger.info(f"{self._name} loaded")
        return value

    def load_in_background(self) -> Future:
        """Start (or join) a load on a daemon thread and return its future."""
        result: Future = Future()

        def _run():
            try:
                result.set_result(self.get())
            except Exception as e:
                result.set_exception(e)

        threading.Thread(
            target=_run, name=f"load-{self._name}", daemon=True
        ).start()
        return result

    def peek(self) -> Optional[T]:
        with self._lock:
            return self._value if self._state == LoadState.LOADED else None

    def release(self) -> bool:
        """Drop a loaded value. Returns False when nothing was loaded."""
        with self._lock:
            if self._state != LoadState.LOADED:
                return False
            self._value = None
            self._state = LoadState.UNLOADED
        logger.info(f"{self._name} released")
        return True


class _PeriodicThread:
    def __init__(self, interval: float, name: str):
        self._interval = interval
        self._name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self._name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1.0)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self.tick()
            except Exception:
                logger.exception(f"{self._name} tick failed")

    def tick(self) -> None:
        raise NotImplementedError


class KeepAliveTimer(_PeriodicThread):
    """Calls ``on_tick`` every ``interval`` seconds."""

    def __init__(
        self,
        on_tick: Callable[[], None],
        interval: float = KEEP_ALIVE_INTERVAL_SECONDS,
    ):
        super().__init__(interval, "llm-keep-alive")
        self._on_tick = on_tick

    def tick(self) -> None:
        self._on_tick()


class MemoryPressureLevel(Enum):
    NORMAL = auto()
    WARNING = auto()
    CRITICAL = auto()


def classify_memory_pressure(
    percent_used: float,
    warning_percent: float = MEMORY_PRESSURE_WARNING_PERCENT,
    critical_percent: float = MEMORY_PRESSURE_CRITICAL_PERCENT,
) -> MemoryPressureLevel:
    if percent_used >= critical_percent:
        return MemoryPressureLevel.CRITICAL
    if percent_used >= warning_percent:
        return MemoryPressureLevel.WARNING
    return MemoryPressureLevel.NORMAL


class MemoryPressureMonitor(_PeriodicThread):
    """
    Polls system memory with psutil and reports warning/critical pressure.

    ``on_pressure`` fires once on each transition into an elevated level
    (NORMAL -> WARNING, WARNING -> CRITICAL, NORMAL -> CRITICAL).
    """

    def __init__(
        self,
        on_pressure: Callable[[MemoryPressureLevel], None],
        interval: float = MEMORY_PRESSURE_POLL_SECONDS,
        warning_percent: float = MEMORY_PRESSURE_WARNING_PERCENT,
        critical_percent: float = MEMORY_PRESSURE_CRITICAL_PERCENT,
    ):
        super().__init__(interval, "memory-pressure")
        self._on_pressure = on_pressure
        self._warning_percent = warning_percent
        self._critical_percent = critical_percent
        self._last_level = MemoryPressureLevel.NORMAL

    def tick(self) -> None:
        percent = psutil.virtual_memory().percent
        level = classify_memory_pressure(
            percent, self._warning_percent, self._critical_percent
        )
        previous = self._last_level
        self._last_level = level

        if level == MemoryPressureLevel.NORMAL:
            return
        if previous == MemoryPressureLevel.CRITICAL or previous == level:
            return

        logger.warning(
            f"Memory pressure detected ({level.name.lower()}, {percent:.0f}% used)"
        )
        self._on_pressure(level)
