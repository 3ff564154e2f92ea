"""
Performance counter access.

Provides functionality to:
- Open the five rendering/memory counters recorded per tick
- Read their latest values as one snapshot
- Skip counters the platform does not expose instead of failing the run
- Dispose every open handle, including on teardown
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, List, Callable, Protocol, Tuple, Union

from .errors import SubsystemUnavailable


logger = logging.getLogger(__name__)

CounterValue = Union[int, float]


class CounterCategory(Enum):
    RENDER = "Render"
    MEMORY = "Memory"


class CounterHandle(Protocol):
    @property
    def last_value(self) -> CounterValue:
        ...

    def dispose(self) -> None:
        ...


class CounterProvider(Protocol):
    def start(self, category: CounterCategory, name: str) -> CounterHandle:
        """Open a counter; raises SubsystemUnavailable if it does not exist."""
        ...


@dataclass(frozen=True)
class CounterSpec:
    """A counter recorded into each metrics row."""
    key: str
    category: CounterCategory
    name: str


DEFAULT_COUNTERS: Tuple[CounterSpec, ...] = (
    CounterSpec("triangle_count", CounterCategory.RENDER, "Triangles Count"),
    CounterSpec("draw_calls", CounterCategory.RENDER, "Draw Calls Count"),
    CounterSpec("vertex_count", CounterCategory.RENDER, "Vertices Count"),
    CounterSpec("memory_used", CounterCategory.MEMORY, "Total Used Memory"),
    CounterSpec("gpu_usage", CounterCategory.RENDER, "GPU Usage"),
)


class CounterSet:
    """
    Scoped group of open counters.

    Usage:
        with CounterSet(provider) as counters:
            values = counters.read()   # {"triangle_count": 1200, ...}
    """

    def __init__(
        self,
        provider: Optional[CounterProvider],
        specs: Tuple[CounterSpec, ...] = DEFAULT_COUNTERS
    ):
        self.provider = provider
        self.specs = specs
        self._handles: Dict[str, CounterHandle] = {}
        self._unavailable: List[str] = []
        self._error_callback: Optional[Callable[[Exception], None]] = None

    def set_error_callback(self, callback: Callable[[Exception], None]) -> None:
        self._error_callback = callback

    def open(self) -> List[str]:
        """
        Open every counter that is available.

        Returns:
            Keys of the counters that could not be opened
        """
        self.close()
        self._unavailable = []

        if self.provider is None:
            error = SubsystemUnavailable("Performance counter subsystem not available")
            logger.warning("%s; metrics rows will have empty counter fields", error)
            self._report(error)
            self._unavailable = [spec.key for spec in self.specs]
            return list(self._unavailable)

        for spec in self.specs:
            try:
                self._handles[spec.key] = self.provider.start(spec.category, spec.name)
            except SubsystemUnavailable as e:
                logger.warning("Counter %s/%s unavailable: %s", spec.category.value, spec.name, e)
                self._report(e)
                self._unavailable.append(spec.key)

        return list(self._unavailable)

    def read(self) -> Dict[str, Optional[CounterValue]]:
        """Latest value per counter key; None for counters not open."""
        values: Dict[str, Optional[CounterValue]] = {}
        for spec in self.specs:
            handle = self._handles.get(spec.key)
            values[spec.key] = handle.last_value if handle is not None else None
        return values

    def close(self) -> None:
        """Dispose every open handle."""
        handles = list(self._handles.items())
        self._handles.clear()
        for key, handle in handles:
            try:
                handle.dispose()
            except Exception as e:
                logger.error("Failed to dispose counter %s: %s", key, e)
                self._report(e)

    def _report(self, error: Exception) -> None:
        if self._error_callback:
            self._error_callback(error)

    @property
    def is_open(self) -> bool:
        return bool(self._handles)

    @property
    def unavailable(self) -> List[str]:
        return list(self._unavailable)

    def __enter__(self) -> "CounterSet":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
