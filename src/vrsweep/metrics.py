"""
Metrics module for recording rendering performance during a replay run.

Provides functionality to:
- Track FPS over half-second windows
- Snapshot counters and particle counts into one row per tick
- Accumulate rows for one sweep cell and flush them to a text table
- Export run summaries as JSON
"""

import json
import logging
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

from .counters import CounterSet, CounterValue
from .effects import EffectRig, EffectVariant
from .errors import WriteFailure
from .files import write_lines
from .scheduler import FrameClock


logger = logging.getLogger(__name__)

FIELD_SEPARATOR = ", "


def _format_field(value: Union[None, bool, int, float]) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, int):
        return str(value)
    return repr(float(value))


@dataclass
class MetricsRow:
    """One tick's performance snapshot."""
    wall_clock_time: float
    fps: float
    triangle_count: Optional[CounterValue]
    draw_calls: Optional[CounterValue]
    vertex_count: Optional[CounterValue]
    memory_used: Optional[CounterValue]
    gpu_usage: Optional[CounterValue]
    custom_alive_count: Optional[int]
    builtin_particle_count: Optional[int]
    effect_active: bool

    def to_line(self) -> str:
        return FIELD_SEPARATOR.join(_format_field(v) for v in (
            self.wall_clock_time,
            self.fps,
            self.triangle_count,
            self.draw_calls,
            self.vertex_count,
            self.memory_used,
            self.gpu_usage,
            self.custom_alive_count,
            self.builtin_particle_count,
            self.effect_active,
        ))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class FpsCounter:
    """Frames per second, refreshed every `window` seconds of frame time."""

    def __init__(self, window: float = 0.5):
        if window <= 0.0:
            raise ValueError("window must be > 0")
        self.window = window
        self.fps = 0.0
        self._frames = 0
        self._elapsed = 0.0

    def update(self, dt: float) -> float:
        self._frames += 1
        self._elapsed += dt
        if self._elapsed >= self.window:
            self.fps = self._frames / self._elapsed
            self._frames = 0
            self._elapsed = 0.0
        return self.fps

    def reset(self) -> None:
        self.fps = 0.0
        self._frames = 0
        self._elapsed = 0.0


class MetricsRecorder:
    """
    Accumulates metrics rows for one run.

    Usage:
        metrics = MetricsRecorder(CounterSet(provider), effects, clock)
        metrics.start()
        metrics.sample(effect_active=True)   # once per tick
        metrics.flush(Path("results/RecordedData_VFX_PassthroughFalse_....csv"))
        metrics.stop()
    """

    def __init__(
        self,
        counters: CounterSet,
        effects: EffectRig,
        clock: FrameClock,
        fps_window: float = 0.5
    ):
        """
        Initialize the recorder.

        Args:
            counters: Performance counters opened on start, closed on stop
            effects: Effect rig the particle counts are read from
            clock: Frame clock providing time and frame duration
            fps_window: FPS averaging window in seconds
        """
        self.counters = counters
        self.effects = effects
        self.clock = clock
        self.fps_counter = FpsCounter(fps_window)

        self._rows: List[MetricsRow] = []
        self._recording = False
        self._first_time: Optional[float] = None

    def start(self) -> List[str]:
        """
        Open counters and begin a fresh row buffer. No-op if already recording.

        Returns:
            Keys of counters that are unavailable for this run
        """
        if self._recording:
            return self.counters.unavailable

        self._rows = []
        self._first_time = None
        self.fps_counter.reset()
        unavailable = self.counters.open()
        self._recording = True
        logger.debug("Metrics recording started")
        return unavailable

    def sample(self, effect_active: bool) -> Optional[MetricsRow]:
        """Append one row for the current tick."""
        if not self._recording:
            return None

        fps = self.fps_counter.update(self.clock.delta_time)
        values = self.counters.read()
        row = MetricsRow(
            wall_clock_time=self.clock.time,
            fps=fps,
            triangle_count=values.get("triangle_count"),
            draw_calls=values.get("draw_calls"),
            vertex_count=values.get("vertex_count"),
            memory_used=values.get("memory_used"),
            gpu_usage=values.get("gpu_usage"),
            custom_alive_count=self.effects.particle_count(EffectVariant.VFX),
            builtin_particle_count=self.effects.particle_count(EffectVariant.BUILTIN),
            effect_active=effect_active,
        )
        if self._first_time is None:
            self._first_time = row.wall_clock_time
        self._rows.append(row)
        return row

    def flush(self, path: Path) -> int:
        """
        Write the buffered rows, one line per tick, no header.

        Returns:
            Number of rows written

        Raises:
            WriteFailure: If the file cannot be written
        """
        count = MetricsExporter.to_lines(self._rows, path)
        logger.info("Wrote %d metrics rows to %s", count, path)
        return count

    def stop(self) -> Dict[str, Any]:
        """Close counters and clear the buffer. Safe to call repeatedly."""
        summary = self.get_summary()
        self.counters.close()
        self._rows = []
        self._first_time = None
        self._recording = False
        return summary

    def get_summary(self) -> Dict[str, Any]:
        rows = self._rows
        fps_values = [r.fps for r in rows if r.fps > 0.0]
        duration = 0.0
        if rows and self._first_time is not None:
            duration = rows[-1].wall_clock_time - self._first_time
        return {
            "row_count": len(rows),
            "duration_seconds": round(duration, 4),
            "mean_fps": round(sum(fps_values) / len(fps_values), 2) if fps_values else 0.0,
            "min_fps": round(min(fps_values), 2) if fps_values else 0.0,
            "unavailable_counters": self.counters.unavailable,
        }

    @property
    def rows(self) -> List[MetricsRow]:
        return list(self._rows)

    @property
    def is_recording(self) -> bool:
        return self._recording


class MetricsExporter:
    """
    Export metrics to file.
    """

    @staticmethod
    def to_lines(rows: List[MetricsRow], filepath: Path) -> int:
        """Write rows as a header-less comma-space separated table."""
        return write_lines(Path(filepath), (row.to_line() for row in rows))

    @staticmethod
    def to_json(data: Dict[str, Any], filepath: Path) -> None:
        """Write a summary to a JSON file."""
        path = Path(filepath)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            raise WriteFailure(f"Could not write {path}: {e}") from e
