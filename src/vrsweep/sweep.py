"""
Sweep controller that replays one recorded trajectory across a test matrix.

Provides the complete test chain:
- Load the newest recording once (fatal on failure, before any run)
- For each effect x environment x repetition cell: configure, start metrics,
  replay, flush results, cool down
- Guarantee counters are closed and buffers cleared on teardown
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable, Generator, Set, Tuple

from .config import SweepConfig
from .counters import CounterProvider, CounterSet
from .effects import EffectRig, EffectVariant, ParticleEffect
from .environment import EnvironmentMode, SceneEnvironment
from .errors import WriteFailure
from .files import format_timestamp, unique_path
from .frames import Frame, Pose
from .metrics import MetricsRecorder, MetricsExporter
from .pose import Trajectory
from .replay import TrajectoryReplayer
from .scheduler import FrameClock, FrameScheduler, Task, wait_for_seconds
from .store import TrajectoryStore
from .tracking import HeadPoseDriver


logger = logging.getLogger(__name__)

RESULT_FILE_PREFIX = "RecordedData_"

EFFECT_ORDER: Tuple[EffectVariant, ...] = (
    EffectVariant.VFX, EffectVariant.BUILTIN, EffectVariant.NONE
)
ENVIRONMENT_ORDER: Tuple[EnvironmentMode, ...] = (
    EnvironmentMode.IMMERSIVE, EnvironmentMode.PASSTHROUGH
)


class CellState(Enum):
    PENDING = "pending"
    CONFIGURING = "configuring"
    RECORDING = "recording"
    REPLAYING = "replaying"
    FLUSHING = "flushing"
    COOLING_DOWN = "cooling_down"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SweepCell:
    """One configuration in the test matrix."""
    effect_variant: EffectVariant
    environment_mode: EnvironmentMode
    repetition_index: int

    @property
    def passthrough(self) -> bool:
        return self.environment_mode.passthrough

    def describe(self) -> str:
        return (
            f"Particle effect: {self.effect_variant.label} "
            f"Passthrough: {self.passthrough} Run: {self.repetition_index + 1}"
        )


def enumerate_cells(repetitions: int = 3) -> List[SweepCell]:
    """Effect outer, environment middle, repetition inner."""
    return [
        SweepCell(effect, mode, rep)
        for effect, mode, rep in itertools.product(
            EFFECT_ORDER, ENVIRONMENT_ORDER, range(repetitions)
        )
    ]


@dataclass
class CellContext:
    """Run state for one cell."""
    cell: SweepCell
    index: int
    state: CellState = CellState.PENDING
    wall_start: Optional[datetime] = None
    replay_start: Optional[float] = None  # frame-clock time
    output_path: Optional[str] = None
    rows_written: int = 0
    unavailable_counters: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "effect": self.cell.effect_variant.label,
            "passthrough": self.cell.passthrough,
            "repetition": self.cell.repetition_index,
            "state": self.state.value,
            "started_at": self.wall_start.isoformat() if self.wall_start else None,
            "output_path": self.output_path,
            "rows_written": self.rows_written,
            "unavailable_counters": list(self.unavailable_counters),
            "errors": list(self.errors),
            "summary": dict(self.summary),
        }


@dataclass
class XRRig:
    """
    Scene frames the sweep moves.

    The camera is a child of the mover; replay drives the mover while head
    tracking (when enabled) drives the camera's local pose.
    """
    anchor: Frame
    mover: Frame
    camera: Frame
    head_tracking: Optional[HeadPoseDriver] = None

    @classmethod
    def create(cls, anchor_position=None) -> "XRRig":
        anchor = Frame("movement_anchor", position=anchor_position)
        mover = Frame("camera_mover")
        camera = Frame("main_camera", parent=mover)
        return cls(anchor=anchor, mover=mover, camera=camera)


class SweepController:
    """
    Drives the full test matrix on the frame scheduler.

    Usage:
        controller = SweepController(config, scheduler.clock, rig, effects, environment, counters)
        task = controller.start(scheduler)       # loads the trajectory now
        scheduler.run_until_complete(task, dt=1 / 72)
    """

    def __init__(
        self,
        config: SweepConfig,
        clock: FrameClock,
        rig: XRRig,
        effects: EffectRig,
        environment: SceneEnvironment,
        counters: Optional[CounterProvider] = None,
        store: Optional[TrajectoryStore] = None,
        now: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the controller.

        Args:
            config: Sweep parameters and directories
            clock: Frame clock shared with the scheduler
            rig: Anchor, mover and camera frames
            effects: Particle effect variants
            environment: Immersive/passthrough switch
            counters: Performance counter provider (None = unavailable)
            store: Trajectory store (default TrajectoryStore())
            now: Wall-clock source used to name result files
        """
        self.config = config
        self.clock = clock
        self.rig = rig
        self.effects = effects
        self.environment = environment
        self.store = store or TrajectoryStore()
        self._now = now

        self.counter_set = CounterSet(counters)
        self.counter_set.set_error_callback(self._on_counter_error)
        self.metrics = MetricsRecorder(self.counter_set, effects, clock, config.fps_window)
        self.replayer = TrajectoryReplayer(clock)

        self.cells: List[CellContext] = []
        self.current: Optional[CellContext] = None
        self._cancel = threading.Event()
        self._reserved_paths: Set[str] = set()
        self._camera_offset: Optional[Pose] = None
        self._running = False
        self._finished = False
        self._status = ""

        self._status_callback: Optional[Callable[[str], None]] = None
        self._error_callback: Optional[Callable[[Exception], None]] = None

    def set_status_callback(self, callback: Callable[[str], None]) -> None:
        """Set callback for on-screen status text."""
        self._status_callback = callback

    def set_error_callback(self, callback: Callable[[Exception], None]) -> None:
        """Set callback for non-fatal per-cell errors."""
        self._error_callback = callback

    def load_trajectory(self) -> Trajectory:
        """Load the newest recording; any failure here is fatal to the sweep."""
        return self.store.load_latest(self.config.recordings_dir)

    def start(self, scheduler: FrameScheduler) -> Task:
        """
        Load the trajectory and schedule the sweep.

        Raises:
            NotFoundError, ParseError, InsufficientDataError: Before any cell runs
        """
        trajectory = self.load_trajectory()
        return scheduler.start(self.run_sweep(trajectory), name="sweep")

    def stop(self) -> None:
        """Request a stop; the current replay ends at its next segment boundary."""
        self._cancel.set()

    def run_sweep(
        self,
        trajectory: Optional[Trajectory] = None
    ) -> Generator[None, None, List[CellContext]]:
        """
        Run every cell of the matrix in order.

        Args:
            trajectory: Shared read-only trajectory (None = load the newest)

        Returns:
            Context of every cell that was started
        """
        if trajectory is None:
            trajectory = self.load_trajectory()

        cells = enumerate_cells(self.config.repetitions)
        self.cells = []
        self._cancel.clear()
        self._running = True
        self._finished = False
        self._begin()

        try:
            for index, cell in enumerate(cells):
                if self._cancel.is_set():
                    break

                ctx = CellContext(cell=cell, index=index)
                self.current = ctx
                self.cells.append(ctx)
                self._publish_status(cell.describe())
                logger.info(
                    "Starting test run %d for %s with passthrough %s",
                    cell.repetition_index + 1, cell.effect_variant.label, cell.passthrough
                )

                try:
                    yield from self._run_cell(ctx, trajectory)
                finally:
                    self.effects.reset_all()

                if ctx.state is CellState.ABORTED:
                    break
                if self._cancel.is_set():
                    ctx.state = CellState.DONE
                    break

                logger.info(
                    "Ended test run %d for %s with passthrough %s",
                    cell.repetition_index + 1, cell.effect_variant.label, cell.passthrough
                )
                ctx.state = CellState.COOLING_DOWN
                yield from wait_for_seconds(self.clock, self.config.wait_time)
                ctx.state = CellState.DONE

            self._finished = not self._cancel.is_set()
        finally:
            self._end()

        return self.cells

    def _run_cell(self, ctx: CellContext, trajectory: Trajectory) -> Generator[None, None, None]:
        cell = ctx.cell

        ctx.state = CellState.CONFIGURING
        effect = self.effects.select(cell.effect_variant)
        self.environment.apply(cell.environment_mode)
        ctx.wall_start = self._now()
        effect_active = effect is not None

        ctx.state = CellState.RECORDING
        ctx.unavailable_counters = self.metrics.start()
        motion = None
        completed = 0
        try:
            ctx.state = CellState.REPLAYING
            ctx.replay_start = self.clock.time
            motion = self.replayer.replay(trajectory, self.rig.anchor, self.rig.mover, self._cancel)

            while True:
                # Same tick, fixed order: metrics read, rate update, pose update
                self.metrics.sample(effect_active=effect_active)
                self._update_emission(ctx, effect)
                try:
                    next(motion)
                except StopIteration as finished:
                    completed = finished.value
                    break
                yield

            # A stop during the last segment still leaves a complete run
            if completed < self.replayer.total_segments:
                ctx.state = CellState.ABORTED
                logger.info("Sweep stopped during %s; no results written", cell.describe())
                return

            ctx.state = CellState.FLUSHING
            ctx.summary = self.metrics.get_summary()
            self.counter_set.close()
            path = self._result_path(cell, ctx.wall_start)
            try:
                ctx.rows_written = self.metrics.flush(path)
                ctx.output_path = str(path)
            except WriteFailure as e:
                logger.error("Results for %s not saved: %s", cell.describe(), e)
                self._report(ctx, e)
        finally:
            if motion is not None:
                motion.close()
            self.metrics.stop()
            if ctx.state not in (CellState.FLUSHING, CellState.ABORTED):
                # Torn down mid-run
                ctx.state = CellState.ABORTED

    def _update_emission(self, ctx: CellContext, effect: Optional[ParticleEffect]) -> None:
        if effect is None or ctx.replay_start is None:
            return
        elapsed = self.clock.time - ctx.replay_start
        effect.emission_rate = self.config.emission_rate(
            ctx.cell.effect_variant, ctx.cell.environment_mode, elapsed
        )

    def _result_path(self, cell: SweepCell, wall_start: Optional[datetime]) -> Path:
        stamp = format_timestamp(wall_start or self._now())
        stem = f"{RESULT_FILE_PREFIX}{cell.effect_variant.label}_Passthrough{cell.passthrough}_{stamp}"
        return unique_path(Path(self.config.output_dir), stem, reserved=self._reserved_paths)

    def _begin(self) -> None:
        if self.rig.head_tracking is not None:
            self.rig.head_tracking.enabled = False
        self._camera_offset = self.rig.camera.get_local_pose()
        self.rig.mover.set_world_pose(Pose.identity())
        self.rig.camera.reset_local()
        logger.info("Testing started and head tracking disabled")

    def _end(self) -> None:
        self.metrics.stop()
        current = self.current
        if current is not None and current.state not in (CellState.DONE, CellState.ABORTED):
            # Results already on disk count as a finished cell
            current.state = CellState.DONE if current.output_path else CellState.ABORTED
        if self._camera_offset is not None:
            self.rig.camera.set_local_pose(self._camera_offset)
            self._camera_offset = None
        if self.rig.head_tracking is not None:
            self.rig.head_tracking.enabled = True
        self._running = False
        logger.info("Testing ended and head tracking enabled")
        self._publish_status("Test has ended")

    def _publish_status(self, text: str) -> None:
        self._status = text
        if self._status_callback:
            self._status_callback(text)

    def _report(self, ctx: Optional[CellContext], error: Exception) -> None:
        if ctx is not None:
            ctx.errors.append(str(error))
        if self._error_callback:
            self._error_callback(error)

    def _on_counter_error(self, error: Exception) -> None:
        self._report(self.current, error)

    def get_status(self) -> Dict[str, Any]:
        """Get current sweep status."""
        current = self.current
        return {
            "running": self._running,
            "finished": self._finished,
            "status_text": self._status,
            "cells_started": len(self.cells),
            "cells_total": len(enumerate_cells(self.config.repetitions)),
            "current": current.to_dict() if current else None,
            "replay_progress": round(self.replayer.progress, 4),
            "files_written": [c.output_path for c in self.cells if c.output_path],
        }

    def write_manifest(self, filepath: str) -> None:
        """Write a JSON record of the sweep's cells and result files."""
        MetricsExporter.to_json({
            "generated_at": self._now().isoformat(),
            "config": self.config.to_dict(),
            "finished": self._finished,
            "cells": [c.to_dict() for c in self.cells],
        }, Path(filepath))
