"""Simulated collaborators for running the harness without a headset.

This module provides stand-ins for the rendering, profiler and display
subsystems plus a synthetic headset, so recordings and full sweeps can be
exercised deterministically in-process.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

import numpy as np
from scipy.spatial.transform import Rotation

from .config import SweepConfig
from .counters import CounterCategory
from .effects import EffectRig
from .environment import SceneEnvironment
from .errors import SubsystemUnavailable
from .frames import Frame, Pose
from .recorder import MovementRecorder
from .scheduler import FrameClock, FrameScheduler
from .sweep import SweepController, XRRig
from .tracking import HeadPoseDriver


TRAJECTORIES = ("static", "linear", "circle")


class _SimulatedEffect:
    """Particles spawned at `emission_rate` per second, each living `lifetime` s."""

    def __init__(self, clock: FrameClock, lifetime: float = 2.0):
        if lifetime <= 0.0:
            raise ValueError("lifetime must be > 0")
        self.clock = clock
        self.lifetime = float(lifetime)
        self.active = False
        self.emission_rate = 0.0
        self._emitting = False
        self._spawn_accumulator = 0.0
        self._batches: deque = deque()  # (birth_time, count)

    @property
    def particle_count(self) -> int:
        return int(sum(count for _, count in self._batches))

    def update(self, clock: FrameClock) -> None:
        while self._batches and clock.time - self._batches[0][0] >= self.lifetime:
            self._batches.popleft()

        if not (self.active and self._emitting):
            return

        self._spawn_accumulator += max(self.emission_rate, 0.0) * clock.delta_time
        spawned = int(self._spawn_accumulator)
        if spawned:
            self._spawn_accumulator -= spawned
            self._batches.append((clock.time, spawned))

    def play(self) -> None:
        self._emitting = True

    def stop(self) -> None:
        self._emitting = False

    def clear(self) -> None:
        self._batches.clear()
        self._spawn_accumulator = 0.0


class SimulatedVisualEffect(_SimulatedEffect):
    """Custom visual-effect-graph stand-in; emits whenever it is active."""

    def __init__(self, clock: FrameClock, lifetime: float = 2.0):
        super().__init__(clock, lifetime)
        self._emitting = True

    def stop(self) -> None:
        # The graph keeps spawning while active; only reinit resets it
        pass

    def reinit(self) -> None:
        self.clear()
        self.emission_rate = 0.0
        self._emitting = True


class SimulatedParticleSystem(_SimulatedEffect):
    """Built-in particle system stand-in with play/stop/clear semantics."""

    def reinit(self) -> None:
        pass


class SimulatedCounterHandle:
    def __init__(self, read: Callable[[], float | int]):
        self._read = read
        self._last_value: float | int = 0
        self.disposed = False

    @property
    def last_value(self) -> float | int:
        if not self.disposed:
            self._last_value = self._read()
        return self._last_value

    def dispose(self) -> None:
        self.disposed = True


class SimulatedCounterProvider:
    """
    Profiler stand-in whose values scale with the live particle count.

    Counters listed in `unavailable` raise SubsystemUnavailable on start.
    """

    def __init__(self, effects: EffectRig, unavailable: Iterable[str] = ()):
        self.effects = effects
        self.unavailable = set(unavailable)
        self.handles: list[SimulatedCounterHandle] = []
        self._readers: dict[tuple[CounterCategory, str], Callable[[], float | int]] = {
            (CounterCategory.RENDER, "Triangles Count"): lambda: 50_000 + 2 * self._particles(),
            (CounterCategory.RENDER, "Draw Calls Count"): lambda: 120 + (1 if self._particles() else 0),
            (CounterCategory.RENDER, "Vertices Count"): lambda: 150_000 + 4 * self._particles(),
            (CounterCategory.MEMORY, "Total Used Memory"): lambda: 512 * 1024 * 1024 + 256 * self._particles(),
            (CounterCategory.RENDER, "GPU Usage"): lambda: min(1.0, 0.25 + self._particles() / 20_000.0),
        }

    def _particles(self) -> int:
        return sum(
            effect.particle_count
            for effect in (self.effects.get(v) for v in self.effects.active_variants())
            if effect is not None
        )

    def start(self, category: CounterCategory, name: str) -> SimulatedCounterHandle:
        reader = self._readers.get((category, name))
        if reader is None or name in self.unavailable:
            raise SubsystemUnavailable(f"Counter {category.value}/{name} not available")
        handle = SimulatedCounterHandle(reader)
        self.handles.append(handle)
        return handle

    @property
    def open_handles(self) -> int:
        return sum(1 for h in self.handles if not h.disposed)


class SimulatedDisplay:
    def __init__(self, rates: Iterable[float] | None = (72.0, 80.0, 90.0, 120.0), accept: bool = True):
        self.rates = None if rates is None else list(rates)
        self.accept = accept
        self.current_rate: float | None = None

    def supported_refresh_rates(self) -> list[float] | None:
        return self.rates

    def request_refresh_rate(self, rate: float) -> bool:
        if not self.accept or self.rates is None or rate not in self.rates:
            return False
        self.current_rate = rate
        return True


class SimulatedHeadset:
    """Deterministic head trajectory for driving the camera while recording."""

    def __init__(self, seed: int = 0, trajectory: str = "circle"):
        if trajectory not in TRAJECTORIES:
            raise ValueError(
                f"Unknown trajectory {trajectory!r}; expected one of: {', '.join(TRAJECTORIES)}"
            )
        self.trajectory = trajectory
        rng = np.random.default_rng(int(seed))

        # Small per-seed offsets so simulations can vary by seed.
        self._base_pos = np.array(
            [
                float(rng.uniform(-0.05, 0.05)),
                1.6 + float(rng.uniform(-0.05, 0.05)),
                float(rng.uniform(-0.05, 0.05)),
            ],
            dtype=np.float64,
        )
        self._base_yaw = float(rng.uniform(-0.25, 0.25))

    def pose(self, t_sec: float) -> Pose:
        if self.trajectory == "static":
            pos = self._base_pos.copy()
            yaw = self._base_yaw
            pitch = 0.0
        elif self.trajectory == "linear":
            pos = self._base_pos + np.array([0.25 * t_sec, 0.0, 0.0])
            yaw = self._base_yaw + 0.1 * t_sec
            pitch = 0.0
        else:  # circle
            radius = 0.5
            omega = 0.6  # rad/s
            pos = self._base_pos + np.array([
                radius * np.cos(omega * t_sec) - radius,
                0.05 * np.sin(2.0 * omega * t_sec),
                radius * np.sin(omega * t_sec),
            ])
            yaw = self._base_yaw - omega * t_sec
            pitch = 0.15 * np.sin(omega * t_sec)

        rotation = Rotation.from_euler("yx", [yaw, pitch])
        return Pose(position=pos, rotation=rotation)


def record_synthetic(
    output_dir: str,
    duration: float = 10.0,
    fps: float = 72.0,
    trajectory: str = "circle",
    seed: int = 0,
    anchor_position=None,
    now: Callable[[], datetime] = datetime.now,
) -> dict:
    """Record a synthetic headset path the same way a live session would.

    Returns the recorder's metadata dict (log_file, sample_count, ...).
    """
    if duration <= 0.0:
        raise ValueError("duration must be > 0")
    if fps <= 0.0:
        raise ValueError("fps must be > 0")

    scheduler = FrameScheduler()
    anchor = Frame("movement_anchor", position=anchor_position)
    origin = Frame("xr_origin")
    camera = Frame("main_camera", parent=origin)
    headset = SimulatedHeadset(seed=seed, trajectory=trajectory)
    driver = HeadPoseDriver(camera, source=headset.pose)
    recorder = MovementRecorder(camera, anchor, output_dir=output_dir, now=now)

    # Tracking first so the recorder samples this frame's pose
    scheduler.add_update(driver.update)
    scheduler.add_update(recorder.update)

    recorder.arm()
    frames = max(2, int(round(duration * fps)))
    for _ in range(frames):
        scheduler.tick(1.0 / fps)
    return recorder.disarm()


def build_simulated_sweep(
    config: SweepConfig,
    scheduler: FrameScheduler | None = None,
    unavailable_counters: Iterable[str] = (),
    now: Callable[[], datetime] = datetime.now,
) -> tuple[FrameScheduler, SweepController, SimulatedCounterProvider]:
    """Wire a SweepController to simulated effects, counters and tracking."""
    scheduler = scheduler or FrameScheduler()
    clock = scheduler.clock

    rig = XRRig.create()
    headset = SimulatedHeadset(trajectory="static")
    rig.head_tracking = HeadPoseDriver(rig.camera, source=headset.pose)

    vfx = SimulatedVisualEffect(clock)
    builtin = SimulatedParticleSystem(clock)
    effects = EffectRig(custom=vfx, builtin=builtin)
    counters = SimulatedCounterProvider(effects, unavailable=unavailable_counters)

    scheduler.add_update(rig.head_tracking.update)
    scheduler.add_update(vfx.update)
    scheduler.add_update(builtin.update)

    controller = SweepController(
        config,
        clock,
        rig,
        effects,
        SceneEnvironment(),
        counters=counters,
        now=now,
    )
    return scheduler, controller, counters


def run_simulated_sweep(
    config: SweepConfig,
    fps: float = 72.0,
    manifest_path: str | None = None,
    unavailable_counters: Iterable[str] = (),
    now: Callable[[], datetime] = datetime.now,
) -> dict:
    """Run the whole matrix against simulated subsystems at max speed."""
    if fps <= 0.0:
        raise ValueError("fps must be > 0")

    scheduler, controller, counters = build_simulated_sweep(
        config, unavailable_counters=unavailable_counters, now=now
    )
    task = controller.start(scheduler)
    cells = scheduler.run_until_complete(task, dt=1.0 / fps)

    if manifest_path is not None:
        controller.write_manifest(manifest_path)

    return {
        "cells": len(cells),
        "files": [c.output_path for c in cells if c.output_path],
        "errors": [e for c in cells for e in c.errors],
        "open_counter_handles": counters.open_handles,
        "manifest": str(Path(manifest_path)) if manifest_path else None,
    }
