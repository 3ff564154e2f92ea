"""
Trajectory capture/replay harness for VR rendering experiments.

Modules:
- frames: Scene frame hierarchy (world/local poses, point transforms)
- pose: Anchor-relative pose samples and the recording line format
- recorder: Movement recording to MovementData logs
- store: Loading, listing and validating recordings
- replay: Interpolated replay of a trajectory onto a mover frame
- scheduler: Cooperative per-frame tick loop and tasks
- sweep: Test matrix controller (effect x environment x repetition)
- metrics: Per-tick performance rows and result export
- counters: Performance counter access
- effects: Particle effect variants and mutual exclusion
- environment: Immersive/passthrough switching
- tracking: Head-tracking pose driver
- display: Refresh-rate negotiation
- config: Sweep configuration
- sim: Simulated subsystems for headless runs
"""

from .errors import (
    HarnessError, NotFoundError, ParseError,
    InsufficientDataError, WriteFailure, SubsystemUnavailable
)
from .frames import Frame, Pose
from .pose import RelativePoseSample, Trajectory, sort_samples
from .recorder import MovementRecorder
from .store import TrajectoryStore, list_recordings, validate_recording
from .replay import TrajectoryReplayer, interpolate_pose, slerp
from .scheduler import FrameClock, FrameScheduler, Task, wait_for_seconds
from .sweep import (
    SweepController, SweepCell, CellContext, CellState,
    XRRig, enumerate_cells
)
from .metrics import MetricsRow, MetricsRecorder, MetricsExporter, FpsCounter
from .counters import CounterSet, CounterCategory, CounterSpec, DEFAULT_COUNTERS
from .effects import EffectRig, EffectVariant, ParticleEffect
from .environment import SceneEnvironment, EnvironmentMode, ClearMode
from .tracking import HeadPoseDriver
from .display import set_highest_refresh_rate
from .config import SweepConfig

__all__ = [
    # Errors
    "HarnessError",
    "NotFoundError",
    "ParseError",
    "InsufficientDataError",
    "WriteFailure",
    "SubsystemUnavailable",
    # Frames and samples
    "Frame",
    "Pose",
    "RelativePoseSample",
    "Trajectory",
    "sort_samples",
    # Recording
    "MovementRecorder",
    "TrajectoryStore",
    "list_recordings",
    "validate_recording",
    # Replay
    "TrajectoryReplayer",
    "interpolate_pose",
    "slerp",
    # Scheduling
    "FrameClock",
    "FrameScheduler",
    "Task",
    "wait_for_seconds",
    # Sweep
    "SweepController",
    "SweepCell",
    "CellContext",
    "CellState",
    "XRRig",
    "enumerate_cells",
    "SweepConfig",
    # Metrics
    "MetricsRow",
    "MetricsRecorder",
    "MetricsExporter",
    "FpsCounter",
    "CounterSet",
    "CounterCategory",
    "CounterSpec",
    "DEFAULT_COUNTERS",
    # Scene collaborators
    "EffectRig",
    "EffectVariant",
    "ParticleEffect",
    "SceneEnvironment",
    "EnvironmentMode",
    "ClearMode",
    "HeadPoseDriver",
    "set_highest_refresh_rate",
]
