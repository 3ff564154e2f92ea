"""
Trajectory store for reading movement recordings back.

Provides functionality to:
- Find the newest MovementData log in a directory
- Parse a log into a timestamp-sorted trajectory
- List and validate recordings without loading them into a replay
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List

import numpy as np

from .errors import HarnessError, NotFoundError, ParseError, InsufficientDataError
from .pose import RelativePoseSample, Trajectory, parse_fields, sort_samples, trajectory_duration
from .recorder import MOVEMENT_FILE_PREFIX


logger = logging.getLogger(__name__)

RECORDING_PATTERN = f"{MOVEMENT_FILE_PREFIX}*.csv"
MIN_SAMPLES = 2


class TrajectoryStore:
    """
    Loads recorded trajectories.

    Usage:
        store = TrajectoryStore()
        trajectory = store.load_latest("./recordings")
    """

    def __init__(self, pattern: str = RECORDING_PATTERN):
        self.pattern = pattern

    def find_latest(self, directory: str) -> Path:
        """
        Locate the most recently modified recording.

        Ties on modification time go to the lexically greatest file name,
        which is the later stamp for names that differ only in their stamp.

        Raises:
            NotFoundError: If the directory has no matching file
        """
        path = Path(directory)
        candidates = [p for p in path.glob(self.pattern) if p.is_file()] if path.is_dir() else []
        if not candidates:
            raise NotFoundError(f"No '{self.pattern}' recordings found in {directory}")

        return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))

    def load(self, log_file: str) -> Trajectory:
        """
        Parse a recording into a sorted trajectory.

        Args:
            log_file: Path to a MovementData CSV file

        Returns:
            Samples sorted by timestamp

        Raises:
            NotFoundError: If the file does not exist
            ParseError: On the first malformed line; nothing is returned
            InsufficientDataError: If fewer than two samples were read
        """
        path = Path(log_file)
        if not path.is_file():
            raise NotFoundError(f"Recording not found: {log_file}")

        samples: List[RelativePoseSample] = []
        with open(path, 'rb') as f:
            for line_number, raw in enumerate(f, start=1):
                if not raw.strip():
                    continue
                try:
                    # Decoded per line so a bad byte maps to its line number
                    samples.append(RelativePoseSample.from_line(raw.decode('utf-8')))
                except ValueError as e:
                    raise ParseError(
                        str(e), path=str(path), line_number=line_number,
                        line=raw.decode('utf-8', errors='replace').rstrip('\r\n')
                    ) from e

        if len(samples) < MIN_SAMPLES:
            raise InsufficientDataError(
                f"{path} holds {len(samples)} sample(s); at least {MIN_SAMPLES} are needed for replay"
            )

        trajectory = sort_samples(samples)
        logger.info(
            "Loaded %d samples (%.2f s) from %s",
            len(trajectory), trajectory_duration(trajectory), path.name
        )
        return trajectory

    def load_latest(self, directory: str) -> Trajectory:
        return self.load(str(self.find_latest(directory)))


def list_recordings(directory: str = "./recordings") -> List[Dict[str, Any]]:
    """
    List available recordings, newest first.

    Args:
        directory: Directory containing MovementData logs

    Returns:
        List of recording info dictionaries
    """
    path = Path(directory)
    if not path.exists():
        return []

    files = sorted(
        path.glob(RECORDING_PATTERN),
        key=lambda p: (p.stat().st_mtime, p.name),
        reverse=True
    )

    recordings = []
    for f in files:
        stat = f.stat()
        try:
            sample_count: Optional[int] = len(TrajectoryStore().load(str(f)))
        except (HarnessError, ValueError):
            sample_count = None
        recordings.append({
            "path": str(f),
            "name": f.stem,
            "size_bytes": stat.st_size,
            "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            "sample_count": sample_count,
        })

    return recordings


def validate_recording(log_file: str, unit_tolerance: float = 1e-3) -> Dict[str, Any]:
    """
    Check a recording for integrity and consistency.

    Args:
        log_file: Path to the MovementData CSV file
        unit_tolerance: Allowed deviation of a quaternion norm from 1

    Returns:
        Validation result dictionary
    """
    result: Dict[str, Any] = {
        "valid": True,
        "errors": [],
        "warnings": [],
        "stats": {}
    }

    path = Path(log_file)
    if not path.is_file():
        result["valid"] = False
        result["errors"].append(f"File not found: {log_file}")
        return result

    timestamps: List[float] = []
    non_unit = 0
    with open(path, 'rb') as f:
        for line_number, raw in enumerate(f, start=1):
            if not raw.strip():
                continue
            try:
                timestamp, _, quat = parse_fields(raw.decode('utf-8'))
            except ValueError as e:
                result["errors"].append(f"line {line_number}: {e}")
                continue
            norm = float(np.linalg.norm(quat))
            if norm < 1e-12:
                result["errors"].append(f"line {line_number}: zero-length quaternion")
                continue
            if abs(norm - 1.0) > unit_tolerance:
                non_unit += 1
            timestamps.append(timestamp)

    out_of_order = sum(1 for a, b in zip(timestamps, timestamps[1:]) if b < a)
    duplicates = len(timestamps) - len(set(timestamps))

    if out_of_order:
        result["warnings"].append(f"{out_of_order} line(s) out of timestamp order (sorted on load)")
    if duplicates:
        result["warnings"].append(f"{duplicates} duplicate timestamp(s) (replayed as instant snaps)")
    if non_unit:
        result["warnings"].append(f"{non_unit} non-unit quaternion(s) (normalized on load)")
    if len(timestamps) < MIN_SAMPLES:
        result["errors"].append(f"{len(timestamps)} valid sample(s); at least {MIN_SAMPLES} needed")

    result["valid"] = not result["errors"]
    result["stats"] = {
        "sample_count": len(timestamps),
        "duration_seconds": (max(timestamps) - min(timestamps)) if timestamps else 0.0,
        "out_of_order": out_of_order,
        "duplicate_timestamps": duplicates,
    }
    return result
