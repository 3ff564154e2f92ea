"""Command line entry point: `python -m vrsweep {record,inspect,sweep}`."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import numpy as np

from .config import SweepConfig
from .display import set_highest_refresh_rate
from .errors import HarnessError
from .frames import Frame
from .replay import replay_positions
from .sim import TRAJECTORIES, SimulatedDisplay, record_synthetic, run_simulated_sweep
from .store import TrajectoryStore, list_recordings, validate_recording


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m vrsweep")
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level (DEBUG, INFO, ...)")
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("record", help="Record a synthetic headset trajectory")
    rec.add_argument("--out-dir", type=str, default="./recordings", help="Recording directory")
    rec.add_argument("--duration", type=float, default=10.0, help="Seconds to record (>0)")
    rec.add_argument("--fps", type=float, default=72.0, help="Frames per second (>0)")
    rec.add_argument("--trajectory", type=str, default="circle", help="Trajectory: static|linear|circle")
    rec.add_argument("--seed", type=int, default=0, help="RNG seed")

    ins = sub.add_parser("inspect", help="Validate a recording (default: newest in --dir)")
    ins.add_argument("path", nargs="?", default=None, help="MovementData CSV file")
    ins.add_argument("--dir", type=str, default="./recordings", help="Recording directory")
    ins.add_argument("--fps", type=float, default=72.0, help="Frame rate for the replay preview")

    swp = sub.add_parser("sweep", help="Run the test matrix against simulated subsystems")
    swp.add_argument("--config", type=str, default=None, help="JSON config file")
    swp.add_argument("--recordings-dir", type=str, default=None, help="Recording directory")
    swp.add_argument("--out-dir", type=str, default=None, help="Results directory")
    swp.add_argument("--wait-time", type=float, default=None, help="Settle pause between runs (s)")
    swp.add_argument("--repetitions", type=int, default=None, help="Runs per configuration")
    swp.add_argument("--fps", type=float, default=72.0, help="Simulated frame rate (>0)")
    swp.add_argument("--manifest", type=str, default=None, help="Write a JSON sweep manifest here")
    return parser


def _cmd_record(args: argparse.Namespace) -> int:
    if args.duration <= 0:
        return _err("--duration must be > 0")
    if args.fps <= 0:
        return _err("--fps must be > 0")
    if args.trajectory not in TRAJECTORIES:
        return _err(f"--trajectory must be one of: {', '.join(TRAJECTORIES)}")

    meta = record_synthetic(
        output_dir=args.out_dir,
        duration=args.duration,
        fps=args.fps,
        trajectory=args.trajectory,
        seed=args.seed,
    )
    if meta.get("error"):
        return _err(meta["error"], code=1)
    print(f"log_file: {meta['log_file']}")
    print(f"sample_count: {meta['sample_count']}")
    return 0


def _cmd_inspect(args: argparse.Namespace) -> int:
    if args.fps <= 0:
        return _err("--fps must be > 0")

    store = TrajectoryStore()
    path = Path(args.path) if args.path else store.find_latest(args.dir)
    report = validate_recording(str(path))
    report["path"] = str(path)

    if report["valid"]:
        positions = replay_positions(store.load(str(path)), Frame("movement_anchor"), 1.0 / args.fps)
        steps = positions[1:] - positions[:-1]
        report["stats"]["replay_frames"] = int(len(positions))
        report["stats"]["path_length_m"] = round(float(np.linalg.norm(steps, axis=1).sum()), 4)
    else:
        report["recordings"] = list_recordings(args.dir)

    print(json.dumps(report, indent=2))
    return 0 if report["valid"] else 1


def _cmd_sweep(args: argparse.Namespace) -> int:
    if args.fps <= 0:
        return _err("--fps must be > 0")

    config = SweepConfig.load(args.config) if args.config else SweepConfig()
    overrides = {
        "recordings_dir": args.recordings_dir,
        "output_dir": args.out_dir,
        "wait_time": args.wait_time,
        "repetitions": args.repetitions,
    }
    data = config.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    config = SweepConfig.from_dict(data)

    set_highest_refresh_rate(SimulatedDisplay())
    summary = run_simulated_sweep(config, fps=args.fps, manifest_path=args.manifest)

    for k in ("cells", "files", "errors", "manifest"):
        print(f"{k}: {summary[k]}")
    return 0


def _err(msg: str, code: int = 2) -> int:
    print(f"error: {msg}", file=sys.stderr)
    return code


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return int(e.code) if isinstance(e.code, int) else 2

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "record": _cmd_record,
        "inspect": _cmd_inspect,
        "sweep": _cmd_sweep,
    }
    try:
        return commands[args.command](args)
    except (HarnessError, ValueError, OSError) as e:
        logger.error("%s failed: %s", args.command, e)
        return _err(str(e), code=1)


if __name__ == "__main__":
    raise SystemExit(main())
