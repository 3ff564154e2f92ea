"""
File helpers shared by the recorders.

Output files are named with a wall-clock stamp to the second, so two runs
started within the same second get a numeric suffix instead of overwriting
each other.
"""

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Set

from .errors import WriteFailure


TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def unique_path(
    directory: Path,
    stem: str,
    suffix: str = ".csv",
    reserved: Optional[Set[str]] = None
) -> Path:
    """
    Pick a file path that is neither on disk nor already reserved.

    Args:
        directory: Target directory
        stem: File name without extension
        suffix: File extension including the dot
        reserved: Paths handed out earlier that may not exist yet; the
            returned path is added to it

    Returns:
        `directory/stem.suffix`, or `directory/stem_<n>.suffix` on collision
    """
    reserved = reserved if reserved is not None else set()
    candidate = directory / f"{stem}{suffix}"
    n = 1
    while candidate.exists() or str(candidate) in reserved:
        candidate = directory / f"{stem}_{n}{suffix}"
        n += 1
    reserved.add(str(candidate))
    return candidate


def write_lines(path: Path, lines: Iterable[str]) -> int:
    """
    Write one line per entry, creating the parent directory if needed.

    Returns:
        Number of lines written

    Raises:
        WriteFailure: If the directory or file cannot be written
    """
    count = 0
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8', newline='\n') as f:
            for line in lines:
                f.write(line + '\n')
                count += 1
    except OSError as e:
        raise WriteFailure(f"Could not write {path}: {e}") from e
    return count
