"""
Error taxonomy for the capture/replay harness.

Load and parse errors are fatal to a sweep. Write failures and unavailable
subsystems are reported and the run degrades instead of aborting.
"""

from typing import Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class NotFoundError(HarnessError, FileNotFoundError):
    """No recording log matched the expected naming pattern."""


class ParseError(HarnessError, ValueError):
    """A recording log line could not be parsed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        line_number: Optional[int] = None,
        line: Optional[str] = None
    ):
        self.path = path
        self.line_number = line_number
        self.line = line
        location = ""
        if path is not None:
            location = f"{path}:"
        if line_number is not None:
            location += f"{line_number}: "
        elif location:
            location += " "
        super().__init__(f"{location}{message}")


class InsufficientDataError(HarnessError, ValueError):
    """Fewer than two samples; nothing to interpolate between."""


class WriteFailure(HarnessError, OSError):
    """A result or recording file could not be written."""


class SubsystemUnavailable(HarnessError, RuntimeError):
    """A collaborator (performance counters, display) is missing."""
