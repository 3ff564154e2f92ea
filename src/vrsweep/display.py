"""
Display refresh-rate negotiation.

A one-shot step at startup: query the headset display for its supported
refresh rates and request the highest one (optionally capped).
"""

import logging
from typing import Optional, Iterable, Protocol


logger = logging.getLogger(__name__)


class DisplaySubsystem(Protocol):
    def supported_refresh_rates(self) -> Optional[Iterable[float]]:
        """Supported rates in Hz, or None if they cannot be queried."""
        ...

    def request_refresh_rate(self, rate: float) -> bool:
        ...


def set_highest_refresh_rate(
    display: Optional[DisplaySubsystem],
    max_rate: Optional[float] = None
) -> Optional[float]:
    """
    Request the highest supported refresh rate.

    Args:
        display: Display subsystem, or None if the platform has none
        max_rate: Ignore rates above this value (None = no cap)

    Returns:
        The rate that was set, or None if nothing was changed
    """
    if display is None:
        logger.error("Display subsystem not available.")
        return None

    rates = display.supported_refresh_rates()
    if rates is None:
        logger.error("Unable to retrieve supported refresh rates.")
        return None

    candidates = [float(r) for r in rates if max_rate is None or float(r) <= max_rate]
    highest = max(candidates, default=0.0)

    if highest > 0.0 and display.request_refresh_rate(highest):
        logger.info("Successfully set refresh rate to %s Hz.", highest)
        return highest

    logger.error("Failed to set refresh rate to %s Hz.", highest)
    return None
