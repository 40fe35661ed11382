"""Shared helpers for the structure detectors."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.entities import Candle

logger = logging.getLogger(__name__)


def log_detection_skip(detector_name: str, reason: str, additional_info: str = "") -> None:
    """Log debug information when a detector has nothing to work with.

    Args:
        detector_name: Name of the detector (e.g., "FVG", "OrderBlock").
        reason: Reason for skipping detection.
        additional_info: Additional context information.
    """
    # Only construct log message if debug logging is enabled
    if logger.isEnabledFor(logging.DEBUG):
        info_str = f" ({additional_info})" if additional_info else ""
        logger.debug("%s detection skipped: %s%s", detector_name, reason, info_str)


def validate_candle_sequence(candles: Sequence[Candle], min_count: int = 3) -> bool:
    """Validate candle sequence has sufficient count and chronological ordering.

    Args:
        candles: Candles to validate.
        min_count: Minimum required candle count.

    Returns:
        True if sequence is valid, False otherwise.
    """
    if len(candles) < min_count:
        return False

    for i in range(1, len(candles)):
        if candles[i].ts <= candles[i - 1].ts:
            logger.warning(
                "Out-of-order candles detected: %s >= %s",
                candles[i - 1].ts,
                candles[i].ts,
            )
            return False

    return True
