"""
Peak-hours ETA padding.
"""

from typing import Iterable, Tuple

from .zones import ETA_RANGE_PATTERN

DEFAULT_PEAK_WINDOWS: Tuple[Tuple[int, int], ...] = ((12, 14), (18, 20))
DEFAULT_PADDING_MINUTES = 15


def is_peak_hour(hour: int, windows: Iterable[Tuple[int, int]] = DEFAULT_PEAK_WINDOWS) -> bool:
    """Whether ``hour`` falls in any half-open ``[start, end)`` window."""
    return any(start <= hour < end for start, end in windows)


def adjusted_eta(
    eta_range: str,
    hour: int,
    windows: Iterable[Tuple[int, int]] = DEFAULT_PEAK_WINDOWS,
    padding_minutes: int = DEFAULT_PADDING_MINUTES,
) -> str:
    """
    Pad both bounds of an ETA range during lunch and dinner peaks.

    ``adjusted_eta("30-45 mins", 13)`` gives ``"45-60 mins"``. Strings without
    a ``min-max`` range come back unchanged.
    """
    if not is_peak_hour(hour, windows):
        return eta_range

    def pad(match):
        low = int(match.group(1)) + padding_minutes
        high = int(match.group(2)) + padding_minutes
        return f"{low}-{high}"

    return ETA_RANGE_PATTERN.sub(pad, eta_range, count=1)
