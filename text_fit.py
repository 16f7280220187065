from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

log = logging.getLogger(__name__)

DEFAULT_MIN_FONT_SIZE = 12
PROBE_FACTOR = 10
EXPAND_FACTOR = 1.5
# Expansion stops at the larger of this and CAP_FACTOR x the container width,
# so text that never widens (e.g. zero-width) still terminates
MAX_FONT_SIZE = 10_000
CAP_FACTOR = 4 * PROBE_FACTOR


@dataclass(frozen=True)
class MeasurementContext:
    text: str
    font_family: str
    font_weight: str = "normal"
    font_style: str = "normal"


class TextMeasurer(Protocol):
    def measure(self, ctx: MeasurementContext, font_size: float) -> float:
        """Rendered width of ctx.text at font_size. Must lay the text out afresh each call."""
        ...


# ============================================================
# Search core
# ============================================================
def _binary_search(fits: Callable[[int], bool], lo: int, hi: int, best: int) -> int:
    while hi - lo > 1:
        mid = (lo + hi) // 2
        if fits(mid):
            best = mid
            lo = mid
        else:
            hi = mid
    return best

def _fits_within(measurer: TextMeasurer, ctx: MeasurementContext, width: float) -> Callable[[int], bool]:
    def fits(size: int) -> bool:
        return measurer.measure(ctx, size) <= width
    return fits

def max_font_size(container_width: float) -> int:
    return max(MAX_FONT_SIZE, int(container_width * CAP_FACTOR))


# ============================================================
# Public entry points
# ============================================================
def fit_text_to_line(
    measurer: TextMeasurer,
    ctx: Optional[MeasurementContext],
    container_width: float,
    min_font_size: int = DEFAULT_MIN_FONT_SIZE,
) -> Optional[int]:
    """
    Largest integer font size at which ctx.text fits on one line of container_width.

    No upper bound is given, so the search brackets from 10x the width downwards,
    then grows by 1.5x from the first fitting size before binary searching.
    Returns None (no-op) for a missing context or a non-positive width.
    """
    if ctx is None or container_width <= 0:
        return None

    fits = _fits_within(measurer, ctx, container_width)
    cap = max_font_size(container_width)
    lo = min_font_size
    hi = max(int(container_width * PROBE_FACTOR), lo)
    best = lo

    while hi > lo and not fits(hi):
        hi = max(hi // 2, lo)

    if fits(hi):
        best = hi
        lo = hi
        test = min(hi * 2, cap)
        while test > lo:
            if not fits(test):
                break
            best = test
            lo = test
            test = min(int(test * EXPAND_FACTOR), cap)
        hi = min(best * 2, cap)

    size = _binary_search(fits, lo, hi, best)
    log.debug("fit_text_to_line %r width=%s -> %spx", ctx.text, container_width, size)
    return size

def fit_text_to_container(
    measurer: TextMeasurer,
    ctx: Optional[MeasurementContext],
    max_width: float,
    min_font_size: int = DEFAULT_MIN_FONT_SIZE,
) -> Optional[int]:
    """Largest integer font size in [min_font_size, 2 * max_width) whose width is <= max_width."""
    if ctx is None or max_width <= 0:
        return None

    fits = _fits_within(measurer, ctx, max_width)
    size = _binary_search(fits, min_font_size, int(max_width * 2), min_font_size)
    log.debug("fit_text_to_container %r max_width=%s -> %spx", ctx.text, max_width, size)
    return size
