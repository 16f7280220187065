from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

log = logging.getLogger(__name__)

ROOT_FONT_PX = 16.0
SHRINK_CAP_PX = 18.0
SHRINK_FLOOR_PX = 6.0
SHRINK_STEP_PX = 0.5
SHRINK_MAX_ITERATIONS = 100

MIN_TRACK_SCALE = 0.1
MAX_TRACK_SCALE = 3.0


# ============================================================
# Responsive descriptor: clamp(<min>rem, <preferred>cqw, <max>cqw)
# ============================================================
CLAMP_RE = re.compile(
    r"clamp\(\s*([\d.]+)rem\s*,\s*([\d.]+)cqw\s*,\s*([\d.]+)cqw\s*\)"
)

def _num(x: float) -> str:
    return f"{round(x, 6):g}"

@dataclass(frozen=True)
class FontClamp:
    min_rem: float
    preferred_cqw: float
    max_cqw: float

    @classmethod
    def parse(cls, css: str) -> "FontClamp":
        m = CLAMP_RE.fullmatch(css.strip())
        if not m:
            raise ValueError(f"Not a clamp(<rem>, <cqw>, <cqw>) expression: {css!r}")
        return cls(float(m.group(1)), float(m.group(2)), float(m.group(3)))

    def scaled(self, factor: float) -> "FontClamp":
        # the rem floor is fixed; only the container-relative parts follow the scale
        return FontClamp(self.min_rem, self.preferred_cqw * factor, self.max_cqw * factor)

    def css(self) -> str:
        return f"clamp({_num(self.min_rem)}rem, {_num(self.preferred_cqw)}cqw, {_num(self.max_cqw)}cqw)"

    def resolve(self, container_width: float, root_font_px: float = ROOT_FONT_PX) -> float:
        """Pixel size for a container of the given width, with CSS clamp() semantics."""
        lo = self.min_rem * root_font_px
        preferred = self.preferred_cqw * container_width / 100.0
        hi = self.max_cqw * container_width / 100.0
        return max(lo, min(preferred, hi))


# ============================================================
# Tiers
# ============================================================
TIERS: List[Tuple[int, str, FontClamp]] = [
    (5, "1-5", FontClamp.parse("clamp(1.12rem, 7cqw, 15.75cqw)")),
    (10, "6-10", FontClamp.parse("clamp(0.672rem, 4.2cqw, 9.45cqw)")),
    (15, "11-15", FontClamp.parse("clamp(0.42rem, 2.625cqw, 5.90625cqw)")),
    (20, "16-20", FontClamp.parse("clamp(0.297rem, 1.855cqw, 4.17375cqw)")),
]
TIER_OVERFLOW = ("21+", FontClamp.parse("clamp(0.297rem, 1.39125cqw, 3.1303125cqw)"))

def track_tier(track_count: int) -> str:
    for upper, label, _clamp in TIERS:
        if track_count <= upper:
            return label
    return TIER_OVERFLOW[0]

def tier_clamp(track_count: int) -> FontClamp:
    for upper, _label, clamp in TIERS:
        if track_count <= upper:
            return clamp
    return TIER_OVERFLOW[1]

def base_em(track_count: int) -> float:
    """1em up to ten tracks, then 0.05em less per started group of five, floored at 0.3em."""
    if track_count <= 10:
        return 1.0
    groups = math.ceil((track_count - 10) / 5)
    return max(round(1 - 0.05 * groups, 4), 0.3)

def clamp_track_scale(value: float) -> float:
    return min(max(float(value), MIN_TRACK_SCALE), MAX_TRACK_SCALE)


# ============================================================
# Shrink-to-fit
# ============================================================
@dataclass(frozen=True)
class ListMetrics:
    scroll_height: float
    client_height: float
    column_count: int = 1

    @property
    def overflows(self) -> bool:
        return self.scroll_height > self.client_height

    @property
    def fits(self) -> bool:
        return not self.overflows and self.column_count == 1


class TrackListLayout(Protocol):
    def layout(self, font_size: float) -> ListMetrics:
        """Lay the list out in a single column at font_size and report its metrics."""
        ...


LayoutFactory = Callable[[Sequence[str], float, float], TrackListLayout]


@dataclass(frozen=True)
class ShrinkResult:
    font_px: float
    fits: bool
    iterations: int

def shrink_to_fit(layout: TrackListLayout, start_px: float) -> ShrinkResult:
    """
    Step the font size down by SHRINK_STEP_PX until the list stops overflowing.

    Gives up at SHRINK_FLOOR_PX or after SHRINK_MAX_ITERATIONS and keeps the floor,
    overflow and all.
    """
    size = start_px
    iterations = 0
    while iterations < SHRINK_MAX_ITERATIONS and size >= SHRINK_FLOOR_PX:
        metrics = layout.layout(size)
        log.debug(
            "shrink iteration %d: %.1fpx scroll=%.1f client=%.1f columns=%d",
            iterations + 1, size, metrics.scroll_height, metrics.client_height, metrics.column_count,
        )
        if metrics.fits:
            return ShrinkResult(size, True, iterations)
        size -= SHRINK_STEP_PX
        iterations += 1

    if size < SHRINK_FLOOR_PX:
        size = SHRINK_FLOOR_PX
    fits = layout.layout(size).fits
    if not fits:
        log.warning("Track list still overflows at %.1fpx; keeping it", size)
    return ShrinkResult(size, fits, iterations)


# ============================================================
# Full pass
# ============================================================
@dataclass(frozen=True)
class TrackListSizing:
    track_count: int
    tier: str
    base_em: float
    start_px: float
    font_px: float
    fits: bool
    base_clamp: FontClamp
    user_scale: float = 1.0

    @property
    def clamp(self) -> FontClamp:
        return self.base_clamp.scaled(self.user_scale)

    def rescale(self, user_scale: float) -> "TrackListSizing":
        return replace(self, user_scale=clamp_track_scale(user_scale))

    def static_px(self, root_font_px: float = ROOT_FONT_PX) -> float:
        """Shrink-to-fit size times the user scale, never below the descriptor floor."""
        return max(self.font_px * self.user_scale, self.clamp.min_rem * root_font_px)

    def css_font_size(self, responsive: bool = True) -> str:
        if responsive:
            return self.clamp.css()
        return f"{_num(self.static_px())}px"

    def resolved_px(self, container_width: float, responsive: bool = True,
                    root_font_px: float = ROOT_FONT_PX) -> float:
        if responsive:
            return self.clamp.resolve(container_width, root_font_px)
        return self.static_px(root_font_px)

def scale_track_list(
    track_titles: Sequence[str],
    container_width: float,
    container_height: float,
    user_scale: float,
    layout_factory: LayoutFactory,
    container_font_px: float = ROOT_FONT_PX,
) -> Optional[TrackListSizing]:
    """
    Size a track list so it fills exactly one column of the container.

    Returns None when there are no tracks or the container has no area yet.
    """
    n = len(track_titles)
    if n == 0 or container_width <= 0 or container_height <= 0:
        return None

    em = base_em(n)
    start_px = min(em * container_font_px, SHRINK_CAP_PX)
    log.debug("Sizing %d tracks (tier %s): starting at %.2fpx", n, track_tier(n), start_px)

    layout = layout_factory(track_titles, container_width, container_height)
    result = shrink_to_fit(layout, start_px)

    return TrackListSizing(
        track_count=n,
        tier=track_tier(n),
        base_em=em,
        start_px=start_px,
        font_px=result.font_px,
        fits=result.fits,
        base_clamp=tier_clamp(n),
        user_scale=clamp_track_scale(user_scale),
    )
