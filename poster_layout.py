from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, List, Literal, Optional, Set, Tuple, Union

from PIL import Image

from poster_palette import Palette, contrast_color, extract_palette, sort_by_lightness
from text_fit import MeasurementContext, TextMeasurer, fit_text_to_container, fit_text_to_line
from track_list import LayoutFactory, TrackListSizing, clamp_track_scale, scale_track_list

log = logging.getLogger(__name__)

PALETTE_SIZE = 5
DEFAULT_GREYS = ["#f5f5f5", "#cccccc", "#999999", "#666666", "#333333"]
DEFAULT_BACKGROUND = "#667eea"
DEFAULT_ACCENT = "#ffffff"
PLACEHOLDER_TRACK_COUNT = 9

TITLE_MIN_FONT_SIZE = 20
ARTIST_MIN_FONT_SIZE = 8
TITLE_DEBOUNCE_MS = 100
TRACKS_DEBOUNCE_MS = 150

# (short side, long side) in inches
POSTER_SIZES = {
    "paper": (8.5, 11.0),
    "tabloid": (11.0, 17.0),
}
ORIENTATIONS = ("vertical", "horizontal")

Trigger = Literal["image", "content", "resize", "scale"]


# ============================================================
# Presentation policy
# ============================================================
def pad_palette(palette: Iterable[str], size: int = PALETTE_SIZE) -> Palette:
    """Lightest first, at most `size` colors, topped up with default greys."""
    shown = sort_by_lightness(list(palette))[:size]
    greys = iter(DEFAULT_GREYS)
    while len(shown) < size:
        shown.append(next(greys, DEFAULT_GREYS[-1]))
    return shown

def poster_colors(palette: Palette) -> Tuple[str, str, str]:
    """(background, accent, text) for a palette in extraction order."""
    background = palette[0] if palette else DEFAULT_BACKGROUND
    accent = palette[1] if len(palette) > 1 else DEFAULT_ACCENT
    return background, accent, contrast_color(background)

def placeholder_tracks(count: int = PLACEHOLDER_TRACK_COUNT) -> List[str]:
    return [f"Track {i}" for i in range(1, count + 1)]

def fit_poster_size(
    size: str,
    orientation: str,
    avail_w: float,
    avail_h: float,
) -> Optional[Tuple[float, float]]:
    """
    Widest poster of the given paper size that fits the available area.
    Unknown sizes fall back to tabloid. Returns None while the area is empty.
    """
    if orientation not in ORIENTATIONS:
        raise ValueError(f"Unknown orientation {orientation!r}; expected one of {ORIENTATIONS}")
    if avail_w <= 0 or avail_h <= 0:
        return None

    short, long = POSTER_SIZES.get(size, POSTER_SIZES["tabloid"])
    aspect = long / short if orientation == "horizontal" else short / long

    width = avail_w
    height = width / aspect
    if height > avail_h:
        height = avail_h
        width = height * aspect
    return width, height


# ============================================================
# State
# ============================================================
@dataclass
class PosterState:
    title: str = ""
    artist: str = ""
    tracks: List[str] = field(default_factory=list)
    palette: Palette = field(default_factory=list)
    font_family: str = "Helvetica"
    title_weight: str = "bold"
    track_scale: float = 1.0
    size: str = "tabloid"
    orientation: str = "vertical"

    # container geometry, set by the host before a recompute
    title_width: float = 0.0
    tracks_width: float = 0.0
    tracks_height: float = 0.0
    container_font_px: float = 16.0

    # results
    title_font_px: Optional[int] = None
    artist_font_px: Optional[int] = None
    track_sizing: Optional[TrackListSizing] = None

    @property
    def shown_tracks(self) -> List[str]:
        return self.tracks or placeholder_tracks()

    @property
    def swatches(self) -> Palette:
        return pad_palette(self.palette)


# ============================================================
# Debounce
# ============================================================
class Debouncer:
    """
    Collects triggers and releases them once no new trigger has arrived for
    `window_ms`. The host polls `due()`; nothing here sleeps or spawns threads.
    """

    def __init__(self, window_ms: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.window = window_ms / 1000.0
        self._clock = clock
        self._pending: Set[str] = set()
        self._deadline: Optional[float] = None

    def notify(self, trigger: Trigger, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        self._pending.add(trigger)
        self._deadline = now + self.window

    def due(self, now: Optional[float] = None) -> Set[str]:
        now = self._clock() if now is None else now
        if not self._pending or self._deadline is None or now < self._deadline:
            return set()
        fired, self._pending = self._pending, set()
        self._deadline = None
        return fired

    @property
    def pending(self) -> bool:
        return bool(self._pending)


# ============================================================
# Orchestration
# ============================================================
class PosterLayoutEngine:
    def __init__(
        self,
        measurer: TextMeasurer,
        layout_factory: LayoutFactory,
        palette_size: int = PALETTE_SIZE,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.measurer = measurer
        self.layout_factory = layout_factory
        self.palette_size = palette_size
        self.rng = rng

    def process_image(self, state: PosterState, img: Image.Image) -> PosterState:
        palette = extract_palette(img, self.palette_size, rng=self.rng)
        return replace(state, palette=palette)

    def fit_title(self, state: PosterState) -> PosterState:
        if state.title_width <= 0:
            log.info("Title container has no width yet; keeping previous sizes")
            return state
        title_px = None
        artist_px = None
        if state.title:
            ctx = MeasurementContext(state.title, state.font_family, state.title_weight)
            title_px = fit_text_to_line(self.measurer, ctx, state.title_width, TITLE_MIN_FONT_SIZE)
        if state.artist:
            ctx = MeasurementContext(state.artist, state.font_family)
            artist_px = fit_text_to_container(
                self.measurer, ctx, state.title_width, ARTIST_MIN_FONT_SIZE,
            )
            # the artist line never outgrows the title above it
            if artist_px is not None and title_px is not None:
                artist_px = min(artist_px, title_px)
        return replace(state, title_font_px=title_px, artist_font_px=artist_px)

    def size_tracks(self, state: PosterState) -> PosterState:
        sizing = scale_track_list(
            state.shown_tracks,
            state.tracks_width,
            state.tracks_height,
            state.track_scale,
            self.layout_factory,
            container_font_px=state.container_font_px,
        )
        if sizing is None:
            log.info("Track list container not sized yet; keeping previous sizing")
            return state
        return replace(state, track_sizing=sizing)

    def rescale_tracks(self, state: PosterState, scale: Optional[float] = None) -> PosterState:
        track_scale = clamp_track_scale(state.track_scale if scale is None else scale)
        sizing = state.track_sizing.rescale(track_scale) if state.track_sizing else None
        return replace(state, track_scale=track_scale, track_sizing=sizing)

    def recompute(
        self,
        state: PosterState,
        trigger: Union[Trigger, Iterable[Trigger]],
        image: Optional[Image.Image] = None,
    ) -> PosterState:
        """
        Re-run whatever the triggers invalidate. A bare "scale" only re-applies
        the user scale to the existing track sizing.
        """
        triggers = {trigger} if isinstance(trigger, str) else set(trigger)
        log.debug("Recomputing poster layout for %s", sorted(triggers))

        if "image" in triggers:
            if image is None:
                log.warning("Image trigger without an image; palette unchanged")
            else:
                state = self.process_image(state, image)

        if triggers & {"content", "resize"}:
            state = self.fit_title(state)
            state = self.size_tracks(state)
        elif "scale" in triggers:
            state = self.rescale_tracks(state)

        return state
