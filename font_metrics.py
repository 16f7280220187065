"""
Measurement backends for the fitting searches.

Each call lays the text out again at the requested size; nothing is cached between
candidate sizes apart from loaded font files.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from fontTools.ttLib import TTFont as FTFont
from reportlab.pdfbase import pdfmetrics

from text_fit import MeasurementContext
from track_list import ListMetrics

log = logging.getLogger(__name__)

DEFAULT_LEADING_FACTOR = 1.15
ITEM_GAP = 1.0
MIN_TITLE_WIDTH = 10.0

FontKey = Tuple[str, str, str]  # (family, weight, style)

BASE_FONTS: Dict[FontKey, str] = {
    ("Helvetica", "normal", "normal"): "Helvetica",
    ("Helvetica", "bold", "normal"): "Helvetica-Bold",
    ("Helvetica", "normal", "italic"): "Helvetica-Oblique",
    ("Helvetica", "bold", "italic"): "Helvetica-BoldOblique",
    ("Times", "normal", "normal"): "Times-Roman",
    ("Times", "bold", "normal"): "Times-Bold",
    ("Times", "normal", "italic"): "Times-Italic",
    ("Times", "bold", "italic"): "Times-BoldItalic",
    ("Courier", "normal", "normal"): "Courier",
    ("Courier", "bold", "normal"): "Courier-Bold",
}


# ============================================================
# Text helpers
# ============================================================
def clean_text(s: str) -> str:
    """Collapse whitespace (incl newlines) to single spaces."""
    return " ".join((s or "").split())

def wrap_to_width_words(words: List[str], font: str, size: float, max_width: float) -> List[str]:
    if not words:
        return [""]
    lines: List[str] = []
    cur = words[0]
    for w in words[1:]:
        trial = cur + " " + w
        if pdfmetrics.stringWidth(trial, font, size) <= max_width:
            cur = trial
        else:
            lines.append(cur)
            cur = w
    lines.append(cur)
    return lines

def wrap_text(text: str, font: str, size: float, max_width: float) -> List[str]:
    words = clean_text(text).split()
    return wrap_to_width_words(words, font, size, max_width)

def normalize_weight(weight: str) -> str:
    w = (weight or "normal").strip().lower()
    if w in ("bold", "bolder") or (w.isdigit() and int(w) >= 600):
        return "bold"
    return "normal"

def normalize_style(style: str) -> str:
    s = (style or "normal").strip().lower()
    return "italic" if s in ("italic", "oblique") else "normal"


# ============================================================
# Width oracles
# ============================================================
class ReportLabTextMeasurer:
    """Widths from registered PDF fonts via pdfmetrics.stringWidth."""

    def __init__(self, fonts: Optional[Dict[FontKey, str]] = None, default_font: str = "Helvetica") -> None:
        self._fonts: Dict[FontKey, str] = dict(BASE_FONTS)
        if fonts:
            self._fonts.update(fonts)
        self._default_font = default_font

    def font_name(self, ctx: MeasurementContext) -> str:
        key = (ctx.font_family, normalize_weight(ctx.font_weight), normalize_style(ctx.font_style))
        if key in self._fonts:
            return self._fonts[key]
        plain = (ctx.font_family, "normal", "normal")
        if plain in self._fonts:
            return self._fonts[plain]
        return self._default_font

    def measure(self, ctx: MeasurementContext, font_size: float) -> float:
        return pdfmetrics.stringWidth(ctx.text, self.font_name(ctx), font_size)


# ============================================================
# Vertical metrics
# ============================================================
def line_height_factor(ttf_path: Optional[Union[str, Path]] = None) -> float:
    """Natural line height / em size from the font's hhea table."""
    if not ttf_path:
        return DEFAULT_LEADING_FACTOR
    font = FTFont(str(ttf_path), lazy=True)
    try:
        hhea = font["hhea"]
        upm = font["head"].unitsPerEm
        return (hhea.ascent - hhea.descent + hhea.lineGap) / float(upm)
    finally:
        font.close()


# ============================================================
# Track list layout oracle
# ============================================================
class ReportLabTrackListLayout:
    """
    Single-column numbered track list inside a fixed frame.

    Titles wrap to the column width after a fixed "N. " indent sized for the widest
    number; every item is followed by ITEM_GAP points.
    """

    def __init__(
        self,
        titles: Sequence[str],
        width: float,
        height: float,
        font_name: str = "Helvetica",
        prefix_font_name: Optional[str] = None,
        leading_factor: float = DEFAULT_LEADING_FACTOR,
    ) -> None:
        self.titles = [clean_text(t) for t in titles]
        self.width = width
        self.height = height
        self.font_name = font_name
        self.prefix_font_name = prefix_font_name or font_name
        self.leading_factor = leading_factor

    def prefix_width(self, font_size: float) -> float:
        return pdfmetrics.stringWidth(f"{len(self.titles)}. ", self.prefix_font_name, font_size)

    def wrapped(self, font_size: float) -> List[List[str]]:
        title_w = max(self.width - self.prefix_width(font_size), MIN_TITLE_WIDTH)
        return [wrap_text(t, self.font_name, font_size, title_w) for t in self.titles]

    def layout(self, font_size: float) -> ListMetrics:
        leading = font_size * self.leading_factor
        used = sum(len(lines) * leading + ITEM_GAP for lines in self.wrapped(font_size))
        return ListMetrics(scroll_height=used, client_height=self.height, column_count=1)
