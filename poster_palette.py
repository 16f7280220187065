from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from PIL import Image

log = logging.getLogger(__name__)

MAX_SAMPLE_SIZE = 200
SAMPLE_RATE = 10
ALPHA_THRESHOLD = 128
KMEANS_ITERATIONS = 10

Palette = List[str]


@dataclass
class Centroid:
    r: int
    g: int
    b: int

    def hex(self) -> str:
        return rgb_to_hex((self.r, self.g, self.b))


ColorSample = Tuple[int, int, int]


# ============================================================
# Hex helpers
# ============================================================
def rgb_to_hex(rgb: Sequence[int]) -> str:
    return "#{:02x}{:02x}{:02x}".format(rgb[0], rgb[1], rgb[2])

def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    s = hex_color.strip()
    if len(s) != 7 or not s.startswith("#"):
        raise ValueError(f"Expected a #rrggbb color, got {hex_color!r}")
    try:
        return int(s[1:3], 16), int(s[3:5], 16), int(s[5:7], 16)
    except ValueError:
        raise ValueError(f"Expected a #rrggbb color, got {hex_color!r}") from None


# ============================================================
# Sampling
# ============================================================
def downsample_size(width: int, height: int, max_size: int = MAX_SAMPLE_SIZE) -> Tuple[int, int]:
    """Scale (width, height) so the longer side is at most max_size. Never upscales."""
    w, h = float(width), float(height)
    if w > h:
        if w > max_size:
            h = h / w * max_size
            w = max_size
    elif h > max_size:
        w = w / h * max_size
        h = max_size
    return max(1, int(w)), max(1, int(h))

def sample_colors(img: Image.Image, sample_rate: int = SAMPLE_RATE) -> List[ColorSample]:
    """
    Downsample the image and read every `sample_rate`-th pixel of the RGBA buffer,
    skipping anything with alpha below ALPHA_THRESHOLD.
    """
    size = downsample_size(img.width, img.height)
    small = img.convert("RGBA")
    if small.size != size:
        small = small.resize(size, Image.LANCZOS)

    data = small.tobytes()
    samples: List[ColorSample] = []
    for i in range(0, len(data), 4 * sample_rate):
        r, g, b, a = data[i], data[i + 1], data[i + 2], data[i + 3]
        if a < ALPHA_THRESHOLD:
            continue
        samples.append((r, g, b))
    return samples


# ============================================================
# k-means
# ============================================================
def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))

def _squared_distance(c: ColorSample, centroid: Centroid) -> int:
    dr = c[0] - centroid.r
    dg = c[1] - centroid.g
    db = c[2] - centroid.b
    return dr * dr + dg * dg + db * db

def nearest_centroid(color: ColorSample, centroids: Sequence[Centroid]) -> int:
    # strict '<' keeps the first centroid on ties
    best_idx = 0
    best = math.inf
    for idx, centroid in enumerate(centroids):
        d = _squared_distance(color, centroid)
        if d < best:
            best = d
            best_idx = idx
    return best_idx

def kmeans_colors(
    colors: Sequence[ColorSample],
    k: int,
    iterations: int = KMEANS_ITERATIONS,
    rng: Optional[random.Random] = None,
) -> Palette:
    """
    Cluster colors into k centroids and return them as hex strings in centroid order.

    Seeds are drawn with replacement, so duplicate starting centroids are possible.
    Empty clusters keep their previous centroid and there is no convergence check.
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    if not colors:
        return []

    rng = rng or random.Random()
    centroids: List[Centroid] = []
    for _ in range(k):
        r, g, b = colors[rng.randrange(len(colors))]
        centroids.append(Centroid(r, g, b))

    for _iteration in range(iterations):
        clusters: List[List[ColorSample]] = [[] for _ in range(k)]
        for color in colors:
            clusters[nearest_centroid(color, centroids)].append(color)

        for centroid, members in zip(centroids, clusters):
            if not members:
                continue
            n = len(members)
            centroid.r = _round_half_up(sum(c[0] for c in members) / n)
            centroid.g = _round_half_up(sum(c[1] for c in members) / n)
            centroid.b = _round_half_up(sum(c[2] for c in members) / n)

    return [c.hex() for c in centroids]

def extract_palette(img: Image.Image, k: int, rng: Optional[random.Random] = None) -> Palette:
    samples = sample_colors(img)
    if not samples:
        log.info("No opaque pixels in %dx%d image; palette is empty", img.width, img.height)
        return []
    log.debug("Clustering %d color samples into %d colors", len(samples), k)
    return kmeans_colors(samples, k, rng=rng)


# ============================================================
# Ordering & contrast
# ============================================================
def luminance(hex_color: str) -> float:
    r, g, b = hex_to_rgb(hex_color)
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255

def sort_by_lightness(palette: Sequence[str]) -> Palette:
    """Lightest first. Stable, so equal-luminance colors keep their order."""
    return sorted(palette, key=luminance, reverse=True)

def contrast_color(hex_color: str) -> str:
    return "#000000" if luminance(hex_color) > 0.5 else "#ffffff"
