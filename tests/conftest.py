from __future__ import annotations

import random
from typing import List, Sequence

import pytest
from PIL import Image

from text_fit import MeasurementContext
from track_list import ListMetrics


class LinearMeasurer:
    """Width = 0.6 * size per character; records every size it was asked about."""

    def __init__(self, em_ratio: float = 0.6) -> None:
        self.em_ratio = em_ratio
        self.calls: List[float] = []

    def measure(self, ctx: MeasurementContext, font_size: float) -> float:
        self.calls.append(font_size)
        return self.em_ratio * font_size * len(ctx.text)


class HeightLayout:
    """Each track takes `size * 1.2` of height; reports two columns above `split_above`."""

    def __init__(self, titles: Sequence[str], width: float, height: float,
                 split_above: float = float("inf")) -> None:
        self.titles = list(titles)
        self.width = width
        self.height = height
        self.split_above = split_above
        self.sizes: List[float] = []

    def layout(self, font_size: float) -> ListMetrics:
        self.sizes.append(font_size)
        columns = 2 if font_size > self.split_above else 1
        return ListMetrics(len(self.titles) * font_size * 1.2, self.height, columns)


class FixedRng:
    """randrange() replays a fixed list of indices."""

    def __init__(self, indices: Sequence[int]) -> None:
        self._indices = list(indices)

    def randrange(self, _stop: int) -> int:
        return self._indices.pop(0)


@pytest.fixture
def measurer() -> LinearMeasurer:
    return LinearMeasurer()

@pytest.fixture
def layouts() -> List[HeightLayout]:
    return []

@pytest.fixture
def layout_factory(layouts):
    def factory(titles, width, height):
        layout = HeightLayout(titles, width, height)
        layouts.append(layout)
        return layout
    return factory

@pytest.fixture
def fixed_rng():
    return FixedRng

@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)

@pytest.fixture
def solid_image() -> Image.Image:
    return Image.new("RGB", (640, 480), (200, 30, 90))

@pytest.fixture
def gradient_image() -> Image.Image:
    img = Image.new("RGB", (300, 300))
    pixels = img.load()
    for y in range(300):
        for x in range(300):
            pixels[x, y] = (int(x / 300 * 255), int(y / 300 * 255), 120)
    return img
