import pytest

from track_list import (
    SHRINK_CAP_PX,
    SHRINK_FLOOR_PX,
    TIER_OVERFLOW,
    TIERS,
    FontClamp,
    ListMetrics,
    base_em,
    clamp_track_scale,
    scale_track_list,
    shrink_to_fit,
    tier_clamp,
    track_tier,
)


class NeverFits:
    def __init__(self):
        self.sizes = []

    def layout(self, font_size):
        self.sizes.append(font_size)
        return ListMetrics(scroll_height=1000, client_height=10)


@pytest.mark.parametrize("count, em", [
    (0, 1.0), (1, 1.0), (10, 1.0), (11, 0.95), (15, 0.95), (16, 0.9), (35, 0.75), (200, 0.3),
])
def test_base_em(count, em):
    assert base_em(count) == pytest.approx(em)


@pytest.mark.parametrize("count, tier", [
    (1, "1-5"), (5, "1-5"), (6, "6-10"), (10, "6-10"), (11, "11-15"), (15, "11-15"),
    (16, "16-20"), (20, "16-20"), (21, "21+"), (23, "21+"), (500, "21+"),
])
def test_track_tier(count, tier):
    assert track_tier(count) == tier


def test_denser_tiers_get_smaller_relative_sizes():
    clamps = [clamp for _upper, _label, clamp in TIERS] + [TIER_OVERFLOW[1]]
    for bigger, smaller in zip(clamps, clamps[1:]):
        assert smaller.preferred_cqw < bigger.preferred_cqw
        assert smaller.max_cqw < bigger.max_cqw


def test_clamp_css_round_trip():
    clamp = FontClamp(1.12, 7.0, 15.75)
    assert clamp.css() == "clamp(1.12rem, 7cqw, 15.75cqw)"
    assert FontClamp.parse(clamp.css()) == clamp


def test_clamp_parse_rejects_other_units():
    with pytest.raises(ValueError):
        FontClamp.parse("clamp(12px, 2vw, 4vw)")


def test_clamp_resolve():
    clamp = FontClamp(1.12, 7.0, 15.75)
    assert clamp.resolve(200) == pytest.approx(17.92)  # floor wins
    assert clamp.resolve(1000) == pytest.approx(70.0)


def test_scale_leaves_floor_alone():
    base = tier_clamp(23)
    scaled = base.scaled(1.5)
    assert scaled.min_rem == base.min_rem
    assert scaled.preferred_cqw == pytest.approx(base.preferred_cqw * 1.5)
    assert scaled.max_cqw == pytest.approx(base.max_cqw * 1.5)


@pytest.mark.parametrize("value, expected", [(0, 0.1), (0.5, 0.5), (3.0, 3.0), (7, 3.0)])
def test_clamp_track_scale(value, expected):
    assert clamp_track_scale(value) == expected


def test_shrink_stops_at_first_fit(layout_factory, layouts):
    layout = layout_factory(["a"] * 10, 300, 144)  # 10 * size * 1.2 <= 144 -> size <= 12
    result = shrink_to_fit(layout, 18.0)
    assert result.font_px == 12.0
    assert result.fits
    assert result.iterations == 12
    assert layout.sizes[0] == 18.0
    assert all(b == a - 0.5 for a, b in zip(layout.sizes, layout.sizes[1:]))


class TwoColumnsAbove:
    def __init__(self, split_above):
        self.split_above = split_above

    def layout(self, font_size):
        columns = 2 if font_size > self.split_above else 1
        return ListMetrics(scroll_height=10, client_height=1000, column_count=columns)


def test_shrink_treats_extra_columns_as_overflow():
    assert shrink_to_fit(TwoColumnsAbove(10.0), 18.0).font_px == 10.0


def test_shrink_accepts_floor_when_nothing_fits():
    layout = NeverFits()
    result = shrink_to_fit(layout, 18.0)
    assert result.font_px == SHRINK_FLOOR_PX
    assert not result.fits
    assert min(layout.sizes) >= SHRINK_FLOOR_PX
    assert max(layout.sizes) == 18.0


def test_shrink_start_below_floor():
    result = shrink_to_fit(NeverFits(), 4.8)
    assert result.font_px == SHRINK_FLOOR_PX


def test_scale_track_list_23_tracks(layout_factory, layouts):
    titles = [f"Song {i}" for i in range(1, 24)]
    sizing = scale_track_list(titles, 300, 2000, 1.5, layout_factory)
    assert sizing.tier == "21+"
    assert sizing.base_em == pytest.approx(0.85)
    assert sizing.start_px == pytest.approx(13.6)
    assert sizing.font_px == pytest.approx(13.6)
    assert sizing.fits
    assert sizing.clamp.min_rem == TIER_OVERFLOW[1].min_rem
    assert sizing.clamp.preferred_cqw == pytest.approx(TIER_OVERFLOW[1].preferred_cqw * 1.5)
    assert sizing.clamp.max_cqw == pytest.approx(TIER_OVERFLOW[1].max_cqw * 1.5)
    assert len(layouts) == 1


def test_start_size_is_capped(layout_factory, layouts):
    sizing = scale_track_list(["a", "b", "c"], 300, 2000, 1.0, layout_factory, container_font_px=32)
    assert sizing.start_px == SHRINK_CAP_PX
    assert max(layouts[0].sizes) <= SHRINK_CAP_PX


def test_shrinks_long_lists(layout_factory):
    titles = ["x"] * 40
    sizing = scale_track_list(titles, 300, 300, 1.0, layout_factory)
    assert SHRINK_FLOOR_PX <= sizing.font_px <= sizing.start_px
    assert 40 * sizing.font_px * 1.2 <= 300


@pytest.mark.parametrize("titles, width, height", [
    ([], 300, 300),
    (["a"], 0, 300),
    (["a"], 300, 0),
])
def test_scale_track_list_no_op(layout_factory, layouts, titles, width, height):
    assert scale_track_list(titles, width, height, 1.0, layout_factory) is None
    assert layouts == []


def test_rescale_only_touches_the_descriptor(layout_factory):
    sizing = scale_track_list(["a"] * 12, 300, 2000, 1.0, layout_factory)
    rescaled = sizing.rescale(2.0)
    assert rescaled.font_px == sizing.font_px
    assert rescaled.base_clamp == sizing.base_clamp
    assert rescaled.clamp == sizing.base_clamp.scaled(2.0)


def test_static_and_responsive_output(layout_factory):
    sizing = scale_track_list(["a"] * 23, 300, 2000, 1.0, layout_factory)
    assert sizing.css_font_size(responsive=False) == "13.6px"
    assert sizing.css_font_size() == sizing.clamp.css()
    assert sizing.resolved_px(300, responsive=False) == sizing.font_px
    assert sizing.resolved_px(300) == pytest.approx(sizing.clamp.resolve(300))


def test_static_size_follows_user_scale(layout_factory):
    sizing = scale_track_list(["a"] * 23, 300, 2000, 1.0, layout_factory)
    assert sizing.rescale(2.0).resolved_px(300, responsive=False) == pytest.approx(27.2)
    assert sizing.rescale(2.0).css_font_size(responsive=False) == "27.2px"
    # 13.6 * 0.1 falls under the 0.297rem floor of the 21+ tier
    floor = TIER_OVERFLOW[1].min_rem * 16
    assert sizing.rescale(0.1).resolved_px(300, responsive=False) == pytest.approx(floor)


def test_tier_table_is_read_from_css():
    assert tier_clamp(3).css() == "clamp(1.12rem, 7cqw, 15.75cqw)"
    assert tier_clamp(30).css() == "clamp(0.297rem, 1.39125cqw, 3.1303125cqw)"
