#!/usr/bin/env python3
from __future__ import annotations

import argparse
import logging
import random
import re
import shutil
import sys
import zipfile
from dataclasses import dataclass, field, replace
from functools import partial
from io import BytesIO
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import requests
from PIL import Image
from reportlab.lib.colors import HexColor
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

from font_metrics import (
    FontKey,
    ReportLabTextMeasurer,
    ReportLabTrackListLayout,
    clean_text,
    line_height_factor,
)
from poster_layout import (
    PALETTE_SIZE,
    POSTER_SIZES,
    PosterLayoutEngine,
    PosterState,
    fit_poster_size,
    poster_colors,
)
from poster_palette import contrast_color

log = logging.getLogger("albumposter")


# ============================================================
# Inter fonts: allow "drop Inter.zip next to the script"
# ============================================================
HERE = Path(__file__).resolve().parent
FONT_DIR = HERE / "fonts"
INTER_ZIP = HERE / "Inter.zip"

INTER_STATIC_MAP = {
    "Inter-Light.ttf": "Inter_18pt-Light.ttf",
    "Inter-Regular.ttf": "Inter_18pt-Regular.ttf",
    "Inter-SemiBold.ttf": "Inter_18pt-SemiBold.ttf",
}


@dataclass
class PosterFonts:
    family: str
    regular: str
    bold: str
    light: str
    ttf_path: Optional[Path] = None
    measure_map: Dict[FontKey, str] = field(default_factory=dict)

    @property
    def leading_factor(self) -> float:
        return line_height_factor(self.ttf_path)


BASE_FONTS = PosterFonts(family="Helvetica", regular="Helvetica", bold="Helvetica-Bold", light="Helvetica")


def ensure_inter_fonts(font_dir: Path = FONT_DIR, inter_zip: Path = INTER_ZIP) -> bool:
    """
    Make sure the static Inter faces exist in font_dir, extracting them from Inter.zip
    if needed. Returns False when neither the fonts nor the zip are available.
    """
    missing = [name for name in INTER_STATIC_MAP if not (font_dir / name).exists()]
    if not missing:
        return True
    if not inter_zip.exists():
        return False

    font_dir.mkdir(exist_ok=True)
    with zipfile.ZipFile(inter_zip, "r") as z:
        members = set(z.namelist())

        for out_name in missing:
            zip_name = INTER_STATIC_MAP[out_name]
            candidate = f"static/{zip_name}"
            if candidate not in members:
                hits = [m for m in members if m.endswith(f"/static/{zip_name}")]
                if not hits:
                    continue
                candidate = hits[0]

            with z.open(candidate) as src, open(font_dir / out_name, "wb") as dst:
                shutil.copyfileobj(src, dst)

    missing_after = [name for name in INTER_STATIC_MAP if not (font_dir / name).exists()]
    if missing_after:
        raise RuntimeError(
            "Failed to extract required fonts from Inter.zip.\n"
            "I expected to find these under Inter.zip's static/ folder:\n"
            + "\n".join(f"  - {INTER_STATIC_MAP[n]}" for n in missing_after)
        )
    return True

def register_fonts(font_dir: Path = FONT_DIR, inter_zip: Path = INTER_ZIP) -> PosterFonts:
    if not ensure_inter_fonts(font_dir, inter_zip):
        log.info("Inter fonts not found in %s; using Helvetica", font_dir)
        return BASE_FONTS

    pdfmetrics.registerFont(TTFont("Inter-Light", str(font_dir / "Inter-Light.ttf")))
    pdfmetrics.registerFont(TTFont("Inter-Regular", str(font_dir / "Inter-Regular.ttf")))
    pdfmetrics.registerFont(TTFont("Inter-SemiBold", str(font_dir / "Inter-SemiBold.ttf")))
    return PosterFonts(
        family="Inter",
        regular="Inter-Regular",
        bold="Inter-SemiBold",
        light="Inter-Light",
        ttf_path=font_dir / "Inter-Regular.ttf",
        measure_map={
            ("Inter", "normal", "normal"): "Inter-Regular",
            ("Inter", "bold", "normal"): "Inter-SemiBold",
        },
    )


# ============================================================
# Input parsing: album.link / Apple Music / raw numeric id
# ============================================================
ALBUM_LINK_RE = re.compile(r"album\.link/i/(\d+)")
APPLE_MUSIC_ID_PATH_RE = re.compile(r"/id(\d+)")
APPLE_MUSIC_I_PARAM_RE = re.compile(r"[?&]i=(\d+)")
APPLE_MUSIC_TRAILING_ID_RE = re.compile(r"/(\d+)(?:\?.*)?$")
DIGITS_RE = re.compile(r"^\d+$")

APPLE_MUSIC_STOREFRONT_RE = re.compile(r"music\.apple\.com/([a-z]{2})/", re.IGNORECASE)

def extract_storefront_country(s: str) -> str | None:
    m = APPLE_MUSIC_STOREFRONT_RE.search(s)
    return m.group(1).lower() if m else None

def extract_itunes_collection_id(s: str) -> str:
    """
    Accepts an album.link URL, a music.apple.com album URL (…/id<digits>,
    …?i=<digits> or a trailing /<digits> segment) or a bare numeric id.
    """
    s = s.strip()

    for pattern in (ALBUM_LINK_RE, APPLE_MUSIC_ID_PATH_RE, APPLE_MUSIC_I_PARAM_RE):
        m = pattern.search(s)
        if m:
            return m.group(1)

    if "music.apple.com" in s:
        m = APPLE_MUSIC_TRAILING_ID_RE.search(s)
        if m:
            return m.group(1)

    if DIGITS_RE.match(s):
        return s

    raise ValueError(
        "Could not extract album id. Expected:\n"
        "  - https://album.link/i/<digits>\n"
        "  - https://music.apple.com/.../id<digits>\n"
        "  - https://music.apple.com/...?...&i=<digits>\n"
        "  - https://music.apple.com/.../<digits>\n"
        "  - or just <digits>\n"
    )


# ============================================================
# Album sources
# ============================================================
@dataclass
class Album:
    title: str
    artist: str
    year: str
    genre: str
    artwork: Image.Image
    tracks: List[str]

def fetch_itunes_album(collection_id: str, country: str | None = None) -> Album:
    lookup = f"https://itunes.apple.com/lookup?id={collection_id}&entity=song"
    if country:
        lookup += f"&country={country}"
    r = requests.get(lookup, timeout=25)
    r.raise_for_status()
    results = r.json().get("results", [])
    if not results:
        raise ValueError("No results from iTunes lookup API.")

    album_info = results[0]
    release_date = album_info.get("releaseDate", "")

    art_url = album_info.get("artworkUrl100") or album_info.get("artworkUrl60")
    if not art_url:
        raise ValueError("No artwork URL found.")
    hi_res = re.sub(r"/\d+x\d+bb\.", "/1000x1000bb.", art_url)

    art_resp = requests.get(hi_res, timeout=25)
    art_resp.raise_for_status()
    artwork = Image.open(BytesIO(art_resp.content))

    tracks = [
        clean_text(item["trackName"])
        for item in results[1:]
        if item.get("wrapperType") == "track" and item.get("trackName")
    ]

    return Album(
        title=clean_text(album_info.get("collectionName", "Unknown Album")),
        artist=clean_text(album_info.get("artistName", "Unknown Artist")),
        year=release_date[:4] if release_date else "—",
        genre=clean_text(album_info.get("primaryGenreName", "Unknown")),
        artwork=artwork,
        tracks=tracks,
    )

def load_local_album(
    image_path: Path,
    tracks_path: Optional[Path] = None,
    title: str = "",
    artist: str = "",
    year: str = "—",
) -> Album:
    if not image_path.exists():
        raise FileNotFoundError(f"Artwork not found: {image_path}")
    artwork = Image.open(image_path)
    artwork.load()

    tracks: List[str] = []
    if tracks_path is not None:
        lines = tracks_path.read_text(encoding="utf-8").splitlines()
        tracks = [clean_text(line) for line in lines if line.strip()]

    return Album(
        title=clean_text(title) or image_path.stem,
        artist=clean_text(artist),
        year=year,
        genre="",
        artwork=artwork,
        tracks=tracks,
    )


# ============================================================
# Geometry
# ============================================================
def y_from_top(H: float, y_top: float) -> float:
    return H - y_top

def square_center_crop(img: Image.Image) -> Image.Image:
    if img.width == img.height:
        return img
    side = min(img.width, img.height)
    left = (img.width - side) // 2
    top = (img.height - side) // 2
    return img.crop((left, top, left + side, top + side))

@dataclass
class PosterGeometry:
    width: float
    height: float
    margin: float
    art_x: float
    art_y_top: float
    art_size: float
    text_x: float
    text_y_top: float
    text_w: float

def page_size(size: str, orientation: str) -> Tuple[float, float]:
    side = max(POSTER_SIZES.get(size, POSTER_SIZES["tabloid"])) * 72.0
    dims = fit_poster_size(size, orientation, side, side)
    if dims is None:
        raise ValueError(f"Poster size {size!r} has no area")
    return dims

def poster_geometry(W: float, H: float) -> PosterGeometry:
    margin = round(min(W, H) * 0.06, 2)
    if H >= W:
        art_size = min(W - 2 * margin, H * 0.45)
        art_x = (W - art_size) / 2.0
        return PosterGeometry(
            W, H, margin,
            art_x=art_x, art_y_top=margin, art_size=art_size,
            text_x=margin, text_y_top=2 * margin + art_size, text_w=W - 2 * margin,
        )
    art_size = H - 2 * margin
    text_x = 2 * margin + art_size
    return PosterGeometry(
        W, H, margin,
        art_x=margin, art_y_top=margin, art_size=art_size,
        text_x=text_x, text_y_top=margin, text_w=W - text_x - margin,
    )


# ============================================================
# PDF drawing
# ============================================================
SWATCH_GAP = 6.0
META_FONT_SIZE = 10.0
LINE_GAP = 0.25  # fraction of the font size between stacked header lines
HEADER_SHARE = 0.35  # of the text block below/beside the art

def build_state(
    album: Album,
    geo: PosterGeometry,
    fonts: PosterFonts,
    engine: PosterLayoutEngine,
    size: str,
    orientation: str,
    track_scale: float,
) -> Tuple[PosterState, float]:
    """Run palette, title and track list sizing. Returns the state and the swatch row top."""
    state = PosterState(
        title=album.title,
        artist=album.artist,
        tracks=list(album.tracks),
        font_family=fonts.family,
        track_scale=track_scale,
        size=size,
        orientation=orientation,
        title_width=geo.text_w,
    )
    state = engine.recompute(state, "image", image=album.artwork)
    state = engine.fit_title(state)

    # the title is fitted to the line width only; keep the header inside its share of the page
    header_h = (geo.height - geo.margin - geo.text_y_top) * HEADER_SHARE
    if state.title_font_px:
        state = replace(state, title_font_px=min(state.title_font_px, int(header_h * 0.5)))
    if state.artist_font_px:
        state = replace(state, artist_font_px=min(state.artist_font_px, int(header_h * 0.25)))

    y = geo.text_y_top
    y += (state.title_font_px or 0) * (1 + LINE_GAP)
    y += (state.artist_font_px or 0) * (1 + LINE_GAP)
    y += META_FONT_SIZE * (1 + LINE_GAP)
    swatch_top = y
    swatch_size = (geo.text_w - 4 * SWATCH_GAP) / 5.0
    tracks_top = swatch_top + min(swatch_size, geo.height * 0.05) + geo.margin * 0.5
    tracks_height = max(0.0, geo.height - geo.margin - tracks_top)

    state = replace(state, tracks_width=geo.text_w, tracks_height=tracks_height)
    state = engine.size_tracks(state)
    return state, swatch_top

def draw_swatches(c: canvas.Canvas, state: PosterState, geo: PosterGeometry, y_top: float,
                  fonts: PosterFonts) -> float:
    size = (geo.text_w - 4 * SWATCH_GAP) / 5.0
    height = min(size, geo.height * 0.05)
    y = y_from_top(geo.height, y_top + height)
    for i, color in enumerate(state.swatches):
        x = geo.text_x + i * (size + SWATCH_GAP)
        c.setFillColor(HexColor(color))
        c.rect(x, y, size, height, stroke=0, fill=1)
        c.setFillColor(HexColor(contrast_color(color)))
        c.setFont(fonts.light, 7)
        c.drawCentredString(x + size / 2.0, y + height / 2.0 - 2.5, color)
    return y_top + height

def draw_track_list(c: canvas.Canvas, state: PosterState, geo: PosterGeometry, y_top: float,
                    fonts: PosterFonts, text_color: str, responsive: bool) -> None:
    sizing = state.track_sizing
    if sizing is None:
        return
    fs = sizing.resolved_px(state.tracks_width, responsive=responsive)
    layout = ReportLabTrackListLayout(
        state.shown_tracks, state.tracks_width, state.tracks_height,
        font_name=fonts.regular, prefix_font_name=fonts.light,
        leading_factor=fonts.leading_factor,
    )
    leading = fs * layout.leading_factor
    prefix_w = layout.prefix_width(fs)
    bottom = geo.height - geo.margin

    y = y_top + fs
    c.setFillColor(HexColor(text_color))
    for i, lines in enumerate(layout.wrapped(fs), start=1):
        for j, line in enumerate(lines):
            if y > bottom:
                log.warning("Track list clipped after %d of %d tracks", i - 1, len(state.shown_tracks))
                return
            if j == 0:
                c.setFont(fonts.light, fs)
                c.drawString(geo.text_x, y_from_top(geo.height, y), f"{i}. ")
            c.setFont(fonts.regular, fs)
            c.drawString(geo.text_x + prefix_w, y_from_top(geo.height, y), line)
            y += leading
        y += 1.0

def draw_poster_pdf(
    album: Album,
    out_pdf: Path,
    fonts: PosterFonts = BASE_FONTS,
    size: str = "tabloid",
    orientation: str = "vertical",
    track_scale: float = 1.0,
    responsive_tracks: bool = False,
    colors: int = PALETTE_SIZE,
    seed: Optional[int] = None,
) -> PosterState:
    W, H = page_size(size, orientation)
    geo = poster_geometry(W, H)

    engine = PosterLayoutEngine(
        measurer=ReportLabTextMeasurer(fonts.measure_map, default_font=fonts.regular),
        layout_factory=partial(
            ReportLabTrackListLayout,
            font_name=fonts.regular,
            prefix_font_name=fonts.light,
            leading_factor=fonts.leading_factor,
        ),
        palette_size=colors,
        rng=random.Random(seed),
    )
    state, swatch_top = build_state(album, geo, fonts, engine, size, orientation, track_scale)
    background, accent, text_color = poster_colors(state.palette)

    c = canvas.Canvas(str(out_pdf), pagesize=(W, H))
    c.setTitle(f"{album.artist} - {album.title}")

    c.setFillColor(HexColor(background))
    c.rect(0, 0, W, H, stroke=0, fill=1)

    art = square_center_crop(album.artwork.convert("RGB"))
    art = art.resize((1000, 1000), Image.LANCZOS)
    art_y = y_from_top(H, geo.art_y_top + geo.art_size)
    c.drawImage(ImageReader(art), geo.art_x, art_y, width=geo.art_size, height=geo.art_size, mask=None)

    c.setStrokeColor(HexColor(accent))
    c.setLineWidth(2.0)
    c.line(geo.text_x, art_y - geo.margin / 2.0, geo.text_x + geo.text_w, art_y - geo.margin / 2.0)

    y = geo.text_y_top
    c.setFillColor(HexColor(text_color))
    if state.title_font_px:
        y += state.title_font_px
        c.setFont(fonts.bold, state.title_font_px)
        c.drawString(geo.text_x, y_from_top(H, y), album.title)
        y += state.title_font_px * LINE_GAP
    if state.artist_font_px:
        y += state.artist_font_px
        c.setFont(fonts.regular, state.artist_font_px)
        c.drawString(geo.text_x, y_from_top(H, y), album.artist)
        y += state.artist_font_px * LINE_GAP
    meta = " · ".join(p for p in (album.genre, album.year) if p and p != "—")
    if meta:
        c.setFont(fonts.light, META_FONT_SIZE)
        c.drawString(geo.text_x, y_from_top(H, y + META_FONT_SIZE), meta)

    tracks_top = draw_swatches(c, state, geo, swatch_top, fonts) + geo.margin * 0.5
    draw_track_list(c, state, geo, tracks_top, fonts, text_color, responsive_tracks)

    c.showPage()
    c.save()
    return state


# ============================================================
# CLI
# ============================================================
def slug(s: str) -> str:
    s = s.lower().strip()
    s = re.sub(r"[^a-z0-9]+", "-", s)
    return re.sub(r"-+", "-", s).strip("-") or "album"

def positive_int(value: str) -> int:
    n = int(value)
    if n < 1:
        raise argparse.ArgumentTypeError(f"expected an integer >= 1, got {value}")
    return n

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Render an album poster PDF with a palette from its artwork.")
    ap.add_argument("album", nargs="?", help="album.link / music.apple.com URL or iTunes collection id")
    ap.add_argument("--image", type=Path, help="Local artwork instead of an iTunes lookup")
    ap.add_argument("--tracks", type=Path, help="Text file with one track title per line")
    ap.add_argument("--title", default="", help="Album title (local input)")
    ap.add_argument("--artist", default="", help="Artist name (local input)")
    ap.add_argument("--size", choices=sorted(POSTER_SIZES), default="tabloid")
    ap.add_argument("--orientation", choices=["vertical", "horizontal"], default="vertical")
    ap.add_argument("--track-scale", type=float, default=1.0, help="Track list scale, 0.1 - 3.0")
    ap.add_argument("--responsive-tracks", action="store_true",
                    help="Size tracks from the scaled responsive descriptor instead of the shrink-to-fit size")
    ap.add_argument("--colors", type=positive_int, default=PALETTE_SIZE, help="Palette colors to extract")
    ap.add_argument("--seed", type=int, help="Seed for palette clustering")
    ap.add_argument("-o", "--output", type=Path, help="Output PDF filename")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap

def main(argv: Optional[List[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s :: %(levelname)s :: %(message)s",
    )

    if not args.album and not args.image:
        print("Give an album link/id or --image.\n", file=sys.stderr)
        ap.print_usage(sys.stderr)
        return 2

    fonts = register_fonts()

    if args.image:
        album = load_local_album(args.image, args.tracks, title=args.title, artist=args.artist)
    else:
        input_arg = args.album.strip()
        collection_id = extract_itunes_collection_id(input_arg)
        album = fetch_itunes_album(collection_id, country=extract_storefront_country(input_arg))

    if args.output:
        out_pdf = args.output.resolve()
    else:
        out_dir = Path.cwd() / "albumposter_out"
        out_dir.mkdir(parents=True, exist_ok=True)
        out_pdf = out_dir / f"{slug(album.artist)}-{slug(album.title)}-{album.year}.{args.size}.pdf"

    draw_poster_pdf(
        album,
        out_pdf,
        fonts=fonts,
        size=args.size,
        orientation=args.orientation,
        track_scale=args.track_scale,
        responsive_tracks=args.responsive_tracks,
        colors=args.colors,
        seed=args.seed,
    )

    print("Wrote:", out_pdf)
    return 0

if __name__ == "__main__":
    raise SystemExit(main())
