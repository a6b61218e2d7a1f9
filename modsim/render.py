"""
Raster panels for the keying waveforms.

Each panel is a `Surface`: a logical width/height in display pixels plus a
device pixel ratio. The backing Pillow image is display size x dpr, and all
drawing below is written in logical coordinates and scaled on the way in.

`render` draws one series on one surface; surfaces share nothing, so the
caller may render them in any order.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple
import numpy as np
from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from keyutils import SimResult

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

BACKGROUND: RGB = (16, 18, 27)

GRID_ROWS = 5
GRID_COLS = 12
GRID_RGBA = (255, 255, 255, 20)        # ~0.08 opacity
GRID_WIDTH = 0.5
CENTER_RGBA = (255, 255, 255, 64)      # ~0.25 opacity
CENTER_WIDTH = 1.0

MARGIN_FRAC = 0.05
TRACE_WIDTH = 2.8
GLOW_BLUR = 3.0

LEGEND_X = 8
LEGEND_Y = 8
LEGEND_PAD = 12
LEGEND_HEIGHT = 28
LEGEND_FILL = (0, 0, 0, 204)
LEGEND_FONT_SIZE = 13


class PanelStyle(NamedTuple):
    series: str
    color: str
    label: str


DIGITAL_STYLE = PanelStyle("digital", "#76ff03", "Digital Signal")
MODULATED_STYLE = PanelStyle("modulated", "#4fc3f7", "Modulated Signal")
CARRIER_STYLE = PanelStyle("carrier", "#ff9800", "Carrier Signal")
UNMODULATED_STYLE = PanelStyle("unmodulated", "#bb86fc", "Unmodulated Carrier")

# The comparison page shows some series on more than one panel.
PANELS: Dict[str, PanelStyle] = {
    "digital1": DIGITAL_STYLE,
    "modulated1": MODULATED_STYLE,
    "digital2": DIGITAL_STYLE,
    "carrier1": CARRIER_STYLE,
    "carrier2": CARRIER_STYLE,
    "modulated2": MODULATED_STYLE,
    "modulated3": MODULATED_STYLE,
    "unmodulated": UNMODULATED_STYLE,
}


@dataclass
class Surface:
    width: int                  # display width (logical px)
    height: int                 # display height (logical px)
    dpr: float = 1.0            # device pixel ratio
    background: RGB = BACKGROUND
    image: Optional[Image.Image] = field(default=None, repr=False)

    @property
    def available(self) -> bool:
        return self.width > 0 and self.height > 0 and self.dpr > 0

    @property
    def raster_size(self) -> Tuple[int, int]:
        return (max(1, int(round(self.width * self.dpr))),
                max(1, int(round(self.height * self.dpr))))

    def resize(self) -> bool:
        """Match the backing raster to width/height x dpr. Returns True if reallocated."""
        size = self.raster_size
        if self.image is not None and self.image.size == size:
            return False
        self.image = Image.new("RGB", size, self.background)
        return True

    def clear(self) -> None:
        self.image.paste(self.background, (0, 0, *self.image.size))

    def px(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.dpr, y * self.dpr

    def stroke(self, w: float) -> int:
        return max(1, int(round(w * self.dpr)))

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        if self.image is not None:
            self.image.save(buf, format="PNG")
        return buf.getvalue()


def parse_color(color: str) -> RGB:
    r, g, b = ImageColor.getrgb(color)[:3]
    return r, g, b


def trace_points(series: Sequence[float], width: float, height: float) -> np.ndarray:
    """
    Map samples to logical (x, y) points.

    x spans the full width; y is inverted so larger values sit higher, with a
    5% margin top and bottom. A flat series is drawn along the center line.
    """
    v = np.asarray(series, dtype=float).ravel()
    n = len(v)
    if n == 0:
        return np.zeros((0, 2), dtype=float)

    if n > 1:
        x = np.arange(n, dtype=float) / (n - 1) * width
    else:
        x = np.zeros(1, dtype=float)

    vmin = float(np.min(v))
    vmax = float(np.max(v))
    rng = vmax - vmin
    margin = height * MARGIN_FRAC
    if rng > 0:
        y = margin + (1.0 - (v - vmin) / rng) * (height - 2 * margin)
    else:
        y = np.full(n, height / 2.0)

    return np.column_stack([x, y])


def _load_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.load_default(size=size)
    except TypeError:
        # Pillow without FreeType ignores sizing
        return ImageFont.load_default()


def _draw_grid(surface: Surface) -> None:
    draw = ImageDraw.Draw(surface.image, "RGBA")
    w, h = surface.width, surface.height

    gw = surface.stroke(GRID_WIDTH)
    for i in range(GRID_ROWS + 1):
        y = i * h / GRID_ROWS
        draw.line([surface.px(0, y), surface.px(w, y)], fill=GRID_RGBA, width=gw)
    for i in range(GRID_COLS + 1):
        x = i * w / GRID_COLS
        draw.line([surface.px(x, 0), surface.px(x, h)], fill=GRID_RGBA, width=gw)

    cy = h / 2.0
    draw.line([surface.px(0, cy), surface.px(w, cy)], fill=CENTER_RGBA, width=surface.stroke(CENTER_WIDTH))


def _stroke_path(draw: ImageDraw.ImageDraw, pts: List[Tuple[float, float]], fill, width: int) -> None:
    if len(pts) > 1:
        draw.line(pts, fill=fill, width=width, joint="curve")
    # round caps
    r = width / 2.0
    for x, y in (pts[0], pts[-1]):
        draw.ellipse([x - r, y - r, x + r, y + r], fill=fill)


def _draw_trace(surface: Surface, points: np.ndarray, rgb: RGB) -> None:
    pts = [surface.px(float(x), float(y)) for x, y in points]
    width = surface.stroke(TRACE_WIDTH)

    glow = Image.new("RGBA", surface.image.size, (0, 0, 0, 0))
    _stroke_path(ImageDraw.Draw(glow), pts, (*rgb, 255), width)
    glow = glow.filter(ImageFilter.GaussianBlur(GLOW_BLUR * surface.dpr / 2.0))
    surface.image.paste(glow, (0, 0), glow)

    _stroke_path(ImageDraw.Draw(surface.image), pts, rgb, width)


def _draw_legend(surface: Surface, label: str, rgb: RGB) -> None:
    draw = ImageDraw.Draw(surface.image, "RGBA")
    font = _load_font(int(round(LEGEND_FONT_SIZE * surface.dpr)))

    text_w = draw.textlength(label, font=font) / surface.dpr
    box_w = text_w + LEGEND_PAD * 2
    x0, y0 = surface.px(LEGEND_X, LEGEND_Y)
    x1, y1 = surface.px(LEGEND_X + box_w, LEGEND_Y + LEGEND_HEIGHT)
    draw.rectangle([x0, y0, x1, y1], fill=LEGEND_FILL, outline=rgb, width=surface.stroke(1))

    # vertically center the glyphs inside the box
    left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
    tx = x0 + LEGEND_PAD * surface.dpr
    ty = y0 + ((y1 - y0) - (bottom - top)) / 2.0 - top
    draw.text((tx, ty), label, fill=rgb, font=font)


def render(surface: Optional[Surface], series: Optional[Sequence[float]], color: str, label: str) -> None:
    """
    Draw grid, center line, auto-scaled trace and legend for one series.

    Missing surfaces, empty series and unparseable colors are skipped
    without error; the surface is left untouched.
    """
    if surface is None or not surface.available:
        logger.debug("render %r skipped: surface unavailable", label)
        return
    data = np.asarray(series if series is not None else [], dtype=float).ravel()
    if data.size == 0:
        logger.debug("render %r skipped: empty series", label)
        return
    try:
        rgb = parse_color(color)
    except ValueError:
        logger.debug("render %r skipped: bad color %r", label, color)
        return

    surface.resize()
    surface.clear()
    _draw_grid(surface)
    _draw_trace(surface, trace_points(data, surface.width, surface.height), rgb)
    _draw_legend(surface, label, rgb)


def make_surfaces(width: int, height: int, dpr: float = 1.0) -> Dict[str, Surface]:
    return {name: Surface(width, height, dpr) for name in PANELS}


def render_panels(surfaces: Mapping[str, Optional[Surface]], result: SimResult) -> List[str]:
    """Render every known panel present in `surfaces`. Returns the names drawn."""
    drawn: List[str] = []
    for name, style in PANELS.items():
        surface = surfaces.get(name)
        if surface is None or not surface.available:
            continue
        series = result.signals.get(style.series)
        if series is None or len(series) == 0:
            continue
        render(surface, series, style.color, style.label)
        drawn.append(name)
    return drawn
