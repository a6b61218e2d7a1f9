# test_render.py
#
# Raster panel tests for `render(...)`, `trace_points(...)` and `render_panels(...)`.
#
# What this test suite verifies
# -----------------------------
# 1) Geometry
#    - x spans 0..width, y is inverted and keeps a 5% margin top/bottom.
#    - Flat series sit on the center line (no division by zero).
#
# 2) Surface handling
#    - Backing raster is display size x dpr; resize is idempotent.
#    - Missing surfaces, zero-size surfaces, empty series and bad colors are silent no-ops.
#
# 3) Drawing output (pixel checks)
#    - Trace pixels carry the series color, grid/center line lighten the background,
#      every 5x12 grid division is drawn, the center line is brighter than the grid,
#      legend box is outlined in the series color and sized to the measured label.
#
# 4) Panel table
#    - All eight comparison panels render from one synthesis result.
#
# How to run
# ----------
#   pytest -q modsim/tests/test_render.py


from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image, ImageDraw

from keyutils import ModParams
from keying import synthesize
from render import (
    BACKGROUND, GRID_COLS, GRID_ROWS, LEGEND_FONT_SIZE, LEGEND_HEIGHT, LEGEND_PAD,
    LEGEND_X, LEGEND_Y, MARGIN_FRAC, PANELS, _load_font,
    Surface, make_surfaces, parse_color, render, render_panels, trace_points,
)


# -------------------------
# Shared utilities / helpers
# -------------------------

W, H = 240, 100


def pixel(surface: Surface, x: float, y: float):
    px = int(round(x * surface.dpr))
    py = int(round(y * surface.dpr))
    px = min(max(px, 0), surface.image.size[0] - 1)
    py = min(max(py, 0), surface.image.size[1] - 1)
    return surface.image.getpixel((px, py))


def close_to(rgb, target, tol: int = 40) -> bool:
    return all(abs(int(a) - int(b)) <= tol for a, b in zip(rgb[:3], target[:3]))


# =============================
# 1) Geometry
# =============================

def test_trace_points_span_and_margin():
    pts = trace_points([0.0, 1.0, -1.0, 0.5], W, H)
    margin = H * MARGIN_FRAC
    assert pts.shape == (4, 2)
    assert pts[0, 0] == 0.0
    assert pts[-1, 0] == pytest.approx(W)
    # max value at the top margin, min value at the bottom margin
    assert pts[1, 1] == pytest.approx(margin)
    assert pts[2, 1] == pytest.approx(H - margin)
    # 0.0 is halfway between -1 and 1
    assert pts[0, 1] == pytest.approx(H / 2)


def test_trace_points_inverted():
    pts = trace_points([0.0, 1.0], W, H)
    assert pts[1, 1] < pts[0, 1]


@pytest.mark.parametrize("value", [0.0, 1.0, -3.5])
def test_flat_series_on_center_line(value):
    pts = trace_points([value] * 50, W, H)
    assert np.all(pts[:, 1] == H / 2)
    assert np.all(np.isfinite(pts))


def test_single_sample_placed_at_left_center():
    pts = trace_points([0.7], W, H)
    assert pts.tolist() == [[0.0, H / 2]]


def test_trace_points_empty():
    assert trace_points([], W, H).shape == (0, 2)


def test_parse_color():
    assert parse_color("#76ff03") == (0x76, 0xFF, 0x03)
    assert parse_color("red") == (255, 0, 0)


# =============================
# 2) Surface handling
# =============================

@pytest.mark.parametrize("dpr", [1.0, 1.5, 2.0, 3.0])
def test_backing_raster_scaled_by_dpr(dpr):
    s = Surface(W, H, dpr)
    render(s, [0.0, 1.0, 0.0], "#4fc3f7", "Modulated Signal")
    assert s.image.size == (int(round(W * dpr)), int(round(H * dpr)))


def test_resize_is_idempotent():
    s = Surface(W, H, 2.0)
    assert s.resize() is True
    first = s.image
    assert s.resize() is False
    assert s.image is first
    s.width = W + 10
    assert s.resize() is True
    assert s.image.size == ((W + 10) * 2, H * 2)


def test_repeated_render_reuses_raster():
    s = Surface(W, H, 2.0)
    render(s, [0.0, 1.0], "#ff9800", "Carrier Signal")
    first = s.image
    render(s, [1.0, 0.0], "#ff9800", "Carrier Signal")
    assert s.image is first


def test_none_surface_is_noop():
    render(None, [1.0, 2.0], "#ffffff", "x")


@pytest.mark.parametrize("series", [[], None, np.array([])])
def test_empty_series_is_noop(series):
    s = Surface(W, H)
    render(s, series, "#ffffff", "x")
    assert s.image is None


def test_zero_size_surface_is_noop():
    s = Surface(0, H)
    render(s, [1.0, 2.0], "#ffffff", "x")
    assert s.image is None


def test_flat_render_does_not_raise():
    s = Surface(W, H)
    render(s, np.zeros(600), "#76ff03", "Digital Signal")
    # trace color on the center line, mid-panel (away from the legend)
    assert close_to(pixel(s, W * 0.75, H / 2), (0x76, 0xFF, 0x03))


# =============================
# 3) Drawing output
# =============================

def test_trace_pixels_use_series_color():
    s = Surface(W, H)
    # rising ramp: the trace at x=3/4 width sits at 3/4 of the range
    series = np.linspace(0.0, 1.0, 400)
    render(s, series, "#ff9800", "Carrier Signal")
    pts = trace_points(series, W, H)
    x, y = pts[300]
    assert close_to(pixel(s, x, y), (0xFF, 0x98, 0x00))


def test_background_and_grid():
    s = Surface(W, H)
    render(s, [1.0, 1.0], "#bb86fc", "Unmodulated Carrier")
    # inside a grid cell, far from trace/legend: plain background
    cell_x = W / 12 * 9.5
    cell_y = H / 5 * 3.5
    assert pixel(s, cell_x, cell_y) == BACKGROUND
    # a vertical grid line is slightly brighter than the background
    gx = pixel(s, W / 12 * 9, cell_y)
    assert sum(gx) > sum(BACKGROUND)


def test_legend_box_outline_in_series_color():
    s = Surface(W, H, 2.0)
    render(s, np.sin(np.linspace(0, 6, 300)), "#4fc3f7", "Modulated Signal")
    # left edge of the box, halfway down
    assert close_to(pixel(s, LEGEND_X, LEGEND_Y + LEGEND_HEIGHT / 2), (0x4F, 0xC3, 0xF7), tol=60)


def brightness(rgb) -> int:
    return sum(int(c) for c in rgb[:3])


def test_every_horizontal_grid_division_drawn():
    s = Surface(W, H)
    render(s, [1.0, 1.0], "#bb86fc", "x")
    # x=230 sits between the last two vertical lines; the bottom edge line
    # (i == GRID_ROWS) falls just outside the raster
    x = W / GRID_COLS * (GRID_COLS - 0.5)
    step = H / GRID_ROWS
    for i in range(GRID_ROWS):
        y = i * step
        assert brightness(pixel(s, x, y)) > brightness(BACKGROUND), f"row line {i}"
        if abs(y + step / 2 - H / 2) > 5:
            assert pixel(s, x, y + step / 2) == BACKGROUND, f"row cell {i}"


def test_every_vertical_grid_division_drawn():
    s = Surface(W, H)
    render(s, [1.0, 1.0], "#bb86fc", "x")
    y = H / GRID_ROWS * (GRID_ROWS - 0.5)
    step = W / GRID_COLS
    for j in range(GRID_COLS):
        x = j * step
        assert brightness(pixel(s, x, y)) > brightness(BACKGROUND), f"column line {j}"
        assert pixel(s, x + step / 2, y) == BACKGROUND, f"column cell {j}"


def test_center_line_brighter_than_grid():
    s = Surface(W, H)
    # jumps to the top immediately, keeping the trace off the center line
    render(s, [0.0] + [1.0] * 399, "#4fc3f7", "x")
    x = W / GRID_COLS * (GRID_COLS - 0.5)
    center = pixel(s, x, H / 2)
    grid = pixel(s, x, H / GRID_ROWS * 3)
    assert brightness(center) > brightness(grid) > brightness(BACKGROUND)


def legend_right_edge(surface: Surface, rgb) -> int:
    row = int(round((LEGEND_Y + LEGEND_HEIGHT / 2) * surface.dpr))
    for px in range(surface.image.size[0] - 1, -1, -1):
        if close_to(surface.image.getpixel((px, row)), rgb, tol=10):
            return px
    return -1


@pytest.mark.parametrize("label", ["Digital", "Unmodulated Carrier Signal"])
def test_legend_box_fits_measured_label(label):
    s = Surface(W, H)
    render(s, [1.0, 1.0], "#ff9800", label)
    font = _load_font(LEGEND_FONT_SIZE)
    text_w = ImageDraw.Draw(Image.new("RGB", (1, 1))).textlength(label, font=font)
    expected = LEGEND_X + text_w + 2 * LEGEND_PAD
    assert abs(legend_right_edge(s, (0xFF, 0x98, 0x00)) - expected) <= 2


def test_legend_box_grows_with_label():
    short, long = Surface(W, H), Surface(W, H)
    render(short, [1.0, 1.0], "#ff9800", "Digital")
    render(long, [1.0, 1.0], "#ff9800", "Unmodulated Carrier Signal")
    rgb = (0xFF, 0x98, 0x00)
    assert legend_right_edge(long, rgb) > legend_right_edge(short, rgb) > LEGEND_X


def test_bad_color_is_noop():
    s = Surface(W, H)
    render(s, [0.0, 1.0], "not-a-color", "x")
    assert s.image is None


def test_bad_color_leaves_previous_drawing():
    s = Surface(W, H)
    render(s, [0.0, 1.0], "#76ff03", "Digital Signal")
    before = s.image.tobytes()
    render(s, [1.0, 0.0], "#zzzzzz", "Digital Signal")
    assert s.image.tobytes() == before


def test_to_png_roundtrip_size():
    s = Surface(W, H, 2.0)
    render(s, [0.0, 1.0], "#76ff03", "Digital Signal")
    img = Image.open(io.BytesIO(s.to_png()))
    assert img.size == (W * 2, H * 2)


def test_to_png_before_render_is_empty():
    assert Surface(W, H).to_png() == b""


# =============================
# 4) Panel table
# =============================

def test_panel_table_covers_eight_surfaces():
    assert len(PANELS) == 8
    series = {style.series for style in PANELS.values()}
    assert series == {"digital", "carrier", "modulated", "unmodulated"}


def test_render_panels_draws_every_surface():
    res = synthesize(ModParams(frequency=1.0, amplitude=1.0, bit_rate=1.0, scheme="PSK", bitstr="1011"))
    surfaces = make_surfaces(W, H, 1.0)
    drawn = render_panels(surfaces, res)
    assert drawn == list(PANELS)
    for name in drawn:
        assert surfaces[name].image is not None


def test_render_panels_skips_missing_surfaces():
    res = synthesize(ModParams(frequency=1.0, amplitude=1.0, bit_rate=1.0, scheme="ASK", bitstr="10"))
    surfaces = {"digital1": Surface(W, H), "carrier1": None, "bogus": Surface(W, H)}
    assert render_panels(surfaces, res) == ["digital1"]
    assert surfaces["bogus"].image is None
