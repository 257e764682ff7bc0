"""Tests for watermark settings and compositing."""
import base64
import dataclasses
import io
import math
from unittest.mock import patch

import httpx
import pytest
from PIL import Image as PILImage, ImageChops

from imagehub.errors import InvalidWatermarkSettings
from imagehub.models.watermark import WatermarkSettings
from imagehub.services import watermark_service


def _canvas(size=(400, 300)):
    return PILImage.new("RGB", size, (128, 128, 128))


def _diff_bbox(a, b):
    return ImageChops.difference(a, b).getbbox()


def _png_data_url(size=(20, 20), color=(255, 0, 0, 255)):
    buffer = io.BytesIO()
    PILImage.new("RGBA", size, color).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def test_defaults():
    settings = WatermarkSettings.defaults("ACME")
    assert settings.text == "ACME"
    assert settings.rotation == 330
    assert settings.position == "CENTER"
    assert settings.font_px == 24
    assert settings.draws_text
    assert not settings.draws_logo  # no logo url


def test_settings_are_immutable():
    settings = WatermarkSettings()
    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.opacity = 0.5


def test_with_methods_return_new_values():
    base = WatermarkSettings()
    changed = base.with_text("  Hello ").with_position("tile")

    assert changed.text == "Hello"
    assert changed.position == "TILE"
    assert base.text == ""
    assert base.position == "CENTER"


@pytest.mark.parametrize("value,expected", [(1.5, 0.9), (0.01, 0.1), ("0.456", 0.46)])
def test_opacity_is_clamped(value, expected):
    assert WatermarkSettings().with_opacity(value).opacity == expected


@pytest.mark.parametrize("value,expected", [(-30, 330), (725, 5), (360, 0), (45.4, 45)])
def test_rotation_wraps(value, expected):
    assert WatermarkSettings().with_rotation(value).rotation == expected


def test_margin_is_never_negative():
    assert WatermarkSettings().with_margin(-5).margin == 0


@pytest.mark.parametrize(
    "changes",
    [
        {"position": "MIDDLE"},
        {"type": "IMAGE"},
        {"font_size": "HUGE"},
        {"text_color": "white"},
        {"opacity": "lots"},
        {"shadow": True},
    ],
)
def test_invalid_changes_are_rejected(changes):
    with pytest.raises(InvalidWatermarkSettings):
        WatermarkSettings().apply(changes)


def test_partial_update_keeps_other_fields():
    base = WatermarkSettings.defaults("ACME").with_opacity(0.5)
    updated = base.apply({"text_color": "#FF0000", "enabled": "false"})

    assert updated.text_color == "#ff0000"
    assert updated.enabled is False
    assert updated.opacity == 0.5
    assert updated.text == "ACME"


def test_round_trip_through_dict():
    settings = WatermarkSettings.defaults("ACME").with_position("TOP_LEFT")
    assert WatermarkSettings.from_dict(settings.to_dict()) == settings


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


def test_anchor_points():
    assert watermark_service.anchor_point("TOP_LEFT", 400, 300, 20) == (20, 20)
    assert watermark_service.anchor_point("BOTTOM_RIGHT", 400, 300, 20) == (380, 280)
    assert watermark_service.anchor_point("CENTER", 400, 300, 20) == (200, 150)


def test_tile_mode_has_a_fully_visible_cell_near_the_centre():
    settings = (
        WatermarkSettings.defaults("TEST MARK")
        .with_position("TILE")
        .with_rotation(0)
        .with_margin(20)
    )
    metrics = watermark_service.measure(settings, (400, 300))
    cell_w, cell_h = watermark_service.tile_cell_size(metrics, settings.margin)
    centres = watermark_service.plan_tiles(400, 300, cell_w, cell_h, 0)

    visible = [
        (cx, cy)
        for cx, cy in centres
        if cx - cell_w / 2 >= 0
        and cx + cell_w / 2 <= 400
        and cy - cell_h / 2 >= 0
        and cy + cell_h / 2 <= 300
    ]
    assert any(abs(cx - 200) <= cell_w and abs(cy - 150) <= cell_h for cx, cy in visible)


def test_tile_rows_alternate_half_cell_offset():
    cell_w, cell_h = 100, 33.3
    centres = watermark_service.plan_tiles(400, 300, cell_w, cell_h, 0)

    row_starts = {}
    for cx, cy in centres:
        row_starts.setdefault(cy, cx)
    left = min(row_starts.values())
    offsets = [x - left for x in row_starts.values()]

    assert len(offsets) > 10
    assert offsets == pytest.approx(
        [0 if i % 2 == 0 else cell_w / 2 for i in range(len(offsets))]
    )


@pytest.mark.parametrize("rotation", [0, 45, 330])
def test_tiles_cover_every_corner(rotation):
    cell_w, cell_h = 120, 60
    centres = watermark_service.plan_tiles(400, 300, cell_w, cell_h, rotation)
    reach = math.hypot(cell_w, cell_h)
    for corner in [(0, 0), (400, 0), (0, 300), (400, 300)]:
        assert min(math.dist(corner, c) for c in centres) <= reach


# ---------------------------------------------------------------------------
# Compositing
# ---------------------------------------------------------------------------


def test_disabled_composite_returns_input():
    image = _canvas()
    settings = WatermarkSettings.defaults("TEST MARK").with_enabled(False)
    assert watermark_service.composite(image, settings) is image


def test_disabled_apply_watermark_is_byte_identical(make_image):
    data = make_image(size=(120, 80))
    settings = WatermarkSettings.defaults("TEST MARK").with_enabled(False)
    assert watermark_service.apply_watermark(data, settings) is data


def test_apply_watermark_returns_jpeg(make_image):
    data = make_image(size=(400, 300), color=(128, 128, 128))
    settings = WatermarkSettings.defaults("TEST MARK").with_opacity(0.9)

    result = watermark_service.apply_watermark(data, settings)

    marked = PILImage.open(io.BytesIO(result))
    assert marked.format == "JPEG"
    assert marked.size == (400, 300)
    assert result != data


def test_fixed_position_stays_in_its_corner():
    base = _canvas()
    settings = WatermarkSettings(
        type="TEXT",
        text="TEST MARK",
        position="BOTTOM_RIGHT",
        rotation=0,
        opacity=0.9,
    )
    bbox = _diff_bbox(base, watermark_service.composite(base, settings))

    assert bbox is not None
    left, top, right, bottom = bbox
    assert left > 150 and top > 150
    assert right <= 390 and bottom <= 290


def test_tile_mode_covers_the_canvas():
    base = _canvas()
    settings = WatermarkSettings.defaults("TEST MARK").with_position("TILE").with_opacity(0.9)
    bbox = _diff_bbox(base, watermark_service.composite(base, settings))

    assert bbox is not None
    left, top, right, bottom = bbox
    assert right - left > 200
    assert bottom - top > 150


def test_compositing_is_deterministic():
    settings = WatermarkSettings.defaults("TEST MARK").with_position("TILE")
    first = watermark_service.composite(_canvas(), settings)
    second = watermark_service.composite(_canvas(), settings)
    assert first.tobytes() == second.tobytes()


def test_logo_from_data_url_is_drawn():
    settings = WatermarkSettings(
        type="LOGO",
        logo_url=_png_data_url(),
        position="CENTER",
        rotation=0,
        opacity=0.9,
    )
    result = watermark_service.composite(_canvas(), settings)

    r, g, b = result.getpixel((200, 150))
    assert r > 200 and g < 60 and b < 60


def test_missing_logo_degrades_to_text():
    settings = WatermarkSettings.defaults("TEST MARK").with_logo_url("/nonexistent/logo.png")
    result = watermark_service.composite(_canvas(), settings)
    assert _diff_bbox(_canvas(), result) is not None


def test_load_logo_handles_http_errors():
    with patch.object(
        watermark_service.httpx, "get", side_effect=httpx.ConnectError("unreachable")
    ):
        assert watermark_service.load_logo("https://example.invalid/logo.png") is None


def test_load_logo_from_data_url():
    logo = watermark_service.load_logo(_png_data_url(size=(12, 8)))
    assert logo.mode == "RGBA"
    assert logo.size == (12, 8)


def test_render_preview():
    settings = WatermarkSettings.defaults("TEST MARK")
    preview = watermark_service.render_preview(settings, width=320, height=200)
    assert preview.size == (320, 200)
    assert preview.mode == "RGB"
