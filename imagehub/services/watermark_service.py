"""Watermark compositing.

Two placement modes:

- fixed: a logo/text cluster anchored at a corner or the centre, optionally
  rotated about the anchor point;
- tile: the canvas is treated as an infinite plane rotated about the origin,
  covered from -diagonal to +diagonal with cells in a brick pattern.

Every cluster is rendered once into an RGBA sprite (logo, shadow, text),
rotated, then stamped onto a transparent overlay. The global opacity is
applied to the overlay before it is composited onto the source.
"""
import base64
import io
import logging
import math
from collections import namedtuple
from functools import lru_cache
from urllib.parse import unquote_to_bytes

import httpx
from PIL import Image as PILImage, ImageColor, ImageDraw, ImageFilter, ImageFont

from imagehub.services import image_service

logger = logging.getLogger(__name__)

DEFAULT_FONT = "DejaVuSans-Bold.ttf"
LOGO_SCALE = 0.15  # of the smaller canvas side
LINE_HEIGHT_FACTOR = 1.5
LOGO_TEXT_SPACING = 10
SHADOW_BLUR = 4
SHADOW_COLOR = (0, 0, 0, 128)
OUTPUT_QUALITY = 0.9

PREVIEW_BACKGROUND = "#f0f0f0"
PREVIEW_GRID = "#e0e0e0"
PREVIEW_GRID_STEP = 20

_TEXT_ANCHORS = {
    "TOP_LEFT": "lt",
    "TOP_RIGHT": "rt",
    "BOTTOM_LEFT": "ld",
    "BOTTOM_RIGHT": "rd",
    "CENTER": "mm",
}

Metrics = namedtuple("Metrics", ["font", "text", "text_width", "line_height", "logo_size"])
Placement = namedtuple("Placement", ["logo_xy", "text_xy", "text_anchor"])


@lru_cache(maxsize=16)
def load_font(px, font_path=DEFAULT_FONT):
    try:
        return ImageFont.truetype(font_path, px)
    except OSError:
        logger.debug("Font %s unavailable, using Pillow default", font_path)
        return ImageFont.load_default(size=px)


def load_logo(url, timeout=10.0):
    """Fetch a logo from a data URL, http(s) URL or local path.

    Returns an RGBA image, or None when the asset cannot be loaded.
    """
    if not url:
        return None
    try:
        if url.startswith("data:"):
            header, _, payload = url.partition(",")
            if header.endswith(";base64"):
                raw = base64.b64decode(payload)
            else:
                raw = unquote_to_bytes(payload)
        elif url.startswith(("http://", "https://")):
            resp = httpx.get(url, timeout=timeout, follow_redirects=True)
            resp.raise_for_status()
            raw = resp.content
        else:
            with open(url, "rb") as f:
                raw = f.read()
        logo = PILImage.open(io.BytesIO(raw))
        logo.load()
        return logo.convert("RGBA")
    except (httpx.HTTPError, OSError, ValueError):
        logger.warning("Could not load watermark logo %s", url[:80], exc_info=True)
        return None


def measure(settings, canvas_size, logo=None, font=None, font_path=DEFAULT_FONT):
    font = font or load_font(settings.font_px, font_path)
    text = settings.text if settings.draws_text else ""
    text_width = font.getlength(text) if text else 0
    logo_size = round(min(canvas_size) * LOGO_SCALE) if logo is not None else 0
    return Metrics(
        font=font,
        text=text,
        text_width=text_width,
        line_height=settings.font_px * LINE_HEIGHT_FACTOR,
        logo_size=logo_size,
    )


def tile_cell_size(metrics, margin):
    width = max(metrics.text_width, metrics.logo_size) + margin * 4
    height = metrics.logo_size + metrics.line_height + margin * 4
    return max(width, 1), max(height, 1)


def plan_tiles(width, height, cell_width, cell_height, rotation=0):
    """Canvas coordinates of every tile cell centre.

    Cells are laid out on a plane rotated by ``rotation`` degrees about the
    canvas origin, from -diagonal to +diagonal in both axes, with odd rows
    shifted by half a cell.
    """
    diag = math.hypot(width, height)
    theta = math.radians(rotation)
    cos_t, sin_t = math.cos(theta), math.sin(theta)

    centres = []
    y = -diag
    row = 0
    while y < diag:
        offset = 0 if row % 2 == 0 else cell_width / 2
        x = -diag
        while x < diag:
            px = x + offset
            centres.append((px * cos_t - y * sin_t, px * sin_t + y * cos_t))
            x += cell_width
        y += cell_height
        row += 1
    return centres


def anchor_point(position, width, height, margin):
    if position == "TOP_LEFT":
        return margin, margin
    if position == "TOP_RIGHT":
        return width - margin, margin
    if position == "BOTTOM_LEFT":
        return margin, height - margin
    if position == "BOTTOM_RIGHT":
        return width - margin, height - margin
    return width / 2, height / 2


def _tile_placement(settings, metrics):
    both = settings.type == "BOTH"
    logo_xy = None
    if metrics.logo_size:
        logo_xy = (
            -metrics.logo_size / 2,
            -metrics.logo_size / 2 - (metrics.line_height / 2 if both else 0),
        )
    text_xy = None
    if metrics.text:
        text_xy = (0, metrics.logo_size / 2 if metrics.logo_size and both else 0)
    return Placement(logo_xy, text_xy, "mm")


def _fixed_placement(settings, metrics):
    position = settings.position
    both = settings.type == "BOTH"
    size = metrics.logo_size

    logo_xy = None
    if size:
        if position == "CENTER":
            logo_xy = (-size / 2, -size / 2 - (metrics.line_height / 2 if both else 0))
        else:
            lx = 0 if "LEFT" in position else -size
            ly = 0
            if "BOTTOM" in position:
                ly = -size - (metrics.line_height if both else 0)
            logo_xy = (lx, ly)

    text_xy = None
    if metrics.text:
        ty = 0
        if size and both:
            if position == "CENTER":
                ty = size / 2 + LOGO_TEXT_SPACING
            elif "TOP" in position:
                ty = size + LOGO_TEXT_SPACING
        text_xy = (0, ty)
    return Placement(logo_xy, text_xy, _TEXT_ANCHORS.get(position, "mm"))


def _render_sprite(settings, metrics, logo, placement):
    """Draw one cluster with its placement point at the sprite centre, then rotate."""
    pad = int(
        metrics.text_width
        + metrics.logo_size * 2
        + metrics.line_height * 2
        + LOGO_TEXT_SPACING
        + SHADOW_BLUR * 4
    ) + 1
    size = (pad * 2, pad * 2)
    sprite = PILImage.new("RGBA", size, (0, 0, 0, 0))

    if placement.logo_xy is not None:
        scaled = logo.resize((metrics.logo_size, metrics.logo_size), PILImage.LANCZOS)
        lx, ly = placement.logo_xy
        sprite.alpha_composite(scaled, dest=(int(round(pad + lx)), int(round(pad + ly))))

    if placement.text_xy is not None:
        xy = (pad + placement.text_xy[0], pad + placement.text_xy[1])
        shadow = PILImage.new("RGBA", size, (0, 0, 0, 0))
        ImageDraw.Draw(shadow).text(
            xy, metrics.text, font=metrics.font, fill=SHADOW_COLOR, anchor=placement.text_anchor
        )
        sprite.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR / 2)))

        text_layer = PILImage.new("RGBA", size, (0, 0, 0, 0))
        ImageDraw.Draw(text_layer).text(
            xy,
            metrics.text,
            font=metrics.font,
            fill=ImageColor.getrgb(settings.text_color)[:3] + (255,),
            anchor=placement.text_anchor,
        )
        sprite.alpha_composite(text_layer)

    if settings.rotation:
        sprite = sprite.rotate(-settings.rotation, resample=PILImage.BICUBIC, expand=True)
    return sprite


def _stamp(overlay, sprite, cx, cy):
    """Alpha-composite ``sprite`` centred on (cx, cy), clipped to the overlay."""
    left = int(round(cx - sprite.width / 2))
    top = int(round(cy - sprite.height / 2))
    box = (
        max(left, 0),
        max(top, 0),
        min(left + sprite.width, overlay.width),
        min(top + sprite.height, overlay.height),
    )
    if box[0] >= box[2] or box[1] >= box[3]:
        return False
    piece = sprite.crop((box[0] - left, box[1] - top, box[2] - left, box[3] - top))
    overlay.alpha_composite(piece, dest=(box[0], box[1]))
    return True


def composite(
    image, settings, logo=None, font=None, font_path=DEFAULT_FONT, logo_timeout=10.0
):
    """Render the watermark described by ``settings`` onto ``image``.

    Returns ``image`` itself when the watermark is disabled, otherwise a new
    RGB image. A logo that cannot be loaded is skipped.
    """
    if not settings.enabled:
        return image

    if logo is None and settings.draws_logo:
        logo = load_logo(settings.logo_url, timeout=logo_timeout)
    if not settings.draws_logo:
        logo = None

    base = image.convert("RGBA")
    metrics = measure(settings, base.size, logo=logo, font=font, font_path=font_path)
    overlay = PILImage.new("RGBA", base.size, (0, 0, 0, 0))

    if metrics.text or metrics.logo_size:
        if settings.position == "TILE":
            sprite = _render_sprite(settings, metrics, logo, _tile_placement(settings, metrics))
            cell_width, cell_height = tile_cell_size(metrics, settings.margin)
            for cx, cy in plan_tiles(
                base.width, base.height, cell_width, cell_height, settings.rotation
            ):
                _stamp(overlay, sprite, cx, cy)
        else:
            sprite = _render_sprite(settings, metrics, logo, _fixed_placement(settings, metrics))
            ax, ay = anchor_point(settings.position, base.width, base.height, settings.margin)
            _stamp(overlay, sprite, ax, ay)

    alpha = overlay.getchannel("A").point(lambda a: int(round(a * settings.opacity)))
    overlay.putalpha(alpha)
    return PILImage.alpha_composite(base, overlay).convert("RGB")


def apply_watermark(image_bytes, settings, font_path=DEFAULT_FONT, logo_timeout=10.0):
    """Watermark encoded image bytes; returns JPEG bytes.

    A disabled watermark returns the input bytes untouched.
    """
    if not settings.enabled:
        return image_bytes
    img = image_service.decode(image_bytes)
    result = composite(img, settings, font_path=font_path, logo_timeout=logo_timeout)
    return image_service.encode_jpeg(result, OUTPUT_QUALITY)


def render_preview(
    settings, width=400, height=300, font_path=DEFAULT_FONT, logo_timeout=10.0
):
    """Watermark a neutral grid canvas so settings can be previewed."""
    canvas = PILImage.new("RGB", (width, height), PREVIEW_BACKGROUND)
    draw = ImageDraw.Draw(canvas)
    for x in range(0, width, PREVIEW_GRID_STEP):
        draw.line([(x, 0), (x, height)], fill=PREVIEW_GRID, width=1)
    for y in range(0, height, PREVIEW_GRID_STEP):
        draw.line([(0, y), (width, y)], fill=PREVIEW_GRID, width=1)
    return composite(canvas, settings, font_path=font_path, logo_timeout=logo_timeout)
