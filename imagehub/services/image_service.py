import base64
import io
import logging
import os
from dataclasses import dataclass
from PIL import Image as PILImage

from imagehub.errors import InvalidImage

logger = logging.getLogger(__name__)

ACCEPTED_CONTENT_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
    "image/bmp",
    "image/tiff",
}
ACCEPTED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".tif"}
ACCEPTED_PIL_FORMATS = {"JPEG", "PNG", "WEBP", "GIF", "BMP", "TIFF", "MPO"}

MAX_COMPRESSED_SIZE = 5 * 1024 * 1024  # 5 MB
MAX_DIMENSION = 2000
DEFAULT_QUALITY = 0.8
MIN_QUALITY = 0.1
QUALITY_STEP = 0.1
THUMBNAIL_SIZE = 150
THUMBNAIL_QUALITY = 0.7


@dataclass
class CompressedImage:
    data: bytes
    width: int
    height: int
    quality: float

    @property
    def size(self):
        return len(self.data)

    @property
    def data_url(self):
        return to_data_url(self.data)


def to_data_url(data, content_type="image/jpeg"):
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def is_accepted_upload(file_name, content_type=None):
    """Check an upload's declared type and extension against the accepted formats."""
    ext = os.path.splitext(file_name or "")[1].lower()
    if content_type and content_type.lower() not in ACCEPTED_CONTENT_TYPES:
        return False
    return ext in ACCEPTED_EXTENSIONS


def decode(image_bytes):
    """Decode raw bytes into an RGB Pillow image.

    Raises:
        InvalidImage if the bytes are not a readable raster.
    """
    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.verify()  # verify it's a real image
    except Exception as e:
        raise InvalidImage("Invalid image file") from e

    # Re-open (verify() closes the file) and force pixel decoding
    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        if img.format not in ACCEPTED_PIL_FORMATS:
            raise InvalidImage(f"Unsupported image format: {img.format}")
        img.load()
        if img.mode != "RGB":
            img = _flatten(img)
    except InvalidImage:
        raise
    except Exception as e:
        raise InvalidImage("Invalid image file") from e
    return img


def _flatten(img):
    """Convert to RGB, placing transparent pixels on white."""
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        rgba = img.convert("RGBA")
        background = PILImage.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.getchannel("A"))
        return background
    return img.convert("RGB")


def fit_within(width, height, max_dimension=MAX_DIMENSION):
    """Return dimensions scaled down so neither side exceeds ``max_dimension``."""
    if width <= max_dimension and height <= max_dimension:
        return width, height
    ratio = min(max_dimension / width, max_dimension / height)
    return max(1, round(width * ratio)), max(1, round(height * ratio))


def encode_jpeg(img, quality):
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=int(round(quality * 100)))
    return buffer.getvalue()


def compress(
    image_bytes,
    max_size_bytes=MAX_COMPRESSED_SIZE,
    initial_quality=DEFAULT_QUALITY,
    max_dimension=MAX_DIMENSION,
):
    """Downscale and re-encode an image as JPEG until it fits ``max_size_bytes``.

    Quality drops by 0.1 per attempt and stops at 0.1; the result at the
    floor is returned even if it is still larger than the limit.

    Returns:
        CompressedImage

    Raises:
        InvalidImage on undecodable input
    """
    img = decode(image_bytes)

    width, height = fit_within(img.width, img.height, max_dimension)
    if (width, height) != img.size:
        img = img.resize((width, height), PILImage.LANCZOS)

    # Integer percent avoids float drift on the ladder
    quality_pct = int(round(initial_quality * 100))
    floor_pct = int(round(MIN_QUALITY * 100))
    step_pct = int(round(QUALITY_STEP * 100))

    data = encode_jpeg(img, quality_pct / 100)
    while len(data) > max_size_bytes and quality_pct > floor_pct:
        quality_pct = max(quality_pct - step_pct, floor_pct)
        data = encode_jpeg(img, quality_pct / 100)

    if len(data) > max_size_bytes:
        logger.info(
            "Image still %d bytes at quality floor (limit %d)", len(data), max_size_bytes
        )
    return CompressedImage(data=data, width=width, height=height, quality=quality_pct / 100)


def create_thumbnail(image_bytes, max_size=THUMBNAIL_SIZE):
    """Create a small preview whose larger side equals ``max_size``."""
    img = decode(image_bytes)
    ratio = min(max_size / img.width, max_size / img.height)
    size = (max(1, round(img.width * ratio)), max(1, round(img.height * ratio)))
    img = img.resize(size, PILImage.LANCZOS)
    return encode_jpeg(img, THUMBNAIL_QUALITY)


def format_file_size(size):
    """Human-readable byte count, e.g. ``1.5 MB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, 2):g} {units[i]}"
