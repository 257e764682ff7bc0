"""Watermark settings value type.

``WatermarkSettings`` is immutable; every ``with_*`` method validates one
field and returns a new value, so a partial update never clobbers siblings.
"""
import re
from dataclasses import asdict, dataclass, replace

from imagehub.errors import InvalidWatermarkSettings

WATERMARK_TYPES = ("TEXT", "LOGO", "BOTH")
WATERMARK_POSITIONS = (
    "CENTER",
    "TOP_LEFT",
    "TOP_RIGHT",
    "BOTTOM_LEFT",
    "BOTTOM_RIGHT",
    "TILE",
)
FONT_SIZE_PX = {"SMALL": 16, "MEDIUM": 24, "LARGE": 36}

MIN_OPACITY = 0.1
MAX_OPACITY = 0.9

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


@dataclass(frozen=True)
class WatermarkSettings:
    enabled: bool = True
    type: str = "BOTH"
    text: str = ""
    logo_url: str = ""
    position: str = "CENTER"
    opacity: float = 0.3
    font_size: str = "MEDIUM"
    text_color: str = "#ffffff"
    rotation: int = 330
    margin: int = 20

    @classmethod
    def defaults(cls, text=""):
        return cls().with_text(text).with_rotation(-30)

    @classmethod
    def from_dict(cls, data, base=None):
        """Build settings from a stored mapping, validating every field."""
        return (base or cls()).apply(data or {})

    def to_dict(self):
        return asdict(self)

    @property
    def font_px(self):
        return FONT_SIZE_PX[self.font_size]

    @property
    def draws_text(self):
        return self.type in ("TEXT", "BOTH")

    @property
    def draws_logo(self):
        return self.type in ("LOGO", "BOTH") and bool(self.logo_url)

    def apply(self, changes):
        """Apply a partial mapping of field changes through the ``with_*`` methods."""
        settings = self
        for field, value in changes.items():
            updater = getattr(settings, f"with_{field}", None)
            if field not in _FIELDS or updater is None:
                raise InvalidWatermarkSettings(f"Unknown watermark field: {field}")
            settings = updater(value)
        return settings

    def with_enabled(self, enabled):
        if isinstance(enabled, str):
            enabled = enabled.strip().lower() in ("1", "true", "yes", "on")
        return replace(self, enabled=bool(enabled))

    def with_type(self, value):
        value = str(value).upper()
        if value not in WATERMARK_TYPES:
            raise InvalidWatermarkSettings(f"Invalid watermark type: {value}")
        return replace(self, type=value)

    def with_text(self, text):
        return replace(self, text=(text or "").strip())

    def with_logo_url(self, logo_url):
        return replace(self, logo_url=(logo_url or "").strip())

    def with_position(self, value):
        value = str(value).upper()
        if value not in WATERMARK_POSITIONS:
            raise InvalidWatermarkSettings(f"Invalid watermark position: {value}")
        return replace(self, position=value)

    def with_opacity(self, opacity):
        try:
            opacity = float(opacity)
        except (TypeError, ValueError):
            raise InvalidWatermarkSettings(f"Invalid opacity: {opacity!r}")
        return replace(self, opacity=round(min(max(opacity, MIN_OPACITY), MAX_OPACITY), 2))

    def with_font_size(self, value):
        value = str(value).upper()
        if value not in FONT_SIZE_PX:
            raise InvalidWatermarkSettings(f"Invalid font size: {value}")
        return replace(self, font_size=value)

    def with_text_color(self, color):
        color = (color or "").strip()
        if not _HEX_COLOR.match(color):
            raise InvalidWatermarkSettings(f"Invalid text color: {color!r}")
        return replace(self, text_color=color.lower())

    def with_rotation(self, degrees):
        try:
            degrees = int(round(float(degrees)))
        except (TypeError, ValueError):
            raise InvalidWatermarkSettings(f"Invalid rotation: {degrees!r}")
        return replace(self, rotation=degrees % 360)

    def with_margin(self, margin):
        try:
            margin = int(margin)
        except (TypeError, ValueError):
            raise InvalidWatermarkSettings(f"Invalid margin: {margin!r}")
        return replace(self, margin=max(margin, 0))


_FIELDS = set(WatermarkSettings.__dataclass_fields__)
