import json
import logging
from datetime import datetime, timezone
from flask import current_app
from imagehub.extensions import db
from imagehub.errors import InvalidWatermarkSettings
from imagehub.models.watermark import WatermarkSettings

logger = logging.getLogger(__name__)

WATERMARK_KEY = "watermark_settings"
STATS_KEY = "image_stats"


class Settings(db.Model):
    """Key/value store for singleton configuration and cached projections."""

    __tablename__ = "settings"

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @staticmethod
    def get(key, default=None):
        row = db.session.get(Settings, key)
        return row.value if row else default

    @staticmethod
    def set(key, value, commit=True):
        row = db.session.get(Settings, key)
        if row:
            row.value = str(value)
        else:
            row = Settings(key=key, value=str(value))
            db.session.add(row)
        if commit:
            db.session.commit()
        return row

    @staticmethod
    def get_watermark_settings():
        """Return the active watermark settings, falling back to defaults."""
        defaults = WatermarkSettings.defaults(
            current_app.config.get("DEFAULT_WATERMARK_TEXT", "")
        )
        raw = Settings.get(WATERMARK_KEY)
        if not raw:
            return defaults
        try:
            return WatermarkSettings.from_dict(json.loads(raw), base=defaults)
        except (json.JSONDecodeError, TypeError, InvalidWatermarkSettings):
            logger.warning("Stored watermark settings are invalid, using defaults")
            return defaults

    @staticmethod
    def set_watermark_settings(settings, commit=True):
        return Settings.set(WATERMARK_KEY, json.dumps(settings.to_dict()), commit=commit)

    @staticmethod
    def get_cached_stats():
        raw = Settings.get(STATS_KEY)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    @staticmethod
    def set_cached_stats(stats_dict, commit=True):
        return Settings.set(STATS_KEY, json.dumps(stats_dict), commit=commit)

    def __repr__(self):
        return f"<Settings {self.key}={self.value}>"
