"""Public media routes. Only approved or auto-matched images are served."""
from flask import Response, abort, current_app
from imagehub.blueprints.public import public_bp
from imagehub.models.image import ProductImage
from imagehub.models.settings import Settings
from imagehub.services import watermark_service

CACHE_MAX_AGE = 86400


def _public_image(uid):
    image = ProductImage.query.filter_by(uid=uid).first()
    if not image or not image.is_public:
        abort(404)
    return image


def _jpeg(data):
    if not data:
        abort(404)
    resp = Response(data, mimetype="image/jpeg")
    resp.headers["Cache-Control"] = f"public, max-age={CACHE_MAX_AGE}"
    return resp


@public_bp.route("/img/<uid>")
def image(uid):
    return _jpeg(_public_image(uid).image_data)


@public_bp.route("/img/<uid>/thumb")
def thumbnail(uid):
    return _jpeg(_public_image(uid).thumbnail_data)


@public_bp.route("/img/<uid>/watermarked")
def watermarked(uid):
    """Image with the current watermark applied on the fly."""
    data = _public_image(uid).image_data
    if not data:
        abort(404)
    marked = watermark_service.apply_watermark(
        data,
        Settings.get_watermark_settings(),
        font_path=current_app.config["WATERMARK_FONT_PATH"],
        logo_timeout=current_app.config["LOGO_FETCH_TIMEOUT"],
    )
    resp = Response(marked, mimetype="image/jpeg")
    resp.headers["Cache-Control"] = "no-cache"
    return resp
