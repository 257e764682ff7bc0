"""JSON API for uploads, review and watermark settings.

The caller identifies itself through ``X-Actor-Id``, ``X-Actor-Name`` and
``X-Actor-Type`` headers. Identity is trusted as given; authentication is
the deployment's concern.
"""
import io
import logging
from flask import abort, current_app, jsonify, request, send_file
from imagehub import extensions
from imagehub.blueprints.api import api_bp
from imagehub.extensions import db, writer_lock
from imagehub.models.actor import Actor
from imagehub.models.audit_log import AuditLog
from imagehub.models.settings import Settings
from imagehub.models.upload_batch import UploadBatch
from imagehub.services import (
    archive_service,
    catalog_service,
    image_record_service,
    image_service,
    query_service,
    watermark_service,
)
from imagehub.workers.batch_ingest import process_upload_batch

logger = logging.getLogger(__name__)


def _current_actor():
    return Actor.create(
        request.headers.get("X-Actor-Id"),
        request.headers.get("X-Actor-Name", ""),
        request.headers.get("X-Actor-Type", ""),
    )


def _require_admin():
    actor = _current_actor()
    if not actor.is_admin:
        logger.info("Rejected review action from %s (%s)", actor.id, actor.uploader_type)
        abort(403)
    return actor


def _error(message, status_code=400):
    return {"error": message}, status_code


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


@api_bp.route("/images", methods=["POST"])
def upload_image():
    actor = _current_actor()
    upload = request.files.get("file")
    if not upload or not upload.filename:
        return _error("No file uploaded")
    if not image_service.is_accepted_upload(upload.filename, upload.mimetype):
        return _error(f"Unsupported file type: {upload.filename}", 415)

    image = image_record_service.ingest_file(
        upload.read(),
        upload.filename,
        actor,
        part_number=request.form.get("part_number"),
    )
    return image.to_dict(), 201


@api_bp.route("/images/bulk", methods=["POST"])
def upload_bulk():
    actor = _current_actor()
    files = []
    skipped = []
    for upload in request.files.getlist("files"):
        if image_service.is_accepted_upload(upload.filename, upload.mimetype):
            files.append((upload.filename, upload.read()))
        else:
            skipped.append(upload.filename)
    if not files and not skipped:
        return _error("No files uploaded")

    summary = image_record_service.ingest_batch(files, actor)
    result = summary.to_dict()
    result["skipped"] = skipped
    return result, 201


@api_bp.route("/images/archive", methods=["POST"])
def upload_archive():
    """Queue a zip archive for background ingestion."""
    actor = _current_actor()
    upload = request.files.get("file")
    if not upload or not upload.filename:
        return _error("No file uploaded")
    data = upload.read()
    if not archive_service.is_archive(upload.filename, data):
        return _error("Expected a .zip archive")

    batch = UploadBatch(
        file_name=upload.filename,
        archive_data=data,
        actor_id=actor.id,
        actor_name=actor.display_name,
        actor_type=actor.uploader_type,
    )
    db.session.add(batch)
    db.session.commit()

    job = extensions.task_queue.enqueue(
        process_upload_batch, batch.id, job_timeout=3600
    )
    if job is None:
        # No queue configured: run inline
        process_upload_batch(batch.id)
        db.session.refresh(batch)
    logger.info("Archive %s accepted as %s", upload.filename, batch.uid)
    return batch.to_dict(), 202


@api_bp.route("/batches/<uid>")
def get_batch(uid):
    batch = UploadBatch.query.filter_by(uid=uid).first()
    if not batch:
        abort(404)
    return batch.to_dict()


@api_bp.route("/batches/<uid>/cancel", methods=["POST"])
def cancel_batch(uid):
    _current_actor()
    batch = UploadBatch.query.filter_by(uid=uid).first()
    if not batch:
        abort(404)
    if batch.is_finished:
        return _error(f"Batch already {batch.status.lower()}", 409)
    batch.cancel_requested = True
    db.session.commit()
    return batch.to_dict()


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


@api_bp.route("/images")
def list_images():
    page = query_service.browse_images(
        search=request.args.get("search", ""),
        status=request.args.get("status", query_service.ALL_STATUSES).upper(),
        page=request.args.get("page", 1, type=int),
        per_page=current_app.config["IMAGES_PER_PAGE"],
    )
    return page.to_dict()


@api_bp.route("/images/pending")
def list_pending():
    return jsonify([img.to_dict() for img in query_service.pending_images()])


@api_bp.route("/images/<uid>")
def get_image(uid):
    image = image_record_service.get_image(uid)
    if not image:
        abort(404)
    return image.to_dict()


@api_bp.route("/stats")
def stats():
    refresh = request.args.get("refresh") in ("1", "true")
    return image_record_service.get_stats(refresh=refresh).to_dict()


@api_bp.route("/catalog")
def catalog():
    results = catalog_service.search_catalog(
        request.args.get("q", ""), limit=current_app.config["CATALOG_SEARCH_LIMIT"]
    )
    return jsonify(results)


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@api_bp.route("/images/<uid>/approve", methods=["POST"])
def approve(uid):
    actor = _require_admin()
    image = image_record_service.approve(uid, actor)
    if not image:
        return _transition_failed(uid, "approve")
    return image.to_dict()


@api_bp.route("/images/<uid>/reject", methods=["POST"])
def reject(uid):
    actor = _require_admin()
    body = request.get_json(silent=True) or {}
    image = image_record_service.reject(uid, actor, reason=body.get("reason"))
    if not image:
        return _transition_failed(uid, "reject")
    return image.to_dict()


@api_bp.route("/images/<uid>/archive", methods=["POST"])
def archive(uid):
    actor = _require_admin()
    body = request.get_json(silent=True) or {}
    image = image_record_service.archive(uid, actor, note=body.get("note"))
    if not image:
        return _transition_failed(uid, "archive")
    return image.to_dict()


@api_bp.route("/images/<uid>", methods=["PATCH"])
def relink(uid):
    actor = _require_admin()
    body = request.get_json(silent=True) or {}
    if "part_number" not in body:
        return _error("part_number is required")
    image = image_record_service.relink(uid, body["part_number"] or "", actor)
    if not image:
        abort(404)
    return image.to_dict()


@api_bp.route("/images/<uid>", methods=["DELETE"])
def delete(uid):
    actor = _require_admin()
    confirm = request.args.get("confirm") in ("1", "true")
    if not image_record_service.delete_permanently(uid, actor, confirm=confirm):
        abort(404)
    return "", 204


def _transition_failed(uid, action):
    image = image_record_service.get_image(uid)
    if not image:
        abort(404)
    return _error(f"Cannot {action} an image that is {image.status.lower()}", 409)


# ---------------------------------------------------------------------------
# Watermark
# ---------------------------------------------------------------------------


@api_bp.route("/watermark")
def get_watermark():
    return Settings.get_watermark_settings().to_dict()


@api_bp.route("/watermark", methods=["PUT"])
def set_watermark():
    actor = _require_admin()
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return _error("Expected a JSON object")

    with writer_lock():
        settings = Settings.get_watermark_settings().apply(body)
        Settings.set_watermark_settings(settings, commit=False)
        db.session.add(
            AuditLog(actor_id=actor.id, action="SET_WATERMARK", payload=settings.to_dict())
        )
        db.session.commit()
    return settings.to_dict()


@api_bp.route("/watermark/preview")
def watermark_preview():
    settings = Settings.get_watermark_settings()
    if request.args:
        settings = settings.apply(request.args.to_dict())
    preview = watermark_service.render_preview(
        settings,
        font_path=current_app.config["WATERMARK_FONT_PATH"],
        logo_timeout=current_app.config["LOGO_FETCH_TIMEOUT"],
    )
    buffer = io.BytesIO()
    preview.save(buffer, format="PNG")
    buffer.seek(0)
    return send_file(buffer, mimetype="image/png")
