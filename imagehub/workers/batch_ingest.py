"""RQ worker job: ingest every image inside an uploaded archive."""
import logging
from datetime import datetime, timezone
from imagehub import create_app
from flask import current_app, has_app_context
from imagehub.errors import ArchiveFormatError
from imagehub.extensions import db
from imagehub.models.actor import Actor
from imagehub.models.upload_batch import UploadBatch
from imagehub.services import image_record_service

logger = logging.getLogger(__name__)

_worker_app = None


def _get_app():
    """Return an app instance for worker execution.

    Reuse the current app when already inside an app context (tests/CLI),
    otherwise lazily create the worker app once.
    """
    global _worker_app
    if has_app_context():
        return current_app._get_current_object()
    if _worker_app is None:
        _worker_app = create_app()
    return _worker_app


def _record_summary(batch, summary):
    batch.matched = summary.matched
    batch.unmatched = summary.unmatched
    batch.updated = summary.updated
    batch.failed = summary.failed


def process_upload_batch(batch_id):
    """Run an archive upload to completion.

    Idempotency: batches that already reached a final status are skipped.
    Progress and the cancel flag are read from the batch row, so the web
    process can poll and cancel while the job runs.
    """
    app = _get_app()
    with app.app_context():
        batch = db.session.get(UploadBatch, batch_id)
        if not batch:
            logger.error("Upload batch %d not found", batch_id)
            return None

        if batch.is_finished:
            logger.info("Batch %s already %s, skipping", batch.uid, batch.status)
            return batch

        batch.status = "RUNNING"
        db.session.commit()

        actor = Actor.create(batch.actor_id, batch.actor_name, batch.actor_type)

        def on_progress(processed, total):
            batch.processed = processed
            batch.total = total
            db.session.commit()

        def should_cancel():
            db.session.refresh(batch, ["cancel_requested"])
            return batch.cancel_requested

        try:
            summary = image_record_service.ingest_archive(
                batch.archive_data,
                actor,
                progress=on_progress,
                should_cancel=should_cancel,
            )
        except ArchiveFormatError as e:
            logger.warning("Batch %s: unreadable archive: %s", batch.uid, e)
            db.session.rollback()
            summary = e.details.get("summary")
            if summary is not None:
                _record_summary(batch, summary)
            batch.status = "FAILED"
            batch.error = e.message
            batch.finished_at = datetime.now(timezone.utc)
            db.session.commit()
            return batch
        except Exception as e:
            logger.exception("Batch %s failed", batch.uid)
            db.session.rollback()
            batch.status = "FAILED"
            batch.error = str(e)[:500]
            batch.finished_at = datetime.now(timezone.utc)
            db.session.commit()
            raise  # let RQ record the failure

        _record_summary(batch, summary)
        batch.status = "CANCELLED" if summary.cancelled else "DONE"
        batch.finished_at = datetime.now(timezone.utc)
        db.session.commit()

        logger.info(
            "Batch %s %s: %d matched, %d unmatched, %d failed",
            batch.uid,
            batch.status.lower(),
            batch.matched,
            batch.unmatched,
            batch.failed,
        )
        return batch
