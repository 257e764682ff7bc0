"""Image ingestion and approval lifecycle.

Status transitions:

    (ingest) -> AUTO_MATCHED   privileged uploader
    (ingest) -> PENDING        everyone else
    PENDING  -> APPROVED       approve()
    PENDING  -> REJECTED       reject()
    any      -> ARCHIVED       archive()   soft delete, row kept
    any      -> (gone)         delete_permanently(confirm=True)

Relinking a part number never changes the status. Every write runs under
``writer_lock`` and rebuilds the stats projection before committing.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from flask import current_app

from imagehub.errors import (
    ArchiveFormatError,
    InvalidImage,
    PermanentDeleteConfirmationRequired,
)
from imagehub.extensions import db, writer_lock
from imagehub.models.audit_log import AuditLog
from imagehub.models.image import ProductImage, generate_image_uid
from imagehub.models.settings import Settings
from imagehub.services import archive_service, image_service, part_numbers
from imagehub.services.catalog_service import default_catalog
from imagehub.services.matching_service import match
from imagehub.services.stats_service import ImageStats, recompute_stats

logger = logging.getLogger(__name__)

DUPLICATE_NOTE = "Image update: a previous image existed for {part_number}"
RELINK_DUPLICATE_NOTE = "Relinked: a previous image existed for {part_number}"
DEFAULT_ARCHIVE_NOTE = "Archived by administrator"


@dataclass
class PreparedImage:
    """Output of the decode/compress stage. Pure data, safe to build in parallel."""

    file_name: str
    original_size: int
    compressed: image_service.CompressedImage
    thumbnail: bytes


@dataclass
class BatchSummary:
    matched: int = 0
    unmatched: int = 0
    updated: int = 0
    failed: int = 0
    cancelled: bool = False
    images: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    @property
    def ingested(self):
        return self.matched + self.unmatched

    def to_dict(self):
        return {
            "ingested": self.ingested,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "updated": self.updated,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "failures": list(self.failures),
            "images": [img.uid for img in self.images],
        }


def _now():
    return datetime.now(timezone.utc)


def _audit(actor, action, image=None, payload=None):
    db.session.add(
        AuditLog(
            actor_id=actor.id,
            action=action,
            image_uid=image.uid if image is not None else None,
            payload=payload,
        )
    )


def _audit_batch(actor, summary, error=None):
    payload = summary.to_dict() | {"images": None}
    if error:
        payload["error"] = error
    with writer_lock():
        _audit(actor, "BATCH_UPLOAD", payload=payload)
        db.session.commit()


def _commit_with_stats(catalog):
    recompute_stats(catalog, commit=False)
    db.session.commit()


def get_image(uid):
    return ProductImage.query.filter_by(uid=uid).first()


def is_privileged(actor):
    return actor.uploader_type in current_app.config["PRIVILEGED_UPLOADER_TYPES"]


def prepare(data, file_name):
    """Compress and thumbnail one upload. Raises InvalidImage."""
    config = current_app.config
    compressed = image_service.compress(
        data,
        max_size_bytes=config["MAX_COMPRESSED_SIZE_BYTES"],
        initial_quality=config["INITIAL_QUALITY"],
        max_dimension=config["MAX_IMAGE_DIMENSION"],
    )
    thumbnail = image_service.create_thumbnail(
        compressed.data, max_size=config["THUMBNAIL_SIZE"]
    )
    return PreparedImage(
        file_name=file_name,
        original_size=len(data),
        compressed=compressed,
        thumbnail=thumbnail,
    )


def _append(prepared, actor, part_number, catalog):
    """Match and store a prepared image. Caller holds the writer lock."""
    resolved, is_auto_matched = part_numbers.resolve(prepared.file_name, part_number)
    result = match(resolved, catalog)

    uid = generate_image_uid()
    image = ProductImage(
        uid=uid,
        part_number=result.part_number,
        file_name=prepared.file_name,
        file_url=f"/img/{uid}",
        thumbnail_url=f"/img/{uid}/thumb",
        image_data=prepared.compressed.data,
        thumbnail_data=prepared.thumbnail,
        original_size=prepared.original_size,
        compressed_size=prepared.compressed.size,
        width=prepared.compressed.width,
        height=prepared.compressed.height,
        uploaded_by=actor.id,
        uploader_type=actor.uploader_type,
        uploader_name=actor.display_name,
        is_auto_matched=is_auto_matched,
        is_linked_to_product=result.product is not None,
        created_at=_now(),
    )
    if is_privileged(actor):
        image.status = "AUTO_MATCHED"
        image.approved_at = image.created_at
        image.approved_by = actor.id
    else:
        image.status = "PENDING"
    if result.has_previous_image:
        image.admin_notes = DUPLICATE_NOTE.format(part_number=result.part_number)

    db.session.add(image)
    _audit(
        actor,
        "UPLOAD",
        image,
        {
            "file_name": prepared.file_name,
            "part_number": result.part_number,
            "linked": image.is_linked_to_product,
            "duplicate": result.has_previous_image,
        },
    )
    _commit_with_stats(catalog)
    return image, result


def _ingest(data, file_name, actor, part_number, catalog):
    prepared = prepare(data, file_name)
    with writer_lock():
        return _append(prepared, actor, part_number, catalog)


def ingest_file(data, file_name, actor, part_number=None, catalog=None):
    """Compress, match and store a single upload.

    Raises:
        InvalidImage when the file cannot be decoded.
    """
    image, result = _ingest(data, file_name, actor, part_number, catalog or default_catalog())
    logger.info(
        "Ingested %s as %s (part=%s linked=%s duplicate=%s)",
        file_name,
        image.uid,
        image.part_number or "-",
        image.is_linked_to_product,
        result.has_previous_image,
    )
    return image


def ingest_batch(files, actor, catalog=None, progress=None, should_cancel=None, total=None):
    """Ingest ``(file_name, data)`` pairs one after another.

    Each file is fully stored before the next starts, so duplicate detection
    sees earlier files of the same batch. Undecodable files are counted as
    failed and skipped. ``should_cancel`` is checked between files.
    """
    catalog = catalog or default_catalog()
    summary = BatchSummary()
    if total is None and hasattr(files, "__len__"):
        total = len(files)

    processed = 0
    try:
        for file_name, data in files:
            if should_cancel is not None and should_cancel():
                summary.cancelled = True
                logger.info("Batch cancelled after %d files", processed)
                break
            try:
                image, result = _ingest(data, file_name, actor, None, catalog)
            except InvalidImage as e:
                summary.failed += 1
                summary.failures.append(file_name)
                logger.warning("Skipping %s: %s", file_name, e)
            else:
                summary.images.append(image)
                if image.is_linked_to_product:
                    summary.matched += 1
                else:
                    summary.unmatched += 1
                if result.has_previous_image:
                    summary.updated += 1
            processed += 1
            if progress is not None:
                progress(processed, total)
    except ArchiveFormatError as e:
        # Files stored before the failure stay; report them with the error
        _audit_batch(actor, summary, error=e.message)
        e.details["summary"] = summary
        raise

    _audit_batch(actor, summary)
    logger.info(
        "Batch done: %d matched, %d unmatched, %d updated, %d failed",
        summary.matched,
        summary.unmatched,
        summary.updated,
        summary.failed,
    )
    return summary


def ingest_archive(data, actor, catalog=None, progress=None, should_cancel=None):
    """Ingest every image inside a zip archive.

    ``progress(processed, total)`` reports archive entries read.

    Raises:
        ArchiveFormatError when the container or one of its members cannot
        be read. Members stored before a corrupt one are kept, and the
        partial ``BatchSummary`` is attached as ``details["summary"]``.
    """
    members = archive_service.extract_images(data, progress=progress)
    return ingest_batch(members, actor, catalog=catalog, should_cancel=should_cancel)


def approve(uid, actor, catalog=None):
    """PENDING -> APPROVED. Returns None if missing or not pending."""
    with writer_lock():
        image = get_image(uid)
        if not image or image.status != "PENDING":
            return None
        image.status = "APPROVED"
        image.approved_at = _now()
        image.approved_by = actor.id
        _audit(actor, "APPROVE", image)
        _commit_with_stats(catalog or default_catalog())
    return image


def reject(uid, actor, reason=None, catalog=None):
    """PENDING -> REJECTED. Returns None if missing or not pending."""
    with writer_lock():
        image = get_image(uid)
        if not image or image.status != "PENDING":
            return None
        image.status = "REJECTED"
        image.rejection_reason = (reason or "").strip() or None
        _audit(actor, "REJECT", image, {"reason": image.rejection_reason})
        _commit_with_stats(catalog or default_catalog())
    return image


def archive(uid, actor, note=None, catalog=None):
    """Soft-delete: keep the row, move it to ARCHIVED."""
    with writer_lock():
        image = get_image(uid)
        if not image or image.status == "ARCHIVED":
            return None
        previous = image.status
        image.status = "ARCHIVED"
        image.admin_notes = (note or "").strip() or DEFAULT_ARCHIVE_NOTE
        _audit(actor, "ARCHIVE", image, {"previous_status": previous})
        _commit_with_stats(catalog or default_catalog())
    return image


def delete_permanently(uid, actor, confirm=False, catalog=None):
    """Remove an image row for good. Returns False if it does not exist.

    Raises:
        PermanentDeleteConfirmationRequired unless ``confirm`` is true.
    """
    if not confirm:
        raise PermanentDeleteConfirmationRequired(
            "Permanent delete cannot be undone; pass confirm to proceed", uid=uid
        )
    with writer_lock():
        image = get_image(uid)
        if not image:
            return False
        _audit(
            actor,
            "DELETE",
            image,
            {"file_name": image.file_name, "part_number": image.part_number},
        )
        db.session.delete(image)
        _commit_with_stats(catalog or default_catalog())
    logger.info("Permanently deleted %s", uid)
    return True


def relink(uid, part_number, actor, catalog=None):
    """Point an image at another part number (or unlink with ``""``)."""
    catalog = catalog or default_catalog()
    with writer_lock():
        image = get_image(uid)
        if not image:
            return None
        old_part_number = image.part_number
        result = match(part_numbers.from_explicit(part_number), catalog, exclude_uid=uid)

        image.part_number = result.part_number
        image.is_linked_to_product = result.product is not None
        image.is_auto_matched = False
        if result.has_previous_image and result.part_number != old_part_number:
            note = RELINK_DUPLICATE_NOTE.format(part_number=result.part_number)
            # Keep earlier notes, e.g. the archive note
            image.admin_notes = f"{image.admin_notes}\n{note}" if image.admin_notes else note
        _audit(actor, "RELINK", image, {"old": old_part_number, "new": result.part_number})
        _commit_with_stats(catalog)
    return image


def get_stats(refresh=False, catalog=None):
    """Current stats projection, rebuilt when missing or when ``refresh`` is set."""
    if not refresh:
        cached = Settings.get_cached_stats()
        if cached:
            return ImageStats(**cached)
    with writer_lock():
        return recompute_stats(catalog or default_catalog())
