import secrets
from datetime import datetime, timezone
from imagehub.extensions import db


class UploadBatch(db.Model):
    """An archive upload processed in the background."""

    __tablename__ = "upload_batches"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(
        db.String(32),
        unique=True,
        nullable=False,
        index=True,
        default=lambda: f"batch-{secrets.token_hex(8)}",
    )
    file_name = db.Column(db.String(512), nullable=False)
    archive_data = db.deferred(db.Column(db.LargeBinary))
    actor_id = db.Column(db.String(100), nullable=False)
    actor_name = db.Column(db.String(255), nullable=False, default="")
    actor_type = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="QUEUED", index=True)
    processed = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    matched = db.Column(db.Integer, nullable=False, default=0)
    unmatched = db.Column(db.Integer, nullable=False, default=0)
    updated = db.Column(db.Integer, nullable=False, default=0)
    failed = db.Column(db.Integer, nullable=False, default=0)
    cancel_requested = db.Column(db.Boolean, nullable=False, default=False)
    error = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    finished_at = db.Column(db.DateTime(timezone=True))

    STATUSES = {"QUEUED", "RUNNING", "DONE", "FAILED", "CANCELLED"}
    FINAL_STATUSES = {"DONE", "FAILED", "CANCELLED"}

    @property
    def is_finished(self):
        return self.status in self.FINAL_STATUSES

    def to_dict(self):
        return {
            "id": self.uid,
            "file_name": self.file_name,
            "status": self.status,
            "processed": self.processed,
            "total": self.total,
            "matched": self.matched,
            "unmatched": self.unmatched,
            "updated": self.updated,
            "failed": self.failed,
            "cancel_requested": self.cancel_requested,
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }

    def __repr__(self):
        return f"<UploadBatch {self.uid} [{self.status}] {self.processed}/{self.total}>"
