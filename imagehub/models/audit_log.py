from datetime import datetime, timezone
from imagehub.extensions import db


class AuditLog(db.Model):
    __tablename__ = "audit_log"

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(db.String(100), nullable=False, index=True)
    action = db.Column(db.String(50), nullable=False)
    image_uid = db.Column(db.String(32), nullable=True, index=True)
    payload = db.Column(db.JSON)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    ACTIONS = {
        "UPLOAD",
        "BATCH_UPLOAD",
        "APPROVE",
        "REJECT",
        "ARCHIVE",
        "DELETE",
        "RELINK",
        "SET_WATERMARK",
    }

    def __repr__(self):
        return f"<AuditLog {self.action} by {self.actor_id}>"
