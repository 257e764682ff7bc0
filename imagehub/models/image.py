import secrets
from datetime import datetime, timezone
from imagehub.extensions import db


def generate_image_uid():
    return f"img-{secrets.token_hex(8)}"


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(
        db.String(32), unique=True, nullable=False, index=True, default=generate_image_uid
    )
    part_number = db.Column(db.String(64), nullable=False, default="", index=True)
    file_name = db.Column(db.String(512), nullable=False)
    file_url = db.Column(db.String(1024))
    thumbnail_url = db.Column(db.String(1024))
    image_data = db.deferred(db.Column(db.LargeBinary))  # JPEG bytes
    thumbnail_data = db.deferred(db.Column(db.LargeBinary))
    original_size = db.Column(db.Integer, nullable=False, default=0)
    compressed_size = db.Column(db.Integer, nullable=False, default=0)
    width = db.Column(db.Integer)
    height = db.Column(db.Integer)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)
    uploaded_by = db.Column(db.String(100), nullable=False)
    uploader_type = db.Column(db.String(30), nullable=False, index=True)
    uploader_name = db.Column(db.String(255), nullable=False, default="")
    is_auto_matched = db.Column(db.Boolean, nullable=False, default=False)
    is_linked_to_product = db.Column(db.Boolean, nullable=False, default=False)
    admin_notes = db.Column(db.Text)
    rejection_reason = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    approved_at = db.Column(db.DateTime(timezone=True))
    approved_by = db.Column(db.String(100))

    STATUSES = {"PENDING", "APPROVED", "REJECTED", "AUTO_MATCHED", "ARCHIVED"}
    # Statuses that count as a live image for a part number
    LIVE_STATUSES = ("APPROVED", "AUTO_MATCHED")

    @property
    def is_public(self):
        return self.status in self.LIVE_STATUSES

    @property
    def is_archived(self):
        return self.status == "ARCHIVED"

    def to_dict(self):
        return {
            "id": self.uid,
            "part_number": self.part_number,
            "file_name": self.file_name,
            "file_url": self.file_url,
            "thumbnail_url": self.thumbnail_url,
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
            "width": self.width,
            "height": self.height,
            "status": self.status,
            "uploaded_by": self.uploaded_by,
            "uploader_type": self.uploader_type,
            "uploader_name": self.uploader_name,
            "is_auto_matched": self.is_auto_matched,
            "is_linked_to_product": self.is_linked_to_product,
            "admin_notes": self.admin_notes,
            "rejection_reason": self.rejection_reason,
            "created_at": _isoformat(self.created_at),
            "approved_at": _isoformat(self.approved_at),
            "approved_by": self.approved_by,
        }

    def __repr__(self):
        return f"<ProductImage {self.uid} {self.part_number or '-'} [{self.status}]>"


def _isoformat(value):
    return value.isoformat() if value else None
