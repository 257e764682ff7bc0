from datetime import datetime, timezone
from imagehub.extensions import db


class Product(db.Model):
    """Catalog item that images are linked to by part number."""

    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    part_number = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default="")
    brand = db.Column(db.String(255), default="")
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def identifier(self):
        return self.part_number

    @property
    def display_name(self):
        return self.name

    def to_dict(self):
        return {
            "part_number": self.part_number,
            "name": self.name,
            "brand": self.brand,
        }

    def __repr__(self):
        return f"<Product {self.part_number}: {self.name}>"
