#!/usr/bin/env python3
"""Seed a sample catalog and a few generated images for local development."""
import io
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image as PILImage, ImageDraw

from imagehub import create_app
from imagehub.extensions import db
from imagehub.models.actor import Actor
from imagehub.models.product import Product
from imagehub.services import image_record_service

app = create_app()

SAMPLE_PRODUCTS = [
    ("BRK-1001", "Front brake pad set", "Stopwell"),
    ("BRK-1002", "Rear brake disc", "Stopwell"),
    ("FLT-2001", "Oil filter", "Purex"),
    ("FLT-2002", "Cabin air filter", "Purex"),
    ("SPK-3001", "Iridium spark plug", "Sparko"),
    ("WIP-4001", "Wiper blade 22in", "ClearView"),
    ("BAT-5001", "12V starter battery 60Ah", "Voltix"),
    ("LMP-6001", "H7 headlight bulb", "Lumen"),
]

# Uploaded by a supplier so they land in the review queue
SAMPLE_UPLOADS = [
    ("BRK-1001.jpg", "c0392b"),
    ("FLT-2001.png", "2c3e50"),
    ("SPK-3001.jpg", "27ae60"),
    ("unknown-part.jpg", "8e44ad"),
]


def _placeholder(label, color, size=(800, 600)):
    img = PILImage.new("RGB", size, f"#{color}")
    ImageDraw.Draw(img).text((40, 40), label, fill="#ffffff")
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def seed():
    with app.app_context():
        db.create_all()
        if Product.query.first():
            print("Catalog already exists, skipping seed.")
            return

        for part_number, name, brand in SAMPLE_PRODUCTS:
            db.session.add(Product(part_number=part_number, name=name, brand=brand))
            print(f"  Created {part_number}: {name}")
        db.session.commit()

        supplier = Actor.create("seed-supplier", "Sample Supplier", "SUPPLIER_LOCAL")
        summary = image_record_service.ingest_batch(
            [(name, _placeholder(name, color)) for name, color in SAMPLE_UPLOADS],
            supplier,
        )
        print(
            f"\nSeeded {len(SAMPLE_PRODUCTS)} products and {summary.ingested} images "
            f"({summary.matched} matched, {summary.unmatched} unmatched)."
        )


if __name__ == "__main__":
    seed()
