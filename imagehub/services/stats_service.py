"""Aggregate statistics over the image collection.

``ImageStats`` is a projection: it is always rebuilt from the full collection,
never updated incrementally.
"""
from dataclasses import asdict, dataclass, field
from imagehub.extensions import db
from imagehub.models.image import ProductImage
from imagehub.models.settings import Settings

UPLOADER_KEYS = {
    "ADMIN": "admin",
    "SUPPLIER_LOCAL": "supplier_local",
    "SUPPLIER_INTERNATIONAL": "supplier_international",
    "MARKETER": "marketer",
}


@dataclass
class ImageStats:
    total_products: int = 0
    products_with_images: int = 0
    products_without_images: int = 0
    coverage_percent: int = 0
    pending_approval: int = 0
    total_images: int = 0
    images_by_uploader: dict = field(
        default_factory=lambda: {key: 0 for key in UPLOADER_KEYS.values()}
    )
    unmatched_images: int = 0
    archived_images: int = 0

    def to_dict(self):
        return asdict(self)


def compute_stats(rows, total_products):
    """Build ``ImageStats`` from ``(status, uploader_type, part_number, is_linked)`` rows."""
    stats = ImageStats(total_products=total_products)
    linked_part_numbers = set()

    for status, uploader_type, part_number, is_linked in rows:
        stats.total_images += 1
        if status == "PENDING":
            stats.pending_approval += 1
        elif status == "ARCHIVED":
            stats.archived_images += 1
        if not is_linked:
            stats.unmatched_images += 1
        elif status in ProductImage.LIVE_STATUSES and part_number:
            linked_part_numbers.add(part_number)
        key = UPLOADER_KEYS.get(uploader_type)
        if key:
            stats.images_by_uploader[key] += 1

    stats.products_with_images = len(linked_part_numbers)
    stats.products_without_images = max(total_products - stats.products_with_images, 0)
    if total_products > 0:
        stats.coverage_percent = round(stats.products_with_images / total_products * 100)
    return stats


def recompute_stats(catalog, commit=True):
    """Rebuild the stats projection from every stored image and cache it."""
    rows = db.session.query(
        ProductImage.status,
        ProductImage.uploader_type,
        ProductImage.part_number,
        ProductImage.is_linked_to_product,
    ).all()
    stats = compute_stats(rows, catalog.count())
    Settings.set_cached_stats(stats.to_dict(), commit=commit)
    return stats
