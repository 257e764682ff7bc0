"""Search, status filtering and pagination over stored images.

``filter_images``/``paginate`` work on in-memory sequences; ``browse_images``
applies the same rules in SQL, newest first.
"""
import math
from dataclasses import dataclass, replace

from imagehub.extensions import db
from imagehub.models.image import ProductImage

DEFAULT_PER_PAGE = 50
ALL_STATUSES = "ALL"


@dataclass
class Page:
    items: list
    page: int
    per_page: int
    total: int

    @property
    def total_pages(self):
        return math.ceil(self.total / self.per_page) if self.per_page else 0

    @property
    def has_next(self):
        return self.page < self.total_pages

    @property
    def has_prev(self):
        return self.page > 1

    def to_dict(self, serialize=None):
        serialize = serialize or (lambda item: item.to_dict())
        return {
            "items": [serialize(item) for item in self.items],
            "page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
        }


@dataclass(frozen=True)
class BrowseState:
    """What the browse view is showing. Changing a filter returns to page 1."""

    search: str = ""
    status: str = ALL_STATUSES
    page: int = 1

    def with_search(self, search):
        return replace(self, search=search or "", page=1)

    def with_status(self, status):
        return replace(self, status=status or ALL_STATUSES, page=1)

    def with_page(self, page):
        return replace(self, page=page)


def clamp_page(page, total_pages):
    try:
        page = int(page)
    except (TypeError, ValueError):
        page = 1
    return min(max(page, 1), max(total_pages, 1))


def _matches(image, term, status):
    if status and status != ALL_STATUSES and image.status != status:
        return False
    if not term:
        return True
    return any(
        term in (value or "").lower()
        for value in (image.part_number, image.file_name, image.uploader_name)
    )


def filter_images(images, search="", status=ALL_STATUSES):
    """Case-insensitive substring match on part number, file name and uploader name."""
    term = (search or "").strip().lower()
    return [image for image in images if _matches(image, term, status)]


def paginate(items, page=1, per_page=DEFAULT_PER_PAGE):
    items = list(items)
    total_pages = math.ceil(len(items) / per_page)
    page = clamp_page(page, total_pages)
    start = (page - 1) * per_page
    return Page(items[start:start + per_page], page, per_page, len(items))


def browse_images(search="", status=ALL_STATUSES, page=1, per_page=DEFAULT_PER_PAGE):
    query = ProductImage.query
    if status and status != ALL_STATUSES:
        query = query.filter(ProductImage.status == status)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(
            db.or_(
                ProductImage.part_number.ilike(pattern),
                ProductImage.file_name.ilike(pattern),
                ProductImage.uploader_name.ilike(pattern),
            )
        )

    total = query.count()
    page = clamp_page(page, math.ceil(total / per_page))
    items = (
        query.order_by(ProductImage.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return Page(items, page, per_page, total)


def browse(state, per_page=DEFAULT_PER_PAGE):
    return browse_images(state.search, state.status, state.page, per_page)


def pending_images():
    """Images awaiting review, oldest first."""
    return (
        ProductImage.query.filter_by(status="PENDING")
        .order_by(ProductImage.id.asc())
        .all()
    )
