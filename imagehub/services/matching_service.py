from collections import namedtuple
from imagehub.models.image import ProductImage
from imagehub.services.part_numbers import normalize

MatchResult = namedtuple("MatchResult", ["part_number", "product", "has_previous_image"])


def has_previous_image(part_number, exclude_uid=None):
    """True when a live (approved or auto-matched) image already uses ``part_number``."""
    part_number = normalize(part_number)
    if not part_number:
        return False
    query = ProductImage.query.filter(
        ProductImage.part_number == part_number,
        ProductImage.status.in_(ProductImage.LIVE_STATUSES),
    )
    if exclude_uid:
        query = query.filter(ProductImage.uid != exclude_uid)
    return query.first() is not None


def match(part_number, catalog, exclude_uid=None):
    """Decide whether ``part_number`` links to a catalog item and duplicates an image.

    An empty part number never matches and is never a duplicate.
    """
    part_number = normalize(part_number)
    if not part_number:
        return MatchResult("", None, False)
    return MatchResult(
        part_number,
        catalog.find_by_identifier(part_number),
        has_previous_image(part_number, exclude_uid=exclude_uid),
    )
