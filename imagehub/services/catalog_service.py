"""Read-only catalog lookups backed by the ``products`` table.

Any object exposing ``find_by_identifier``, ``list_all`` and ``count`` can be
passed to the ingestion and matching services in place of ``DatabaseCatalog``.
"""
import csv
import io
from imagehub.extensions import db, writer_lock
from imagehub.models.product import Product
from imagehub.models.image import ProductImage
from imagehub.services.part_numbers import normalize
from imagehub.services.stats_service import recompute_stats


class DatabaseCatalog:
    def find_by_identifier(self, identifier):
        identifier = normalize(identifier)
        if not identifier:
            return None
        return Product.query.filter_by(part_number=identifier).first()

    def list_all(self):
        return Product.query.order_by(Product.part_number).all()

    def count(self):
        return db.session.query(db.func.count(Product.id)).scalar() or 0


def default_catalog():
    return DatabaseCatalog()


def search_catalog(term, limit=50):
    """Products whose part number or name contains ``term``, with image presence.

    Returns an empty list for a blank term.
    """
    term = (term or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    products = (
        Product.query.filter(
            db.or_(Product.part_number.ilike(pattern), Product.name.ilike(pattern))
        )
        .order_by(Product.part_number)
        .limit(limit)
        .all()
    )
    with_images = {
        pn
        for (pn,) in db.session.query(ProductImage.part_number)
        .filter(
            ProductImage.part_number.in_([p.part_number for p in products]),
            ProductImage.is_linked_to_product.is_(True),
            ProductImage.status != "ARCHIVED",
        )
        .distinct()
    }
    return [
        dict(p.to_dict(), has_image=p.part_number in with_images) for p in products
    ]


def import_products_csv(text):
    """Upsert catalog items from CSV text with ``part_number,name,brand`` columns.

    Runs under the writer lock and rebuilds the stats projection. Returns the
    number of rows written.
    """
    written = 0
    with writer_lock():
        for row in csv.DictReader(io.StringIO(text)):
            part_number = normalize(row.get("part_number"))
            if not part_number:
                continue
            product = Product.query.filter_by(part_number=part_number).first()
            if product is None:
                product = Product(part_number=part_number)
                db.session.add(product)
            product.name = (row.get("name") or "").strip()
            product.brand = (row.get("brand") or "").strip()
            written += 1
        recompute_stats(default_catalog(), commit=False)
        db.session.commit()
    return written
