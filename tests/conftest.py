import io
import zipfile

import pytest
from PIL import Image as PILImage

from imagehub import create_app
from imagehub.extensions import db as _db
from imagehub.models.actor import Actor
from imagehub.models.product import Product
from imagehub.services.catalog_service import DatabaseCatalog


@pytest.fixture
def app():
    """Create application for testing.

    Services commit, so every test gets a fresh in-memory database.
    """
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def admin():
    return Actor.create("admin-1", "Alice Admin", "ADMIN")


@pytest.fixture
def supplier():
    return Actor.create("sup-7", "Acme Parts", "SUPPLIER_LOCAL")


@pytest.fixture
def catalog(db):
    """A small catalog: ABC-123, XYZ-999 and BRK-1001."""
    for part_number, name in [
        ("ABC-123", "Alternator bracket"),
        ("XYZ-999", "Exhaust gasket"),
        ("BRK-1001", "Front brake pad set"),
    ]:
        db.session.add(Product(part_number=part_number, name=name, brand="Acme"))
    db.session.commit()
    return DatabaseCatalog()


@pytest.fixture
def make_image():
    """Factory for encoded image bytes generated with Pillow."""

    def _make(size=(64, 48), color=(200, 30, 30), fmt="JPEG", mode="RGB"):
        img = PILImage.new(mode, size, color)
        buffer = io.BytesIO()
        img.save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


@pytest.fixture
def make_zip():
    """Factory for zip bytes; names ending in ``/`` become directory entries."""

    def _make(members):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            for name, data in members:
                if name.endswith("/"):
                    archive.writestr(zipfile.ZipInfo(name), b"")
                else:
                    archive.writestr(name, data)
        return buffer.getvalue()

    return _make
