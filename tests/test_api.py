"""Tests for the JSON API and public media routes."""
import io

import imagehub.extensions as ext
from imagehub.models.audit_log import AuditLog

ADMIN = {"X-Actor-Id": "admin-1", "X-Actor-Name": "Alice Admin", "X-Actor-Type": "ADMIN"}
SUPPLIER = {
    "X-Actor-Id": "sup-7",
    "X-Actor-Name": "Acme Parts",
    "X-Actor-Type": "SUPPLIER_LOCAL",
}


def _upload(client, data, file_name, headers=ADMIN, **form):
    form["file"] = (io.BytesIO(data), file_name)
    return client.post(
        "/api/images", data=form, headers=headers, content_type="multipart/form-data"
    )


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code in (200, 503)
    data = resp.get_json()
    assert "status" in data
    assert data["redis"] == "not configured"


def test_health_does_not_leak_internal_errors(client, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("database password leaked")

    monkeypatch.setattr(ext.db.session, "execute", boom)

    resp = client.get("/health")
    assert resp.status_code == 503
    data = resp.get_json()
    assert data["db"] == "error"
    assert "password" not in str(data).lower()


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------


def test_admin_upload_is_public(client, catalog, make_image):
    resp = _upload(client, make_image(), "ABC-123.jpg")
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["status"] == "AUTO_MATCHED"
    assert body["is_linked_to_product"] is True

    img = client.get(body["file_url"])
    assert img.status_code == 200
    assert img.mimetype == "image/jpeg"

    thumb = client.get(body["thumbnail_url"])
    assert thumb.status_code == 200


def test_pending_images_are_not_public(client, catalog, make_image):
    body = _upload(client, make_image(), "ABC-123.jpg", headers=SUPPLIER).get_json()
    assert body["status"] == "PENDING"

    assert client.get(f"/img/{body['id']}").status_code == 404
    assert client.get(f"/img/{body['id']}/thumb").status_code == 404
    assert client.get(f"/img/{body['id']}/watermarked").status_code == 404


def test_upload_requires_actor(client, make_image):
    resp = _upload(client, make_image(), "ABC-123.jpg", headers={})
    assert resp.status_code == 400
    assert "error" in resp.get_json()


def test_upload_rejects_unsupported_types(client, make_image):
    resp = _upload(client, b"hello", "notes.txt")
    assert resp.status_code == 415


def test_upload_rejects_corrupt_images(client):
    resp = _upload(client, b"not really a jpeg", "ABC-123.jpg")
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "Invalid image file"


def test_explicit_part_number(client, catalog, make_image):
    body = _upload(client, make_image(), "IMG_0001.jpg", part_number="xyz-999").get_json()
    assert body["part_number"] == "XYZ-999"
    assert body["is_auto_matched"] is False


def test_bulk_upload(client, catalog, make_image):
    resp = client.post(
        "/api/images/bulk",
        data={
            "files": [
                (io.BytesIO(make_image()), "ABC-123.jpg"),
                (io.BytesIO(make_image()), "XYZ-999.jpg"),
                (io.BytesIO(b"junk"), "readme.txt"),
            ]
        },
        headers=ADMIN,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["matched"] == 2
    assert body["skipped"] == ["readme.txt"]


def test_archive_upload_runs_inline_without_queue(client, catalog, make_image, make_zip):
    data = make_zip(
        [
            ("ABC-123.jpg", make_image()),
            ("nothing-here.png", make_image(fmt="PNG")),
            ("notes.txt", b"hi"),
        ]
    )
    resp = client.post(
        "/api/images/archive",
        data={"file": (io.BytesIO(data), "parts.zip")},
        headers=ADMIN,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 202
    batch = resp.get_json()
    assert batch["status"] == "DONE"
    assert batch["matched"] == 1
    assert batch["unmatched"] == 1
    assert batch["processed"] == batch["total"] == 3

    resp = client.get(f"/api/batches/{batch['id']}")
    assert resp.get_json()["status"] == "DONE"
    assert client.post(f"/api/batches/{batch['id']}/cancel", headers=ADMIN).status_code == 409


def test_archive_upload_requires_zip(client, make_image):
    resp = client.post(
        "/api/images/archive",
        data={"file": (io.BytesIO(make_image()), "photo.jpg")},
        headers=ADMIN,
        content_type="multipart/form-data",
    )
    assert resp.status_code == 400


def test_unknown_batch(client):
    assert client.get("/api/batches/batch-missing").status_code == 404


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


def test_list_images_and_pending(client, catalog, make_image):
    _upload(client, make_image(), "ABC-123.jpg")
    _upload(client, make_image(), "XYZ-999.jpg", headers=SUPPLIER)

    listing = client.get("/api/images").get_json()
    assert listing["total"] == 2
    assert listing["page"] == 1
    assert listing["items"][0]["part_number"] == "XYZ-999"  # newest first

    filtered = client.get("/api/images?status=pending").get_json()
    assert [i["part_number"] for i in filtered["items"]] == ["XYZ-999"]

    searched = client.get("/api/images?search=acme").get_json()
    assert searched["total"] == 1

    pending = client.get("/api/images/pending").get_json()
    assert len(pending) == 1


def test_stats_and_catalog(client, catalog, make_image):
    _upload(client, make_image(), "ABC-123.jpg")

    stats = client.get("/api/stats").get_json()
    assert stats["total_products"] == 3
    assert stats["products_with_images"] == 1
    assert stats["coverage_percent"] == 33

    results = client.get("/api/catalog?q=abc").get_json()
    assert results == [
        {"part_number": "ABC-123", "name": "Alternator bracket", "brand": "Acme", "has_image": True}
    ]


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def test_review_requires_admin(client, catalog, make_image):
    uid = _upload(client, make_image(), "ABC-123.jpg", headers=SUPPLIER).get_json()["id"]

    assert client.post(f"/api/images/{uid}/approve", headers=SUPPLIER).status_code == 403

    resp = client.post(f"/api/images/{uid}/approve", headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()["approved_by"] == "admin-1"
    assert client.get(f"/img/{uid}").status_code == 200


def test_reject_twice_conflicts(client, catalog, make_image):
    uid = _upload(client, make_image(), "ABC-123.jpg", headers=SUPPLIER).get_json()["id"]

    resp = client.post(f"/api/images/{uid}/reject", json={"reason": "blurry"}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.get_json()["rejection_reason"] == "blurry"
    assert resp.get_json()["approved_at"] is None

    assert client.post(f"/api/images/{uid}/reject", headers=ADMIN).status_code == 409
    assert client.post("/api/images/img-missing/reject", headers=ADMIN).status_code == 404


def test_archive_and_relink(client, catalog, make_image):
    uid = _upload(client, make_image(), "ABC-123.jpg").get_json()["id"]

    resp = client.patch(f"/api/images/{uid}", json={"part_number": "xyz-999"}, headers=ADMIN)
    assert resp.get_json()["part_number"] == "XYZ-999"
    assert resp.get_json()["status"] == "AUTO_MATCHED"

    resp = client.post(f"/api/images/{uid}/archive", json={"note": "old photo"}, headers=ADMIN)
    assert resp.get_json()["status"] == "ARCHIVED"
    assert client.get(f"/img/{uid}").status_code == 404


def test_delete_needs_confirmation(client, catalog, make_image):
    uid = _upload(client, make_image(), "ABC-123.jpg").get_json()["id"]

    resp = client.delete(f"/api/images/{uid}", headers=ADMIN)
    assert resp.status_code == 409

    resp = client.delete(f"/api/images/{uid}?confirm=1", headers=ADMIN)
    assert resp.status_code == 204
    assert client.get(f"/api/images/{uid}").status_code == 404
    assert client.delete(f"/api/images/{uid}?confirm=1", headers=ADMIN).status_code == 404
    assert AuditLog.query.filter_by(action="DELETE").count() == 1


# ---------------------------------------------------------------------------
# Watermark
# ---------------------------------------------------------------------------


def test_watermark_defaults(client):
    body = client.get("/api/watermark").get_json()
    assert body["text"] == "TEST MARK"
    assert body["rotation"] == 330
    assert body["enabled"] is True


def test_watermark_update_is_partial_and_clamped(client):
    resp = client.put("/api/watermark", json={"opacity": 5, "position": "tile"}, headers=ADMIN)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["opacity"] == 0.9
    assert body["position"] == "TILE"
    assert body["text"] == "TEST MARK"

    assert client.get("/api/watermark").get_json()["position"] == "TILE"
    assert AuditLog.query.filter_by(action="SET_WATERMARK").count() == 1


def test_watermark_update_validation(client):
    resp = client.put("/api/watermark", json={"position": "MIDDLE"}, headers=ADMIN)
    assert resp.status_code == 400
    assert "position" in resp.get_json()["error"]

    assert client.put("/api/watermark", json={"opacity": 0.5}, headers=SUPPLIER).status_code == 403


def test_watermark_preview(client):
    resp = client.get("/api/watermark/preview?position=TILE")
    assert resp.status_code == 200
    assert resp.mimetype == "image/png"


def test_watermarked_image(client, catalog, make_image):
    body = _upload(client, make_image(size=(400, 300), color=(128, 128, 128)), "ABC-123.jpg").get_json()

    original = client.get(body["file_url"]).data
    resp = client.get(f"/img/{body['id']}/watermarked")

    assert resp.status_code == 200
    assert resp.mimetype == "image/jpeg"
    assert resp.data != original
