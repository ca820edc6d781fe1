import re
from io import BytesIO

import pytest
from PIL import Image
from sqlmodel import Session, select

from reportmaker.core.errors import ValidationFailed
from reportmaker.models.report import ReportItemPhoto
from reportmaker.services import photos as photos_svc


def _item(client):
    report = client.post("/api/reports").json()
    return report["id"], report["items"][0]["id"]


def _upload(client, item_id, data, name="photo.jpg", mime="image/jpeg"):
    return client.post(f"/api/items/{item_id}/photos", files={"file": (name, data, mime)})


def test_prepare_image_downscales_longest_side(make_image):
    prepared = photos_svc.prepare_image(make_image("JPEG", size=(3200, 1200)), "big.jpeg", max_size=1600)
    assert prepared.content_type == "image/jpeg"
    assert prepared.filename == "big.jpg"
    with Image.open(BytesIO(prepared.data)) as img:
        assert img.size == (1600, 600)


def test_prepare_image_keeps_small_images_and_png(make_image):
    prepared = photos_svc.prepare_image(make_image("PNG", size=(40, 30)), "tiny shot.png", max_size=1600)
    assert prepared.content_type == "image/png"
    assert prepared.filename == "tiny_shot.png"
    with Image.open(BytesIO(prepared.data)) as img:
        assert img.format == "PNG"
        assert img.size == (40, 30)


@pytest.mark.parametrize("raw", [b"", b"not an image at all"])
def test_prepare_image_rejects_non_images(raw):
    with pytest.raises(ValidationFailed):
        photos_svc.prepare_image(raw, "x.jpg")


@pytest.mark.parametrize("size", [(8000, 8000), (20000, 20000)])
def test_prepare_image_rejects_oversized_sources(make_oversized_png, size):
    with pytest.raises(ValidationFailed):
        photos_svc.prepare_image(make_oversized_png(*size), "huge.png")


def test_storage_key_layout():
    key = photos_svc.build_storage_key("u1", "r1", "i1", "front door.jpg", now_ms=1700000000000)
    assert key == "u1/r1/i1/1700000000000-front_door.jpg"


def test_upload_stores_blob_and_row(authed_client, fake_storage, db_engine, make_image):
    rid, item_id = _item(authed_client)
    r = _upload(authed_client, item_id, make_image("JPEG", size=(2400, 1800)), name="Front Door.JPG")
    assert r.status_code == 201, r.text
    body = r.json()

    key = body["storage_path"]
    assert re.fullmatch(rf"user-1/{rid}/{item_id}/\d+-Front_Door\.jpg", key)
    assert body["url"].startswith("https://blobs.example.test/")
    assert fake_storage.content_types[key] == "image/jpeg"
    with Image.open(BytesIO(fake_storage.blobs[key])) as img:
        assert max(img.size) == 1600

    with Session(db_engine) as s:
        rows = s.exec(select(ReportItemPhoto)).all()
        assert [p.storage_path for p in rows] == [key]


def test_free_plan_photo_limit(authed_client, fake_storage, jpeg_bytes):
    _, item_id = _item(authed_client)
    assert _upload(authed_client, item_id, jpeg_bytes).status_code == 201
    assert _upload(authed_client, item_id, jpeg_bytes).status_code == 201

    r = _upload(authed_client, item_id, jpeg_bytes)
    assert r.status_code == 403
    assert r.json()["error"]["details"]["resource"] == "photos"
    assert r.json()["error"]["details"]["limit"] == 2
    assert len(fake_storage.blobs) == 2


def test_premium_allows_more_photos(authed_client, set_plan, jpeg_bytes):
    set_plan("premium")
    _, item_id = _item(authed_client)
    for _ in range(4):
        assert _upload(authed_client, item_id, jpeg_bytes).status_code == 201
    assert _upload(authed_client, item_id, jpeg_bytes).status_code == 403


def test_non_image_upload_rejected(authed_client, fake_storage):
    _, item_id = _item(authed_client)
    r = _upload(authed_client, item_id, b"%PDF-1.4 nope", name="doc.pdf", mime="application/pdf")
    assert r.status_code == 422
    assert fake_storage.blobs == {}


def test_oversized_upload_rejected(authed_client, fake_storage, make_oversized_png):
    _, item_id = _item(authed_client)
    r = _upload(authed_client, item_id, make_oversized_png(20000, 20000), name="bomb.png", mime="image/png")
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "validation_error"
    assert fake_storage.blobs == {}


def test_list_photos_returns_signed_urls_in_upload_order(authed_client, jpeg_bytes, png_bytes):
    _, item_id = _item(authed_client)
    first = _upload(authed_client, item_id, jpeg_bytes, name="a.jpg").json()
    second = _upload(authed_client, item_id, png_bytes, name="b.png", mime="image/png").json()

    r = authed_client.get(f"/api/items/{item_id}/photos")
    assert r.status_code == 200
    listed = r.json()
    assert [p["id"] for p in listed] == [first["id"], second["id"]]
    assert all(p["url"] and p["storage_path"] in p["url"] for p in listed)


def test_delete_photo_removes_blob_then_row(authed_client, fake_storage, db_engine, jpeg_bytes):
    _, item_id = _item(authed_client)
    photo = _upload(authed_client, item_id, jpeg_bytes).json()

    assert authed_client.delete(f"/api/photos/{photo['id']}").status_code == 204
    assert fake_storage.deleted == [photo["storage_path"]]
    with Session(db_engine) as s:
        assert s.exec(select(ReportItemPhoto)).all() == []


def test_delete_photo_storage_failure_keeps_row(authed_client, fake_storage, db_engine, jpeg_bytes):
    _, item_id = _item(authed_client)
    photo = _upload(authed_client, item_id, jpeg_bytes).json()
    fake_storage.fail_delete = True

    r = authed_client.delete(f"/api/photos/{photo['id']}")
    assert r.status_code == 502
    with Session(db_engine) as s:
        assert len(s.exec(select(ReportItemPhoto)).all()) == 1


def test_photo_writes_blocked_on_final_report(authed_client, jpeg_bytes):
    rid, item_id = _item(authed_client)
    photo = _upload(authed_client, item_id, jpeg_bytes).json()
    authed_client.patch(f"/api/reports/{rid}", json={"report_id": "R-1"})
    authed_client.post(f"/api/reports/{rid}/finalize")

    assert _upload(authed_client, item_id, jpeg_bytes).status_code == 409
    assert authed_client.delete(f"/api/photos/{photo['id']}").status_code == 409
    assert authed_client.get(f"/api/items/{item_id}/photos").status_code == 200


def test_photos_of_other_users_are_not_found(authed_client, make_profile, login, jpeg_bytes):
    _, item_id = _item(authed_client)
    photo = _upload(authed_client, item_id, jpeg_bytes).json()
    make_profile("user-2", "free")
    login("user-2")
    assert authed_client.delete(f"/api/photos/{photo['id']}").status_code == 404
    assert _upload(authed_client, item_id, jpeg_bytes).status_code == 404
