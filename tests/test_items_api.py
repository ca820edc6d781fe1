from sqlmodel import Session, select

from reportmaker.models.report import ReportItem, ReportItemPhoto


def _report_with_items(client, n: int):
    report = client.post("/api/reports").json()
    ids = [report["items"][0]["id"]]
    for _ in range(n - 1):
        r = client.post(f"/api/reports/{report['id']}/items")
        assert r.status_code == 201, r.text
        ids.append(r.json()["id"])
    return report["id"], ids


def _order(client, report_id):
    items = client.get(f"/api/reports/{report_id}").json()["items"]
    return [i["id"] for i in items], [i["idx"] for i in items]


def test_new_items_append_after_last(authed_client):
    rid, ids = _report_with_items(authed_client, 3)
    order, idxs = _order(authed_client, rid)
    assert order == ids
    assert idxs == [1, 2, 3]


def test_free_plan_item_limit(authed_client, db_engine):
    rid, _ = _report_with_items(authed_client, 5)
    r = authed_client.post(f"/api/reports/{rid}/items")
    assert r.status_code == 403
    err = r.json()["error"]
    assert err["code"] == "PLAN_LIMIT_REACHED"
    assert err["details"]["resource"] == "items"
    assert err["details"]["limit"] == 5
    with Session(db_engine) as s:
        assert len(s.exec(select(ReportItem)).all()) == 5


def test_update_item_fields(authed_client):
    rid, (item_id,) = _report_with_items(authed_client, 1)
    r = authed_client.patch(
        f"/api/items/{item_id}", json={"title": "Smoke alarm", "result": "fail", "notes": "No battery"},
    )
    assert r.status_code == 200
    body = r.json()
    assert (body["title"], body["result"], body["notes"]) == ("Smoke alarm", "fail", "No battery")

    r = authed_client.patch(f"/api/items/{item_id}", json={"result": "pass"})
    assert r.json()["title"] == "Smoke alarm"
    assert r.json()["result"] == "pass"


def test_update_item_rejects_unknown_result(authed_client):
    _, (item_id,) = _report_with_items(authed_client, 1)
    r = authed_client.patch(f"/api/items/{item_id}", json={"result": "maybe"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "validation_error"


def test_update_item_rejects_overlong_title(authed_client):
    _, (item_id,) = _report_with_items(authed_client, 1)
    r = authed_client.patch(f"/api/items/{item_id}", json={"title": "x" * 256})
    assert r.status_code == 422
    assert authed_client.patch(f"/api/items/{item_id}", json={"title": "x" * 255}).status_code == 200


def test_move_up_and_down_swap_neighbours(authed_client):
    rid, (a, b, c) = _report_with_items(authed_client, 3)

    r = authed_client.post(f"/api/items/{c}/move-up")
    assert r.status_code == 200
    assert [i["id"] for i in r.json()] == [a, c, b]

    r = authed_client.post(f"/api/items/{a}/move-down")
    assert [i["id"] for i in r.json()] == [c, a, b]

    order, idxs = _order(authed_client, rid)
    assert order == [c, a, b]
    assert sorted(idxs) == [1, 2, 3]


def test_moves_at_the_ends_are_noops(authed_client):
    rid, (a, b) = _report_with_items(authed_client, 2)
    assert [i["id"] for i in authed_client.post(f"/api/items/{a}/move-up").json()] == [a, b]
    assert [i["id"] for i in authed_client.post(f"/api/items/{b}/move-down").json()] == [a, b]
    assert _order(authed_client, rid)[1] == [1, 2]


def test_reorder_keeps_idx_a_permutation(authed_client):
    rid, ids = _report_with_items(authed_client, 4)
    for item_id in (ids[3], ids[3], ids[0], ids[2], ids[1]):
        authed_client.post(f"/api/items/{item_id}/move-up")
        authed_client.post(f"/api/items/{item_id}/move-down")
        authed_client.post(f"/api/items/{item_id}/move-up")
    order, idxs = _order(authed_client, rid)
    assert sorted(order) == sorted(ids)
    assert sorted(idxs) == [1, 2, 3, 4]
    assert all(i > 0 for i in idxs)


def test_delete_item_removes_photos_and_blobs(authed_client, db_engine, fake_storage, jpeg_bytes):
    rid, (a, b) = _report_with_items(authed_client, 2)
    up = authed_client.post(f"/api/items/{b}/photos", files={"file": ("p.jpg", jpeg_bytes, "image/jpeg")})
    key = up.json()["storage_path"]

    assert authed_client.delete(f"/api/items/{b}").status_code == 204
    assert key in fake_storage.deleted
    assert key not in fake_storage.blobs
    assert _order(authed_client, rid)[0] == [a]
    with Session(db_engine) as s:
        assert s.exec(select(ReportItemPhoto)).all() == []


def test_delete_item_blob_failure_leaves_rows(authed_client, db_engine, fake_storage, jpeg_bytes):
    rid, (a,) = _report_with_items(authed_client, 1)
    authed_client.post(f"/api/items/{a}/photos", files={"file": ("p.jpg", jpeg_bytes, "image/jpeg")})
    fake_storage.fail_delete = True

    r = authed_client.delete(f"/api/items/{a}")
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "upstream_error"
    with Session(db_engine) as s:
        assert len(s.exec(select(ReportItem)).all()) == 1
        assert len(s.exec(select(ReportItemPhoto)).all()) == 1


def test_deleting_frees_an_item_slot(authed_client):
    rid, ids = _report_with_items(authed_client, 5)
    assert authed_client.post(f"/api/reports/{rid}/items").status_code == 403
    authed_client.delete(f"/api/items/{ids[2]}")
    r = authed_client.post(f"/api/reports/{rid}/items")
    assert r.status_code == 201
    assert r.json()["idx"] == 6


def test_items_of_other_users_are_not_found(authed_client, make_profile, login):
    _, (item_id,) = _report_with_items(authed_client, 1)
    make_profile("user-2", "free")
    login("user-2")
    assert authed_client.patch(f"/api/items/{item_id}", json={"title": "x"}).status_code == 404
    assert authed_client.post(f"/api/items/{item_id}/move-up").status_code == 404
    assert authed_client.get(f"/api/items/{item_id}/photos").status_code == 404
