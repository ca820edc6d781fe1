import httpx
import pytest

from infrastructure import s3, storage

# Captured before the autouse fake replaces the module attributes
_upload_bytes = storage.upload_bytes
_delete_blobs = storage.delete_blobs
_generate_signed_url = storage.generate_signed_url
_fetch_via_signed_url = storage.fetch_via_signed_url


def test_upload_raises_when_s3_reports_failure(monkeypatch):
    monkeypatch.setattr(s3, "upload_bytes", lambda bucket, key, data, content_type: False)
    with pytest.raises(storage.StorageError):
        _upload_bytes("k", b"x", "image/jpeg")


def test_upload_uses_configured_bucket(monkeypatch):
    calls = []
    monkeypatch.setenv("STORAGE_BUCKET", "inspection-photos")
    monkeypatch.setattr(s3, "upload_bytes", lambda *a: calls.append(a) or True)
    assert _upload_bytes("u/r/i/1-a.jpg", b"x", "image/jpeg") == "u/r/i/1-a.jpg"
    assert calls == [("inspection-photos", "u/r/i/1-a.jpg", b"x", "image/jpeg")]


def test_delete_blobs_skips_empty_batches(monkeypatch):
    def _boom(*a):
        raise AssertionError("s3 should not be called")

    monkeypatch.setattr(s3, "delete_objects", _boom)
    _delete_blobs([])
    _delete_blobs(["", None])


def test_delete_blobs_failure(monkeypatch):
    monkeypatch.setattr(s3, "delete_objects", lambda bucket, keys: False)
    with pytest.raises(storage.StorageError):
        _delete_blobs(["a", "b"])


def test_signing_failure(monkeypatch):
    monkeypatch.setattr(s3, "generate_signed_url", lambda bucket, key, expiration=3600: None)
    with pytest.raises(storage.StorageError):
        _generate_signed_url("k")


def test_fetch_via_signed_url_uses_short_lived_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, content=b"jpeg-bytes")

    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        assert _fetch_via_signed_url("u/r/i/1-a.jpg", client=client) == b"jpeg-bytes"
    assert seen == [f"https://blobs.example.test/u/r/i/1-a.jpg?expires={storage.FETCH_URL_TTL_SECONDS}"]


@pytest.mark.parametrize("status", [403, 404, 500])
def test_fetch_via_signed_url_non_2xx(status):
    transport = httpx.MockTransport(lambda request: httpx.Response(status))
    with httpx.Client(transport=transport) as client:
        with pytest.raises(storage.StorageError):
            _fetch_via_signed_url("k", client=client)
