import boto3
import pytest
from botocore.client import Config
from botocore.stub import Stubber

from infrastructure import s3


@pytest.fixture
def stubbed_s3(monkeypatch):
    client = boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="test-access",
        aws_secret_access_key="test-secret",
        config=Config(signature_version="s3v4"),
    )
    monkeypatch.setattr(s3, "_S3_CLIENT", client)
    with Stubber(client) as stubber:
        yield stubber
    s3.reset_client()


def test_missing_credentials_leave_client_unset(monkeypatch):
    s3.reset_client()
    monkeypatch.delenv("STORAGE_ACCESS_KEY_ID", raising=False)
    monkeypatch.delenv("STORAGE_SECRET_ACCESS_KEY", raising=False)
    assert s3.upload_bytes("photos", "k", b"x") is False
    assert s3.generate_signed_url("photos", "k") is None


def test_upload_bytes(stubbed_s3):
    stubbed_s3.add_response(
        "put_object",
        {},
        {"Bucket": "photos", "Key": "u/r/i/1-a.jpg", "Body": b"data", "ContentType": "image/jpeg"},
    )
    assert s3.upload_bytes("photos", "u/r/i/1-a.jpg", b"data", "image/jpeg") is True


def test_upload_bytes_client_error(stubbed_s3):
    stubbed_s3.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
    assert s3.upload_bytes("photos", "k", b"data") is False


def test_delete_objects_batches_keys(stubbed_s3):
    stubbed_s3.add_response(
        "delete_objects",
        {"Deleted": [{"Key": "a"}, {"Key": "b"}]},
        {"Bucket": "photos", "Delete": {"Objects": [{"Key": "a"}, {"Key": "b"}], "Quiet": True}},
    )
    assert s3.delete_objects("photos", ["a", "b"]) is True


def test_delete_objects_reports_per_key_errors(stubbed_s3):
    stubbed_s3.add_response(
        "delete_objects",
        {"Errors": [{"Key": "a", "Code": "AccessDenied", "Message": "nope"}]},
    )
    assert s3.delete_objects("photos", ["a"]) is False


def test_delete_objects_empty_is_noop():
    assert s3.delete_objects("photos", []) is True


def test_generate_signed_url(stubbed_s3):
    url = s3.generate_signed_url("photos", "u/r/i/1-a.jpg", expiration=60)
    assert "u/r/i/1-a.jpg" in url
    assert "X-Amz-Expires=60" in url
