import os
import struct
import zlib
from io import BytesIO
from importlib import import_module
from pathlib import Path
from typing import Callable, Dict, List

import pytest

_REQUIRED_DEFAULTS = {
    "APP_ENV": "test",
    "DATABASE_URL": "sqlite:///:memory:",
    "AUTH_JWT_SECRET": "test-jwt-secret",
    "STRIPE_SECRET_KEY": "sk_test_dummy",
    "STRIPE_WEBHOOK_SECRET": "whsec_dummy",
    "STRIPE_PRICE_PREMIUM": "price_premium_test",
    "STRIPE_PRICE_SUPER": "price_super_test",
    "STORAGE_ACCESS_KEY_ID": "test-access",
    "STORAGE_SECRET_ACCESS_KEY": "test-secret",
    "APP_BASE_URL": "https://app.example.test",
}
for _k, _v in _REQUIRED_DEFAULTS.items():
    os.environ.setdefault(_k, _v)

# Rate limits must be off before reportmaker.limits is imported
os.environ["DISABLE_RATE_LIMITS"] = "1"
# PLAN_OVERRIDE from a developer's shell would skew every gate test
os.environ.pop("PLAN_OVERRIDE", None)

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeStorage:
    """In-memory stand-in for infrastructure.storage."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.deleted: List[str] = []
        self.fail_fetch = False
        self.fail_delete = False

    def upload_bytes(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        self.blobs[key] = data
        self.content_types[key] = content_type
        return key

    def delete_blobs(self, keys) -> None:
        from infrastructure.storage import StorageError
        keys = [k for k in keys if k]
        if self.fail_delete and keys:
            raise StorageError("delete failed")
        for k in keys:
            self.blobs.pop(k, None)
            self.deleted.append(k)

    def generate_signed_url(self, key: str, expiration: int = 3600) -> str:
        return f"https://blobs.example.test/{key}?expires={expiration}"

    def fetch_via_signed_url(self, key: str, *, timeout: float = 15.0, client=None) -> bytes:
        from infrastructure.storage import StorageError
        if self.fail_fetch or key not in self.blobs:
            raise StorageError(f"fetch failed for {key}")
        return self.blobs[key]


@pytest.fixture(autouse=True)
def fake_storage(monkeypatch):
    """Replace every blob store call with an in-memory fake; no test talks to S3."""
    from infrastructure import storage

    fake = FakeStorage()
    monkeypatch.setattr(storage, "upload_bytes", fake.upload_bytes)
    monkeypatch.setattr(storage, "delete_blobs", fake.delete_blobs)
    monkeypatch.setattr(storage, "generate_signed_url", fake.generate_signed_url)
    monkeypatch.setattr(storage, "fetch_via_signed_url", fake.fetch_via_signed_url)
    return fake


@pytest.fixture(scope="function")
def db_engine(tmp_path: Path):
    """Temporary file-backed SQLite engine patched into reportmaker.core.database.

    get_session() and session_scope() read the module global at call time, so
    every request in the test uses this engine.
    """
    from sqlmodel import create_engine

    db_path = tmp_path / "test.db"
    db = import_module("reportmaker.core.database")
    old_engine = getattr(db, "engine")
    new_engine = create_engine(
        f"sqlite:///{db_path.as_posix()}", echo=False, connect_args={"check_same_thread": False}
    )
    setattr(db, "engine", new_engine)
    db.create_db_and_tables()
    try:
        yield new_engine
    finally:
        setattr(db, "engine", old_engine)
        new_engine.dispose()


@pytest.fixture(scope="function")
def session(db_engine):
    """Database session bound to the temporary test engine."""
    from sqlmodel import Session as SQLSession
    with SQLSession(db_engine, expire_on_commit=False) as s:
        yield s


@pytest.fixture(scope="function")
def make_profile(db_engine) -> Callable:
    from sqlmodel import Session as SQLSession
    from reportmaker.models.profile import Profile

    def _make(user_id: str = USER_ID, plan: str = "free", **fields):
        with SQLSession(db_engine, expire_on_commit=False) as s:
            profile = s.get(Profile, user_id)
            if profile is None:
                profile = Profile(id=user_id, plan=plan, **fields)
            else:
                profile.plan = plan
                for k, v in fields.items():
                    setattr(profile, k, v)
            s.add(profile)
            s.commit()
            s.refresh(profile)
            return profile

    return _make


@pytest.fixture(scope="function")
def user(make_profile):
    return make_profile(USER_ID, "free", email="inspector@example.com")


@pytest.fixture(scope="function")
def set_plan(make_profile) -> Callable:
    def _set(plan: str, user_id: str = USER_ID):
        return make_profile(user_id, plan)
    return _set


@pytest.fixture(scope="function")
def app(db_engine):
    """A fresh FastAPI app wired to the temporary DB engine."""
    main = import_module("reportmaker.main")
    return main.create_app()


@pytest.fixture(scope="function")
def client(app):
    from fastapi.testclient import TestClient
    with TestClient(app) as tc:
        yield tc


@pytest.fixture(scope="function")
def login(app):
    """Switch the authenticated caller: ``login("user-2")``."""
    from fastapi import Depends
    from sqlmodel import Session as SQLSession
    from reportmaker.core.auth import get_current_user
    from reportmaker.core.database import get_session
    from reportmaker.models.profile import Profile

    def _login(user_id: str = USER_ID):
        def _current_user(session: SQLSession = Depends(get_session)) -> Profile:
            profile = session.get(Profile, user_id)
            assert profile is not None, f"profile {user_id} missing in test setup"
            return profile

        app.dependency_overrides[get_current_user] = _current_user

    yield _login
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def authed_client(client, user, login):
    login(user.id)
    return client


def image_bytes(fmt: str = "JPEG", size=(64, 48), color=(200, 30, 30)) -> bytes:
    from PIL import Image
    buf = BytesIO()
    mode = "RGBA" if fmt == "PNG" else "RGB"
    fill = color + (255,) if mode == "RGBA" else color
    Image.new(mode, size, fill).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return image_bytes("PNG")


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


def oversized_png(width: int, height: int) -> bytes:
    """A valid 1x1 PNG whose IHDR advertises ``width`` x ``height``."""
    raw = bytearray(image_bytes("PNG", size=(1, 1)))
    # IHDR data follows the 8-byte signature, chunk length and chunk type
    raw[16:24] = struct.pack(">II", width, height)
    raw[29:33] = struct.pack(">I", zlib.crc32(bytes(raw[12:29])) & 0xFFFFFFFF)
    return bytes(raw)


@pytest.fixture
def make_oversized_png() -> Callable[[int, int], bytes]:
    return oversized_png
