"""Shared fixtures: an app on a per-test SQLite file and data root."""

import pytest
from fastapi.testclient import TestClient

from bucketgate.config import Settings
from bucketgate.db import make_engine, make_session_factory
from bucketgate.main import create_app
from bucketgate.models import Base

ADMIN_PASSWORD = "s3cret-admin"


def bearer(key_id: str, secret: str) -> dict:
    return {"Authorization": f"Bearer {key_id}:{secret}"}


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'meta.db'}",
        data_root=str(tmp_path / "data"),
        admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers() -> dict:
    return bearer("admin", ADMIN_PASSWORD)


@pytest.fixture
def bucket(client, admin_headers) -> dict:
    """Create bucket "photos"; returns {"name": ..., "keys": {role: headers}}."""
    resp = client.post("/buckets", json={"name": "photos"}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    keys = {k["role"]: bearer(k["key_id"], k["secret"]) for k in resp.json()["access_keys"]}
    return {"name": "photos", "keys": keys}


@pytest.fixture
def session_factory(settings):
    """Sessions on the same database, for tests that bypass HTTP."""
    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()
