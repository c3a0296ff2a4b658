import os

# Keep the module-level app off the working directory's database
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from herdbook.config import Settings
from herdbook.main import create_app


@pytest.fixture()
def app(tmp_path):
    settings = Settings(database_url=f"sqlite:///{tmp_path / 'test.db'}", log_level="WARNING")
    app = create_app(settings)
    yield app
    app.state.engine.dispose()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def cow(client):
    r = client.post("/animals/", json={"ear_tag": "C100", "sex": "Female", "name": "Daisy"})
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture()
def bull(client):
    r = client.post("/animals/", json={"ear_tag": "B1", "sex": "Male"})
    assert r.status_code == 200, r.text
    return r.json()
