"""Shared fixtures: an app on a throwaway SQLite file and helpers to seed patients."""

from datetime import datetime, timedelta, timezone

import pytest

from clinic_api import create_app
from clinic_models import storage
from clinic_models.patient import Patient
from clinic_utils.security import hash_password

PASSWORD = "correct-horse"


class FakeClock:
    """Settable clock for token expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def config_overrides():
    return {}


@pytest.fixture
def app(tmp_path, config_overrides):
    overrides = {"DATABASE_URL": f"sqlite:///{tmp_path / 'test.db'}"}
    overrides.update(config_overrides)
    app = create_app("testing", overrides)
    with app.app_context():
        yield app
    storage.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_patient(app):
    def _make(email="a@x.com", password=PASSWORD, roles=None, name="Ana", diet_group_id=None):
        p = Patient(
            name=name,
            email=email,
            password_hash=hash_password(password),
            roles=roles or ["PATIENT"],
            diet_group_id=diet_group_id,
        )
        storage.new(p)
        storage.save()
        return p

    return _make


@pytest.fixture
def login(client):
    def _login(email="a@x.com", password=PASSWORD):
        resp = client.post("/api/v1/patient/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()

    return _login


@pytest.fixture
def auth_header(login):
    def _header(email="a@x.com", password=PASSWORD):
        return {"Authorization": f"Bearer {login(email, password)['accessToken']}"}

    return _header
