"""HTTP tests for /patient/login, /patient/refreshtoken and /patient/logout."""

import pytest

from clinic_api.services import get_services
from clinic_models import storage
from clinic_models.refresh_token import RefreshToken
from tests.conftest import PASSWORD

LOGIN = "/api/v1/patient/login"
REFRESH = "/api/v1/patient/refreshtoken"
LOGOUT = "/api/v1/patient/logout"


def refresh_rows():
    return storage.get_session().query(RefreshToken).count()


def test_login_returns_tokens_and_roles(client, make_patient):
    p = make_patient(email="a@x.com")

    resp = client.post(LOGIN, json={"email": "a@x.com", "password": PASSWORD})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["accessToken"]
    assert body["refreshToken"]
    assert body["email"] == "a@x.com"
    assert body["roles"] == ["PATIENT"]
    assert get_services().signer.validate(body["accessToken"]).subject == p.id


def test_login_wrong_password_is_401_and_persists_nothing(client, make_patient):
    make_patient()

    resp = client.post(LOGIN, json={"email": "a@x.com", "password": "wrong"})

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "INVALID_CREDENTIALS"
    assert resp.get_json()["message"] == "Invalid credentials"
    assert refresh_rows() == 0


def test_login_unknown_email_is_401(client, make_patient):
    make_patient()
    resp = client.post(LOGIN, json={"email": "ghost@x.com", "password": PASSWORD})
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "INVALID_CREDENTIALS"
    assert resp.get_json()["message"] == "Invalid credentials"


@pytest.mark.parametrize("payload", [{}, {"email": "a@x.com"}, {"password": "x"}])
def test_login_requires_email_and_password(client, payload):
    resp = client.post(LOGIN, json=payload)
    assert resp.status_code == 422
    assert resp.get_json()["error"] == "VALIDATION_ERROR"


def test_login_rejects_non_json_body(client):
    resp = client.post(LOGIN, data="email=a@x.com", content_type="text/plain")
    assert resp.status_code == 422


def test_refresh_returns_new_access_token_and_same_refresh_token(client, make_patient, login):
    p = make_patient()
    tokens = login()

    resp = client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["refreshToken"] == tokens["refreshToken"]
    assert get_services().signer.validate(body["accessToken"]).subject == p.id


def test_refresh_unknown_token_is_403(client):
    resp = client.post(REFRESH, json={"refreshToken": "unknown"})
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "TOKEN_NOT_FOUND"
    assert "not in database" in resp.get_json()["message"]


def test_refresh_expired_token_is_403_and_deleted(client, make_patient, login):
    make_patient()
    tokens = login()
    rt = storage.get_session().query(RefreshToken).filter_by(token=tokens["refreshToken"]).one()
    rt.expires_at = rt.created_at
    storage.save()

    first = client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]})
    assert first.status_code == 403
    assert first.get_json()["error"] == "TOKEN_EXPIRED"
    assert "expired" in first.get_json()["message"]
    assert refresh_rows() == 0

    second = client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]})
    assert second.status_code == 403
    assert second.get_json()["error"] == "TOKEN_NOT_FOUND"
    assert "not in database" in second.get_json()["message"]


def test_refresh_requires_token(client):
    resp = client.post(REFRESH, json={})
    assert resp.status_code == 422


def test_logout_revokes_refresh_token(client, make_patient, login):
    make_patient()
    tokens = login()

    assert client.post(LOGOUT, json={"refreshToken": tokens["refreshToken"]}).status_code == 204
    assert client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]}).status_code == 403


def test_logout_is_idempotent(client):
    assert client.post(LOGOUT, json={"refreshToken": "never-issued"}).status_code == 204


class TestRotation:
    @pytest.fixture
    def config_overrides(self):
        return {"REFRESH_TOKEN_ROTATION": True}

    def test_refresh_rotates_token(self, client, make_patient, login):
        make_patient()
        tokens = login()

        resp = client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]})
        assert resp.status_code == 200
        rotated = resp.get_json()["refreshToken"]
        assert rotated != tokens["refreshToken"]

        assert client.post(REFRESH, json={"refreshToken": tokens["refreshToken"]}).status_code == 403
        assert client.post(REFRESH, json={"refreshToken": rotated}).status_code == 200


class TestSingleSession:
    @pytest.fixture
    def config_overrides(self):
        return {"REFRESH_TOKEN_SINGLE_SESSION": True}

    def test_new_login_invalidates_previous_session(self, client, make_patient, login):
        make_patient()
        first = login()
        second = login()

        assert client.post(REFRESH, json={"refreshToken": first["refreshToken"]}).status_code == 403
        assert client.post(REFRESH, json={"refreshToken": second["refreshToken"]}).status_code == 200
