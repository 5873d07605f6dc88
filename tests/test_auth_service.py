"""Tests for login / refresh / logout orchestration."""

from datetime import timedelta

import pytest

from clinic_api.services.auth_service import NOT_FOUND_MESSAGE, AuthService, LoginResult, RefreshResult
from clinic_api.services.credentials import CredentialStore
from clinic_api.services.refresh_tokens import RefreshTokenStore
from clinic_models import storage
from clinic_models.refresh_token import RefreshToken
from clinic_utils.security import AuthError, AuthErrorKind, TokenSigner
from tests.conftest import PASSWORD, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signer(clock):
    return TokenSigner("service-test-secret-with-32-bytes-or-more", ttl=timedelta(minutes=5), clock=clock)


@pytest.fixture
def refresh_tokens(app, clock):
    return RefreshTokenStore(storage, ttl=timedelta(days=1), clock=clock)


def build_service(signer, refresh_tokens, rotate=False):
    return AuthService(CredentialStore(storage), signer, refresh_tokens, storage, rotate_refresh_tokens=rotate)


@pytest.fixture
def service(signer, refresh_tokens):
    return build_service(signer, refresh_tokens)


def refresh_rows():
    return storage.get_session().query(RefreshToken).count()


class TestLogin:
    def test_login_issues_tokens_for_principal(self, service, signer, make_patient):
        p = make_patient(roles=["PATIENT"])

        result = service.login("a@x.com", PASSWORD)

        assert isinstance(result, LoginResult)
        claims = signer.validate(result.access_token.token)
        assert claims.subject == p.id
        assert claims.roles == ["PATIENT"]
        assert result.roles == ["PATIENT"]
        assert result.email == "a@x.com"
        assert result.refresh_token
        assert refresh_rows() == 1

    def test_email_is_case_insensitive(self, service, make_patient):
        make_patient()
        assert isinstance(service.login("  A@X.com ", PASSWORD), LoginResult)

    @pytest.mark.parametrize("email,password", [("a@x.com", "wrong"), ("nobody@x.com", PASSWORD), ("", "")])
    def test_invalid_credentials_issue_nothing(self, service, make_patient, email, password):
        make_patient()

        result = service.login(email, password)

        assert isinstance(result, AuthError)
        assert result.kind == AuthErrorKind.INVALID_CREDENTIALS
        assert refresh_rows() == 0

    def test_unknown_email_and_wrong_password_look_the_same(self, service, make_patient):
        make_patient()
        assert service.login("a@x.com", "wrong") == service.login("nobody@x.com", "wrong")

    def test_store_failure_fails_whole_login(self, service, make_patient, refresh_tokens, monkeypatch):
        make_patient()

        def boom(principal_id, commit=True):
            raise RuntimeError("db down")

        monkeypatch.setattr(refresh_tokens, "create", boom)
        with pytest.raises(RuntimeError):
            service.login("a@x.com", PASSWORD)
        assert refresh_rows() == 0


class TestRefresh:
    def test_unknown_token(self, service):
        result = service.refresh("does-not-exist")
        assert result.kind == AuthErrorKind.TOKEN_NOT_FOUND
        assert result.message == NOT_FOUND_MESSAGE

    def test_valid_token_reissues_access_token(self, service, signer, make_patient, refresh_tokens):
        p = make_patient()
        login = service.login("a@x.com", PASSWORD)

        result = service.refresh(login.refresh_token)

        assert isinstance(result, RefreshResult)
        assert result.rotated is False
        assert result.refresh_token == login.refresh_token
        assert signer.validate(result.access_token.token).subject == p.id
        # refresh token is reused until it expires
        assert refresh_tokens.find_by_token(login.refresh_token) is not None

    def test_expired_token_is_deleted_then_unknown(self, service, make_patient, clock, refresh_tokens):
        make_patient()
        login = service.login("a@x.com", PASSWORD)
        clock.advance(days=1, seconds=1)

        first = service.refresh(login.refresh_token)
        assert first.kind == AuthErrorKind.TOKEN_EXPIRED
        assert refresh_tokens.find_by_token(login.refresh_token) is None

        second = service.refresh(login.refresh_token)
        assert second.kind == AuthErrorKind.TOKEN_NOT_FOUND

    def test_refreshed_roles_follow_stored_principal(self, service, signer, make_patient):
        p = make_patient(roles=["PATIENT"])
        login = service.login("a@x.com", PASSWORD)
        p.roles = ["PATIENT", "NUTRITIONIST"]
        storage.new(p)
        storage.save()

        result = service.refresh(login.refresh_token)
        assert signer.validate(result.access_token.token).roles == ["PATIENT", "NUTRITIONIST"]

    def test_rotation_invalidates_old_token(self, signer, refresh_tokens, make_patient):
        service = build_service(signer, refresh_tokens, rotate=True)
        make_patient()
        login = service.login("a@x.com", PASSWORD)

        result = service.refresh(login.refresh_token)

        assert result.rotated is True
        assert result.refresh_token != login.refresh_token
        assert refresh_tokens.find_by_token(login.refresh_token) is None
        assert refresh_tokens.find_by_token(result.refresh_token) is not None
        assert service.refresh(login.refresh_token).kind == AuthErrorKind.TOKEN_NOT_FOUND
        assert isinstance(service.refresh(result.refresh_token), RefreshResult)


class TestLogout:
    def test_logout_revokes_refresh_token(self, service, make_patient):
        make_patient()
        login = service.login("a@x.com", PASSWORD)

        assert service.logout(login.refresh_token) is True
        assert service.refresh(login.refresh_token).kind == AuthErrorKind.TOKEN_NOT_FOUND

    def test_logout_unknown_token(self, service):
        assert service.logout("nope") is False
