"""
Login / refresh / logout.

A session moves Anonymous -> Authenticated (login) -> Refreshing (refresh, any
number of times) -> Expired/Revoked (refresh token expired, rotated away or
logged out), after which only a new login helps.

Failures come back as AuthError values. They are client errors and are never
retried.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from clinic_api.services.credentials import CredentialStore
from clinic_api.services.refresh_tokens import RefreshTokenStore
from clinic_utils.security import AccessToken, AuthError, AuthErrorKind, TokenSigner

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Refresh token is not in database!"


@dataclass(frozen=True)
class LoginResult:
    access_token: AccessToken
    refresh_token: str = field(repr=False)
    email: str
    roles: list[str]


@dataclass(frozen=True)
class RefreshResult:
    access_token: AccessToken
    refresh_token: str = field(repr=False)
    rotated: bool = False


class AuthService:
    def __init__(
        self,
        credentials: CredentialStore,
        signer: TokenSigner,
        refresh_tokens: RefreshTokenStore,
        storage,
        rotate_refresh_tokens: bool = False,
    ):
        self._credentials = credentials
        self._signer = signer
        self._refresh_tokens = refresh_tokens
        self._storage = storage
        self.rotate_refresh_tokens = rotate_refresh_tokens

    def login(self, email: str, password: str) -> LoginResult | AuthError:
        principal = self._credentials.verify(email, password)
        if isinstance(principal, AuthError):
            return principal

        # sign before persisting: a refresh token row only exists once an
        # access token does, and a failed insert leaves nothing behind
        access = self._signer.issue_access_token(principal)
        rt = self._refresh_tokens.create(principal.id)

        logger.info("Patient %s logged in", principal.id)
        return LoginResult(
            access_token=access,
            refresh_token=rt.token,
            email=principal.email,
            roles=list(access.claims.roles),
        )

    def refresh(self, token: str) -> RefreshResult | AuthError:
        rt = self._refresh_tokens.find_by_token(token)
        if rt is None:
            return AuthError(AuthErrorKind.TOKEN_NOT_FOUND, NOT_FOUND_MESSAGE)

        checked = self._refresh_tokens.verify_expiration(rt)
        if isinstance(checked, AuthError):
            return checked

        principal = self._credentials.get(rt.patient_id)
        if principal is None:
            # owner vanished; the token is useless
            self._refresh_tokens.revoke(token)
            return AuthError(AuthErrorKind.TOKEN_NOT_FOUND, NOT_FOUND_MESSAGE)

        access = self._signer.issue_access_token(principal)
        if not self.rotate_refresh_tokens:
            logger.info("Refreshed access token for patient %s", principal.id)
            return RefreshResult(access_token=access, refresh_token=rt.token)

        try:
            if not self._refresh_tokens.consume(token, commit=False):
                # a concurrent refresh already used it
                self._storage.rollback()
                return AuthError(AuthErrorKind.TOKEN_NOT_FOUND, NOT_FOUND_MESSAGE)
            new_rt = self._refresh_tokens.create(principal.id, commit=False)
            self._storage.save()
        except Exception:
            self._storage.rollback()
            raise
        logger.info("Rotated refresh token for patient %s", principal.id)
        return RefreshResult(access_token=access, refresh_token=new_rt.token, rotated=True)

    def logout(self, token: str) -> bool:
        return self._refresh_tokens.revoke(token)
