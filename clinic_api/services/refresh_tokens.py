"""
Refresh token persistence.

Tokens are opaque random strings stored with their owner and expiry. A row
exists only while the token is usable: expiry (on touch), rotation, logout and
patient deletion all delete it.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError

from clinic_models.refresh_token import RefreshToken
from clinic_utils.security import AuthError, AuthErrorKind, utcnow

logger = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3
TOKEN_BYTES = 32

EXPIRED_MESSAGE = "Refresh token was expired. Please make a new signin request"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RefreshTokenStore:
    def __init__(
        self,
        storage,
        ttl: timedelta,
        single_session: bool = False,
        clock: Callable[[], datetime] = utcnow,
        token_factory: Callable[[], str] | None = None,
    ):
        if ttl <= timedelta(0):
            raise ValueError("refresh token ttl must be positive")
        self._storage = storage
        self.ttl = ttl
        self.single_session = single_session
        self._clock = clock
        self._token_factory = token_factory or (lambda: secrets.token_urlsafe(TOKEN_BYTES))

    def _is_taken(self, session, candidate: str) -> bool:
        return session.query(RefreshToken.id).filter(RefreshToken.token == candidate).first() is not None

    def create(self, principal_id: str, commit: bool = True) -> RefreshToken:
        """Persist a fresh token for the principal.

        A candidate already present in the table is discarded and a new one
        drawn. A concurrent insert of the same string fails on the unique
        column with IntegrityError, and the insert is retried with a new
        candidate. With ``commit=False`` the insert runs in a savepoint so a
        collision does not roll back the caller's pending work.
        """
        session = self._storage.get_session()
        for _ in range(MAX_CREATE_ATTEMPTS):
            candidate = self._token_factory()
            if self._is_taken(session, candidate):
                logger.warning("Refresh token collision for patient %s, regenerating", principal_id)
                continue

            now = self._clock()
            rt = RefreshToken(
                token=candidate,
                patient_id=principal_id,
                created_at=now,
                updated_at=now,
                expires_at=now + self.ttl,
            )
            try:
                if commit:
                    self._insert(session, principal_id, rt)
                    self._storage.save()
                else:
                    with session.begin_nested():
                        self._insert(session, principal_id, rt)
                        session.flush()
            except IntegrityError:
                logger.warning("Refresh token collision on insert for patient %s, regenerating", principal_id)
                continue
            logger.info("Issued refresh token for patient %s", principal_id)
            return rt
        raise RuntimeError("could not generate a unique refresh token")

    def _insert(self, session, principal_id: str, rt: RefreshToken) -> None:
        if self.single_session:
            session.execute(delete(RefreshToken).where(RefreshToken.patient_id == principal_id))
        self._storage.new(rt)

    def find_by_token(self, token: str) -> RefreshToken | None:
        if not token:
            return None
        session = self._storage.get_session()
        return session.query(RefreshToken).filter(RefreshToken.token == token).first()

    def is_expired(self, rt: RefreshToken) -> bool:
        return _as_utc(rt.expires_at) <= self._clock()

    def verify_expiration(self, rt: RefreshToken) -> RefreshToken | AuthError:
        """Return the token if still valid; an expired token is deleted.

        Concurrent callers holding the same expired token all get TOKEN_EXPIRED,
        whichever of them actually removed the row.
        """
        if not self.is_expired(rt):
            return rt
        if self.consume(rt.token):
            logger.info("Deleted expired refresh token of patient %s", rt.patient_id)
        return AuthError(AuthErrorKind.TOKEN_EXPIRED, EXPIRED_MESSAGE)

    def consume(self, token: str, commit: bool = True) -> bool:
        """Delete the token if it still exists. Only one concurrent caller gets True."""
        session = self._storage.get_session()
        result = session.execute(delete(RefreshToken).where(RefreshToken.token == token))
        if commit:
            self._storage.save()
        return result.rowcount == 1

    def revoke(self, token: str) -> bool:
        revoked = self.consume(token)
        if revoked:
            logger.info("Revoked refresh token")
        return revoked

    def revoke_all(self, principal_id: str, commit: bool = True) -> int:
        session = self._storage.get_session()
        result = session.execute(delete(RefreshToken).where(RefreshToken.patient_id == principal_id))
        if commit:
            self._storage.save()
        if result.rowcount:
            logger.info("Revoked %d refresh token(s) of patient %s", result.rowcount, principal_id)
        return result.rowcount
