"""Credential lookup for login: email + password -> Patient."""
from __future__ import annotations

import logging

from clinic_models.patient import Patient
from clinic_utils.security import AuthError, AuthErrorKind, hash_password, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = AuthError(AuthErrorKind.INVALID_CREDENTIALS, "Invalid credentials")


class CredentialStore:
    def __init__(self, storage):
        self._storage = storage
        # verified against when the email is unknown, so both paths cost one argon2 check
        self._dummy_hash = hash_password("not-a-real-password")

    def verify(self, email: str, password: str) -> Patient | AuthError:
        email = (email or "").strip().lower()
        session = self._storage.get_session()
        patient = session.query(Patient).filter(Patient.email == email).first()
        if patient is None:
            verify_password(password or "", self._dummy_hash)
            logger.warning("Login rejected: unknown account")
            return INVALID_CREDENTIALS
        if not verify_password(password or "", patient.password_hash):
            logger.warning("Login rejected for patient %s: bad password", patient.id)
            return INVALID_CREDENTIALS
        return patient

    def get(self, principal_id: str) -> Patient | None:
        return self._storage.get(Patient, principal_id)
