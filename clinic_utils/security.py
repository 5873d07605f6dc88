"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT access tokens via PyJWT (TokenSigner)
- AuthError values shared by the auth components
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_MALFORMED = "TOKEN_MALFORMED"
    BAD_SIGNATURE = "BAD_SIGNATURE"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"


@dataclass(frozen=True)
class AuthError:
    """A rejected authentication step. Terminal for the request, never retried."""

    kind: AuthErrorKind
    message: str


@dataclass(frozen=True)
class Claims:
    subject: str
    email: Optional[str]
    roles: list[str]
    issued_at: datetime
    expires_at: datetime
    jti: str


@dataclass(frozen=True)
class AccessToken:
    token: str
    claims: Claims = field(repr=False)


class TokenSigner:
    """Signs and validates access tokens with one process-wide key.

    The key is fixed for the lifetime of the process. Changing it (restart with a
    new JWT_SECRET) invalidates every outstanding access token.
    """

    TOKEN_TYPE = "access"

    def __init__(
        self,
        secret: str,
        ttl: timedelta,
        algorithm: str = "HS256",
        issuer: str = "diet-clinic-api",
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret:
            raise ValueError("secret must not be empty")
        if ttl <= timedelta(0):
            raise ValueError("access token ttl must be positive")
        self._secret = secret
        self._algorithm = algorithm
        self._issuer = issuer
        self._clock = clock
        self.ttl = ttl

    def issue_access_token(self, principal) -> AccessToken:
        now = self._clock()
        exp = now + self.ttl
        roles = list(principal.roles or [])
        jti = str(uuid.uuid4())
        payload = {
            "iss": self._issuer,
            "sub": str(principal.id),
            "email": principal.email,
            "roles": roles,
            "iat": int(now.timestamp()),
            "exp": int(exp.timestamp()),
            "type": self.TOKEN_TYPE,
            "jti": jti,
        }
        token = jwt.encode(payload, self._secret, algorithm=self._algorithm)
        claims = Claims(
            subject=str(principal.id),
            email=principal.email,
            roles=roles,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            jti=jti,
        )
        return AccessToken(token=token, claims=claims)

    def validate(self, token: str) -> Claims | AuthError:
        """
        Decode and validate an access token.
        Returns Claims, or an AuthError for malformed, expired or badly signed tokens.
        """
        if not token:
            return AuthError(AuthErrorKind.TOKEN_MISSING, "Missing access token")
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "iat", "sub"], "verify_exp": False, "verify_iat": False},
            )
        except jwt.InvalidSignatureError:
            return AuthError(AuthErrorKind.BAD_SIGNATURE, "Invalid token signature")
        except jwt.InvalidTokenError as exc:
            return AuthError(AuthErrorKind.TOKEN_MALFORMED, f"Invalid token: {exc}")

        if decoded.get("type") != self.TOKEN_TYPE:
            return AuthError(AuthErrorKind.TOKEN_MALFORMED, "Wrong token type")

        # expiry is checked against the injected clock
        expires_at = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        if expires_at <= self._clock():
            return AuthError(AuthErrorKind.TOKEN_EXPIRED, "Token expired")

        roles = decoded.get("roles") or []
        if not isinstance(roles, list):
            return AuthError(AuthErrorKind.TOKEN_MALFORMED, "Invalid roles claim")

        return Claims(
            subject=str(decoded["sub"]),
            email=decoded.get("email"),
            roles=[str(r) for r in roles],
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=expires_at,
            jti=str(decoded.get("jti", "")),
        )
