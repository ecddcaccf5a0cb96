# space_together/core/security.py

import time
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Type, TypeVar

import pydantic
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import SecretStr

from space_together.core.errors import (
    ConfigMissing,
    InvalidSignature,
    MalformedToken,
    TokenExpired,
)
from space_together.schemas.auth.tokens import SchoolClaims, TokenClaims, UserClaims


ClaimsT = TypeVar("ClaimsT", bound=TokenClaims)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_password_hash(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


def strip_bearer(value: str) -> str:
    value = value.strip()
    if value.startswith("Bearer "):
        return value[len("Bearer "):].strip()
    return value


class TokenCodec:
    """Issues and verifies the two token families.

    User tokens and school tokens are HS256 JWTs signed with independent
    secrets, so a token of one family never verifies as the other. Expiry
    is checked against ``clock`` (epoch seconds) rather than the wall clock
    so callers can pin time.
    """

    def __init__(
        self,
        user_secret: Optional[SecretStr | str],
        school_secret: Optional[SecretStr | str],
        *,
        algorithm: str = "HS256",
        user_ttl: timedelta = timedelta(days=7),
        school_ttl: timedelta = timedelta(hours=24),
        leeway: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        self._user_secret = self._secret_value(user_secret)
        self._school_secret = self._secret_value(school_secret)
        self.algorithm = algorithm
        self.user_ttl = user_ttl
        self.school_ttl = school_ttl
        self.leeway = leeway
        self.clock = clock

    @classmethod
    def from_settings(cls, settings, clock: Callable[[], float] = time.time) -> "TokenCodec":
        return cls(
            settings.USER_SECRET,
            settings.SCHOOL_SECRET,
            algorithm=settings.ALGORITHM,
            user_ttl=settings.user_token_ttl,
            school_ttl=settings.school_token_ttl,
            leeway=settings.TOKEN_LEEWAY_SECONDS,
            clock=clock,
        )

    @staticmethod
    def _secret_value(secret: Optional[SecretStr | str]) -> Optional[str]:
        if isinstance(secret, SecretStr):
            secret = secret.get_secret_value()
        return secret or None

    def _now(self) -> int:
        return int(self.clock())

    def _encode(self, claims: TokenClaims, secret: Optional[str], secret_name: str, ttl: timedelta) -> str:
        if not secret:
            raise ConfigMissing(f"{secret_name} is not set")
        issued_at = self._now()
        expires_at = issued_at + int(ttl.total_seconds())
        return jwt.encode(claims.to_claims(issued_at, expires_at), secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: Optional[str], secret_name: str, model: Type[ClaimsT]) -> ClaimsT:
        if not secret:
            raise ConfigMissing(f"{secret_name} is not set")
        if not token or token.count(".") != 2:
            raise MalformedToken()

        try:
            jwt.get_unverified_header(token)
        except JWTError:
            raise MalformedToken()

        try:
            payload: Dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_nbf": False},
            )
        except JWTError:
            raise InvalidSignature()

        expires_at = payload.get("exp")
        if not isinstance(expires_at, int) or isinstance(expires_at, bool):
            raise MalformedToken("Token has no valid expiration")
        if expires_at <= self._now() - self.leeway:
            raise TokenExpired()

        try:
            return model.model_validate(payload)
        except pydantic.ValidationError:
            raise MalformedToken("Token claims are invalid")

    def issue_user(self, principal: UserClaims, ttl: Optional[timedelta] = None) -> str:
        return self._encode(principal, self._user_secret, "USER_SECRET", ttl or self.user_ttl)

    def issue_school(self, school: SchoolClaims, ttl: Optional[timedelta] = None) -> str:
        return self._encode(school, self._school_secret, "SCHOOL_SECRET", ttl or self.school_ttl)

    def verify_user(self, token: str) -> UserClaims:
        return self._decode(strip_bearer(token), self._user_secret, "USER_SECRET", UserClaims)

    def verify_school(self, token: str) -> SchoolClaims:
        return self._decode(token.strip(), self._school_secret, "SCHOOL_SECRET", SchoolClaims)
