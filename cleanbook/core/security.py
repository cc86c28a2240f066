"""Access tokens for the identity provider.

Tokens are HS256 JWTs carrying the user id (``sub``), the role the user
held when the token was issued, and ``type="access"``. The role claim is
informational; requests are authorized against the role stored on the user.
"""

from datetime import UTC, datetime, timedelta
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from cleanbook.config import settings
from cleanbook.core.exceptions import AuthenticationError

ACCESS_TOKEN_TYPE = "access"


class TokenClaims(BaseModel):
    """Decoded and validated access token payload."""

    sub: UUID
    role: str | None = None
    type: str
    exp: datetime


def create_access_token(user_id: UUID | str, role: str, expires_delta: timedelta | None = None) -> str:
    """Issue an access token for ``user_id``."""
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    claims = {"sub": str(user_id), "role": role, "type": ACCESS_TOKEN_TYPE, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    """Verify the signature and expiry of ``token`` and return its claims.

    Raises:
        AuthenticationError: the token is malformed, expired, signed with a
            different key, or not an access token
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        claims = TokenClaims.model_validate(payload)
    except JWTError as e:
        raise AuthenticationError(f"Token validation failed: {e}") from e
    except PydanticValidationError as e:
        raise AuthenticationError("Invalid token payload") from e

    if claims.type != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("Invalid token type")
    return claims
