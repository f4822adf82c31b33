"""Session token helpers.

Tokens are issued by the authentication service; this core only decodes
them to learn who is calling. `create_access_token` exists for tooling and
tests that need a token signed with the shared secret.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from clinicslots.core.config import settings


def create_access_token(
    subject: str,
    expires_delta: timedelta | None = None,
    additional_claims: dict | None = None,
) -> str:
    """Create a signed JWT for `subject`.

    Args:
        subject: Actor id (client id or staff user id)
        expires_delta: Optional custom expiration time
        additional_claims: Extra claims, e.g. ``{"role": "staff"}``

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)

    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "type": "access",
        "exp": now + expires_delta,
        "iat": now,
    }

    if additional_claims:
        to_encode.update(additional_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> dict | None:
    """Decode and validate a JWT access token.

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
