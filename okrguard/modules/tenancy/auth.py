"""Bearer-token authentication.

Only the user id (``sub``) is taken from the token. Organization and
system-owner status are always reloaded from ``users``.
"""

import logging
import uuid

from jose import JWTError, jwt
from starlette.datastructures import Headers

from okrguard.config import settings
from okrguard.exceptions import UnauthorizedException

logger = logging.getLogger(__name__)


def extract_bearer_token(headers: Headers) -> str | None:
    authorization = headers.get("authorization")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _decode_token(token: str) -> dict:
    """Decode and validate a JWT token. Raises UnauthorizedException on failure."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        raise UnauthorizedException("Invalid or expired token") from exc


def user_id_from_token(token: str) -> uuid.UUID:
    payload = _decode_token(token)
    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, ValueError, TypeError) as exc:
        raise UnauthorizedException("Token is missing required claims") from exc
