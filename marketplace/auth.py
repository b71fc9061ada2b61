import logging
import time
from typing import NamedTuple, Optional

import jwt

from .config import get_settings
from .errors import Unauthenticated

logger = logging.getLogger(__name__)

EXP_SECONDS = 60 * 60  # 1 hour, same lifetime as identity provider ID tokens


class Identity(NamedTuple):
    """Verified claims about the caller, as asserted by the identity provider."""

    subject: str
    email: Optional[str]
    name: str
    picture: Optional[str]


def create_id_token(
    subject: str,
    email: Optional[str] = None,
    name: str = "",
    picture: Optional[str] = None,
    expires_delta: Optional[int] = None,
) -> str:
    # Development/test helper; in production tokens come from the identity provider.
    settings = get_settings()
    now = int(time.time())
    exp = now + (expires_delta or EXP_SECONDS)
    payload = {"sub": subject, "iat": now, "exp": exp, "name": name}
    if email is not None:
        payload["email"] = email
    if picture is not None:
        payload["picture"] = picture
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_id_token(token: str) -> Identity:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options={"require": ["sub", "exp"]},
        )
    except jwt.PyJWTError as e:
        logger.warning("token verification failed: %s", e)
        raise Unauthenticated("Unauthorized: Invalid token") from e

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise Unauthenticated("Unauthorized: Invalid token")
    return Identity(
        subject=subject,
        email=payload.get("email"),
        name=payload.get("name") or "",
        picture=payload.get("picture"),
    )


def bearer_token(authorization: Optional[str]) -> str:
    parts = (authorization or "").split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise Unauthenticated("Unauthorized: No token provided")
    return parts[1].strip()


def split_display_name(name: str) -> tuple[str, str]:
    first, _, last = (name or "").strip().partition(" ")
    return first, last.strip()
