"""Bearer-token gate for every request except the unauthenticated ping."""

import hmac
import re

from wherenow.errors import Unauthorized

_BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def extract_bearer_token(header: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header, or None."""
    if not header:
        return None
    match = _BEARER_RE.match(header.strip())
    if match is None:
        return None
    return match.group(1)


def is_authorized(header: str | None, secret: str) -> bool:
    token = extract_bearer_token(header)
    if not token or not secret:
        return False
    return hmac.compare_digest(secret.encode("utf-8"), token.encode("utf-8"))


def require_token(header: str | None, secret: str) -> None:
    """Raise Unauthorized unless the header carries the configured secret."""
    if not is_authorized(header, secret):
        raise Unauthorized()
