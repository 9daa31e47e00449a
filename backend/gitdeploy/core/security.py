import hashlib
import hmac
import time
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from jose import jwt

from gitdeploy.core.constants import (
    GITHUB_APP_JWT_CLOCK_SKEW_SECONDS,
    GITHUB_APP_JWT_TTL_SECONDS,
    SIGNATURE_ALGORITHM,
)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return value


def sign_payload(payload: bytes, secret: Union[str, bytes]) -> str:
    """Returns the hex HMAC-SHA1 digest of payload."""
    return hmac.new(_as_bytes(secret), payload, hashlib.sha1).hexdigest()


def signature_header_value(payload: bytes, secret: Union[str, bytes]) -> str:
    return f"{SIGNATURE_ALGORITHM}={sign_payload(payload, secret)}"


def validate_signature(payload: bytes, signature: Optional[str], secret: Union[str, bytes]) -> bool:
    """
    Validates a ``sha1=<hex>`` signature against the exact payload bytes.

    Returns False for a missing signature, an unknown algorithm tag or a
    digest mismatch.
    """
    if not signature:
        return False
    algorithm, _, digest = signature.partition("=")
    if algorithm != SIGNATURE_ALGORITHM or not digest:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected, digest.lower())


def create_github_app_jwt(app_id: str, private_key: str, now: Optional[int] = None) -> str:
    """
    Creates the RS256 JWT a GitHub App uses to request installation tokens.

    ``iat`` is backdated to tolerate clock drift between us and GitHub.
    """
    issued_at = int(now if now is not None else time.time())
    to_encode = {
        "iat": issued_at - GITHUB_APP_JWT_CLOCK_SKEW_SECONDS,
        "exp": issued_at + GITHUB_APP_JWT_TTL_SECONDS,
        "iss": app_id,
    }
    return jwt.encode(to_encode, private_key, algorithm="RS256")


def redact_url(url: str) -> str:
    """Strips any userinfo from a URL so it can be logged."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "<unparseable url>"
    if parts.username is None and parts.password is None:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))
