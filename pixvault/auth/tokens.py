"""HMAC-SHA256 signed tokens carrying a small JSON claim set."""

import base64
import binascii
import hashlib
import hmac
import json
import time


def _sign(secret: str, body: str) -> bytes:
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).digest()


def create_signed_token(claims: dict, secret: str, expires_in: int) -> str:
    """Encode *claims* plus an ``exp`` timestamp as ``body.signature``.

    Both parts are URL-safe base64, so the token can travel in a header or
    cookie unchanged.
    """
    claims = {**claims, "exp": int(time.time()) + expires_in}
    body = base64.urlsafe_b64encode(json.dumps(claims, separators=(",", ":")).encode()).decode()
    signature = base64.urlsafe_b64encode(_sign(secret, body)).decode()
    return f"{body}.{signature}"


def verify_signed_token(token: str, secret: str) -> dict | None:
    """Return the claims of a valid token, or ``None``.

    A token is rejected when it is malformed, signed with another secret,
    tampered with or past its ``exp``.
    """
    body, sep, signature = token.partition(".")
    if not sep or "." in signature:
        return None

    try:
        presented = base64.urlsafe_b64decode(signature)
        claims = json.loads(base64.urlsafe_b64decode(body))
    except (binascii.Error, ValueError):
        return None

    if not hmac.compare_digest(_sign(secret, body), presented):
        return None
    if not isinstance(claims, dict):
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or time.time() > exp:
        return None
    return claims
