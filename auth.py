"""
auth.py

Webhook signature verification (HMAC-SHA256 over the raw request body).

Policy:
- WEBHOOK_SECRET unset  -> verification disabled, every request passes.
- WEBHOOK_SECRET set    -> a present signature header must match.
- Header missing while a secret is set -> rejected unless WEBHOOK_SIGNATURE_REQUIRED=0.
"""

import hashlib
import hmac
from functools import wraps
from typing import Callable, Optional, TypeVar

from flask import jsonify, request

from alert_helpers import get_signature_header_name, get_webhook_secret, is_signature_required

F = TypeVar("F", bound=Callable[..., object])


def compute_signature(body: bytes, secret: str) -> str:
    """Hex encoded HMAC-SHA256 of `body` keyed by `secret`."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: Optional[str], secret: Optional[str], required: bool = True) -> bool:
    """
    Check `signature` (hex, optionally prefixed with "sha256=") against HMAC-SHA256(secret, body).

    Returns True when no secret is configured, and `not required` when the header is absent.
    Anything that does not decode as a hex digest of the right length is rejected.
    """
    if not secret:
        return True

    claimed = (signature or "").strip()
    if not claimed:
        return not required

    if claimed.lower().startswith("sha256="):
        claimed = claimed[len("sha256="):]

    try:
        bytes.fromhex(claimed)
    except ValueError:
        return False

    return hmac.compare_digest(compute_signature(body, secret), claimed.lower())


def _unauthorized(detail: str):
    return jsonify({"error": detail}), 401


def requires_webhook_signature(fn: F) -> F:
    """
    Flask decorator enforcing the webhook signature policy before the view runs.

    Env vars:
    - WEBHOOK_SECRET (optional; empty disables verification)
    - WEBHOOK_SIGNATURE_HEADER (optional, default: "X-Railway-Signature")
    - WEBHOOK_SIGNATURE_REQUIRED (optional, default: "1")
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):  # type: ignore[misc]
        secret = get_webhook_secret()
        if not secret:
            return fn(*args, **kwargs)

        header_name = get_signature_header_name()
        signature = request.headers.get(header_name)
        # cache=True keeps the exact bytes available to the view afterwards.
        body = request.get_data(cache=True)

        if not (signature or "").strip():
            if not is_signature_required():
                return fn(*args, **kwargs)
            print(f"[webhook] rejected: missing {header_name} header")
            return _unauthorized(f"Missing required header: {header_name}")

        if not verify_signature(body, signature, secret):
            print(f"[webhook] rejected: invalid {header_name}")
            return _unauthorized("Invalid webhook signature")

        return fn(*args, **kwargs)

    return wrapper  # type: ignore[return-value]
