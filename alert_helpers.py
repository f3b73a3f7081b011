"""
alert_helpers.py

Small helper utilities used across the Flask app, the event mapper and the notification hub.

Key goals:
- Keep environment/config lookups in one place
- Provide small, reusable utilities (safe field access, ISO timestamps, id generation)
"""

import os
import time
import traceback
from datetime import datetime, timezone
from typing import Any, List, Optional

DEFAULT_SIGNATURE_HEADER = "X-Railway-Signature"
DEFAULT_KEEPALIVE_SECONDS = 30.0


def safe_get(obj: Any, key: str, default: Any = None) -> Any:
    """
    Safely read a field from a dict that may be missing, null, or not a dict at all.
    Webhook payloads are untrusted: `payload["project"]` can be absent, None or a string.
    """
    if isinstance(obj, dict):
        value = obj.get(key, default)
        return default if value is None else value
    return default


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string with millisecond precision (e.g. 2024-01-01T12:00:00.000Z)."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def now_millis() -> int:
    return int(time.time() * 1000)


def parse_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    s = str(value if value is not None else "").strip().lower()
    if s in ("1", "true", "yes", "y", "on"):
        return True
    if s in ("0", "false", "no", "n", "off"):
        return False
    return bool(default)


def get_env_bool(key: str, default: bool) -> bool:
    """Read a boolean feature flag from the environment (unset/empty -> default)."""
    raw = (os.getenv(key, "") or "").strip()
    if not raw:
        return bool(default)
    return parse_bool(raw, default)


def get_webhook_secret() -> Optional[str]:
    """
    Shared secret used to sign webhook bodies (HMAC-SHA256).
    Convention: WEBHOOK_SECRET. Empty/unset disables signature verification entirely.
    """
    secret = (os.getenv("WEBHOOK_SECRET", "") or "").strip()
    return secret or None


def is_signature_required() -> bool:
    """
    When a secret is configured, should a request WITHOUT a signature header be rejected?
    Convention: WEBHOOK_SIGNATURE_REQUIRED (default: on, i.e. fail closed).
    """
    return get_env_bool("WEBHOOK_SIGNATURE_REQUIRED", True)


def get_signature_header_name() -> str:
    name = (os.getenv("WEBHOOK_SIGNATURE_HEADER", "") or "").strip()
    return name or DEFAULT_SIGNATURE_HEADER


def get_keepalive_interval() -> float:
    """
    Seconds between `ping` frames on the /events stream.
    Convention: EVENTS_KEEPALIVE_SECONDS (default 30). Invalid or non-positive values fall back to the default.
    """
    raw = (os.getenv("EVENTS_KEEPALIVE_SECONDS", "") or "").strip()
    try:
        v = float(raw)
    except ValueError:
        return DEFAULT_KEEPALIVE_SECONDS
    return v if v > 0 else DEFAULT_KEEPALIVE_SECONDS


def get_cors_origins() -> List[str]:
    """Comma separated list in CORS_ORIGINS. Default: ["*"]."""
    raw = (os.getenv("CORS_ORIGINS", "*") or "*").strip()
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def debug_dump(obj: Any, enabled_env: str = "WEBHOOK_DEBUG_DUMP_EVENT") -> None:
    """
    Print objects only when explicitly enabled (useful for debugging webhooks without flooding logs).
    Enable with: WEBHOOK_DEBUG_DUMP_EVENT=1
    """
    try:
        if (os.getenv(enabled_env, "0") or "0").strip() == "1":
            print(obj)
    except Exception:
        traceback.print_exc()
