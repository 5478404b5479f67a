"""
Request signing for the analytics endpoints.

The browser snippet wraps every event as ``{"payload": …, "_ts": ms, "_sig": …}``
where the signature is a 32-bit string hash of ``"<ts>:<payload json>:<key>"``.
The key ships in client JavaScript, so this is friction against scripted
fake events, not authentication. The hash below must stay bit-for-bit
compatible with the JavaScript signer.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_SIGNING_KEY = "fyrk-2024-analytics"
MAX_REQUEST_AGE_MS = 5 * 60 * 1000

_DIGITS36 = "0123456789abcdefghijklmnopqrstuvwxyz"


@dataclass
class SignatureCheck:
    is_valid: bool
    payload: Optional[dict] = None
    error: Optional[str] = None


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_DIGITS36[r])
    return "".join(reversed(out))


def simple_hash(text: str) -> str:
    """``h = h * 31 + c`` over UTF-16 code units, wrapped to signed 32 bits, abs, base 36."""
    h = 0
    units = text.encode("utf-16-le")
    for i in range(0, len(units), 2):
        h = (h * 31 + (units[i] | units[i + 1] << 8)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def _js_number(value: Any) -> Any:
    """Integral floats as ints, recursively, since JS prints ``1.0`` as ``1``."""
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return int(value)
    if isinstance(value, dict):
        return {k: _js_number(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_js_number(v) for v in value]
    return value


def payload_json(payload: Any) -> str:
    """Serialise like ``JSON.stringify``: compact, key order preserved, non-ASCII kept."""
    return json.dumps(_js_number(payload), separators=(",", ":"), ensure_ascii=False)


def _now_ms() -> int:
    return int(time.time() * 1000)


def create_signature(timestamp_ms: int, payload: str, key: str = DEFAULT_SIGNING_KEY) -> str:
    return simple_hash(f"{timestamp_ms}:{payload}:{key}")


def sign_request(payload: dict, now_ms: Optional[int] = None, key: str = DEFAULT_SIGNING_KEY) -> dict:
    """Build the signed envelope the browser snippet sends."""
    ts = now_ms if now_ms is not None else _now_ms()
    return {"payload": payload, "_ts": ts, "_sig": create_signature(ts, payload_json(payload), key)}


def verify_signed_request(
    body: Any,
    now_ms: Optional[int] = None,
    key: str = DEFAULT_SIGNING_KEY,
    max_age_ms: int = MAX_REQUEST_AGE_MS,
) -> SignatureCheck:
    """Check envelope shape, timestamp freshness and signature."""
    if not isinstance(body, dict):
        return SignatureCheck(False, error="Missing signature fields")

    payload = body.get("payload")
    ts = body.get("_ts")
    sig = body.get("_sig")
    if payload is None or not ts or not sig:
        return SignatureCheck(False, error="Missing signature fields")
    if not isinstance(payload, dict) or isinstance(ts, bool) or not isinstance(ts, (int, float)):
        return SignatureCheck(False, error="Missing signature fields")

    age = (now_ms if now_ms is not None else _now_ms()) - ts
    if age < 0 or age > max_age_ms:
        return SignatureCheck(False, error="Request expired or invalid timestamp")

    expected = simple_hash(f"{_js_number(ts)}:{payload_json(payload)}:{key}")
    if sig != expected:
        return SignatureCheck(False, error="Invalid signature")

    return SignatureCheck(True, payload=payload)
