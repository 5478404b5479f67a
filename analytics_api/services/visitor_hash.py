"""
Anonymous visitor identifiers.

A visitor is ``sha256(address + date_key)`` cut to 16 hex chars. The date is
part of the input, so the same address gets a new token every UTC day and
tokens cannot be joined across days. Only the token is ever stored.
"""

import hashlib
from typing import Mapping, Optional

HASH_LENGTH = 16
UNKNOWN_ADDRESS = "unknown"


def hash_visitor(client_address: str, date_key: str) -> str:
    digest = hashlib.sha256((client_address + date_key).encode("utf-8")).hexdigest()
    return digest[:HASH_LENGTH]


def client_address(headers: Mapping[str, str], peer: Optional[str] = None) -> str:
    """Originating address: CDN header, then first X-Forwarded-For hop, then the socket peer."""
    cf_ip = (headers.get("cf-connecting-ip") or "").strip()
    if cf_ip:
        return cf_ip

    forwarded = headers.get("x-forwarded-for") or ""
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    return peer or UNKNOWN_ADDRESS
