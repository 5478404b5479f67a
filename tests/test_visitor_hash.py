"""
Tests for anonymous visitor hashing and client address extraction.
"""

import hashlib
import re

from analytics_api.services.visitor_hash import client_address, hash_visitor


class TestHashVisitor:
    def test_fixed_length_hex(self):
        token = hash_visitor("1.2.3.4", "2026-03-15")
        assert re.fullmatch(r"[0-9a-f]{16}", token)

    def test_deterministic(self):
        assert hash_visitor("1.2.3.4", "2026-03-15") == hash_visitor("1.2.3.4", "2026-03-15")

    def test_changes_with_address(self):
        assert hash_visitor("1.2.3.4", "2026-03-15") != hash_visitor("1.2.3.5", "2026-03-15")

    def test_changes_daily(self):
        assert hash_visitor("1.2.3.4", "2026-03-15") != hash_visitor("1.2.3.4", "2026-03-16")

    def test_is_truncated_sha256_of_address_and_date(self):
        expected = hashlib.sha256(b"1.2.3.42026-03-15").hexdigest()[:16]
        assert hash_visitor("1.2.3.4", "2026-03-15") == expected


class TestClientAddress:
    def test_cdn_header_wins(self):
        headers = {"cf-connecting-ip": "9.9.9.9", "x-forwarded-for": "1.1.1.1, 2.2.2.2"}
        assert client_address(headers, "127.0.0.1") == "9.9.9.9"

    def test_first_forwarded_hop(self):
        assert client_address({"x-forwarded-for": " 1.1.1.1 , 2.2.2.2"}, "127.0.0.1") == "1.1.1.1"

    def test_socket_peer(self):
        assert client_address({}, "10.0.0.7") == "10.0.0.7"

    def test_unknown(self):
        assert client_address({}) == "unknown"
        assert client_address({"x-forwarded-for": ""}) == "unknown"
