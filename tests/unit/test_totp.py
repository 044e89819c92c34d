"""Unit tests for TOTP generation and verification (RFC 6238 vectors)."""

import base64

import pytest

from sitekb.verification.totp import (
    generate_code,
    generate_secret,
    provisioning_uri,
    qr_data_url,
    qr_terminal,
    time_remaining,
    verify_code,
)

# RFC 6238 SHA-1 seed "12345678901234567890", base32 encoded.
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


class TestGenerateCode:
    @pytest.mark.parametrize("at,expected", [
        (59, "287082"),
        (1111111109, "081804"),
        (1111111111, "050471"),
        (1234567890, "005924"),
        (2000000000, "279037"),
    ])
    def test_rfc_vectors(self, at, expected):
        assert generate_code(RFC_SECRET, at=at) == expected

    def test_lowercase_and_unpadded_secret(self):
        assert generate_code(RFC_SECRET.lower(), at=59) == "287082"

    def test_invalid_secret_raises(self):
        with pytest.raises(ValueError):
            generate_code("not base32!", at=59)


class TestVerifyCode:
    def test_window_tolerance(self):
        t = 1111111109
        code = generate_code(RFC_SECRET, at=t)
        assert verify_code(RFC_SECRET, code, at=t)
        assert verify_code(RFC_SECRET, code, at=t + 29)
        assert verify_code(RFC_SECRET, code, at=t - 29)
        assert not verify_code(RFC_SECRET, code, at=t + 61)

    def test_zero_window(self):
        t = 1111111109
        code = generate_code(RFC_SECRET, at=t)
        assert not verify_code(RFC_SECRET, code, at=t + 30, window=0)

    @pytest.mark.parametrize("secret,code", [
        (None, "287082"),
        ("", "287082"),
        (RFC_SECRET, None),
        (RFC_SECRET, ""),
        (RFC_SECRET, "28708"),
        (RFC_SECRET, "abcdef"),
        ("not base32!", "287082"),
    ])
    def test_missing_or_malformed_is_false(self, secret, code):
        assert verify_code(secret, code, at=59) is False

    def test_spaces_in_code(self):
        assert verify_code(RFC_SECRET, "287 082", at=59)


class TestEnrolment:
    def test_generate_secret(self):
        secret = generate_secret()
        assert len(base64.b32decode(secret)) == 20
        assert secret != generate_secret()

    def test_provisioning_uri(self):
        uri = provisioning_uri("ABCDEF", "alice@example.com", "SiteBuilder")
        assert uri.startswith("otpauth://totp/SiteBuilder:alice%40example.com?")
        assert "secret=ABCDEF" in uri
        assert "issuer=SiteBuilder" in uri

    def test_time_remaining(self):
        assert time_remaining(at=59) == 1
        assert time_remaining(at=60) == 30


class TestQrCode:
    URI = "otpauth://totp/SiteBuilder:alice%40example.com?secret=GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

    def test_data_url_is_svg(self):
        url = qr_data_url(self.URI)
        assert url.startswith("data:image/svg+xml;base64,")
        svg = base64.b64decode(url.split(",", 1)[1])
        assert b"<svg" in svg

    def test_terminal_rendering_is_square_block_art(self):
        lines = qr_terminal(self.URI).splitlines()
        assert len(lines) > 10
        assert len({len(line) for line in lines}) == 1
