"""
Tests for short code generation.
"""

import re

from safelink.services.shortcode import SHORT_CODE_LENGTH, generate_short_code

URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")


class TestShortCodeGeneration:
    """Codes are a keyed digest of the link id."""

    def test_fixed_length_and_alphabet(self):
        """Test that every code is 8 URL-safe characters with no padding."""
        for link_id in [1, 2, 62, 1000, 10**9, 2**53]:
            code = generate_short_code("secret", link_id)
            assert len(code) == SHORT_CODE_LENGTH, f"Code for {link_id} should be 8 chars, got {code}"
            assert URL_SAFE.match(code), f"Code for {link_id} is not URL-safe: {code}"

    def test_deterministic(self):
        assert generate_short_code("secret", 42) == generate_short_code("secret", 42)

    def test_depends_on_id(self):
        codes = {generate_short_code("secret", link_id) for link_id in range(1, 2001)}
        assert len(codes) == 2000

    def test_depends_on_secret(self):
        assert generate_short_code("secret-a", 7) != generate_short_code("secret-b", 7)

    def test_not_sequential(self):
        """Neighbouring ids do not share a prefix the way a counter encoding would."""
        first, second = generate_short_code("secret", 1), generate_short_code("secret", 2)
        assert first[:4] != second[:4]
