"""
Tests for the URL safety pipeline and the small sanitizers around it.
"""

import asyncio
import ipaddress

import pytest

from safelink.core.exceptions import InvalidURLError
from safelink.core.validators import (
    ValidationRule,
    is_blocked_hostname,
    is_idn,
    is_internal_host,
    is_open_redirect,
    is_private_ip,
    is_safe_redirect_target,
    sanitize_short_code,
    validate_host_header,
    validate_url,
)
from tests.conftest import make_resolver


async def rejected_rule(url: str, own_domain=None, resolver=None) -> str:
    with pytest.raises(InvalidURLError) as exc_info:
        await validate_url(url, own_domain, resolver=resolver or make_resolver())
    return exc_info.value.rule


class TestValidateURLAccepts:
    """URLs that must pass the pipeline."""

    @pytest.mark.asyncio
    async def test_plain_https_url(self, public_resolver):
        assert await validate_url("https://example.com/page", resolver=public_resolver) == "https://example.com/page"

    @pytest.mark.asyncio
    async def test_valid_urls(self, public_resolver):
        """Test that ordinary URLs are accepted unchanged."""
        valid_urls = [
            "http://example.com",
            "https://www.example.com/path/to/page",
            "http://subdomain.example.com:8080/path?query=value",
            "https://example.com/search?q=python&page=2",
        ]
        for url in valid_urls:
            assert await validate_url(url, resolver=public_resolver) == url, f"Should be valid: {url}"

    @pytest.mark.asyncio
    async def test_fragment_is_dropped(self, public_resolver):
        assert await validate_url("https://example.com/a#section", resolver=public_resolver) == "https://example.com/a"

    @pytest.mark.asyncio
    async def test_decoded_spaces_are_requoted(self, public_resolver):
        result = await validate_url("https://example.com/search?q=hello%20world", resolver=public_resolver)
        assert result == "https://example.com/search?q=hello%20world"

    @pytest.mark.asyncio
    async def test_surrounding_whitespace_is_trimmed(self, public_resolver):
        assert await validate_url("  https://example.com/  ", resolver=public_resolver) == "https://example.com/"

    @pytest.mark.asyncio
    async def test_words_containing_sql_keywords(self, public_resolver):
        """'or' inside a word, without a quote next to it, is not an injection."""
        url = "https://example.com/orders/update-history?select=colors"
        assert await validate_url(url, resolver=public_resolver) == url

    @pytest.mark.asyncio
    async def test_own_domain_public_path(self, public_resolver):
        url = "https://sho.rt/blog/post"
        assert await validate_url(url, "sho.rt", resolver=public_resolver) == url

    @pytest.mark.asyncio
    async def test_escaped_delimiters_keep_their_meaning(self, public_resolver):
        """Escaped '&', '#' and '?' stay escaped instead of becoming delimiters."""
        for url in [
            "https://example.com/search?q=rock%26roll",
            "https://example.com/page%23frag?x=1",
            "https://example.com/files/what%3F",
        ]:
            assert await validate_url(url, resolver=public_resolver) == url, f"Should be preserved: {url}"


class TestValidateURLRejects:
    """Each rejection reports the rule that fired."""

    @pytest.mark.asyncio
    async def test_too_long(self):
        assert await rejected_rule("https://example.com/" + "a" * 2100) == ValidationRule.LENGTH.value

    @pytest.mark.asyncio
    async def test_empty_and_schemeless(self):
        for url in ["", "   ", "not-a-url", "example.com", "http://"]:
            assert await rejected_rule(url) == "format", f"Should be a format error: {url!r}"

    @pytest.mark.asyncio
    async def test_malformed_percent_escape(self):
        assert await rejected_rule("https://example.com/%zz") == "format"

    @pytest.mark.asyncio
    async def test_double_encoding(self):
        assert await rejected_rule("https://example.com/%2541") == "encoding"

    @pytest.mark.asyncio
    async def test_double_protocol(self):
        assert await rejected_rule("https://https://evil.com") == "double_protocol"
        assert await rejected_rule("https://example.com/?next=http://evil.com") == "double_protocol"

    @pytest.mark.asyncio
    async def test_sql_patterns(self):
        assert await rejected_rule("https://example.com/?id=1' OR 1=1") == "sql"
        assert await rejected_rule("https://example.com/?q=union'") == "sql"

    @pytest.mark.asyncio
    async def test_disallowed_schemes(self):
        for url in ["javascript:alert(1)", "ftp://example.com/file", "file:///etc/passwd", "data:text/html,hi"]:
            assert await rejected_rule(url) == "scheme", f"Should be a scheme error: {url}"

    @pytest.mark.asyncio
    async def test_xss_tokens(self):
        assert await rejected_rule("https://example.com/<script>x</script>") == "xss"
        assert await rejected_rule("https://example.com/?a=<IMG src=x>") == "xss"
        assert await rejected_rule("https://example.com/?cb=document.cookie") == "xss"

    @pytest.mark.asyncio
    async def test_ssrf_literals_and_names(self):
        urls = [
            "http://localhost/",
            "http://api.localhost/",
            "http://127.0.0.1:8080/",
            "http://10.0.0.1/",
            "http://192.168.1.1/router",
            "http://169.254.169.254/latest/meta-data",
            "http://metadata.google.internal/computeMetadata/v1/",
            "http://[::1]/",
            "http://[::ffff:10.0.0.1]/",
            "http://0.0.0.0/",
        ]
        for url in urls:
            assert await rejected_rule(url) == "ssrf", f"Should be an SSRF error: {url}"

    @pytest.mark.asyncio
    async def test_ssrf_through_dns(self):
        resolver = make_resolver({"internal.example.com": ["10.1.2.3"]})
        assert await rejected_rule("https://internal.example.com/", resolver=resolver) == "ssrf"

    @pytest.mark.asyncio
    async def test_idn_host(self):
        assert await rejected_rule("https://exämple.com/") == "idn"

    @pytest.mark.asyncio
    async def test_internal_path_on_own_domain(self):
        assert await rejected_rule("https://sho.rt/admin/users", own_domain="sho.rt") == "internal_path"
        assert await rejected_rule("https://SHO.RT/.env", own_domain="https://sho.rt") == "internal_path"

    @pytest.mark.asyncio
    async def test_malformed_authority(self):
        """Hosts and userinfo with characters a URL parser must refuse."""
        urls = [
            "https://exa mple.com/",
            "https://ex<a>mple.com/",
            "https://10.0.0.1\\@example.com/",
            "https://user@evil@example.com/",
            "https://exa\tmple.com/",
            "https://example.com%2F@10.0.0.1/",
        ]
        for url in urls:
            assert await rejected_rule(url) == "format", f"Should be a format error: {url!r}"

    @pytest.mark.asyncio
    async def test_ssrf_trailing_dot_literals(self):
        """A root dot after an IP literal still points at the same address."""
        async def unresolvable(host):
            raise OSError("Name or service not known")

        for url in ["http://127.0.0.1./", "http://10.0.0.1./admin", "http://localhost./"]:
            assert await rejected_rule(url, own_domain="sho.rt", resolver=unresolvable) == "ssrf", (
                f"Should be an SSRF error: {url}"
            )


class TestDNSFailOpen:
    """A lookup that fails or hangs cannot prove a host is internal."""

    @pytest.mark.asyncio
    async def test_resolver_error_passes(self):
        async def broken(host):
            raise OSError("no such host")

        assert await validate_url("https://unknown.example/", resolver=broken) == "https://unknown.example/"

    @pytest.mark.asyncio
    async def test_resolver_timeout_passes(self):
        async def slow(host):
            await asyncio.sleep(5)
            return ["10.0.0.1"]

        assert not await is_internal_host("slow.example", resolver=slow, timeout=0.01)


class TestHostChecks:

    def test_private_ranges(self):
        assert is_private_ip(ipaddress.ip_address("172.16.5.4"))
        assert is_private_ip(ipaddress.ip_address("100.64.0.1"))
        assert is_private_ip(ipaddress.ip_address("fe80::1"))
        assert is_private_ip(ipaddress.ip_address("::ffff:127.0.0.1"))
        assert not is_private_ip(ipaddress.ip_address("8.8.8.8"))
        assert not is_private_ip(ipaddress.ip_address("2606:4700::1111"))

    def test_blocked_hostnames(self):
        assert is_blocked_hostname("LOCALHOST.")
        assert is_blocked_hostname("foo.localhost")
        assert is_blocked_hostname("metadata.azure.internal")
        assert not is_blocked_hostname("localhost-tools.example.com")

    def test_is_idn(self):
        assert is_idn("пример.рф")
        assert not is_idn("xn--e1afmkfd.xn--p1ai")

    def test_open_redirect_needs_own_domain(self):
        assert not is_open_redirect("sho.rt", "/admin", None)
        assert not is_open_redirect("other.com", "/admin", "sho.rt")
        assert is_open_redirect("sho.rt", "/API/v1", "sho.rt")


class TestRedirectTargetCheck:

    def test_safe_targets(self):
        assert is_safe_redirect_target("https://example.com/")
        assert is_safe_redirect_target("http://example.com:8080/a?b=c")

    def test_unsafe_targets(self):
        for url in [None, "", "javascript:alert(1)", "/relative/path", "//example.com", "ftp://example.com"]:
            assert not is_safe_redirect_target(url), f"Should be unsafe: {url!r}"


class TestSanitizers:

    def test_sanitize_short_code(self):
        assert sanitize_short_code("aZ09_-xy") == "aZ09_-xy"
        assert sanitize_short_code("  abc  ") == "abc"
        assert sanitize_short_code("") is None
        assert sanitize_short_code("abc/def") is None
        assert sanitize_short_code("abc.def") is None
        assert sanitize_short_code("a" * 21) is None

    def test_validate_host_header(self):
        assert validate_host_header("sho.rt", "sho.rt")
        assert validate_host_header("sho.rt:8443", "https://sho.rt")
        assert not validate_host_header("evil.com", "sho.rt")
        assert not validate_host_header(None, "sho.rt")
        assert validate_host_header("anything", None)
