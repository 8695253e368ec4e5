"""
Input Validators and Sanitizers

This module provides validation and sanitization functions for user inputs.
These functions help prevent security issues and ensure data integrity.

URL safety pipeline (validate_url), short-circuiting on the first failure:
1. Length bound (2048 bytes)
2. Single percent-decode; leftover escapes mean double encoding
3. Double protocol scan (https://https://...)
4. SQL keyword next to a quote character
5. Parse as an absolute URL with a well-formed authority (RFC 3986 characters,
   no control characters, identical before and after decoding)
6. Scheme allow-list (http, https)
7. XSS token scan over the whole decoded string
8. SSRF: blocked hostnames, metadata endpoints, private/reserved addresses
9. IDN hostnames
10. Redirects back into our own internal paths
11. Fragment stripped, URL rebuilt from the submitted (undecoded) components

Security Considerations:
- Every rejection names the rule that fired (ValidationRule)
- DNS failures during the SSRF check do not block the URL: an unresolvable
  hostname cannot be confirmed internal
- The DNS lookup is the only side effect and is bounded by a timeout
"""

import asyncio
import ipaddress
import logging
import re
import socket
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional, Union
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from safelink.core.exceptions import InvalidURLError

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
HostResolver = Callable[[str], Awaitable[Iterable[str]]]

MAX_URL_LENGTH = 2048
MAX_SHORT_CODE_LENGTH = 20
DEFAULT_DNS_TIMEOUT = 2.0

ALLOWED_SCHEMES = frozenset({"http", "https"})


class ValidationRule(str, Enum):
    """Policy rule that rejected a URL."""
    LENGTH = "length"
    FORMAT = "format"
    ENCODING = "encoding"
    DOUBLE_PROTOCOL = "double_protocol"
    SQL = "sql"
    SCHEME = "scheme"
    XSS = "xss"
    SSRF = "ssrf"
    IDN = "idn"
    INTERNAL_PATH = "internal_path"


REJECTION_REASONS = {
    ValidationRule.LENGTH: f"url exceeds maximum length of {MAX_URL_LENGTH} characters",
    ValidationRule.FORMAT: "invalid url format",
    ValidationRule.ENCODING: "url contains encoded characters which are not allowed",
    ValidationRule.DOUBLE_PROTOCOL: "url contains double protocol sequence",
    ValidationRule.SQL: "url contains SQL-like patterns",
    ValidationRule.SCHEME: "only http and https protocols are allowed",
    ValidationRule.XSS: "url contains potentially malicious content (XSS)",
    ValidationRule.SSRF: "url points to internal network address (SSRF)",
    ValidationRule.IDN: "internationalized domain names not allowed for security",
    ValidationRule.INTERNAL_PATH: "redirect to internal application paths not allowed",
}

_MALFORMED_ESCAPE = re.compile(r"%(?![0-9a-fA-F]{2})")
_ENCODED_OCTET = re.compile(r"%[0-9a-fA-F]{2}")
_DOUBLE_PROTOCOL = re.compile(
    r"[a-zA-Z][a-zA-Z0-9+.\-]*://.*[a-zA-Z][a-zA-Z0-9+.\-]*://",
    re.DOTALL,
)

_SQL_KEYWORDS = r"(?:or|and|union|select|drop|insert|update|delete|where|exec|execute)"
_SQL_PATTERN = re.compile(
    rf"['\"]\s*{_SQL_KEYWORDS}\b|\b{_SQL_KEYWORDS}\s*['\"]",
    re.IGNORECASE,
)

_SHORT_CODE_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

# RFC 3986 authority characters; non-ASCII is let through for the IDN rule
_NETLOC_PATTERN = re.compile(r"^[A-Za-z0-9\-._~!$&'()*+,;=:@\[\]\u0080-\U0010ffff]*$")

XSS_TOKENS = (
    "<script",
    "</script>",
    "javascript:",
    "onerror=",
    "onload=",
    "onclick=",
    "onmouseover=",
    "onfocus=",
    "onblur=",
    "onchange=",
    "onsubmit=",
    "<img",
    "<iframe",
    "<object",
    "<embed",
    "<link",
    "<meta",
    "fromcharcode",
    "eval(",
    "alert(",
    "document.cookie",
    "document.write",
    "innerhtml",
    "vbscript:",
    "expression(",
)

BLOCKED_HOSTS = (
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
)

METADATA_HOSTS = (
    "169.254.169.254",
    "metadata.google.internal",
    "metadata.azure.internal",
)

BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(block)
    for block in (
        "0.0.0.0/8",        # "this" network
        "10.0.0.0/8",       # private class A
        "172.16.0.0/12",    # private class B
        "192.168.0.0/16",   # private class C
        "127.0.0.0/8",      # loopback
        "169.254.0.0/16",   # link-local, cloud metadata
        "100.64.0.0/10",    # CGNAT
        "192.0.0.0/24",     # IETF protocol assignments
        "192.0.2.0/24",     # TEST-NET-1
        "198.51.100.0/24",  # TEST-NET-2
        "203.0.113.0/24",   # TEST-NET-3
        "::1/128",          # IPv6 loopback
        "fc00::/7",         # IPv6 unique local
        "fe80::/10",        # IPv6 link-local
    )
)

INTERNAL_PATHS = (
    "/admin",
    "/api",
    "/debug",
    "/metrics",
    "/status",
    "/.well-known",
    "/.env",
    "/config",
    "/internal",
    "/health",
)

_PATH_SAFE = "/:@!$&'()*+,;=-._~"
_QUERY_SAFE = "/?:@!$&'()*+,;=-._~"


def _is_valid_netloc(netloc: str) -> bool:
    return bool(_NETLOC_PATTERN.match(netloc)) and netloc.count("@") <= 1


def _reject(url: str, rule: ValidationRule) -> InvalidURLError:
    return InvalidURLError(url, reason=REJECTION_REASONS[rule], rule=rule.value)


async def resolve_host(host: str) -> list[str]:
    """Resolve a hostname to its IP address strings using the loop's resolver."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return [info[4][0] for info in infos]


def parse_ip(value: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return None


def is_private_ip(ip: IPAddress) -> bool:
    """Check whether an address falls inside the blocked CIDR list."""
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return any(ip in network for network in BLOCKED_NETWORKS)


def is_blocked_hostname(host: str) -> bool:
    """Match loopback aliases (and their subdomains) and cloud metadata names."""
    host = host.lower().rstrip(".")
    for blocked in BLOCKED_HOSTS:
        if host == blocked or host.endswith("." + blocked):
            return True
    return any(pattern in host for pattern in METADATA_HOSTS)


async def is_internal_host(
    host: str,
    resolver: Optional[HostResolver] = None,
    timeout: float = DEFAULT_DNS_TIMEOUT,
) -> bool:
    """
    Check if a hostname points into an internal network.

    IP literals are checked directly. Other names are resolved and rejected
    when any resolved address is private or reserved. A failed or timed-out
    lookup returns False. A trailing root dot ("127.0.0.1.") is ignored.
    """
    host = host.rstrip(".")
    if is_blocked_hostname(host):
        return True

    literal = parse_ip(host)
    if literal is not None:
        return is_private_ip(literal)

    resolver = resolver or resolve_host
    try:
        addresses = await asyncio.wait_for(resolver(host), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug(f"DNS lookup for {host} timed out after {timeout}s, not blocking")
        return False
    except (OSError, UnicodeError, ValueError) as e:
        logger.debug(f"DNS lookup for {host} failed ({e}), not blocking")
        return False

    for address in addresses:
        ip = parse_ip(address)
        if ip is not None and is_private_ip(ip):
            return True
    return False


def is_idn(host: str) -> bool:
    return any(ord(ch) > 127 for ch in host)


def _normalize_domain(domain: Optional[str]) -> str:
    if not domain:
        return ""
    domain = domain.strip().lower()
    if "://" in domain:
        domain = urlsplit(domain).hostname or ""
    return domain.rstrip(".")


def is_open_redirect(host: str, path: str, own_domain: Optional[str]) -> bool:
    """Reject targets that point back at our own internal paths."""
    own = _normalize_domain(own_domain)
    if not own or host.lower().rstrip(".") != own:
        return False
    path = path.lower()
    return any(path.startswith(internal) for internal in INTERNAL_PATHS)


async def validate_url(
    raw_url: str,
    own_domain: Optional[str] = None,
    *,
    resolver: Optional[HostResolver] = None,
    dns_timeout: float = DEFAULT_DNS_TIMEOUT,
) -> str:
    """
    Run the URL safety pipeline and return the canonical URL.

    Args:
        raw_url: URL exactly as submitted by the caller
        own_domain: Hostname (or base URL) this service answers on
        resolver: Async hostname resolver; defaults to the event loop's getaddrinfo
        dns_timeout: Upper bound in seconds for the SSRF DNS lookup

    Returns:
        Absolute http(s) URL with the fragment removed

    Raises:
        InvalidURLError: with ``rule`` set to the ValidationRule value that fired
    """
    if not isinstance(raw_url, str) or not raw_url.strip():
        raise _reject(str(raw_url), ValidationRule.FORMAT)

    if len(raw_url.encode("utf-8")) > MAX_URL_LENGTH:
        raise _reject(raw_url[:100], ValidationRule.LENGTH)

    url = raw_url.strip()

    if _MALFORMED_ESCAPE.search(url):
        raise _reject(raw_url, ValidationRule.FORMAT)
    try:
        decoded = unquote(url, errors="strict")
    except UnicodeDecodeError:
        raise _reject(raw_url, ValidationRule.FORMAT)

    if _ENCODED_OCTET.search(decoded):
        raise _reject(raw_url, ValidationRule.ENCODING)

    if _DOUBLE_PROTOCOL.search(decoded):
        raise _reject(raw_url, ValidationRule.DOUBLE_PROTOCOL)

    if _SQL_PATTERN.search(decoded):
        raise _reject(raw_url, ValidationRule.SQL)

    if _CONTROL_CHARS.search(decoded):
        raise _reject(raw_url, ValidationRule.FORMAT)

    try:
        parts = urlsplit(decoded)
        raw_parts = urlsplit(url)
        host = parts.hostname
        parts.port  # raises ValueError on a malformed port
    except ValueError:
        raise _reject(raw_url, ValidationRule.FORMAT)

    if not parts.scheme:
        raise _reject(raw_url, ValidationRule.FORMAT)

    # Authority must read the same before and after decoding
    if (raw_parts.scheme, raw_parts.netloc) != (parts.scheme, parts.netloc) or not _is_valid_netloc(parts.netloc):
        raise _reject(raw_url, ValidationRule.FORMAT)

    if parts.scheme not in ALLOWED_SCHEMES:
        raise _reject(raw_url, ValidationRule.SCHEME)

    host = (host or "").rstrip(".")
    if not host:
        raise _reject(raw_url, ValidationRule.FORMAT)

    lowered = decoded.lower()
    if any(token in lowered for token in XSS_TOKENS):
        raise _reject(raw_url, ValidationRule.XSS)

    if await is_internal_host(host, resolver=resolver, timeout=dns_timeout):
        raise _reject(raw_url, ValidationRule.SSRF)

    if is_idn(host):
        raise _reject(raw_url, ValidationRule.IDN)

    if is_open_redirect(host, parts.path, own_domain):
        raise _reject(raw_url, ValidationRule.INTERNAL_PATH)

    # Rebuilt from the submitted form so escaped '#', '?' and '&' keep their meaning
    return urlunsplit((
        raw_parts.scheme,
        raw_parts.netloc,
        quote(raw_parts.path, safe=_PATH_SAFE + "%"),
        quote(raw_parts.query, safe=_QUERY_SAFE + "%"),
        "",
    ))


def is_safe_redirect_target(url: Optional[str]) -> bool:
    """
    Re-check a stored URL before redirecting to it.

    Rows can predate a stricter policy or be edited directly in the database,
    so the read path only trusts absolute http(s) URLs with a host.
    """
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url)
        host = parts.hostname
    except ValueError:
        return False
    return parts.scheme in ALLOWED_SCHEMES and bool(host)


def sanitize_short_code(short_code: str) -> Optional[str]:
    """
    Sanitize and validate short code format.

    Short codes use the URL-safe base64 alphabet: [A-Za-z0-9_-]

    Args:
        short_code: The short code to sanitize

    Returns:
        Sanitized short code if valid, None otherwise
    """
    if not short_code or not isinstance(short_code, str):
        return None

    short_code = short_code.strip()

    if len(short_code) > MAX_SHORT_CODE_LENGTH:
        return None

    if not _SHORT_CODE_PATTERN.match(short_code):
        return None

    return short_code


def validate_host_header(host: Optional[str], expected: Optional[str]) -> bool:
    """Compare a request Host header (port ignored) against our own domain."""
    if not host:
        return False
    expected_host = _normalize_domain(expected)
    if not expected_host:
        return True
    try:
        actual = urlsplit(f"//{host}").hostname or ""
    except ValueError:
        return False
    return actual.rstrip(".") == expected_host
