"""Canonical URL normalization for citation binding.

Every function in this module is total: malformed input is returned (or
judged) as-is and nothing here raises.
"""

import re
import string
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}

# Placeholders some capture tools write instead of a real URL.
SYNTHETIC_MARKERS = ("multiple_sources_synthesis", "synthesis:")

_UNRESERVED = frozenset(string.ascii_letters + string.digits + "-._~")
_PERCENT_ESCAPE = re.compile(r"%([0-9A-Fa-f]{2})")


def _normalize_escapes(path: str) -> str:
    def replace(match: "re.Match[str]") -> str:
        char = chr(int(match.group(1), 16))
        if char in _UNRESERVED:
            return char
        return "%" + match.group(1).upper()

    return _PERCENT_ESCAPE.sub(replace, path)


def normalize_url(url: str) -> str:
    """Return the canonical form of a URL used for equality comparison.

    Lowercases scheme and host, drops default ports, decodes escaped
    unreserved characters in the path, removes trailing slashes (root stays
    ``/``), sorts query parameters and discards the fragment.

    Args:
        url: URL to normalize

    Returns:
        Canonical URL, or the input unchanged when it cannot be parsed
    """
    if not isinstance(url, str):
        return url
    candidate = url.strip()
    if candidate.startswith(SYNTHETIC_MARKERS):
        return url
    try:
        parts = urlsplit(candidate)
        if not parts.scheme or not parts.netloc:
            return url
        scheme = parts.scheme.lower()
        host = parts.hostname or ""
        port = parts.port
    except ValueError:
        return url
    if not host:
        return url

    if ":" in host:
        host = f"[{host}]"
    userinfo, _, _ = parts.netloc.rpartition("@")
    netloc = f"{userinfo}@{host}" if userinfo else host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    path = _normalize_escapes(parts.path).rstrip("/") or "/"
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, path, query, ""))


def urls_equal(a: str, b: str) -> bool:
    """Compare two URLs after normalization."""
    return normalize_url(a) == normalize_url(b)


def is_valid_url(url: Optional[str]) -> bool:
    """Check that a URL is an absolute http(s) URL with a host."""
    if not url or not isinstance(url, str) or url.strip().startswith(SYNTHETIC_MARKERS):
        return False
    try:
        parts = urlsplit(url.strip())
        return parts.scheme.lower() in DEFAULT_PORTS and bool(parts.hostname)
    except ValueError:
        return False


def is_homepage(url: Optional[str]) -> bool:
    """Check whether a URL points at a bare host rather than a specific document."""
    if not is_valid_url(url):
        return False
    parts = urlsplit(normalize_url(url))
    return parts.path in ("", "/") and not parts.query


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Get the lowercased host of a URL, or None when it has none."""
    if not is_valid_url(url):
        return None
    try:
        return urlsplit(url.strip()).hostname
    except ValueError:
        return None
