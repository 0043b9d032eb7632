"""Tests for URL normalization."""

import pytest

from evidence_verifier.domain.services.url_normalizer import (
    extract_domain,
    is_homepage,
    is_valid_url,
    normalize_url,
    urls_equal,
)


def test_scheme_host_and_default_port_are_normalized():
    """Test case, default port and trailing slash do not matter."""
    assert normalize_url("HTTP://Example.com:80/x/") == normalize_url("http://example.com/x")
    assert normalize_url("HTTP://Example.com:80/x/") == "http://example.com/x"


@pytest.mark.parametrize("url", [
    "HTTP://Example.com:80/x/",
    "https://a.com/x?b=2&a=1#frag",
    "https://a.com/%7euser/%2f",
    "https://a.com:8443/",
    "not a url",
    "multiple_sources_synthesis",
    "",
])
def test_normalization_is_idempotent(url):
    """Test normalizing twice gives the same result as once."""
    assert normalize_url(normalize_url(url)) == normalize_url(url)


def test_query_is_sorted_and_fragment_dropped():
    """Test query parameters are sorted and the fragment removed."""
    assert normalize_url("https://a.com/p?b=2&a=1#section") == "https://a.com/p?a=1&b=2"


def test_empty_query_is_dropped():
    assert normalize_url("https://a.com/x?") == "https://a.com/x"


def test_non_default_port_is_kept():
    assert normalize_url("https://a.com:8443/x") == "https://a.com:8443/x"
    assert normalize_url("https://a.com:443/x") == "https://a.com/x"


def test_unreserved_escapes_are_decoded():
    """Test escaped unreserved characters decode and others are uppercased."""
    assert normalize_url("https://a.com/%7euser/a%2fb") == "https://a.com/~user/a%2Fb"


def test_root_path_is_kept():
    assert normalize_url("https://a.com") == "https://a.com/"
    assert normalize_url("https://a.com///") == "https://a.com/"


def test_unparseable_input_is_returned_unchanged():
    """Test malformed URLs are returned as-is rather than raising."""
    assert normalize_url("not a url") == "not a url"
    assert normalize_url("http://[::1") == "http://[::1"
    assert normalize_url("multiple_sources_synthesis") == "multiple_sources_synthesis"


def test_urls_equal():
    assert urls_equal("https://A.com/x", "https://a.com/x/")
    assert not urls_equal("https://a.com/x", "https://a.com/y")


def test_is_valid_url():
    assert is_valid_url("https://a.com/x")
    assert not is_valid_url("ftp://a.com/x")
    assert not is_valid_url("synthesis:S001+S002")
    assert not is_valid_url(None)
    assert not is_valid_url("a.com/x")


def test_is_homepage():
    assert is_homepage("https://www.bls.gov/")
    assert is_homepage("https://www.bls.gov")
    assert not is_homepage("https://www.bls.gov/news.release/empsit.nr0.htm")
    assert not is_homepage("https://www.bls.gov/?q=cpi")


def test_extract_domain():
    assert extract_domain("https://WWW.Example.com/x") == "www.example.com"
    assert extract_domain("not a url") is None
