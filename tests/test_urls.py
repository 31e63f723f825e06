"""Tests for URL parsing."""

import pytest

from proxy_rules.urls import parse_url


class TestParseURL:
    """Tests for well-formed URLs."""

    def test_parse_full_url(self):
        """Test every component of a complete URL."""
        components = parse_url("https://www.Example.com:8443/path/to?q=1#frag")

        assert components.url == "https://www.Example.com:8443/path/to?q=1#frag"
        assert components.protocol == "https"
        assert components.hostname == "www.example.com"
        assert components.port == "8443"
        assert components.pathname == "/path/to"
        assert components.search == "?q=1"
        assert components.hash == "#frag"
        assert components.domain_parts == ["www", "example", "com"]

    def test_parse_default_port_omitted(self):
        """Test that a scheme's default port is dropped."""
        assert parse_url("https://example.com:443/").port is None
        assert parse_url("http://example.com:80/").port is None
        assert parse_url("http://example.com:8080/").port == "8080"

    def test_parse_empty_path_becomes_slash(self):
        """Test that http URLs without a path get '/'."""
        components = parse_url("https://example.com")
        assert components.pathname == "/"
        assert components.search is None
        assert components.hash is None

    def test_parse_ip_host(self):
        """Test parsing a URL with an IPv4 host."""
        components = parse_url("http://192.168.1.10:3000/api")
        assert components.hostname == "192.168.1.10"
        assert components.port == "3000"
        assert components.domain_parts == ["192", "168", "1", "10"]

    def test_parse_non_special_scheme(self):
        """Test that file URLs parse without a host."""
        components = parse_url("file:///etc/hosts")
        assert components.protocol == "file"
        assert components.hostname == ""
        assert components.pathname == "/etc/hosts"


class TestParseURLFallback:
    """Tests for malformed input."""

    @pytest.mark.parametrize(
        "url",
        [
            "example.com",
            "not a url",
            "http://",
            "http://example.com:99999/",
            "",
        ],
    )
    def test_fallback_never_raises(self, url):
        """Test that malformed URLs degrade to a bare hostname."""
        components = parse_url(url)

        assert components.url == url
        assert components.protocol == ""
        assert components.hostname == url
        assert components.pathname == ""
        assert components.domain_parts == url.split(".")

    def test_fallback_hostname_is_matchable(self):
        """Test that a bare domain keeps its labels."""
        components = parse_url("www.example.com")
        assert components.domain_parts == ["www", "example", "com"]
