"""URL decomposition for rule matching."""

import logging
from urllib.parse import urlsplit

from proxy_rules.models import URLComponents


logger = logging.getLogger(__name__)

# Schemes that must carry a host, with the port browsers leave implicit.
SPECIAL_SCHEMES = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}


def _fallback(url: str) -> URLComponents:
    return URLComponents(
        url=url,
        protocol="",
        hostname=url,
        pathname="",
        domain_parts=url.split("."),
    )


def parse_url(url: str) -> URLComponents:
    """Split a URL into components.

    Never raises. Input that is not an absolute URL is treated as a bare
    hostname so rules can still be evaluated against it.
    """
    try:
        parsed = urlsplit(url.strip())
        port = parsed.port
    except ValueError as e:
        logger.debug(f"Unparseable URL {url!r}: {e}")
        return _fallback(url)

    scheme = parsed.scheme.lower()
    if not scheme:
        return _fallback(url)

    hostname = parsed.hostname or ""
    if scheme in SPECIAL_SCHEMES and not hostname:
        return _fallback(url)

    pathname = parsed.path
    if scheme in SPECIAL_SCHEMES and not pathname:
        pathname = "/"

    if port is not None and SPECIAL_SCHEMES.get(scheme) == port:
        port = None

    return URLComponents(
        url=url,
        protocol=scheme,
        hostname=hostname,
        pathname=pathname,
        port=str(port) if port is not None else None,
        search=f"?{parsed.query}" if parsed.query else None,
        hash=f"#{parsed.fragment}" if parsed.fragment else None,
        domain_parts=hostname.split("."),
    )
