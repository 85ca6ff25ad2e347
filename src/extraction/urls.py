"""URL canonicalization and link resolution.

Two separate operations:
- ``normalize_url`` builds the dedup key stored next to each article.
- ``resolve_link`` turns an href into the absolute URL shown to readers.
"""

import logging
from typing import Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from src.errors import LinkResolutionError

logger = logging.getLogger(__name__)

_WEB_SCHEMES = ("http", "https")
_DEFAULT_PORTS = {"http": 80, "https": 443}


def is_absolute_http_url(url: str) -> bool:
    """Check that a string parses as an absolute http(s) URL with a host."""
    if not url or not url.strip():
        return False
    try:
        parts = urlsplit(url.strip())
        return parts.scheme.lower() in _WEB_SCHEMES and bool(parts.hostname)
    except ValueError:
        return False


def _has_scheme(url: str) -> bool:
    lowered = url.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def normalize_url(url: str, base_url: Optional[str] = None) -> Optional[str]:
    """Normalize a URL into a comparison key for deduplication.

    - Resolves scheme-less input against ``base_url``.
    - Forces https, strips a leading ``www.``.
    - Strips trailing slashes from the path (the root path stays ``/``).
    - Drops query string and fragment, lower-cases the result.

    ``data:`` URIs are returned unchanged.

    Args:
        url: URL to normalize.
        base_url: Base used when ``url`` is relative.

    Returns:
        The normalized key, or None if the input cannot be parsed.
    """
    if not url or not url.strip():
        return None
    url = url.strip()

    if url.startswith("data:"):
        return url

    try:
        if _has_scheme(url):
            resolved = url
        else:
            if not base_url or not is_absolute_http_url(base_url):
                logger.debug("Cannot normalize relative URL %r without a valid base", url)
                return None
            resolved = urljoin(base_url.strip(), url)

        parts = urlsplit(resolved)
        scheme = parts.scheme.lower()
        host = parts.hostname
        if scheme not in _WEB_SCHEMES or not host:
            return None

        if host.startswith("www."):
            host = host[4:]
        # The key is always https, so 443 goes too, whatever the input scheme
        port = parts.port
        if port is not None and port not in (_DEFAULT_PORTS[scheme], _DEFAULT_PORTS["https"]):
            host = f"{host}:{port}"

        path = parts.path.rstrip("/") or "/"
        normalized = urlunsplit(("https", host, path, "", ""))
        return normalized.lower()

    except ValueError as e:
        logger.debug("Error normalizing URL %r (base: %s): %s", url, base_url or "N/A", e)
        return None


def resolve_link(href: str, base_url: str) -> str:
    """Resolve an href against a base without canonicalizing it.

    Raises:
        LinkResolutionError: if the result is not an absolute http(s) URL.
    """
    if not href or not href.strip():
        raise LinkResolutionError("empty href")
    href = href.strip()

    try:
        if _has_scheme(href):
            resolved = href
        elif base_url and is_absolute_http_url(base_url):
            resolved = urljoin(base_url.strip(), href)
        else:
            raise LinkResolutionError(f"cannot resolve {href!r} against base {base_url!r}")
        parts = urlsplit(resolved)
        if parts.scheme.lower() not in _WEB_SCHEMES or not parts.hostname:
            raise LinkResolutionError(f"{resolved!r} is not an absolute http(s) URL")
        _ = parts.port  # raises ValueError on a malformed port
    except LinkResolutionError:
        raise
    except ValueError as e:
        raise LinkResolutionError(f"cannot resolve {href!r} against base {base_url!r}: {e}") from e

    return resolved
