"""Article image URL resolution.

The element matched by ``image_selector`` can be an ``<img>``, a
``<picture>`` container, or any other element carrying the image in an
attribute or a CSS background. Each kind is handled explicitly; the
extracted candidate is then filtered for data URIs and placeholders,
resolved against the page base and checked for an image extension.
"""

import enum
import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

from bs4 import Tag

logger = logging.getLogger(__name__)

PLACEHOLDER_TOKENS = (
    "placeholder",
    "1x1",
    "blank.gif",
    "loading",
    "spinner",
    "dummy",
    "spacer",
    "transparent",
    "empty.png",
)
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")

_LAZY_ATTRIBUTES = ("data-src", "data-lazy-src", "data-original")
_BACKGROUND_URL_RE = re.compile(
    r"background(?:-image)?\s*:[^;]*?url\(\s*['\"]?([^'\")]+?)['\"]?\s*\)",
    re.IGNORECASE,
)


class ElementKind(enum.Enum):
    """Kinds of element an image selector can match."""

    IMAGE = "img"
    PICTURE = "picture"
    GENERIC = "generic"


def element_kind(element: Tag) -> ElementKind:
    name = (element.name or "").lower()
    if name == "img":
        return ElementKind.IMAGE
    if name == "picture":
        return ElementKind.PICTURE
    return ElementKind.GENERIC


def _attr(element: Tag, name: str) -> Optional[str]:
    value = element.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    if value and value.strip():
        return value.strip()
    return None


def first_srcset_url(srcset: Optional[str]) -> Optional[str]:
    """Return the URL of the first candidate in a ``srcset`` list."""
    if not srcset:
        return None
    first = srcset.split(",")[0].strip()
    if not first:
        return None
    return first.split()[0]


def _lazy_source(element: Tag) -> Optional[str]:
    for name in _LAZY_ATTRIBUTES:
        value = _attr(element, name)
        if value:
            return value
    return None


def _from_image(element: Tag) -> Optional[str]:
    return (
        _lazy_source(element)
        or _attr(element, "src")
        or first_srcset_url(_attr(element, "srcset"))
    )


def _from_picture(element: Tag) -> Optional[str]:
    candidate = None
    source = element.select_one("source[srcset]")
    if source is not None:
        candidate = first_srcset_url(_attr(source, "srcset"))

    if not candidate or candidate.startswith("data:"):
        fallback = element.find("img")
        if fallback is not None:
            candidate = _from_image(fallback) or candidate
    return candidate


def _from_generic(element: Tag) -> Optional[str]:
    candidate = _attr(element, "src") or _lazy_source(element)
    if candidate:
        return candidate

    style = _attr(element, "style")
    if style:
        match = _BACKGROUND_URL_RE.search(style)
        if match:
            return match.group(1).strip()
    return None


def extract_image_candidate(element: Tag) -> Optional[str]:
    """Pull the raw (unresolved) image URL out of a matched element."""
    kind = element_kind(element)
    if kind is ElementKind.IMAGE:
        return _from_image(element)
    if kind is ElementKind.PICTURE:
        return _from_picture(element)
    if kind is ElementKind.GENERIC:
        return _from_generic(element)
    raise AssertionError(f"Unhandled element kind: {kind}")


def is_placeholder(url: str) -> bool:
    lowered = url.lower()
    return any(token in lowered for token in PLACEHOLDER_TOKENS)


def has_image_extension(url: str) -> bool:
    """Check the URL path (query ignored) ends with a known image extension."""
    path = urlsplit(url).path.lower()
    return path.endswith(IMAGE_EXTENSIONS)


def resolve_image(element: Optional[Tag], base_url: str) -> Optional[str]:
    """Resolve the image URL for a matched element.

    Args:
        element: Element matched by the image selector, or None.
        base_url: Base used to resolve relative image URLs.

    Returns:
        Absolute image URL (query string preserved), or None when the
        element has no usable image.
    """
    if element is None:
        return None

    candidate = extract_image_candidate(element)
    if not candidate or not candidate.strip():
        return None
    candidate = candidate.strip()

    if candidate.startswith("data:") or is_placeholder(candidate):
        logger.debug("Skipping data URI or placeholder image: %.60s", candidate)
        return None

    try:
        resolved = urljoin(base_url, candidate)
        parts = urlsplit(resolved)
        if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
            logger.debug("Image URL %r did not resolve to an absolute URL", candidate)
            return None
        if not has_image_extension(resolved):
            logger.debug("Image URL %r has no known image extension", resolved)
            return None
        return resolved
    except ValueError as e:
        logger.debug("Could not resolve image URL %r against %s: %s", candidate, base_url, e)
        return None
