"""Per-item field extraction.

Turns one element matched by ``item_selector`` into an
``ArticleCandidate`` or a ``SkipReason``. Title and link are required;
summary, date and image are best-effort and only ever dropped.
"""

import logging
from typing import Optional, Union

from bs4 import Tag
from soupsieve import SelectorSyntaxError

from src.errors import LinkResolutionError
from src.extraction.dates import parse_date
from src.extraction.images import resolve_image
from src.extraction.urls import resolve_link
from src.models import ArticleCandidate, SelectorConfig, SkipReason

logger = logging.getLogger(__name__)


def element_text(element: Optional[Tag]) -> str:
    """Whitespace-collapsed text content of an element."""
    if element is None:
        return ""
    return " ".join(element.get_text(" ").split())


def _select_one(item: Tag, selector: str) -> Optional[Tag]:
    if not selector or not selector.strip():
        return None
    try:
        return item.select_one(selector)
    except (SelectorSyntaxError, ValueError) as e:
        logger.warning("Invalid selector %r: %s", selector, e)
        return None


def _raw_date(element: Optional[Tag]) -> Optional[str]:
    if element is None:
        return None
    value = element.get("datetime")
    if value and value.strip():
        return value.strip()
    return element_text(element) or None


def extract_item(
    item: Tag,
    config: SelectorConfig,
    base_url: str,
) -> Union[ArticleCandidate, SkipReason]:
    """Extract article fields from one item element.

    Args:
        item: Element matched by ``config.item_selector``.
        config: Selector configuration of the site.
        base_url: Base used to resolve relative links and images.

    Returns:
        An ArticleCandidate, or the SkipReason explaining why the item
        was dropped.
    """
    title = element_text(_select_one(item, config.title_selector))
    link_element = _select_one(item, config.link_selector)
    href = (link_element.get("href") or "").strip() if link_element is not None else ""

    if not title or not href:
        logger.debug("Item missing title or link (title=%r, href=%r)", title, href)
        return SkipReason.MISSING_REQUIRED_FIELD

    try:
        url = resolve_link(href, base_url)
    except LinkResolutionError as e:
        logger.debug("Unresolvable link %r: %s", href, e)
        return SkipReason.UNRESOLVABLE_LINK

    summary = element_text(_select_one(item, config.summary_selector))

    date = None
    raw_date = _raw_date(_select_one(item, config.date_selector))
    if raw_date:
        date = parse_date(raw_date)
        if date is None:
            logger.debug("Dropping unparseable date %r for %s", raw_date, url)

    image_url = resolve_image(_select_one(item, config.image_selector), base_url)

    return ArticleCandidate(
        title=title,
        url=url,
        summary=summary,
        date=date,
        image_url=image_url,
    )
