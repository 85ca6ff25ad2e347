"""Single-site scrape: fetch the homepage, extract items, store new articles.

Only configuration problems and the homepage fetch abort a scrape. Every
later failure is scoped to one item, recorded in the result, and the
loop moves on.
"""

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from src.config import article_language
from src.crawler.fetcher import PageFetcher
from src.errors import FetchError, StoreError
from src.extraction.fields import extract_item
from src.extraction.urls import normalize_url
from src.models import ScrapeResult, Site, SkipReason, SourceDocument
from src.storage.bigquery_client import BigQueryClient

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5


class SiteLocks:
    """Per-site locks so that scrapes of one site run one at a time.

    Dedup-then-create is not atomic in the store. A lock is dropped once no
    scrape holds or waits on it. Assumes one event loop per process.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: Counter[str] = Counter()

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, site_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(site_id, asyncio.Lock())
        self._users[site_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[site_id] -= 1
            if not self._users[site_id]:
                del self._users[site_id]
                del self._locks[site_id]


_site_locks = SiteLocks()


def _precondition_error(site: Site) -> Optional[str]:
    if not site.active:
        return f"Site is not active, skipping scrape: {site.name}"
    if site.selector_config is None or not site.selector_config.has_required_selectors():
        return f"Invalid or missing selector configuration (item, title, link required): {site.name}"
    return None


async def scrape_site(
    site: Site,
    limit: int,
    store: BigQueryClient,
    fetcher: PageFetcher,
    config: Optional[dict[str, Any]] = None,
) -> ScrapeResult:
    """Scrape up to ``limit`` items from a site's homepage.

    Args:
        site: Site to scrape.
        limit: Maximum number of item elements to attempt.
        store: Record store handle.
        fetcher: Page fetcher.
        config: Application configuration (article language settings).

    Returns:
        ScrapeResult with new/skipped counts and collected errors.
    """
    result = ScrapeResult()

    error = _precondition_error(site)
    if error:
        logger.warning("[%s] %s", site.site_id, error)
        result.errors.append(error)
        return result

    async with _site_locks.hold(site.site_id):
        logger.info("Fetching homepage of %s: %s (limit=%d)", site.name, site.homepage_url, limit)
        try:
            response = await fetcher.fetch(site.homepage_url)
        except Exception as e:
            msg = f'Scrape failed for site "{site.name}": {e}'
            # FetchError is the expected transport failure; anything else gets a traceback
            logger.error(msg, exc_info=not isinstance(e, FetchError))
            result.errors.append(msg)
            return result

        document = SourceDocument(html=response.body, base_url=site.base_url)
        try:
            await _process_document(site, document, limit, store, config, result)
        except Exception as e:
            msg = f'Scrape failed for site "{site.name}": {e}'
            logger.error(msg, exc_info=True)
            result.errors.append(msg)

    logger.info(
        "Scrape of %s finished: %d new, %d skipped, %d errors",
        site.name, result.new_articles_count, result.skipped_articles_count, len(result.errors),
    )
    return result


async def _process_document(
    site: Site,
    document: SourceDocument,
    limit: int,
    store: BigQueryClient,
    config: Optional[dict[str, Any]],
    result: ScrapeResult,
) -> None:
    selectors = site.selector_config
    soup = BeautifulSoup(document.html, "lxml")
    try:
        items = soup.select(selectors.item_selector)
    except (SelectorSyntaxError, ValueError) as e:
        msg = f"Invalid item selector {selectors.item_selector!r} for {site.name}: {e}"
        logger.error(msg)
        result.errors.append(msg)
        return

    logger.info("Site %s: %d candidate items found, limit %d", site.name, len(items), limit)
    language = article_language(config, site.country)

    attempted = 0
    for item in items:
        if attempted >= limit:
            logger.info("Site %s: limit reached after %d attempts", site.name, attempted)
            break
        attempted += 1

        outcome = extract_item(item, selectors, document.base_url)
        if outcome is SkipReason.MISSING_REQUIRED_FIELD:
            logger.warning("Site %s: item #%d has no title or link, skipping", site.name, attempted)
            continue
        if outcome is SkipReason.UNRESOLVABLE_LINK:
            msg = f"Could not resolve article link of item #{attempted} (base: {document.base_url})"
            logger.warning("Site %s: %s", site.name, msg)
            result.errors.append(msg)
            continue

        candidate = outcome
        normalized = normalize_url(candidate.url)
        if normalized is None:
            msg = f"Could not normalize article URL: {candidate.url}"
            logger.warning("Site %s: %s", site.name, msg)
            result.errors.append(msg)
            continue

        try:
            existing = await asyncio.to_thread(store.find_article, normalized, site.site_id)
        except StoreError as e:
            msg = f"Duplicate check failed: {candidate.title} - {e}"
            logger.error("Site %s: %s", site.name, msg)
            result.errors.append(msg)
            continue

        if existing is not None:
            logger.debug("Site %s: already stored %s", site.name, normalized)
            result.skipped_articles_count += 1
            continue

        try:
            await asyncio.to_thread(
                store.create_article, candidate, normalized, site.site_id, language
            )
        except StoreError as e:
            msg = f"Article creation failed: {candidate.title} - {e}"
            logger.error("Site %s: %s", site.name, msg)
            result.errors.append(msg)
            continue

        logger.info("Site %s: new article %r (%s)", site.name, candidate.title, candidate.url)
        result.new_articles_count += 1

    if result.new_articles_count > 0:
        try:
            await asyncio.to_thread(
                store.update_site_last_scraped, site.site_id, datetime.now(timezone.utc)
            )
        except StoreError as e:
            msg = f"Could not update last scraped time for {site.name}: {e}"
            logger.error(msg)
            result.errors.append(msg)


async def trigger_scrape(
    site_id: str,
    limit: int,
    store: BigQueryClient,
    fetcher: PageFetcher,
    config: Optional[dict[str, Any]] = None,
) -> ScrapeResult:
    """Look a site up by id and scrape it."""
    try:
        site = await asyncio.to_thread(store.get_site, site_id)
    except StoreError as e:
        return ScrapeResult(errors=[f"Could not load site {site_id}: {e}"])

    if site is None:
        msg = f"Site not found: {site_id}"
        logger.error(msg)
        return ScrapeResult(errors=[msg])

    return await scrape_site(site, limit, store, fetcher, config)
