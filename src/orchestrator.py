"""Bulk scrape orchestration across many sites.

Runs one site scrape per job, strictly in order, against a single
snapshot of the site directory taken at the start of the batch. A job's
failure never stops the batch; every job, skipped or not, appears in the
report.
"""

import asyncio
import logging
from typing import Any, Optional

from src.config import noncritical_error_markers
from src.crawler.fetcher import PageFetcher
from src.crawler.site_scraper import scrape_site
from src.errors import StoreError
from src.models import (
    SITE_TYPE_HTML,
    BulkScrapeBatchResult,
    BulkScrapeJob,
    BulkScrapeJobResult,
    ScrapeResult,
    Site,
)
from src.storage.bigquery_client import BigQueryClient

logger = logging.getLogger(__name__)

SKIPPED_JOB_STATUS = "Site skipped (not found, inactive, or not HTML)."


def critical_errors(errors: list[str], markers: list[str]) -> list[str]:
    """Errors that do not contain any known-benign marker substring."""
    return [e for e in errors if not any(m in e.lower() for m in markers)]


def _is_scrapeable(site: Optional[Site]) -> bool:
    return site is not None and site.active and (site.site_type or "").upper() == SITE_TYPE_HTML


def _skipped_result(job: BulkScrapeJob, site_name: str, extra_errors: list[str]) -> BulkScrapeJobResult:
    return BulkScrapeJobResult(
        site_id=job.site_id,
        site_name=site_name,
        status=SKIPPED_JOB_STATUS,
        errors=[SKIPPED_JOB_STATUS] + extra_errors,
        skipped=True,
    )


async def run_bulk_scrape(
    jobs: list[BulkScrapeJob],
    store: BigQueryClient,
    fetcher: PageFetcher,
    config: Optional[dict[str, Any]] = None,
) -> BulkScrapeBatchResult:
    """Run a batch of scrape jobs.

    Args:
        jobs: Jobs to run, in order.
        store: Record store handle.
        fetcher: Page fetcher shared by all jobs.
        config: Application configuration.

    Returns:
        BulkScrapeBatchResult with one entry per job.
    """
    markers = noncritical_error_markers(config)
    logger.info("=== Bulk scrape starting: %d jobs ===", len(jobs))

    directory_errors: list[str] = []
    try:
        sites = await asyncio.to_thread(store.list_sites)
    except StoreError as e:
        logger.error("Could not load site directory: %s", e)
        sites = []
        directory_errors.append(f"Could not load site directory: {e}")
    site_map = {site.site_id: site for site in sites}

    results: list[BulkScrapeJobResult] = []
    total_new = 0
    total_skipped = 0
    successful = 0

    for idx, job in enumerate(jobs, 1):
        site = site_map.get(job.site_id)
        site_name = site.name if site else f"Unknown site (ID: {job.site_id})"

        if not _is_scrapeable(site):
            logger.info("--- Job %d/%d: skipping %s (%s) ---", idx, len(jobs), site_name, job.site_id)
            results.append(_skipped_result(job, site_name, directory_errors))
            continue

        logger.info("--- Job %d/%d: %s, limit %d ---", idx, len(jobs), site_name, job.count)
        try:
            scrape = await scrape_site(site, job.count, store, fetcher, config)
        except Exception as e:
            logger.error("Failed to scrape site %s: %s", site_name, e, exc_info=True)
            scrape = ScrapeResult(errors=[f'Scrape failed for site "{site_name}": {e}'])

        critical = critical_errors(scrape.errors, markers)
        succeeded = scrape.new_articles_count > 0 or not critical

        if scrape.errors:
            severity = "critical errors" if critical else "errors"
            status = (
                f'Scrape of "{site_name}" completed with {severity}. '
                f"{scrape.new_articles_count} new, {scrape.skipped_articles_count} skipped. "
                f"Errors: {'; '.join(scrape.errors)}"
            )
        else:
            status = (
                f'Scrape of "{site_name}" succeeded. {scrape.new_articles_count} new articles added, '
                f"{scrape.skipped_articles_count} skipped as already stored."
            )

        if succeeded:
            successful += 1
        total_new += scrape.new_articles_count
        total_skipped += scrape.skipped_articles_count

        results.append(BulkScrapeJobResult(
            site_id=job.site_id,
            site_name=site_name,
            status=status,
            new_articles=scrape.new_articles_count,
            skipped_articles=scrape.skipped_articles_count,
            errors=list(scrape.errors),
            succeeded=succeeded,
        ))

    message = (
        f"Bulk scrape finished. {len(jobs)} sites attempted, {successful} relatively successful. "
        f"{total_new} new articles added, {total_skipped} skipped."
    )
    logger.info("=== %s ===", message)

    return BulkScrapeBatchResult(
        success=successful > 0 or not jobs,
        message=message,
        results=results,
        total_new_articles=total_new,
        total_skipped_articles=total_skipped,
        successful_jobs=successful,
        directory_error=directory_errors[0] if directory_errors else None,
    )
