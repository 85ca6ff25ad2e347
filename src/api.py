"""HTTP trigger for bulk scrapes.

POST /api/scrape accepts ``{"siteIds": [...]}`` or
``{"scrapeAllActive": true}`` plus an optional ``limitPerSite`` and
answers with the per-job report:

- 200 when every job succeeded without errors (or there was nothing to scrape),
- 207 when the jobs ran but some reported errors or failed,
- 400 for a malformed request,
- 500 when the store or site directory could not be read.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.crawler.fetcher import PageFetcher
from src.errors import StoreError
from src.models import BulkScrapeBatchResult, BulkScrapeJob
from src.orchestrator import run_bulk_scrape
from src.storage.bigquery_client import BigQueryClient
from src.storage.connection import connect

logger = logging.getLogger(__name__)

DEFAULT_LIMIT_PER_SITE = 10


class ScrapeRequest(BaseModel):
    """Body of POST /api/scrape. Field types are checked by ``build_jobs``."""

    siteIds: Optional[Any] = None
    scrapeAllActive: Optional[Any] = None
    limitPerSite: Any = DEFAULT_LIMIT_PER_SITE


class BadRequest(ValueError):
    """The trigger request is malformed."""


def build_jobs(request: ScrapeRequest, store: BigQueryClient) -> list[BulkScrapeJob]:
    """Turn a trigger request into scrape jobs.

    Raises:
        BadRequest: on an invalid limit, an all-invalid id list, or when
            neither ``siteIds`` nor ``scrapeAllActive`` is given.
    """
    limit = request.limitPerSite
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise BadRequest("Invalid 'limitPerSite'. It must be a positive integer.")

    if isinstance(request.siteIds, list) and request.siteIds:
        site_ids = [i for i in request.siteIds if isinstance(i, str) and i.strip()]
        if len(site_ids) != len(request.siteIds):
            logger.warning("Dropped %d malformed ids from siteIds", len(request.siteIds) - len(site_ids))
            if not site_ids:
                raise BadRequest("All ids in the provided siteIds array are invalid.")
        return [BulkScrapeJob(site_id=site_id, count=limit) for site_id in site_ids]

    if request.scrapeAllActive is True:
        return [
            BulkScrapeJob(site_id=site.site_id, count=limit)
            for site in store.list_sites()
            if site.active
        ]

    raise BadRequest("Provide a non-empty 'siteIds' array or set 'scrapeAllActive' to true.")


def response_status(batch: BulkScrapeBatchResult) -> int:
    """HTTP status for a batch that ran.

    200 only when every job succeeded without reporting any error, 500 when
    the site directory could not be read, 207 otherwise.
    """
    if batch.directory_error:
        return 500
    if all(r.succeeded and not r.errors for r in batch.results):
        return 200
    return 207


def create_app(
    config: dict[str, Any],
    store: Optional[BigQueryClient] = None,
    fetcher: Optional[PageFetcher] = None,
) -> FastAPI:
    """Build the FastAPI app.

    ``store`` and ``fetcher`` default to the configured BigQuery handle and
    a PageFetcher owned by the app's lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_fetcher = None
        if app.state.fetcher is None:
            owned_fetcher = PageFetcher.from_config(config)
            await owned_fetcher.start()
            app.state.fetcher = owned_fetcher
        try:
            yield
        finally:
            if owned_fetcher is not None:
                await owned_fetcher.close()

    app = FastAPI(title="News Selector Scraper API", lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.fetcher = fetcher

    async def get_store() -> BigQueryClient:
        if app.state.store is None:
            app.state.store = await asyncio.to_thread(connect, config)
        return app.state.store

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.post("/api/scrape")
    async def trigger_bulk_scrape(request: Request):
        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"success": False, "message": "Request body must be JSON."}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"success": False, "message": "Request body must be a JSON object."}, status_code=400)

        try:
            store_handle = await get_store()
            scrape_request = ScrapeRequest(**body)
            jobs = await asyncio.to_thread(build_jobs, scrape_request, store_handle)
        except BadRequest as e:
            return JSONResponse({"success": False, "message": str(e)}, status_code=400)
        except StoreError as e:
            logger.error("Scrape trigger failed: %s", e)
            return JSONResponse({"success": False, "message": f"API error: {e}"}, status_code=500)

        if not jobs:
            return JSONResponse(
                {"success": True, "message": "No eligible sites found for the given criteria.", "results": []},
                status_code=200,
            )

        logger.info("API bulk scrape: %d jobs, limit %d per site", len(jobs), jobs[0].count)
        batch = await run_bulk_scrape(jobs, store_handle, app.state.fetcher, config)
        return JSONResponse(batch.to_dict(), status_code=response_status(batch))

    return app
