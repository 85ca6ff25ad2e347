"""BigQuery client for the news selector scraper.

Backs the site directory and the article records. Writes go through
parameterized DML rather than streaming inserts so that rows can be
updated or deleted right after they are written.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from google.cloud import bigquery
from google.cloud.exceptions import GoogleCloudError, NotFound

from src.config import parse_selector_config
from src.errors import ConfigError, StoreError
from src.models import ArticleCandidate, ArticleRecord, SITE_TYPE_HTML, Site
from src.storage.schema import TABLE_SCHEMAS

logger = logging.getLogger(__name__)


class BigQueryClient:
    """Client for all BigQuery operations in the scraper pipeline."""

    def __init__(self, project_id: str, dataset_id: str, location: str = "us-east4"):
        self.project_id = project_id
        self.dataset_id = dataset_id
        self.location = location
        self.client = bigquery.Client(project=project_id)
        self.dataset_ref = f"{project_id}.{dataset_id}"

    def ensure_tables_exist(self) -> None:
        """Create dataset and all tables if they don't exist."""
        dataset = bigquery.Dataset(self.dataset_ref)
        dataset.location = self.location
        try:
            self.client.get_dataset(self.dataset_ref)
            logger.info("Dataset %s already exists", self.dataset_ref)
        except NotFound:
            self.client.create_dataset(dataset)
            logger.info("Created dataset %s", self.dataset_ref)

        for table_name, schema in TABLE_SCHEMAS.items():
            table_ref = f"{self.dataset_ref}.{table_name}"
            table = bigquery.Table(table_ref, schema=schema)
            try:
                self.client.get_table(table_ref)
                logger.debug("Table %s already exists", table_ref)
            except NotFound:
                self.client.create_table(table)
                logger.info("Created table %s", table_ref)

    def _run(self, query: str, params: list[bigquery.ScalarQueryParameter]) -> list[Any]:
        job_config = bigquery.QueryJobConfig(query_parameters=params)
        try:
            return list(self.client.query(query, job_config=job_config).result())
        except GoogleCloudError as e:
            raise StoreError(str(e)) from e

    # ── Sites ──────────────────────────────────────────────────────

    def _row_to_site(self, row: Any) -> Site:
        try:
            selectors = parse_selector_config(row.selector_config or "{}")
        except ConfigError as e:
            logger.warning("Site %s has an invalid selector config: %s", row.site_id, e)
            selectors = None
        return Site(
            site_id=row.site_id,
            name=row.name,
            homepage_url=row.homepage_url,
            selector_config=selectors,
            slug=row.slug or "",
            active=bool(row.active),
            site_type=row.site_type or SITE_TYPE_HTML,
            country=row.country or "",
            last_scraped_at=row.last_scraped_at,
        )

    def list_sites(self) -> list[Site]:
        """Return every site in the directory."""
        rows = self._run(
            f"SELECT * FROM `{self.dataset_ref}.sites` ORDER BY name",
            [],
        )
        return [self._row_to_site(row) for row in rows]

    def get_site(self, site_id: str) -> Optional[Site]:
        rows = self._run(
            f"SELECT * FROM `{self.dataset_ref}.sites` WHERE site_id = @site_id LIMIT 1",
            [bigquery.ScalarQueryParameter("site_id", "STRING", site_id)],
        )
        return self._row_to_site(rows[0]) if rows else None

    def upsert_site(self, site: Site) -> None:
        """Insert a site or update the existing row with the same id."""
        selector_json = json.dumps(site.selector_config.to_dict()) if site.selector_config else "{}"
        query = f"""
            MERGE `{self.dataset_ref}.sites` T
            USING (SELECT @site_id AS site_id) S
            ON T.site_id = S.site_id
            WHEN MATCHED THEN UPDATE SET
                name = @name, homepage_url = @homepage_url, slug = @slug,
                active = @active, site_type = @site_type, country = @country,
                selector_config = @selector_config
            WHEN NOT MATCHED THEN INSERT
                (site_id, name, homepage_url, slug, active, site_type, country,
                 selector_config, created_at)
            VALUES
                (@site_id, @name, @homepage_url, @slug, @active, @site_type, @country,
                 @selector_config, @now)
        """
        self._run(query, [
            bigquery.ScalarQueryParameter("site_id", "STRING", site.site_id),
            bigquery.ScalarQueryParameter("name", "STRING", site.name),
            bigquery.ScalarQueryParameter("homepage_url", "STRING", site.homepage_url),
            bigquery.ScalarQueryParameter("slug", "STRING", site.slug),
            bigquery.ScalarQueryParameter("active", "BOOL", site.active),
            bigquery.ScalarQueryParameter("site_type", "STRING", site.site_type),
            bigquery.ScalarQueryParameter("country", "STRING", site.country),
            bigquery.ScalarQueryParameter("selector_config", "STRING", selector_json),
            bigquery.ScalarQueryParameter("now", "TIMESTAMP", datetime.now(timezone.utc)),
        ])
        logger.info("Upserted site %s (%s)", site.site_id, site.name)

    def update_site_last_scraped(self, site_id: str, timestamp: datetime) -> None:
        self._run(
            f"UPDATE `{self.dataset_ref}.sites` SET last_scraped_at = @ts WHERE site_id = @site_id",
            [
                bigquery.ScalarQueryParameter("ts", "TIMESTAMP", timestamp),
                bigquery.ScalarQueryParameter("site_id", "STRING", site_id),
            ],
        )
        logger.debug("Updated last_scraped_at for site %s", site_id)

    def delete_site(self, site_id: str) -> None:
        """Delete a site together with all of its articles."""
        param = [bigquery.ScalarQueryParameter("site_id", "STRING", site_id)]
        self._run(f"DELETE FROM `{self.dataset_ref}.articles` WHERE site_id = @site_id", param)
        self._run(f"DELETE FROM `{self.dataset_ref}.sites` WHERE site_id = @site_id", param)
        logger.info("Deleted site %s and its articles", site_id)

    # ── Articles ───────────────────────────────────────────────────

    @staticmethod
    def _row_to_article(row: Any) -> ArticleRecord:
        return ArticleRecord(
            article_id=row.article_id,
            site_id=row.site_id,
            title=row.title,
            url=row.url,
            normalized_url=row.normalized_url,
            summary=row.summary or "",
            date=row.published_at,
            image_url=row.image_url,
            language=row.language or "en",
            created_at=row.created_at,
        )

    def find_article(self, normalized_url: str, site_id: str) -> Optional[ArticleRecord]:
        """Look up an article by its dedup key within one site."""
        rows = self._run(
            f"""
            SELECT * FROM `{self.dataset_ref}.articles`
            WHERE normalized_url = @normalized_url AND site_id = @site_id
            LIMIT 1
            """,
            [
                bigquery.ScalarQueryParameter("normalized_url", "STRING", normalized_url),
                bigquery.ScalarQueryParameter("site_id", "STRING", site_id),
            ],
        )
        return self._row_to_article(rows[0]) if rows else None

    def create_article(
        self,
        candidate: ArticleCandidate,
        normalized_url: str,
        site_id: str,
        language: str = "en",
    ) -> ArticleRecord:
        """Persist a new article record.

        Raises:
            StoreError: if the insert fails.
        """
        record = ArticleRecord(
            article_id=str(uuid.uuid4()),
            site_id=site_id,
            title=candidate.title,
            url=candidate.url,
            normalized_url=normalized_url,
            summary=candidate.summary,
            date=candidate.date,
            image_url=candidate.image_url,
            language=language,
            created_at=datetime.now(timezone.utc),
        )
        query = f"""
            INSERT INTO `{self.dataset_ref}.articles`
                (article_id, site_id, title, url, normalized_url, summary,
                 published_at, image_url, language, created_at)
            VALUES
                (@article_id, @site_id, @title, @url, @normalized_url, @summary,
                 @published_at, @image_url, @language, @created_at)
        """
        self._run(query, [
            bigquery.ScalarQueryParameter("article_id", "STRING", record.article_id),
            bigquery.ScalarQueryParameter("site_id", "STRING", record.site_id),
            bigquery.ScalarQueryParameter("title", "STRING", record.title),
            bigquery.ScalarQueryParameter("url", "STRING", record.url),
            bigquery.ScalarQueryParameter("normalized_url", "STRING", record.normalized_url),
            bigquery.ScalarQueryParameter("summary", "STRING", record.summary),
            bigquery.ScalarQueryParameter("published_at", "TIMESTAMP", record.date),
            bigquery.ScalarQueryParameter("image_url", "STRING", record.image_url),
            bigquery.ScalarQueryParameter("language", "STRING", record.language),
            bigquery.ScalarQueryParameter("created_at", "TIMESTAMP", record.created_at),
        ])
        logger.debug("Inserted article %s (%s)", record.article_id, record.normalized_url)
        return record

    def list_articles(self, site_id: str, limit: int = 50) -> list[ArticleRecord]:
        """Most recently created articles of a site."""
        rows = self._run(
            f"""
            SELECT * FROM `{self.dataset_ref}.articles`
            WHERE site_id = @site_id
            ORDER BY created_at DESC
            LIMIT @limit
            """,
            [
                bigquery.ScalarQueryParameter("site_id", "STRING", site_id),
                bigquery.ScalarQueryParameter("limit", "INT64", limit),
            ],
        )
        return [self._row_to_article(row) for row in rows]
