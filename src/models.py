"""Shared data models for the news scraper pipeline."""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

SITE_TYPE_HTML = "HTML"


@dataclass(frozen=True)
class SelectorConfig:
    """CSS selectors that locate article items and their fields on a page.

    All field selectors are evaluated relative to the element matched by
    ``item_selector``. Optional selectors are empty strings when unused.
    """

    item_selector: str
    title_selector: str
    link_selector: str
    summary_selector: str = ""
    date_selector: str = ""
    image_selector: str = ""
    base_url: str = ""

    def has_required_selectors(self) -> bool:
        return all(
            s and s.strip()
            for s in (self.item_selector, self.title_selector, self.link_selector)
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "item_selector": self.item_selector,
            "title_selector": self.title_selector,
            "link_selector": self.link_selector,
            "summary_selector": self.summary_selector,
            "date_selector": self.date_selector,
            "image_selector": self.image_selector,
            "base_url": self.base_url,
        }


@dataclass
class Site:
    """A source site and its selector configuration."""

    site_id: str
    name: str
    homepage_url: str
    selector_config: Optional[SelectorConfig]
    slug: str = ""
    active: bool = True
    site_type: str = SITE_TYPE_HTML
    country: str = ""
    last_scraped_at: Optional[datetime] = None

    @property
    def base_url(self) -> str:
        """Base used to resolve relative links found on the homepage."""
        if self.selector_config and self.selector_config.base_url.strip():
            return self.selector_config.base_url.strip()
        return self.homepage_url


@dataclass
class SourceDocument:
    """Raw HTML of one fetch plus the base used for relative links."""

    html: str
    base_url: str


class SkipReason(enum.Enum):
    """Why an item element did not produce an article candidate."""

    MISSING_REQUIRED_FIELD = "missing_required_field"
    UNRESOLVABLE_LINK = "unresolvable_link"


@dataclass
class ArticleCandidate:
    """Fields extracted from one item element during a scrape pass."""

    title: str
    url: str
    summary: str = ""
    date: Optional[datetime] = None
    image_url: Optional[str] = None


@dataclass
class ArticleRecord:
    """A persisted article owned by the record store."""

    article_id: str
    site_id: str
    title: str
    url: str
    normalized_url: str
    summary: str = ""
    date: Optional[datetime] = None
    image_url: Optional[str] = None
    language: str = "en"
    created_at: Optional[datetime] = None


@dataclass
class ScrapeResult:
    """Outcome of scraping one site. Always returned, never raised."""

    new_articles_count: int = 0
    skipped_articles_count: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BulkScrapeJob:
    """One (site, item limit) unit of work in a batch."""

    site_id: str
    count: int


@dataclass
class BulkScrapeJobResult:
    """Per-job entry of a batch report."""

    site_id: str
    site_name: str
    status: str
    new_articles: int = 0
    skipped_articles: int = 0
    errors: list[str] = field(default_factory=list)
    skipped: bool = False
    succeeded: bool = False

    def to_dict(self) -> dict:
        return {
            "siteId": self.site_id,
            "siteName": self.site_name,
            "status": self.status,
            "newArticles": self.new_articles,
            "skippedArticles": self.skipped_articles,
            "errors": list(self.errors),
            "succeeded": self.succeeded,
        }


@dataclass
class BulkScrapeBatchResult:
    """Aggregate report for a batch of scrape jobs."""

    success: bool
    message: str
    results: list[BulkScrapeJobResult] = field(default_factory=list)
    total_new_articles: int = 0
    total_skipped_articles: int = 0
    successful_jobs: int = 0
    # Set when the site directory could not be read; not part of the report
    directory_error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "totalNewArticles": self.total_new_articles,
            "totalSkippedArticles": self.total_skipped_articles,
            "successfulJobs": self.successful_jobs,
            "results": [r.to_dict() for r in self.results],
        }
