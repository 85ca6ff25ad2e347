"""In-memory stand-ins for the record store and the page fetcher."""

import uuid
from datetime import datetime
from typing import Optional

from src.crawler.fetcher import FetchResponse
from src.errors import FetchError, StoreError
from src.models import ArticleCandidate, ArticleRecord, SelectorConfig, Site

SELECTORS = SelectorConfig(
    item_selector="article.post",
    title_selector="h2 a",
    link_selector="h2 a",
    summary_selector="p.excerpt",
    date_selector="time",
    image_selector="img",
)

NEWS_PAGE = """
<html><body>
  <article class="post">
    <h2><a href="/news/first-story/">First story</a></h2>
    <p class="excerpt">Summary of the first story.</p>
    <time datetime="2024-03-12T14:30:00Z">12 March</time>
    <img data-src="/img/first.jpg" src="/img/placeholder.gif">
  </article>
  <article class="post">
    <h2><a href="https://www.example.com/news/second-story?utm_source=home">Second story</a></h2>
    <time>12.03.2024 09:15</time>
    <img src="data:image/png;base64,AAAA">
  </article>
  <article class="post">
    <h2><a href="/news/third-story">Third story</a></h2>
    <time>3 gün önce</time>
  </article>
  <article class="post">
    <h2></h2>
  </article>
  <article class="post">
    <h2><a href="/news/fifth-story">Fifth story</a></h2>
  </article>
  <article class="post">
    <h2><a href="/news/sixth-story">Sixth story</a></h2>
  </article>
</body></html>
"""


def make_site(site_id: str = "site-1", **overrides) -> Site:
    values = dict(
        site_id=site_id,
        name=f"Site {site_id}",
        homepage_url=f"https://www.example.com/{site_id}/",
        selector_config=SELECTORS,
        slug=site_id,
        active=True,
        country="US",
    )
    values.update(overrides)
    return Site(**values)


class FakeStore:
    """Record store kept in memory, keyed like the BigQuery tables."""

    def __init__(self, sites: Optional[list[Site]] = None):
        self.sites = {site.site_id: site for site in (sites or [])}
        self.articles: list[ArticleRecord] = []
        self.failing_titles: set[str] = set()
        self.fail_lookups = False
        self.fail_list_sites = False
        self.last_scraped: dict[str, datetime] = {}

    def list_sites(self) -> list[Site]:
        if self.fail_list_sites:
            raise StoreError("directory unavailable")
        return list(self.sites.values())

    def get_site(self, site_id: str) -> Optional[Site]:
        return self.sites.get(site_id)

    def upsert_site(self, site: Site) -> None:
        self.sites[site.site_id] = site

    def delete_site(self, site_id: str) -> None:
        self.sites.pop(site_id, None)
        self.articles = [a for a in self.articles if a.site_id != site_id]

    def find_article(self, normalized_url: str, site_id: str) -> Optional[ArticleRecord]:
        if self.fail_lookups:
            raise StoreError("lookup failed")
        for article in self.articles:
            if article.normalized_url == normalized_url and article.site_id == site_id:
                return article
        return None

    def create_article(
        self,
        candidate: ArticleCandidate,
        normalized_url: str,
        site_id: str,
        language: str = "en",
    ) -> ArticleRecord:
        if candidate.title in self.failing_titles:
            raise StoreError(f"INVALID_VALUE_FOR_COLUMN rejected {candidate.title}")
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
        )
        self.articles.append(record)
        return record

    def update_site_last_scraped(self, site_id: str, timestamp: datetime) -> None:
        self.last_scraped[site_id] = timestamp


class FakeFetcher:
    """Serves canned pages by URL; unknown URLs fail like a 404."""

    def __init__(self, pages: Optional[dict[str, object]] = None):
        self.pages = pages or {}
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResponse:
        self.calls.append(url)
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            page = (404, "not found")
        if isinstance(page, str):
            page = (200, page)
        status, body = page
        if not 200 <= status < 300:
            raise FetchError(f"Could not fetch page: {status} (URL: {url})", url, status=status)
        return FetchResponse(status=status, body=body)
