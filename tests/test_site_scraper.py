"""Tests for the single-site scrape loop."""

import asyncio
import unittest
from dataclasses import replace

from fakes import NEWS_PAGE, SELECTORS, FakeFetcher, FakeStore, make_site
from src.crawler.site_scraper import _site_locks, scrape_site, trigger_scrape
from src.errors import StoreError

HOMEPAGE = "https://www.example.com/site-1/"


class TestScrapeSite(unittest.IsolatedAsyncioTestCase):
    """Scrapes against the in-memory store and canned pages."""

    def setUp(self):
        self.site = make_site()
        self.store = FakeStore([self.site])
        self.fetcher = FakeFetcher({HOMEPAGE: NEWS_PAGE})

    async def test_first_scrape_stores_new_articles(self):
        result = await scrape_site(self.site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 4)
        self.assertEqual(result.skipped_articles_count, 0)
        self.assertEqual(result.errors, [])
        self.assertEqual(
            [a.normalized_url for a in self.store.articles],
            [
                "https://example.com/news/first-story",
                "https://example.com/news/second-story",
                "https://example.com/news/third-story",
                "https://example.com/news/fifth-story",
            ],
        )
        self.assertIn("site-1", self.store.last_scraped)

    async def test_second_scrape_skips_everything(self):
        await scrape_site(self.site, 5, self.store, self.fetcher)
        self.store.last_scraped.clear()

        result = await scrape_site(self.site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(result.skipped_articles_count, 4)
        self.assertEqual(len(self.store.articles), 4)
        self.assertNotIn("site-1", self.store.last_scraped)

    async def test_limit_counts_attempts(self):
        # Item #4 has no title; it still uses up one attempt.
        result = await scrape_site(self.site, 4, self.store, self.fetcher)
        self.assertEqual(result.new_articles_count, 3)

        result = await scrape_site(self.site, 1, FakeStore([self.site]), self.fetcher)
        self.assertEqual(result.new_articles_count, 1)

    async def test_limit_larger_than_page(self):
        result = await scrape_site(self.site, 50, self.store, self.fetcher)
        self.assertEqual(result.new_articles_count, 5)

    async def test_article_fields_persisted(self):
        await scrape_site(self.site, 1, self.store, self.fetcher)
        article = self.store.articles[0]
        self.assertEqual(article.title, "First story")
        self.assertEqual(article.url, "https://www.example.com/news/first-story/")
        self.assertEqual(article.image_url, "https://www.example.com/img/first.jpg")
        self.assertEqual(article.language, "en")

    async def test_language_from_country(self):
        site = make_site(country="tr")
        await scrape_site(site, 1, self.store, self.fetcher)
        self.assertEqual(self.store.articles[0].language, "tr")

    async def test_inactive_site_not_fetched(self):
        site = make_site(active=False)
        result = await scrape_site(site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(result.errors, ["Site is not active, skipping scrape: Site site-1"])
        self.assertEqual(self.fetcher.calls, [])

    async def test_missing_selectors_not_fetched(self):
        for selectors in (None, replace(SELECTORS, link_selector="  ")):
            site = make_site(selector_config=selectors)
            result = await scrape_site(site, 5, self.store, self.fetcher)
            self.assertEqual(len(result.errors), 1)
            self.assertIn("Invalid or missing selector configuration", result.errors[0])
        self.assertEqual(self.fetcher.calls, [])

    async def test_fetch_failure(self):
        fetcher = FakeFetcher({HOMEPAGE: (503, "unavailable")})
        result = await scrape_site(self.site, 5, self.store, fetcher)

        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith('Scrape failed for site "Site site-1"'))
        self.assertIn("503", result.errors[0])

    async def test_unexpected_fetch_exception_recorded(self):
        fetcher = FakeFetcher({HOMEPAGE: RuntimeError("playwright driver failed to start")})
        result = await scrape_site(self.site, 5, self.store, fetcher)

        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("playwright driver failed to start", result.errors[0])

    async def test_concurrent_scrapes_of_one_site_do_not_duplicate(self):
        first, second = await asyncio.gather(
            scrape_site(self.site, 5, self.store, self.fetcher),
            scrape_site(self.site, 5, self.store, self.fetcher),
        )

        self.assertEqual(first.new_articles_count + second.new_articles_count, 4)
        self.assertEqual(first.skipped_articles_count + second.skipped_articles_count, 4)
        self.assertEqual(len(self.store.articles), 4)
        self.assertEqual(len(_site_locks), 0)

    async def test_no_items_matched(self):
        fetcher = FakeFetcher({HOMEPAGE: "<html><body><p>nothing</p></body></html>"})
        result = await scrape_site(self.site, 5, self.store, fetcher)
        self.assertEqual((result.new_articles_count, result.skipped_articles_count), (0, 0))
        self.assertEqual(result.errors, [])

    async def test_base_url_override(self):
        selectors = replace(SELECTORS, base_url="https://mirror.example.org/")
        site = make_site(selector_config=selectors)
        await scrape_site(site, 1, self.store, self.fetcher)
        self.assertEqual(self.store.articles[0].url, "https://mirror.example.org/news/first-story/")

    async def test_create_failure_continues(self):
        self.store.failing_titles.add("Second story")
        result = await scrape_site(self.site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 3)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith("Article creation failed: Second story"))

    async def test_lookup_failure_continues(self):
        self.store.fail_lookups = True
        result = await scrape_site(self.site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(len(result.errors), 4)
        self.assertTrue(all(e.startswith("Duplicate check failed") for e in result.errors))
        self.assertNotIn("site-1", self.store.last_scraped)

    async def test_last_scraped_failure_reported(self):
        def fail(site_id, timestamp):
            raise StoreError("update rejected")

        self.store.update_site_last_scraped = fail
        result = await scrape_site(self.site, 5, self.store, self.fetcher)

        self.assertEqual(result.new_articles_count, 4)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("update rejected", result.errors[0])

    async def test_unresolvable_link_recorded(self):
        page = (
            '<article class="post"><h2><a href="javascript:void(0)">Bad</a></h2></article>'
            '<article class="post"><h2><a href="/ok">Good</a></h2></article>'
        )
        fetcher = FakeFetcher({HOMEPAGE: page})
        result = await scrape_site(self.site, 5, self.store, fetcher)

        self.assertEqual(result.new_articles_count, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("item #1", result.errors[0])

    async def test_invalid_item_selector(self):
        site = make_site(selector_config=replace(SELECTORS, item_selector="article[["))
        result = await scrape_site(site, 5, self.store, self.fetcher)
        self.assertEqual(result.new_articles_count, 0)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("Invalid item selector", result.errors[0])


class TestTriggerScrape(unittest.IsolatedAsyncioTestCase):

    async def test_unknown_site(self):
        fetcher = FakeFetcher()
        result = await trigger_scrape("missing", 5, FakeStore(), fetcher)
        self.assertEqual(result.errors, ["Site not found: missing"])
        self.assertEqual(fetcher.calls, [])

    async def test_known_site(self):
        store = FakeStore([make_site()])
        fetcher = FakeFetcher({HOMEPAGE: NEWS_PAGE})
        result = await trigger_scrape("site-1", 2, store, fetcher)
        self.assertEqual(result.new_articles_count, 2)
        self.assertEqual(fetcher.calls, [HOMEPAGE])


if __name__ == "__main__":
    unittest.main()
