"""Tests for BigQuery row mapping and error wrapping (client mocked)."""

import json
import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest import mock

from google.cloud.exceptions import BadRequest

from src.errors import StoreError
from src.models import ArticleCandidate
from src.storage.bigquery_client import BigQueryClient

SELECTOR_JSON = json.dumps({
    "item_selector": "article",
    "title_selector": "h2 a",
    "link_selector": "h2 a",
})


def site_row(**overrides):
    values = dict(
        site_id="s1",
        name="Demo",
        homepage_url="https://demo.example.com/",
        selector_config=SELECTOR_JSON,
        slug=None,
        active=True,
        site_type=None,
        country="TR",
        last_scraped_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


@mock.patch("src.storage.bigquery_client.bigquery.Client")
class TestBigQueryClient(unittest.TestCase):

    def make(self, client_cls, rows=()):
        client_cls.return_value.query.return_value.result.return_value = list(rows)
        return BigQueryClient(project_id="p", dataset_id="news")

    def last_params(self, client_cls):
        job_config = client_cls.return_value.query.call_args.kwargs["job_config"]
        return {p.name: p.value for p in job_config.query_parameters}

    def test_get_site_maps_row(self, client_cls):
        store = self.make(client_cls, [site_row()])
        site = store.get_site("s1")

        self.assertEqual(site.name, "Demo")
        self.assertEqual(site.site_type, "HTML")
        self.assertEqual(site.slug, "")
        self.assertEqual(site.selector_config.item_selector, "article")
        self.assertEqual(self.last_params(client_cls), {"site_id": "s1"})

    def test_get_site_missing(self, client_cls):
        store = self.make(client_cls, [])
        self.assertIsNone(store.get_site("nope"))

    def test_invalid_selector_config_becomes_none(self, client_cls):
        store = self.make(client_cls, [site_row(selector_config='{"item_selector": ""}')])
        sites = store.list_sites()
        self.assertIsNone(sites[0].selector_config)

    def test_create_article(self, client_cls):
        store = self.make(client_cls)
        published = datetime(2024, 3, 12, tzinfo=timezone.utc)
        candidate = ArticleCandidate(title="T", url="https://demo.example.com/a/", date=published)

        record = store.create_article(candidate, "https://demo.example.com/a", "s1", "tr")

        params = self.last_params(client_cls)
        self.assertEqual(params["normalized_url"], "https://demo.example.com/a")
        self.assertEqual(params["published_at"], published)
        self.assertEqual(params["language"], "tr")
        self.assertEqual(params["article_id"], record.article_id)
        self.assertIsNotNone(record.created_at)

    def test_list_articles(self, client_cls):
        row = SimpleNamespace(
            article_id="a1", site_id="s1", title="T", url="https://demo.example.com/a",
            normalized_url="https://demo.example.com/a", summary=None, published_at=None,
            image_url=None, language=None, created_at=None,
        )
        store = self.make(client_cls, [row])

        articles = store.list_articles("s1", limit=5)

        self.assertEqual(articles[0].summary, "")
        self.assertEqual(articles[0].language, "en")
        self.assertEqual(self.last_params(client_cls), {"site_id": "s1", "limit": 5})

    def test_query_errors_wrapped(self, client_cls):
        store = self.make(client_cls)
        client_cls.return_value.query.side_effect = BadRequest("invalid_value_for_column: title")

        with self.assertRaises(StoreError) as ctx:
            store.find_article("https://demo.example.com/a", "s1")
        self.assertIn("invalid_value_for_column", str(ctx.exception))

    def test_delete_site_removes_articles_first(self, client_cls):
        store = self.make(client_cls)
        store.delete_site("s1")

        queries = [c.args[0] for c in client_cls.return_value.query.call_args_list]
        self.assertEqual(len(queries), 2)
        self.assertIn("articles", queries[0])
        self.assertIn(".sites`", queries[1])


if __name__ == "__main__":
    unittest.main()
