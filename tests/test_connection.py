"""Tests for the process-wide store handle."""

import unittest
from unittest import mock

from src.errors import StoreError
from src.storage import connection

CONFIG = {"gcp": {"project_id": "p", "bigquery_dataset": "news", "region": "eu"}}


@mock.patch("src.storage.connection.BigQueryClient")
class TestConnect(unittest.TestCase):

    def setUp(self):
        connection.reset_connection()
        self.addCleanup(connection.reset_connection)

    def test_initializes_once(self, client_cls):
        first = connection.connect(CONFIG)
        second = connection.connect(CONFIG)

        self.assertIs(first, second)
        client_cls.assert_called_once_with(project_id="p", dataset_id="news", location="eu")
        client_cls.return_value.ensure_tables_exist.assert_called_once_with()

    def test_failure_is_replayed(self, client_cls):
        client_cls.return_value.ensure_tables_exist.side_effect = RuntimeError("no credentials")

        with self.assertRaises(StoreError) as first:
            connection.connect(CONFIG)
        with self.assertRaises(StoreError) as second:
            connection.connect(CONFIG)

        self.assertIs(first.exception, second.exception)
        self.assertIn("no credentials", str(first.exception))
        self.assertEqual(client_cls.call_count, 1)

    def test_missing_config_key(self, client_cls):
        with self.assertRaises(StoreError) as ctx:
            connection.connect({"gcp": {"project_id": "p"}})
        self.assertIn("bigquery_dataset", str(ctx.exception))
        client_cls.assert_not_called()

    def test_reset_allows_retry(self, client_cls):
        client_cls.return_value.ensure_tables_exist.side_effect = [RuntimeError("down"), None]

        with self.assertRaises(StoreError):
            connection.connect(CONFIG)
        connection.reset_connection()

        self.assertIs(connection.connect(CONFIG), client_cls.return_value)


if __name__ == "__main__":
    unittest.main()
