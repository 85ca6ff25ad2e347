"""BigQuery table schemas for the site directory and article records."""

from google.cloud.bigquery import SchemaField

SITES_SCHEMA = [
    SchemaField("site_id", "STRING", mode="REQUIRED"),
    SchemaField("name", "STRING", mode="REQUIRED"),
    SchemaField("homepage_url", "STRING", mode="REQUIRED"),
    SchemaField("slug", "STRING"),
    SchemaField("active", "BOOLEAN"),
    SchemaField("site_type", "STRING"),
    SchemaField("country", "STRING"),
    SchemaField("selector_config", "STRING"),  # JSON-encoded SelectorConfig
    SchemaField("created_at", "TIMESTAMP", mode="REQUIRED"),
    SchemaField("last_scraped_at", "TIMESTAMP"),
]

ARTICLES_SCHEMA = [
    SchemaField("article_id", "STRING", mode="REQUIRED"),
    SchemaField("site_id", "STRING", mode="REQUIRED"),
    SchemaField("title", "STRING", mode="REQUIRED"),
    SchemaField("url", "STRING", mode="REQUIRED"),
    SchemaField("normalized_url", "STRING", mode="REQUIRED"),
    SchemaField("summary", "STRING"),
    SchemaField("published_at", "TIMESTAMP"),
    SchemaField("image_url", "STRING"),
    SchemaField("language", "STRING"),
    SchemaField("created_at", "TIMESTAMP", mode="REQUIRED"),
]

TABLE_SCHEMAS = {
    "sites": SITES_SCHEMA,
    "articles": ARTICLES_SCHEMA,
}
