"""Configuration loading for the news selector scraper."""

import json
import logging
import os
from typing import Any, Optional

import yaml

from src.errors import ConfigError
from src.extraction.urls import is_absolute_http_url
from src.models import SITE_TYPE_HTML, SelectorConfig, Site

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = "config/config.yaml"

REQUIRED_SELECTOR_FIELDS = ("item_selector", "title_selector", "link_selector")
OPTIONAL_SELECTOR_FIELDS = ("summary_selector", "date_selector", "image_selector", "base_url")

# Substrings of known-benign store/transport errors. A job whose only
# errors contain one of these still counts as successful.
DEFAULT_NONCRITICAL_ERROR_MARKERS = [
    "timeout",
    "invalid_value_for_column",
    "unknown_field_name",
]


def load_config(config_path: str | None = None) -> dict[str, Any]:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to config YAML. Falls back to CONFIG_PATH env var,
                     then to config/config.yaml.

    Returns:
        Merged configuration dictionary.
    """
    path = config_path or os.environ.get("CONFIG_PATH", _DEFAULT_CONFIG_PATH)
    logger.info("Loading config from %s", path)

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    # Environment variable overrides (for Cloud Run deployment)
    if os.environ.get("GCP_PROJECT_ID"):
        config.setdefault("gcp", {})["project_id"] = os.environ["GCP_PROJECT_ID"]
    if os.environ.get("GCP_REGION"):
        config.setdefault("gcp", {})["region"] = os.environ["GCP_REGION"]
    if os.environ.get("BIGQUERY_DATASET"):
        config.setdefault("gcp", {})["bigquery_dataset"] = os.environ["BIGQUERY_DATASET"]
    if os.environ.get("SCRAPER_USER_AGENT"):
        config.setdefault("fetch", {})["user_agent"] = os.environ["SCRAPER_USER_AGENT"]

    return config


def validate_selector_config(selectors: SelectorConfig) -> SelectorConfig:
    """Check SelectorConfig invariants.

    Raises:
        ConfigError: if a required selector is empty or base_url is not
            an absolute http(s) URL.
    """
    for name in REQUIRED_SELECTOR_FIELDS:
        if not getattr(selectors, name).strip():
            raise ConfigError(f"{name} is required and cannot be empty")
    if selectors.base_url.strip() and not is_absolute_http_url(selectors.base_url):
        raise ConfigError("base_url must be a valid URL or an empty string")
    return selectors


def parse_selector_config(data: Any) -> SelectorConfig:
    """Build a validated SelectorConfig from a dict or JSON string.

    Optional selectors may be missing or null; when present they must be
    strings.

    Raises:
        ConfigError: on malformed input.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise ConfigError(f"selector config is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("selector config must be a mapping")

    values: dict[str, str] = {}
    for name in REQUIRED_SELECTOR_FIELDS + OPTIONAL_SELECTOR_FIELDS:
        value = data.get(name)
        if value is None and name in OPTIONAL_SELECTOR_FIELDS:
            value = ""
        if not isinstance(value, str):
            raise ConfigError(f"selector field '{name}' is missing or not a string")
        values[name] = value.strip()

    return validate_selector_config(SelectorConfig(**values))


def site_from_entry(entry: dict[str, Any]) -> Site:
    """Build a Site from a sites.yaml entry.

    Raises:
        ConfigError: if the entry lacks an id, name or URL, or its
            selectors are invalid.
    """
    for key in ("id", "name", "homepage_url"):
        if not entry.get(key):
            raise ConfigError(f"site entry is missing '{key}'")
    if not is_absolute_http_url(entry["homepage_url"]):
        raise ConfigError(f"homepage_url {entry['homepage_url']!r} is not a valid URL")

    return Site(
        site_id=str(entry["id"]),
        name=entry["name"],
        homepage_url=entry["homepage_url"],
        slug=entry.get("slug", ""),
        active=bool(entry.get("active", True)),
        site_type=SITE_TYPE_HTML,
        country=entry.get("country", "") or "",
        selector_config=parse_selector_config(entry.get("selectors", {})),
    )


def load_sites(config: dict[str, Any]) -> list[Site]:
    """Load the site directory seed from the site list file.

    Args:
        config: Application configuration dict.

    Returns:
        List of Site objects. Invalid entries are skipped with a warning.
    """
    site_list_path = config.get("site_list_path", "config/sites.yaml")
    logger.info("Loading sites from %s", site_list_path)

    with open(site_list_path) as f:
        data = yaml.safe_load(f) or {}

    sites = []
    for entry in data.get("sites", []):
        try:
            sites.append(site_from_entry(entry))
        except ConfigError as e:
            logger.warning("Skipping site entry %s: %s", entry.get("name") or entry, e)

    logger.info("Loaded %d sites", len(sites))
    return sites


def noncritical_error_markers(config: Optional[dict[str, Any]]) -> list[str]:
    markers = (config or {}).get("scrape", {}).get("noncritical_error_markers")
    if markers is None:
        return list(DEFAULT_NONCRITICAL_ERROR_MARKERS)
    return [str(m).lower() for m in markers]


def article_language(config: Optional[dict[str, Any]], country: str) -> str:
    """Language code recorded on articles of a site from ``country``."""
    scrape = (config or {}).get("scrape", {})
    by_country = scrape.get("language_by_country", {"TR": "tr"})
    return by_country.get((country or "").upper(), scrape.get("default_language", "en"))
