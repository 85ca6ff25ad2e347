"""Exception types for the news scraper pipeline.

Only conditions that abort a unit of work are raised. Expected per-item
outcomes (skips, dropped optional fields, duplicates) are returned as
values instead.
"""


class ScraperError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(ScraperError):
    """Site or selector configuration is unusable."""


class FetchError(ScraperError):
    """Page could not be fetched (transport failure or non-2xx status)."""

    def __init__(self, message: str, url: str, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class StoreError(ScraperError):
    """The record store rejected or failed an operation."""


class SuggestionError(ScraperError):
    """The selector suggestion service returned an unusable result."""


class LinkResolutionError(ValueError):
    """A link could not be resolved to an absolute http(s) URL."""
