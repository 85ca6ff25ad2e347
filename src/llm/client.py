"""Gemini client that proposes a selector configuration for a sample page.

Uses Vertex AI Generative Models (Gemini) with JSON output. The raw
suggestion is always passed through ``finalize_suggestion`` before it is
accepted as a SelectorConfig.
"""

import asyncio
import json
import logging
import time
from typing import Any
from urllib.parse import urljoin, urlsplit

import vertexai
from vertexai.generative_models import GenerationConfig, GenerativeModel

from src.crawler.fetcher import PageFetcher
from src.errors import SuggestionError
from src.extraction.urls import is_absolute_http_url
from src.llm.prompts import SYSTEM_PROMPT, build_suggestion_prompt
from src.models import SelectorConfig

logger = logging.getLogger(__name__)

# Retry settings
_MAX_RETRIES = 3
_BASE_BACKOFF_SECONDS = 2.0

MAX_HTML_SIZE_BYTES = 5 * 1024 * 1024

_SELECTOR_FIELDS = (
    "item_selector",
    "title_selector",
    "link_selector",
    "summary_selector",
    "date_selector",
    "image_selector",
    "base_url",
)


def parse_suggestion_response(response_text: str) -> dict[str, Any]:
    """Parse the JSON object returned by the model.

    Raises:
        SuggestionError: if the text is not a JSON object.
    """
    text = response_text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:-1] if lines[-1].strip() == "```" else lines[1:]
        text = "\n".join(lines)

    try:
        result = json.loads(text)
    except (json.JSONDecodeError, ValueError) as e:
        raise SuggestionError(f"Suggestion response is not valid JSON: {e}") from e
    if not isinstance(result, dict):
        raise SuggestionError("Suggestion response is not a JSON object")
    return result


def _finalize_base_url(base_url: str, original_url: str) -> str:
    base_url = base_url.strip()
    if not base_url:
        return ""
    if is_absolute_http_url(base_url):
        return base_url
    if base_url.startswith("/") and is_absolute_http_url(original_url):
        parts = urlsplit(original_url)
        candidate = urljoin(f"{parts.scheme}://{parts.netloc}", base_url)
        if is_absolute_http_url(candidate):
            return candidate
    logger.warning("Discarding invalid suggested base_url %r (original URL: %s)", base_url, original_url)
    return ""


def finalize_suggestion(raw: dict[str, Any], original_url: str) -> SelectorConfig:
    """Validate a raw suggestion and turn it into a SelectorConfig.

    Non-string fields become empty strings. A relative ``base_url`` path
    is resolved against the origin of ``original_url``; anything else
    that is not an absolute URL is dropped.

    Raises:
        SuggestionError: if item, title or link selector is missing.
    """
    values = {}
    for name in _SELECTOR_FIELDS:
        value = raw.get(name)
        values[name] = value.strip() if isinstance(value, str) else ""
    values["base_url"] = _finalize_base_url(values["base_url"], original_url)

    selectors = SelectorConfig(**values)
    if not selectors.has_required_selectors():
        raise SuggestionError(
            "Could not determine the required selectors (item, title, link). "
            "Please enter them manually."
        )
    return selectors


class SelectorSuggester:
    """Client for the Vertex AI Gemini selector suggestion model."""

    def __init__(
        self,
        project_id: str,
        region: str,
        model_name: str = "gemini-1.5-flash",
        max_html_chars: int = 200_000,
    ):
        """Initialize the suggestion client.

        Args:
            project_id: GCP project ID.
            region: GCP region for Vertex AI endpoint.
            model_name: Gemini model name.
            max_html_chars: HTML beyond this many characters is cut off
                before being sent to the model.
        """
        vertexai.init(project=project_id, location=region)
        self.model = GenerativeModel(
            model_name,
            system_instruction=SYSTEM_PROMPT,
        )
        self.generation_config = GenerationConfig(
            response_mime_type="application/json",
            temperature=0.1,
            max_output_tokens=1024,
        )
        self.max_html_chars = max_html_chars
        logger.info(
            "SelectorSuggester initialized: model=%s, region=%s", model_name, region
        )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "SelectorSuggester":
        gcp = config["gcp"]
        vertex_config = config.get("vertex_ai", {})
        return cls(
            project_id=gcp["project_id"],
            region=gcp.get("region", "us-east4"),
            model_name=vertex_config.get("generative_model", "gemini-1.5-flash"),
            max_html_chars=vertex_config.get("max_html_chars", 200_000),
        )

    def suggest(self, html_content: str, original_url: str) -> SelectorConfig:
        """Propose selectors for a sample page.

        Args:
            html_content: HTML of the page.
            original_url: URL the HTML came from.

        Returns:
            Validated SelectorConfig.

        Raises:
            SuggestionError: if the model fails or returns unusable selectors.
        """
        prompt = build_suggestion_prompt(html_content[: self.max_html_chars], original_url)

        for attempt in range(_MAX_RETRIES):
            try:
                response = self.model.generate_content(
                    prompt,
                    generation_config=self.generation_config,
                )
                raw = parse_suggestion_response(response.text)
                logger.debug("Raw selector suggestion for %s: %s", original_url, raw)
                return finalize_suggestion(raw, original_url)

            except SuggestionError:
                raise
            except Exception as e:
                error_str = str(e).lower()
                if "429" in error_str or "resource exhausted" in error_str:
                    wait_time = _BASE_BACKOFF_SECONDS * (2 ** attempt)
                    logger.warning(
                        "Suggestion rate limited (attempt %d/%d), retrying in %.1fs",
                        attempt + 1,
                        _MAX_RETRIES,
                        wait_time,
                    )
                    time.sleep(wait_time)
                else:
                    logger.error("Selector suggestion failed for %s: %s", original_url, e)
                    raise SuggestionError(f"Selector suggestion failed: {e}") from e

        raise SuggestionError("Selector suggestion exhausted retries")


async def suggest_selectors_for_url(
    url: str,
    fetcher: PageFetcher,
    suggester: SelectorSuggester,
) -> SelectorConfig:
    """Fetch a page and ask the model for its selectors.

    Raises:
        SuggestionError: if the URL is not http(s) or no usable selectors
            come back.
        FetchError: if the page cannot be fetched.
    """
    if not is_absolute_http_url(url):
        raise SuggestionError("Please enter a valid HTTP/HTTPS URL.")

    response = await fetcher.fetch(url)
    size = len(response.body.encode("utf-8"))
    if size > MAX_HTML_SIZE_BYTES:
        logger.warning(
            "HTML of %s is large (%.2fMB); it will be truncated for suggestion",
            url, size / (1024 * 1024),
        )

    logger.info("Requesting selector suggestion for %s", url)
    selectors = await asyncio.to_thread(suggester.suggest, response.body, url)
    logger.info("Selector suggestion accepted for %s: %s", url, selectors.to_dict())
    return selectors
