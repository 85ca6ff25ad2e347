"""Prompt templates for selector suggestion."""

SYSTEM_PROMPT = (
    "You are an expert web scraping assistant. You read the HTML of news "
    "listing pages and return precise, valid CSS selectors."
)

USER_PROMPT_TEMPLATE = """Analyze the HTML of a news website page and identify CSS selectors for its article list. Return a JSON object:

{{
  "item_selector": str,
  "title_selector": str,
  "link_selector": str,
  "summary_selector": str,
  "date_selector": str,
  "image_selector": str,
  "base_url": str
}}

**INPUT**

- ORIGINAL URL: {original_url}
- HTML:
```html
{html_content}
```

**GUIDANCE**

- item_selector (REQUIRED): the repeating container that wraps each article in the list. Every other selector is relative to it.
- title_selector (REQUIRED): element holding the article title, usually an h1/h2/h3, possibly wrapping a link.
- link_selector (REQUIRED): the <a> whose href is the full article URL. May be the same element as the title.
- summary_selector: a dedicated excerpt element. The first paragraph of the item is an acceptable fallback; avoid navigation or unrelated text. Use "" if none is clear.
- date_selector: prefer <time> elements with a datetime attribute (e.g. "time[datetime]"), then elements whose class or id mentions date, published, timestamp, entry-date or post-date. Use "" if none is clear.
- image_selector: the main <img> (or the <img>/<source> inside a <picture>) with a real src, data-src or srcset. Never pick data:image URIs or tiny 1x1 placeholders. Prefer direct .jpg, .jpeg, .png, .webp or .gif files. Use "" if none is found.
- base_url: only when links are relative and need a base other than the original URL. Must be "" or a full URL starting with http:// or https://.
- Return ONLY the JSON object, no additional text."""


def build_suggestion_prompt(html_content: str, original_url: str) -> str:
    """Build the user prompt for selector suggestion.

    Args:
        html_content: HTML of the sample page (possibly truncated).
        original_url: URL the HTML was fetched from.

    Returns:
        Formatted prompt string.
    """
    return USER_PROMPT_TEMPLATE.format(original_url=original_url, html_content=html_content)
