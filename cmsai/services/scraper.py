"""Fetching a web page as readable text for the scrape command."""

import html as html_module
import re

import httpx

from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

MAX_SCRAPE_CHARS = 20000
SCRAPE_HEADERS = {"User-Agent": "cmsai/0.1"}


class ScrapeError(RuntimeError):
    """The page could not be fetched or had no readable content."""


def extract_readable(html: str) -> str:
    """Extract readable text from HTML."""
    text = re.sub(
        r"<(script|style|noscript|nav|header|footer)[^>]*>.*?</\1>",
        "",
        html,
        flags=re.DOTALL | re.IGNORECASE,
    )
    text = re.sub(r"<!--.*?-->", "", text, flags=re.DOTALL)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html_module.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def scrape_url(url: str, http_client: httpx.Client | None = None, max_chars: int = MAX_SCRAPE_CHARS) -> str:
    """Fetch ``url`` and return its readable text, truncated to ``max_chars``."""
    if not url.startswith(("http://", "https://")):
        raise ScrapeError("URL must start with http:// or https://")

    try:
        if http_client is not None:
            response = http_client.get(url, headers=SCRAPE_HEADERS)
        else:
            with httpx.Client(follow_redirects=True) as client:
                response = client.get(url, headers=SCRAPE_HEADERS)
    except httpx.HTTPError as e:
        raise ScrapeError(f"Could not fetch {url}: {e}") from e

    if response.status_code != 200:
        raise ScrapeError(f"Could not fetch {url}: HTTP {response.status_code}")

    content_type = response.headers.get("content-type", "")
    text = extract_readable(response.text) if "html" in content_type else response.text.strip()
    if not text:
        raise ScrapeError(f"No readable content at {url}")

    logger.info(f"Scraped {len(text)} characters from {url}")
    return text[:max_chars]
