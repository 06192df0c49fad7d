"""Web search through the Tavily API."""

import httpx
from pydantic import BaseModel, Field

from cmsai.tools.base import ToolDefinition, ToolErrorKind, ToolOutcome
from cmsai.utils.logging import get_logger

logger = get_logger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


class TavilySearchInput(BaseModel):
    """Input schema for tavily_search."""

    query: str = Field(..., min_length=1, description="The search query")


class TavilySearch:
    """Thin client for the Tavily search endpoint."""

    def __init__(self, api_key: str, url: str = TAVILY_SEARCH_URL, http_client: httpx.Client | None = None):
        self.api_key = api_key
        self.url = url
        self._owns_http = http_client is None
        self._http = http_client or httpx.Client()

    def search(self, params: TavilySearchInput) -> ToolOutcome:
        if not self.api_key:
            return ToolOutcome.failure(ToolErrorKind.SEARCH_ERROR, "Error performing search: Tavily API key not set.")

        payload = {
            "api_key": self.api_key,
            "query": params.query,
            "search_depth": "basic",
            "include_answer": False,
            "include_images": True,
            "include_raw_content": False,
            "max_results": 5,
            "include_domains": [],
            "exclude_domains": [],
        }

        logger.info(f"Searching the web for: {params.query}")
        try:
            response = self._http.post(self.url, json=payload, headers={"content-type": "application/json"})
        except httpx.HTTPError as e:
            logger.error(f"Tavily search failed: {e}")
            return ToolOutcome.failure(ToolErrorKind.SEARCH_ERROR, f"Error performing search: {e}")

        if response.status_code != 200:
            logger.error(f"Tavily search returned {response.status_code}")
            return ToolOutcome.failure(
                ToolErrorKind.SEARCH_ERROR,
                f"Error performing search: HTTP {response.status_code} {response.reason_phrase}",
            )

        return ToolOutcome.success(response.text)

    def close(self) -> None:
        if self._owns_http:
            self._http.close()


def create_search_tool(search: TavilySearch) -> ToolDefinition:
    return ToolDefinition(
        name="tavily_search",
        description=(
            "Search the web for current information, documentation and examples. Returns the top results "
            "as JSON with titles, URLs and content snippets."
        ),
        input_schema_class=TavilySearchInput,
        handler=search.search,
    )
