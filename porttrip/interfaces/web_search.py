# interfaces/web_search.py
"""
Web Search (Tavily)
Live snippets for questions the static knowledge base cannot answer
(today's schedules, strikes, weather, prices).

Never fails a request: missing key, timeouts and provider errors all
return an empty list.
"""

from typing import List, Optional
import httpx
from loguru import logger
from pydantic import BaseModel

from ..config import settings


class WebSnippet(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class WebSearchClient:
    """Thin async client for the Tavily search API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        max_results: Optional[int] = None,
        timeout: Optional[float] = None,
        url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = settings.TAVILY_API_KEY if api_key is None else api_key
        self.max_results = max_results if max_results is not None else settings.MAX_WEB_SNIPPETS
        self.timeout = timeout if timeout is not None else settings.WEB_SEARCH_TIMEOUT
        self.url = url or settings.TAVILY_URL
        self._http = http_client

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    async def search(self, query: str) -> List[WebSnippet]:
        """
        Search the web for the raw user query

        Returns:
            List[WebSnippet]: At most `max_results` snippets, possibly empty
        """
        if not self.available:
            logger.debug("Web search skipped: TAVILY_API_KEY not set")
            return []

        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": "advanced",
            "max_results": 8,
            "include_answer": False,
            "include_raw_content": False,
        }

        try:
            if self._http is not None:
                response = await self._http.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload)

            if response.status_code != 200:
                logger.warning(f"Web search returned HTTP {response.status_code}")
                return []

            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Web search failed: {e}")
            return []

        items = data.get("results") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []

        snippets = [
            WebSnippet(
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                snippet=str(item.get("content") or item.get("snippet") or ""),
            )
            for item in items
            if isinstance(item, dict)
        ]

        logger.info(f"Web search: {len(snippets[:self.max_results])} snippet(s) for '{query[:50]}'")
        return snippets[:self.max_results]
