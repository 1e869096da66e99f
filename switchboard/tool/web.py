"""Web fetch and search tools"""

import re

import httpx

from .base import Tool

DUCKDUCKGO_API = "https://api.duckduckgo.com/"


def html_to_text(html: str) -> str:
    text = re.sub(r"<script[^>]*>[\s\S]*?</script>", "", html, flags=re.IGNORECASE)
    text = re.sub(r"<style[^>]*>[\s\S]*?</style>", "", text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


class WebFetchTool(Tool):
    name = "web_fetch"
    description = "Fetch a URL and return the content as text. Use for web pages, APIs, documentation."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "URL to fetch (http or https)",
                },
                "maxChars": {
                    "type": "integer",
                    "description": "Maximum characters to return (default: 10000)",
                },
            },
            "required": ["url"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        url = args["url"]
        max_chars = args.get("maxChars") or 10000

        try:
            async with httpx.AsyncClient(timeout=15.0, transport=context.get("http_transport")) as client:
                response = await client.get(url, follow_redirects=True)
                response.raise_for_status()
        except httpx.TimeoutException:
            return f"Error: Request timed out for {url}"
        except httpx.HTTPStatusError as e:
            return f"Error: HTTP {e.response.status_code} - {e.response.text[:500]}"
        except httpx.HTTPError as e:
            return f"Error fetching {url}: {e}"

        content_type = response.headers.get("content-type", "")
        text = html_to_text(response.text) if "html" in content_type else response.text
        if len(text) > max_chars:
            text = text[:max_chars] + "..."
        return text or "(empty response)"


class WebSearchTool(Tool):
    name = "web_search"
    description = "Search the web and return results."

    def get_parameters_schema(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query",
                },
            },
            "required": ["query"],
        }

    async def execute(self, args: dict, context: dict) -> str:
        query = args["query"]
        params = {"q": query, "format": "json", "no_html": "1", "skip_disambig": "1"}

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=context.get("http_transport")) as client:
                response = await client.get(DUCKDUCKGO_API, params=params, follow_redirects=True)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            return f"Error: Search failed: {e}"

        results = []
        if data.get("AbstractText"):
            results.append(data["AbstractText"])
            if data.get("AbstractURL"):
                results.append(f"   Source: {data['AbstractURL']}")

        for topic in (data.get("RelatedTopics") or [])[:5]:
            if topic.get("Text"):
                results.append(f"- {topic['Text']}")
                if topic.get("FirstURL"):
                    results.append(f"  {topic['FirstURL']}")

        if not results:
            return f'No results for "{query}". Try a different query or use web_fetch with a specific URL.'
        return "\n".join(results)
