"""
Web 工具：web_search（Brave Search API）与 web_fetch（抓取并提取正文）。

两者都通过 httpx.AsyncClient 访问网络；构造时可传入 transport，
测试中用 httpx.MockTransport 代替真实网络。
"""

import html
import json
import os
import re
from typing import Any
from urllib.parse import urlparse

import httpx
from readability import Document

from ingenium.agent.tools.base import Tool

USER_AGENT = "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7_2) AppleWebKit/537.36"
MAX_REDIRECTS = 5
BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"


def strip_tags(text: str) -> str:
    """去掉 script/style 块与所有标签，并解码 HTML 实体。"""
    text = re.sub(r"<script[\s\S]*?</script>", "", text, flags=re.I)
    text = re.sub(r"<style[\s\S]*?</style>", "", text, flags=re.I)
    text = re.sub(r"<[^>]+>", "", text)
    return html.unescape(text).strip()


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"[ \t]+", " ", text)
    return re.sub(r"\n{3,}", "\n\n", text).strip()


def html_to_markdown(fragment: str) -> str:
    """
    把正文 HTML 片段粗略转换为 Markdown：链接、标题、列表项、段落与换行。
    """
    text = re.sub(
        r"<a\s+[^>]*href=[\"']([^\"']+)[\"'][^>]*>([\s\S]*?)</a>",
        lambda m: f"[{strip_tags(m[2])}]({m[1]})",
        fragment,
        flags=re.I,
    )
    text = re.sub(
        r"<h([1-6])[^>]*>([\s\S]*?)</h\1>",
        lambda m: f"\n{'#' * int(m[1])} {strip_tags(m[2])}\n",
        text,
        flags=re.I,
    )
    text = re.sub(r"<li[^>]*>([\s\S]*?)</li>", lambda m: f"\n- {strip_tags(m[1])}", text, flags=re.I)
    text = re.sub(r"</(p|div|section|article)>", "\n\n", text, flags=re.I)
    text = re.sub(r"<(br|hr)\s*/?>", "\n", text, flags=re.I)
    return normalize_whitespace(strip_tags(text))


def validate_url(url: str) -> str | None:
    """只允许带域名的 http/https URL，不合法时返回原因。"""
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return f"Only http/https allowed, got '{parsed.scheme or 'none'}'"
    if not parsed.netloc:
        return "Missing domain"
    return None


class WebSearchTool(Tool):
    """Brave 搜索，返回编号的标题 / URL / 摘要列表。"""

    name = "web_search"
    description = "Search the web. Returns titles, URLs, and snippets."
    parameters = {
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "Search query"},
            "count": {"type": "integer", "description": "Results (1-10)", "minimum": 1, "maximum": 10},
        },
        "required": ["query"],
    }

    def __init__(
        self,
        api_key: str | None = None,
        max_results: int = 5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key or os.environ.get("BRAVE_API_KEY", "")
        self.max_results = max_results
        self._transport = transport

    async def execute(self, query: str, count: int | None = None, **kwargs: Any) -> str:
        if not self.api_key:
            return "Error: BRAVE_API_KEY not configured"

        n = min(max(count or self.max_results, 1), 10)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                r = await client.get(
                    BRAVE_SEARCH_URL,
                    params={"q": query, "count": n},
                    headers={"Accept": "application/json", "X-Subscription-Token": self.api_key},
                )
                r.raise_for_status()
            results = r.json().get("web", {}).get("results", [])
        except Exception as e:
            return f"Error: {e}"

        if not results:
            return f"No results for: {query}"

        lines = [f"Results for: {query}\n"]
        for i, item in enumerate(results[:n], 1):
            lines.append(f"{i}. {item.get('title', '')}\n   {item.get('url', '')}")
            if desc := item.get("description"):
                lines.append(f"   {desc}")
        return "\n".join(lines)


class WebFetchTool(Tool):
    """
    抓取 URL 并提取可读内容。

    返回 JSON 字符串：url、finalUrl、status、extractor（json / readability / raw）、
    truncated、length、text；失败时为 {"error", "url"}。
    """

    name = "web_fetch"
    description = "Fetch URL and extract readable content (HTML -> markdown/text)."
    parameters = {
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "URL to fetch"},
            "extractMode": {"type": "string", "enum": ["markdown", "text"], "default": "markdown"},
            "maxChars": {"type": "integer", "minimum": 100},
        },
        "required": ["url"],
    }

    def __init__(self, max_chars: int = 50000, transport: httpx.AsyncBaseTransport | None = None):
        self.max_chars = max_chars
        self._transport = transport

    async def execute(
        self,
        url: str,
        extractMode: str = "markdown",
        maxChars: int | None = None,
        **kwargs: Any,
    ) -> str:
        max_chars = maxChars or self.max_chars

        error = validate_url(url)
        if error:
            return json.dumps({"error": f"URL validation failed: {error}", "url": url})

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                follow_redirects=True,
                max_redirects=MAX_REDIRECTS,
                timeout=30.0,
            ) as client:
                r = await client.get(url, headers={"User-Agent": USER_AGENT})
                r.raise_for_status()
            text, extractor = self._extract(r, extractMode)
        except Exception as e:
            return json.dumps({"error": str(e), "url": url})

        truncated = len(text) > max_chars
        if truncated:
            text = text[:max_chars]
        return json.dumps({
            "url": url,
            "finalUrl": str(r.url),
            "status": r.status_code,
            "extractor": extractor,
            "truncated": truncated,
            "length": len(text),
            "text": text,
        })

    @staticmethod
    def _extract(response: httpx.Response, mode: str) -> tuple[str, str]:
        ctype = response.headers.get("content-type", "")
        if "application/json" in ctype:
            return json.dumps(response.json(), indent=2), "json"
        if "text/html" in ctype or response.text[:256].lower().startswith(("<!doctype", "<html")):
            doc = Document(response.text)
            summary = doc.summary()
            content = html_to_markdown(summary) if mode == "markdown" else strip_tags(summary)
            title = doc.title()
            return (f"# {title}\n\n{content}" if title else content), "readability"
        return response.text, "raw"
