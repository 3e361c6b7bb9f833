"""
Tests for the search engine adapters.
"""

import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from unittest.mock import AsyncMock

from crawler.config import CrawlerConfig
from crawler.fetch import Fetcher
from search.engines import ENGINES, SearchEngineAdapter, UnknownEngineError


PADDING = "<!-- " + "x" * 1200 + " -->"


def _bing_u(url: str) -> str:
    return "a1" + base64.urlsafe_b64encode(url.encode()).decode().rstrip("=")


BING_PAGE = f"""
<html><body>{PADDING}
<ol id="b_results">
  <li class="b_algo">
    <h2><a href="https://news.example.com/ai-future">人工智能的未来</a></h2>
    <div class="b_caption"><p>AI will change everything.</p></div>
  </li>
  <li class="b_algo">
    <h2><a href="https://www.bing.com/ck/a?!&&p=abc&u={_bing_u('https://blog.example.com/ml')}&ntb=1">机器学习入门</a></h2>
    <div class="b_caption"><p>Learn ML basics.</p></div>
  </li>
  <li class="b_algo">
    <h2><a href="https://no-title.example.com/"></a></h2>
  </li>
  <li class="b_algo">
    <h2><a>Title without link</a></h2>
  </li>
</ol>
</body></html>
"""

BING_FALLBACK_PAGE = f"""
<html><body>{PADDING}
  <div class="b_result">
    <h3><a href="https://fallback.example.com/one">Fallback hit</a></h3>
    <p>Found via the secondary selector.</p>
  </div>
</body></html>
"""

BAIDU_PAGE = f"""
<html><body>{PADDING}
<div id="content_left">
  <div class="c-container">
    <h3><a href="http://www.baidu.com/link?url=opaqueToken123">百度百科：人工智能</a></h3>
    <div class="c-abstract">人工智能是……</div>
  </div>
</div>
</body></html>
"""

DDG_PAGE = f"""
<html><body>{PADDING}
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fen.wikipedia.org%2Fwiki%2FAI&rut=x">Artificial intelligence - Wikipedia</a>
  <a class="result__snippet">AI is intelligence demonstrated by machines.</a>
</div>
</body></html>
"""


def _adapter(handler) -> SearchEngineAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SearchEngineAdapter(Fetcher(CrawlerConfig(), client=client))


class TestBuildUrl:

    def setup_method(self):
        self.adapter = _adapter(lambda r: httpx.Response(200))

    def test_bing(self):
        query = parse_qs(urlparse(self.adapter.build_url("人工智能", "bing", 7)).query)
        assert query == {"q": ["人工智能"], "count": ["7"], "setlang": ["zh-CN"]}

    def test_baidu(self):
        query = parse_qs(urlparse(self.adapter.build_url("人工智能", "baidu", 5)).query)
        assert query == {"wd": ["人工智能"], "rn": ["5"]}

    def test_duckduckgo_has_no_count(self):
        url = self.adapter.build_url("ai", "duckduckgo", 5)
        assert url.startswith("https://html.duckduckgo.com/html/")
        assert "count" not in url

    def test_unknown_engine(self):
        with pytest.raises(UnknownEngineError):
            self.adapter.build_url("ai", "altavista")

    def test_unknown_engine_is_value_error(self):
        assert issubclass(UnknownEngineError, ValueError)


@pytest.mark.asyncio
class TestSearch:

    async def test_bing_results(self):
        adapter = _adapter(lambda r: httpx.Response(200, text=BING_PAGE))
        results = await adapter.search("人工智能", "bing", 10)

        assert [r.url for r in results] == [
            "https://news.example.com/ai-future",
            "https://blog.example.com/ml",
        ]
        assert results[0].title == "人工智能的未来"
        assert results[0].snippet == "AI will change everything."
        assert all(r.engine == "Bing" for r in results)

    async def test_max_results(self):
        adapter = _adapter(lambda r: httpx.Response(200, text=BING_PAGE))
        results = await adapter.search("人工智能", "bing", 1)
        assert len(results) == 1

    async def test_fallback_selector(self):
        adapter = _adapter(lambda r: httpx.Response(200, text=BING_FALLBACK_PAGE))
        results = await adapter.search("fallback", "bing", 10)

        assert len(results) == 1
        assert results[0].url == "https://fallback.example.com/one"
        assert results[0].snippet == "Found via the secondary selector."

    async def test_rendered_search_reaches_fallback_selector(self):
        """Rendering does not fail when the primary selector is absent."""
        adapter = _adapter(lambda r: httpx.Response(200))
        adapter.fetcher.fetch_rendered = AsyncMock(return_value=BING_FALLBACK_PAGE)

        results = await adapter.search("fallback", "bing", 10, use_rendered_fetch=True)

        kwargs = adapter.fetcher.fetch_rendered.call_args.kwargs
        assert kwargs["wait_for_selector"] == ".b_algo"
        assert kwargs["selector_optional"] == True
        assert [r.url for r in results] == ["https://fallback.example.com/one"]

    async def test_baidu_keeps_redirect_wrapper(self):
        """Baidu links are resolved later by the crawler, not here."""
        adapter = _adapter(lambda r: httpx.Response(200, text=BAIDU_PAGE))
        results = await adapter.search("人工智能", "baidu", 10)

        assert results[0].url == "http://www.baidu.com/link?url=opaqueToken123"
        assert results[0].engine == "Baidu"

    async def test_duckduckgo_tracking_decoded(self):
        adapter = _adapter(lambda r: httpx.Response(200, text=DDG_PAGE))
        results = await adapter.search("ai", "duckduckgo", 10)

        assert results[0].url == "https://en.wikipedia.org/wiki/AI"
        assert results[0].snippet.startswith("AI is intelligence")

    async def test_fetch_failure_returns_empty(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        adapter = _adapter(handler)
        assert await adapter.search("ai", "bing") == []

    async def test_blocked_returns_empty(self):
        adapter = _adapter(lambda r: httpx.Response(403))
        assert await adapter.search("ai", "baidu") == []

    async def test_no_results_page(self):
        adapter = _adapter(lambda r: httpx.Response(200, text=f"<html>{PADDING}</html>"))
        assert await adapter.search("ai", "bing") == []

    async def test_unknown_engine_raises(self):
        adapter = _adapter(lambda r: httpx.Response(200))
        with pytest.raises(UnknownEngineError):
            await adapter.search("ai", "altavista")


def test_engine_table():
    assert set(ENGINES) == {"bing", "baidu", "duckduckgo"}
    assert ENGINES["bing"].fallback_selector == ".b_result"
