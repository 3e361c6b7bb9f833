"""
Tests for ContentSearchService: envelopes, pagination and resource ownership.
"""

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock

from browser_client import BrowserConfig, BrowserPool
from crawler.config import CrawlerConfig
from models.schema import CrawlResult
from search.service import ContentSearchService


ARTICLE = """
<html><body>
  <h1>人工智能的未来</h1>
  <article><p>Artificial intelligence keeps moving from research labs into daily products.</p></article>
</body></html>
"""


async def _no_sleep(seconds):
    return None


def _service(handler, **kwargs) -> ContentSearchService:
    return ContentSearchService(
        config=CrawlerConfig(max_retries=1, retry_delay=0, request_delay=0),
        browser=BrowserPool(BrowserConfig(enabled=False)),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        sleep=_no_sleep,
        **kwargs,
    )


@pytest.mark.asyncio
class TestCrawlUrl:

    async def test_success_envelope(self):
        async with _service(lambda r: httpx.Response(200, text=ARTICLE)) as service:
            response = await service.crawl_url("https://news.example.com/news/1")

        data = response.to_dict()
        assert data["success"] == True
        assert data["url"] == "https://news.example.com/news/1"
        assert data["data"]["title"] == "人工智能的未来"
        assert data["data"]["siteType"] == "news"
        assert "publishTime" in data["data"]
        assert data["error"] is None

    async def test_failure_envelope(self):
        async with _service(lambda r: httpx.Response(500)) as service:
            response = await service.crawl_url("https://broken.example.com/")

        assert response.success == False
        assert response.data is None
        assert response.error

    async def test_invalid_url_envelope(self):
        async with _service(lambda r: httpx.Response(200, text=ARTICLE)) as service:
            response = await service.crawl_url("nonsense")

        assert response.success == False
        assert "Invalid URL" in response.error

    async def test_batch_crawl(self):
        def handler(request):
            if request.url.host == "down.example.com":
                return httpx.Response(503)
            return httpx.Response(200, text=ARTICLE)

        async with _service(handler) as service:
            responses = await service.batch_crawl([
                "https://a.example.com/news/1",
                "https://down.example.com/news/2",
            ])

        assert len(responses) == 1
        assert responses[0].success == True
        assert responses[0].url == "https://a.example.com/news/1"


@pytest.mark.asyncio
class TestSearchContent:

    async def test_page_two(self):
        service = _service(lambda r: httpx.Response(200))
        service.orchestrator.search_web = AsyncMock(return_value=[
            CrawlResult.for_url(f"https://site{i}.example.com/", title=f"r{i}") for i in range(20)
        ])

        response = await service.search_content("ai", ["web"], page=2, limit=10)
        data = response.to_dict()

        assert [r["title"] for r in data["results"]] == [f"r{i}" for i in range(10, 20)]
        assert data["total"] == 20
        assert data["query"] == "ai"
        assert data["sources"] == ["web"]
        assert isinstance(data["searchTime"], int)
        await service.aclose()

    async def test_defaults_to_web_source(self):
        service = _service(lambda r: httpx.Response(200))
        service.orchestrator.search_web = AsyncMock(return_value=[])

        response = await service.search_content("ai")
        assert response.sources == ["web"]
        assert response.results == []
        assert response.total == 0
        await service.aclose()

    async def test_platforms_use_factory(self):
        searcher = MagicMock()
        searcher.search = AsyncMock(return_value=[CrawlResult.for_url("https://www.zhihu.com/question/1")])
        service = _service(lambda r: httpx.Response(200), searcher_factory=lambda name: searcher)

        response = await service.search_content("ai", ["zhihu"], page=1, limit=5)

        assert len(response.results) == 1
        searcher.search.assert_awaited_once_with("ai", 5)
        await service.aclose()

    async def test_invalid_page(self):
        service = _service(lambda r: httpx.Response(200))
        with pytest.raises(ValueError):
            await service.search_content("ai", page=0)
        await service.aclose()


@pytest.mark.asyncio
class TestSearchWeb:

    async def test_returns_dicts(self):
        bing_page = """
        <html><body><!-- %s -->
          <li class="b_algo"><h2><a href="https://site.example.com/ai">人工智能</a></h2>
          <div class="b_caption"><p>snippet</p></div></li>
        </body></html>
        """ % ("x" * 1200)

        def handler(request):
            if request.url.host == "www.bing.com":
                return httpx.Response(200, text=bing_page)
            return httpx.Response(200, text=ARTICLE)

        async with _service(handler) as service:
            results = await service.search_web("人工智能")

        assert len(results) == 1
        assert results[0]["url"] == "https://site.example.com/ai"
        assert results[0]["title"] == "人工智能的未来"


@pytest.mark.asyncio
class TestOwnership:

    async def test_borrowed_resources_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        browser = BrowserPool(BrowserConfig(enabled=False))
        browser.shutdown = AsyncMock()

        async with ContentSearchService(config=CrawlerConfig(), browser=browser, client=client):
            pass

        browser.shutdown.assert_not_awaited()
        assert client.is_closed == False
        await client.aclose()

    async def test_owned_browser_shut_down(self, monkeypatch):
        monkeypatch.setenv("PLAYWRIGHT_ENABLED", "false")
        service = ContentSearchService(config=CrawlerConfig())
        service.browser.shutdown = AsyncMock()

        await service.aclose()

        service.browser.shutdown.assert_awaited_once()
