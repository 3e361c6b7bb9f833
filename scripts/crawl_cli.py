import os
import sys
import json
import asyncio
import argparse
import logging
from dotenv import load_dotenv

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from crawler.config import CrawlOptions
from crawler.rules import RuleRegistry
from search.orchestrator import WebSearchOptions
from search.service import ContentSearchService

# Load environment variables
load_dotenv()


def _print_json(data):
    print(json.dumps(data, ensure_ascii=False, indent=2))


async def run_search(args):
    options = WebSearchOptions(
        max_results=args.max,
        engines=args.engines.split(",") if args.engines else ["bing"],
        crawl_results=not args.no_crawl,
        use_rendered_fetch=args.rendered,
    )
    async with ContentSearchService() as service:
        if args.engines is None:
            options.engines = list(service.config.default_engines)
        results = await service.search_web(args.keyword, options)
    _print_json(results)


async def run_crawl(args):
    options = CrawlOptions(use_rendered_fetch=args.rendered)
    async with ContentSearchService() as service:
        if len(args.urls) == 1:
            responses = [await service.crawl_url(args.urls[0], options)]
        else:
            responses = await service.batch_crawl(args.urls, options)
    _print_json([r.to_dict() for r in responses])


async def run_content(args):
    platforms = args.platforms.split(",") if args.platforms else None
    async with ContentSearchService() as service:
        response = await service.search_content(
            args.keyword, platforms, page=args.page, limit=args.limit
        )
    _print_json(response.to_dict())


def main():
    parser = argparse.ArgumentParser(description="Search the web and crawl pages.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_search = sub.add_parser("search", help="Multi-engine web search.")
    p_search.add_argument("keyword")
    p_search.add_argument("--engines", help="Comma-separated engines (bing,baidu,duckduckgo).")
    p_search.add_argument("--max", type=int, default=10, help="Maximum results.")
    p_search.add_argument("--no-crawl", action="store_true", help="Return search hits without crawling.")
    p_search.add_argument("--rendered", action="store_true", help="Use the headless browser.")

    p_crawl = sub.add_parser("crawl", help="Crawl one or more URLs.")
    p_crawl.add_argument("urls", nargs="+")
    p_crawl.add_argument("--rendered", action="store_true", help="Use the headless browser.")

    p_content = sub.add_parser("content", help="Paginated search across platforms.")
    p_content.add_argument("keyword")
    p_content.add_argument("--platforms", help="Comma-separated platforms (web,weibo,douyin,xiaohongshu,zhihu).")
    p_content.add_argument("--page", type=int, default=1)
    p_content.add_argument("--limit", type=int, default=10)

    sub.add_parser("rules", help="Print the built-in extraction rules as JSON.")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "rules":
        print(RuleRegistry.with_defaults().export_json())
        return

    handlers = {"search": run_search, "crawl": run_crawl, "content": run_content}
    try:
        asyncio.run(handlers[args.command](args))
    except ValueError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
