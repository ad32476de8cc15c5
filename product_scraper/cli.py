"""Command line entry point: scrape a product or search URL and print JSON."""

import argparse
import asyncio
import json
import sys
import traceback
from pathlib import Path
from typing import Any

from product_scraper import utils
from product_scraper.config import ScraperSettings, load_simple_dotenv
from product_scraper.service import ScraperService, create_default_service


def print_json(payload: Any) -> None:
    text = json.dumps(payload, ensure_ascii=False, indent=2) + "\n"
    try:
        sys.stdout.write(text)
    except UnicodeEncodeError:
        sys.stdout.buffer.write(text.encode("utf-8", errors="replace"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="product-scraper",
        description="Scrape product and search pages from Amazon and Taobao/Tmall into JSON.",
    )
    parser.add_argument(
        "--log-level", default=None, choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    parser.add_argument("--env-file", default=".env", help="dotenv file read before settings")
    sub = parser.add_subparsers(dest="command")

    product = sub.add_parser("product", help="Scrape a single product page")
    product.add_argument("url")
    search = sub.add_parser("search", help="Scrape a search/listing page")
    search.add_argument("url")
    check = sub.add_parser("check", help="Report whether a provider accepts the URL")
    check.add_argument("url")
    sub.add_parser("providers", help="List registered providers")
    return parser


async def _run(service: ScraperService, command: str, url: str) -> dict[str, Any]:
    if command == "product":
        product = await service.scrape_product(url)
        return {"ok": True, "product": product.to_dict()}
    result = await service.scrape_search(url)
    return {"ok": True, "result": result.to_dict()}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_simple_dotenv(Path(args.env_file))
    settings = ScraperSettings.from_env()
    utils.set_log_level(args.log_level or settings.log_level)
    service = create_default_service(settings)
    try:
        if args.command in {"product", "search"}:
            print_json(asyncio.run(_run(service, args.command, args.url)))
            return 0
        if args.command == "check":
            print_json({"url": args.url, "canScrape": service.can_scrape(args.url)})
            return 0
        if args.command == "providers":
            print_json({"providers": service.get_registered_providers()})
            return 0
        parser.print_help()
        return 1
    except Exception as exc:
        utils.logger.error("%s: %s", type(exc).__name__, exc)
        utils.logger.debug("Traceback:\n%s", traceback.format_exc())
        print_json({"ok": False, "error_type": type(exc).__name__, "error": str(exc)})
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
