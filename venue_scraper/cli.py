import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from venue_scraper.config import settings
from venue_scraper.errors import NavigationError, ProfileExtractionError
from venue_scraper.fetchers.render_agent import RenderAgent
from venue_scraper.pipeline.runner import run_scrape_batch, scrape_catalog, scrape_profile
from venue_scraper.sentry_setup import init_sentry
from venue_scraper.sink import MongoResultSink
from venue_scraper.utils import setup_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="venue_scraper", description="Scrape venue listings region by region.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    batch = subparsers.add_parser("batch", help="Scrape one resumable batch of regions.")
    batch.add_argument("--start-index", type=int, default=0, help="Index of the first region to scrape.")
    batch.add_argument("--max-regions", type=int, default=settings.scrape.max_regions_per_call, help="Regions to scrape in this call.")
    batch.add_argument("--enrich", action="store_true", help="Also load detail pages and attach venue profiles.")
    batch.add_argument("--no-sink", action="store_true", help="Disable saving to MongoDB.")
    batch.add_argument("--no-browser", action="store_true", help="Skip the headless browser and use plain HTTP only.")
    batch.add_argument("--headed", action="store_true", help="Run the browser with a visible window.")

    catalog = subparsers.add_parser("catalog", help="Fetch the whole-catalog listing page without a browser.")
    catalog.add_argument("--no-sink", action="store_true", help="Disable saving to MongoDB.")

    profile = subparsers.add_parser("profile", help="Scrape a single venue detail page.")
    profile.add_argument("url", type=str, help="Venue detail page URL.")
    profile.add_argument("--no-browser", action="store_true", help="Skip the headless browser and use plain HTTP only.")
    return parser


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


async def _run(args: argparse.Namespace, logger: logging.Logger) -> int:
    overrides = {}
    if getattr(args, "enrich", False):
        overrides["enrich_profiles"] = True
    if getattr(args, "headed", False):
        overrides["headless"] = False
    scrape_settings = settings.scrape.model_copy(update=overrides)
    render_agent = None if getattr(args, "no_browser", False) else RenderAgent(scrape_settings)

    if args.command == "batch":
        if args.start_index < 0 or args.max_regions < 1:
            logger.error("--start-index must be >= 0 and --max-regions >= 1.")
            return 1
        sink = None if args.no_sink else MongoResultSink(settings.mongodb)
        try:
            response = await run_scrape_batch(
                args.start_index, args.max_regions, scrape_settings, sink=sink, render_agent=render_agent
            )
        finally:
            if sink is not None:
                sink.close()
        _print_json(response.to_output())
        return 0 if response.success else 1

    if args.command == "catalog":
        try:
            records = await scrape_catalog(scrape_settings)
        except NavigationError as e:
            logger.error(f"Catalog scrape failed: {e}")
            return 1
        if not args.no_sink and records:
            with MongoResultSink(settings.mongodb) as sink:
                reports = sink.upsert(records, scrape_settings.sink_batch_size)
            if not all(report.ok for report in reports):
                logger.warning("Some sub-batches failed to persist.")
        _print_json([record.to_persisted() for record in records])
        return 0

    try:
        profile = await scrape_profile(args.url, scrape_settings, render_agent=render_agent)
    except (NavigationError, ProfileExtractionError) as e:
        logger.error(f"Profile scrape failed: {e}")
        return 1
    _print_json(profile.model_dump(mode="json"))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger = setup_logger("venue_scraper", f"venue_scraper_{args.command}", level=getattr(logging, settings.log_level.upper(), logging.INFO))
    init_sentry(settings)
    logger.info(f"Starting '{args.command}' run.")

    try:
        return asyncio.run(_run(args, logger))
    except KeyboardInterrupt:
        logger.warning("Scraper run interrupted.")
        return 1
    except Exception as e:
        logger.critical(f"Scraper failed critically in main execution: {e}", exc_info=True)
        return 1
    finally:
        logger.info("Run finished.")


if __name__ == "__main__":
    sys.exit(main())
