"""
Command line entry point (console script `kondo-scrape`).

    kondo-scrape --records kondos.json            # every listing in status "scraping"
    kondo-scrape --records kondos.json --kondo-id 42 --verbose
    kondo-scrape --url https://somattos.com.br/empreendimentos/x --dry-run
"""
import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional

from kondo_scraping.adapters.platform import create_fetch_provider
from kondo_scraping.adapters.stores import InMemoryKondoStore, InMemoryMediaStore, InMemoryObjectStorage
from kondo_scraping.errors import ScrapingError
from kondo_scraping.layers.orchestration import ScrapingOrchestrator
from kondo_scraping.models.listing import KondoStatus
from kondo_scraping.models.scraping import BatchScrapeOptions, ScrapeOptions
from kondo_scraping.utils.logger import get_logger

logger = get_logger("cli")

AD_HOC_KONDO_ID = 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kondo-scrape",
        description="Scrape kondo data from external real estate platforms",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--records", help="JSON file with the listing records to scrape")
    source.add_argument("--url", help="Scrape a single URL into a throwaway listing")
    parser.add_argument("--kondo-id", type=int, help="Only scrape this listing")
    parser.add_argument("--platform", help="Only use this site engine (e.g. somattos, conartes)")
    parser.add_argument("--engine", help="Force an engine, bypassing detection")
    parser.add_argument("--fetch-platform", help="Fetch provider: scrapingdog, scrapfly or direct")
    parser.add_argument("--dry-run", action="store_true", help="Scrape without saving anything")
    parser.add_argument("--verbose", action="store_true", help="Include every accepted change")
    parser.add_argument("--skip-delay", action="store_true", help="Do not wait between listings")
    return parser


def load_records(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        records = json.load(f)
    if not isinstance(records, list):
        raise ValueError(f"{path} must contain a JSON list of listing records")
    return records


async def run(args: argparse.Namespace) -> Dict[str, Any]:
    if args.url:
        records = [{"id": AD_HOC_KONDO_ID, "url": args.url, "status": KondoStatus.SCRAPING.value}]
    else:
        records = load_records(args.records)

    orchestrator = ScrapingOrchestrator(
        kondo_store=InMemoryKondoStore(records),
        media_store=InMemoryMediaStore(),
        storage=InMemoryObjectStorage(),
        fetch_provider=create_fetch_provider(args.fetch_platform),
    )

    if args.url:
        response = await orchestrator.scrape_kondo_by_id(
            AD_HOC_KONDO_ID,
            ScrapeOptions(dry_run=args.dry_run, force_engine=args.engine, verbose=args.verbose),
        )
        return response.model_dump(mode="json")

    result = await orchestrator.scrape_all_pending(
        BatchScrapeOptions(
            platform=args.platform,
            kondo_id=args.kondo_id,
            dry_run=args.dry_run,
            verbose=args.verbose,
            skip_delay=args.skip_delay,
            force_engine=args.engine,
        )
    )
    return result.model_dump(mode="json")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        output = asyncio.run(run(args))
    except (ScrapingError, OSError, ValueError) as e:
        logger.error("cli_failed", error=str(e), error_type=type(e).__name__)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
    if args.url:
        return 0 if output.get("success") else 1
    return 0 if output.get("failed", 0) == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
