#!/usr/bin/env python3
"""
Look up a list of companies in the business registries.

Writes req_results.jsonl (every outcome), req_results.csv (matches),
ambiguous.csv (candidates for manual review) and ownership.csv (people
listed on matched records) to the output directory.

Usage:
    python scripts/run_lookup.py --companies-csv companies.csv
    python scripts/run_lookup.py --companies-csv companies.csv --name-column "Nom" --city-column "Ville"
    python scripts/run_lookup.py --companies-csv names.txt --fixtures tests/fixtures/registry.json --strict
    python scripts/run_lookup.py --companies-csv companies.csv --limit 20 --save-db
"""

import argparse
import asyncio
import sys
import time
from collections import Counter
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging import logger
from config.settings import settings
from processing.entity_resolution.matchers import MatchingEngine
from processing.entity_resolution.resolver import CompanyResolver, ResolverConfig
from processing.lookup_io import (
    read_companies,
    write_ambiguous_csv,
    write_ownership_csv,
    write_results_csv,
    write_results_jsonl,
)
from processing.models import DecisionStatus, RecordSource
from scrapers.base import StaticDataSource
from scrapers.registry import build_sources


def build_resolver(args) -> CompanyResolver:
    if args.fixtures:
        primary = StaticDataSource.from_json(
            args.fixtures, name="primary-fixtures", source=RecordSource.REGISTRY_PRIMARY
        )
        secondary = StaticDataSource.from_json(
            args.fixtures, name="secondary-fixtures", source=RecordSource.REGISTRY_SECONDARY
        )
    else:
        primary, secondary = build_sources(use_cache=not args.no_cache)

    return CompanyResolver(
        primary,
        secondary,
        engine=MatchingEngine(strict_mode=args.strict),
        config=ResolverConfig(max_concurrency=args.concurrency),
    )


def save_outcomes(outcomes) -> int:
    # Imported here so runs without --save-db never build the database engine
    from processing.database import init_db, save_outcomes as save_lookups

    init_db()
    return save_lookups(outcomes)


def main():
    parser = argparse.ArgumentParser(
        description="Match company names against the business registries"
    )
    parser.add_argument(
        "--companies-csv",
        required=True,
        help="CSV file (or plain text list, one name per line) of companies",
    )
    parser.add_argument(
        "--name-column",
        default="0",
        help="Column holding the company name: index or header name (default: 0)",
    )
    parser.add_argument(
        "--city-column",
        default=None,
        help="Optional column holding a city hint: index or header name",
    )
    parser.add_argument(
        "--skip-header",
        action="store_true",
        help="Skip the first CSV row",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Only look up the first N companies",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        default=settings.STRICT_MATCHING,
        help="Only accept exact and prefix matches",
    )
    parser.add_argument(
        "--fixtures",
        default=None,
        help="JSON file of registry records to search instead of the live registries",
    )
    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Always query the registries, bypassing the search cache",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.MAX_CONCURRENCY,
        help=f"Concurrent lookups (default: {settings.MAX_CONCURRENCY})",
    )
    parser.add_argument(
        "--output-dir",
        default="output",
        help="Directory for result files (default: output)",
    )
    parser.add_argument(
        "--save-db",
        action="store_true",
        help="Also store outcomes in the database",
    )

    args = parser.parse_args()

    companies = read_companies(
        args.companies_csv,
        name_column=args.name_column,
        city_column=args.city_column,
        limit=args.limit,
        skip_header=args.skip_header,
    )

    print("=" * 60)
    print("REGISTRY LOOKUP")
    print("=" * 60)
    print(f"Input: {args.companies_csv}")
    print(f"Companies: {len(companies)}")
    print(f"Mode: {'STRICT' if args.strict else 'FUZZY'}")
    print(f"Source: {args.fixtures or settings.REGISTRY_BASE_URL or '(not configured)'}")
    print(f"Cache: {'OFF' if args.no_cache or args.fixtures else settings.CACHE_DIR}")
    print("=" * 60)

    if not companies:
        print("\nNo companies to look up.")
        sys.exit(1)

    try:
        resolver = build_resolver(args)
    except ValueError as e:
        logger.error(f"Cannot build registry sources: {e}")
        print(f"\nError: {e}")
        sys.exit(1)

    start = time.time()
    try:
        outcomes = asyncio.run(resolver.resolve_many(companies, concurrency=args.concurrency))
    finally:
        resolver.close()
    elapsed = time.time() - start

    output_dir = Path(args.output_dir)
    write_results_jsonl(outcomes, output_dir / "req_results.jsonl")
    write_results_csv(outcomes, output_dir / "req_results.csv")
    write_ambiguous_csv(outcomes, output_dir / "ambiguous.csv")
    write_ownership_csv(outcomes, output_dir / "ownership.csv")

    if args.save_db:
        saved = save_outcomes(outcomes)
        print(f"\nSaved {saved} lookups to the database")

    counts = Counter(outcome.status for outcome in outcomes)
    total = len(outcomes)

    print("\n" + "=" * 60)
    print("LOOKUP SUMMARY")
    print("=" * 60)
    for status in DecisionStatus:
        count = counts.get(status, 0)
        pct = 100 * count / total if total else 0
        print(f"  {status.value:<12} {count:>6}  ({pct:.1f}%)")
    print(f"\nTotal: {total} companies in {elapsed:.1f}s")
    print(f"Results written to: {output_dir}/")
    print("=" * 60)

    if counts.get(DecisionStatus.ERROR):
        sys.exit(1)


if __name__ == "__main__":
    main()
