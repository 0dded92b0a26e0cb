#!/usr/bin/env python3
"""
Score one search name against one candidate name.

Shows the normalized forms, the search variations and each stage of the
matching cascade. Useful for tuning thresholds.

Usage:
    python scripts/score_names.py "Acme Ltee" "ACME LTÉE."
    python scripts/score_names.py "9123-4567 Quebec inc" "9123-4567 QUÉBEC INC" --strict
    python scripts/score_names.py "Boulangerie Roy" "BOULANGERIE ROY INC" --hint-city Laval --candidate-city LAVAL
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.entity_resolution.matchers import MatchingEngine
from processing.entity_resolution.normalizer import CompanyNormalizer


def main():
    parser = argparse.ArgumentParser(
        description="Score a search name against a candidate name"
    )
    parser.add_argument("search", help="Name being looked up")
    parser.add_argument("candidate", help="Name returned by the registry")
    parser.add_argument("--hint-city", default=None, help="City of the input company")
    parser.add_argument("--candidate-city", default=None, help="City of the registry record")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Only accept exact and prefix matches",
    )

    args = parser.parse_args()

    normalizer = CompanyNormalizer()
    engine = MatchingEngine(strict_mode=args.strict)

    search = normalizer.normalize(args.search)
    candidate = normalizer.normalize(args.candidate)
    search_key = engine.normalize_for_matching(search)
    candidate_key = engine.normalize_for_matching(candidate)

    print("=" * 60)
    print("NAME SCORING")
    print("=" * 60)
    print(f"Search:     {args.search!r} -> {search!r}")
    print(f"Candidate:  {args.candidate!r} -> {candidate!r}")
    print(f"Mode:       {'STRICT' if args.strict else 'FUZZY'}")
    print(f"Public body: {normalizer.is_public_body(search)}")

    print("\nVariations searched:")
    for variation in normalizer.generate_variations(search):
        print(f"  - {variation}")

    print("\nCascade:")
    print(f"  Exact:       {engine.is_exact_match(search_key, candidate_key)}")
    print(f"  Prefix:      {engine.get_prefix_score(search_key, candidate_key):.4f}")
    print(f"  Levenshtein+Jaccard: {engine.get_fuzzy_score(search_key, candidate_key):.4f}")
    print(f"  City bonus:  {engine.get_city_bonus(args.hint_city, args.candidate_city):.4f}")

    result = engine.match(search, candidate, args.hint_city, args.candidate_city)

    print("\n" + "=" * 60)
    print(f"RESULT: {result.method.value.upper()} score={result.score:.4f} match={result.is_match}")
    print("=" * 60)


if __name__ == "__main__":
    main()
