#!/usr/bin/env python3
"""
Tests for the matching cascade (exact, prefix, fuzzy) and city bonus.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.entity_resolution.matchers import (
    MatchingConfig,
    MatchingEngine,
    MatchMethod,
    MatchResult,
    match,
)


@pytest.fixture
def engine():
    return MatchingEngine()


@pytest.fixture
def strict_engine():
    return MatchingEngine(strict_mode=True)


# Exact

def test_identical_names(engine):
    result = engine.match("ACME LTÉE", "ACME LTÉE")
    assert result.method == MatchMethod.EXACT
    assert result.score == 1.0


def test_exact_ignores_accents_and_punctuation(engine):
    result = engine.match("ACME LTÉE", "Acme Ltee.")
    assert result.method == MatchMethod.EXACT
    assert result.score == 1.0


def test_numbered_company_exact(engine):
    result = engine.match("1234-5678 QUÉBEC INC", "1234-5678 QUEBEC INC.")
    assert result == MatchResult(1.0, MatchMethod.EXACT)


def test_numbered_company_compared_by_number(engine):
    result = engine.match("1234-5678 QUÉBEC INC", "1234 5678 CANADA INC")
    assert result.method == MatchMethod.EXACT

    result = engine.match("1234-5678 QUÉBEC INC", "1234-5679 QUÉBEC INC")
    assert result.method == MatchMethod.NONE, "Different numbers must not match"


def test_numbered_company_needs_both_sides_numbered(engine):
    assert not engine.is_exact_match("1234 5678 QUÉBEC INC", "ACME INC")


def test_numbered_company_ignores_longer_digit_runs(engine):
    assert not engine.is_exact_match("12345 6789 QUÉBEC INC", "2345 6789 QUÉBEC INC")
    assert engine.match("12345-6789 QUÉBEC INC", "2345-6789 QUÉBEC INC").method != MatchMethod.EXACT


# Prefix

def test_prefix_match(engine):
    result = engine.match("ACME", "ACME CONSTRUCTION")
    assert result.method == MatchMethod.PREFIX
    assert result.score == pytest.approx(0.95 + 0.05 * 4 / 17)


def test_token_alignment_score(engine):
    score = engine.get_prefix_score("BOUL ROY INC", "BOULANGERIE ROY INC")
    assert score == pytest.approx(2.8 / 3)


def test_token_alignment_stops_at_first_mismatch(engine):
    score = engine.get_prefix_score("ACME ROY INC", "ACME TREMBLAY INC")
    assert score == pytest.approx(1 / 3)


# Fuzzy

def test_fuzzy_match(engine):
    result = engine.match("ACME ET FILS INC", "ACME & FILS INC")
    assert result.method == MatchMethod.FUZZY
    assert result.score == pytest.approx(0.90625)


def test_strict_mode_never_fuzzy(strict_engine):
    result = strict_engine.match("ACME ET FILS INC", "ACME & FILS INC")
    assert result.method == MatchMethod.NONE
    assert result.score == pytest.approx(0.25), "Strict mode reports the prefix score"


@pytest.mark.parametrize(
    "search,candidate",
    [
        ("ACME ET FILS INC", "ACME & FILS INC"),
        ("TRANSPORT GAGNON", "TRANSPORTS GAGNON"),
        ("BOUL ROY INC", "BOULANGERIE ROY INC"),
        ("ALPHA", "OMEGA"),
        ("ÉRABLIÈRE CÔTÉ", "ERABLIERE COTE ENR"),
    ],
)
def test_strict_mode_methods(strict_engine, search, candidate):
    result = strict_engine.match(search, candidate, hint_city="Laval", candidate_city="Laval")
    assert result.method != MatchMethod.FUZZY


def test_strict_mode_keeps_exact_and_prefix(strict_engine):
    assert strict_engine.match("ACME LTÉE", "ACME LTEE").method == MatchMethod.EXACT
    assert strict_engine.match("ACME", "ACME CONSTRUCTION").method == MatchMethod.PREFIX


def test_fuzzy_threshold_boundary(engine, monkeypatch):
    monkeypatch.setattr(engine, "get_fuzzy_score", lambda search, candidate: 0.88)
    result = engine.match("ALPHA", "OMEGA")
    assert result == MatchResult(0.88, MatchMethod.FUZZY), "0.88 is inclusive"

    monkeypatch.setattr(engine, "get_fuzzy_score", lambda search, candidate: 0.8799)
    result = engine.match("ALPHA", "OMEGA")
    assert result == MatchResult(0.8799, MatchMethod.NONE)


def test_real_pair_at_fuzzy_threshold(engine):
    """
    Same significant tokens (Jaccard 1.0), six short-token characters
    missing out of 25 (Levenshtein 1 - 6/25 = 0.76): 0.5 * 0.76 + 0.5 = 0.88.
    """
    result = engine.match("ROY FILS DE MIRABEL", "LE ROY ET FILS DE MIRABEL")
    assert result.method == MatchMethod.FUZZY, "0.88 is inclusive"
    assert result.score == pytest.approx(0.88)


def test_real_pair_below_fuzzy_threshold(engine):
    # Seven characters missing: 0.5 * (1 - 7/25) + 0.5 = 0.86
    result = engine.match("ROY FILS D MIRABEL", "LE ROY ET FILS DE MIRABEL")
    assert result.method == MatchMethod.NONE
    assert result.score == pytest.approx(0.86)

    with_city = engine.match(
        "ROY FILS D MIRABEL", "LE ROY ET FILS DE MIRABEL",
        hint_city="Mirabel", candidate_city="MIRABEL",
    )
    assert with_city.method == MatchMethod.FUZZY
    assert with_city.score == pytest.approx(0.91)


def test_unrelated_names(engine):
    result = engine.match("BOULANGERIE ROY", "TRANSPORT GAGNON")
    assert result.method == MatchMethod.NONE
    assert 0.0 <= result.score < 0.88


def test_jaccard_ignores_short_tokens(engine):
    assert engine.get_jaccard_similarity("ROY ET FILS", "ROY DE FILS") == 1.0
    assert engine.get_jaccard_similarity("ET", "DE") == 1.0
    assert engine.get_jaccard_similarity("ROY", "ET") == 0.0


@pytest.mark.parametrize(
    "first,second",
    [
        ("ACME ET FILS INC", "ACME & FILS INC"),
        ("BOULANGERIE ROY", "BOULANGERIE ROY INC"),
        ("TRANSPORT GAGNON", "TRANSPORTS GAGNON LTÉE"),
        ("1234-5678 QUÉBEC INC", "1234-5678 QUEBEC INC"),
    ],
)
def test_score_is_symmetric(engine, first, second):
    assert engine.match(first, second).score == pytest.approx(engine.match(second, first).score)


# City bonus

def test_city_bonus(engine):
    assert engine.get_city_bonus("Laval", "LAVAL") == 0.05
    assert engine.get_city_bonus("Saint-Jean", "SAINT-JEAN-SUR-RICHELIEU") == 0.03
    assert engine.get_city_bonus("Laval", "Longueuil") == 0.0
    assert engine.get_city_bonus(None, "Laval") == 0.0
    assert engine.get_city_bonus("--", "Laval") == 0.0


def test_city_bonus_lifts_fuzzy_score(engine, monkeypatch):
    monkeypatch.setattr(engine, "get_fuzzy_score", lambda search, candidate: 0.85)

    without_city = engine.match("ALPHA", "OMEGA")
    assert without_city.method == MatchMethod.NONE

    with_city = engine.match("ALPHA", "OMEGA", hint_city="Laval", candidate_city="LAVAL")
    assert with_city.method == MatchMethod.FUZZY
    assert with_city.score == pytest.approx(0.90)


def test_city_bonus_capped(engine, monkeypatch):
    monkeypatch.setattr(engine, "get_fuzzy_score", lambda search, candidate: 0.98)
    result = engine.match("ALPHA", "OMEGA", hint_city="Laval", candidate_city="Laval")
    assert result.score == 1.0


# Degenerate input

@pytest.mark.parametrize(
    "search,candidate",
    [("", "ACME"), ("ACME", ""), (None, "ACME"), ("!!!", "ACME"), ("ACME", "--")],
)
def test_empty_input(engine, search, candidate):
    assert engine.match(search, candidate) == MatchResult(0.0, MatchMethod.NONE)


def test_normalize_for_matching(engine):
    assert engine.normalize_for_matching("Roy & Fils, s.e.n.c.") == "ROY FILS S E N C"
    assert engine.normalize_for_matching("Érablière Côté") == "ÉRABLIÈRE CÔTÉ"
    assert engine.normalize_for_matching(None) == ""


def test_module_level_match():
    assert match("ACME LTÉE", "ACME LTEE").method == MatchMethod.EXACT
    assert match("ACME ET FILS INC", "ACME & FILS INC", strict_mode=True).method == MatchMethod.NONE


# Configuration

def test_default_thresholds():
    assert MatchingConfig().fuzzy_threshold == 0.88
    assert MatchingConfig(strict_mode=True).fuzzy_threshold == 0.95
    assert MatchingConfig(fuzzy_threshold=0.9).fuzzy_threshold == 0.9


def test_invalid_config():
    with pytest.raises(ValueError):
        MatchingConfig(prefix_threshold=1.5)
    with pytest.raises(ValueError):
        MatchingConfig(levenshtein_weight=-0.1)
    with pytest.raises(ValueError):
        MatchingConfig(min_token_length=0)


def test_engine_uses_config_strict_mode():
    engine = MatchingEngine(config=MatchingConfig(strict_mode=True))
    assert engine.strict_mode
