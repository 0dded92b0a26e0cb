"""
Company name matching strategies.

Scores a search name against one candidate name with an ordered cascade:

1. Exact - identical after punctuation/accent removal, or same numbered company
2. Prefix - one name starts the other, or the leading tokens line up
3. Fuzzy - Levenshtein similarity blended with token Jaccard (not in strict mode)

The first stage that produces a usable score decides the method. The engine
never raises: "no match" is a MatchResult with method NONE and a score that
callers can still rank.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from rapidfuzz.distance import Levenshtein

from processing.entity_resolution.normalizer import NUMBERED_COMPANY, strip_accents

# Letters kept by the matching normalization besides A-Z and 0-9
ACCENTED_LETTERS = "ÀÂÄÈÉÊËÏÎÔÙÛÜŸÇŒÆ"


class MatchMethod(Enum):
    """Cascade stage that produced the score."""
    EXACT = "exact"
    PREFIX = "prefix"
    FUZZY = "fuzzy"
    NONE = "none"


@dataclass(frozen=True)
class MatchResult:
    """Result of scoring one (search, candidate) pair."""
    score: float = 0.0
    method: MatchMethod = MatchMethod.NONE

    @property
    def is_match(self) -> bool:
        return self.method != MatchMethod.NONE

    def __repr__(self) -> str:
        return f"<MatchResult({self.method.value}, score={self.score:.3f})>"


@dataclass
class MatchingConfig:
    """Configuration for the matching engine."""
    # Strict mode never falls through to fuzzy scoring
    strict_mode: bool = False

    # Minimum prefix/token-alignment score to classify as "prefix"
    prefix_threshold: float = 0.95

    # Minimum fuzzy score to classify as "fuzzy" (default depends on strict_mode)
    fuzzy_threshold: Optional[float] = None

    # Share of the fuzzy score taken by Levenshtein (the rest is Jaccard)
    levenshtein_weight: float = 0.5

    # Tokens shorter than this are ignored by the Jaccard similarity
    min_token_length: int = 3

    # Locality bonus when the hint city and candidate city agree
    city_exact_bonus: float = 0.05
    city_prefix_bonus: float = 0.03

    def __post_init__(self):
        if self.fuzzy_threshold is None:
            self.fuzzy_threshold = 0.95 if self.strict_mode else 0.88

        for name in (
            "prefix_threshold",
            "fuzzy_threshold",
            "levenshtein_weight",
            "city_exact_bonus",
            "city_prefix_bonus",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {value}")

        if self.min_token_length < 1:
            raise ValueError(f"min_token_length must be positive, got {self.min_token_length}")


class MatchingEngine:
    """
    Scores company names against registry candidates.

    Stateless after construction: results depend only on the call arguments
    and the configuration, so one engine can be shared across threads.

    Usage:
        engine = MatchingEngine(strict_mode=False)
        result = engine.match("ACME LTÉE", "ACME LTEE", hint_city="LAVAL", candidate_city="Laval")
        if result.is_match:
            ...
    """

    EXACT_SCORE = 1.0

    def __init__(self, strict_mode: bool = False, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig(strict_mode=strict_mode)
        self.strict_mode = self.config.strict_mode

        self._outside_alphabet = re.compile(f"[^A-Z0-9{ACCENTED_LETTERS}]")
        self._numbered = re.compile(NUMBERED_COMPANY)

    def match(
        self,
        search_name: Optional[str],
        candidate_name: Optional[str],
        hint_city: Optional[str] = None,
        candidate_city: Optional[str] = None,
    ) -> MatchResult:
        """
        Score a candidate name against the search name.

        Args:
            search_name: Name being looked up
            candidate_name: Name of the registry record
            hint_city: Optional city of the searched company
            candidate_city: Optional city of the registry record

        Returns:
            MatchResult with score in [0, 1] and the deciding method
        """
        if not search_name or not candidate_name:
            return MatchResult()

        search = self.normalize_for_matching(search_name)
        candidate = self.normalize_for_matching(candidate_name)

        # Nothing but punctuation on one side
        if not search or not candidate:
            return MatchResult()

        if self.is_exact_match(search, candidate):
            return MatchResult(self.EXACT_SCORE, MatchMethod.EXACT)

        prefix_score = self.get_prefix_score(search, candidate)
        if prefix_score >= self.config.prefix_threshold:
            return MatchResult(prefix_score, MatchMethod.PREFIX)

        if self.strict_mode:
            return MatchResult(prefix_score, MatchMethod.NONE)

        score = self.get_fuzzy_score(search, candidate)

        if hint_city and candidate_city:
            score = min(1.0, score + self.get_city_bonus(hint_city, candidate_city))

        if score >= self.config.fuzzy_threshold:
            return MatchResult(score, MatchMethod.FUZZY)

        return MatchResult(score, MatchMethod.NONE)

    def normalize_for_matching(self, text: Optional[str]) -> str:
        """
        Stricter normalization used only for scoring.

        - Uppercase
        - Every character outside A-Z, 0-9 and the accented set becomes a space
        - Whitespace collapsed and trimmed
        """
        if not text:
            return ""
        text = self._outside_alphabet.sub(" ", text.upper())
        return re.sub(r"\s+", " ", text).strip()

    def is_exact_match(self, search: str, candidate: str) -> bool:
        """Identical, identical without accents, or the same numbered company."""
        if search == candidate:
            return True

        if strip_accents(search) == strip_accents(candidate):
            return True

        # Numbered companies are identified by number, not by the
        # jurisdiction/legal-form words around it
        search_number = self._numbered.search(search)
        candidate_number = self._numbered.search(candidate)
        if search_number and candidate_number:
            return search_number.groups() == candidate_number.groups()

        return False

    def get_prefix_score(self, search: str, candidate: str) -> float:
        """
        Prefix / token-alignment score.

        If one string starts the other, the score is 0.95 plus up to 0.05 for
        similar lengths. Otherwise tokens are compared position by position
        (1.0 identical, 0.8 when one is a prefix of the other) and the walk
        stops at the first pair that diverges.
        """
        if search.startswith(candidate) or candidate.startswith(search):
            shorter, longer = sorted((len(search), len(candidate)))
            return 0.95 + 0.05 * (shorter / longer)

        search_tokens = search.split()
        candidate_tokens = candidate.split()
        total_tokens = max(len(search_tokens), len(candidate_tokens))
        if total_tokens == 0:
            return 0.0

        matched_tokens = 0.0
        for search_token, candidate_token in zip(search_tokens, candidate_tokens):
            if search_token == candidate_token:
                matched_tokens += 1.0
            elif search_token.startswith(candidate_token) or candidate_token.startswith(search_token):
                matched_tokens += 0.8
            else:
                break

        return matched_tokens / total_tokens

    def get_fuzzy_score(self, search: str, candidate: str) -> float:
        """
        Weighted blend of Levenshtein similarity and token Jaccard similarity,
        computed on accent-stripped strings.
        """
        search = strip_accents(search)
        candidate = strip_accents(candidate)

        max_len = max(len(search), len(candidate))
        if max_len == 0:
            levenshtein_score = 1.0
        else:
            levenshtein_score = 1 - (Levenshtein.distance(search, candidate) / max_len)

        jaccard_score = self.get_jaccard_similarity(search, candidate)

        weight = self.config.levenshtein_weight
        score = (levenshtein_score * weight) + (jaccard_score * (1 - weight))

        return min(1.0, score)

    def get_jaccard_similarity(self, first: str, second: str) -> float:
        """Jaccard index over sets of significant tokens (short tokens ignored)."""
        min_length = self.config.min_token_length
        tokens1 = {t for t in first.split() if len(t) >= min_length}
        tokens2 = {t for t in second.split() if len(t) >= min_length}

        if not tokens1 and not tokens2:
            return 1.0
        if not tokens1 or not tokens2:
            return 0.0

        return len(tokens1 & tokens2) / len(tokens1 | tokens2)

    def get_city_bonus(self, hint_city: Optional[str], candidate_city: Optional[str]) -> float:
        """Bonus for identically named companies in the searched city."""
        hint = self.normalize_for_matching(hint_city)
        candidate = self.normalize_for_matching(candidate_city)

        if not hint or not candidate:
            return 0.0
        if hint == candidate:
            return self.config.city_exact_bonus
        if hint.startswith(candidate) or candidate.startswith(hint):
            return self.config.city_prefix_bonus

        return 0.0


_engines = {
    False: MatchingEngine(strict_mode=False),
    True: MatchingEngine(strict_mode=True),
}


def match(
    search_name: Optional[str],
    candidate_name: Optional[str],
    hint_city: Optional[str] = None,
    candidate_city: Optional[str] = None,
    strict_mode: bool = False,
) -> MatchResult:
    return _engines[strict_mode].match(search_name, candidate_name, hint_city, candidate_city)
