"""
Selection and decision policy.

Given every candidate gathered for one company, pick a terminal outcome:

- no candidates                  -> NOT_FOUND
- exactly one candidate          -> MATCHED, confidence 1.0
- best > 0.8 and clearly ahead   -> MATCHED, confidence = best score
- anything else                  -> AMBIGUOUS with the top candidates

"Confident" means decisively better than the runner-up, not merely above an
absolute bar. Ambiguous outcomes are left for human review.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from processing.entity_resolution.matchers import MatchingEngine, MatchResult
from processing.entity_resolution.records import CandidateRecord
from processing.models import DecisionStatus


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate record with its match result."""
    record: CandidateRecord
    result: MatchResult

    @property
    def score(self) -> float:
        return self.result.score

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data["score"] = round(self.result.score, 4)
        data["method"] = self.result.method.value
        return data


@dataclass(frozen=True)
class Decision:
    """
    Terminal outcome for one company.

    Build with Decision.matched / ambiguous / not_found / error.
    """
    status: DecisionStatus
    candidate: Optional[ScoredCandidate] = None
    confidence: float = 0.0
    top_candidates: tuple[ScoredCandidate, ...] = ()
    reason: Optional[str] = None

    @classmethod
    def matched(
        cls,
        candidate: ScoredCandidate,
        confidence: float,
        top_candidates: Iterable[ScoredCandidate] = (),
    ) -> "Decision":
        return cls(
            status=DecisionStatus.MATCHED,
            candidate=candidate,
            confidence=confidence,
            top_candidates=tuple(top_candidates),
        )

    @classmethod
    def ambiguous(cls, top_candidates: Iterable[ScoredCandidate]) -> "Decision":
        return cls(status=DecisionStatus.AMBIGUOUS, top_candidates=tuple(top_candidates))

    @classmethod
    def not_found(cls) -> "Decision":
        return cls(status=DecisionStatus.NOT_FOUND)

    @classmethod
    def error(cls, reason: str) -> "Decision":
        return cls(status=DecisionStatus.ERROR, reason=reason)

    @property
    def is_match(self) -> bool:
        return self.status == DecisionStatus.MATCHED

    @property
    def ranked_candidates(self) -> tuple[ScoredCandidate, ...]:
        if self.top_candidates:
            return self.top_candidates
        if self.candidate is not None:
            return (self.candidate,)
        return ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "confidence": round(self.confidence, 4),
            "candidate": self.candidate.to_dict() if self.candidate else None,
            "top_candidates": [c.to_dict() for c in self.top_candidates],
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        if self.candidate:
            return f"<Decision({self.status.value}, {self.candidate.record.name}, conf={self.confidence:.2f})>"
        return f"<Decision({self.status.value}, {len(self.top_candidates)} candidates)>"


@dataclass
class DecisionConfig:
    """Thresholds for accepting a best candidate."""
    # Best score must be strictly above this
    min_confident_score: float = 0.8

    # Best score must beat the runner-up by strictly more than this
    min_score_gap: float = 0.2

    # Candidates reported with an ambiguous (or matched) decision
    max_ambiguous_candidates: int = 5

    def __post_init__(self):
        if not 0.0 <= self.min_confident_score <= 1.0:
            raise ValueError(f"min_confident_score must be between 0 and 1, got {self.min_confident_score}")
        if not 0.0 <= self.min_score_gap <= 1.0:
            raise ValueError(f"min_score_gap must be between 0 and 1, got {self.min_score_gap}")
        if self.max_ambiguous_candidates < 1:
            raise ValueError("max_ambiguous_candidates must be at least 1")


class DecisionPolicy:
    """
    Scores candidates and turns them into a Decision.

    Usage:
        policy = DecisionPolicy(MatchingEngine())
        decision = policy.select("ACME LTÉE", records, hint_city="Laval")
    """

    def __init__(
        self,
        engine: Optional[MatchingEngine] = None,
        config: Optional[DecisionConfig] = None,
    ):
        self.engine = engine or MatchingEngine()
        self.config = config or DecisionConfig()

    def score_candidates(
        self,
        search_name: str,
        records: Iterable[CandidateRecord],
        hint_city: Optional[str] = None,
    ) -> list[ScoredCandidate]:
        """Score records in the order given."""
        return [
            ScoredCandidate(
                record=record,
                result=self.engine.match(search_name, record.name, hint_city, record.city),
            )
            for record in records
        ]

    def select(
        self,
        search_name: str,
        records: Iterable[CandidateRecord],
        hint_city: Optional[str] = None,
    ) -> Decision:
        return self.decide(self.score_candidates(search_name, records, hint_city))

    def decide(self, scored: Sequence[ScoredCandidate]) -> Decision:
        if not scored:
            return Decision.not_found()

        # A lone search result is taken as the match whatever its score.
        # Kept as is: a single low-similarity result arguably deserves review.
        if len(scored) == 1:
            return Decision.matched(scored[0], confidence=1.0)

        # Stable sort: equal scores keep first-seen order
        ranked = sorted(scored, key=lambda c: c.score, reverse=True)
        best, second = ranked[0], ranked[1]
        top = ranked[: self.config.max_ambiguous_candidates]

        if (
            best.score > self.config.min_confident_score
            and best.score - second.score > self.config.min_score_gap
        ):
            return Decision.matched(best, confidence=best.score, top_candidates=top)

        return Decision.ambiguous(top)

    @staticmethod
    def best(scored: Iterable[ScoredCandidate]) -> Optional[ScoredCandidate]:
        """Highest-scoring candidate; ties go to the first seen."""
        best = None
        for candidate in scored:
            if best is None or candidate.score > best.score:
                best = candidate
        return best
