"""
Company Resolver

Looks up input companies in the registries and decides on a match:

1. Normalize the input name
2. Public bodies (municipalities, universities, ...) short-circuit: they are
   never in a commercial registry
3. Search the primary registry with every name variation
4. If the best primary score is below the gate, also search the secondary
   registry
5. Apply the decision policy over all candidates
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

from config.logging import logger
from config.settings import settings
from processing.entity_resolution.decision import Decision, DecisionPolicy, ScoredCandidate
from processing.entity_resolution.matchers import MatchingEngine, MatchMethod, MatchResult
from processing.entity_resolution.normalizer import CompanyNormalizer
from processing.entity_resolution.records import CandidateRecord, CompanyInput
from processing.models import DecisionStatus, RecordSource
from scrapers.base import DataSource, DataSourceError


@dataclass
class ResolverConfig:
    """Configuration for company resolution."""
    # Below this best score, the secondary registry is searched too
    secondary_gate: float = 0.88

    # Accept public bodies without searching any registry
    short_circuit_public_bodies: bool = True

    # Concurrent lookups in resolve_many
    max_concurrency: int = 1

    def __post_init__(self):
        if not 0.0 <= self.secondary_gate <= 1.0:
            raise ValueError(f"secondary_gate must be between 0 and 1, got {self.secondary_gate}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {self.max_concurrency}")


@dataclass(frozen=True)
class LookupOutcome:
    """Terminal result of looking up one company."""
    company: CompanyInput
    normalized_name: str
    decision: Decision
    variations: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()
    elapsed_seconds: float = 0.0

    @property
    def company_name(self) -> str:
        return self.company.name

    @property
    def status(self) -> DecisionStatus:
        return self.decision.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "company_name": self.company.name,
            "city": self.company.city,
            "row_index": self.company.row_index,
            "normalized_name": self.normalized_name,
            "variations": list(self.variations),
            "sources": list(self.sources),
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            **self.decision.to_dict(),
        }


class CompanyResolver:
    """
    Resolves company names against a primary and an optional secondary registry.

    Usage:
        resolver = CompanyResolver(primary, secondary)
        outcome = resolver.resolve("Acme Ltée", city="Sherbrooke")
        if outcome.decision.is_match:
            record = outcome.decision.candidate.record

        outcomes = asyncio.run(resolver.resolve_many(companies))
    """

    def __init__(
        self,
        primary: DataSource,
        secondary: Optional[DataSource] = None,
        normalizer: Optional[CompanyNormalizer] = None,
        engine: Optional[MatchingEngine] = None,
        policy: Optional[DecisionPolicy] = None,
        config: Optional[ResolverConfig] = None,
    ):
        self.primary = primary
        self.secondary = secondary
        self.config = config or ResolverConfig(max_concurrency=settings.MAX_CONCURRENCY)
        self.normalizer = normalizer or CompanyNormalizer()
        if policy is not None:
            self.policy = policy
            self.engine = policy.engine
        else:
            self.engine = engine or MatchingEngine(strict_mode=settings.STRICT_MATCHING)
            self.policy = DecisionPolicy(self.engine)

    def resolve(
        self,
        company: Union[str, CompanyInput],
        city: Optional[str] = None,
    ) -> LookupOutcome:
        """
        Look up one company.

        Args:
            company: Company name, or a CompanyInput
            city: City hint when a bare name is given

        Returns:
            LookupOutcome with the terminal decision
        """
        if isinstance(company, str):
            company = CompanyInput(name=company, city=city)

        start = time.monotonic()
        normalized = self.normalizer.normalize(company.name)

        def outcome(decision: Decision, variations=(), sources=()) -> LookupOutcome:
            return LookupOutcome(
                company=company,
                normalized_name=normalized,
                decision=decision,
                variations=tuple(variations),
                sources=tuple(sources),
                elapsed_seconds=time.monotonic() - start,
            )

        if not normalized:
            logger.warning(f"Empty company name (row {company.row_index})")
            return outcome(Decision.not_found())

        if self.config.short_circuit_public_bodies and self.normalizer.is_public_body(normalized):
            logger.info(f"Public body, not searched: {normalized}")
            record = CandidateRecord(
                name=normalized,
                city=company.city,
                source=RecordSource.PUBLIC_BODY,
            )
            candidate = ScoredCandidate(record, MatchResult(1.0, MatchMethod.EXACT))
            return outcome(Decision.matched(candidate, confidence=1.0), sources=[RecordSource.PUBLIC_BODY.value])

        variations = self.normalizer.generate_variations(normalized)
        sources = [self.primary.name]
        seen: set[tuple] = set()

        try:
            records = self._gather(self.primary, variations, seen)
        except DataSourceError as e:
            logger.error(f"Lookup failed for '{company.name}': {e}")
            return outcome(Decision.error(str(e)), variations, sources)

        scored = self.policy.score_candidates(normalized, records, company.city)
        best = DecisionPolicy.best(scored)

        if self.secondary is not None and (best is None or best.score < self.config.secondary_gate):
            best_score = best.score if best else 0.0
            logger.info(
                f"Best {self.primary.name} score {best_score:.2f} below "
                f"{self.config.secondary_gate:.2f} for '{normalized}', trying {self.secondary.name}"
            )
            sources.append(self.secondary.name)
            try:
                secondary_records = self._gather(self.secondary, variations, seen)
                scored.extend(
                    self.policy.score_candidates(normalized, secondary_records, company.city)
                )
            except DataSourceError as e:
                logger.warning(f"{self.secondary.name} unavailable for '{normalized}': {e}")

        decision = self.policy.decide(scored)
        self._log_decision(normalized, decision, len(scored))

        return outcome(decision, variations, sources)

    async def resolve_many(
        self,
        companies: Sequence[Union[str, CompanyInput]],
        concurrency: Optional[int] = None,
    ) -> list[LookupOutcome]:
        """
        Resolve companies concurrently, returning outcomes in input order.

        Each lookup runs in a worker thread; at most `concurrency` run at once.
        """
        limit = concurrency or self.config.max_concurrency
        semaphore = asyncio.Semaphore(limit)
        total = len(companies)

        logger.info(f"Resolving {total} companies (concurrency: {limit})")

        async def run(index: int, company: Union[str, CompanyInput]) -> LookupOutcome:
            async with semaphore:
                name = company if isinstance(company, str) else company.name
                logger.info(f"[{index}/{total}] {name}")
                return await asyncio.to_thread(self.resolve, company)

        results = await asyncio.gather(
            *(run(i, company) for i, company in enumerate(companies, 1))
        )
        return list(results)

    def close(self):
        self.primary.close()
        if self.secondary is not None:
            self.secondary.close()

    def _gather(
        self,
        source: DataSource,
        variations: Sequence[str],
        seen: set[tuple],
    ) -> list[CandidateRecord]:
        """Search every variation; keep the first copy of each record."""
        records = []
        for variation in variations:
            for record in source.search(variation):
                key = self._record_key(record)
                if key in seen:
                    continue
                seen.add(key)
                records.append(record)

        logger.debug(f"{source.name}: {len(records)} distinct records for {len(variations)} variations")
        return records

    def _record_key(self, record: CandidateRecord) -> tuple:
        if record.identifier:
            return (record.source, record.identifier)
        return (record.source, self.engine.normalize_for_matching(record.name))

    @staticmethod
    def _log_decision(name: str, decision: Decision, candidate_count: int):
        if decision.status == DecisionStatus.MATCHED:
            logger.info(
                f"Matched '{name}' -> '{decision.candidate.record.name}' "
                f"({decision.candidate.result.method.value}, conf={decision.confidence:.2f})"
            )
        elif decision.status == DecisionStatus.AMBIGUOUS:
            top = ", ".join(f"{c.record.name} ({c.score:.2f})" for c in decision.top_candidates)
            logger.info(f"Ambiguous '{name}' among {candidate_count} candidates: {top}")
        else:
            logger.info(f"No registry candidates for '{name}'")
