#!/usr/bin/env python3
"""
Tests for the registry lookup waterfall.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from processing.entity_resolution.matchers import MatchingEngine, MatchMethod
from processing.entity_resolution.records import CandidateRecord, CompanyInput
from processing.entity_resolution.resolver import CompanyResolver, ResolverConfig
from processing.models import DecisionStatus, RecordSource
from scrapers.base import DataSource, DataSourceError, StaticDataSource


class FixedSource(DataSource):
    """Returns the same records for every query."""

    def __init__(self, records, name="fixed", source=RecordSource.REGISTRY_PRIMARY):
        self.records = list(records)
        self.name = name
        self.source = source
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        return list(self.records)


class FailingSource(DataSource):
    def __init__(self, name="failing", source=RecordSource.REGISTRY_PRIMARY):
        self.name = name
        self.source = source

    def search(self, query):
        raise DataSourceError(f"{self.name} blocked the request")


PRIMARY_RECORDS = [
    CandidateRecord(name="ACME LTÉE", identifier="1140000001", city="LAVAL", status="Immatriculée"),
    CandidateRecord(name="9123-4567 QUÉBEC INC", identifier="1140000002", city="SHERBROOKE"),
    CandidateRecord(name="ROY INC", identifier="1140000003"),
    CandidateRecord(name="ROY LTÉE", identifier="1140000004"),
]

SECONDARY_RECORDS = [
    CandidateRecord(name="BOULANGERIE ROY INC", identifier="123456-7", city="QUÉBEC"),
]


@pytest.fixture
def primary():
    return StaticDataSource(PRIMARY_RECORDS, name="primary", source=RecordSource.REGISTRY_PRIMARY)


@pytest.fixture
def secondary():
    return StaticDataSource(SECONDARY_RECORDS, name="secondary", source=RecordSource.REGISTRY_SECONDARY)


@pytest.fixture
def resolver(primary, secondary):
    return CompanyResolver(primary, secondary, engine=MatchingEngine())


def test_primary_match(resolver, secondary):
    outcome = resolver.resolve("Acme Ltee")

    assert outcome.normalized_name == "ACME LTÉE"
    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.candidate.record.identifier == "1140000001"
    assert outcome.decision.candidate.record.source == RecordSource.REGISTRY_PRIMARY
    assert outcome.variations[0] == "ACME LTÉE"
    assert outcome.sources == ("primary",)
    assert secondary.queries == [], "Secondary registry should not be searched"


def test_numbered_company(resolver):
    outcome = resolver.resolve("9123-4567 Quebec inc.")
    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.candidate.record.identifier == "1140000002"
    assert outcome.decision.candidate.result.method == MatchMethod.EXACT


def test_secondary_used_when_primary_weak(resolver, primary, secondary):
    outcome = resolver.resolve(CompanyInput(name="Boulangerie Roy", city="Québec"))

    assert primary.queries, "Primary registry is always searched first"
    assert secondary.queries, "Secondary registry should be searched"
    assert outcome.sources == ("primary", "secondary")
    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.candidate.record.source == RecordSource.REGISTRY_SECONDARY


def test_ambiguous(resolver):
    outcome = resolver.resolve("Roy")

    assert outcome.status == DecisionStatus.AMBIGUOUS
    names = [c.record.name for c in outcome.decision.top_candidates]
    assert names == ["ROY INC", "ROY LTÉE"]


def test_not_found(primary, secondary):
    resolver = CompanyResolver(primary, secondary)
    outcome = resolver.resolve("Transport Gagnon")
    assert outcome.status == DecisionStatus.NOT_FOUND
    assert outcome.sources == ("primary", "secondary")


def test_public_body_not_searched(resolver, primary, secondary):
    outcome = resolver.resolve("Ville de Montréal")

    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.confidence == 1.0
    assert outcome.decision.candidate.record.source == RecordSource.PUBLIC_BODY
    assert outcome.sources == ("public_body",)
    assert primary.queries == []
    assert secondary.queries == []


def test_public_bodies_searched_when_short_circuit_disabled(primary):
    resolver = CompanyResolver(primary, config=ResolverConfig(short_circuit_public_bodies=False))
    outcome = resolver.resolve("Ville de Montréal")
    assert primary.queries
    assert outcome.status == DecisionStatus.NOT_FOUND


def test_empty_name(resolver, primary):
    outcome = resolver.resolve("   ")
    assert outcome.status == DecisionStatus.NOT_FOUND
    assert primary.queries == []


def test_longer_number_does_not_find_numbered_company():
    primary = StaticDataSource([CandidateRecord(name="2345-6789 QUÉBEC INC", identifier="1140000009")])
    resolver = CompanyResolver(primary)

    outcome = resolver.resolve("12345-6789 Québec inc")

    assert primary.queries == ["12345-6789 QUÉBEC INC", "12345-6789 QUEBEC INC"]
    assert outcome.status == DecisionStatus.NOT_FOUND, "A different company must not be matched"


def test_primary_failure_is_error():
    resolver = CompanyResolver(FailingSource())
    outcome = resolver.resolve("Acme Ltée")
    assert outcome.status == DecisionStatus.ERROR
    assert "blocked" in outcome.decision.reason


def test_secondary_failure_tolerated(primary):
    resolver = CompanyResolver(primary, FailingSource(name="secondary"))
    outcome = resolver.resolve("Transport Gagnon")
    assert outcome.status == DecisionStatus.NOT_FOUND

    outcome = resolver.resolve("Roy")
    assert outcome.status == DecisionStatus.AMBIGUOUS


def test_duplicate_records_collapsed():
    record = CandidateRecord(name="ACME LTÉE", identifier="1140000001")
    source = FixedSource([record, record])
    resolver = CompanyResolver(source)

    outcome = resolver.resolve("Acme Ltée")

    assert len(source.queries) == len(outcome.variations) > 1
    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.confidence == 1.0, "A single distinct record is taken as the match"


def test_records_without_identifier_deduplicated_by_name():
    source = FixedSource([
        CandidateRecord(name="Acme Ltée"),
        CandidateRecord(name="ACME LTÉE."),
    ])
    resolver = CompanyResolver(source)
    outcome = resolver.resolve("Acme Ltée")
    assert outcome.status == DecisionStatus.MATCHED
    assert outcome.decision.candidate.record.name == "Acme Ltée"


def test_strict_resolver():
    source = FixedSource([CandidateRecord(name="ACME & FILS INC", identifier="1"),
                          CandidateRecord(name="ACME ET FILLES INC", identifier="2")])
    resolver = CompanyResolver(source, engine=MatchingEngine(strict_mode=True))
    outcome = resolver.resolve("Acme et Fils inc")
    assert outcome.status == DecisionStatus.AMBIGUOUS
    assert all(c.result.method == MatchMethod.NONE for c in outcome.decision.top_candidates)


def test_resolve_many_keeps_input_order(resolver):
    companies = [
        CompanyInput(name="Acme Ltee", row_index=1),
        CompanyInput(name="Ville de Laval", row_index=2),
        CompanyInput(name="Transport Gagnon", row_index=3),
        "Roy",
    ]

    outcomes = asyncio.run(resolver.resolve_many(companies, concurrency=3))

    assert [o.company_name for o in outcomes] == ["Acme Ltee", "Ville de Laval", "Transport Gagnon", "Roy"]
    assert [o.status for o in outcomes] == [
        DecisionStatus.MATCHED,
        DecisionStatus.MATCHED,
        DecisionStatus.NOT_FOUND,
        DecisionStatus.AMBIGUOUS,
    ]


def test_outcome_to_dict(resolver):
    data = resolver.resolve(CompanyInput(name="Acme Ltee", city="Laval", row_index=7)).to_dict()
    assert data["company_name"] == "Acme Ltee"
    assert data["city"] == "Laval"
    assert data["row_index"] == 7
    assert data["status"] == "matched"
    assert data["candidate"]["identifier"] == "1140000001"
    assert data["candidate"]["source"] == "registry_primary"


def test_invalid_config():
    with pytest.raises(ValueError):
        ResolverConfig(secondary_gate=1.2)
    with pytest.raises(ValueError):
        ResolverConfig(max_concurrency=0)
