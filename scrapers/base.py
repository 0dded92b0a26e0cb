"""
Data source interface for registry searches.

A data source turns one query string into candidate records. It may hit a
live registry, a cache, or an in-memory fixture; the resolver does not care.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Union

from config.logging import logger
from processing.entity_resolution.records import CandidateRecord
from processing.models import RecordSource


class DataSourceError(Exception):
    """A registry search could not be completed (network, decoding, blocking)."""


class DataSource(ABC):
    """Searches one registry for company names."""

    name: str = "source"
    source: RecordSource = RecordSource.REGISTRY_PRIMARY

    @abstractmethod
    def search(self, query: str) -> list[CandidateRecord]:
        """
        Search the registry.

        Raises:
            DataSourceError: if the search could not be completed
        """

    def close(self):
        """Release any held resources."""


class StaticDataSource(DataSource):
    """
    In-memory registry.

    Search is an upper-case substring match on record names, like the
    registry's own name search.
    """

    def __init__(
        self,
        records: Iterable[CandidateRecord],
        name: str = "static",
        source: RecordSource = RecordSource.REGISTRY_PRIMARY,
    ):
        self.name = name
        self.source = source
        self.records = [
            r if r.source == source else replace(r, source=source)
            for r in records
        ]
        self.queries: list[str] = []

    @classmethod
    def from_json(
        cls,
        path: Union[str, Path],
        name: str = "fixtures",
        source: RecordSource = RecordSource.REGISTRY_PRIMARY,
    ) -> "StaticDataSource":
        """
        Load records from a JSON file: either a list of records, or an object
        with "primary"/"secondary" lists.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, dict):
            key = "secondary" if source == RecordSource.REGISTRY_SECONDARY else "primary"
            data = data.get(key, [])

        records = [CandidateRecord.from_dict({**row, "source": source.value}) for row in data]
        logger.info(f"Loaded {len(records)} {source.value} records from {path}")
        return cls(records, name=name, source=source)

    def search(self, query: str) -> list[CandidateRecord]:
        self.queries.append(query)
        needle = (query or "").strip().upper()
        if not needle:
            return []
        return [r for r in self.records if needle in r.name.upper()]
