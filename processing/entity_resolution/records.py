"""
Value types passed between the data sources, the matcher and the resolver.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from processing.models import RecordSource


def _names(values: Optional[Iterable[str]]) -> tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = values.split(";")
    return tuple(str(v).strip() for v in values if v is not None and str(v).strip())


@dataclass(frozen=True)
class CandidateRecord:
    """
    A registry entry returned by a data source.

    shareholders, administrators and beneficiaries (ultimate beneficiaries)
    hold person or company names as listed by the registry, empty when the
    registry did not return ownership data.
    """
    name: str
    identifier: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    status: Optional[str] = None
    source: RecordSource = RecordSource.REGISTRY_PRIMARY
    shareholders: tuple[str, ...] = ()
    administrators: tuple[str, ...] = ()
    beneficiaries: tuple[str, ...] = ()

    @property
    def has_ownership(self) -> bool:
        return bool(self.shareholders or self.administrators or self.beneficiaries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "identifier": self.identifier,
            "address": self.address,
            "city": self.city,
            "status": self.status,
            "source": self.source.value,
            "shareholders": list(self.shareholders),
            "administrators": list(self.administrators),
            "beneficiaries": list(self.beneficiaries),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateRecord":
        source = data.get("source") or RecordSource.REGISTRY_PRIMARY.value
        return cls(
            name=data["name"],
            identifier=data.get("identifier"),
            address=data.get("address"),
            city=data.get("city"),
            status=data.get("status"),
            source=RecordSource(source),
            shareholders=_names(data.get("shareholders")),
            administrators=_names(data.get("administrators")),
            beneficiaries=_names(data.get("beneficiaries")),
        )


@dataclass(frozen=True)
class CompanyInput:
    """A company name to look up, with an optional city hint."""
    name: str
    city: Optional[str] = None
    row_index: int = 0
