"""
Registry Match - Database Models

SQLAlchemy ORM models and the enums shared with the matching core.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, Index, Numeric, String, Text, func
from sqlalchemy.dialects.sqlite import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

if TYPE_CHECKING:
    from processing.entity_resolution.resolver import LookupOutcome


class Base(DeclarativeBase):
    pass


# Enums
class RecordSource(PyEnum):
    """Where a candidate record came from."""
    REGISTRY_PRIMARY = "registry_primary"      # Provincial enterprise registry
    REGISTRY_SECONDARY = "registry_secondary"  # Federal corporations registry
    PUBLIC_BODY = "public_body"                # Institutional entity, never searched


class DecisionStatus(PyEnum):
    MATCHED = "matched"
    AMBIGUOUS = "ambiguous"
    NOT_FOUND = "not_found"
    ERROR = "error"


def generate_uuid() -> str:
    return str(uuid.uuid4())


class CompanyLookup(Base):
    """
    One resolved input company.

    Stores the terminal decision of a lookup along with the matched
    registry record (if any) and the ranked candidates that were considered.
    """

    __tablename__ = "company_lookups"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    company_name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    normalized_name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[DecisionStatus] = mapped_column(
        Enum(DecisionStatus), nullable=False, index=True
    )
    confidence: Mapped[Optional[Decimal]] = mapped_column(Numeric(5, 4))

    # Matched record
    matched_name: Mapped[Optional[str]] = mapped_column(Text)
    identifier: Mapped[Optional[str]] = mapped_column(String(20), index=True)
    address: Mapped[Optional[str]] = mapped_column(Text)
    city: Mapped[Optional[str]] = mapped_column(Text)
    registry_status: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[Optional[RecordSource]] = mapped_column(Enum(RecordSource))
    method: Mapped[Optional[str]] = mapped_column(String(10))

    # Ownership of the matched record
    shareholders: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    administrators: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    beneficiaries: Mapped[Optional[list]] = mapped_column(JSON, default=list)

    # Ranked candidates (matched or ambiguous) and variations searched
    candidates: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    variations: Mapped[Optional[list]] = mapped_column(JSON, default=list)
    error: Mapped[Optional[str]] = mapped_column(Text)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        Index("ix_company_lookups_status_created", "status", "created_at"),
    )

    @classmethod
    def from_outcome(cls, outcome: "LookupOutcome") -> "CompanyLookup":
        """Build a row from a resolver outcome."""
        decision = outcome.decision
        lookup = cls(
            company_name=outcome.company_name,
            normalized_name=outcome.normalized_name,
            status=decision.status,
            confidence=(
                Decimal(str(round(decision.confidence, 4)))
                if decision.status == DecisionStatus.MATCHED
                else None
            ),
            candidates=[c.to_dict() for c in decision.ranked_candidates],
            variations=list(outcome.variations),
            error=decision.reason,
            shareholders=[],
            administrators=[],
            beneficiaries=[],
        )

        if decision.candidate is not None:
            record = decision.candidate.record
            lookup.matched_name = record.name
            lookup.identifier = record.identifier
            lookup.address = record.address
            lookup.city = record.city
            lookup.registry_status = record.status
            lookup.source = record.source
            lookup.method = decision.candidate.result.method.value
            lookup.shareholders = list(record.shareholders)
            lookup.administrators = list(record.administrators)
            lookup.beneficiaries = list(record.beneficiaries)

        return lookup

    def __repr__(self) -> str:
        return f"<CompanyLookup({self.company_name}, {self.status.value})>"
