"""
Input and output files for batch lookups.

Input is either a CSV (company name column plus an optional city column) or
a plain text list with one company per line. Output is JSONL (every
outcome), CSV (matched outcomes), a CSV of ambiguous outcomes for manual
review and a long-format CSV of the ownership of matched companies.
"""

import csv
import io
import json
import re
from pathlib import Path
from typing import Iterable, Optional, Union

from config.logging import logger
from processing.entity_resolution.normalizer import strip_accents
from processing.entity_resolution.records import CompanyInput
from processing.entity_resolution.resolver import LookupOutcome
from processing.models import DecisionStatus

Column = Union[int, str]

RESULT_COLUMNS = [
    "company_name", "normalized_name", "matched_name", "identifier", "address",
    "city", "registry_status", "source", "method", "score", "confidence",
]


def _as_column(column: Optional[Column]) -> Optional[Column]:
    if isinstance(column, str) and column.strip().isdigit():
        return int(column)
    return column


def _column_index(column: Column, header: Optional[list[str]]) -> int:
    if isinstance(column, int):
        return column
    if header is None or column not in header:
        raise ValueError(f"Column '{column}' not found in header: {header}")
    return header.index(column)


def read_companies(
    path: Union[str, Path],
    name_column: Column = 0,
    city_column: Optional[Column] = None,
    limit: Optional[int] = None,
    skip_header: bool = False,
) -> list[CompanyInput]:
    """
    Read companies to look up.

    A file without any comma is read as a plain list of names. Otherwise it
    is parsed as CSV; columns may be given by index or by header name (a
    header name implies the first row is a header).

    Args:
        path: Input file
        name_column: Column holding the company name
        city_column: Optional column holding a city hint
        limit: Stop after this many companies
        skip_header: Skip the first CSV row

    Returns:
        List of CompanyInput in file order
    """
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        content = f.read()

    lines = content.splitlines()
    if not any("," in line for line in lines):
        logger.info("Processing as simple text list (no CSV structure detected)")
        return _read_text_list(lines, limit)

    name_column = _as_column(name_column)
    city_column = _as_column(city_column)
    has_header = skip_header or isinstance(name_column, str) or isinstance(city_column, str)

    reader = csv.reader(io.StringIO(content), skipinitialspace=True)
    header = None
    name_index = city_index = None
    companies = []

    for row_index, row in enumerate(reader):
        if row_index == 0 and has_header:
            header = [cell.strip() for cell in row]
            continue

        if row_index == 0 or name_index is None:
            name_index = _column_index(name_column, header)
            if city_column is not None:
                city_index = _column_index(city_column, header)

        name = row[name_index].strip() if name_index < len(row) else ""
        if not name:
            continue

        city = None
        if city_index is not None and city_index < len(row):
            city = row[city_index].strip() or None

        companies.append(CompanyInput(name=name, city=city, row_index=row_index))

        if limit and len(companies) >= limit:
            break

    logger.info(f"Loaded {len(companies)} companies from {path}")
    return companies


def _read_text_list(lines: list[str], limit: Optional[int] = None) -> list[CompanyInput]:
    companies = []
    for row_index, line in enumerate(lines):
        line = line.strip()
        # Skip empty lines or lines too short to be a name
        if len(line) < 3:
            continue

        companies.append(CompanyInput(name=line, row_index=row_index))
        if limit and len(companies) >= limit:
            break

    logger.info(f"Loaded {len(companies)} companies from text list")
    return companies


def write_results_jsonl(outcomes: Iterable[LookupOutcome], path: Union[str, Path]) -> int:
    """Write every outcome as one JSON object per line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", encoding="utf-8") as f:
        for outcome in outcomes:
            f.write(json.dumps(outcome.to_dict(), ensure_ascii=False) + "\n")
            count += 1

    logger.info(f"Wrote {count} results to {path}")
    return count


def write_results_csv(outcomes: Iterable[LookupOutcome], path: Union[str, Path]) -> int:
    """Write matched outcomes as flat rows."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=RESULT_COLUMNS)
        writer.writeheader()

        for outcome in outcomes:
            decision = outcome.decision
            if decision.status != DecisionStatus.MATCHED:
                continue

            candidate = decision.candidate
            record = candidate.record
            writer.writerow({
                "company_name": outcome.company_name,
                "normalized_name": outcome.normalized_name,
                "matched_name": record.name,
                "identifier": record.identifier or "",
                "address": record.address or "",
                "city": record.city or "",
                "registry_status": record.status or "",
                "source": record.source.value,
                "method": candidate.result.method.value,
                "score": f"{candidate.score:.4f}",
                "confidence": f"{decision.confidence:.4f}",
            })
            count += 1

    logger.info(f"Wrote {count} matched results to {path}")
    return count


def write_ambiguous_csv(outcomes: Iterable[LookupOutcome], path: Union[str, Path]) -> int:
    """Write ambiguous outcomes for manual review."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["company_name", "search_query", "match_count", "matches"])

        for outcome in outcomes:
            decision = outcome.decision
            if decision.status != DecisionStatus.AMBIGUOUS:
                continue

            matches = ";".join(
                f"{c.record.name} [{c.record.identifier or '-'}] ({c.score:.2f})"
                for c in decision.top_candidates
            )
            writer.writerow([
                outcome.company_name,
                outcome.normalized_name,
                len(decision.top_candidates),
                matches,
            ])
            count += 1

    logger.info(f"Wrote {count} ambiguous matches to {path}")
    return count


OWNERSHIP_COLUMNS = [
    "company_name", "identifier", "matched_name", "person_type", "full_name", "is_company",
]

PERSON_TYPES = (
    ("shareholders", "Actionnaire"),
    ("administrators", "Administrateur"),
    ("beneficiaries", "Bénéficiaire ultime"),
)

# A legal form anywhere in a holder's name marks it as a company
COMPANY_HOLDER = re.compile(r"\b(INC|LTEE|LTD|LIMITEE|CORP|CIE|S\.?E\.?N\.?C|S\.?E\.?C|COOP)\b")


def is_company_name(name: str) -> bool:
    return bool(COMPANY_HOLDER.search(strip_accents(name.upper())))


def write_ownership_csv(outcomes: Iterable[LookupOutcome], path: Union[str, Path]) -> int:
    """
    Write the ownership of matched companies in long format.

    One row per person: shareholders ("Actionnaire"), administrators
    ("Administrateur") and ultimate beneficiaries ("Bénéficiaire ultime").
    Matched records without ownership data add no rows.

    Returns:
        Number of person rows written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    companies = 0
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=OWNERSHIP_COLUMNS)
        writer.writeheader()

        for outcome in outcomes:
            decision = outcome.decision
            if decision.status != DecisionStatus.MATCHED or not decision.candidate.record.has_ownership:
                continue

            record = decision.candidate.record
            companies += 1
            for field_name, person_type in PERSON_TYPES:
                for full_name in getattr(record, field_name):
                    writer.writerow({
                        "company_name": outcome.company_name,
                        "identifier": record.identifier or "",
                        "matched_name": record.name,
                        "person_type": person_type,
                        "full_name": full_name,
                        # Administrators and beneficiaries are natural persons
                        "is_company": "Oui" if field_name == "shareholders" and is_company_name(full_name) else "Non",
                    })
                    count += 1

    logger.info(f"Wrote {count} ownership rows for {companies} companies to {path}")
    return count
