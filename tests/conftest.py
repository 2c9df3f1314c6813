# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest

from coreason_interop.config import Settings
from coreason_interop.context import InteropContext
from coreason_interop.database import Database
from coreason_interop.mappings import MappingCatalog
from coreason_interop.schemas import (
    MappedTerm,
    MappingRecord,
    MappingStatus,
    MappingType,
    SourceTerm,
    TerminologyEntry,
)
from coreason_interop.terminology import TerminologyCatalog

NAMASTE_URL = "http://namaste.gov.in"

# Sample catalog
# NAM-A01.1  Vataja Jvara   NAMASTE   approved mapping -> JA20.0 (TM2, 0.9 exact), MG2A.01 (Biomedicine, 0.8 broad)
# NAM-B02    Pittaja Jvara  NAMASTE   terminology only, no mapping
# NAM-C03    Kaphaja Jvara  NAMASTE   draft mapping only, no terminology entry
# JA20.0     ICD-11 TM2 target
# MG2A.01    ICD-11 Biomedicine target

TERMINOLOGY = [
    TerminologyEntry(code="NAM-A01.1", system="NAMASTE", term="Vataja Jvara", category="Jvara"),
    TerminologyEntry(code="NAM-B02", system="NAMASTE", term="Pittaja Jvara", category="Jvara"),
    TerminologyEntry(code="JA20.0", system="ICD-11 TM2", term="Wind fever disorder (TM2)"),
    TerminologyEntry(code="MG2A.01", system="ICD-11 Biomedicine", term="Fever of unknown origin"),
]


def vataja_jvara_mapping(
    status: MappingStatus = MappingStatus.APPROVED, is_active: bool = True, notes: str = ""
) -> MappingRecord:
    return MappingRecord(
        source_term=SourceTerm(term="Vataja Jvara", code="NAM-A01.1", system="NAMASTE"),
        mapped_terms=[
            MappedTerm(
                term="Wind fever disorder (TM2)",
                code="JA20.0",
                system="ICD-11 TM2",
                confidence=0.9,
                mapping_type=MappingType.EXACT,
            ),
            MappedTerm(
                term="Fever of unknown origin",
                code="MG2A.01",
                system="ICD-11 Biomedicine",
                confidence=0.8,
                mapping_type=MappingType.BROAD,
            ),
        ],
        mapping_status=status,
        is_active=is_active,
        notes=notes,
    )


def kaphaja_draft_mapping() -> MappingRecord:
    return MappingRecord(
        source_term=SourceTerm(term="Kaphaja Jvara", code="NAM-C03", system="NAMASTE"),
        mapped_terms=[MappedTerm(term="Phlegm fever disorder (TM2)", code="JA20.2", system="ICD-11 TM2")],
        mapping_status=MappingStatus.DRAFT,
    )


def seed(terminology: TerminologyCatalog, mappings: MappingCatalog) -> None:
    for entry in TERMINOLOGY:
        terminology.create(entry)
    mappings.add(vataja_jvara_mapping())
    mappings.add(kaphaja_draft_mapping())


def coding(code: str, system: str = NAMASTE_URL, display: Optional[str] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"system": system, "code": code}
    if display is not None:
        result["display"] = display
    return result


def condition_bundle(*codings_per_condition: List[Dict[str, Any]]) -> Dict[str, Any]:
    """A FHIR Bundle with one Condition per list of codings, plus an unrelated Patient."""
    entries: List[Dict[str, Any]] = [{"resource": {"resourceType": "Patient", "id": "example"}}]
    for i, codings in enumerate(codings_per_condition):
        entries.append(
            {
                "fullUrl": f"urn:uuid:condition-{i}",
                "resource": {"resourceType": "Condition", "id": f"condition-{i}", "code": {"coding": codings}},
            }
        )
    return {"resourceType": "Bundle", "type": "collection", "entry": entries}


# --- Fixtures ---


@pytest.fixture
def database() -> Generator[Database, None, None]:
    db = Database(":memory:").initialize()
    yield db
    db.close()


@pytest.fixture
def terminology_catalog(database: Database) -> TerminologyCatalog:
    return TerminologyCatalog(database.connection)


@pytest.fixture
def mapping_catalog(database: Database) -> MappingCatalog:
    return MappingCatalog(database.connection)


@pytest.fixture
def seeded_catalogs(
    terminology_catalog: TerminologyCatalog, mapping_catalog: MappingCatalog
) -> Tuple[TerminologyCatalog, MappingCatalog]:
    seed(terminology_catalog, mapping_catalog)
    return terminology_catalog, mapping_catalog


@pytest.fixture
def context(database: Database) -> Generator[InteropContext, None, None]:
    ctx = InteropContext(Settings(workers=2, shutdown_grace=5.0), database=database)
    seed(ctx.terminology, ctx.mappings)
    yield ctx
    ctx.worker.shutdown(grace_period=5.0)
