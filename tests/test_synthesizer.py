# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from datetime import datetime, timezone
from typing import Tuple

from coreason_interop.mappings import MappingCatalog
from coreason_interop.resolver import MappingResolver
from coreason_interop.schemas import MappedTerm, MappingResult, SourceTerm
from coreason_interop.synthesizer import ResourceSynthesizer
from coreason_interop.terminology import TerminologyCatalog

Catalogs = Tuple[TerminologyCatalog, MappingCatalog]

FIXED_TIME = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_resolved_mapping_round_trip(seeded_catalogs: Catalogs) -> None:
    result = MappingResolver(*seeded_catalogs).resolve("NAM-A01.1")
    resource = ResourceSynthesizer().synthesize(result)

    codings = resource.code.coding
    assert len(codings) == 1 + len(result.mapped)
    assert codings[0].user_selected is True
    assert codings[0].code == "NAM-A01.1"
    assert codings[0].system == "http://namaste.gov.in"
    assert [c.user_selected for c in codings[1:]] == [False, False]
    assert [c.code for c in codings[1:]] == [m.code for m in result.mapped]
    assert codings[1].system == "http://id.who.int/icd/entity/148929940"
    # Not in the URL table: derived.
    assert codings[2].system == "http://terminology.system/icd-11-biomedicine"
    assert resource.code.text == "Vataja Jvara"


def test_fixed_fields() -> None:
    synthesizer = ResourceSynthesizer(clock=lambda: FIXED_TIME)
    resource = synthesizer.synthesize(MappingResult(source=SourceTerm(term="Pittaja Jvara", code="NAM-B02")))

    assert resource.resource_type == "Condition"
    assert resource.recorded_date == FIXED_TIME
    assert resource.id.startswith("condition-")
    assert resource.meta.profile == ["http://hl7.org/fhir/StructureDefinition/Condition"]
    assert resource.category[0].coding[0].code == "problem-list-item"
    assert resource.clinical_status.coding[0].code == "active"
    assert len(resource.code.coding) == 1


def test_ids_are_fresh() -> None:
    synthesizer = ResourceSynthesizer()
    mapping = MappingResult(source=SourceTerm(term="t", code="c"))
    assert synthesizer.synthesize(mapping).id != synthesizer.synthesize(mapping).id


def test_subject_and_encounter() -> None:
    mapping = MappingResult(source=SourceTerm(term="t", code="c"))
    resource = ResourceSynthesizer().synthesize(mapping, subject="Patient/42", encounter="Encounter/7")
    assert resource.subject is not None
    assert resource.subject.reference == "Patient/42"
    assert resource.encounter is not None
    assert resource.encounter.reference == "Encounter/7"


def test_wire_shape() -> None:
    mapping = MappingResult(
        source=SourceTerm(term="Vataja Jvara", code="NAM-A01.1", system="NAMASTE"),
        mapped=[MappedTerm(term="Wind fever", code="JA20.0", system="ICD-11 TM2")],
    )
    data = ResourceSynthesizer(clock=lambda: FIXED_TIME).synthesize(mapping).model_dump(
        mode="json", by_alias=True, exclude_none=True
    )

    assert data["resourceType"] == "Condition"
    assert "subject" not in data
    assert data["code"]["coding"][0] == {
        "system": "http://namaste.gov.in",
        "code": "NAM-A01.1",
        "display": "Vataja Jvara",
        "userSelected": True,
    }
    assert data["clinicalStatus"]["coding"][0]["display"] == "Active"
    assert "userSelected" not in data["category"][0]["coding"][0]
    assert data["recordedDate"].startswith("2025-03-01T12:00:00")
