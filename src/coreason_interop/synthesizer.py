# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from coreason_interop.schemas import (
    CodingResource,
    FhirCodeableConcept,
    FhirCoding,
    FhirMeta,
    FhirReference,
    MappingResult,
)
from coreason_interop.systems import url_for_system

CONDITION_PROFILE = "http://hl7.org/fhir/StructureDefinition/Condition"

PROBLEM_LIST_CATEGORY = FhirCodeableConcept(
    coding=[
        FhirCoding(
            system="http://terminology.hl7.org/CodeSystem/condition-category",
            code="problem-list-item",
            display="Problem List Item",
        )
    ]
)

ACTIVE_CLINICAL_STATUS = FhirCodeableConcept(
    coding=[
        FhirCoding(
            system="http://terminology.hl7.org/CodeSystem/condition-clinical",
            code="active",
            display="Active",
        )
    ]
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ResourceSynthesizer:
    """
    Renders a resolved mapping as a FHIR Condition.

    The coding list is the source coding (userSelected=true) followed by every
    mapped coding (userSelected=false) in resolver order. Category and clinical
    status are fixed: problem-list-item / active.
    """

    def __init__(self, clock: Callable[[], datetime] = _now):
        self.clock = clock

    def synthesize(
        self,
        mapping: MappingResult,
        subject: Optional[str] = None,
        encounter: Optional[str] = None,
    ) -> CodingResource:
        source = mapping.source
        codings = [
            FhirCoding(
                system=url_for_system(source.system),
                code=source.code,
                display=source.term,
                user_selected=True,
            )
        ]
        codings.extend(
            FhirCoding(
                system=url_for_system(t.system),
                code=t.code,
                display=t.term,
                user_selected=False,
            )
            for t in mapping.mapped
        )

        return CodingResource(
            id=f"condition-{uuid.uuid4().hex}",
            meta=FhirMeta(profile=[CONDITION_PROFILE]),
            subject=FhirReference(reference=subject) if subject else None,
            encounter=FhirReference(reference=encounter) if encounter else None,
            recorded_date=self.clock(),
            code=FhirCodeableConcept(coding=codings, text=source.term),
            category=[PROBLEM_LIST_CATEGORY.model_copy(deep=True)],
            clinical_status=ACTIVE_CLINICAL_STATUS.model_copy(deep=True),
        )
