# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

"""
Thin, permissive view over a FHIR Bundle.

Only the slice the ingestion pipeline reads is typed: `entry[].resource.resourceType`
and `resource.code.coding[]`. Everything else is preserved as extra fields so a
resource dumps back to the shape it was submitted in.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from coreason_interop.exceptions import ProcessingFailure

DIAGNOSIS_RESOURCE_TYPES = ("Condition",)


class Coding(BaseModel):
    model_config = ConfigDict(extra="allow")

    system: Optional[str] = None
    code: Optional[str] = None
    display: Optional[str] = None


class CodeableConcept(BaseModel):
    model_config = ConfigDict(extra="allow")

    coding: List[Coding] = Field(default_factory=list)


class Resource(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_type: Optional[str] = Field(default=None, alias="resourceType")
    code: Optional[CodeableConcept] = None

    @property
    def is_diagnosis(self) -> bool:
        return self.resource_type in DIAGNOSIS_RESOURCE_TYPES

    def codings(self) -> List[Coding]:
        if self.code is None:
            return []
        return self.code.coding

    def as_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


class BundleEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    resource: Optional[Resource] = None


class Bundle(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    resource_type: Optional[str] = Field(default=None, alias="resourceType")
    entry: List[BundleEntry] = Field(default_factory=list)

    @field_validator("entry", mode="before")
    @classmethod
    def _missing_entry(cls, value: Any) -> Any:
        return [] if value is None else value

    @classmethod
    def from_payload(cls, payload: Any) -> "Bundle":
        """Parses a submitted bundle. Raises ProcessingFailure if it is malformed."""
        if not isinstance(payload, dict):
            raise ProcessingFailure("FHIR bundle must be a JSON object", {"type": type(payload).__name__})
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise ProcessingFailure(f"Malformed FHIR bundle: {e.error_count()} validation error(s)") from e

    def resources(self) -> List[Resource]:
        return [e.resource for e in self.entry if e.resource is not None]

    def diagnoses(self) -> List[Resource]:
        """Diagnosis resources in bundle order."""
        return [r for r in self.resources() if r.is_diagnosis]
