# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

KNOWN_SYSTEMS = (
    "NAMASTE",
    "ICD-11 TM2",
    "ICD-11 Biomedicine",
    "WHO Ayurveda",
    "ICD-11 BIOMEDICINE",
    "WHO AYURVEDA",
)


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MappingStatus(str, Enum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    DEPRECATED = "deprecated"


USABLE_STATUSES = (MappingStatus.REVIEWED, MappingStatus.APPROVED)


class MappingType(str, Enum):
    EXACT = "exact"
    BROAD = "broad"
    NARROW = "narrow"
    RELATED = "related"


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SubmissionStatus.COMPLETED, SubmissionStatus.FAILED)


# --- Terminology ---


class TerminologyEntry(CamelModel):
    code: str = Field(min_length=1)
    system: str
    term: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    version: str = "1.0"
    is_active: bool = True
    created_by: str = "system"
    updated_by: str = "system"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("system")
    @classmethod
    def _known_system(cls, value: str) -> str:
        if value not in KNOWN_SYSTEMS:
            raise ValueError(f"Unknown coding system '{value}'")
        return value

    @classmethod
    def from_row(cls, row: Tuple[Any, ...]) -> "TerminologyEntry":
        """
        Creates an entry from a DuckDB row.
        Assumes row order: code, system, term, description, category, version,
        is_active, created_by, updated_by, created_at, updated_at.
        """
        return cls(
            code=row[0],
            system=row[1],
            term=row[2],
            description=row[3] or "",
            category=row[4] or "",
            version=row[5] or "1.0",
            is_active=bool(row[6]),
            created_by=row[7] or "system",
            updated_by=row[8] or "system",
            created_at=row[9],
            updated_at=row[10],
        )


class SystemCount(BaseModel):
    system: str
    count: int


# --- Mappings ---


class SourceTerm(BaseModel):
    term: str
    code: str
    system: str = "NAMASTE"


class MappedTerm(CamelModel):
    term: str
    code: str
    system: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    mapping_type: MappingType = MappingType.EXACT


class MappingRecord(CamelModel):
    id: Optional[str] = None
    source_term: SourceTerm
    mapped_terms: List[MappedTerm] = Field(default_factory=list)
    mapping_status: MappingStatus = MappingStatus.DRAFT
    reviewed_by: str = ""
    reviewed_at: Optional[datetime] = None
    version: str = "1.0"
    is_active: bool = True
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_usable(self) -> bool:
        return self.is_active and self.mapping_status in USABLE_STATUSES


class MappingResult(BaseModel):
    """Answer to "what does this code map to"."""

    source: SourceTerm
    mapped: List[MappedTerm] = Field(default_factory=list)


# --- EMR submissions ---


class MappedCode(BaseModel):
    code: str
    system: str
    term: str


class ProcessedTerm(CamelModel):
    original_term: Optional[str] = None
    original_system: str
    mapped_codes: List[MappedCode] = Field(default_factory=list)
    source_resource: Dict[str, Any] = Field(default_factory=dict)


class EMRSubmission(CamelModel):
    id: str
    patient_id: str
    clinician_id: str
    encounter_notes: str
    fhir_bundle: Optional[Any] = None
    status: SubmissionStatus = SubmissionStatus.PENDING
    processed_terms: List[ProcessedTerm] = Field(default_factory=list)
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    submitted_by: str = "system"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubmissionRequest(CamelModel):
    # Presence is checked by the ingestion pipeline so that a missing field is InvalidInput.
    patient_id: Optional[str] = None
    clinician_id: Optional[str] = None
    encounter_notes: Optional[str] = None
    fhir_bundle: Optional[Any] = None


class SubmissionHandle(CamelModel):
    submission_id: str
    accepted: bool = True
    status: SubmissionStatus = SubmissionStatus.PENDING
    cached_bundles: int = 0


class SubmissionFilters(CamelModel):
    status: Optional[SubmissionStatus] = None
    patient_id: Optional[str] = None
    clinician_id: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(current_page=page, total_pages=-(-total // limit), total_items=total, items_per_page=limit)


class SubmissionPage(CamelModel):
    emr_data: List[EMRSubmission]
    pagination: Pagination


class MappingPage(CamelModel):
    mappings: List[MappingRecord]
    pagination: Pagination


# --- Recent-submission cache ---


class RecentBundleMetadata(CamelModel):
    id: str
    patient_id: str
    clinician_id: str


class RecentBundleEntry(CamelModel):
    bundle: Any
    metadata: RecentBundleMetadata
    timestamp: datetime


class RecentBundleSummary(CamelModel):
    id: str
    patient_id: str
    clinician_id: str
    timestamp: datetime
    bundle_available: bool = True


class RecentBundleList(CamelModel):
    recent_bundles: List[RecentBundleSummary]
    count: int
    max_cache_size: int


# --- FHIR Condition output ---


class FhirCoding(CamelModel):
    system: str
    code: str
    display: Optional[str] = None
    user_selected: Optional[bool] = None


class FhirCodeableConcept(BaseModel):
    coding: List[FhirCoding]
    text: Optional[str] = None


class FhirReference(BaseModel):
    reference: str


class FhirMeta(BaseModel):
    profile: List[str]


class CodingResource(CamelModel):
    """A FHIR Condition listing one concept's codings across systems."""

    resource_type: str = "Condition"
    id: str
    meta: FhirMeta
    subject: Optional[FhirReference] = None
    encounter: Optional[FhirReference] = None
    recorded_date: datetime
    code: FhirCodeableConcept
    category: List[FhirCodeableConcept]
    clinical_status: FhirCodeableConcept
