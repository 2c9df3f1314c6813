# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from typing import Any, List, Optional

from loguru import logger

from coreason_interop.bundle import Bundle, Coding, Resource
from coreason_interop.cache import RecentSubmissionCache
from coreason_interop.exceptions import InvalidInput, ProcessingFailure
from coreason_interop.interfaces import MappingLookup, TerminologyLookup
from coreason_interop.schemas import (
    MappedCode,
    ProcessedTerm,
    RecentBundleMetadata,
    SubmissionHandle,
    SubmissionStatus,
)
from coreason_interop.submissions import SubmissionStore
from coreason_interop.systems import system_from_url
from coreason_interop.worker import SubmissionWorker

REQUIRED_FIELDS = ("patientId", "clinicianId", "encounterNotes", "fhirBundle")


class BundleIngestionPipeline:
    """
    Accepts EMR submissions and annotates their diagnosis codings with every
    known equivalent code.

    `submit` persists a pending record, caches the bundle and queues `process`
    on the worker; it never waits for processing. `process` walks Condition
    codings in bundle order, resolves each against the terminology and mapping
    catalogs, and finalizes the record as completed or failed.
    """

    def __init__(
        self,
        store: SubmissionStore,
        terminology: TerminologyLookup,
        mappings: MappingLookup,
        cache: RecentSubmissionCache,
        worker: SubmissionWorker,
    ):
        self.store = store
        self.terminology = terminology
        self.mappings = mappings
        self.cache = cache
        self.worker = worker

    def submit(
        self,
        patient_id: Optional[str],
        clinician_id: Optional[str],
        encounter_notes: Optional[str],
        fhir_bundle: Any,
        submitted_by: str = "system",
    ) -> SubmissionHandle:
        values = (patient_id, clinician_id, encounter_notes, fhir_bundle)
        missing = [name for name, value in zip(REQUIRED_FIELDS, values) if value is None or value == ""]
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(REQUIRED_FIELDS)}", {"missing": missing})

        if not self.worker.accepting:
            raise RuntimeError("SubmissionWorker is shut down.")

        submission = self.store.create(
            patient_id=str(patient_id),
            clinician_id=str(clinician_id),
            encounter_notes=str(encounter_notes),
            fhir_bundle=fhir_bundle,
            submitted_by=submitted_by,
        )
        try:
            self.worker.enqueue(submission.id, self.process, submission.id, fhir_bundle)
        except Exception as e:
            self.store.fail(submission.id, f"Could not queue for processing: {e}")
            raise

        metadata = RecentBundleMetadata(
            id=submission.id,
            patient_id=submission.patient_id,
            clinician_id=submission.clinician_id,
        )
        self.cache.add(fhir_bundle, metadata)

        return SubmissionHandle(
            submission_id=submission.id,
            accepted=True,
            status=submission.status,
            cached_bundles=len(self.cache),
        )

    def process(self, submission_id: str, fhir_bundle: Any) -> Optional[SubmissionStatus]:
        """
        One processing pass. Returns the terminal status reached, or None when the
        submission was not pending (already processed or unknown).
        """
        try:
            if not self.store.mark_processing(submission_id):
                return None
            processed_terms = self.extract_terms(fhir_bundle)
            if not self.store.complete(submission_id, processed_terms):
                raise ProcessingFailure("Submission left 'processing' before completion", {"id": submission_id})
        except Exception as e:
            logger.exception(f"Processing failed for submission {submission_id}")
            self.store.fail(submission_id, str(e))
            return SubmissionStatus.FAILED

        logger.info(f"Submission {submission_id} completed with {len(processed_terms)} processed term(s)")
        return SubmissionStatus.COMPLETED

    def extract_terms(self, fhir_bundle: Any) -> List[ProcessedTerm]:
        """Resolves every diagnosis coding in bundle order; unresolvable codings are dropped."""
        bundle = Bundle.from_payload(fhir_bundle)
        processed: List[ProcessedTerm] = []
        for resource in bundle.diagnoses():
            for coding in resource.codings():
                term = self.resolve_coding(coding, resource)
                if term is not None:
                    processed.append(term)
        return processed

    def resolve_coding(self, coding: Coding, resource: Resource) -> Optional[ProcessedTerm]:
        if not coding.system:
            raise ProcessingFailure("Coding is missing its system URL", {"code": coding.code})
        if not coding.code:
            logger.warning(f"Skipping coding without a code (system={coding.system})")
            return None

        system = system_from_url(coding.system)
        entry = self.terminology.find_by_code_and_system(coding.code, system)
        mapping = self.mappings.find_usable_mapping(coding.code, system)

        if mapping is not None:
            mapped_codes = [MappedCode(code=t.code, system=t.system, term=t.term) for t in mapping.mapped_terms]
        elif entry is not None:
            mapped_codes = []
        else:
            logger.warning(f"No terminology or mapping for {coding.code} ({system}); coding skipped")
            return None

        return ProcessedTerm(
            original_term=coding.display,
            original_system=system,
            mapped_codes=mapped_codes,
            source_resource=resource.as_dict(),
        )
