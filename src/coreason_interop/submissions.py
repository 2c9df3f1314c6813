# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import json
import uuid
from typing import Any, List, Optional, Tuple

import duckdb
from loguru import logger
from pydantic import TypeAdapter

from coreason_interop.database import to_storage_time, utcnow
from coreason_interop.schemas import EMRSubmission, ProcessedTerm, SubmissionFilters, SubmissionStatus

SUBMISSION_COLUMNS = """
    id,
    patient_id,
    clinician_id,
    encounter_notes,
    status,
    processed_terms,
    error_message,
    processed_at,
    submitted_by,
    created_at,
    updated_at
"""

_processed_terms_adapter = TypeAdapter(List[ProcessedTerm])


class SubmissionStore:
    """
    Persists EMR submissions and enforces their status lifecycle:

        pending -> processing -> completed | failed

    Every transition is a conditional UPDATE on the current status, so a
    submission is processed at most once and a terminal record is never touched.
    """

    def __init__(self, duckdb_conn: duckdb.DuckDBPyConnection):
        self.duckdb_conn = duckdb_conn

        # Verify table exists
        try:
            self.duckdb_conn.execute("SELECT 1 FROM emr_submission LIMIT 1")
        except Exception as e:
            logger.error(f"Table 'emr_submission' not found or invalid: {e}")
            raise ValueError("Table 'emr_submission' is missing in the database.") from e

    def create(
        self,
        patient_id: str,
        clinician_id: str,
        encounter_notes: str,
        fhir_bundle: Any,
        submitted_by: str = "system",
    ) -> EMRSubmission:
        now = utcnow()
        submission = EMRSubmission(
            id=uuid.uuid4().hex,
            patient_id=patient_id,
            clinician_id=clinician_id,
            encounter_notes=encounter_notes,
            fhir_bundle=fhir_bundle,
            status=SubmissionStatus.PENDING,
            submitted_by=submitted_by,
            created_at=now,
            updated_at=now,
        )
        with self.duckdb_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO emr_submission (
                    id, patient_id, clinician_id, encounter_notes, fhir_bundle, status,
                    processed_terms, submitted_by, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, '[]', ?, ?, ?)
                """,
                [
                    submission.id,
                    patient_id,
                    clinician_id,
                    encounter_notes,
                    json.dumps(fhir_bundle),
                    submission.status.value,
                    submitted_by,
                    now,
                    now,
                ],
            )
        logger.info(f"Created EMR submission {submission.id} for patient {patient_id}")
        return submission

    def get(self, submission_id: str) -> Optional[EMRSubmission]:
        with self.duckdb_conn.cursor() as cur:
            row = cur.execute(
                f"SELECT {SUBMISSION_COLUMNS}, fhir_bundle FROM emr_submission WHERE id = ?", [submission_id]
            ).fetchone()
        if row is None:
            return None
        return self._from_row(row, bundle=json.loads(row[11]))

    def list(
        self, filters: Optional[SubmissionFilters] = None, page: int = 1, limit: int = 10
    ) -> Tuple[List[EMRSubmission], int]:
        """
        Newest first. The bundle payload is left out of the list view.
        Returns (page of submissions, total matching).
        """
        filters = filters or SubmissionFilters()
        clauses: List[str] = []
        params: List[Any] = []

        if filters.status:
            clauses.append("status = ?")
            params.append(filters.status.value)
        if filters.patient_id:
            clauses.append("patient_id = ?")
            params.append(filters.patient_id)
        if filters.clinician_id:
            clauses.append("clinician_id = ?")
            params.append(filters.clinician_id)
        if filters.start_date:
            clauses.append("created_at >= ?")
            params.append(to_storage_time(filters.start_date))
        if filters.end_date:
            clauses.append("created_at <= ?")
            params.append(to_storage_time(filters.end_date))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self.duckdb_conn.cursor() as cur:
            total = cur.execute(f"SELECT count(*) FROM emr_submission {where}", params).fetchone()[0]
            rows = cur.execute(
                f"""
                SELECT {SUBMISSION_COLUMNS}
                FROM emr_submission
                {where}
                ORDER BY created_at DESC, id
                LIMIT ? OFFSET ?
                """,
                params + [limit, (page - 1) * limit],
            ).fetchall()
        return [self._from_row(r) for r in rows], total

    def mark_processing(self, submission_id: str) -> bool:
        """pending -> processing. False if the submission already left `pending`."""
        return self._transition(
            submission_id,
            (SubmissionStatus.PENDING,),
            "status = ?, updated_at = ?",
            [SubmissionStatus.PROCESSING.value, utcnow()],
        )

    def complete(self, submission_id: str, processed_terms: List[ProcessedTerm]) -> bool:
        """processing -> completed, storing the resolution snapshot."""
        now = utcnow()
        payload = _processed_terms_adapter.dump_json(processed_terms, by_alias=True).decode("utf-8")
        return self._transition(
            submission_id,
            (SubmissionStatus.PROCESSING,),
            "status = ?, processed_terms = ?, processed_at = ?, updated_at = ?",
            [SubmissionStatus.COMPLETED.value, payload, now, now],
        )

    def fail(self, submission_id: str, error_message: str) -> bool:
        """pending | processing -> failed."""
        return self._transition(
            submission_id,
            (SubmissionStatus.PENDING, SubmissionStatus.PROCESSING),
            "status = ?, error_message = ?, updated_at = ?",
            [SubmissionStatus.FAILED.value, error_message, utcnow()],
        )

    def abandon(self, submission_id: str, error_message: str) -> bool:
        """pending -> failed, for submissions that were queued but never picked up."""
        return self._transition(
            submission_id,
            (SubmissionStatus.PENDING,),
            "status = ?, error_message = ?, updated_at = ?",
            [SubmissionStatus.FAILED.value, error_message, utcnow()],
        )

    def _transition(
        self,
        submission_id: str,
        from_statuses: Tuple[SubmissionStatus, ...],
        assignments: str,
        values: List[Any],
    ) -> bool:
        placeholders = ", ".join(["?"] * len(from_statuses))
        with self.duckdb_conn.cursor() as cur:
            row = cur.execute(
                f"""
                UPDATE emr_submission
                SET {assignments}
                WHERE id = ? AND status IN ({placeholders})
                RETURNING status
                """,
                values + [submission_id] + [s.value for s in from_statuses],
            ).fetchone()

        if row is None:
            logger.warning(
                f"Submission {submission_id} not in {[s.value for s in from_statuses]}; transition skipped"
            )
            return False
        logger.info(f"Submission {submission_id} -> {row[0]}")
        return True

    def _from_row(self, row: Tuple[Any, ...], bundle: Any = None) -> EMRSubmission:
        return EMRSubmission(
            id=row[0],
            patient_id=row[1],
            clinician_id=row[2],
            encounter_notes=row[3],
            status=SubmissionStatus(row[4]),
            processed_terms=_processed_terms_adapter.validate_json(row[5] or "[]"),
            error_message=row[6],
            processed_at=row[7],
            submitted_by=row[8] or "system",
            created_at=row[9],
            updated_at=row[10],
            fhir_bundle=bundle,
        )
