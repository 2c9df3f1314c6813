# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from datetime import datetime, timedelta

import duckdb
import pytest

from coreason_interop.database import Database, utcnow
from coreason_interop.schemas import MappedCode, ProcessedTerm, SubmissionFilters, SubmissionStatus
from coreason_interop.submissions import SubmissionStore

from conftest import coding, condition_bundle


@pytest.fixture
def store(database: Database) -> SubmissionStore:
    return SubmissionStore(database.connection)


def _create(store: SubmissionStore, patient_id: str = "P1", clinician_id: str = "C1") -> str:
    return store.create(patient_id, clinician_id, "fever for 3 days", condition_bundle([coding("NAM-A01.1")])).id


def test_init_failure() -> None:
    con = duckdb.connect(":memory:")
    with pytest.raises(ValueError, match="'emr_submission' is missing"):
        SubmissionStore(con)
    con.close()


def test_create_and_get(store: SubmissionStore) -> None:
    bundle = condition_bundle([coding("NAM-A01.1", display="Vataja Jvara")])
    created = store.create("P1", "C1", "notes", bundle)

    assert created.status == SubmissionStatus.PENDING
    fetched = store.get(created.id)
    assert fetched is not None
    assert fetched.fhir_bundle == bundle
    assert fetched.status == SubmissionStatus.PENDING
    assert fetched.processed_terms == []
    assert fetched.submitted_by == "system"
    assert fetched.processed_at is None


def test_get_unknown(store: SubmissionStore) -> None:
    assert store.get("nope") is None


def test_lifecycle_to_completed(store: SubmissionStore) -> None:
    sid = _create(store)
    term = ProcessedTerm(
        original_term="Vataja Jvara",
        original_system="NAMASTE",
        mapped_codes=[MappedCode(code="JA20.0", system="ICD-11 TM2", term="Wind fever")],
        source_resource={"resourceType": "Condition"},
    )

    assert store.mark_processing(sid) is True
    assert store.complete(sid, [term]) is True

    done = store.get(sid)
    assert done is not None
    assert done.status == SubmissionStatus.COMPLETED
    assert done.processed_terms == [term]
    assert done.processed_at is not None


def test_lifecycle_to_failed(store: SubmissionStore) -> None:
    sid = _create(store)
    assert store.mark_processing(sid) is True
    assert store.fail(sid, "boom") is True

    failed = store.get(sid)
    assert failed is not None
    assert failed.status == SubmissionStatus.FAILED
    assert failed.error_message == "boom"


def test_terminal_records_are_immutable(store: SubmissionStore) -> None:
    sid = _create(store)
    store.mark_processing(sid)
    store.complete(sid, [])

    assert store.mark_processing(sid) is False
    assert store.fail(sid, "late failure") is False
    assert store.complete(sid, []) is False

    record = store.get(sid)
    assert record is not None
    assert record.status == SubmissionStatus.COMPLETED
    assert record.error_message is None


def test_complete_requires_processing(store: SubmissionStore) -> None:
    sid = _create(store)
    assert store.complete(sid, []) is False
    assert store.get(sid).status == SubmissionStatus.PENDING  # type: ignore[union-attr]


def test_transition_unknown_id(store: SubmissionStore) -> None:
    assert store.mark_processing("nope") is False


def test_list_filters_and_excludes_bundle(store: SubmissionStore) -> None:
    first = _create(store, patient_id="P1", clinician_id="C1")
    second = _create(store, patient_id="P2", clinician_id="C1")
    third = _create(store, patient_id="P1", clinician_id="C2")
    store.mark_processing(third)
    store.fail(third, "bad bundle")

    everything, total = store.list()
    assert total == 3
    assert all(s.fhir_bundle is None for s in everything)
    assert {s.id for s in everything} == {first, second, third}

    p1, p1_total = store.list(SubmissionFilters(patient_id="P1"))
    assert p1_total == 2
    assert {s.id for s in p1} == {first, third}

    failed, _ = store.list(SubmissionFilters(status=SubmissionStatus.FAILED))
    assert [s.id for s in failed] == [third]

    c1_p2, _ = store.list(SubmissionFilters(patient_id="P2", clinician_id="C1"))
    assert [s.id for s in c1_p2] == [second]


def test_list_newest_first_and_paginated(store: SubmissionStore) -> None:
    ids = [_create(store) for _ in range(3)]

    page_one, total = store.list(page=1, limit=2)
    page_two, _ = store.list(page=2, limit=2)

    assert total == 3
    assert len(page_one) == 2
    assert len(page_two) == 1
    listed = [s.id for s in page_one + page_two]
    assert sorted(listed) == sorted(ids)
    created = [s.created_at for s in page_one + page_two]
    assert created == sorted(created, reverse=True)


def test_list_date_range(store: SubmissionStore) -> None:
    _create(store)
    now = utcnow()

    inside, _ = store.list(SubmissionFilters(start_date=now - timedelta(hours=1), end_date=now + timedelta(hours=1)))
    assert len(inside) == 1

    future, _ = store.list(SubmissionFilters(start_date=now + timedelta(hours=1)))
    assert future == []

    past, _ = store.list(SubmissionFilters(end_date=datetime(2000, 1, 1)))
    assert past == []
