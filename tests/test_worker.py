# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import threading

import pytest

from coreason_interop.worker import SubmissionWorker


def test_runs_task_and_forgets_it() -> None:
    worker = SubmissionWorker(max_workers=1)
    future = worker.enqueue("s1", lambda x: x * 2, 21)

    assert future.result(timeout=5) == 42
    assert worker.wait(timeout=5)
    assert worker.in_flight() == []
    worker.shutdown(grace_period=1)


def test_duplicate_id_reuses_in_flight_task() -> None:
    worker = SubmissionWorker(max_workers=2)
    release = threading.Event()
    calls = []

    def task() -> None:
        calls.append(1)
        release.wait(timeout=5)

    first = worker.enqueue("s1", task)
    second = worker.enqueue("s1", task)
    assert first is second
    assert worker.in_flight() == ["s1"]

    release.set()
    assert worker.wait(timeout=5)
    assert calls == [1]
    worker.shutdown(grace_period=1)


def test_task_errors_do_not_escape() -> None:
    worker = SubmissionWorker(max_workers=1)

    def boom() -> None:
        raise RuntimeError("boom")

    future = worker.enqueue("s1", boom)
    assert worker.wait(timeout=5)
    assert isinstance(future.exception(), RuntimeError)
    assert worker.in_flight() == []
    worker.shutdown(grace_period=1)


def test_shutdown_waits_for_in_flight() -> None:
    worker = SubmissionWorker(max_workers=1)
    done = threading.Event()

    def slow() -> None:
        threading.Event().wait(0.2)
        done.set()

    worker.enqueue("s1", slow)
    assert worker.shutdown(grace_period=5) == []
    assert done.is_set()


def test_shutdown_reports_unfinished_after_grace() -> None:
    worker = SubmissionWorker(max_workers=1)
    release = threading.Event()
    worker.enqueue("s1", release.wait, 5)

    remaining = worker.shutdown(grace_period=0.1)
    assert remaining == ["s1"]
    release.set()


def test_enqueue_after_shutdown() -> None:
    worker = SubmissionWorker(max_workers=1)
    worker.shutdown(grace_period=0)
    assert worker.accepting is False
    with pytest.raises(RuntimeError, match="shut down"):
        worker.enqueue("s1", lambda: None)
