# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import copy
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List, Optional

from loguru import logger

from coreason_interop.schemas import RecentBundleEntry, RecentBundleMetadata, RecentBundleSummary

DEFAULT_MAX_SIZE = 5


class RecentSubmissionCache:
    """
    Bounded, most-recent-first list of submitted bundles.

    Process-local and not durable: it is an accelerator for re-fetching a bundle
    that was just submitted, never the system of record. Eviction is by capacity
    only; adding to a full cache drops the oldest entry.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self._entries: Deque[RecentBundleEntry] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(self, bundle: Any, metadata: RecentBundleMetadata) -> RecentBundleEntry:
        entry = RecentBundleEntry(
            bundle=copy.deepcopy(bundle),
            metadata=metadata,
            timestamp=datetime.now(timezone.utc),
        )
        with self._lock:
            # appendleft on a full bounded deque discards from the right (oldest) end.
            evicted = self._entries[-1] if len(self._entries) == self.max_size else None
            self._entries.appendleft(entry)

        if evicted is not None:
            logger.debug(f"Evicted bundle {evicted.metadata.id} from recent cache")
        return entry

    def list(self) -> List[RecentBundleEntry]:
        with self._lock:
            return list(self._entries)

    def get_by_id(self, submission_id: str) -> Optional[RecentBundleEntry]:
        with self._lock:
            for entry in self._entries:
                if entry.metadata.id == submission_id:
                    return entry
        return None

    def summaries(self) -> List[RecentBundleSummary]:
        return [
            RecentBundleSummary(
                id=e.metadata.id,
                patient_id=e.metadata.patient_id,
                clinician_id=e.metadata.clinician_id,
                timestamp=e.timestamp,
            )
            for e in self.list()
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
