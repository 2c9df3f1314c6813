# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from typing import List, Optional

from loguru import logger

from coreason_interop.cache import RecentSubmissionCache
from coreason_interop.config import Settings
from coreason_interop.database import Database
from coreason_interop.ingestion import BundleIngestionPipeline
from coreason_interop.mappings import MappingCatalog
from coreason_interop.resolver import MappingResolver
from coreason_interop.submissions import SubmissionStore
from coreason_interop.synthesizer import ResourceSynthesizer
from coreason_interop.terminology import TerminologyCatalog
from coreason_interop.worker import SubmissionWorker

CANCELLED_AT_SHUTDOWN = "Cancelled at shutdown before processing started"


class InteropContext:
    """
    Service root. Builds every component once and hands them to each other
    explicitly; the server keeps one instance on `app.state`.
    """

    def __init__(self, settings: Optional[Settings] = None, database: Optional[Database] = None):
        self.settings = settings or Settings()
        logger.info(f"Initializing Interop Context with database: {self.settings.db_path}")

        self.database = database or Database(self.settings.db_path).initialize()
        conn = self.database.connection

        self.terminology = TerminologyCatalog(conn)
        self.mappings = MappingCatalog(conn)
        self.submissions = SubmissionStore(conn)

        self.resolver = MappingResolver(self.terminology, self.mappings)
        self.synthesizer = ResourceSynthesizer()

        self.cache = RecentSubmissionCache(self.settings.cache_size)
        self.worker = SubmissionWorker(max_workers=self.settings.workers)
        self.pipeline = BundleIngestionPipeline(
            store=self.submissions,
            terminology=self.terminology,
            mappings=self.mappings,
            cache=self.cache,
            worker=self.worker,
        )

    def drain(self) -> List[str]:
        """
        Stops the worker, giving in-flight submissions the grace period to finish.

        Submissions that were queued but never started are marked failed so they
        surface for resubmission. Returns the ids still processing afterwards.
        """
        remaining = self.worker.shutdown(self.settings.shutdown_grace)
        abandoned = [sid for sid in remaining if self.submissions.abandon(sid, CANCELLED_AT_SHUTDOWN)]
        if abandoned:
            logger.warning(f"Marked {len(abandoned)} queued submission(s) failed at shutdown: {abandoned}")

        unfinished = [sid for sid in remaining if sid not in abandoned]
        if unfinished:
            logger.warning(f"Closing with {len(unfinished)} submission(s) still processing: {unfinished}")
        return unfinished

    def close(self) -> None:
        """Drains background work within the grace period, then closes the database."""
        self.drain()
        self.database.close()
