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
Error taxonomy for the interoperability service.

    InteropError (base)
    ├── InvalidInput        missing/invalid submission fields, rejected before any state exists
    ├── NotFound
    │   ├── MappingNotFound     no mapping and no terminology entry for a code
    │   └── SubmissionNotFound  no submission for an id
    ├── ProcessingFailure   raised while walking a bundle; recorded on the submission only
    └── DuplicateKey        terminology code already present in the catalog
"""

from typing import Any, Dict, Optional


class InteropError(Exception):
    """Base class for all service errors. Carries a context dict for logging."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class InvalidInput(InteropError):
    pass


class NotFound(InteropError):
    pass


class MappingNotFound(NotFound):
    """
    No usable mapping and no terminology entry exist for a code.

    `system` is the requested system, or "Unknown" when none was given, so callers
    can render the same empty-mapping shape they get for a hit.
    """

    def __init__(self, code: str, system: Optional[str] = None):
        self.code = code
        self.system = system or "Unknown"
        super().__init__("No mappings found", {"code": self.code, "system": self.system})


class SubmissionNotFound(NotFound):
    def __init__(self, submission_id: str):
        self.submission_id = submission_id
        super().__init__("EMR submission not found", {"id": submission_id})


class ProcessingFailure(InteropError):
    pass


class DuplicateKey(InteropError):
    def __init__(self, code: str):
        self.code = code
        super().__init__("Terminology with this code already exists", {"code": code})
