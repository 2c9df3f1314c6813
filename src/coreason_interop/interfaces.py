# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from typing import List, Optional, Protocol

from coreason_interop.schemas import MappingRecord, TerminologyEntry


class TerminologyLookup(Protocol):
    """
    Read side of the terminology catalog used by resolution and ingestion.
    """

    def find_by_code_and_system(self, code: str, system: Optional[str] = None) -> Optional[TerminologyEntry]:
        """
        Returns the active entry for `code` (and `system`, when given), or None.
        """
        ...


class MappingLookup(Protocol):
    """
    Read side of the mapping catalog. Only usable mappings (active, reviewed or
    approved) are ever returned.
    """

    def find_usable_mapping(self, code: str, system: Optional[str] = None) -> Optional[MappingRecord]:
        """
        Returns the first usable mapping in catalog order, or None.
        """
        ...

    def find_all_usable_mappings(self, code: str, system: Optional[str] = None) -> List[MappingRecord]:
        """
        Returns every usable mapping in catalog order.
        """
        ...
