# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from typing import Optional

from loguru import logger

from coreason_interop.exceptions import InvalidInput, MappingNotFound
from coreason_interop.interfaces import MappingLookup, TerminologyLookup
from coreason_interop.schemas import MappedTerm, MappingResult, SourceTerm


class MappingResolver:
    """
    Answers "what does this code map to".

    Mechanism:
    1. Usable mapping in the mapping catalog -> its source and mapped terms, in catalog order.
    2. Otherwise an active terminology entry -> that entry as source, no mapped terms.
    3. Otherwise MappingNotFound carrying the code and the requested system (or "Unknown").

    Read-only; safe to call repeatedly and from many threads.
    """

    def __init__(self, terminology: TerminologyLookup, mappings: MappingLookup):
        self.terminology = terminology
        self.mappings = mappings

    def resolve(self, code: str, system: Optional[str] = None) -> MappingResult:
        if not code or not code.strip():
            raise InvalidInput("Code parameter is required")

        mapping = self.mappings.find_usable_mapping(code, system)
        if mapping is not None:
            return MappingResult(
                source=mapping.source_term.model_copy(),
                mapped=[
                    MappedTerm(
                        term=t.term,
                        code=t.code,
                        system=t.system,
                        confidence=t.confidence,
                        mapping_type=t.mapping_type,
                    )
                    for t in mapping.mapped_terms
                ],
            )

        entry = self.terminology.find_by_code_and_system(code, system)
        if entry is not None:
            logger.info(f"No usable mapping for {code}; returning terminology entry only")
            return MappingResult(source=SourceTerm(term=entry.term, code=entry.code, system=entry.system))

        logger.warning(f"No mapping or terminology entry for code {code} (system={system or 'Unknown'})")
        raise MappingNotFound(code, system)
