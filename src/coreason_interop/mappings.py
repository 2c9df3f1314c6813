# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import uuid
from typing import Any, Dict, List, Optional, Tuple

import duckdb
from loguru import logger

from coreason_interop.database import escape_like, utcnow
from coreason_interop.schemas import (
    USABLE_STATUSES,
    MappedTerm,
    MappingRecord,
    MappingStatus,
    MappingType,
    SourceTerm,
)

MAPPING_COLUMNS = """
    id,
    source_term,
    source_code,
    source_system,
    mapping_status,
    reviewed_by,
    reviewed_at,
    version,
    is_active,
    notes,
    created_at,
    updated_at
"""

_USABLE_SQL = ", ".join(f"'{s.value}'" for s in USABLE_STATUSES)


class MappingCatalog:
    """
    (source code, source system) -> ordered target codes, backed by the `mapping`
    and `mapped_term` tables.

    Catalog order is creation order (the `seq` column). When several usable records
    match the same code, the earliest created one wins.
    """

    def __init__(self, duckdb_conn: duckdb.DuckDBPyConnection):
        self.duckdb_conn = duckdb_conn

        # Verify tables exist
        try:
            self.duckdb_conn.execute("SELECT 1 FROM mapping LIMIT 1")
            self.duckdb_conn.execute("SELECT 1 FROM mapped_term LIMIT 1")
        except Exception as e:
            logger.error(f"Mapping tables not found or invalid: {e}")
            raise ValueError("Tables 'mapping'/'mapped_term' are missing in the catalog.") from e

    def add(self, record: MappingRecord) -> MappingRecord:
        """Stores a mapping record and its mapped terms, preserving their order."""
        now = utcnow()
        stored = record.model_copy(
            update={
                "id": record.id or uuid.uuid4().hex,
                "created_at": record.created_at or now,
                "updated_at": now,
            }
        )
        with self.duckdb_conn.cursor() as cur:
            cur.begin()
            try:
                cur.execute(
                    """
                    INSERT INTO mapping (
                        id, source_term, source_code, source_system, mapping_status, reviewed_by,
                        reviewed_at, version, is_active, notes, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        stored.id,
                        stored.source_term.term,
                        stored.source_term.code,
                        stored.source_term.system,
                        stored.mapping_status.value,
                        stored.reviewed_by,
                        stored.reviewed_at,
                        stored.version,
                        stored.is_active,
                        stored.notes,
                        stored.created_at,
                        stored.updated_at,
                    ],
                )
                if stored.mapped_terms:
                    cur.executemany(
                        "INSERT INTO mapped_term VALUES (?, ?, ?, ?, ?, ?, ?)",
                        [
                            [stored.id, i, t.term, t.code, t.system, t.confidence, t.mapping_type.value]
                            for i, t in enumerate(stored.mapped_terms)
                        ],
                    )
                cur.commit()
            except Exception:
                cur.rollback()
                raise

        logger.info(
            f"Added mapping {stored.id}: {stored.source_term.code} ({stored.source_term.system}) -> "
            f"{len(stored.mapped_terms)} target(s), status={stored.mapping_status.value}"
        )
        return stored

    def find_usable_mapping(self, code: str, system: Optional[str] = None) -> Optional[MappingRecord]:
        matches = self.find_all_usable_mappings(code, system)
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(f"{len(matches)} usable mappings for {code}; using the earliest ({matches[0].id})")
        return matches[0]

    def find_all_usable_mappings(self, code: str, system: Optional[str] = None) -> List[MappingRecord]:
        """
        Usable mappings for a source code, in catalog order.

        With a system, code and system must match exactly. Without one, the code is
        matched case-insensitively as a whole, literal string: every LIKE
        metacharacter in it is escaped, so `NAM-A01.1` never matches `NAM-A01X1`.
        """
        query = f"""
            SELECT {MAPPING_COLUMNS}
            FROM mapping
            WHERE is_active
              AND mapping_status IN ({_USABLE_SQL})
        """
        params: List[Any] = []
        if system:
            query += " AND source_code = ? AND source_system = ?"
            params.extend([code, system])
        else:
            query += " AND lower(source_code) LIKE ? ESCAPE '\\'"
            params.append(escape_like(code.lower()))
        query += " ORDER BY seq"

        with self.duckdb_conn.cursor() as cur:
            rows = cur.execute(query, params).fetchall()
            return self._hydrate(cur, rows)

    def list(
        self, page: int = 1, limit: int = 20, source_system: Optional[str] = None
    ) -> Tuple[List[MappingRecord], int]:
        """All mappings regardless of status, newest first. Returns (page of records, total)."""
        where = ""
        params: List[Any] = []
        if source_system:
            where = "WHERE source_system = ?"
            params.append(source_system)

        with self.duckdb_conn.cursor() as cur:
            total = cur.execute(f"SELECT count(*) FROM mapping {where}", params).fetchone()[0]
            rows = cur.execute(
                f"SELECT {MAPPING_COLUMNS} FROM mapping {where} ORDER BY seq DESC LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit],
            ).fetchall()
            return self._hydrate(cur, rows), total

    def _hydrate(self, cur: duckdb.DuckDBPyConnection, rows: List[Tuple[Any, ...]]) -> List[MappingRecord]:
        if not rows:
            return []

        ids = [r[0] for r in rows]
        term_rows = cur.execute(
            f"""
            SELECT mapping_id, term, code, system, confidence, mapping_type
            FROM mapped_term
            WHERE mapping_id IN ({",".join(["?"] * len(ids))})
            ORDER BY mapping_id, ordinal
            """,
            ids,
        ).fetchall()

        targets: Dict[str, List[MappedTerm]] = {i: [] for i in ids}
        for mapping_id, term, t_code, t_system, confidence, mapping_type in term_rows:
            targets[mapping_id].append(
                MappedTerm(
                    term=term,
                    code=t_code,
                    system=t_system,
                    confidence=confidence,
                    mapping_type=MappingType(mapping_type),
                )
            )

        return [
            MappingRecord(
                id=r[0],
                source_term=SourceTerm(term=r[1], code=r[2], system=r[3]),
                mapped_terms=targets[r[0]],
                mapping_status=MappingStatus(r[4]),
                reviewed_by=r[5] or "",
                reviewed_at=r[6],
                version=r[7] or "1.0",
                is_active=bool(r[8]),
                notes=r[9] or "",
                created_at=r[10],
                updated_at=r[11],
            )
            for r in rows
        ]
