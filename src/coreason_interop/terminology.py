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

import duckdb
from loguru import logger

from coreason_interop.database import escape_like, utcnow
from coreason_interop.exceptions import DuplicateKey, NotFound
from coreason_interop.schemas import SystemCount, TerminologyEntry

TERMINOLOGY_COLUMNS = """
    code,
    system,
    term,
    description,
    category,
    version,
    is_active,
    created_by,
    updated_by,
    created_at,
    updated_at
"""


class TerminologyCatalog:
    """
    (code, system) -> term metadata, backed by the `terminology` table.

    Entries are never hard-deleted; deactivation clears `is_active` and lookups
    only ever see active rows.
    """

    def __init__(self, duckdb_conn: duckdb.DuckDBPyConnection):
        self.duckdb_conn = duckdb_conn

        # Verify table exists
        try:
            self.duckdb_conn.execute("SELECT 1 FROM terminology LIMIT 1")
        except Exception as e:
            logger.error(f"Table 'terminology' not found or invalid: {e}")
            raise ValueError("Table 'terminology' is missing in the catalog.") from e

    def find_by_code_and_system(self, code: str, system: Optional[str] = None) -> Optional[TerminologyEntry]:
        """
        Active entry for `code`. With a system both must match exactly; without
        one the code is compared case-insensitively, like the mapping lookup.
        """
        if system:
            query = f"SELECT {TERMINOLOGY_COLUMNS} FROM terminology WHERE code = ? AND system = ? AND is_active"
            params = [code, system]
        else:
            query = f"SELECT {TERMINOLOGY_COLUMNS} FROM terminology WHERE lower(code) = lower(?) AND is_active"
            params = [code]
        query += " ORDER BY code LIMIT 1"

        with self.duckdb_conn.cursor() as cur:
            row = cur.execute(query, params).fetchone()
        return TerminologyEntry.from_row(row) if row else None

    def get(self, code: str) -> Optional[TerminologyEntry]:
        """Returns the entry for `code` whether or not it is active."""
        with self.duckdb_conn.cursor() as cur:
            row = cur.execute(f"SELECT {TERMINOLOGY_COLUMNS} FROM terminology WHERE code = ?", [code]).fetchone()
        return TerminologyEntry.from_row(row) if row else None

    def create(self, entry: TerminologyEntry) -> TerminologyEntry:
        """
        Inserts a new entry. Codes are globally unique.

        Raises:
            DuplicateKey: if an entry (active or not) already uses this code.
        """
        now = utcnow()
        created = entry.model_copy(update={"created_at": now, "updated_at": now})
        with self.duckdb_conn.cursor() as cur:
            if cur.execute("SELECT 1 FROM terminology WHERE code = ?", [entry.code]).fetchone():
                raise DuplicateKey(entry.code)
            try:
                cur.execute(
                    "INSERT INTO terminology VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        created.code,
                        created.system,
                        created.term,
                        created.description,
                        created.category,
                        created.version,
                        created.is_active,
                        created.created_by,
                        created.updated_by,
                        created.created_at,
                        created.updated_at,
                    ],
                )
            except duckdb.ConstraintException as e:
                raise DuplicateKey(entry.code) from e
        logger.info(f"Created terminology {created.code} ({created.system})")
        return created

    def deactivate(self, code: str, updated_by: str = "system") -> TerminologyEntry:
        with self.duckdb_conn.cursor() as cur:
            row = cur.execute(
                f"""
                UPDATE terminology
                SET is_active = FALSE, updated_by = ?, updated_at = ?
                WHERE code = ?
                RETURNING {TERMINOLOGY_COLUMNS}
                """,
                [updated_by, utcnow(), code],
            ).fetchone()
        if row is None:
            raise NotFound("Terminology not found", {"code": code})
        logger.info(f"Deactivated terminology {code}")
        return TerminologyEntry.from_row(row)

    def search(self, query: str, system: Optional[str] = None, limit: int = 10) -> List[TerminologyEntry]:
        """
        Case-insensitive substring search over term, code and description.
        Queries shorter than two characters return nothing.
        """
        query = (query or "").strip()
        if len(query) < 2:
            return []

        pattern = f"%{escape_like(query.lower())}%"
        sql = f"""
            SELECT {TERMINOLOGY_COLUMNS}
            FROM terminology
            WHERE is_active
              AND (
                lower(term) LIKE ? ESCAPE '\\'
                OR lower(code) LIKE ? ESCAPE '\\'
                OR lower(description) LIKE ? ESCAPE '\\'
              )
        """
        params: List[object] = [pattern, pattern, pattern]
        if system and system != "all":
            sql += " AND system = ?"
            params.append(system)
        sql += " ORDER BY term LIMIT ?"
        params.append(limit)

        with self.duckdb_conn.cursor() as cur:
            rows = cur.execute(sql, params).fetchall()
        return [TerminologyEntry.from_row(r) for r in rows]

    def systems(self) -> List[str]:
        with self.duckdb_conn.cursor() as cur:
            rows = cur.execute("SELECT DISTINCT system FROM terminology ORDER BY system").fetchall()
        return [r[0] for r in rows]

    def stats(self) -> List[SystemCount]:
        """Active entry count per system, largest first."""
        with self.duckdb_conn.cursor() as cur:
            rows = cur.execute(
                """
                SELECT system, count(*) AS n
                FROM terminology
                WHERE is_active
                GROUP BY system
                ORDER BY n DESC, system
                """
            ).fetchall()
        return [SystemCount(system=r[0], count=r[1]) for r in rows]
