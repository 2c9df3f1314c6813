# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import duckdb
from loguru import logger

SCHEMA = [
    "CREATE SEQUENCE IF NOT EXISTS mapping_seq START 1",
    """
    CREATE TABLE IF NOT EXISTS terminology (
        code VARCHAR PRIMARY KEY,
        system VARCHAR NOT NULL,
        term VARCHAR NOT NULL,
        description VARCHAR DEFAULT '',
        category VARCHAR DEFAULT '',
        version VARCHAR DEFAULT '1.0',
        is_active BOOLEAN DEFAULT TRUE,
        created_by VARCHAR DEFAULT 'system',
        updated_by VARCHAR DEFAULT 'system',
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mapping (
        id VARCHAR PRIMARY KEY,
        seq BIGINT DEFAULT nextval('mapping_seq'),
        source_term VARCHAR NOT NULL,
        source_code VARCHAR NOT NULL,
        source_system VARCHAR NOT NULL,
        mapping_status VARCHAR DEFAULT 'draft',
        reviewed_by VARCHAR DEFAULT '',
        reviewed_at TIMESTAMP,
        version VARCHAR DEFAULT '1.0',
        is_active BOOLEAN DEFAULT TRUE,
        notes VARCHAR DEFAULT '',
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS mapped_term (
        mapping_id VARCHAR NOT NULL,
        ordinal INTEGER NOT NULL,
        term VARCHAR NOT NULL,
        code VARCHAR NOT NULL,
        system VARCHAR NOT NULL,
        confidence DOUBLE DEFAULT 1.0,
        mapping_type VARCHAR DEFAULT 'exact'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS emr_submission (
        id VARCHAR PRIMARY KEY,
        patient_id VARCHAR NOT NULL,
        clinician_id VARCHAR NOT NULL,
        encounter_notes VARCHAR NOT NULL,
        fhir_bundle VARCHAR NOT NULL,
        status VARCHAR NOT NULL,
        processed_terms VARCHAR DEFAULT '[]',
        error_message VARCHAR,
        processed_at TIMESTAMP,
        submitted_by VARCHAR DEFAULT 'system',
        created_at TIMESTAMP,
        updated_at TIMESTAMP
    )
    """,
    # Only columns that are never updated get secondary indexes.
    "CREATE INDEX IF NOT EXISTS idx_mapping_source_code ON mapping(source_code)",
    "CREATE INDEX IF NOT EXISTS idx_mapped_term_mapping ON mapped_term(mapping_id)",
    "CREATE INDEX IF NOT EXISTS idx_submission_patient ON emr_submission(patient_id)",
]


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in TIMESTAMP columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_storage_time(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def escape_like(value: str) -> str:
    """Escapes LIKE metacharacters so `value` only ever matches literally (ESCAPE '\\')."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class Database:
    """
    Owns the DuckDB connection backing the terminology, mapping and submission stores.

    Components call `conn.cursor()` per operation; a cursor is a separate handle on the
    same database, which is how DuckDB is shared across threads.
    """

    def __init__(self, path: Union[str, Path] = ":memory:", read_only: bool = False):
        self.path = str(path)
        if self.path != ":memory:" and not read_only:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"Opening database at {self.path}")
        self.conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(self.path, read_only=read_only)

    def initialize(self) -> "Database":
        """Creates the schema if it does not exist yet."""
        conn = self.connection
        for statement in SCHEMA:
            conn.execute(statement)
        logger.info("Database schema ready.")
        return self

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self.conn is None:
            raise RuntimeError("Database is closed.")
        return self.conn

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
