# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from coreason_interop.database import Database
from coreason_interop.exceptions import DuplicateKey
from coreason_interop.mappings import MappingCatalog
from coreason_interop.schemas import MappingRecord, TerminologyEntry
from coreason_interop.terminology import TerminologyCatalog


class RowError(BaseModel):
    row: int
    error: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ImportReport(BaseModel):
    total_rows: int = 0
    inserted: int = 0
    duplicates: int = 0
    errors: List[RowError] = Field(default_factory=list)


class CatalogBuilder:
    """
    Offline utility that bulk-loads terminology CSVs and mapping JSON into a catalog database.
    """

    TERMINOLOGY_COLUMNS = ["term", "code", "description", "category", "system"]

    def __init__(self, database: Database):
        """
        Initialize the CatalogBuilder.

        Args:
            database: An initialized Database to load into.
        """
        self.database = database
        self.terminology = TerminologyCatalog(database.connection)
        self.mappings = MappingCatalog(database.connection)

    def load_terminology_csv(self, csv_path: Union[str, Path]) -> ImportReport:
        """
        Loads terminology rows from a CSV with a header row naming
        term, code, description, category and system.

        Rows without a term or code are reported as errors; codes already in the
        catalog are counted as duplicates. Neither stops the import.
        """
        csv_path = Path(csv_path)
        if not csv_path.exists():
            raise FileNotFoundError(f"Terminology file not found: {csv_path}")

        logger.info(f"Loading terminology from {csv_path}")
        rows = self._read_csv(csv_path)
        report = ImportReport()

        for index, raw in enumerate(rows, start=1):
            cleaned = {
                "term": (raw.get("term") or "").strip(),
                "code": (raw.get("code") or "").strip(),
                "description": (raw.get("description") or "").strip(),
                "category": (raw.get("category") or "").strip(),
                "system": (raw.get("system") or "").strip() or "NAMASTE",
            }
            if not cleaned["term"] or not cleaned["code"]:
                report.errors.append(RowError(row=index, error="Missing required fields: term or code", data=cleaned))
                continue

            report.total_rows += 1
            try:
                self.terminology.create(TerminologyEntry(**cleaned, created_by="csv-upload"))
                report.inserted += 1
            except DuplicateKey:
                report.duplicates += 1
            except ValidationError as e:
                report.errors.append(RowError(row=index, error=str(e), data=cleaned))

        logger.info(
            f"Terminology import completed: rows={report.total_rows} inserted={report.inserted} "
            f"duplicates={report.duplicates} errors={len(report.errors)}"
        )
        return report

    def load_mappings_json(self, json_path: Union[str, Path]) -> int:
        """
        Loads a JSON list of mapping records (camelCase keys). Returns the number stored.
        """
        json_path = Path(json_path)
        if not json_path.exists():
            raise FileNotFoundError(f"Mappings file not found: {json_path}")

        try:
            with open(json_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in mappings file: {e}") from e

        if not isinstance(data, list):
            raise ValueError("Mappings file must contain a JSON list of mapping records.")

        count = 0
        for item in data:
            self.mappings.add(MappingRecord.model_validate(item))
            count += 1

        logger.info(f"Loaded {count} mapping record(s) from {json_path}")
        return count

    def _read_csv(self, csv_path: Path) -> List[Dict[str, Any]]:
        """Reads every column as text through DuckDB's CSV reader."""
        path_literal = str(csv_path).replace("'", "''")
        with self.database.connection.cursor() as cur:
            result = cur.execute(f"SELECT * FROM read_csv_auto('{path_literal}', header=True, all_varchar=True)")
            columns = [d[0].strip().lower() for d in result.description]
            rows = result.fetchall()
        return [dict(zip(columns, row)) for row in rows]
