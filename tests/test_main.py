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
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from coreason_interop import __version__
from coreason_interop.main import app

runner = CliRunner()

TERMS_CSV = """term,code,description,category,system
Vataja Jvara,NAM-A01.1,,Jvara,NAMASTE
Pittaja Jvara,NAM-B02,,Jvara,NAMASTE
Wind fever disorder (TM2),JA20.0,,,ICD-11 TM2
"""

MAPPINGS = [
    {
        "sourceTerm": {"term": "Vataja Jvara", "code": "NAM-A01.1", "system": "NAMASTE"},
        "mappedTerms": [{"term": "Wind fever disorder (TM2)", "code": "JA20.0", "system": "ICD-11 TM2"}],
        "mappingStatus": "reviewed",
    }
]


@pytest.fixture
def catalog(tmp_path: Path) -> Path:
    terms = tmp_path / "terms.csv"
    terms.write_text(TERMS_CSV)
    mappings = tmp_path / "mappings.json"
    mappings.write_text(json.dumps(MAPPINGS))
    output = tmp_path / "catalog.duckdb"

    result = runner.invoke(app, ["build", "-t", str(terms), "-o", str(output), "-m", str(mappings)])
    assert result.exit_code == 0, result.output
    return output


def test_build_reports_import(catalog: Path, tmp_path: Path) -> None:
    assert catalog.exists()

    result = runner.invoke(app, ["build", "-t", str(tmp_path / "terms.csv"), "-o", str(catalog)])
    assert result.exit_code == 0
    report = json.loads(result.stdout)
    assert report["inserted"] == 0
    assert report["duplicates"] == 3


def test_build_failure(tmp_path: Path) -> None:
    terms = tmp_path / "terms.csv"
    terms.write_text(TERMS_CSV)
    bad = tmp_path / "mappings.json"
    bad.write_text("{broken")

    result = runner.invoke(app, ["build", "-t", str(terms), "-o", str(tmp_path / "out.duckdb"), "-m", str(bad)])
    assert result.exit_code == 1


def test_resolve(catalog: Path) -> None:
    result = runner.invoke(app, ["resolve", "NAM-A01.1", "--db", str(catalog)])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["source"]["term"] == "Vataja Jvara"
    assert [m["code"] for m in data["mapped"]] == ["JA20.0"]
    assert data["mapped"][0]["mappingType"] == "exact"


def test_resolve_not_found(catalog: Path) -> None:
    result = runner.invoke(app, ["resolve", "NOPE999", "--db", str(catalog), "-s", "NAMASTE"])
    assert result.exit_code == 1
    assert "No mappings found for NOPE999 (system: NAMASTE)" in result.output


def test_condition(catalog: Path) -> None:
    result = runner.invoke(app, ["condition", "NAM-A01.1", "--db", str(catalog)])

    assert result.exit_code == 0
    resource = json.loads(result.stdout)
    assert resource["resourceType"] == "Condition"
    assert [c["code"] for c in resource["code"]["coding"]] == ["NAM-A01.1", "JA20.0"]
    assert "subject" not in resource


def test_condition_terminology_only(catalog: Path) -> None:
    result = runner.invoke(app, ["condition", "NAM-B02", "--db", str(catalog)])

    assert result.exit_code == 0
    resource = json.loads(result.stdout)
    assert len(resource["code"]["coding"]) == 1
    assert resource["code"]["coding"][0]["userSelected"] is True


def test_serve(tmp_path: Path) -> None:
    db = tmp_path / "catalog.duckdb"
    with patch("uvicorn.run") as mock_run:
        with patch("coreason_interop.main.os.environ", {}) as mock_env:
            result = runner.invoke(app, ["serve", "--db", str(db), "--port", "9000"])

    assert result.exit_code == 0
    mock_run.assert_called_once_with("coreason_interop.server:app", host="127.0.0.1", port=9000)
    assert mock_env["INTEROP_DB_PATH"] == str(db)


def test_serve_failure(tmp_path: Path) -> None:
    with patch("uvicorn.run", side_effect=RuntimeError("Server crash")):
        with patch("coreason_interop.main.os.environ", {}):
            result = runner.invoke(app, ["serve", "--db", str(tmp_path / "catalog.duckdb")])
    assert result.exit_code == 1


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert f"v{__version__}" in result.stdout
