# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

import os
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from loguru import logger

from coreason_interop import __version__
from coreason_interop.build import CatalogBuilder
from coreason_interop.database import Database
from coreason_interop.exceptions import MappingNotFound
from coreason_interop.mappings import MappingCatalog
from coreason_interop.resolver import MappingResolver
from coreason_interop.synthesizer import ResourceSynthesizer
from coreason_interop.terminology import TerminologyCatalog

app = typer.Typer(
    name="coreason-interop",
    help="CLI for coreason-interop: traditional-medicine to ICD-11 terminology bridge.",
    add_completion=False,
)


def _open_resolver(db: Path) -> MappingResolver:
    database = Database(db, read_only=True)
    conn = database.connection
    return MappingResolver(TerminologyCatalog(conn), MappingCatalog(conn))


@app.command()
def build(
    terminology: Annotated[
        Path, typer.Option("--terminology", "-t", help="Path to terminology CSV", exists=True, dir_okay=False)
    ],
    output: Annotated[Path, typer.Option("--output", "-o", help="Path to the catalog database file")],
    mappings: Annotated[
        Optional[Path], typer.Option("--mappings", "-m", help="Path to mapping records JSON", exists=True)
    ] = None,
) -> None:
    """
    Load a terminology CSV (and optionally mapping records) into a catalog database.
    """
    logger.info(f"Starting catalog build into {output}")

    database = None
    try:
        database = Database(output).initialize()
        builder = CatalogBuilder(database)

        report = builder.load_terminology_csv(terminology)
        typer.echo(report.model_dump_json(indent=2))

        if mappings is not None:
            count = builder.load_mappings_json(mappings)
            typer.echo(f"Loaded {count} mapping record(s)")

        logger.info("Catalog Build Completed Successfully.")

    except Exception:
        logger.exception("Catalog Build Failed")
        sys.exit(1)
    finally:
        if database is not None:
            database.close()


@app.command()
def resolve(
    code: Annotated[str, typer.Argument(help="Source code to resolve, e.g. NAM-A01.1")],
    db: Annotated[Path, typer.Option("--db", help="Path to the catalog database file", exists=True)],
    system: Annotated[Optional[str], typer.Option("--system", "-s", help="Optional source system filter")] = None,
) -> None:
    """
    Print the mappings for a code.
    """
    try:
        result = _open_resolver(db).resolve(code, system)
    except MappingNotFound as e:
        typer.echo(f"No mappings found for {e.code} (system: {e.system})", err=True)
        sys.exit(1)
    except Exception:
        logger.exception("Resolution Failed")
        sys.exit(1)
    typer.echo(result.model_dump_json(by_alias=True, indent=2))


@app.command()
def condition(
    code: Annotated[str, typer.Argument(help="Source code to render as a FHIR Condition")],
    db: Annotated[Path, typer.Option("--db", help="Path to the catalog database file", exists=True)],
    system: Annotated[Optional[str], typer.Option("--system", "-s", help="Optional source system filter")] = None,
) -> None:
    """
    Print a FHIR Condition carrying the code and every mapped code.
    """
    try:
        result = _open_resolver(db).resolve(code, system)
        resource = ResourceSynthesizer().synthesize(result)
    except MappingNotFound as e:
        typer.echo(f"No mappings found for {e.code} (system: {e.system})", err=True)
        sys.exit(1)
    except Exception:
        logger.exception("Condition Synthesis Failed")
        sys.exit(1)
    typer.echo(resource.model_dump_json(by_alias=True, exclude_none=True, indent=2))


@app.command()
def serve(
    db: Annotated[Path, typer.Option("--db", help="Path to the catalog database file")],
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
) -> None:
    """
    Run the HTTP API.
    """
    import uvicorn

    os.environ["INTEROP_DB_PATH"] = str(db)
    try:
        uvicorn.run("coreason_interop.server:app", host=host, port=port)
    except Exception:
        logger.exception("Server Failed")
        sys.exit(1)


@app.command()
def version() -> None:
    """Print the version of coreason-interop."""
    typer.echo(f"coreason-interop v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()  # pragma: no cover
