from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Iterator, Optional, TextIO

import typer
from loguru import logger
from pydantic import ValidationError

from .dlq import RejectedRecordLog
from .engine import FileLifecycleEngine
from .errors import SinkError
from .reader import iter_records, read_header
from .runner import SinkRunner
from .settings import SinkSettings
from .storage import LocalFileSystemStorage

app = typer.Typer(help="record-sink: stream records into rotated Avro container files")


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def iter_ndjson(fh: TextIO) -> Iterator[dict]:
    for line in fh:
        line = line.strip()
        if line:
            yield json.loads(line)


@app.command("write")
def write(
    input_path: str = typer.Argument("-", help="NDJSON input file ('-' for stdin)"),
    base_path: Optional[str] = typer.Option(None, "--base-path", help="Output directory"),
    schema: Optional[str] = typer.Option(None, "--schema", help="Inline Avro schema JSON"),
    schema_file: Optional[Path] = typer.Option(None, "--schema-file", help="Avro schema file"),
    rotation_size: Optional[float] = typer.Option(None, "--rotation-size"),
    rotation_unit: Optional[str] = typer.Option(None, "--rotation-unit", help="KB, MB, GB or TB"),
    sync_count: Optional[int] = typer.Option(None, "--sync-count", help="Sync every N records"),
    codec: Optional[str] = typer.Option(None, "--codec", help="null, deflate, bzip2 or xz"),
    instance_id: Optional[str] = typer.Option(None, "--instance-id"),
    prefix: Optional[str] = typer.Option(None, "--prefix"),
    extension: Optional[str] = typer.Option(None, "--extension"),
    move_to: Optional[str] = typer.Option(None, "--move-to", help="Move rotated files here"),
    rejected: Optional[Path] = typer.Option(None, "--rejected", help="NDJSON file for rejected records"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Write NDJSON records into rotated container files. Unset options fall back to RECORD_SINK_* env vars."""
    _configure_logging(verbose)
    overrides = {
        "base_path": base_path,
        "schema_definition": schema,
        "schema_file": schema_file,
        "rotation_size": rotation_size,
        "rotation_unit": rotation_unit,
        "sync_count": sync_count,
        "codec": codec,
        "instance_id": instance_id,
        "prefix": prefix,
        "extension": extension,
        "move_to": move_to,
    }
    try:
        settings = SinkSettings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(code=2)

    try:
        engine = FileLifecycleEngine.from_settings(settings, LocalFileSystemStorage())
        runner = SinkRunner(engine, RejectedRecordLog(rejected) if rejected else None)
        if input_path == "-":
            summary = runner.run(iter_ndjson(sys.stdin))
        else:
            with open(input_path, "r", encoding="utf-8") as fh:
                summary = runner.run(iter_ndjson(fh))
    except (SinkError, OSError, ValueError) as e:
        logger.error(f"Sink failed: {type(e).__name__}: {e}")
        raise typer.Exit(code=1)

    typer.echo(
        json.dumps(
            {
                "accepted": summary.accepted,
                "rejected": summary.rejected,
                "files": summary.files,
            },
            indent=2,
        )
    )


@app.command("ls")
def ls(directory: str = typer.Argument(..., help="Directory to list")):
    """List files with their visible lengths."""
    for status in LocalFileSystemStorage().list(directory):
        typer.echo(json.dumps({"path": status.path, "length": status.length}))


@app.command("cat")
def cat(path: str = typer.Argument(..., help="Container file to decode")):
    """Decode a container file to NDJSON."""
    try:
        for record in iter_records(LocalFileSystemStorage(), path):
            typer.echo(json.dumps(record, default=str))
    except SinkError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)


@app.command("header")
def header(path: str = typer.Argument(..., help="Container file")):
    """Print the schema and codec stored in a container header."""
    try:
        h = read_header(LocalFileSystemStorage(), path)
    except SinkError as e:
        logger.error(str(e))
        raise typer.Exit(code=1)
    typer.echo(json.dumps({"codec": h.codec, "schema": h.schema.definition}, indent=2))


if __name__ == "__main__":
    app()
