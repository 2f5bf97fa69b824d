#!/usr/bin/env python3
"""Buckled management CLI."""

import asyncio
import os
import subprocess
import sys
from pathlib import Path

import click


def _run(args: list[str], *, replace: bool = False) -> None:
    click.echo(
        f"  {click.style('>', dim=True)} {click.style(' '.join(args), dim=True)}\n"
    )
    if replace:
        os.execvp(args[0], args)
    result = subprocess.run(args)
    if result.returncode != 0:
        _fail(f"exited with code {result.returncode}")
        sys.exit(result.returncode)


def _ok(text: str) -> None:
    click.echo(f"  {click.style('✓', fg='green')} {text}")


def _fail(text: str) -> None:
    click.echo(f"  {click.style('✗', fg='red')} {text}")


def _header(text: str) -> None:
    click.echo(f"\n  {click.style(text, fg='cyan', bold=True)}\n")


@click.group()
def cli() -> None:
    """Buckled management CLI."""


@cli.command()
@click.argument("uvicorn_args", nargs=-1)
def app(uvicorn_args: tuple[str, ...]) -> None:
    """Start uvicorn with --reload."""
    _header("Starting Buckled")
    _run(
        ["uv", "run", "uvicorn", "buckled.app:app", "--reload", *uvicorn_args],
        replace=True,
    )


@cli.command()
@click.argument("pytest_args", nargs=-1)
def test(pytest_args: tuple[str, ...]) -> None:
    """Run pytest."""
    _header("Running tests")
    _run(["uv", "run", "pytest", "tests/", "-v", *pytest_args], replace=True)


@cli.command()
def lint() -> None:
    """Run mypy."""
    _header("Running mypy")
    _run(["uv", "run", "mypy", "."])
    _ok("Type check passed")


@cli.command()
@click.argument("text")
def extract(text: str) -> None:
    """Run a service description through extraction and profile matching."""
    from buckled.base.dependencies import get_extraction_client, storage
    from buckled.context.manager import SmartContextManager

    async def _extract() -> str:
        session = await storage.get_user_session()
        data = await get_extraction_client().extract_from_text(text, session)
        result = await SmartContextManager(storage).process_extraction(data)
        _ok(
            f"{data.service_info.primary_service} "
            f"({data.service_info.confidence.value:.0f}% confidence)"
        )
        return result.model_dump_json(by_alias=True, indent=2)

    _header("Extracting service information")
    click.echo(asyncio.run(_extract()))


@cli.group()
def data() -> None:
    """Stored data management commands."""


@data.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
def export_data(path: Path) -> None:
    """Write every stored record to a JSON file."""
    from buckled.base.dependencies import storage

    _header(f"Exporting to {path}")
    path.write_text(asyncio.run(storage.export_all_data()))
    _ok("Export written")


@data.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_data(path: Path) -> None:
    """Load records from an export file, replacing records with the same id."""
    from buckled.base.dependencies import storage

    _header(f"Importing {path}")
    document = asyncio.run(storage.import_data(path.read_bytes()))
    _ok(
        f"Imported {len(document.extracted_data)} extractions and "
        f"{len(document.vehicle_profiles)} vehicle profiles"
    )


@data.command("clear")
@click.confirmation_option(prompt="Delete all stored data?")
def clear_data() -> None:
    """Delete every stored record and the session cache."""
    from buckled.base.dependencies import storage

    _header("Clearing stored data")
    asyncio.run(storage.clear_all_data())
    _ok("All data cleared")


if __name__ == "__main__":
    cli()
