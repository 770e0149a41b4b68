"""
ADHD Planner sync CLI Interface
Command line interface implemented using Typer
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
import uvicorn

from planner_sync.config.loader import load_config
from planner_sync.core.logger import get_logger, setup_logging

logger = get_logger(__name__)

app = typer.Typer(help="ADHD Planner local store and local-to-remote migration")


def _init(config_file: Optional[str]) -> None:
    load_config(config_file)
    setup_logging()


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, ensure_ascii=False))


@app.command()
def start(
    host: str = typer.Option("127.0.0.1", help="Server host address"),
    port: int = typer.Option(8000, help="Server port"),
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
    debug: bool = typer.Option(False, help="Enable debug mode"),
):
    """Start the API server"""
    try:
        _init(config_file)

        logger.info("Starting Planner Sync service...")
        logger.info(f"Host: {host}, Port: {port}")
        logger.info(f"Debug mode: {debug}")

        uvicorn.run(
            "planner_sync.app:app",
            host=host,
            port=port,
            reload=debug,
            log_level="debug" if debug else "info",
        )

    except Exception as e:
        logger.error(f"Failed to start service: {e}")
        raise typer.Exit(1)


@app.command()
def analyze(
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
):
    """Show how much local data would be migrated"""
    _init(config_file)
    from planner_sync.services.migration_service import get_migration_service

    result = get_migration_service().analyze()
    if not result["hasData"]:
        typer.echo("No local data found")
    _echo_json(result["totals"])


@app.command()
def migrate(
    owner_id: Optional[str] = typer.Option(
        None, help="Owner (user) id, defaults to remote.owner_id"
    ),
    clear_local_after: Optional[bool] = typer.Option(
        None,
        "--clear-local-after/--keep-local",
        help="Remove local data after a fully successful migration",
    ),
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
):
    """Migrate local data to the remote store"""
    _init(config_file)
    from planner_sync.services.migration_service import get_migration_service

    service = get_migration_service()

    async def run_migration():
        task = await service.start(owner_id, clear_local_after)
        try:
            return await task
        except asyncio.CancelledError:
            service.cancel()
            raise

    try:
        report = asyncio.run(run_migration())
    except ValueError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)
    except KeyboardInterrupt:
        typer.echo("Migration interrupted", err=True)
        raise typer.Exit(130)

    _echo_json(report.to_dict())
    if not report.success:
        typer.echo(f"Migration failed: {report.error}", err=True)
        raise typer.Exit(1)


@app.command("export")
def export_data(
    output: Optional[Path] = typer.Option(None, help="Write to file instead of stdout"),
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
):
    """Export local data as JSON"""
    _init(config_file)
    from planner_sync.core.db import get_local_store

    data = get_local_store().export_data()
    if output is None:
        typer.echo(data)
        return

    output.write_text(data, encoding="utf-8")
    typer.echo(f"Exported to {output}")


@app.command("import")
def import_data(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Backup file"),
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
):
    """Import a JSON backup into the local store"""
    _init(config_file)
    from planner_sync.core.db import get_local_store

    if not get_local_store().import_data(source.read_text(encoding="utf-8")):
        typer.echo("Invalid backup data", err=True)
        raise typer.Exit(1)
    typer.echo("Local data imported")


@app.command()
def duplicates(
    owner_id: Optional[str] = typer.Option(
        None, help="Owner (user) id, defaults to remote.owner_id"
    ),
    cleanup: bool = typer.Option(False, help="Delete duplicates, keeping the oldest"),
    kind: List[str] = typer.Option(
        ["tasks", "projects", "categories"], help="Record kinds to clean"
    ),
    config_file: Optional[str] = typer.Option(None, help="Configuration file path"),
):
    """Find (and optionally delete) duplicated remote records"""
    _init(config_file)
    from planner_sync.services.migration_service import get_migration_service
    from planner_sync.remote.client import RemoteStoreError

    service = get_migration_service()
    try:
        if cleanup:
            result = asyncio.run(service.cleanup_duplicates(owner_id, kind))
            _echo_json(result.to_dict())
            if result.partial:
                raise typer.Exit(1)
        else:
            report = asyncio.run(service.find_duplicates(owner_id))
            _echo_json(report.to_dict())
    except (ValueError, RemoteStoreError) as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(2)


def main():
    """Main function"""
    app()


if __name__ == "__main__":
    main()
