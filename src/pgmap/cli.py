# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CLI entry point for pgmap (pgmap command).

Inspects and upgrades the migration ledger of a database. Migrations are
loaded from the application with ``--migrations package.module:ATTRIBUTE``,
where the attribute is a sequence of Migration objects.

Commands:
    status: Show whether the database is empty, outdated or up to date
    upgrade: Apply every outstanding migration
    history: List the applied migrations recorded in the ledger
    version: Show version info
"""

from __future__ import annotations

import asyncio
import importlib
import sys
from collections.abc import Callable, Sequence
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .config import DatabaseConfig, config_from_env
from .database import Database, DatabaseStatus
from .errors import MigrationError
from .migration import Migration

console = Console()

STATUS_STYLES = {
    DatabaseStatus.EMPTY: "[yellow]empty[/yellow]",
    DatabaseStatus.NEEDS_UPGRADE: "[yellow]needs upgrade[/yellow]",
    DatabaseStatus.UP_TO_DATE: "[green]up to date[/green]",
}


def load_migrations(reference: str | None) -> list[Migration]:
    """Import ``module:attribute`` and return it as a migration list.

    Raises:
        click.BadParameter: If the reference is malformed or cannot be imported.
    """
    if not reference:
        return []
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got '{reference}'", param_hint="--migrations")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}", param_hint="--migrations") from e
    try:
        migrations = getattr(module, attr)
    except AttributeError as e:
        raise click.BadParameter(f"'{module_name}' has no attribute '{attr}'", param_hint="--migrations") from e
    return list(migrations)


def build_config(db: str | None, namespace: str | None) -> DatabaseConfig:
    """Environment configuration, overridden by command line options."""
    config = config_from_env()
    if db:
        config.dsn = db
    if namespace:
        config.namespace = namespace
    return config


def run(
    db: str | None,
    namespace: str | None,
    migrations: Sequence[Migration],
    action: Callable[[Database], Any],
) -> Any:
    """Open the database, run ``action`` and dispose, exiting 1 on history errors."""
    config = build_config(db, namespace)

    async def _main() -> Any:
        async with Database(config, config.namespace, migrations) as database:
            return await action(database)

    try:
        return asyncio.run(_main())
    except MigrationError as e:
        console.print(f"[red]error:[/red] {e}")
        sys.exit(1)


def database_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by every database command."""
    func = click.option(
        "--migrations", "-m", default=None,
        help="Migration list as 'package.module:ATTRIBUTE'.",
    )(func)
    func = click.option(
        "--namespace", "-n", default=None,
        help="Migration namespace (default: PGMAP_NAMESPACE or 'app').",
    )(func)
    func = click.option(
        "--db", "-d", default=None, envvar="PGMAP_DB",
        help="Connection string (postgresql://... or a SQLite file path).",
    )(func)
    return func


# ============================================================================
# CLI Commands
# ============================================================================


@click.group()
@click.version_option(package_name="pgmap")
def main() -> None:
    """pgmap - Typed data access and schema migrations."""
    pass


@main.command("status")
@database_options
def status_cmd(db: str | None, namespace: str | None, migrations: str | None) -> None:
    """Show the migration status of the database."""
    defined = load_migrations(migrations)

    async def action(database: Database) -> tuple[DatabaseStatus, int]:
        status = await database.init()
        return status, len(await database.applied_migrations())

    status, applied = run(db, namespace, defined, action)
    console.print(f"[bold]Status:[/bold] {STATUS_STYLES[status]}")
    console.print(f"[bold]Applied:[/bold] {applied} of {len(defined)}")


@main.command("upgrade")
@database_options
def upgrade_cmd(db: str | None, namespace: str | None, migrations: str | None) -> None:
    """Apply every outstanding migration."""
    defined = load_migrations(migrations)
    if not defined:
        console.print("[dim]No migrations defined.[/dim]")
        return

    async def action(database: Database) -> list[int]:
        await database.init()
        return await database.update_to_latest()

    applied = run(db, namespace, defined, action)
    if not applied:
        console.print("[dim]Database already up to date.[/dim]")
        return
    for version in applied:
        console.print(f"Applied migration {version} [green]ok[/green]")
    console.print(f"\n[green]Applied {len(applied)} migration(s)[/green]")


@main.command("history")
@database_options
def history_cmd(db: str | None, namespace: str | None, migrations: str | None) -> None:
    """List applied migrations recorded in the ledger."""
    defined = {m.version: m for m in load_migrations(migrations)}

    async def action(database: Database) -> list[Any]:
        database.connect()
        return await database.applied_migrations()

    history = run(db, namespace, list(defined.values()), action)
    if not history:
        console.print("[dim]No migrations applied.[/dim]")
        return

    table = Table(title="Applied Migrations")
    table.add_column("Version", justify="right", style="cyan")
    table.add_column("Applied At")
    table.add_column("Hash")
    if defined:
        table.add_column("Check")

    for applied in history:
        row = [
            str(applied.version),
            applied.applied_at.isoformat(sep=" ") if applied.applied_at else "[dim]-[/dim]",
            applied.hash,
        ]
        if defined:
            migration = defined.get(applied.version)
            if migration is None:
                row.append("[yellow]unknown[/yellow]")
            elif migration.hash() == applied.hash:
                row.append("[green]ok[/green]")
            else:
                row.append("[red]changed[/red]")
        table.add_row(*row)

    console.print(table)


@main.command("version")
def version_cmd() -> None:
    """Show version information."""
    from pgmap import __version__

    console.print(f"pgmap {__version__}")


if __name__ == "__main__":
    main()
