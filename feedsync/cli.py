"""Command line entry point: ``python -m feedsync``."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .agents import run_inventory_agent
from .configuration import ConfigurationBundle, load_runtime_configuration
from .diagnostics import Diagnostics
from .inventory import InventoryEvent, Snapshot, SnapshotError, load_snapshot
from .logging_utils import setup_logging
from .sync import (
    ExtendedStructure,
    InventoryBlob,
    InventoryStorage,
    PayloadBuilder,
    StorageSettings,
    SyncReport,
    compress_and_chunk,
)
from .sync.client import Transport

logger = logging.getLogger("feedsync.cli")

STATE_STYLES = {
    "done": "green",
    "deleted": "green",
    "skipped": "dim",
    "stuck": "red",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedsync",
        description="Synchronize discovered inventory with a remote store.",
    )
    parser.add_argument("--home", type=Path, help="Agent home directory (default: $FEEDSYNC_HOME)")
    parser.add_argument("--log-level", help="Override logging.level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show the effective storage configuration")
    sub.add_parser("agent", help="Run the inventory agent (syncs inventory.snapshot when set)")

    sync_cmd = sub.add_parser("sync", help="Sync a discovery snapshot")
    sync_cmd.add_argument("snapshot", type=Path)

    remove_cmd = sub.add_parser("remove", help="Remove a resource of a snapshot from the store")
    remove_cmd.add_argument("snapshot", type=Path)
    remove_cmd.add_argument("resource_id")

    inspect_cmd = sub.add_parser("inspect", help="Show the sync units of a snapshot without uploading")
    inspect_cmd.add_argument("snapshot", type=Path)
    return parser


def main(
    argv: Optional[Sequence[str]] = None,
    console: Optional[Console] = None,
    transport: Optional[Transport] = None,
) -> int:
    args = build_parser().parse_args(argv)
    console = console or Console()

    bundle = load_runtime_configuration(args.home)
    level = args.log_level or bundle.section("logging").get("level", "INFO")
    if bundle.home_dir.is_dir():
        bundle.log_path = setup_logging(
            bundle.home_dir,
            level,
            structured=bool(bundle.section("logging").get("structured", True)),
            console=False,
        )

    settings = StorageSettings.from_config(bundle.merged)
    logger.debug("Running %s (configuration %s, feed %s)", args.command, bundle.status, settings.feed_id)

    if args.command == "status":
        _render_status(console, bundle, settings)
        return 0 if bundle.status == "ready" else 1

    if args.command == "agent":
        result = run_inventory_agent(bundle, transport=transport)
        style = "green" if result.status in ("ok", "disabled") else "red"
        console.print(f"[{style}]inventory.agent {result.status}: {escape(result.detail)}[/{style}]")
        return 0 if result.status in ("ok", "disabled") else 1

    try:
        snapshot = load_snapshot(args.snapshot)
    except SnapshotError as e:
        console.print(f"[red]feedsync: {escape(str(e))}[/red]")
        return 2

    if args.command == "inspect":
        _render_inspect(console, snapshot, settings)
        return 0

    storage = InventoryStorage(settings, diagnostics=Diagnostics(), transport=transport)
    try:
        if args.command == "sync":
            report = storage.discovery_completed(snapshot.to_event())
        else:
            report = _remove(storage, snapshot, args.resource_id)
    except ValueError as e:
        console.print(f"[red]feedsync: {escape(str(e))}[/red]")
        return 2
    finally:
        storage.shutdown()

    _render_report(console, report)
    return 0 if report.success else 1


def _remove(storage: InventoryStorage, snapshot: Snapshot, resource_id: str) -> SyncReport:
    resource = snapshot.find_resource(resource_id)
    if resource is None:
        raise ValueError(f"Resource '{resource_id}' is not part of the snapshot")
    removed = snapshot.resource_manager.remove_resource(resource)
    return storage.resources_removed(InventoryEvent(endpoint=snapshot.endpoint, payload=removed))


def _render_status(console: Console, bundle: ConfigurationBundle, settings: StorageSettings) -> None:
    table = Table(title="Inventory Storage", show_header=False)
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Home", str(bundle.home_dir))
    table.add_row("Configuration", bundle.status)
    table.add_row("Store URL", settings.url)
    table.add_row("Metrics Context", settings.metrics_context)
    table.add_row("Tenant", settings.tenant_id or "(per endpoint)")
    table.add_row("Feed", settings.feed_id)
    table.add_row("Chunk Size", str(settings.chunk_size))
    if bundle.log_path:
        table.add_row("Log", str(bundle.log_path))
    console.print(table)

    for diag in bundle.diagnostics:
        style = {"error": "red", "warning": "yellow"}.get(diag.level, "dim")
        console.print(f"[{style}]{diag.level}: {escape(diag.message)}[/{style}]")


def _render_report(console: Console, report: SyncReport) -> None:
    table = Table(title=f"Sync Units ({report.summary()})")
    table.add_column("Unit", style="cyan")
    table.add_column("State")
    table.add_column("Chunks", justify="right")
    table.add_column("Bytes", justify="right")
    table.add_column("Error", style="dim")
    for unit in report.units:
        style = STATE_STYLES.get(unit.state.value, "yellow")
        table.add_row(
            escape(unit.unit),
            f"[{style}]{unit.state.value}[/{style}]",
            str(unit.chunks),
            str(unit.size),
            escape(unit.error or ""),
        )
    console.print(table)


def _render_inspect(console: Console, snapshot: Snapshot, settings: StorageSettings) -> None:
    tenant_id = snapshot.endpoint.tenant_id or settings.tenant_id or "-"
    builder = PayloadBuilder(tenant_id, settings.feed_id)
    types = snapshot.resource_type_manager.get_resource_types_breadth_first()

    rows: List[tuple] = []
    for structure in builder.build_metric_types(types).values():
        blob = InventoryBlob.metric_type(settings.feed_id, structure.root_blueprint.id)
        rows.append((blob, ExtendedStructure(structure), len(structure)))
    for structure in builder.build_resource_types(types).values():
        blob = InventoryBlob.resource_type(settings.feed_id, structure.root_blueprint.id)
        rows.append((blob, ExtendedStructure(structure), len(structure)))
    for structure in builder.build_resources(snapshot.resource_manager).values():
        extended = ExtendedStructure.for_resource_tree(structure)
        blob = InventoryBlob.resource(settings.feed_id, structure.root_blueprint.id, extended.types_index or {})
        rows.append((blob, extended, len(structure)))

    table = Table(title=f"Sync Units for endpoint '{snapshot.endpoint.name}'")
    table.add_column("Unit", style="cyan")
    table.add_column("Nodes", justify="right")
    table.add_column("Chunks", justify="right")
    table.add_column("Compressed", justify="right")
    for blob, extended, nodes in rows:
        chunks = compress_and_chunk(blob, extended, settings.chunk_size)
        size = chunks[0].tags["size"] if chunks else "0"
        table.add_row(escape(blob.name), str(nodes), str(len(chunks)), size)
    console.print(table)


__all__ = ["build_parser", "main"]
