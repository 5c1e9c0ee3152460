"""Inventory agent: validates storage settings and optionally syncs a snapshot."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from ..configuration import ConfigurationBundle, Diagnostic
from ..diagnostics import Diagnostics
from ..sync.client import Transport

logger = logging.getLogger("feedsync.agents.inventory")


@dataclass
class InventoryAgentResult:
    """Summary data returned after the inventory agent runs."""

    status: Literal["ok", "failed", "disabled", "error"]
    detail: str
    feed_id: str = ""
    tenant_id: str = ""
    store_url: str = ""
    snapshot: Optional[str] = None
    report: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "detail": self.detail,
            "feed_id": self.feed_id,
            "tenant_id": self.tenant_id,
            "store_url": self.store_url,
            "snapshot": self.snapshot,
            "report": self.report,
            "errors": self.errors,
        }


def run_inventory_agent(
    bundle: ConfigurationBundle,
    diagnostics: Optional[Diagnostics] = None,
    transport: Optional[Transport] = None,
) -> InventoryAgentResult:
    """Check the storage configuration and sync ``inventory.snapshot`` if set."""

    inventory_config = bundle.section("inventory")
    if not inventory_config.get("enabled", True):
        detail = "inventory.agent disabled via configuration."
        logger.info(detail)
        return InventoryAgentResult(status="disabled", detail=detail)

    # Import here to keep configuration loading free of sync imports
    from ..inventory import SnapshotError, load_snapshot
    from ..sync import InventoryStorage, StorageSettings

    settings = StorageSettings.from_config(bundle.merged)
    result = InventoryAgentResult(
        status="ok",
        detail="",
        feed_id=settings.feed_id,
        tenant_id=settings.tenant_id or "(per endpoint)",
        store_url=settings.url,
    )

    if not settings.url:
        result.status = "error"
        result.detail = "storage.url is not configured"
        result.errors.append(result.detail)
        bundle.diagnostics.append(Diagnostic(level="error", message=result.detail))
        return result

    snapshot_path = inventory_config.get("snapshot") or ""
    if not snapshot_path:
        result.detail = f"Ready to sync feed '{settings.feed_id}' to {settings.url}"
        logger.info("inventory.agent completed: %s", result.detail)
        return result

    path = Path(snapshot_path)
    if not path.is_absolute():
        path = bundle.home_dir / path
    result.snapshot = str(path)

    try:
        snapshot = load_snapshot(path)
        storage = InventoryStorage(settings, diagnostics=diagnostics, transport=transport)
        report = storage.discovery_completed(snapshot.to_event())
    except (SnapshotError, ValueError) as e:
        result.status = "error"
        result.detail = f"Inventory agent error: {e}"
        result.errors.append(str(e))
        logger.error(result.detail)
        return result

    result.report = report.to_dict()
    result.status = "ok" if report.success else "failed"
    result.detail = report.summary()
    result.errors = [unit.error for unit in report.units if unit.error]
    logger.info("inventory.agent completed: %s", result.detail)
    return result


__all__ = ["run_inventory_agent", "InventoryAgentResult"]
