"""Inventory storage: turns discovery events into sync units."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..diagnostics import Diagnostics
from ..inventory.manager import DiscoveryEvent, InventoryEvent, MonitoredEndpoint
from ..inventory.model import Resource, inventory_id
from .blueprint import InventoryStructure
from .builder import PayloadBuilder
from .chunker import DEFAULT_CHUNK_SIZE, InventoryBlob, compress_and_chunk
from .client import StorageClient, Transport, UrllibTransport, tenant_headers
from .codec import ExtendedStructure
from .protocol import ChunkUploader, SyncCancelled, UnitState, UnitSyncResult

logger = logging.getLogger("feedsync.sync.storage")


@dataclass
class StorageSettings:
    """Settings for the remote inventory store."""

    url: str = "http://localhost:8080"
    metrics_context: str = "/hawkular/metrics/"
    tenant_id: str = ""
    feed_id: str = ""
    chunk_size: int = DEFAULT_CHUNK_SIZE
    timeout: float = 30.0

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "StorageSettings":
        raw = config.get("storage", {}) if config else {}
        return cls(
            url=str(raw.get("url", "http://localhost:8080")),
            metrics_context=str(raw.get("metrics_context", "/hawkular/metrics/")),
            tenant_id=str(raw.get("tenant_id") or ""),
            feed_id=str(raw.get("feed_id") or "") or socket.gethostname(),
            chunk_size=int(raw.get("chunk_size", DEFAULT_CHUNK_SIZE)),
            timeout=float(raw.get("timeout", 30.0)),
        )


@dataclass
class SyncReport:
    """Results of every unit handled by one event."""

    units: List[UnitSyncResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for unit in self.units if unit.ok)

    @property
    def failed(self) -> int:
        return sum(1 for unit in self.units if not unit.ok)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def summary(self) -> str:
        if not self.units:
            return "nothing to sync"
        return f"{self.succeeded} unit(s) synced, {self.failed} failed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "units": [unit.to_dict() for unit in self.units],
        }


class InventoryStorage:
    """Syncs discovered inventory to the remote store.

    Measurement types go first, then resource types, then one unit per root
    resource. Units succeed or fail independently; only successful units are
    flagged as persisted.
    """

    def __init__(
        self,
        settings: StorageSettings,
        diagnostics: Optional[Diagnostics] = None,
        transport: Optional[Transport] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.settings = settings
        self.feed_id = settings.feed_id
        self.diagnostics = diagnostics or Diagnostics()
        self.cancel_event = cancel_event or threading.Event()
        self.client = StorageClient(
            settings.url,
            settings.metrics_context,
            transport or UrllibTransport(timeout=settings.timeout),
        )
        self.uploader = ChunkUploader(self.client, self.diagnostics, self.cancel_event)

    def shutdown(self) -> None:
        logger.debug("Shutting down inventory storage")
        self.cancel_event.set()

    def resolve_tenant(self, endpoint: MonitoredEndpoint) -> str:
        tenant_id = endpoint.tenant_id or self.settings.tenant_id
        if not tenant_id:
            raise ValueError(
                f"No tenant configured for endpoint '{endpoint.name}' "
                "(set storage.tenant_id or the endpoint tenant)"
            )
        return tenant_id

    def resources_added(self, event: InventoryEvent) -> None:
        # Nothing to do; the tree is synced when discovery completes.
        return None

    def resources_removed(self, event: InventoryEvent) -> SyncReport:
        """Delete removed root resources from the store.

        Removed children are not deleted here. Their ancestors lose the
        persisted flag, so the next discovery pass resends the surviving
        root tree without them.
        """
        report = SyncReport()
        roots: List[Resource] = []
        for resource in event.payload:
            if resource.parent is None:
                roots.append(resource)
            else:
                _mark_ancestors_dirty(resource)
        if not roots:
            return report

        headers = tenant_headers(self.resolve_tenant(event.endpoint))
        for resource in roots:
            blob = InventoryBlob.resource(self.feed_id, inventory_id(resource))
            logger.debug("Removing root resource: %r", resource)
            try:
                result = self.uploader.delete_unit(blob, headers)
            except SyncCancelled:
                logger.warning("Removal of %s interrupted", blob.name)
                raise
            self._record(result)
            report.units.append(result)
        return report

    def discovery_completed(self, event: DiscoveryEvent) -> SyncReport:
        tenant_id = self.resolve_tenant(event.endpoint)
        headers = tenant_headers(tenant_id)
        builder = PayloadBuilder(tenant_id, self.feed_id)
        resource_manager = event.resource_manager
        report = SyncReport()

        # Types never change during the agent's lifetime, so persisted
        # types are not processed again.
        resource_types = event.resource_type_manager.get_resource_types_breadth_first()

        # Build everything up front so malformed entities fail before any call.
        metric_structures = builder.build_metric_types(resource_types)
        type_structures = builder.build_resource_types(resource_types)
        tree_structures = builder.build_resources(resource_manager)

        # Resource types reference measurement types, so those go first.
        for measurement_type, structure in metric_structures.items():
            blob = InventoryBlob.metric_type(self.feed_id, structure.root_blueprint.id)
            result = self._sync_unit(blob, ExtendedStructure(structure), headers, 1)
            if result.ok:
                measurement_type.persisted = True
            report.units.append(result)

        for resource_type, structure in type_structures.items():
            blob = InventoryBlob.resource_type(self.feed_id, structure.root_blueprint.id)
            result = self._sync_unit(blob, ExtendedStructure(structure), headers, 1)
            if result.ok:
                resource_type.persisted = True
            report.units.append(result)

        # An endpoint may define several roots; each one is its own unit.
        for root, structure in tree_structures.items():
            subtree = resource_manager.get_subtree(root)
            result = self._sync_resource_tree(structure, headers, len(subtree))
            if result.ok:
                for resource in subtree:
                    resource.persisted = True
            report.units.append(result)

        logger.info(
            "Inventory sync for endpoint '%s': %s",
            event.endpoint.name,
            report.summary(),
        )
        return report

    def _sync_resource_tree(
        self,
        structure: InventoryStructure,
        headers: Dict[str, str],
        element_count: int,
    ) -> UnitSyncResult:
        extended = ExtendedStructure.for_resource_tree(structure)
        blob = InventoryBlob.resource(
            self.feed_id,
            structure.root_blueprint.id,
            extended.types_index or {},
        )
        return self._sync_unit(blob, extended, headers, element_count)

    def _sync_unit(
        self,
        blob: InventoryBlob,
        extended: ExtendedStructure,
        headers: Dict[str, str],
        element_count: int,
    ) -> UnitSyncResult:
        chunks = compress_and_chunk(blob, extended, self.settings.chunk_size)
        if not chunks:
            return UnitSyncResult(unit=blob.name, state=UnitState.SKIPPED)
        try:
            result = self.uploader.upload(chunks, headers, element_count)
        except SyncCancelled:
            logger.warning("Sync of %s interrupted", blob.name)
            raise
        self._record(result)
        return result

    def _record(self, result: UnitSyncResult) -> None:
        if result.ok:
            return
        logger.error(
            "Failed to store inventory data for %s during %s: %s",
            result.unit,
            result.failed_phase.value if result.failed_phase else "lookup",
            result.error,
            extra={"unit": result.unit},
        )
        self.diagnostics.storage_error_rate.mark(1)


def _mark_ancestors_dirty(resource: Resource) -> None:
    parent = resource.parent
    while parent is not None:
        parent.persisted = False
        parent = parent.parent


__all__ = ["InventoryStorage", "StorageSettings", "SyncReport"]
