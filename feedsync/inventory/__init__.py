"""Discovered resource graph consumed by the sync subsystem."""

from __future__ import annotations

from .manager import (
    DiscoveryEvent,
    InventoryEvent,
    MonitoredEndpoint,
    ResourceManager,
    ResourceTypeManager,
)
from .model import (
    AvailType,
    MeasurementInstance,
    MeasurementType,
    MetricKind,
    MetricType,
    Operation,
    OperationParam,
    Resource,
    ResourceConfigurationPropertyInstance,
    ResourceConfigurationPropertyType,
    ResourceType,
    inventory_id,
)
from .snapshot import Snapshot, SnapshotError, load_snapshot, parse_snapshot

__all__ = [
    # Manager
    "DiscoveryEvent",
    "InventoryEvent",
    "MonitoredEndpoint",
    "ResourceManager",
    "ResourceTypeManager",
    # Model
    "AvailType",
    "MeasurementInstance",
    "MeasurementType",
    "MetricKind",
    "MetricType",
    "Operation",
    "OperationParam",
    "Resource",
    "ResourceConfigurationPropertyInstance",
    "ResourceConfigurationPropertyType",
    "ResourceType",
    "inventory_id",
    # Snapshot
    "Snapshot",
    "SnapshotError",
    "load_snapshot",
    "parse_snapshot",
]
