"""Load discovery snapshots (YAML) into the in-memory graph provider.

A snapshot looks like::

    endpoint: {name: local, tenant_id: acme}
    metric_types:
      - {id: heap.used, name: Heap Used, kind: gauge, unit: BYTES, interval: 30}
    avail_types:
      - {id: server.avail, name: Server Availability}
    resource_types:
      - id: Server
        name: Server
        metric_types: [heap.used]
        avail_types: [server.avail]
        operations:
          - name: Reload
            parameters: [{name: admin-only, type: bool, required: false}]
        config_property_types: [{id: hostname, name: Hostname}]
    resources:
      - id: server1
        name: Server One
        type: Server
        metrics: [{id: server1.heap, name: Heap Used, type: heap.used}]
        configuration: {hostname: host1}
        children: []
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .manager import DiscoveryEvent, MonitoredEndpoint, ResourceManager, ResourceTypeManager
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

logger = logging.getLogger("feedsync.inventory.snapshot")


class SnapshotError(ValueError):
    """The snapshot is unreadable or references unknown entities."""


@dataclass
class Snapshot:
    endpoint: MonitoredEndpoint
    resource_manager: ResourceManager
    resource_type_manager: ResourceTypeManager

    def to_event(self) -> DiscoveryEvent:
        return DiscoveryEvent(
            resource_manager=self.resource_manager,
            resource_type_manager=self.resource_type_manager,
            endpoint=self.endpoint,
        )

    def find_resource(self, resource_id: str) -> Optional[Resource]:
        for resource in self.resource_manager.get_resources_breadth_first():
            if inventory_id(resource) == resource_id:
                return resource
        return None


def load_snapshot(path: Path) -> Snapshot:
    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise SnapshotError(f"Failed to read snapshot '{path}': {exc}") from exc
    if not isinstance(content, Mapping):
        raise SnapshotError(f"Snapshot '{path}' does not contain a mapping")
    snapshot = parse_snapshot(content)
    logger.info(
        "Loaded snapshot %s: %d resource type(s), %d resource(s)",
        path,
        len(snapshot.resource_type_manager.get_resource_types_breadth_first()),
        snapshot.resource_manager.size(),
    )
    return snapshot


def parse_snapshot(data: Mapping[str, Any]) -> Snapshot:
    endpoint_raw = _mapping(data, "endpoint")
    endpoint = MonitoredEndpoint(
        name=str(endpoint_raw.get("name", "default")),
        tenant_id=endpoint_raw.get("tenant_id"),
    )

    measurement_types: Dict[str, MeasurementType] = {}
    for raw in _list(data, "metric_types"):
        kind = str(raw.get("kind", "gauge")).lower()
        try:
            metric_kind = MetricKind(kind)
        except ValueError as exc:
            raise SnapshotError(f"Unknown metric kind '{kind}'") from exc
        metric_type = MetricType(
            id=str(raw.get("id", "")),
            name=_name(raw),
            properties=_mapping(raw, "properties"),
            interval=_int(raw, "interval", 60),
            metric_kind=metric_kind,
            unit=str(raw.get("unit", "NONE")),
        )
        measurement_types[metric_type.id or metric_type.name] = metric_type
    for raw in _list(data, "avail_types"):
        avail_type = AvailType(
            id=str(raw.get("id", "")),
            name=_name(raw),
            properties=_mapping(raw, "properties"),
            interval=_int(raw, "interval", 60),
        )
        measurement_types[avail_type.id or avail_type.name] = avail_type

    type_manager = ResourceTypeManager()
    for raw in _list(data, "resource_types"):
        resource_type = ResourceType(
            id=str(raw.get("id", "")),
            name=_name(raw),
            properties=_mapping(raw, "properties"),
            operations=[_operation(op) for op in _list(raw, "operations")],
            config_property_types=[
                ResourceConfigurationPropertyType(id=str(p.get("id", "")), name=_name(p))
                for p in _list(raw, "config_property_types")
            ],
            metric_types=[
                _lookup(measurement_types, ref, MetricType) for ref in raw.get("metric_types") or []
            ],
            avail_types=[
                _lookup(measurement_types, ref, AvailType) for ref in raw.get("avail_types") or []
            ],
        )
        type_manager.add_resource_type(resource_type)

    resource_manager = ResourceManager()
    for raw in _list(data, "resources"):
        _add_resource(raw, None, resource_manager, type_manager, measurement_types)

    return Snapshot(endpoint, resource_manager, type_manager)


def _add_resource(
    raw: Mapping[str, Any],
    parent: Optional[Resource],
    resource_manager: ResourceManager,
    type_manager: ResourceTypeManager,
    measurement_types: Dict[str, MeasurementType],
) -> None:
    type_ref = str(raw.get("type", ""))
    resource_type = type_manager.get_resource_type(type_ref)
    if resource_type is None:
        raise SnapshotError(f"Resource '{_name(raw)}' references unknown type '{type_ref}'")

    resource = Resource(
        id=str(raw.get("id", "")),
        name=_name(raw),
        properties=_mapping(raw, "properties"),
        resource_type=resource_type,
        parent=parent,
        metrics=[_instance(m, measurement_types) for m in _list(raw, "metrics")],
        avails=[_instance(a, measurement_types) for a in _list(raw, "avails")],
        config_properties=[
            ResourceConfigurationPropertyInstance(id=str(key), name=str(key), value=_str_or_none(value))
            for key, value in _mapping(raw, "configuration").items()
        ],
    )
    resource_manager.add_resource(resource)
    for child in _list(raw, "children"):
        _add_resource(child, resource, resource_manager, type_manager, measurement_types)


def _operation(raw: Mapping[str, Any]) -> Operation:
    return Operation(
        id=str(raw.get("id", "")),
        name=_name(raw),
        properties=_mapping(raw, "properties"),
        parameters=[
            OperationParam(
                name=_name(p),
                type=p.get("type"),
                description=p.get("description"),
                default_value=_str_or_none(p.get("default_value")),
                required=p.get("required"),
            )
            for p in _list(raw, "parameters")
        ],
    )


def _instance(raw: Mapping[str, Any], measurement_types: Dict[str, MeasurementType]) -> MeasurementInstance:
    type_ref = str(raw.get("type", ""))
    if type_ref not in measurement_types:
        raise SnapshotError(f"Measurement '{_name(raw)}' references unknown type '{type_ref}'")
    return MeasurementInstance(
        id=str(raw.get("id", "")),
        name=_name(raw),
        properties=_mapping(raw, "properties"),
        type=measurement_types[type_ref],
    )


def _lookup(measurement_types: Dict[str, MeasurementType], ref: Any, expected: type) -> Any:
    found = measurement_types.get(str(ref))
    if not isinstance(found, expected):
        raise SnapshotError(f"Unknown {expected.__name__} '{ref}'")
    return found


def _list(data: Mapping[str, Any], key: str) -> List[Mapping[str, Any]]:
    value = data.get(key) or []
    if not isinstance(value, list) or not all(isinstance(item, Mapping) for item in value):
        raise SnapshotError(f"'{key}' must be a list of mappings")
    return value


def _mapping(data: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise SnapshotError(f"'{key}' must be a mapping")
    return dict(value)


def _int(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise SnapshotError(f"'{key}' must be an integer, got {value!r}") from exc


def _name(raw: Mapping[str, Any]) -> str:
    name = raw.get("name") or raw.get("id")
    if not name:
        raise SnapshotError(f"Entry {dict(raw)!r} has neither a name nor an id")
    return str(name)


def _str_or_none(value: Any) -> Optional[str]:
    return None if value is None else str(value)


__all__ = ["Snapshot", "SnapshotError", "load_snapshot", "parse_snapshot"]
