"""Immutable, store-facing projections of discovered entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Tuple, Union


class EntityKind(str, Enum):
    """Kinds of blueprint nodes that can appear in a structure."""
    RESOURCE = "resource"
    RESOURCE_TYPE = "resourceType"
    METRIC_TYPE = "metricType"
    METRIC = "metric"
    OPERATION_TYPE = "operationType"
    DATA_ENTITY = "dataEntity"


# Path segment prefix per entity kind.
SEGMENTS: Dict[EntityKind, str] = {
    EntityKind.RESOURCE: "r",
    EntityKind.RESOURCE_TYPE: "rt",
    EntityKind.METRIC_TYPE: "mt",
    EntityKind.METRIC: "m",
    EntityKind.OPERATION_TYPE: "ot",
    EntityKind.DATA_ENTITY: "d",
}


class DataRole(str, Enum):
    """Role of a structured-data child node."""
    PARAMETER_TYPES = "parameterTypes"
    CONFIGURATION_SCHEMA = "configurationSchema"
    CONFIGURATION = "configuration"


class MetricDataType(str, Enum):
    GAUGE = "GAUGE"
    COUNTER = "COUNTER"
    AVAILABILITY = "AVAILABILITY"


@dataclass(frozen=True)
class ResourceBlueprint:
    kind: ClassVar[EntityKind] = EntityKind.RESOURCE

    id: str
    name: str
    resource_type_path: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "resourceTypePath": self.resource_type_path,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class ResourceTypeBlueprint:
    kind: ClassVar[EntityKind] = EntityKind.RESOURCE_TYPE

    id: str
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class MetricTypeBlueprint:
    kind: ClassVar[EntityKind] = EntityKind.METRIC_TYPE

    id: str
    name: str
    data_type: MetricDataType
    unit: str = "NONE"
    interval: int = 60
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metricDataType": self.data_type.value,
            "unit": self.unit,
            "collectionInterval": self.interval,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class MetricBlueprint:
    kind: ClassVar[EntityKind] = EntityKind.METRIC

    id: str
    name: str
    metric_type_path: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "metricTypePath": self.metric_type_path,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class OperationTypeBlueprint:
    kind: ClassVar[EntityKind] = EntityKind.OPERATION_TYPE

    id: str
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "properties": dict(self.properties),
        }


@dataclass(frozen=True)
class DataEntityBlueprint:
    """Structured data attached to its parent under a fixed role."""

    kind: ClassVar[EntityKind] = EntityKind.DATA_ENTITY

    role: DataRole
    value: Dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.role.value

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role.value, "value": self.value}


Blueprint = Union[
    ResourceBlueprint,
    ResourceTypeBlueprint,
    MetricTypeBlueprint,
    MetricBlueprint,
    OperationTypeBlueprint,
    DataEntityBlueprint,
]


def escape_segment(value: str) -> str:
    """Escape characters that delimit path segments."""
    return value.replace("\\", "\\\\").replace("/", "\\/").replace(";", "\\;")


def unescape_segment(value: str) -> str:
    out: List[str] = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            out.append(next(chars, ""))
        else:
            out.append(char)
    return "".join(out)


def canonical_path(tenant_id: str, feed_id: str, kind: EntityKind, entity_id: str) -> str:
    """Absolute path of a feed-level entity, e.g. ``/t;acme/f;host1/rt;Server``."""
    return "/t;{}/f;{}/{};{}".format(
        escape_segment(tenant_id),
        escape_segment(feed_id),
        SEGMENTS[kind],
        escape_segment(entity_id),
    )


def path_element_id(path: str) -> str:
    """Return the unescaped ID of the last segment of a path."""
    last = _split_unescaped(path, "/")[-1]
    parts = _split_unescaped(last, ";")
    if len(parts) < 2:
        raise ValueError(f"Path '{path}' has no element ID")
    return unescape_segment(";".join(parts[1:]))


def extend_path(path: str, kind: EntityKind, entity_id: str) -> str:
    """Append a segment to a relative path. The root path is the empty string."""
    segment = f"{SEGMENTS[kind]};{escape_segment(entity_id)}"
    return f"{path}/{segment}" if path else segment


def _split_unescaped(value: str, sep: str) -> List[str]:
    # Escape sequences are kept so the parts can be split or unescaped again.
    parts: List[str] = []
    current: List[str] = []
    escaped = False
    for char in value:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == sep:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


@dataclass(frozen=True)
class StructureNode:
    """A blueprint together with its (ordered) child nodes."""

    blueprint: Blueprint
    children: Tuple["StructureNode", ...] = ()

    @property
    def kind(self) -> EntityKind:
        return self.blueprint.kind

    def children_of(self, kind: EntityKind) -> List["StructureNode"]:
        return [child for child in self.children if child.kind == kind]


@dataclass(frozen=True)
class InventoryStructure:
    """A blueprint tree rooted at one resource, or a singleton type."""

    root: StructureNode

    @property
    def root_blueprint(self) -> Blueprint:
        return self.root.blueprint

    def walk(self) -> Iterator[Tuple[str, StructureNode]]:
        """Yield ``(relative path, node)`` depth-first, parents before children."""
        stack: List[Tuple[str, StructureNode]] = [("", self.root)]
        while stack:
            path, node = stack.pop()
            yield path, node
            for child in reversed(node.children):
                stack.append((extend_path(path, child.kind, child.blueprint.id), child))

    def get(self, path: str) -> Optional[StructureNode]:
        for node_path, node in self.walk():
            if node_path == path:
                return node
        return None

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())


__all__ = [
    "Blueprint",
    "DataEntityBlueprint",
    "DataRole",
    "EntityKind",
    "InventoryStructure",
    "MetricBlueprint",
    "MetricDataType",
    "MetricTypeBlueprint",
    "OperationTypeBlueprint",
    "ResourceBlueprint",
    "ResourceTypeBlueprint",
    "SEGMENTS",
    "StructureNode",
    "canonical_path",
    "escape_segment",
    "extend_path",
    "path_element_id",
    "unescape_segment",
]
