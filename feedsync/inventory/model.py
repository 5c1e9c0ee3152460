"""In-memory entities produced by resource discovery."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class MetricKind(str, Enum):
    """Kinds of numeric metrics a metric type can describe."""
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(eq=False)
class NamedObject:
    """Base for every discovered entity: an optional ID plus a display name."""

    id: str
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, name={self.name!r})"


def inventory_id(obj: NamedObject) -> str:
    """Return the identity used in the store: the ID, or the name when no ID is set."""
    return obj.id if obj.id else obj.name


@dataclass(eq=False, repr=False)
class MeasurementType(NamedObject):
    """Shared attributes of metric and availability types."""

    interval: int = 60  # collection interval in seconds
    persisted: bool = False


@dataclass(eq=False, repr=False)
class MetricType(MeasurementType):
    """A numeric metric definition."""

    metric_kind: MetricKind = MetricKind.GAUGE
    unit: str = "NONE"


@dataclass(eq=False, repr=False)
class AvailType(MeasurementType):
    """An availability (up/down) definition."""


@dataclass
class OperationParam:
    """Typed parameter declared by an operation."""

    name: str
    type: Optional[str] = None
    description: Optional[str] = None
    default_value: Optional[str] = None
    required: Optional[bool] = None


@dataclass(eq=False, repr=False)
class Operation(NamedObject):
    """An operation a resource type declares."""

    parameters: List[OperationParam] = field(default_factory=list)


@dataclass(eq=False, repr=False)
class ResourceConfigurationPropertyType(NamedObject):
    """Declared configuration property of a resource type."""


@dataclass(eq=False, repr=False)
class ResourceType(NamedObject):
    """Type shared by any number of resources."""

    operations: List[Operation] = field(default_factory=list)
    config_property_types: List[ResourceConfigurationPropertyType] = field(default_factory=list)
    metric_types: List[MetricType] = field(default_factory=list)
    avail_types: List[AvailType] = field(default_factory=list)
    persisted: bool = False

    def measurement_types(self) -> List[MeasurementType]:
        return [*self.metric_types, *self.avail_types]


@dataclass(eq=False, repr=False)
class MeasurementInstance(NamedObject):
    """A metric or availability attached to a single resource."""

    type: Optional[MeasurementType] = None


@dataclass(eq=False, repr=False)
class ResourceConfigurationPropertyInstance(NamedObject):
    """Value of a configuration property on a resource."""

    value: Optional[str] = None


@dataclass(eq=False, repr=False)
class Resource(NamedObject):
    """A discovered resource. Children are tracked by the ResourceManager."""

    resource_type: Optional[ResourceType] = None
    parent: Optional["Resource"] = None
    metrics: List[MeasurementInstance] = field(default_factory=list)
    avails: List[MeasurementInstance] = field(default_factory=list)
    config_properties: List[ResourceConfigurationPropertyInstance] = field(default_factory=list)
    persisted: bool = False


__all__ = [
    "AvailType",
    "MeasurementInstance",
    "MeasurementType",
    "MetricKind",
    "MetricType",
    "NamedObject",
    "Operation",
    "OperationParam",
    "Resource",
    "ResourceConfigurationPropertyInstance",
    "ResourceConfigurationPropertyType",
    "ResourceType",
    "inventory_id",
]
