"""Blueprint tree builder for inventory sync units."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from ..inventory.manager import ResourceManager
from ..inventory.model import (
    AvailType,
    MeasurementInstance,
    MeasurementType,
    MetricKind,
    MetricType,
    Operation,
    Resource,
    ResourceConfigurationPropertyInstance,
    ResourceConfigurationPropertyType,
    ResourceType,
    inventory_id,
)
from .blueprint import (
    DataEntityBlueprint,
    DataRole,
    EntityKind,
    InventoryStructure,
    MetricBlueprint,
    MetricDataType,
    MetricTypeBlueprint,
    OperationTypeBlueprint,
    ResourceBlueprint,
    ResourceTypeBlueprint,
    StructureNode,
    canonical_path,
)

logger = logging.getLogger("feedsync.sync.builder")


@dataclass
class _AddedIds:
    """IDs already emitted during one build call."""

    resource_types: Set[str] = field(default_factory=set)
    metric_types: Set[str] = field(default_factory=set)


class PayloadBuilder:
    """Builds the blueprint structures that are uploaded to the inventory store.

    One builder serves one sync pass. Every ``build_*`` call starts with fresh
    dedup sets owned by that call, so concurrent builds never observe each
    other's state.
    """

    def __init__(self, tenant_id: str, feed_id: str):
        self.tenant_id = tenant_id
        self.feed_id = feed_id

    def build_metric_types(
        self,
        resource_types: Iterable[ResourceType],
    ) -> Dict[MeasurementType, InventoryStructure]:
        """Build one structure per not-yet-persisted metric or avail type.

        Measurement types are collected from the given resource types and
        deduplicated by inventory ID; types are flat, so each structure is a
        single node.
        """
        added = _AddedIds()
        result: Dict[MeasurementType, InventoryStructure] = {}
        for resource_type in resource_types:
            for measurement_type in resource_type.measurement_types():
                if measurement_type.persisted:
                    continue
                type_id = inventory_id(measurement_type)
                if type_id in added.metric_types:
                    continue
                added.metric_types.add(type_id)
                node = StructureNode(self._metric_type_blueprint(measurement_type))
                result[measurement_type] = InventoryStructure(node)
        logger.debug("Built %d measurement type blueprint(s)", len(result))
        return result

    def build_resource_types(
        self,
        resource_types: Iterable[ResourceType],
    ) -> Dict[ResourceType, InventoryStructure]:
        """Build one structure per not-yet-persisted resource type.

        Children are the type's operations and its configuration schema;
        parent/child relations between types are never synced.
        """
        added = _AddedIds()
        result: Dict[ResourceType, InventoryStructure] = {}
        for resource_type in resource_types:
            if resource_type.persisted:
                continue
            type_id = inventory_id(resource_type)
            if type_id in added.resource_types:
                continue
            added.resource_types.add(type_id)
            result[resource_type] = InventoryStructure(self._resource_type_node(resource_type))
        logger.debug("Built %d resource type blueprint(s)", len(result))
        return result

    def build_resources(
        self,
        resource_manager: ResourceManager,
    ) -> Dict[Resource, InventoryStructure]:
        """Build a full structure for each root resource with unpersisted content."""
        result: Dict[Resource, InventoryStructure] = {}
        for root in resource_manager.get_root_resources():
            subtree = resource_manager.get_subtree(root)
            if all(resource.persisted for resource in subtree):
                continue
            result[root] = InventoryStructure(self._resource_node(resource_manager, root))
        logger.debug("Built %d resource tree(s)", len(result))
        return result

    # Blueprints

    def _resource_blueprint(self, resource: Resource) -> ResourceBlueprint:
        if resource.resource_type is None:
            raise ValueError(f"Resource {resource!r} has no resource type")
        type_path = canonical_path(
            self.tenant_id,
            self.feed_id,
            EntityKind.RESOURCE_TYPE,
            inventory_id(resource.resource_type),
        )
        return ResourceBlueprint(
            id=inventory_id(resource),
            name=resource.name,
            resource_type_path=type_path,
            properties=dict(resource.properties),
        )

    def _metric_type_blueprint(self, measurement_type: MeasurementType) -> MetricTypeBlueprint:
        unit = "NONE"
        if isinstance(measurement_type, MetricType):
            unit = measurement_type.unit
            if measurement_type.metric_kind == MetricKind.COUNTER:
                data_type = MetricDataType.COUNTER
            else:
                data_type = MetricDataType.GAUGE
        elif isinstance(measurement_type, AvailType):
            data_type = MetricDataType.AVAILABILITY
        else:
            raise TypeError(
                "Invalid measurement type - please report this bug: "
                f"{type(measurement_type).__name__}"
            )

        return MetricTypeBlueprint(
            id=inventory_id(measurement_type),
            name=measurement_type.name,
            data_type=data_type,
            unit=unit,
            interval=int(measurement_type.interval),
            properties=dict(measurement_type.properties),
        )

    # Nodes

    def _resource_node(self, resource_manager: ResourceManager, resource: Resource) -> StructureNode:
        children: List[StructureNode] = []

        config = self._configuration_node(resource.config_properties)
        if config is not None:
            children.append(config)

        # avails are metrics, too
        for instance in [*resource.metrics, *resource.avails]:
            children.append(self._metric_node(instance))

        for child in resource_manager.get_children(resource):
            children.append(self._resource_node(resource_manager, child))

        return StructureNode(self._resource_blueprint(resource), tuple(children))

    def _resource_type_node(self, resource_type: ResourceType) -> StructureNode:
        children = [self._operation_node(op) for op in resource_type.operations]
        schema = self._configuration_schema_node(resource_type.config_property_types)
        if schema is not None:
            children.append(schema)

        blueprint = ResourceTypeBlueprint(
            id=inventory_id(resource_type),
            name=resource_type.name,
            properties=dict(resource_type.properties),
        )
        return StructureNode(blueprint, tuple(children))

    def _metric_node(self, instance: MeasurementInstance) -> StructureNode:
        if instance.type is None:
            raise ValueError(f"Measurement {instance!r} has no type")
        type_path = canonical_path(
            self.tenant_id,
            self.feed_id,
            EntityKind.METRIC_TYPE,
            inventory_id(instance.type),
        )
        return StructureNode(
            MetricBlueprint(
                id=inventory_id(instance),
                name=instance.name,
                metric_type_path=type_path,
                properties=dict(instance.properties),
            )
        )

    def _operation_node(self, operation: Operation) -> StructureNode:
        blueprint = OperationTypeBlueprint(
            id=inventory_id(operation),
            name=operation.name,
            properties=dict(operation.properties),
        )
        if not operation.parameters:
            return StructureNode(blueprint)

        params: Dict[str, Any] = {}
        for param in operation.parameters:
            entry: Dict[str, Any] = {}
            if param.type is not None:
                entry["type"] = param.type
            if param.description is not None:
                entry["description"] = param.description
            if param.default_value is not None:
                entry["defaultValue"] = param.default_value
            if param.required is not None:
                entry["required"] = bool(param.required)
            params[param.name] = entry

        data = DataEntityBlueprint(role=DataRole.PARAMETER_TYPES, value=params)
        return StructureNode(blueprint, (StructureNode(data),))

    def _configuration_schema_node(
        self,
        property_types: List[ResourceConfigurationPropertyType],
    ) -> Optional[StructureNode]:
        if not property_types:
            return None
        value = {inventory_id(prop): prop.name for prop in property_types}
        return StructureNode(DataEntityBlueprint(role=DataRole.CONFIGURATION_SCHEMA, value=value))

    def _configuration_node(
        self,
        properties: List[ResourceConfigurationPropertyInstance],
    ) -> Optional[StructureNode]:
        if not properties:
            return None
        value = {inventory_id(prop): prop.value for prop in properties}
        return StructureNode(DataEntityBlueprint(role=DataRole.CONFIGURATION, value=value))


__all__ = ["PayloadBuilder"]
