"""Graph provider holding the discovered resources and resource types."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .model import Resource, ResourceType, inventory_id

logger = logging.getLogger("feedsync.inventory.manager")


class ResourceManager:
    """Tracks the resource tree of one monitored endpoint.

    Roots and children keep the order in which discovery added them.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._roots: Dict[Resource, Resource] = {}
        self._children: Dict[Resource, Dict[Resource, Resource]] = {}

    def add_resource(self, resource: Resource) -> None:
        """Add a resource under its parent (or as a root when it has none)."""
        with self._lock:
            if resource.parent is None:
                self._roots[resource] = resource
            else:
                if not self._contains(resource.parent):
                    raise ValueError(
                        f"Parent {resource.parent!r} of {resource!r} is not managed"
                    )
                self._children[resource.parent][resource] = resource
            self._children.setdefault(resource, {})
        logger.debug("Added resource %r", resource)

    def remove_resource(self, resource: Resource) -> List[Resource]:
        """Remove a resource and its descendants; returns them breadth-first."""
        with self._lock:
            if not self._contains(resource):
                return []
            removed = self.get_subtree(resource)
            for item in removed:
                self._children.pop(item, None)
            if resource.parent is None:
                self._roots.pop(resource, None)
            else:
                self._children.get(resource.parent, {}).pop(resource, None)
        logger.debug("Removed %d resource(s) rooted at %r", len(removed), resource)
        return removed

    def get_root_resources(self) -> List[Resource]:
        with self._lock:
            return list(self._roots.values())

    def get_children(self, resource: Resource) -> List[Resource]:
        with self._lock:
            return list(self._children.get(resource, {}).values())

    def get_subtree(self, resource: Resource) -> List[Resource]:
        """Return the resource and every descendant, breadth-first."""
        with self._lock:
            result: List[Resource] = []
            queue = deque([resource])
            while queue:
                current = queue.popleft()
                result.append(current)
                queue.extend(self._children.get(current, {}).values())
            return result

    def get_resources_breadth_first(self) -> List[Resource]:
        with self._lock:
            result: List[Resource] = []
            for root in self._roots.values():
                result.extend(self.get_subtree(root))
            return result

    def size(self, resource: Optional[Resource] = None) -> int:
        """Number of resources in the subtree of ``resource`` (all when omitted)."""
        if resource is None:
            return len(self.get_resources_breadth_first())
        return len(self.get_subtree(resource))

    def _contains(self, resource: Resource) -> bool:
        return resource in self._children


class ResourceTypeManager:
    """Registry of resource types. Types are peers; there is no type hierarchy."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._types: Dict[str, ResourceType] = {}

    def add_resource_type(self, resource_type: ResourceType) -> None:
        key = inventory_id(resource_type)
        with self._lock:
            self._types[key] = resource_type

    def get_resource_type(self, type_id: str) -> Optional[ResourceType]:
        with self._lock:
            return self._types.get(type_id)

    def get_resource_types_breadth_first(self) -> List[ResourceType]:
        with self._lock:
            return list(self._types.values())


@dataclass
class MonitoredEndpoint:
    """The endpoint a discovery pass ran against."""

    name: str
    tenant_id: Optional[str] = None


@dataclass
class DiscoveryEvent:
    """Signal that a full discovery pass has completed for an endpoint."""

    resource_manager: ResourceManager
    resource_type_manager: ResourceTypeManager
    endpoint: MonitoredEndpoint


@dataclass
class InventoryEvent:
    """Resources added to or removed from an endpoint's graph."""

    endpoint: MonitoredEndpoint
    payload: List[Resource] = field(default_factory=list)


__all__ = [
    "DiscoveryEvent",
    "InventoryEvent",
    "MonitoredEndpoint",
    "ResourceManager",
    "ResourceTypeManager",
]
