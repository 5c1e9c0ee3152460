"""Canonical JSON encoding and gzip compression of blueprint structures."""

from __future__ import annotations

import gzip
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .blueprint import (
    EntityKind,
    InventoryStructure,
    ResourceBlueprint,
    StructureNode,
    path_element_id,
)

# Fixed gzip header timestamp so equal structures compress to equal bytes.
GZIP_MTIME = 0

TypesIndex = Dict[str, List[str]]


def extract_resource_types(structure: InventoryStructure) -> TypesIndex:
    """Map each resource type ID in the tree to the paths of its resources."""
    index: TypesIndex = {}
    for path, node in structure.walk():
        blueprint = node.blueprint
        if isinstance(blueprint, ResourceBlueprint):
            type_id = path_element_id(blueprint.resource_type_path)
            index.setdefault(type_id, []).append(path)
    return index


@dataclass(frozen=True)
class ExtendedStructure:
    """A structure plus the resource-types index of the tree (resource trees only)."""

    structure: InventoryStructure
    types_index: Optional[TypesIndex] = None

    @classmethod
    def for_resource_tree(cls, structure: InventoryStructure) -> "ExtendedStructure":
        return cls(structure, extract_resource_types(structure))

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"structure": node_to_dict(self.structure.root)}
        if self.types_index is not None:
            result["typesIndex"] = {key: list(paths) for key, paths in self.types_index.items()}
        return result


def node_to_dict(node: StructureNode) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "type": node.kind.value,
        "data": node.blueprint.to_dict(),
    }
    if node.children:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for child in node.children:
            grouped.setdefault(child.kind.value, []).append(node_to_dict(child))
        result["children"] = grouped
    return result


def encode(extended: ExtendedStructure) -> str:
    """Canonical JSON text: sorted keys, compact separators."""
    return json.dumps(
        extended.to_dict(),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def compress(text: str) -> bytes:
    return gzip.compress(text.encode("utf-8"), mtime=GZIP_MTIME)


def serialize(extended: ExtendedStructure) -> bytes:
    """Encode and compress one sync unit."""
    return compress(encode(extended))


def deserialize(data: bytes) -> Dict[str, Any]:
    """Inverse of :func:`serialize`, returning the decoded document."""
    return json.loads(gzip.decompress(data).decode("utf-8"))


def root_kind(document: Dict[str, Any]) -> EntityKind:
    return EntityKind(document["structure"]["type"])


__all__ = [
    "ExtendedStructure",
    "TypesIndex",
    "compress",
    "deserialize",
    "encode",
    "extract_resource_types",
    "node_to_dict",
    "root_kind",
    "serialize",
]
