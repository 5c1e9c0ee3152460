"""Splitting compressed sync units into bounded, tagged chunks."""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional
from urllib.parse import quote

from .codec import ExtendedStructure, serialize

DEFAULT_CHUNK_SIZE = 4096
MODULE_TAG = "inventory"
UPLOADING = "uploading"


class UnitType(str, Enum):
    """Type discriminator carried in chunk names and tags."""
    RESOURCE = "r"
    RESOURCE_TYPE = "rt"
    METRIC_TYPE = "mt"


@dataclass(frozen=True)
class InventoryBlob:
    """Identity of one sync unit in the store."""

    feed: str
    type: UnitType
    id: str
    resource_types: Optional[FrozenSet[str]] = None

    @classmethod
    def resource(cls, feed: str, resource_id: str, resource_types: Iterable[str] = ()) -> "InventoryBlob":
        return cls(feed, UnitType.RESOURCE, resource_id, frozenset(resource_types))

    @classmethod
    def resource_type(cls, feed: str, type_id: str) -> "InventoryBlob":
        return cls(feed, UnitType.RESOURCE_TYPE, type_id)

    @classmethod
    def metric_type(cls, feed: str, type_id: str) -> "InventoryBlob":
        return cls(feed, UnitType.METRIC_TYPE, type_id)

    @property
    def name(self) -> str:
        return f"inventory.{self.feed}.{self.type.value}.{self.id}"

    @property
    def encoded_name(self) -> str:
        return quote(self.name, safe="")

    def base_tags(self) -> Dict[str, str]:
        """Tags every chunk of the unit carries."""
        return {
            "module": MODULE_TAG,
            "type": self.type.value,
            "feed": self.feed,
            "id": self.id,
        }

    def lookup_tags(self) -> str:
        """Tag query selecting every chunk of this unit.

        Values are percent-encoded so ``,`` and ``:`` inside a feed or ID
        cannot split the query.
        """
        return ",".join(f"{key}:{quote(value, safe='')}" for key, value in self.base_tags().items())

    def __str__(self) -> str:
        return self.name


@dataclass
class Chunk:
    """One slice of a unit's compressed encoding, wrapped as a string data point."""

    blob: InventoryBlob
    sequence: int
    timestamp: int
    payload: bytes
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_master(self) -> bool:
        return self.sequence == 0

    @property
    def name(self) -> str:
        if self.is_master:
            return self.blob.name
        return f"{self.blob.name}.{self.sequence}"

    @property
    def encoded_name(self) -> str:
        return quote(self.name, safe="")

    def data_point(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "value": base64.b64encode(self.payload).decode("ascii"),
            "tags": dict(self.tags),
        }

    def raw_entry(self) -> Dict[str, Any]:
        """Entry for the bulk raw-write call."""
        return {"id": self.name, "data": [self.data_point()]}

    def final_tags(self) -> Dict[str, str]:
        """Permanent tags written when the unit is committed."""
        tags = self.blob.base_tags()
        if self.is_master:
            tags["chunks"] = self.tags["chunks"]
            tags["size"] = self.tags["size"]
            if self.blob.resource_types is not None:
                tags["restypes"] = "|" + "|".join(sorted(self.blob.resource_types)) + "|"
        return tags

    def definition(self) -> Dict[str, Any]:
        """Definition posted on commit, carrying the final tags."""
        return {"id": self.name, "tags": self.final_tags()}


def split(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> List[bytes]:
    """Partition ``data`` into contiguous slices of at most ``chunk_size`` bytes."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    return [data[pos:pos + chunk_size] for pos in range(0, len(data), chunk_size)]


def chunk(
    blob: InventoryBlob,
    data: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timestamp: Optional[int] = None,
) -> List[Chunk]:
    """Wrap ``data`` as tagged chunks; the first one is the master.

    Empty data yields no chunks, meaning there is nothing to sync.
    """
    ts = int(time.time() * 1000) if timestamp is None else timestamp
    chunks = [
        Chunk(blob=blob, sequence=seq, timestamp=ts, payload=part, tags={"chunk": str(seq)})
        for seq, part in enumerate(split(data, chunk_size))
    ]
    if chunks:
        chunks[0].tags["chunks"] = str(len(chunks))
        chunks[0].tags["size"] = str(len(data))
    return chunks


def compress_and_chunk(
    blob: InventoryBlob,
    extended: ExtendedStructure,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timestamp: Optional[int] = None,
) -> List[Chunk]:
    return chunk(blob, serialize(extended), chunk_size, timestamp)


def reassemble(chunks: Iterable[Chunk]) -> bytes:
    """Concatenate chunk payloads in sequence order."""
    return b"".join(c.payload for c in sorted(chunks, key=lambda c: c.sequence))


__all__ = [
    "Chunk",
    "DEFAULT_CHUNK_SIZE",
    "InventoryBlob",
    "MODULE_TAG",
    "UPLOADING",
    "UnitType",
    "chunk",
    "compress_and_chunk",
    "reassemble",
    "split",
]
