"""Inventory synchronization: blueprints, codec, chunking and the upload protocol."""

from __future__ import annotations

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
)
from .builder import PayloadBuilder
from .codec import ExtendedStructure, deserialize, extract_resource_types, serialize
from .chunker import Chunk, DEFAULT_CHUNK_SIZE, InventoryBlob, UnitType, chunk, compress_and_chunk, split
from .client import HttpResponse, ProtocolError, StorageClient, StorageError, UrllibTransport
from .protocol import ChunkUploader, SyncCancelled, UnitState, UnitSyncResult
from .storage import InventoryStorage, StorageSettings, SyncReport

__all__ = [
    # Blueprints
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
    "StructureNode",
    "PayloadBuilder",
    # Codec
    "ExtendedStructure",
    "deserialize",
    "extract_resource_types",
    "serialize",
    # Chunker
    "Chunk",
    "DEFAULT_CHUNK_SIZE",
    "InventoryBlob",
    "UnitType",
    "chunk",
    "compress_and_chunk",
    "split",
    # Client
    "HttpResponse",
    "ProtocolError",
    "StorageClient",
    "StorageError",
    "UrllibTransport",
    # Protocol
    "ChunkUploader",
    "SyncCancelled",
    "UnitState",
    "UnitSyncResult",
    # Storage
    "InventoryStorage",
    "StorageSettings",
    "SyncReport",
]
