"""Staged tagging protocol that uploads one sync unit.

The store has no transactions. A unit is made visible in three phases:

1. prepare: tag the master chunk ``chunks=uploading``,
2. bulk write: push every chunk's data point in one call,
3. commit: write each chunk's final tags, slaves first and the master last.

A reader that sees a master whose ``chunks`` tag is a number knows every
chunk it counts has been committed. A failure leaves the master tagged
``uploading`` until the next full sync overwrites it.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from ..diagnostics import Diagnostics
from .chunker import UPLOADING, Chunk, InventoryBlob
from .client import ProtocolError, StorageClient, StorageError

logger = logging.getLogger("feedsync.sync.protocol")


class SyncCancelled(Exception):
    """The pass was asked to stop; never counted as a sync failure."""


class UnitState(str, Enum):
    """Lifecycle of a single sync unit."""
    IDLE = "idle"
    PREPARING = "preparing"
    UPLOADING = "uploading"
    COMMITTING = "committing"
    DONE = "done"
    STUCK = "stuck"
    DELETED = "deleted"
    SKIPPED = "skipped"


@dataclass
class UnitSyncResult:
    """Outcome of syncing (or deleting) one unit."""

    unit: str
    state: UnitState = UnitState.IDLE
    chunks: int = 0
    size: int = 0
    failed_phase: Optional[UnitState] = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state in (UnitState.DONE, UnitState.DELETED, UnitState.SKIPPED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit": self.unit,
            "state": self.state.value,
            "chunks": self.chunks,
            "size": self.size,
            "failed_phase": self.failed_phase.value if self.failed_phase else None,
            "error": self.error,
            "status_code": self.status_code,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


class ChunkUploader:
    """Runs the prepare / bulk-write / commit sequence for one unit at a time."""

    def __init__(
        self,
        client: StorageClient,
        diagnostics: Diagnostics,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.client = client
        self.diagnostics = diagnostics
        self.cancel_event = cancel_event or threading.Event()

    def upload(
        self,
        chunks: Sequence[Chunk],
        headers: Mapping[str, str],
        element_count: int = 1,
    ) -> UnitSyncResult:
        """Upload the chunks of one unit.

        Store failures end the unit in ``STUCK`` and are reported in the
        result; :class:`SyncCancelled` propagates.
        """
        if not chunks:
            return UnitSyncResult(unit="", state=UnitState.SKIPPED)

        master = chunks[0]
        if not master.is_master:
            raise ValueError(f"First chunk of {master.blob} is not the master chunk")
        result = UnitSyncResult(
            unit=master.blob.name,
            chunks=len(chunks),
            size=int(master.tags.get("size", 0)),
        )
        started = time.perf_counter()

        with self.diagnostics.inventory_storage_request_timer.time():
            logger.debug(
                "Syncing [%d] element(s) to inventory: unit=[%s] chunks=[%d]",
                element_count,
                result.unit,
                len(chunks),
            )
            try:
                self._enter(result, UnitState.PREPARING)
                self._prepare(master, headers)

                self._enter(result, UnitState.UPLOADING)
                self.client.write_raw([c.raw_entry() for c in chunks], headers)

                self._enter(result, UnitState.COMMITTING)
                for slave in chunks[1:]:
                    self._check_cancelled()
                    self.client.create_definition(slave.definition(), headers)
                self._check_cancelled()
                self.client.create_definition(master.definition(), headers)

                result.state = UnitState.DONE
            except StorageError as e:
                result.failed_phase = result.state
                result.state = UnitState.STUCK
                result.error = str(e)
                result.status_code = e.status
            finally:
                result.elapsed_ms = (time.perf_counter() - started) * 1000

        if result.ok and element_count > 0:
            self.diagnostics.inventory_rate.mark(element_count)
        logger.debug(
            "Took [%.1f]ms to sync [%d] element(s) to inventory (%s)",
            result.elapsed_ms,
            element_count,
            result.state.value,
        )
        return result

    def delete_unit(self, blob: InventoryBlob, headers: Mapping[str, str]) -> UnitSyncResult:
        """Delete every chunk of a unit found by tag lookup."""
        result = UnitSyncResult(unit=blob.name)
        started = time.perf_counter()
        try:
            self._check_cancelled()
            chunk_ids = self.client.find_chunk_ids(blob.lookup_tags(), headers)
            if not chunk_ids:
                raise ProtocolError(f"No chunks found for {blob.name}")
            for chunk_id in chunk_ids:
                self._check_cancelled()
                self.client.delete_chunk(chunk_id, headers)
                result.chunks += 1
            result.state = UnitState.DELETED
        except StorageError as e:
            result.state = UnitState.STUCK
            result.error = str(e)
            result.status_code = e.status
        finally:
            result.elapsed_ms = (time.perf_counter() - started) * 1000
        return result

    def _prepare(self, master: Chunk, headers: Mapping[str, str]) -> None:
        response = self.client.update_tags(master.encoded_name, {"chunks": UPLOADING}, headers)
        if response.status == 404:
            # First upload of this unit: there is no committed master to hide yet.
            logger.debug("No existing master for %s; nothing to mark", master.name)

    def _enter(self, result: UnitSyncResult, state: UnitState) -> None:
        self._check_cancelled()
        result.state = state

    def _check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise SyncCancelled("Inventory sync cancelled")


__all__ = [
    "ChunkUploader",
    "SyncCancelled",
    "UnitState",
    "UnitSyncResult",
]
