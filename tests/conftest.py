"""Shared fixtures: a recording HTTP transport and a sample discovery graph."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import pytest

from feedsync.inventory import Snapshot, parse_snapshot
from feedsync.sync import StorageSettings
from feedsync.sync.client import HttpResponse

SAMPLE_SNAPSHOT: Dict[str, Any] = {
    "endpoint": {"name": "local", "tenant_id": "acme"},
    "metric_types": [
        {"id": "heap.used", "name": "Heap Used", "kind": "gauge", "unit": "BYTES", "interval": 30},
        {"id": "requests", "name": "Requests", "kind": "counter"},
    ],
    "avail_types": [
        {"id": "server.avail", "name": "Server Availability"},
    ],
    "resource_types": [
        {
            "id": "Server",
            "name": "Server",
            "metric_types": ["heap.used", "requests"],
            "avail_types": ["server.avail"],
            "operations": [
                {
                    "name": "Reload",
                    "parameters": [{"name": "admin-only", "type": "bool", "required": False}],
                },
                {"name": "Shutdown"},
            ],
            "config_property_types": [{"id": "hostname", "name": "Hostname"}],
        },
        {
            "id": "Deployment",
            "name": "Deployment",
            "metric_types": ["requests"],
        },
    ],
    "resources": [
        {
            "id": "server1",
            "name": "Server One",
            "type": "Server",
            "metrics": [{"id": "server1.heap", "name": "Heap Used", "type": "heap.used"}],
            "avails": [{"id": "server1.avail", "name": "Availability", "type": "server.avail"}],
            "configuration": {"hostname": "host1"},
            "children": [
                {
                    "id": "app.war",
                    "name": "app.war",
                    "type": "Deployment",
                    "metrics": [{"id": "app.requests", "name": "Requests", "type": "requests"}],
                },
            ],
        },
        {"name": "Server Two", "type": "Server"},
    ],
}

# 3 measurement types + 2 resource types + 2 root resources
SAMPLE_UNITS = 7


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: Dict[str, str]
    body: Optional[bytes]

    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8")) if self.body else None


class RecordingTransport:
    """In-memory transport that records every request.

    Unmatched requests succeed with an empty body. Rules added later win.
    """

    def __init__(self) -> None:
        self.calls: List[RecordedCall] = []
        self._rules: List[tuple] = []

    def respond(
        self,
        method: str,
        fragment: str,
        status: int = 200,
        body: Any = b"",
        when: Optional[Callable[[bytes], bool]] = None,
    ) -> None:
        payload = body if isinstance(body, bytes) else json.dumps(body).encode("utf-8")
        self._rules.append((method, fragment, status, payload, when))

    def request(self, method, url, headers, body=None) -> HttpResponse:
        self.calls.append(RecordedCall(method, url, dict(headers), body))
        for rule_method, fragment, status, payload, when in reversed(self._rules):
            if rule_method != method or fragment not in url:
                continue
            if when is not None and not when(body or b""):
                continue
            return HttpResponse(status=status, reason="" if status < 300 else "Error", url=url, body=payload)
        return HttpResponse(status=200, reason="OK", url=url, body=b"")

    def calls_to(self, method: str, fragment: str = "") -> List[RecordedCall]:
        return [call for call in self.calls if call.method == method and fragment in call.url]

    def committed_ids(self) -> List[str]:
        return [call.json()["id"] for call in self.calls_to("POST", "overwrite=true")]


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def snapshot_data() -> Dict[str, Any]:
    return deepcopy(SAMPLE_SNAPSHOT)


@pytest.fixture
def snapshot(snapshot_data) -> Snapshot:
    return parse_snapshot(snapshot_data)


@pytest.fixture
def settings() -> StorageSettings:
    return StorageSettings(url="http://store:8080", tenant_id="", feed_id="feed1")


@pytest.fixture(autouse=True)
def _reset_feedsync_logger():
    yield
    logger = logging.getLogger("feedsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
