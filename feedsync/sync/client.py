"""HTTP access to the remote inventory store."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request, urlopen

logger = logging.getLogger("feedsync.sync.client")

TENANT_HEADER = "Hawkular-Tenant"


class StorageError(Exception):
    """A store call did not succeed."""

    def __init__(self, message: str, status: Optional[int] = None, reason: str = "", url: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.url = url

    @classmethod
    def from_response(cls, response: "HttpResponse") -> "StorageError":
        return cls(
            f"status-code=[{response.status}], reason=[{response.reason}], url=[{response.url}]",
            status=response.status,
            reason=response.reason,
            url=response.url,
        )


class ProtocolError(StorageError):
    """The store is not in the state the sync protocol expects."""


@dataclass
class HttpResponse:
    status: int
    reason: str
    url: str
    body: bytes = b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8")

    def json(self) -> Any:
        return json.loads(self.text())


class Transport(Protocol):
    """Minimal blocking HTTP interface the store client needs."""

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> HttpResponse:
        ...


class UrllibTransport:
    """Transport built on ``urllib.request``."""

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def request(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: Optional[bytes] = None,
    ) -> HttpResponse:
        req = Request(url, data=body, headers=dict(headers), method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                return HttpResponse(
                    status=resp.status,
                    reason=resp.reason or "",
                    url=url,
                    body=resp.read(),
                )
        except HTTPError as e:
            return HttpResponse(status=e.code, reason=str(e.reason), url=url, body=e.read() or b"")
        except URLError as e:
            raise StorageError(
                f"Connection error: {e.reason}, url=[{url}]",
                reason=str(e.reason),
                url=url,
            ) from e


def tenant_headers(tenant_id: Optional[str]) -> Dict[str, str]:
    """Headers identifying the tenant; a missing tenant is a configuration error."""
    if not tenant_id:
        raise ValueError("tenant_id must not be empty")
    return {TENANT_HEADER: tenant_id}


class StorageClient:
    """Typed calls against the store's string-metrics API."""

    def __init__(self, base_url: str, metrics_context: str, transport: Transport):
        self.base_url = base_url
        self.metrics_context = metrics_context
        self.transport = transport

    def url(self, path: str) -> str:
        context = self.metrics_context.strip("/")
        root = self.base_url.rstrip("/")
        return f"{root}/{context}/{path}" if context else f"{root}/{path}"

    def find_chunk_ids(self, lookup_tags: str, headers: Mapping[str, str]) -> List[str]:
        """List the IDs of string metrics matching a tag query."""
        url = self.url(f"metrics?type=string&tags={quote(lookup_tags, safe=':,')}")
        response = self._call("GET", url, headers)
        if not response.body.strip():
            raise ProtocolError(f"No metric found, url=[{url}]", status=response.status, url=url)
        return [str(item["id"]) for item in response.json()]

    def delete_chunk(self, chunk_id: str, headers: Mapping[str, str]) -> None:
        self._call("DELETE", self.url(f"strings/{quote(chunk_id, safe='')}"), headers)

    def update_tags(self, encoded_name: str, tags: Mapping[str, str], headers: Mapping[str, str]) -> HttpResponse:
        return self._call(
            "PUT",
            self.url(f"strings/{encoded_name}/tags"),
            headers,
            dict(tags),
            allow_missing=True,
        )

    def write_raw(self, entries: List[Dict[str, Any]], headers: Mapping[str, str]) -> None:
        self._call("POST", self.url("strings/raw"), headers, entries)

    def create_definition(self, definition: Dict[str, Any], headers: Mapping[str, str]) -> None:
        self._call("POST", self.url("strings?overwrite=true"), headers, definition)

    def _call(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        payload: Any = None,
        allow_missing: bool = False,
    ) -> HttpResponse:
        request_headers = {"Accept": "application/json", **headers}
        body = None
        if payload is not None:
            body = json.dumps(payload).encode("utf-8")
            request_headers["Content-Type"] = "application/json"

        response = self.transport.request(method, url, request_headers, body)
        logger.debug("%s %s -> %d", method, url, response.status)
        if response.ok or (allow_missing and response.status == 404):
            return response
        raise StorageError.from_response(response)


__all__ = [
    "HttpResponse",
    "ProtocolError",
    "StorageClient",
    "StorageError",
    "TENANT_HEADER",
    "Transport",
    "UrllibTransport",
    "tenant_headers",
]
