# gui/api_client.py
import requests
import urllib.parse

from dataclasses import dataclass
from typing import List

from core import config
from core.errors import DecodeError, NotFoundError, RejectedError, TransportError
from core.logutil import get_logger
from core.operations.protocol import DirectoryEntry, OperationHandle, decode_entries, decode_handle

log = get_logger("api")


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    url: str
    timeout: float


class APIClient:
    """Blocking REST calls against the drive service; run them off the GUI thread."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = config.normalize_base_url(base_url or config.BASE_URL)
        self.timeout = config.HTTP_TIMEOUT if timeout is None else float(timeout)

    def describe(self, method: str, suffix: str) -> RequestDescriptor:
        # built per call; nothing about the target is shared between requests
        quoted = urllib.parse.quote(suffix, safe="/")
        return RequestDescriptor(method, f"{self.base_url}{config.API_PREFIX}{quoted}", self.timeout)

    def _send(self, req: RequestDescriptor) -> requests.Response:
        log.debug("%s %s", req.method, req.url)
        try:
            return requests.request(req.method, req.url, timeout=req.timeout)
        except requests.RequestException as e:
            raise TransportError(f"{req.method} {req.url} failed: {e}")

    # ---------- directories ----------
    def list_dir(self, path: str) -> List[DirectoryEntry]:
        r = self._send(self.describe("GET", f"/dir{path}"))
        if r.status_code == 404:
            raise NotFoundError(path, body=r.text)
        if not r.ok:
            log.error("listing %s failed (%s): %s", path, r.status_code, r.text)
            raise TransportError(f"Failed to get directory listing for {path}: {r.text or r.status_code}",
                                 status=r.status_code, body=r.text)
        try:
            data = r.json()
        except ValueError:
            raise DecodeError(f"listing for {path} is not JSON")
        return decode_entries(data)

    # ---------- operations ----------
    def request_delete(self, path: str) -> OperationHandle:
        r = self._send(self.describe("DELETE", path))
        if not r.ok:
            log.error("delete %s refused (%s): %s", path, r.status_code, r.text)
            raise RejectedError(r.text or f"delete of {path} refused ({r.status_code})", body=r.text)
        try:
            data = r.json()
        except ValueError:
            raise DecodeError(f"delete response for {path} is not JSON")
        handle = decode_handle(data, path)
        log.info("delete %s started as op %s", path, handle.operation_id)
        return handle
