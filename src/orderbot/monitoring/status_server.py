"""
Minimal HTTP status server on asyncio streams.

Endpoints:
- GET /         - process status JSON (auth required if token set)
- GET /stats    - order-book summary plus scheduler/system info (auth required if token set)
- GET /metrics  - Prometheus text (auth required if token set)
- GET /health   - liveness probe (no auth; 200 when healthy, 503 otherwise)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol, Tuple
from urllib.parse import parse_qs, urlparse

from orderbot.core.json_utils import dumps_bytes
from orderbot.monitoring.metrics import BotMetrics

log = logging.getLogger("orderbot")

_JSON = b"application/json"
_PROM = b"text/plain; version=0.0.4; charset=utf-8"


class StatusSource(Protocol):
    async def status_payload(self) -> Dict[str, Any]: ...

    async def stats_payload(self) -> Dict[str, Any]: ...

    def health_payload(self) -> Dict[str, Any]: ...


def _response(status: bytes, body: bytes = b"", content_type: Optional[bytes] = None) -> bytes:
    head = b"HTTP/1.1 " + status + b"\r\n"
    if content_type:
        head += b"Content-Type: " + content_type + b"\r\n"
    head += b"Content-Length: " + str(len(body)).encode() + b"\r\n"
    head += b"Connection: close\r\n\r\n"
    return head + body


def _parse_request(req: bytes) -> Tuple[str, Dict[str, list], Dict[bytes, bytes]]:
    lines = req.split(b"\r\n") if b"\r\n" in req else [req]
    path_raw = b"/"
    if lines and b" " in lines[0]:
        parts = lines[0].split(b" ")
        if len(parts) > 1:
            path_raw = parts[1]
    headers: Dict[bytes, bytes] = {}
    for line in lines[1:]:
        if b":" in line:
            k, v = line.split(b":", 1)
            headers[k.strip().lower()] = v.strip()
    parsed = urlparse(path_raw.decode("utf-8", errors="ignore"))
    return parsed.path or "/", parse_qs(parsed.query), headers


def _authorized(auth_token: Optional[str], query: Dict[str, list], headers: Dict[bytes, bytes]) -> bool:
    if not auth_token:
        return True
    header_auth = headers.get(b"authorization", b"").decode("utf-8", errors="ignore")
    if header_auth == f"Bearer {auth_token}":
        return True
    return query.get("token", [""])[0] == auth_token


async def start_status_server(
    source: StatusSource,
    metrics: BotMetrics,
    host: str = "0.0.0.0",
    port: int = 3000,
    auth_token: Optional[str] = None,
) -> asyncio.AbstractServer:
    """Start serving; close the returned server to stop."""

    async def route(path: str) -> bytes:
        if path == "/":
            return _response(b"200 OK", dumps_bytes(await source.status_payload()), _JSON)
        if path == "/stats":
            return _response(b"200 OK", dumps_bytes(await source.stats_payload()), _JSON)
        if path == "/metrics":
            return _response(b"200 OK", metrics.render(), _PROM)
        return _response(b"404 Not Found", dumps_bytes({"error": "not found"}), _JSON)

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            req = await reader.read(2048)
            path, query, headers = _parse_request(req)

            if path == "/health":
                health = source.health_payload()
                status = b"200 OK" if health.get("healthy", True) else b"503 Service Unavailable"
                resp = _response(status, dumps_bytes(health), _JSON)
            elif not _authorized(auth_token, query, headers):
                resp = _response(b"401 Unauthorized")
            else:
                try:
                    resp = await route(path)
                except Exception:
                    log.exception("status_server_error path=%s", path)
                    resp = _response(b"500 Internal Server Error")

            writer.write(resp)
            await writer.drain()
        finally:
            writer.close()

    server = await asyncio.start_server(handle, host, port)
    log.info("status_server_started host=%s port=%s auth=%s", host, port, bool(auth_token))
    return server
