from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import requests

from .config import HttpConfig
from .exceptions import ClientRequestError, DataSourceError, ServerError, TransportError
from .logger import get_logger, log_action

TRACE_HEADER = "X-Trace-ID"
TRACE_HEADER_ALIASES = (TRACE_HEADER, "X-Trace-Id", "x-trace-id")

logger = get_logger(__name__)


def map_error(status_code: int, payload: Mapping[str, object] | None, trace_id: str | None) -> DataSourceError:
    payload = payload or {}
    code = str(payload.get("code") or "HTTP_ERROR")
    message = str(payload.get("message") or payload.get("detail") or "La solicitud falló")
    payload_trace_id = payload.get("trace_id")
    resolved_trace_id = str(payload_trace_id) if payload_trace_id is not None else trace_id
    mapped: type[DataSourceError]
    if status_code >= 500:
        mapped = ServerError
    elif status_code >= 400:
        mapped = ClientRequestError
    else:
        mapped = DataSourceError
    return mapped(
        code=code,
        message=message,
        details=payload.get("details"),
        trace_id=resolved_trace_id,
        status_code=status_code,
    )


def _trace_from_headers(headers: Mapping[str, str], fallback: str) -> str:
    for key in TRACE_HEADER_ALIASES:
        trace_id = headers.get(key)
        if trace_id:
            return trace_id
    return fallback


@dataclass
class HttpClient:
    """Read-only JSON client for record sources; GETs retry with backoff."""

    config: HttpConfig
    session: requests.Session | None = None

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = requests.Session()

    def _build_url(self, path: str) -> str:
        base = self.config.api_base_url.rstrip("/") + "/"
        return urljoin(base, path.lstrip("/"))

    def get_json(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        if self.session is None:
            raise RuntimeError("HTTP session not initialized")
        trace_id = str(uuid.uuid4())
        request_headers = {"Accept": "application/json", TRACE_HEADER: trace_id}
        if headers:
            request_headers.update(headers)
        url = self._build_url(path)
        attempts = self.config.retries + 1
        started = time.monotonic()

        response: requests.Response | None = None
        for attempt in range(attempts):
            try:
                response = self.session.get(
                    url,
                    headers=request_headers,
                    params=dict(params or {}),
                    timeout=(self.config.connect_timeout_seconds, self.config.read_timeout_seconds),
                    verify=self.config.verify_ssl,
                )
            except requests.RequestException as exc:
                if attempt >= attempts - 1:
                    log_action(logger, "http", "get", "transport_error", trace_id=trace_id, path=path)
                    raise TransportError(
                        code="TRANSPORT_ERROR",
                        message=str(exc),
                        details={"type": type(exc).__name__},
                        trace_id=trace_id,
                        status_code=0,
                    ) from exc
            else:
                if response.status_code < 500 or attempt >= attempts - 1:
                    break
            time.sleep(self.config.retry_backoff_seconds * (2**attempt))

        if response is None:
            raise RuntimeError("HTTP request failed without response")

        trace_id = _trace_from_headers(response.headers, trace_id)
        duration_ms = int((time.monotonic() - started) * 1000)
        if response.ok:
            log_action(
                logger, "http", "get", "success", trace_id=trace_id, path=path, duration_ms=duration_ms
            )
            if not response.content:
                return None
            try:
                return response.json()
            except json.JSONDecodeError as exc:
                raise ServerError(
                    code="INVALID_JSON",
                    message="Respuesta no válida del servidor",
                    trace_id=trace_id,
                    status_code=response.status_code,
                ) from exc

        try:
            payload = response.json()
        except json.JSONDecodeError:
            payload = {"message": response.text}
        if not isinstance(payload, Mapping):
            payload = {"details": payload}
        log_action(
            logger,
            "http",
            "get",
            "error",
            level=logging.ERROR,
            trace_id=trace_id,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        raise map_error(response.status_code, payload, trace_id)
