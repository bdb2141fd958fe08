"""Per-request observation of handler output and timing."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from config import LOG_FORMAT
from response_writer import ResponseWriter

if TYPE_CHECKING:
    from request import HTTPRequest

logger = logging.getLogger(__name__)

Handler = Callable[[ResponseWriter, "HTTPRequest"], None]


@dataclass(slots=True)
class ObservedResponse:
    status_code: int = 0
    body: bytes = b""
    duration_ms: float = 0.0

    @property
    def resolved_status(self) -> int:
        return self.status_code or 200


class ObservedResponseWriter:
    """Forwards writes to ``inner`` while recording what the handler sent.

    Only the first status and the most recent body write are kept.
    """

    __slots__ = ("_inner", "observed")

    def __init__(self, inner: ResponseWriter) -> None:
        self._inner = inner
        self.observed = ObservedResponse()

    def header(self) -> dict[str, str]:
        return self._inner.header()

    def write_header(self, status_code: int) -> None:
        if self.observed.status_code == 0:
            self.observed.status_code = status_code
        self._inner.write_header(status_code)

    def write(self, data: bytes | str) -> int:
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        self.observed.body = payload
        return self._inner.write(payload)


def observe(
    handler: Handler,
    writer: ResponseWriter,
    request: HTTPRequest,
    *,
    log_format: str = LOG_FORMAT,
    started_at: float | None = None,
) -> ObservedResponse:
    """Run ``handler`` once against a recording writer and log the outcome.

    ``started_at`` is a ``time.perf_counter()`` reading taken when dispatch
    began; it defaults to the moment the handler is called.
    """
    observed_writer = ObservedResponseWriter(writer)
    if started_at is None:
        started_at = time.perf_counter()
    handler(observed_writer, request)
    observed = observed_writer.observed
    observed.duration_ms = (time.perf_counter() - started_at) * 1000
    log_request(request, observed, log_format=log_format)
    return observed


def log_request(
    request: HTTPRequest,
    observed: ObservedResponse,
    *,
    log_format: str = LOG_FORMAT,
) -> None:
    body_text = observed.body.decode("utf-8", errors="replace")
    if log_format == "json":
        event: dict[str, object] = {
            "method": request.method,
            "path": request.path,
            "status": observed.resolved_status,
            "duration_ms": round(observed.duration_ms, 3),
        }
        if body_text:
            event["response"] = body_text
        logger.info(json.dumps(event, sort_keys=True))
        return

    if body_text:
        logger.info(
            "method=%s path=%s status=%s duration_ms=%.2f response=%s",
            request.method,
            request.path,
            observed.resolved_status,
            observed.duration_ms,
            body_text,
        )
        return
    logger.info(
        "method=%s path=%s status=%s duration_ms=%.2f",
        request.method,
        request.path,
        observed.resolved_status,
        observed.duration_ms,
    )
