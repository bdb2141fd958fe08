"""Response-writing surface handed to route handlers."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from response import HTTPResponse

logger = logging.getLogger(__name__)


class ResponseWriter(Protocol):
    def header(self) -> dict[str, str]: ...

    def write_header(self, status_code: int) -> None: ...

    def write(self, data: bytes | str) -> int: ...


class BufferedResponseWriter:
    """Collects status, headers and body written by a handler.

    The first ``write_header`` call wins. Writing a body before any status
    implies ``200``.
    """

    __slots__ = ("_body", "_headers", "_status_code")

    def __init__(self) -> None:
        self._headers: dict[str, str] = {}
        self._status_code: int | None = None
        self._body = bytearray()

    @property
    def status_code(self) -> int:
        return self._status_code or 200

    @property
    def wrote_header(self) -> bool:
        return self._status_code is not None

    def header(self) -> dict[str, str]:
        return self._headers

    def write_header(self, status_code: int) -> None:
        if not 100 <= status_code <= 599:
            raise ValueError(f"invalid status code: {status_code}")
        if self._status_code is not None:
            logger.debug(
                "Ignoring superfluous write_header(%s), status already %s",
                status_code,
                self._status_code,
            )
            return
        self._status_code = status_code

    def write(self, data: bytes | str) -> int:
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if self._status_code is None:
            self.write_header(200)
        self._body.extend(payload)
        return len(payload)

    def to_response(self) -> HTTPResponse:
        headers = {_canonical_header_name(key): value for key, value in self._headers.items()}
        return HTTPResponse(
            status_code=self.status_code,
            headers=headers,
            body=bytes(self._body),
        )


def string_response(writer: ResponseWriter, status_code: int, text: str) -> None:
    writer.header().setdefault("Content-Type", "text/plain; charset=utf-8")
    writer.write_header(status_code)
    writer.write(text)


def json_response(writer: ResponseWriter, status_code: int, payload: Any) -> None:
    """Write ``payload`` as JSON, or a 400 text body if it cannot be encoded."""
    try:
        encoded = json.dumps(payload, allow_nan=False)
    except (TypeError, ValueError) as exc:
        string_response(writer, 400, str(exc))
        return
    writer.header()["Content-Type"] = "application/json"
    writer.write_header(status_code)
    writer.write(encoded)


def _canonical_header_name(name: str) -> str:
    return "-".join(part.capitalize() for part in name.split("-"))
