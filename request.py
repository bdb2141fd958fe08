"""HTTP request model, parser and request-scoped context."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

from config import MAX_BODY_BYTES, MAX_TARGET_LENGTH

ALLOWED_HTTP_VERSIONS = {"HTTP/1.1", "HTTP/1.0"}
KNOWN_METHODS = {
    "GET",
    "HEAD",
    "POST",
    "PUT",
    "DELETE",
    "OPTIONS",
    "PATCH",
    "TRACE",
    "CONNECT",
}

_EMPTY_CONTEXT: Mapping[Any, Any] = MappingProxyType({})


class HTTPRequestParseError(ValueError):
    """Request parse error carrying an HTTP status code."""

    def __init__(self, message: str, *, status_code: int = 400) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class ContextKey:
    """Namespaced key for values attached to a request's context.

    Keys compare by type and name, so ``ContextKey("id")`` never collides
    with a plain ``"id"`` string that other code may store in the context.
    """

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    raw_target: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    query_params: dict[str, list[str]] = field(default_factory=dict)
    keep_alive: bool = False
    context: Mapping[Any, Any] = field(default_factory=lambda: _EMPTY_CONTEXT)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse raw HTTP request bytes into a structured request object."""
        try:
            header_bytes, body = raw.split(b"\r\n\r\n", 1)
        except ValueError as exc:
            raise HTTPRequestParseError("Missing CRLF CRLF request separator") from exc

        lines = header_bytes.decode("iso-8859-1").split("\r\n")
        if not lines or not lines[0]:
            raise HTTPRequestParseError("Missing request line")

        first_line_parts = lines[0].split(" ")
        if len(first_line_parts) != 3:
            raise HTTPRequestParseError("Invalid request line")

        method, target, http_version = first_line_parts
        if not method or not target or not http_version:
            raise HTTPRequestParseError("Request line contains empty tokens")

        normalized_method = method.upper()
        if normalized_method not in KNOWN_METHODS:
            raise HTTPRequestParseError("Method not implemented", status_code=501)

        if http_version not in ALLOWED_HTTP_VERSIONS:
            raise HTTPRequestParseError("Unsupported HTTP version", status_code=505)

        if len(target) > MAX_TARGET_LENGTH:
            raise HTTPRequestParseError("Request target too long", status_code=414)

        parsed_target = urlsplit(target)
        headers = _parse_headers(lines[1:])

        if http_version == "HTTP/1.1" and "host" not in headers:
            raise HTTPRequestParseError("Host header required for HTTP/1.1")

        if "transfer-encoding" in headers:
            raise HTTPRequestParseError(
                "Transfer-Encoding request bodies are not supported",
                status_code=501,
            )

        if "content-length" in headers:
            try:
                expected_body_length = int(headers["content-length"])
            except ValueError as exc:
                raise HTTPRequestParseError("Invalid Content-Length") from exc
            if expected_body_length < 0:
                raise HTTPRequestParseError("Negative Content-Length is invalid")
            if len(body) != expected_body_length:
                raise HTTPRequestParseError("Body length does not match Content-Length")

        if len(body) > MAX_BODY_BYTES:
            raise HTTPRequestParseError("Body exceeded MAX_BODY_BYTES", status_code=413)

        return cls(
            method=normalized_method,
            path=unquote(parsed_target.path) or "/",
            raw_target=target,
            http_version=http_version,
            headers=headers,
            body=body,
            query_params=parse_qs(parsed_target.query, keep_blank_values=True),
            keep_alive=_is_keep_alive(http_version, headers.get("connection", "")),
        )

    def with_path_params(
        self,
        names: Sequence[str],
        values: Sequence[str],
    ) -> "HTTPRequest":
        """Return a copy of this request carrying the given path parameters.

        The original request is left untouched; the copy shares every other
        field with it.
        """
        if len(names) != len(values):
            raise ValueError(
                f"expected {len(names)} path parameter values, got {len(values)}"
            )
        context = dict(self.context)
        for name, value in zip(names, values):
            context[ContextKey(name)] = value
        return dataclasses.replace(self, context=MappingProxyType(context))

    def path_param(self, name: str, default: str | None = None) -> str | None:
        return self.context.get(ContextKey(name), default)

    def context_value(self, key: Any, default: Any = None) -> Any:
        return self.context.get(key, default)

    def query_value(self, name: str, default: str = "") -> str:
        values = self.query_params.get(name)
        if not values:
            return default
        return values[0]


def _parse_headers(lines: list[str]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for line in lines:
        if not line:
            continue
        if ":" not in line:
            raise HTTPRequestParseError("Malformed header line")
        name, value = line.split(":", 1)
        header_name = name.strip().lower()
        if not header_name:
            raise HTTPRequestParseError("Header name cannot be empty")
        headers[header_name] = value.strip()
    return headers


def _is_keep_alive(http_version: str, connection_header: str) -> bool:
    token = connection_header.lower()
    if http_version == "HTTP/1.1":
        return "close" not in token
    if http_version == "HTTP/1.0":
        return "keep-alive" in token
    return False
