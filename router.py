"""Routing table for method/path-template handlers.

Templates may contain ``:name`` markers (``name`` is lower-case ASCII
letters) that capture one non-empty path segment each::

    router = Router()
    router.get("/todos/:id", get_todo)
    response = router.serve(request)

Routes are matched in registration order and the first route whose path and
method both match is invoked. Registration must finish before the router
serves traffic; ``freeze()`` marks that point and rejects later additions.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from config import LOG_FORMAT
from observability import Handler, observe
from request import HTTPRequest
from response import HTTPResponse
from response_writer import BufferedResponseWriter, ResponseWriter, string_response

logger = logging.getLogger(__name__)

_PARAM_MARKER = re.compile(r":([a-z]+)")
_PARAM_CAPTURE = "([^/]+)"


class RouteConfigurationError(ValueError):
    """Raised when a route cannot be registered."""


@dataclass(frozen=True, slots=True)
class RoutePattern:
    template: str
    regex: re.Pattern[str]
    param_names: tuple[str, ...]

    def match(self, path: str) -> tuple[str, ...] | None:
        matched = self.regex.fullmatch(path)
        if matched is None:
            return None
        return matched.groups()


@dataclass(frozen=True, slots=True)
class Route:
    method: str
    pattern: RoutePattern
    handler: Handler


@dataclass(slots=True)
class RouteMatch:
    route: Route | None = None
    params: tuple[str, ...] = ()
    allowed: list[str] = field(default_factory=list)


def compile_route_template(template: str) -> RoutePattern:
    """Compile ``template`` into an anchored matcher plus its parameter names."""
    if not template.startswith("/"):
        raise RouteConfigurationError(f"route template must start with '/': {template!r}")

    parts: list[str] = []
    names: list[str] = []
    position = 0
    for marker in _PARAM_MARKER.finditer(template):
        parts.append(_escape_literal(template, template[position : marker.start()]))
        parts.append(_PARAM_CAPTURE)
        names.append(marker.group(1))
        position = marker.end()
    parts.append(_escape_literal(template, template[position:]))

    try:
        regex = re.compile("^" + "".join(parts) + "$")
    except re.error as exc:
        raise RouteConfigurationError(f"invalid route template {template!r}: {exc}") from exc

    if regex.groups != len(names):
        raise RouteConfigurationError(
            f"route template {template!r} compiled to {regex.groups} groups "
            f"for {len(names)} parameters"
        )
    return RoutePattern(template=template, regex=regex, param_names=tuple(names))


def _escape_literal(template: str, literal: str) -> str:
    if ":" in literal:
        raise RouteConfigurationError(
            f"invalid parameter marker in route template {template!r}; "
            "expected ':' followed by lower-case letters"
        )
    return re.escape(literal)


class Router:
    def __init__(self, *, log_format: str = LOG_FORMAT) -> None:
        self._routes: list[Route] = []
        self._frozen = False
        self.log_format = log_format

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """End the registration phase. The route table is read-only afterwards."""
        self._frozen = True

    def add_route(self, method: str, template: str, handler: Handler) -> Route:
        if self._frozen:
            raise RuntimeError("Cannot add routes after the router is frozen")
        normalized_method = method.upper().strip()
        if not normalized_method:
            raise RouteConfigurationError("method cannot be empty")
        route = Route(
            method=normalized_method,
            pattern=compile_route_template(template),
            handler=handler,
        )
        self._routes.append(route)
        logger.debug("Registered route %s %s", route.method, template)
        return route

    def get(self, template: str, handler: Handler | None = None):
        return self._register("GET", template, handler)

    def post(self, template: str, handler: Handler | None = None):
        return self._register("POST", template, handler)

    def put(self, template: str, handler: Handler | None = None):
        return self._register("PUT", template, handler)

    def patch(self, template: str, handler: Handler | None = None):
        return self._register("PATCH", template, handler)

    def delete(self, template: str, handler: Handler | None = None):
        return self._register("DELETE", template, handler)

    def head(self, template: str, handler: Handler | None = None):
        return self._register("HEAD", template, handler)

    def options(self, template: str, handler: Handler | None = None):
        return self._register("OPTIONS", template, handler)

    def _register(
        self,
        method: str,
        template: str,
        handler: Handler | None,
    ) -> Route | Callable[[Handler], Handler]:
        if handler is not None:
            return self.add_route(method, template, handler)

        def decorator(func: Handler) -> Handler:
            self.add_route(method, template, func)
            return func

        return decorator

    def match(self, method: str, path: str) -> RouteMatch:
        """Find the first route matching both ``method`` and ``path``.

        When no route matches both, ``allowed`` lists the methods of routes
        whose template matched the path, in registration order.
        """
        normalized_method = method.upper()
        result = RouteMatch()
        for route in self._routes:
            params = route.pattern.match(path)
            if params is None:
                continue
            if route.method != normalized_method:
                if route.method not in result.allowed:
                    result.allowed.append(route.method)
                continue
            result.route = route
            result.params = params
            return result
        return result

    def dispatch(self, request: HTTPRequest, writer: ResponseWriter) -> Route | None:
        """Invoke the handler for ``request`` or write a 404/405 response.

        Handler exceptions are not caught here.
        """
        started_at = time.perf_counter()
        result = self.match(request.method, request.path)
        if result.route is not None:
            route = result.route
            routed_request = request.with_path_params(route.pattern.param_names, result.params)
            observe(
                route.handler,
                writer,
                routed_request,
                log_format=self.log_format,
                started_at=started_at,
            )
            return route

        if result.allowed:
            logger.debug(
                "Method %s not allowed for %s (allowed: %s)",
                request.method,
                request.path,
                result.allowed,
            )
            writer.header()["Allow"] = ", ".join(result.allowed)
            string_response(writer, 405, "Method Not Allowed")
            return None

        logger.debug("No route for %s %s", request.method, request.path)
        string_response(writer, 404, "Not Found")
        return None

    def serve(self, request: HTTPRequest) -> HTTPResponse:
        writer = BufferedResponseWriter()
        self.dispatch(request, writer)
        return writer.to_response()
