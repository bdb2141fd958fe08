"""Unit tests for route registration and dispatch."""

from __future__ import annotations

import pytest

from request import HTTPRequest
from response_writer import BufferedResponseWriter, ResponseWriter, string_response
from router import RouteConfigurationError, Router


def _request(method: str, path: str) -> HTTPRequest:
    return HTTPRequest(method=method, path=path, http_version="HTTP/1.1")


def _recording_handler(calls: list[tuple[str, dict[str, str | None]]], label: str, *names: str):
    def handler(writer: ResponseWriter, request: HTTPRequest) -> None:
        calls.append((label, {name: request.path_param(name) for name in names}))
        string_response(writer, 200, label)

    return handler


def test_parameterized_route_receives_values_in_template_order() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/ping/:id/:otherid", _recording_handler(calls, "ping", "id", "otherid"))

    response = router.serve(_request("GET", "/ping/7/9"))

    assert response.status_code == 200
    assert calls == [("ping", {"id": "7", "otherid": "9"})]


def test_items_scenario_get_delete_and_unknown_path() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/items/:id", _recording_handler(calls, "item", "id"))

    ok = router.serve(_request("GET", "/items/42"))
    not_allowed = router.serve(_request("DELETE", "/items/42"))
    missing = router.serve(_request("GET", "/widgets/42"))

    assert ok.status_code == 200
    assert ok.body == b"item"
    assert calls == [("item", {"id": "42"})]
    assert not_allowed.status_code == 405
    assert not_allowed.headers["Allow"] == "GET"
    assert missing.status_code == 404
    assert missing.body == b"Not Found"


def test_unmatched_path_is_not_found_for_every_method() -> None:
    router = Router()
    router.get("/todos", _recording_handler([], "todos"))

    for method in ("GET", "POST", "DELETE", "PATCH"):
        response = router.serve(_request(method, "/nothing-here"))
        assert response.status_code == 404
        assert "Allow" not in response.headers


def test_method_not_allowed_lists_every_path_match_once_in_discovery_order() -> None:
    router = Router()
    handler = _recording_handler([], "x")
    router.patch("/todos/:id", handler)
    router.get("/todos/:id", handler)
    router.delete("/todos/:id", handler)
    router.get("/todos/:id", handler)
    router.post("/todos", handler)

    response = router.serve(_request("PUT", "/todos/abc"))

    assert response.status_code == 405
    assert response.headers["Allow"] == "PATCH, GET, DELETE"
    assert response.body == b"Method Not Allowed"


def test_later_route_matching_method_wins_over_earlier_path_only_match() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/todos/:id", _recording_handler(calls, "get", "id"))
    router.patch("/todos/:id", _recording_handler(calls, "patch", "id"))

    response = router.serve(_request("PATCH", "/todos/abc"))

    assert response.status_code == 200
    assert calls == [("patch", {"id": "abc"})]


def test_registration_order_decides_between_overlapping_templates() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/a/:x", _recording_handler(calls, "param", "x"))
    router.get("/a/fixed", _recording_handler(calls, "literal"))

    response = router.serve(_request("GET", "/a/fixed"))

    assert response.body == b"param"
    assert calls == [("param", {"x": "fixed"})]


def test_literal_route_registered_first_shadows_parameterized_route() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/a/fixed", _recording_handler(calls, "literal"))
    router.get("/a/:x", _recording_handler(calls, "param", "x"))

    router.serve(_request("GET", "/a/fixed"))
    router.serve(_request("GET", "/a/other"))

    assert [label for label, _params in calls] == ["literal", "param"]


def test_dispatching_the_same_request_twice_selects_the_same_route() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/a/:x", _recording_handler(calls, "first", "x"))
    router.get("/a/:y", _recording_handler(calls, "second", "y"))
    request = _request("GET", "/a/1")

    first = router.serve(request)
    second = router.serve(request)

    assert first.body == second.body == b"first"
    assert calls == [("first", {"x": "1"}), ("first", {"x": "1"})]


def test_dispatch_does_not_mutate_the_original_request() -> None:
    seen: list[HTTPRequest] = []
    router = Router()

    def handler(writer: ResponseWriter, request: HTTPRequest) -> None:
        seen.append(request)
        writer.write_header(204)

    router.get("/items/:id", handler)
    original = _request("GET", "/items/5")

    router.serve(original)

    assert original.path_param("id") is None
    assert seen[0] is not original
    assert seen[0].path_param("id") == "5"


def test_missing_parameter_name_returns_default() -> None:
    seen: list[HTTPRequest] = []
    router = Router()

    def handler(writer: ResponseWriter, request: HTTPRequest) -> None:
        seen.append(request)
        writer.write_header(204)

    router.get("/items/:id", handler)
    router.serve(_request("GET", "/items/5"))

    assert seen[0].path_param("otherid") is None
    assert seen[0].path_param("otherid", "") == ""


def test_match_extracts_one_value_per_parameter_name() -> None:
    router = Router()
    router.get("/orgs/:org/repos/:repo/issues/:number", _recording_handler([], "issue"))

    result = router.match("GET", "/orgs/acme/repos/widgets/issues/12")

    assert result.route is not None
    assert len(result.params) == len(result.route.pattern.param_names) == 3
    assert result.params == ("acme", "widgets", "12")


def test_dispatch_returns_matched_route_or_none() -> None:
    router = Router()
    route = router.add_route("get", "/todos", _recording_handler([], "todos"))

    assert router.dispatch(_request("GET", "/todos"), BufferedResponseWriter()) is route
    assert router.dispatch(_request("GET", "/other"), BufferedResponseWriter()) is None


def test_method_is_normalized_at_registration() -> None:
    router = Router()
    route = router.add_route(" get ", "/", _recording_handler([], "home"))

    assert route.method == "GET"
    assert router.serve(_request("GET", "/")).status_code == 200


def test_empty_method_is_rejected() -> None:
    router = Router()

    with pytest.raises(RouteConfigurationError, match="method cannot be empty"):
        router.add_route("  ", "/", _recording_handler([], "home"))


def test_router_rejects_template_without_leading_slash() -> None:
    router = Router()

    with pytest.raises(RouteConfigurationError, match="must start with '/'"):
        router.add_route("GET", "missing-slash", _recording_handler([], "x"))


def test_decorator_registration() -> None:
    router = Router()

    @router.post("/todos")
    def create(writer: ResponseWriter, request: HTTPRequest) -> None:
        _ = request
        writer.write_header(202)

    assert router.routes[0].handler is create
    assert router.serve(_request("POST", "/todos")).status_code == 202


def test_every_method_shorthand_registers_its_method() -> None:
    router = Router()
    handler = _recording_handler([], "x")
    router.get("/r", handler)
    router.post("/r", handler)
    router.put("/r", handler)
    router.patch("/r", handler)
    router.delete("/r", handler)
    router.head("/r", handler)
    router.options("/r", handler)

    assert [route.method for route in router.routes] == [
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "HEAD",
        "OPTIONS",
    ]


def test_add_route_after_freeze_raises() -> None:
    router = Router()
    router.get("/", _recording_handler([], "home"))
    router.freeze()

    with pytest.raises(RuntimeError, match="frozen"):
        router.get("/late", _recording_handler([], "late"))

    assert router.frozen
    assert len(router.routes) == 1


def test_handler_exceptions_propagate_out_of_the_router() -> None:
    router = Router()

    def broken(writer: ResponseWriter, request: HTTPRequest) -> None:
        raise RuntimeError("boom")

    router.get("/broken", broken)

    with pytest.raises(RuntimeError, match="boom"):
        router.serve(_request("GET", "/broken"))


def test_percent_encoded_segment_reaches_handler_decoded() -> None:
    calls: list[tuple[str, dict[str, str | None]]] = []
    router = Router()
    router.get("/items/:id", _recording_handler(calls, "item", "id"))
    request = HTTPRequest.from_bytes(b"GET /items/a%20b HTTP/1.1\r\nHost: x\r\n\r\n")

    response = router.serve(request)

    assert response.status_code == 200
    assert calls == [("item", {"id": "a b"})]
    assert request.raw_target == "/items/a%20b"
