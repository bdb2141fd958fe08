"""Unit tests for route template compilation."""

from __future__ import annotations

import pytest

from router import RouteConfigurationError, compile_route_template


def test_template_without_markers_matches_only_the_exact_path() -> None:
    pattern = compile_route_template("/health-check")

    assert pattern.param_names == ()
    assert pattern.match("/health-check") == ()
    assert pattern.match("/health-check/") is None
    assert pattern.match("/api/health-check") is None


def test_markers_become_single_segment_captures_in_order() -> None:
    pattern = compile_route_template("/ping/:id/:otherid")

    assert pattern.param_names == ("id", "otherid")
    assert pattern.regex.groups == 2
    assert pattern.match("/ping/7/9") == ("7", "9")


def test_marker_does_not_match_empty_or_multiple_segments() -> None:
    pattern = compile_route_template("/items/:id")

    assert pattern.match("/items/") is None
    assert pattern.match("/items/1/2") is None
    assert pattern.match("/items/a-b_c.d") == ("a-b_c.d",)


def test_match_is_anchored_at_both_ends() -> None:
    pattern = compile_route_template("/items/:id")

    assert pattern.match("/v1/items/1") is None
    assert pattern.match("/items/1/extra") is None


def test_literal_text_is_matched_verbatim() -> None:
    pattern = compile_route_template("/files/report.json")

    assert pattern.match("/files/report.json") == ()
    assert pattern.match("/files/reportXjson") is None


def test_marker_followed_by_literal_suffix() -> None:
    pattern = compile_route_template("/files/:name.json")

    assert pattern.param_names == ("name",)
    assert pattern.match("/files/report.json") == ("report",)


def test_duplicate_parameter_names_are_accepted() -> None:
    pattern = compile_route_template("/pair/:id/:id")

    assert pattern.param_names == ("id", "id")
    assert pattern.match("/pair/1/2") == ("1", "2")


def test_pattern_keeps_original_template() -> None:
    assert compile_route_template("/todos/:id").template == "/todos/:id"


@pytest.mark.parametrize(
    "template",
    ["todos", "", "/todos/:", "/todos/:ID", "/todos/:1", "/todos/a:"],
)
def test_invalid_templates_raise_configuration_error(template: str) -> None:
    with pytest.raises(RouteConfigurationError):
        compile_route_template(template)


def test_configuration_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        compile_route_template("no-slash")
