# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Tests for lookup paths, path patterns and matrix variables."""

from __future__ import annotations

import pytest

from genro_mapping import InvalidPattern, PathPattern, RequestContext
from genro_mapping.core.paths import lookup_path_for, parse_matrix_variables, split_path


@pytest.mark.parametrize(
    ("path", "context_path", "expected"),
    [
        ("/users/42", "", "/users/42"),
        ("/users/42?x=1", "", "/users/42"),
        ("//users///42", "", "/users/42"),
        ("/app/users/42", "/app", "/users/42"),
        ("/app", "/app", "/"),
        ("/application/x", "/app", "/application/x"),
        ("/users/hello%20world", "", "/users/hello world"),
        ("/cars;color=red/list", "", "/cars/list"),
        ("/docs/", "", "/docs/"),
        ("", "", "/"),
    ],
)
def test_lookup_path(path, context_path, expected):
    ctx = RequestContext("GET", path, context_path=context_path)
    assert lookup_path_for(ctx) == expected


def test_lookup_path_keeps_matrix_content_on_request():
    ctx = RequestContext("GET", "/cars;color=red/list")
    assert lookup_path_for(ctx, remove_semicolon_content=False) == "/cars;color=red/list"


def test_parse_matrix_variables():
    assert parse_matrix_variables("cars;color=red,blue;year=2012") == {
        "color": ["red", "blue"],
        "year": ["2012"],
    }
    assert parse_matrix_variables("cars") == {}
    assert parse_matrix_variables("cars;flag") == {"flag": []}


def test_template_variables_and_within_mapping():
    match = PathPattern("/users/{id}/orders/{order}").match("/users/7/orders/99")
    assert match.uri_variables == {"id": "7", "order": "99"}
    assert match.path_within_mapping == "7/orders/99"
    assert match.pattern == "/users/{id}/orders/{order}"


def test_typed_and_constrained_variables():
    pattern = PathPattern("/items/{id:int}")
    assert pattern.match("/items/12").uri_variables == {"id": "12"}
    assert pattern.match("/items/abc") is None

    slug = PathPattern("/posts/{slug:[a-z-]+}")
    assert slug.match("/posts/hello-world") is not None
    assert slug.match("/posts/Hello") is None


def test_variable_with_surrounding_literal():
    match = PathPattern("/files/{name}.json").match("/files/report.json")
    assert match.uri_variables == {"name": "report"}
    assert PathPattern("/files/{name}.json").match("/files/report.xml") is None


def test_catch_all_variable():
    pattern = PathPattern("/static/{rest:path}")
    match = pattern.match("/static/css/site.css")
    assert match.uri_variables == {"rest": "css/site.css"}
    assert pattern.match("/static") is None


def test_double_star_tail():
    pattern = PathPattern("/docs/**")
    assert pattern.match("/docs").path_within_mapping == ""
    assert pattern.match("/docs/a/b").path_within_mapping == "a/b"
    assert pattern.match("/other") is None


def test_single_star_and_fnmatch_segments():
    assert PathPattern("/a/*/c").match("/a/b/c") is not None
    assert PathPattern("/a/*/c").match("/a/b/x/c") is None
    pages = PathPattern("/pages/*.html")
    assert pages.match("/pages/index.html").path_within_mapping == "index.html"
    assert pages.match("/pages/index.txt") is None


def test_exact_pattern():
    pattern = PathPattern("about")
    assert pattern.pattern == "/about"
    assert pattern.is_exact
    assert pattern.match("/about").path_within_mapping == "/about"
    assert not PathPattern("/users/{id}").is_exact


def test_trailing_slash_is_strict():
    pattern = PathPattern("/users/{id}")
    assert pattern.match("/users/1/") is None
    assert PathPattern("/users/{id}/").match("/users/1/") is not None


def test_matrix_variables_bound_to_template_variable():
    match = PathPattern("/shop/{category}/**").match("/shop/cars;color=red,blue;year=2012/sedan")
    assert match.uri_variables == {"category": "cars"}
    assert match.matrix_variables == {"category": {"color": ["red", "blue"], "year": ["2012"]}}
    assert match.path_within_mapping == "cars/sedan"


def test_specificity_ordering():
    ordered = [
        PathPattern("/users/me"),
        PathPattern("/users/{id:int}"),
        PathPattern("/users/{id}/{tab}"),
        PathPattern("/users/*"),
        PathPattern("/users/**"),
        PathPattern("/**"),
    ]
    keys = [pattern.specificity() for pattern in ordered]
    assert keys == sorted(keys)


def test_longer_literal_wins_at_equal_variables():
    short = PathPattern("/a/{x}")
    long = PathPattern("/api/{x}")
    assert long.specificity() < short.specificity()


def test_variable_names():
    assert PathPattern("/a/{x}/{y:int}/{z:path}").variable_names == ("x", "y", "z")


@pytest.mark.parametrize(
    "pattern",
    [
        "/users/{id",
        "/a/**/b",
        "/a/{x}/{x}",
        "/a/{rest:path}/b",
        "/a/pre{rest:path}",
        "/a/{x:[}",
    ],
)
def test_invalid_patterns(pattern):
    with pytest.raises(InvalidPattern) as excinfo:
        PathPattern(pattern)
    assert isinstance(excinfo.value, ValueError)


def test_pattern_must_be_string():
    with pytest.raises(TypeError):
        PathPattern(42)  # type: ignore[arg-type]


def test_patterns_compare_by_normalized_text():
    assert PathPattern("users") == PathPattern("/users")
    assert len({PathPattern("users"), PathPattern("/users")}) == 1


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("a%3Fb", "a?b"), ("a%3Bb", "a;b"), ("a%2Fb", "a/b"), ("caf%C3%A9", "café")],
)
def test_encoded_delimiters_stay_in_variable(raw, expected):
    match = PathPattern("/files/{name}").match(f"/files/{raw}")
    assert match.uri_variables == {"name": expected}
    assert match.matrix_variables == {}


def test_split_path_decodes_after_splitting():
    split = split_path("/app/cars;color=r%3Bed,blue/x%2Fy/?q=1", "/app")
    assert split.values == ["cars", "x/y"]
    assert split.segments[0].matrix == {"color": ["r;ed", "blue"]}
    assert split.segments[1].matrix == {}
    assert split.trailing_slash
    assert not split.without_trailing_slash().trailing_slash


def test_encoded_matrix_value_is_decoded():
    assert parse_matrix_variables("cars;note=a%2Cb") == {"note": ["a,b"]}
