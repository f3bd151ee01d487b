# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

from __future__ import annotations

import logging

from genro_mapping import (
    Dispatcher,
    HandlerMethod,
    MappingRegistry,
    PathPatternMatcher,
    RequestContext,
    RequestMapping,
    RequestMappingMatcher,
)
from genro_mapping.interceptors.auth import REJECTION_ATTRIBUTE

BOOKS = {"978": {"title": "Dune", "author": "Herbert"}}


def get_book(context, isbn):
    """Available to everyone."""
    return BOOKS.get(isbn)


def delete_book(context, isbn):
    """Requires the 'admin' tag."""
    return BOOKS.pop(isbn, None)


def static_file(context):
    return f"static: {context.match_metadata.path_within_mapping}"


def build_dispatcher() -> Dispatcher:
    # API mappings are consulted first, with logging and tag-based auth
    api = RequestMappingMatcher("api", order=0, interceptors=["logging", "auth"])
    api.register(
        RequestMapping(patterns="/books/{isbn}", methods="GET", produces="application/json"),
        HandlerMethod.of(get_book),
    )
    api.register(
        RequestMapping(patterns="/books/{isbn}", methods="DELETE"),
        HandlerMethod.of(delete_book, auth_rule="admin"),
    )

    # Static files are the fallback for everything else
    static = PathPatternMatcher("static", order=10)
    static.register("/static/**", static_file)

    return Dispatcher(MappingRegistry([static, api]))


def show(dispatcher: Dispatcher, context: RequestContext) -> None:
    result = dispatcher.dispatch(context)
    if not result.matched:
        print(f"{context.method} {context.path} -> 404")
    elif not result.handled:
        print(f"{context.method} {context.path} -> rejected: {context.get_attribute(REJECTION_ATTRIBUTE)}")
    else:
        print(f"{context.method} {context.path} -> {result.value}")
        print(f"    metadata: {context.match_metadata.as_dict()}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    dispatcher = build_dispatcher()

    print("--- 1. Public read ---")
    show(dispatcher, RequestContext("GET", "/books/978", headers={"Accept": "application/json"}))

    print("\n--- 2. Delete WITHOUT tags ---")
    show(dispatcher, RequestContext("DELETE", "/books/978"))

    print("\n--- 3. Delete WITH 'admin' tag ---")
    show(dispatcher, RequestContext("DELETE", "/books/978", headers={"X-Auth-Tags": "admin"}))

    print("\n--- 4. Static fallback ---")
    show(dispatcher, RequestContext("GET", "/static/css/site.css"))

    print("\n--- 5. Unknown path ---")
    show(dispatcher, RequestContext("GET", "/nowhere"))
