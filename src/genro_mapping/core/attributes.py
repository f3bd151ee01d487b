# Copyright 2025 Softwell S.r.l.
# Licensed under the Apache License, Version 2.0

"""Match metadata attribute names and the read-only metadata view.

Route matchers publish how a request matched by setting namespaced
attributes on the ``RequestContext``. Every attribute is optional: a matcher
sets only the subset it supports, and consumers must tolerate any of them
being absent.

Attribute names
---------------
All names share the ``"genro_mapping.HandlerMapping."`` namespace so they never
collide with attributes set by other layers:

- ``BEST_MATCHING_HANDLER``: the handler reference that won.
- ``LOOKUP_PATH``: path used for matching (context path stripped, decoded).
- ``PATH_WITHIN_MAPPING``: part of the lookup path matched by wildcards.
- ``BEST_MATCHING_PATTERN``: the pattern that matched best.
- ``INTROSPECT_TYPE_LEVEL_MAPPING``: request type-level introspection.
- ``URI_TEMPLATE_VARIABLES``: ``{name: value}`` from the pattern.
- ``MATRIX_VARIABLES``: ``{variable: {name: [values]}}`` per path segment.
- ``PRODUCIBLE_MEDIA_TYPES``: frozenset of media type strings.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from .context import RequestContext

__all__ = [
    "NAMESPACE",
    "BEST_MATCHING_HANDLER",
    "LOOKUP_PATH",
    "PATH_WITHIN_MAPPING",
    "BEST_MATCHING_PATTERN",
    "INTROSPECT_TYPE_LEVEL_MAPPING",
    "URI_TEMPLATE_VARIABLES",
    "MATRIX_VARIABLES",
    "PRODUCIBLE_MEDIA_TYPES",
    "MAPPING_ATTRIBUTES",
    "MatchMetadata",
]

NAMESPACE = "genro_mapping.HandlerMapping."

BEST_MATCHING_HANDLER = NAMESPACE + "bestMatchingHandler"
LOOKUP_PATH = NAMESPACE + "lookupPath"
PATH_WITHIN_MAPPING = NAMESPACE + "pathWithinMapping"
BEST_MATCHING_PATTERN = NAMESPACE + "bestMatchingPattern"
INTROSPECT_TYPE_LEVEL_MAPPING = NAMESPACE + "introspectTypeLevelMapping"
URI_TEMPLATE_VARIABLES = NAMESPACE + "uriTemplateVariables"
MATRIX_VARIABLES = NAMESPACE + "matrixVariables"
PRODUCIBLE_MEDIA_TYPES = NAMESPACE + "producibleMediaTypes"

MAPPING_ATTRIBUTES: frozenset[str] = frozenset(
    {
        BEST_MATCHING_HANDLER,
        LOOKUP_PATH,
        PATH_WITHIN_MAPPING,
        BEST_MATCHING_PATTERN,
        INTROSPECT_TYPE_LEVEL_MAPPING,
        URI_TEMPLATE_VARIABLES,
        MATRIX_VARIABLES,
        PRODUCIBLE_MEDIA_TYPES,
    }
)

_FIELD_TO_ATTRIBUTE = {
    "best_matching_handler": BEST_MATCHING_HANDLER,
    "lookup_path": LOOKUP_PATH,
    "path_within_mapping": PATH_WITHIN_MAPPING,
    "best_matching_pattern": BEST_MATCHING_PATTERN,
    "introspect_type_level_mapping": INTROSPECT_TYPE_LEVEL_MAPPING,
    "uri_template_variables": URI_TEMPLATE_VARIABLES,
    "matrix_variables": MATRIX_VARIABLES,
    "producible_media_types": PRODUCIBLE_MEDIA_TYPES,
}


@dataclass(frozen=True)
class MatchMetadata:
    """Snapshot of the mapping attributes present on a request.

    Every field is ``None`` when the matcher did not publish it.
    """

    best_matching_handler: Any = None
    lookup_path: str | None = None
    path_within_mapping: str | None = None
    best_matching_pattern: str | None = None
    introspect_type_level_mapping: bool | None = None
    uri_template_variables: Mapping[str, str] | None = None
    matrix_variables: Mapping[str, Mapping[str, list[str]]] | None = None
    producible_media_types: frozenset[str] | None = None

    @classmethod
    def from_context(cls, context: RequestContext) -> MatchMetadata:
        """Build the view from the attributes currently on ``context``."""
        return cls(
            **{
                field_name: context.get_attribute(attribute)
                for field_name, attribute in _FIELD_TO_ATTRIBUTE.items()
            }
        )

    def as_dict(self) -> dict[str, Any]:
        """Return present fields only, keyed by field name."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }
