"""Configured corrections to element documentation."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from typing import Protocol

from clientgen.api.model import API, Enum, EnumValue, Field, Message, Method, OneOf, Service

logger = logging.getLogger(__name__)


class DocumentationPatch(Protocol):
    id: str
    match: str
    replace: str


Documented = Message | Field | OneOf | Enum | EnumValue | Service | Method


def _documented_elements(model: API) -> Iterator[tuple[str, Documented]]:
    for message in model.state.message_by_id.values():
        yield message.id, message
        for f in message.fields:
            yield f.id, f
        for oneof in message.one_ofs:
            yield oneof.id, oneof
    for enum in model.state.enum_by_id.values():
        yield enum.id, enum
        for value in enum.values:
            yield value.id, value
    for service in model.state.service_by_id.values():
        yield service.id, service
    for method in model.state.method_by_id.values():
        yield method.id, method


def apply_documentation_overrides(model: API, overrides: Iterable[DocumentationPatch]) -> None:
    """Replace text in the documentation of the elements named by ``overrides``.

    Must run after cross-referencing. An override whose element or text
    is missing is reported and otherwise ignored.
    """
    overrides = list(overrides)
    if not overrides:
        return
    elements = dict(_documented_elements(model))
    for override in overrides:
        element = elements.get(override.id)
        if element is None:
            logger.warning(f"Documentation override for unknown element {override.id}")
            continue
        if override.match not in element.documentation:
            logger.warning(f"Documentation of {override.id} does not contain {override.match!r}")
            continue
        element.documentation = element.documentation.replace(override.match, override.replace)
