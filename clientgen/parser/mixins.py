"""
Well-known mixin services.

A service config that lists one of these services next to the API's own
services asks for the mixin methods to be exposed on every service of the
API. Which methods are exposed, and with which HTTP bindings, is given by
the ``http.rules`` of the service config.
"""

from __future__ import annotations

import logging
from typing import Final

from google.api import http_pb2, service_pb2
from google.cloud.location import locations_pb2
from google.longrunning import operations_proto_pb2
from google.protobuf import descriptor, descriptor_pb2

logger = logging.getLogger(__name__)

_MIXIN_DESCRIPTORS: Final[dict[str, descriptor.FileDescriptor]] = {
    "google.cloud.location.Locations": locations_pb2.DESCRIPTOR,
    "google.longrunning.Operations": operations_proto_pb2.DESCRIPTOR,
}

# Recognised mixins whose descriptors are not bundled.
_UNAVAILABLE_MIXINS: Final = frozenset({"google.iam.v1.IAMPolicy"})

MIXIN_SERVICES: Final = frozenset(_MIXIN_DESCRIPTORS) | _UNAVAILABLE_MIXINS


def _file_protos(file_descriptor: descriptor.FileDescriptor) -> list[descriptor_pb2.FileDescriptorProto]:
    """The file and its transitive dependencies, dependencies first."""
    result: list[descriptor_pb2.FileDescriptorProto] = []
    seen: set[str] = set()

    def _visit(fd: descriptor.FileDescriptor) -> None:
        if fd.name in seen:
            return
        seen.add(fd.name)
        for dependency in fd.dependencies:
            _visit(dependency)
        proto = descriptor_pb2.FileDescriptorProto()
        fd.CopyToProto(proto)
        result.append(proto)

    _visit(file_descriptor)
    return result


def enabled_mixins(config: service_pb2.Service | None) -> list[str]:
    """Mixin services requested by ``config``, in config order."""
    if config is None or len(config.apis) <= 1:
        return []
    mixins: list[str] = []
    for api in config.apis:
        if api.name in _UNAVAILABLE_MIXINS:
            logger.warning(f"Mixin {api.name} is not supported and will be ignored")
        elif api.name in _MIXIN_DESCRIPTORS:
            mixins.append(api.name)
    return mixins


def load_mixins(
    config: service_pb2.Service | None,
) -> tuple[list[descriptor_pb2.FileDescriptorProto], dict[str, http_pb2.HttpRule]]:
    """Load the descriptors of the mixins enabled in ``config``.

    Returns:
        The descriptor files to add to the parse, and the HTTP rule of each
        enabled mixin method keyed by its fully qualified name.
    """
    mixins = enabled_mixins(config)
    if not mixins or config is None:
        return [], {}

    files: list[descriptor_pb2.FileDescriptorProto] = []
    for name in mixins:
        files.extend(_file_protos(_MIXIN_DESCRIPTORS[name]))

    rules: dict[str, http_pb2.HttpRule] = {}
    for rule in config.http.rules:
        service, _, _ = rule.selector.rpartition(".")
        if service in mixins:
            rules[rule.selector] = rule
    return files, rules


def mixin_documentation(config: service_pb2.Service | None, selector: str) -> str:
    """Documentation of a mixin method, from the config's documentation rules."""
    if config is not None:
        for rule in config.documentation.rules:
            if rule.selector == selector and rule.description:
                return rule.description
    service, _, _ = selector.rpartition(".")
    return f"Provides the [{service.rpartition('.')[2]}][{service}] service functionality in this service."
