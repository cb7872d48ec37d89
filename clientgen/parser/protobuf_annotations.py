"""
Extraction of Google API annotations from descriptor options.

Importing the ``*_pb2`` modules below registers the ``google.api.http``,
``google.api.default_host`` and ``google.longrunning.operation_info``
extensions, which must happen before descriptors are deserialized.
"""

from __future__ import annotations

import logging

from google.api import annotations_pb2, client_pb2, http_pb2
from google.longrunning import operations_proto_pb2
from google.protobuf import descriptor_pb2

from clientgen.api.model import Message, OperationInfo, PathInfo
from clientgen.errors import SpecificationError
from clientgen.parser.pathtemplate import parse_path_template

logger = logging.getLogger(__name__)

_HTTP_VERBS = ("get", "put", "post", "delete", "patch")


def path_info_from_rule(rule: http_pb2.HttpRule, request: Message | None) -> PathInfo:
    """Convert a ``google.api.HttpRule`` into a ``PathInfo``.

    Query parameters are the wire names of the request fields that are not
    bound to the path template or the body.
    """
    pattern = rule.WhichOneof("pattern")
    if pattern is None:
        return PathInfo()
    if pattern == "custom":
        verb, template = rule.custom.kind.upper(), rule.custom.path
    elif pattern in _HTTP_VERBS:
        verb, template = pattern.upper(), getattr(rule, pattern)
    else:
        msg = f"unsupported HTTP rule pattern {pattern!r} for {rule.selector or 'method'}"
        raise SpecificationError(msg)

    info = PathInfo(verb=verb, path_template=parse_path_template(template), body_field_path=rule.body)
    info.query_parameters = query_parameters(request, info)
    return info


def query_parameters(request: Message | None, info: PathInfo) -> set[str]:
    if request is None or info.body_field_path == "*":
        return set()
    consumed = {path.split(".", 1)[0] for path in info.field_paths}
    if info.body_field_path:
        consumed.add(info.body_field_path)
    return {f.json_name for f in request.fields if f.name not in consumed and f.json_name not in consumed}


def http_rule(options: descriptor_pb2.MethodOptions) -> http_pb2.HttpRule | None:
    if not options.HasExtension(annotations_pb2.http):
        return None
    return options.Extensions[annotations_pb2.http]


def default_host(options: descriptor_pb2.ServiceOptions, service_id: str) -> str:
    if options.HasExtension(client_pb2.default_host):
        return options.Extensions[client_pb2.default_host]
    logger.warning(f"Service {service_id} has no google.api.default_host annotation")
    return ""


def normalize_type_id(type_name: str, package: str) -> str:
    """Qualify an ``operation_info`` type name relative to ``package``.

    Examples:
        >>> normalize_type_id("Foo", "test")
        '.test.Foo'
        >>> normalize_type_id("google.protobuf.Empty", "test")
        '.google.protobuf.Empty'
    """
    if type_name.startswith("."):
        return type_name
    if "." in type_name:
        return f".{type_name}"
    return f".{package}.{type_name}"


def operation_info(options: descriptor_pb2.MethodOptions, package: str) -> OperationInfo | None:
    if not options.HasExtension(operations_proto_pb2.operation_info):
        return None
    info = options.Extensions[operations_proto_pb2.operation_info]
    return OperationInfo(
        metadata_type_id=normalize_type_id(info.metadata_type, package),
        response_type_id=normalize_type_id(info.response_type, package),
    )
