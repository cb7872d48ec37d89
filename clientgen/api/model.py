"""
Language-neutral model of an API.

Parsers build these nodes, the cross-referencing pass links them and the
codecs annotate them. Messages and enums live in an arena
(``APIState``) keyed by their fully qualified ID. A parent owns its
children through its ``messages`` / ``enums`` lists, while a child names
its parent by ID, so the node graph never contains object cycles.

Every node has a ``codec`` slot. Only a codec writes to it, and it never
alters the semantic fields of the node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from clientgen.errors import CrossReferenceError, SpecificationError


class Typez(IntEnum):
    """Field types, numbered as in ``google.protobuf.FieldDescriptorProto.Type``."""

    UNDEFINED_TYPE = 0
    DOUBLE_TYPE = 1
    FLOAT_TYPE = 2
    INT64_TYPE = 3
    UINT64_TYPE = 4
    INT32_TYPE = 5
    FIXED64_TYPE = 6
    FIXED32_TYPE = 7
    BOOL_TYPE = 8
    STRING_TYPE = 9
    GROUP_TYPE = 10
    MESSAGE_TYPE = 11
    BYTES_TYPE = 12
    UINT32_TYPE = 13
    ENUM_TYPE = 14
    SFIXED32_TYPE = 15
    SFIXED64_TYPE = 16
    SINT32_TYPE = 17
    SINT64_TYPE = 18


@dataclass
class PathSegment:
    """One segment of an HTTP path template.

    Exactly one of ``literal``, ``field_path`` and ``verb`` is set.
    """

    literal: str | None = None
    field_path: str | None = None
    verb: str | None = None

    def __post_init__(self) -> None:
        if sum(part is not None for part in (self.literal, self.field_path, self.verb)) != 1:
            msg = "a path segment must be exactly one of literal, field path or verb"
            raise SpecificationError(msg)


@dataclass
class PathInfo:
    """HTTP binding of a method."""

    verb: str = ""
    path_template: list[PathSegment] = field(default_factory=list)
    # Wire (JSON) names of request fields sent as query parameters.
    query_parameters: set[str] = field(default_factory=set)
    body_field_path: str = ""
    codec: Any = None

    @property
    def field_paths(self) -> list[str]:
        """Field paths referenced by the template, in order."""
        return [s.field_path for s in self.path_template if s.field_path is not None]


@dataclass
class OperationInfo:
    """Long-running operation metadata attached to a method."""

    metadata_type_id: str
    response_type_id: str
    codec: Any = None


@dataclass
class Field:
    name: str
    id: str
    typez: Typez
    typez_id: str = ""
    json_name: str = ""
    documentation: str = ""
    optional: bool = False
    repeated: bool = False
    is_oneof: bool = False
    synthetic: bool = False
    deprecated: bool = False
    codec: Any = None

    def __post_init__(self) -> None:
        if not self.json_name:
            self.json_name = self.name


@dataclass
class OneOf:
    name: str
    id: str
    documentation: str = ""
    fields: list[Field] = field(default_factory=list)
    codec: Any = None


@dataclass
class EnumValue:
    name: str
    id: str
    number: int
    documentation: str = ""
    deprecated: bool = False
    parent_id: str | None = None
    codec: Any = None


@dataclass
class Enum:
    name: str
    id: str
    package: str = ""
    documentation: str = ""
    values: list[EnumValue] = field(default_factory=list)
    deprecated: bool = False
    parent_id: str | None = None
    codec: Any = None


@dataclass
class Message:
    name: str
    id: str
    package: str = ""
    documentation: str = ""
    fields: list[Field] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    one_ofs: list[OneOf] = field(default_factory=list)
    # Synthetic entry message of a map field.
    is_map: bool = False
    deprecated: bool = False
    parent_id: str | None = None
    codec: Any = None


@dataclass
class Method:
    name: str
    id: str
    input_type_id: str
    output_type_id: str
    documentation: str = ""
    path_info: PathInfo = field(default_factory=PathInfo)
    operation_info: OperationInfo | None = None
    client_side_streaming: bool = False
    server_side_streaming: bool = False
    returns_empty: bool = False
    deprecated: bool = False
    service_id: str | None = None
    codec: Any = None


@dataclass
class Service:
    name: str
    id: str
    package: str = ""
    documentation: str = ""
    default_host: str = ""
    methods: list[Method] = field(default_factory=list)
    deprecated: bool = False
    codec: Any = None


@dataclass
class APIState:
    """Lookup tables from fully qualified IDs to model nodes.

    The tables cover every type known while parsing, including types from
    dependencies that are not generated.
    """

    service_by_id: dict[str, Service] = field(default_factory=dict)
    method_by_id: dict[str, Method] = field(default_factory=dict)
    message_by_id: dict[str, Message] = field(default_factory=dict)
    enum_by_id: dict[str, Enum] = field(default_factory=dict)

    @staticmethod
    def _register(table: dict[str, Any], node: Any) -> None:  # noqa: ANN401
        existing = table.get(node.id)
        if existing is not None and existing is not node:
            msg = f"duplicate definition for {node.id}"
            raise SpecificationError(msg)
        table[node.id] = node

    def register_message(self, message: Message) -> None:
        self._register(self.message_by_id, message)

    def register_enum(self, enum: Enum) -> None:
        self._register(self.enum_by_id, enum)

    def register_service(self, service: Service) -> None:
        self._register(self.service_by_id, service)

    def register_method(self, method: Method) -> None:
        self._register(self.method_by_id, method)

    def parent_of(self, node: Message | Enum) -> Message | None:
        """Return the message that owns ``node``, or None for top-level types."""
        if node.parent_id is None:
            return None
        parent = self.message_by_id.get(node.parent_id)
        if parent is None:
            msg = f"parent {node.parent_id} of {node.id} is not a known message"
            raise CrossReferenceError(msg)
        return parent

    def ancestors(self, node: Message | Enum) -> list[Message]:
        """Return the enclosing messages of ``node``, outermost first."""
        chain: list[Message] = []
        seen = {node.id}
        parent = self.parent_of(node)
        while parent is not None:
            if parent.id in seen:
                msg = f"message {parent.id} is nested inside itself"
                raise CrossReferenceError(msg)
            seen.add(parent.id)
            chain.append(parent)
            parent = self.parent_of(parent)
        chain.reverse()
        return chain


@dataclass
class API:
    """The root of the model."""

    name: str = ""
    package_name: str = ""
    title: str = ""
    description: str = ""
    services: list[Service] = field(default_factory=list)
    messages: list[Message] = field(default_factory=list)
    enums: list[Enum] = field(default_factory=list)
    state: APIState = field(default_factory=APIState)
    codec: Any = None

    def all_messages(self) -> list[Message]:
        """Generated messages, depth first, parents before their children."""
        result: list[Message] = []

        def _walk(messages: list[Message]) -> None:
            for message in messages:
                result.append(message)
                _walk(message.messages)

        _walk(self.messages)
        return result

    def all_enums(self) -> list[Enum]:
        """Generated enums, top-level ones first, then nested ones in message order."""
        result = list(self.enums)
        for message in self.all_messages():
            result.extend(message.enums)
        return result
