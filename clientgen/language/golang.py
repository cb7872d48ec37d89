"""
Go codec.

Go packages are flat, so nested types are spelled with their parents as
prefixes: ``.pkg.SecretVersion.State`` becomes ``SecretVersion_State`` and
its values ``SecretVersion_ENABLED``. Types from other protobuf packages
are imported through ``import-mapping:<proto package>`` options whose
value is ``<import path>;<package name>``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from clientgen.api.model import API, Enum, EnumValue, Field, Message, Method, PathInfo, Service, Typez
from clientgen.api.wkt import well_known_id
from clientgen.errors import ConfigurationError
from clientgen.language.codec import Codec
from clientgen.utils.string_case import (
    camelcase,
    escape_go_keyword,
    is_pascalcase,
    normalize_identifier,
    pascalcase,
    snakecase,
)

logger = logging.getLogger(__name__)

_SCALAR_TYPES: Final = {
    Typez.DOUBLE_TYPE: "float64",
    Typez.FLOAT_TYPE: "float32",
    Typez.INT64_TYPE: "int64",
    Typez.SINT64_TYPE: "int64",
    Typez.SFIXED64_TYPE: "int64",
    Typez.UINT64_TYPE: "uint64",
    Typez.FIXED64_TYPE: "uint64",
    Typez.INT32_TYPE: "int32",
    Typez.SINT32_TYPE: "int32",
    Typez.SFIXED32_TYPE: "int32",
    Typez.UINT32_TYPE: "uint32",
    Typez.FIXED32_TYPE: "uint32",
    Typez.BOOL_TYPE: "bool",
    Typez.STRING_TYPE: "string",
    Typez.BYTES_TYPE: "[]byte",
}


@dataclass(frozen=True)
class GoImport:
    path: str
    name: str


# Well-known types with a native Go spelling, and the import each needs.
_WELL_KNOWN_TYPES: Final[dict[str, tuple[str, GoImport | None]]] = {
    well_known_id("Timestamp"): ("time.Time", GoImport("time", "time")),
    well_known_id("Duration"): ("time.Duration", GoImport("time", "time")),
    well_known_id("Any"): ("any", None),
    well_known_id("Value"): ("any", None),
    well_known_id("Struct"): ("map[string]any", None),
    well_known_id("ListValue"): ("[]any", None),
    well_known_id("FieldMask"): ("string", None),
    well_known_id("Empty"): ("struct{}", None),
    well_known_id("BoolValue"): ("bool", None),
    well_known_id("BytesValue"): ("[]byte", None),
    well_known_id("DoubleValue"): ("float64", None),
    well_known_id("FloatValue"): ("float32", None),
    well_known_id("Int32Value"): ("int32", None),
    well_known_id("Int64Value"): ("int64", None),
    well_known_id("StringValue"): ("string", None),
    well_known_id("UInt32Value"): ("uint32", None),
    well_known_id("UInt64Value"): ("uint64", None),
}

# Already nil-able, never wrapped in a pointer.
_NILABLE_TYPES: Final = frozenset({"any", "map[string]any", "[]any", "[]byte"})


def parse_import_mapping(key: str, value: str) -> tuple[str, GoImport]:
    """Parse an ``import-mapping:<proto package>`` option.

    Examples:
        >>> parse_import_mapping("import-mapping:google.type", "google.golang.org/genproto/googleapis/type/date;date")
        ('google.type', GoImport(path='google.golang.org/genproto/googleapis/type/date', name='date'))
    """
    package = key.removeprefix("import-mapping:")
    path, sep, name = value.partition(";")
    if not sep or not path or not name:
        msg = f"{key!r} must have the form '<import path>;<package name>', got {value!r}"
        raise ConfigurationError(msg)
    return package, GoImport(path=path, name=name)


class GoCodec(Codec):
    language = "go"
    template_root = "go"
    doc_prefix = "//"
    path_placeholder = "%s"

    def __init__(self, options: dict[str, str] | None = None) -> None:
        super().__init__(options)
        self.go_package_name = self.options.get("go-package-name", "")
        self.module_path = self.options.get("go-module", "")
        self.import_mapping: dict[str, GoImport] = {}
        for key, value in self.options.items():
            if key.startswith("import-mapping:"):
                package, go_import = parse_import_mapping(key, value)
                self.import_mapping[package] = go_import

    def to_snake(self, name: str) -> str:
        return escape_go_keyword(snakecase(name))

    def to_pascal(self, name: str) -> str:
        return name if is_pascalcase(name) else pascalcase(name)

    def to_camel(self, name: str) -> str:
        return escape_go_keyword(camelcase(name))

    def field_name(self, field: Field) -> str:
        return self.to_pascal(field.name)

    def _flat_name(self, node: Message | Enum, model: API) -> str:
        return "_".join(self.to_pascal(n.name) for n in [*model.state.ancestors(node), node])

    def _qualifier(self, package: str, model: API) -> str:
        if package == model.package_name:
            return ""
        go_import = self.import_mapping.get(package)
        if go_import is None:
            logger.warning(f"No import mapping for package {package}, assuming it is local")
            return ""
        return f"{go_import.name}."

    def message_name(self, message: Message, model: API) -> str:
        return self._flat_name(message, model)

    def fq_message_name(self, message: Message, model: API) -> str:
        if message.id in _WELL_KNOWN_TYPES:
            return _WELL_KNOWN_TYPES[message.id][0]
        return self._qualifier(message.package, model) + self.message_name(message, model)

    def enum_name(self, enum: Enum, model: API) -> str:
        return self._flat_name(enum, model)

    def fq_enum_name(self, enum: Enum, model: API) -> str:
        return self._qualifier(enum.package, model) + self.enum_name(enum, model)

    def _value_prefix(self, value: EnumValue, model: API) -> tuple[Enum | None, str]:
        enum = model.state.enum_by_id.get(value.parent_id or "")
        if enum is None:
            logger.error(f"Unable to lookup enum {value.parent_id} of value {value.id}")
            return None, ""
        # Values are scoped like the enum itself, minus the enum's own name.
        parent = model.state.parent_of(enum)
        return enum, (self._flat_name(parent, model) if parent is not None else self.enum_name(enum, model))

    def enum_value_name(self, value: EnumValue, model: API) -> str:
        _, prefix = self._value_prefix(value, model)
        name = normalize_identifier(value.name).upper()
        return f"{prefix}_{name}" if prefix else name

    def fq_enum_value_name(self, value: EnumValue, model: API) -> str:
        enum, _ = self._value_prefix(value, model)
        qualifier = self._qualifier(enum.package, model) if enum is not None else ""
        return qualifier + self.enum_value_name(value, model)

    def module_name(self, message: Message | Enum | Service, model: API) -> str:  # noqa: ARG002
        return snakecase(message.name)

    def scalar_type(self, typez: Typez) -> str:
        return _SCALAR_TYPES.get(typez, "")

    def field_type(self, field: Field, model: API) -> str:
        if field.typez == Typez.MESSAGE_TYPE:
            target = self.lookup_message(field.typez_id, model, field.id)
            if target is None:
                return ""
            if target.is_map:
                key, value = self.map_entry_fields(target)
                return f"map[{self.primitive_field_type(key, model)}]{self.primitive_field_type(value, model)}"
        base = self.primitive_field_type(field, model)
        if not base:
            return ""
        if field.repeated:
            return f"[]{base}"
        if (field.optional or field.is_oneof) and base not in _NILABLE_TYPES:
            return f"*{base}"
        return base

    def field_attributes(self, field: Field, model: API) -> list[str]:  # noqa: ARG002
        omit = ",omitempty" if field.optional or field.repeated or field.is_oneof else ""
        return [f'`json:"{field.json_name}{omit}"`']

    def message_attributes(self, message: Message, model: API) -> list[str]:  # noqa: ARG002
        return []

    def getter(self, name: str) -> str:
        """Name of the accessor generated for field ``name``."""
        return f"Get{self.to_pascal(name)}"

    def http_path_args(self, path_info: PathInfo, method: Method, model: API) -> list[str]:
        request = model.state.message_by_id.get(method.input_type_id)
        args: list[str] = []
        for field_path in path_info.field_paths:
            accessors: list[str] = []
            message = request
            for part in field_path.split("."):
                field = self.find_field(message, part) if message is not None else None
                if field is None:
                    logger.error(f"Unable to find field {field_path} in request {method.input_type_id}")
                accessors.append(f"{self.getter(field.name if field else part)}()")
                message = model.state.message_by_id.get(field.typez_id) if field else None
            args.append("req." + ".".join(accessors))
        return args

    def as_query_parameter(self, field: Field, model: API) -> str:  # noqa: ARG002
        accessor = f"req.{self.getter(field.name)}()"
        if field.repeated:
            return f'for _, v := range {accessor} {{ params.Add("{field.json_name}", fmt.Sprintf("%v", v)) }}'
        if field.optional or field.is_oneof:
            member = f"req.{self.to_pascal(field.name)}"
            return f'if {member} != nil {{ params.Add("{field.json_name}", fmt.Sprintf("%v", {accessor})) }}'
        return f'params.Add("{field.json_name}", fmt.Sprintf("%v", {accessor}))'

    def body_accessor(self, method: Method) -> str:
        body = method.path_info.body_field_path
        if body in ("", "*"):
            return ""
        return f".{self.to_pascal(body)}"

    def default_package_name(self, model: API) -> str:
        if self.go_package_name:
            return self.go_package_name
        parts = [p for p in model.package_name.split(".") if p and not (p[0] == "v" and p[1:2].isdigit())]
        if parts:
            return parts[-1].replace("_", "")
        return (model.name or "client").replace("-", "").replace("_", "").lower()

    def imports(self, model: API) -> list[str]:
        paths: set[str] = set()
        for message in model.all_messages():
            for f in message.fields:
                well_known = _WELL_KNOWN_TYPES.get(f.typez_id)
                if well_known is not None and well_known[1] is not None:
                    paths.add(well_known[1].path)
        for package in self.referenced_packages(model):
            if package in self.import_mapping and package != model.package_name:
                paths.add(self.import_mapping[package].path)
        return sorted(paths)

    def required_packages(self, model: API) -> list[str]:
        """Non-standard-library imports, for go.mod."""
        return [path for path in self.imports(model) if "." in path.split("/")[0]]

    def additional_context(self, model: API) -> dict[str, str]:
        return {"module_path": self.module_path or f"example.com/{self.package_name(model)}"}

    def format_commands(self, output_dir: Path) -> list[list[str]]:
        return [["gofmt", "-w", str(output_dir)]]
