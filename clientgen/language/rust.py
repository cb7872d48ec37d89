"""
Rust codec.

Generated crates put every message of the API in a ``model`` module. A
nested message or enum lives in a module named after its parent in
snake_case, so ``.pkg.SecretVersion.State`` becomes
``crate::model::secret_version::State``. Types from other packages are
referenced through the crates configured with ``package:<name>`` options.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from clientgen.api.model import API, Enum, EnumValue, Field, Message, Method, PathInfo, Service, Typez
from clientgen.errors import ConfigurationError
from clientgen.language.codec import Codec
from clientgen.utils.string_case import (
    camelcase,
    constcase,
    escape_rust_keyword,
    is_pascalcase,
    normalize_identifier,
    pascalcase,
    snakecase,
)

logger = logging.getLogger(__name__)

_SCALAR_TYPES: Final = {
    Typez.DOUBLE_TYPE: "f64",
    Typez.FLOAT_TYPE: "f32",
    Typez.INT64_TYPE: "i64",
    Typez.SINT64_TYPE: "i64",
    Typez.SFIXED64_TYPE: "i64",
    Typez.UINT64_TYPE: "u64",
    Typez.FIXED64_TYPE: "u64",
    Typez.INT32_TYPE: "i32",
    Typez.SINT32_TYPE: "i32",
    Typez.SFIXED32_TYPE: "i32",
    Typez.UINT32_TYPE: "u32",
    Typez.FIXED32_TYPE: "u32",
    Typez.BOOL_TYPE: "bool",
    Typez.STRING_TYPE: "std::string::String",
    Typez.BYTES_TYPE: "bytes::Bytes",
}

_INT64_TYPES: Final = frozenset(
    {Typez.INT64_TYPE, Typez.SINT64_TYPE, Typez.SFIXED64_TYPE, Typez.UINT64_TYPE, Typez.FIXED64_TYPE}
)

_LOCAL_SCOPE: Final = "crate::model"


@dataclass(frozen=True)
class RustPackage:
    """A crate that provides the Rust types of one protobuf package."""

    name: str
    package: str
    version: str = ""
    path: str = ""

    def dependency(self) -> str:
        parts = []
        if self.version:
            parts.append(f'version = "{self.version}"')
        if self.path:
            parts.append(f'path = "{self.path}"')
        parts.append(f'package = "{self.package}"')
        return f"{self.name} = {{ {', '.join(parts)} }}"


DEFAULT_PACKAGES: Final = {
    "google.protobuf": RustPackage(name="wkt", package="google-cloud-wkt", version="0.2"),
    "google.longrunning": RustPackage(name="longrunning", package="google-cloud-longrunning", version="0.2"),
    "google.cloud.location": RustPackage(name="location", package="google-cloud-location", version="0.2"),
    "google.rpc": RustPackage(name="rpc", package="google-cloud-rpc", version="0.2"),
    "google.type": RustPackage(name="gtype", package="google-cloud-type", version="0.2"),
}


def parse_package_option(key: str, value: str) -> tuple[str, RustPackage]:
    """Parse a ``package:<name>`` option.

    The value is a comma separated list of ``key=value`` pairs; ``package``
    and ``source`` are required.

    Examples:
        >>> parse_package_option("package:wkt", "package=google-cloud-wkt,source=google.protobuf")
        ('google.protobuf', RustPackage(name='wkt', package='google-cloud-wkt', version='', path=''))
    """
    name = key.removeprefix("package:")
    settings: dict[str, str] = {}
    for item in value.split(","):
        k, sep, v = item.partition("=")
        if not sep:
            msg = f"cannot parse {key!r}: expected key=value pairs, got {item!r}"
            raise ConfigurationError(msg)
        settings[k.strip()] = v.strip()
    if "package" not in settings or "source" not in settings:
        msg = f"{key!r} must set both `package` and `source`"
        raise ConfigurationError(msg)
    package = RustPackage(
        name=name,
        package=settings["package"],
        version=settings.get("version", ""),
        path=settings.get("path", ""),
    )
    return settings["source"], package


class RustCodec(Codec):
    language = "rust"
    template_root = "rust/crate"
    doc_prefix = "///"
    path_placeholder = "{}"

    def __init__(self, options: dict[str, str] | None = None) -> None:
        super().__init__(options)
        self.packages: dict[str, RustPackage] = dict(DEFAULT_PACKAGES)
        for key, value in self.options.items():
            if key.startswith("package:"):
                source, package = parse_package_option(key, value)
                self.packages[source] = package

    def to_snake(self, name: str) -> str:
        return escape_rust_keyword(snakecase(name))

    def to_pascal(self, name: str) -> str:
        return escape_rust_keyword(name if is_pascalcase(name) else pascalcase(name))

    def to_camel(self, name: str) -> str:
        return escape_rust_keyword(camelcase(name))

    def _scope(self, package: str, model: API) -> str:
        if package == model.package_name:
            return _LOCAL_SCOPE
        mapped = self.packages.get(package)
        if mapped is not None:
            return mapped.name
        logger.warning(f"No crate configured for package {package}, assuming it is local")
        return _LOCAL_SCOPE

    def _qualified(self, node: Message | Enum, name: str, model: API) -> str:
        modules = [self.to_snake(parent.name) for parent in model.state.ancestors(node)]
        return "::".join([self._scope(node.package, model), *modules, name])

    def message_name(self, message: Message, model: API) -> str:  # noqa: ARG002
        return self.to_pascal(message.name)

    def fq_message_name(self, message: Message, model: API) -> str:
        return self._qualified(message, self.message_name(message, model), model)

    def enum_name(self, enum: Enum, model: API) -> str:  # noqa: ARG002
        return self.to_pascal(enum.name)

    def fq_enum_name(self, enum: Enum, model: API) -> str:
        return self._qualified(enum, self.enum_name(enum, model), model)

    def enum_value_name(self, value: EnumValue, model: API) -> str:
        enum = model.state.enum_by_id.get(value.parent_id or "")
        name = normalize_identifier(value.name)
        name = name if name.isupper() else constcase(name)
        if enum is not None:
            prefix = f"{constcase(enum.name)}_"
            stripped = name.removeprefix(prefix)
            if stripped and not stripped[0].isdigit():
                name = stripped
        return escape_rust_keyword(name)

    def fq_enum_value_name(self, value: EnumValue, model: API) -> str:
        enum = model.state.enum_by_id.get(value.parent_id or "")
        if enum is None:
            logger.error(f"Unable to lookup enum {value.parent_id} of value {value.id}")
            return ""
        return f"{self.fq_enum_name(enum, model)}::{self.enum_value_name(value, model)}"

    def module_name(self, message: Message | Enum | Service, model: API) -> str:  # noqa: ARG002
        return self.to_snake(message.name)

    def scalar_type(self, typez: Typez) -> str:
        return _SCALAR_TYPES.get(typez, "")

    def field_type(self, field: Field, model: API) -> str:
        if field.typez == Typez.MESSAGE_TYPE:
            target = self.lookup_message(field.typez_id, model, field.id)
            if target is None:
                return ""
            if target.is_map:
                key, value = self.map_entry_fields(target)
                return (
                    f"std::collections::HashMap<{self.primitive_field_type(key, model)},"
                    f"{self.primitive_field_type(value, model)}>"
                )
        base = self.primitive_field_type(field, model)
        if not base:
            return ""
        if field.repeated:
            return f"std::vec::Vec<{base}>"
        if field.optional or field.is_oneof:
            if self.is_recursive(field, model):
                return f"std::option::Option<std::boxed::Box<{base}>>"
            return f"std::option::Option<{base}>"
        return base

    def field_attributes(self, field: Field, model: API) -> list[str]:
        attributes: list[str] = []
        if field.json_name != camelcase(field.name):
            attributes.append(f'#[serde(rename = "{field.json_name}")]')
        target = model.state.message_by_id.get(field.typez_id) if field.typez == Typez.MESSAGE_TYPE else None
        if target is not None and target.is_map:
            attributes.append('#[serde(skip_serializing_if = "std::collections::HashMap::is_empty")]')
        elif field.repeated:
            attributes.append('#[serde(skip_serializing_if = "std::vec::Vec::is_empty")]')
        elif field.optional or field.is_oneof:
            attributes.append('#[serde(skip_serializing_if = "std::option::Option::is_none")]')
        else:
            attributes.append('#[serde(skip_serializing_if = "wkt::internal::is_default")]')

        serde_as = ""
        if field.typez in _INT64_TYPES:
            serde_as = "serde_with::DisplayFromStr"
        elif field.typez == Typez.BYTES_TYPE:
            serde_as = "serde_with::base64::Base64"
        if serde_as:
            if field.repeated:
                serde_as = f"std::vec::Vec<{serde_as}>"
            elif field.optional:
                serde_as = f"std::option::Option<{serde_as}>"
            attributes.append(f'#[serde_as(as = "{serde_as}")]')
        return attributes

    def message_attributes(self, message: Message, model: API) -> list[str]:  # noqa: ARG002
        attributes = [
            "#[serde_with::serde_as]",
            "#[derive(Clone, Debug, Default, PartialEq, serde::Deserialize, serde::Serialize)]",
            "#[serde(default, rename_all = \"camelCase\")]",
            "#[non_exhaustive]",
        ]
        if message.deprecated:
            attributes.insert(0, "#[deprecated]")
        return attributes

    def http_path_args(self, path_info: PathInfo, method: Method, model: API) -> list[str]:
        request = model.state.message_by_id.get(method.input_type_id)
        return [self._path_arg(field_path, request, model) for field_path in path_info.field_paths]

    def _path_arg(self, field_path: str, request: Message | None, model: API) -> str:
        parts = field_path.split(".")
        expression = "req"
        message = request
        for i, part in enumerate(parts):
            field = self.find_field(message, part) if message is not None else None
            if field is None:
                logger.error(f"Unable to find field {field_path} in request {request.id if request else '<unknown>'}")
                return f"{expression}.{self.to_snake(part)}"
            expression += f".{self.to_snake(field.name)}"
            is_last = i == len(parts) - 1
            if not is_last or field.optional:
                missing = ".".join(parts[: i + 1])
                expression += f'.as_ref().ok_or_else(|| gax::path_parameter::missing("{missing}"))?'
            if not is_last:
                message = model.state.message_by_id.get(field.typez_id)
        return expression

    def as_query_parameter(self, field: Field, model: API) -> str:  # noqa: ARG002
        name = self.to_snake(field.name)
        if field.repeated:
            return (
                f"let builder = req.{name}.iter()"
                f'.fold(builder, |builder, p| builder.query(&[("{field.json_name}", p)]));'
            )
        if field.typez == Typez.MESSAGE_TYPE:
            return (
                f"let builder = req.{name}.as_ref()"
                ".map(|p| serde_json::to_value(p).map_err(Error::ser)).transpose()?"
                ".into_iter().fold(builder, |builder, v| { use gax::query_parameter::QueryParameter; "
                f'v.add(builder, "{field.json_name}") }});'
            )
        if field.optional:
            return (
                f"let builder = req.{name}.iter()"
                f'.fold(builder, |builder, p| builder.query(&[("{field.json_name}", p)]));'
            )
        if field.typez == Typez.ENUM_TYPE:
            return f'let builder = builder.query(&[("{field.json_name}", &req.{name}.value())]);'
        return f'let builder = builder.query(&[("{field.json_name}", &req.{name})]);'

    def body_accessor(self, method: Method) -> str:
        body = method.path_info.body_field_path
        if body in ("", "*"):
            return ""
        return f".{self.to_snake(body)}"

    def default_package_name(self, model: API) -> str:
        if model.package_name:
            parts = model.package_name.split(".")
            if parts[:2] == ["google", "cloud"]:
                parts = parts[2:]
            elif parts[:1] == ["google"]:
                parts = parts[1:]
            return "google-cloud-" + "-".join(parts)
        return snakecase(model.name or "client").replace("_", "-")

    def required_packages(self, model: API) -> list[str]:
        used = self.referenced_packages(model)
        dependencies = {self.packages[p].dependency() for p in used if p in self.packages and p != model.package_name}
        if any(m.operation_info is not None for s in model.services for m in s.methods):
            dependencies.add(self.packages["google.longrunning"].dependency())
        dependencies.add(self.packages["google.protobuf"].dependency())
        return sorted(dependencies)

    def format_commands(self, output_dir: Path) -> list[list[str]]:
        return [["cargo", "fmt", "--manifest-path", str(output_dir / "Cargo.toml")]]
