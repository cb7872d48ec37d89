"""
OpenAPI v3 parser.

Maps an OpenAPI document onto the same model the protobuf parser builds:
component schemas become messages (or enums, for string enumerations),
operations become methods of a single service and each operation gets a
synthetic request message holding its parameters.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final

import yaml
from google.api import service_pb2

from clientgen.api.model import API, Enum, EnumValue, Field, Message, Method, PathInfo, Service, Typez
from clientgen.api.wkt import load_well_known_types, well_known_id
from clientgen.errors import SpecificationError
from clientgen.parser.mixins import MIXIN_SERVICES
from clientgen.parser.pathtemplate import parse_path_template
from clientgen.parser.service_config import api_names, package_from_config
from clientgen.utils.string_case import is_pascalcase, normalize_identifier, pascalcase

logger = logging.getLogger(__name__)

_HTTP_METHODS: Final = ("get", "put", "post", "delete", "patch")
_JSON_CONTENT: Final = "application/json"
_DEFAULT_SERVICE_NAME: Final = "Service"

_INTEGER_FORMATS: Final = {
    None: (Typez.INT64_TYPE, Typez.UINT64_TYPE),
    "int32": (Typez.INT32_TYPE, Typez.UINT32_TYPE),
    "int64": (Typez.INT64_TYPE, Typez.UINT64_TYPE),
}

_NUMBER_FORMATS: Final = {
    None: Typez.DOUBLE_TYPE,
    "float": Typez.FLOAT_TYPE,
    "double": Typez.DOUBLE_TYPE,
}

# String formats that map onto well-known messages.
_STRING_MESSAGE_FORMATS: Final = {
    "date-time": well_known_id("Timestamp"),
    "google-datetime": well_known_id("Timestamp"),
    "google-duration": well_known_id("Duration"),
    "google-fieldmask": well_known_id("FieldMask"),
}


def _extract_ref_name(ref_string: str) -> str:
    """Extract the reference name from an OpenAPI $ref string.

    Args:
        ref_string: The $ref value (e.g., "#/components/schemas/Model").

    Returns:
        The extracted reference name (e.g., "Model").
    """
    return ref_string.split("/")[-1]


def _unsigned(schema: dict[str, Any]) -> bool:
    return schema.get("minimum") == 0


def _type_key(typez: Typez, typez_id: str) -> str:
    return typez_id or typez.name.removesuffix("_TYPE").lower()


class OpenAPIParser:
    """Parser for OpenAPI 3.x specifications."""

    def __init__(self, package_name: str = "", service_name: str = _DEFAULT_SERVICE_NAME) -> None:
        self.package_name = package_name
        self.service_name = service_name or _DEFAULT_SERVICE_NAME
        self.spec_data: dict[str, Any] = {}
        self.schemas: dict[str, Any] = {}
        self.api = API()

    def parse_file(self, file_path: str | Path) -> API:
        """Parse an OpenAPI specification from a JSON or YAML file."""
        path = Path(file_path)
        with path.open(encoding="utf-8") as f:
            try:
                data = json.load(f) if path.suffix == ".json" else yaml.safe_load(f)
            except (json.JSONDecodeError, yaml.YAMLError) as e:
                msg = f"cannot decode OpenAPI document {path}: {e}"
                raise SpecificationError(msg) from e
        if not isinstance(data, dict):
            msg = f"OpenAPI document {path} is not a mapping"
            raise SpecificationError(msg)
        return self.parse_dict(data)

    def parse_dict(self, spec_dict: dict[str, Any]) -> API:
        """Parse an OpenAPI specification from a dictionary."""
        version = str(spec_dict.get("openapi", ""))
        if not version.startswith("3"):
            msg = f"unsupported OpenAPI version {version or '<missing>'}, only 3.x is supported"
            raise SpecificationError(msg)

        self.spec_data = spec_dict
        self.schemas = spec_dict.get("components", {}).get("schemas", {})
        self.api = API(package_name=self.package_name)

        info = spec_dict.get("info", {})
        self.api.title = info.get("title", "")
        self.api.description = info.get("description", "")

        self._parse_schemas()
        self.api.services.append(self._parse_service(info))
        load_well_known_types(self.api.state)
        return self.api

    def _qualify(self, name: str) -> str:
        return f".{self.package_name}.{name}" if self.package_name else f".{name}"

    def _is_enum_schema(self, name: str) -> bool:
        schema = self.schemas.get(name, {})
        return schema.get("type") == "string" and "enum" in schema

    def _parse_schemas(self) -> None:
        for name, schema in self.schemas.items():
            if self._is_enum_schema(name):
                self.api.enums.append(self._parse_enum(name, schema))
            elif schema.get("type", "object") == "object":
                self.api.messages.append(self._parse_message(name, self._qualify(name), schema, None))
            else:
                logger.warning(f"Skipping schema {name}: top-level {schema.get('type')} schemas are not supported")

    def _parse_enum(self, name: str, schema: dict[str, Any]) -> Enum:
        enum_id = self._qualify(name)
        enum = Enum(name=name, id=enum_id, package=self.package_name, documentation=schema.get("description", ""))
        enum.values = [
            EnumValue(name=str(value), id=f"{enum_id}.{value}", number=number, parent_id=enum_id)
            for number, value in enumerate(schema["enum"])
        ]
        self.api.state.register_enum(enum)
        return enum

    def _parse_message(self, name: str, message_id: str, schema: dict[str, Any], parent_id: str | None) -> Message:
        message = Message(
            name=name,
            id=message_id,
            package=self.package_name,
            documentation=schema.get("description", ""),
            deprecated=bool(schema.get("deprecated", False)),
            parent_id=parent_id,
        )
        self.api.state.register_message(message)
        required = set(schema.get("required", []))
        for field_name, field_schema in schema.get("properties", {}).items():
            message.fields.append(self._make_field(message, field_name, field_schema, optional=field_name not in required))
        return message

    def _make_field(self, message: Message, name: str, schema: dict[str, Any], *, optional: bool) -> Field:
        documentation = schema.get("description", "")
        identifier = normalize_identifier(name)
        if schema.get("type") == "array":
            items = schema.get("items")
            if not items:
                msg = f"cannot handle arrays without an `items` field for {message.id}.{name}"
                raise SpecificationError(msg)
            if items.get("type") == "array":
                msg = f"nested arrays are not supported for {message.id}.{name}"
                raise SpecificationError(msg)
            typez, typez_id = self._element_type(message, name, items)
            return Field(
                name=identifier,
                id=f"{message.id}.{identifier}",
                json_name=name,
                typez=typez,
                typez_id=typez_id,
                documentation=documentation,
                repeated=True,
                optional=False,
            )

        typez, typez_id = self._element_type(message, name, schema)
        if typez == Typez.MESSAGE_TYPE:
            target = self.api.state.message_by_id.get(typez_id)
            # Maps are never optional, other messages always are.
            optional = not (target is not None and target.is_map)
        return Field(
            name=identifier,
            id=f"{message.id}.{identifier}",
            json_name=name,
            typez=typez,
            typez_id=typez_id,
            documentation=documentation,
            optional=optional,
            deprecated=bool(schema.get("deprecated", False)),
        )

    def _element_type(self, message: Message, name: str, schema: dict[str, Any]) -> tuple[Typez, str]:
        if "$ref" in schema:
            return self._reference_type(schema["$ref"])
        if "allOf" in schema:
            refs = [s["$ref"] for s in schema["allOf"] if "$ref" in s]
            if not refs:
                msg = f"`allOf` without a reference is not supported for field {message.id}.{name}"
                raise SpecificationError(msg)
            return self._reference_type(refs[0])

        match schema.get("type"):
            case "boolean":
                return Typez.BOOL_TYPE, ""
            case "integer":
                return self._integer_type(message, name, schema), ""
            case "number":
                return self._number_type(message, name, schema), ""
            case "string":
                return self._string_type(schema)
            case "object":
                return self._object_type(message, name, schema)
            case None:
                msg = f"missing field type for field {message.id}.{name}"
                raise SpecificationError(msg)
            case unknown:
                msg = f"unknown schema type {unknown!r} for field {message.id}.{name}"
                raise SpecificationError(msg)

    def _reference_type(self, ref: str) -> tuple[Typez, str]:
        name = _extract_ref_name(ref)
        if name not in self.schemas:
            msg = f"reference {ref} does not name a component schema"
            raise SpecificationError(msg)
        if self._is_enum_schema(name):
            return Typez.ENUM_TYPE, self._qualify(name)
        return Typez.MESSAGE_TYPE, self._qualify(name)

    @staticmethod
    def _integer_type(message: Message, name: str, schema: dict[str, Any]) -> Typez:
        formats = _INTEGER_FORMATS.get(schema.get("format"))
        if formats is None:
            msg = f"unknown integer format {schema.get('format')!r} for field {message.id}.{name}"
            raise SpecificationError(msg)
        signed, unsigned = formats
        return unsigned if _unsigned(schema) else signed

    @staticmethod
    def _number_type(message: Message, name: str, schema: dict[str, Any]) -> Typez:
        typez = _NUMBER_FORMATS.get(schema.get("format"))
        if typez is None:
            msg = f"unknown number format {schema.get('format')!r} for field {message.id}.{name}"
            raise SpecificationError(msg)
        return typez

    @staticmethod
    def _string_type(schema: dict[str, Any]) -> tuple[Typez, str]:
        string_format = schema.get("format")
        match string_format:
            case "byte" | "binary":
                return Typez.BYTES_TYPE, ""
            case "int32":
                return (Typez.UINT32_TYPE if _unsigned(schema) else Typez.INT32_TYPE), ""
            case "int64":
                return (Typez.UINT64_TYPE if _unsigned(schema) else Typez.INT64_TYPE), ""
            case _ if string_format in _STRING_MESSAGE_FORMATS:
                return Typez.MESSAGE_TYPE, _STRING_MESSAGE_FORMATS[string_format]
        return Typez.STRING_TYPE, ""

    def _object_type(self, message: Message, name: str, schema: dict[str, Any]) -> tuple[Typez, str]:
        additional = schema.get("additionalProperties")
        if isinstance(additional, dict) and ("type" in additional or "$ref" in additional):
            return Typez.MESSAGE_TYPE, self._map_message(message, name, additional)
        if schema.get("properties"):
            nested_name = pascalcase(name)
            nested = self._parse_message(nested_name, f"{message.id}.{nested_name}", schema, message.id)
            message.messages.append(nested)
            return Typez.MESSAGE_TYPE, nested.id
        return Typez.MESSAGE_TYPE, well_known_id("Any")

    def _map_message(self, message: Message, name: str, value_schema: dict[str, Any]) -> str:
        if value_schema.get("type") == "array":
            msg = f"maps of arrays are not supported for field {message.id}.{name}"
            raise SpecificationError(msg)
        value_typez, value_id = self._element_type(message, name, value_schema)
        map_id = f"$map<string, {_type_key(value_typez, value_id)}>"
        if map_id not in self.api.state.message_by_id:
            entry = Message(name=map_id, id=map_id, package=self.package_name, is_map=True)
            entry.fields = [
                Field(name="key", id=f"{map_id}.key", typez=Typez.STRING_TYPE),
                Field(name="value", id=f"{map_id}.value", typez=value_typez, typez_id=value_id),
            ]
            self.api.state.register_message(entry)
        return map_id

    def _resolve_parameter(self, parameter: dict[str, Any]) -> dict[str, Any]:
        if "$ref" not in parameter:
            return parameter
        resolved: Any = self.spec_data
        for part in parameter["$ref"].split("/")[1:]:
            resolved = resolved.get(part) if isinstance(resolved, dict) else None
        if not isinstance(resolved, dict):
            msg = f"cannot resolve parameter reference {parameter['$ref']}"
            raise SpecificationError(msg)
        return resolved

    def _parse_service(self, info: dict[str, Any]) -> Service:
        service = Service(
            name=self.service_name,
            id=self._qualify(self.service_name),
            package=self.package_name,
            documentation=info.get("description", ""),
            default_host=self._default_host(),
        )
        for path, path_item in self.spec_data.get("paths", {}).items():
            shared_parameters = path_item.get("parameters", [])
            for verb in _HTTP_METHODS:
                if verb in path_item:
                    method = self._parse_operation(service, path, verb, path_item[verb], shared_parameters)
                    if method is not None:
                        service.methods.append(method)
        return service

    def _default_host(self) -> str:
        urls = [server.get("url", "") for server in self.spec_data.get("servers", []) if server.get("url")]
        if not urls:
            return ""
        return min(urls, key=len).removeprefix("https://").rstrip("/")

    def _parse_operation(
        self,
        service: Service,
        path: str,
        verb: str,
        operation: dict[str, Any],
        shared_parameters: list[dict[str, Any]],
    ) -> Method | None:
        operation_id = operation.get("operationId")
        if not operation_id:
            logger.warning(f"Skipping {verb.upper()} {path}: operations need an operationId")
            return None
        method_name = operation_id if is_pascalcase(operation_id) else pascalcase(operation_id)
        parameters = [self._resolve_parameter(p) for p in [*shared_parameters, *operation.get("parameters", [])]]

        request, body_field_path = self._request_message(method_name, operation)
        for parameter in parameters:
            if any(f.name == parameter["name"] for f in request.fields):
                continue
            request.fields.append(self._parameter_field(request, parameter))

        output_type_id, returns_empty = self._response_type(operation)
        path_info = PathInfo(
            verb=verb.upper(),
            path_template=parse_path_template(path),
            query_parameters={p["name"] for p in parameters if p.get("in") == "query"},
            body_field_path=body_field_path,
        )
        return Method(
            name=method_name,
            id=f"{service.id}.{method_name}",
            input_type_id=request.id,
            output_type_id=output_type_id,
            documentation=operation.get("description") or operation.get("summary", ""),
            path_info=path_info,
            returns_empty=returns_empty,
            deprecated=bool(operation.get("deprecated", False)),
            service_id=service.id,
        )

    def _request_message(self, method_name: str, operation: dict[str, Any]) -> tuple[Message, str]:
        body_schema = self._request_body_schema(operation)
        body_ref = (body_schema or {}).get("$ref")
        if body_ref:
            body_name = _extract_ref_name(body_ref)
            existing = self.api.state.message_by_id.get(self._qualify(body_name))
            if body_name.endswith("Request") and existing is not None:
                return existing, "*"

        request_name = f"{method_name}Request"
        request = Message(
            name=request_name,
            id=self._qualify(request_name),
            package=self.package_name,
            documentation=f"The request message for {method_name}.",
        )
        self.api.state.register_message(request)
        self.api.messages.append(request)
        if body_schema is None:
            return request, ""

        parameter_names = {p.get("name") for p in operation.get("parameters", [])}
        body_field_name = "openapiRequestBody" if "requestBody" in parameter_names else "requestBody"
        if body_ref:
            typez, typez_id = self._reference_type(body_ref)
            body = Field(
                name=body_field_name,
                id=f"{request.id}.{body_field_name}",
                typez=typez,
                typez_id=typez_id,
                optional=True,
            )
        else:
            # Inline schemas map like properties; objects become a message nested in the request.
            body = self._make_field(request, body_field_name, body_schema, optional=True)
        body.documentation = "The request body."
        body.synthetic = True
        request.fields.append(body)
        return request, body_field_name

    @staticmethod
    def _request_body_schema(operation: dict[str, Any]) -> dict[str, Any] | None:
        """The JSON schema of the operation's request body, or None without a body."""
        if "requestBody" not in operation:
            return None
        content = (operation["requestBody"] or {}).get("content", {})
        if _JSON_CONTENT not in content:
            msg = (
                f"cannot find an {_JSON_CONTENT} content type for the request body of "
                f"{operation.get('operationId')}, found {sorted(content)}"
            )
            raise SpecificationError(msg)
        schema = (content[_JSON_CONTENT] or {}).get("schema")
        if not schema:
            msg = f"the request body of {operation.get('operationId')} has no schema"
            raise SpecificationError(msg)
        return schema

    def _parameter_field(self, request: Message, parameter: dict[str, Any]) -> Field:
        name = parameter["name"]
        schema = parameter.get("schema", {"type": "string"})
        field = self._make_field(request, name, schema, optional=not parameter.get("required", False))
        field.synthetic = True
        field.documentation = parameter.get("description") or f"The `{name}` {parameter.get('in', 'query')} parameter."
        return field

    def _response_type(self, operation: dict[str, Any]) -> tuple[str, bool]:
        responses = operation.get("responses", {})
        response = responses.get("default")
        if response is None:
            response = next((r for code, r in responses.items() if str(code).startswith("2")), None)
        schema = (response or {}).get("content", {}).get(_JSON_CONTENT, {}).get("schema")
        if not schema:
            return well_known_id("Empty"), True
        if "$ref" not in schema:
            logger.warning(f"Operation {operation.get('operationId')} has an inline response schema, using Any")
            return well_known_id("Any"), False
        return self._reference_type(schema["$ref"])[1], False


def parse_openapi(source: str, service_config: service_pb2.Service | None, options: dict[str, str]) -> API:
    """Parse the OpenAPI document at ``source`` into a model."""
    package = package_from_config(service_config, MIXIN_SERVICES) or options.get("package-name", "")
    service_name = options.get("service-name", "")
    for name in api_names(service_config):
        if name not in MIXIN_SERVICES:
            service_name = name.rpartition(".")[2]
            break
    parser = OpenAPIParser(package_name=package, service_name=service_name)
    api = parser.parse_file(source)
    if service_config is not None and service_config.name:
        api.name = service_config.name.removesuffix(".googleapis.com")
        api.title = service_config.title or api.title
        api.description = service_config.documentation.summary or api.description
    else:
        api.name = package.rpartition(".")[2] if package else service_name.lower() or "api"
    return api
