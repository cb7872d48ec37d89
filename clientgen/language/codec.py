"""
Language codecs.

A codec knows how one target language spells the elements of the model:
identifiers, types, HTTP bindings and documentation. ``annotate_model``
runs the codec over a model and stores the results in the ``codec`` slot
of each node, where the templates pick them up.

Annotations are plain dataclasses tagged with the codec language. Apart
from registering well-known type placeholders, annotating never changes
the semantic fields of the model.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Final

from clientgen.api import wkt
from clientgen.api.model import (
    API,
    Enum,
    EnumValue,
    Field,
    Message,
    Method,
    OneOf,
    OperationInfo,
    PathInfo,
    Service,
    Typez,
)
from clientgen.errors import ConfigurationError, SpecificationError
from clientgen.generator.template_engine import (
    BUNDLED_TEMPLATES_DIR,
    FileSystemTemplateProvider,
    GeneratedFile,
    TemplateProvider,
    walk_templates,
)
from clientgen.utils.string_case import snakecase

logger = logging.getLogger(__name__)

_TRUE_VALUES: Final = frozenset({"true", "1", "yes"})
_FALSE_VALUES: Final = frozenset({"false", "0", "no", ""})


def parse_bool_option(options: dict[str, str], key: str, *, default: bool = False) -> bool:
    """Parse a boolean codec option.

    Raises:
        ConfigurationError: If the value is not a recognised boolean.
    """
    if key not in options:
        return default
    value = str(options[key]).strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"cannot convert {key!r} value {options[key]!r} to a boolean"
    raise ConfigurationError(msg)


@dataclass(kw_only=True)
class Annotation:
    """Base of every annotation; ``language`` names the codec that wrote it."""

    language: str


@dataclass(kw_only=True)
class FieldAnnotation(Annotation):
    name: str
    wire_name: str
    setter_name: str
    field_type: str
    primitive_type: str
    doc_lines: list[str] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    optional: bool = False
    repeated: bool = False
    is_map: bool = False
    is_message: bool = False
    is_oneof: bool = False
    deprecated: bool = False


@dataclass(kw_only=True)
class OneOfAnnotation(Annotation):
    name: str
    field_names: list[str] = field(default_factory=list)
    doc_lines: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class EnumValueAnnotation(Annotation):
    name: str
    qualified_name: str
    wire_name: str
    number: int
    doc_lines: list[str] = field(default_factory=list)


@dataclass(kw_only=True)
class EnumAnnotation(Annotation):
    name: str
    qualified_name: str
    module_name: str
    doc_lines: list[str] = field(default_factory=list)
    values: list[EnumValueAnnotation] = field(default_factory=list)
    deprecated: bool = False


@dataclass(kw_only=True)
class MessageAnnotation(Annotation):
    name: str
    qualified_name: str
    module_name: str
    wire_name: str
    doc_lines: list[str] = field(default_factory=list)
    attributes: list[str] = field(default_factory=list)
    fields: list[FieldAnnotation] = field(default_factory=list)
    one_ofs: list[OneOfAnnotation] = field(default_factory=list)
    messages: list[MessageAnnotation] = field(default_factory=list)
    enums: list[EnumAnnotation] = field(default_factory=list)
    is_map: bool = False
    deprecated: bool = False

    @property
    def has_nested_types(self) -> bool:
        return bool(self.messages or self.enums)


@dataclass(kw_only=True)
class QueryParameterAnnotation(Annotation):
    wire_name: str
    expression: str


@dataclass(kw_only=True)
class PathInfoAnnotation(Annotation):
    verb: str
    path_fmt: str
    path_args: list[str] = field(default_factory=list)
    query_params: list[QueryParameterAnnotation] = field(default_factory=list)
    body_accessor: str = ""
    has_body: bool = False


@dataclass(kw_only=True)
class OperationAnnotation(Annotation):
    metadata_type: str
    response_type: str


@dataclass(kw_only=True)
class MethodAnnotation(Annotation):
    name: str
    wire_name: str
    doc_lines: list[str] = field(default_factory=list)
    input_type: str
    output_type: str
    http: PathInfoAnnotation | None = None
    operation: OperationAnnotation | None = None
    returns_empty: bool = False
    deprecated: bool = False


@dataclass(kw_only=True)
class ServiceAnnotation(Annotation):
    name: str
    module_name: str
    wire_name: str
    doc_lines: list[str] = field(default_factory=list)
    default_host: str = ""
    methods: list[MethodAnnotation] = field(default_factory=list)

    @property
    def has_lros(self) -> bool:
        return any(m.operation is not None for m in self.methods)


@dataclass(kw_only=True)
class APIAnnotation(Annotation):
    name: str
    title: str
    description: str
    package_name: str
    package_version: str
    copyright_year: str
    not_for_publication: bool
    services: list[ServiceAnnotation] = field(default_factory=list)
    messages: list[MessageAnnotation] = field(default_factory=list)
    enums: list[EnumAnnotation] = field(default_factory=list)
    # Every generated message and enum, nested ones included, parents first.
    all_messages: list[MessageAnnotation] = field(default_factory=list)
    all_enums: list[EnumAnnotation] = field(default_factory=list)
    required_packages: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_services(self) -> bool:
        return bool(self.services)

    @property
    def has_lros(self) -> bool:
        return any(s.has_lros for s in self.services)


class Codec(ABC):
    """Maps model elements onto the constructs of one target language."""

    language: ClassVar[str]
    # Directory, relative to the template provider, holding this codec's templates.
    template_root: ClassVar[str]
    doc_prefix: ClassVar[str]
    path_placeholder: ClassVar[str]

    def __init__(self, options: dict[str, str] | None = None) -> None:
        options = dict(options or {})
        self.options = options
        self.copyright_year = options.get("copyright-year", "")
        self.package_name_override = options.get("package-name-override", "")
        self.package_version = options.get("package-version", "0.1.0")
        self.not_for_publication = parse_bool_option(options, "not-for-publication")
        self.template_dir = options.get("template-dir", "")

    # Naming

    @abstractmethod
    def to_snake(self, name: str) -> str:
        """snake_case ``name``, escaped if it is a reserved word."""

    def to_snake_no_mangling(self, name: str) -> str:
        """snake_case ``name`` without keyword escaping, for use inside longer identifiers."""
        return snakecase(name)

    def field_name(self, field: Field) -> str:
        """Name of the generated struct member for ``field``."""
        return self.to_snake(field.name)

    @abstractmethod
    def to_pascal(self, name: str) -> str: ...

    @abstractmethod
    def to_camel(self, name: str) -> str: ...

    @abstractmethod
    def message_name(self, message: Message, model: API) -> str: ...

    @abstractmethod
    def fq_message_name(self, message: Message, model: API) -> str: ...

    @abstractmethod
    def enum_name(self, enum: Enum, model: API) -> str: ...

    @abstractmethod
    def fq_enum_name(self, enum: Enum, model: API) -> str: ...

    @abstractmethod
    def enum_value_name(self, value: EnumValue, model: API) -> str: ...

    @abstractmethod
    def fq_enum_value_name(self, value: EnumValue, model: API) -> str: ...

    @abstractmethod
    def module_name(self, message: Message | Enum | Service, model: API) -> str:
        """Name of the module or file that holds ``message``'s nested types."""

    # Types

    @abstractmethod
    def scalar_type(self, typez: Typez) -> str:
        """Type of a scalar, or '' if ``typez`` is not a scalar."""

    @abstractmethod
    def field_type(self, field: Field, model: API) -> str:
        """Full type of ``field``; '' when its type cannot be resolved."""

    @abstractmethod
    def field_attributes(self, field: Field, model: API) -> list[str]: ...

    @abstractmethod
    def message_attributes(self, message: Message, model: API) -> list[str]: ...

    def primitive_field_type(self, field: Field, model: API) -> str:
        """Type of a single element of ``field``, ignoring repetition and presence."""
        match field.typez:
            case Typez.MESSAGE_TYPE:
                message = self.lookup_message(field.typez_id, model, field.id)
                return self.fq_message_name(message, model) if message is not None else ""
            case Typez.ENUM_TYPE:
                enum = self.lookup_enum(field.typez_id, model, field.id)
                return self.fq_enum_name(enum, model) if enum is not None else ""
        scalar = self.scalar_type(field.typez)
        if not scalar:
            logger.error(f"Unsupported type {field.typez.name} for field {field.id}")
        return scalar

    def method_in_out_type_name(self, type_id: str, model: API) -> str:
        message = self.lookup_message(type_id, model, type_id)
        return self.fq_message_name(message, model) if message is not None else ""

    @staticmethod
    def lookup_message(type_id: str, model: API, referrer: str) -> Message | None:
        message = model.state.message_by_id.get(type_id)
        if message is None:
            logger.error(f"Unable to lookup type {type_id} referenced by {referrer}")
        return message

    @staticmethod
    def lookup_enum(type_id: str, model: API, referrer: str) -> Enum | None:
        enum = model.state.enum_by_id.get(type_id)
        if enum is None:
            logger.error(f"Unable to lookup enum {type_id} referenced by {referrer}")
        return enum

    @staticmethod
    def map_entry_fields(message: Message) -> tuple[Field, Field]:
        by_name = {f.name: f for f in message.fields}
        if "key" not in by_name or "value" not in by_name:
            msg = f"map entry {message.id} must have `key` and `value` fields"
            raise SpecificationError(msg)
        return by_name["key"], by_name["value"]

    def is_recursive(self, field: Field, model: API) -> bool:
        """True when ``field`` refers to the message containing it or to one of its ancestors."""
        if field.typez != Typez.MESSAGE_TYPE:
            return False
        container = model.state.message_by_id.get(field.id.rpartition(".")[0])
        if container is None:
            return False
        enclosing = {container.id, *(m.id for m in model.state.ancestors(container))}
        return field.typez_id in enclosing

    # HTTP

    def generate_method(self, method: Method) -> bool:
        """Only unary methods with an HTTP binding get generated."""
        return (
            bool(method.path_info.verb)
            and bool(method.path_info.path_template)
            and not method.client_side_streaming
            and not method.server_side_streaming
        )

    def http_path_fmt(self, path_info: PathInfo) -> str:
        parts: list[str] = []
        verb = ""
        for segment in path_info.path_template:
            if segment.literal is not None:
                parts.append(segment.literal)
            elif segment.field_path is not None:
                parts.append(self.path_placeholder)
            elif segment.verb is not None:
                verb = f":{segment.verb}"
        return "/" + "/".join(parts) + verb

    @abstractmethod
    def http_path_args(self, path_info: PathInfo, method: Method, model: API) -> list[str]: ...

    def query_params(self, method: Method, model: API) -> list[Field]:
        """Request fields sent as query parameters, in declaration order."""
        request = model.state.message_by_id.get(method.input_type_id)
        if request is None:
            return []
        names = method.path_info.query_parameters
        return [f for f in request.fields if f.json_name in names]

    @abstractmethod
    def as_query_parameter(self, field: Field, model: API) -> str: ...

    @abstractmethod
    def body_accessor(self, method: Method) -> str: ...

    @staticmethod
    def find_field(message: Message, name: str) -> Field | None:
        return next((f for f in message.fields if name in (f.name, f.json_name)), None)

    # Documentation

    def format_doc_comments(self, documentation: str) -> list[str]:
        if not documentation:
            return []
        lines = documentation.strip("\n").split("\n")
        return [f"{self.doc_prefix} {line}".rstrip() for line in lines]

    # Packaging

    @abstractmethod
    def default_package_name(self, model: API) -> str: ...

    def package_name(self, model: API) -> str:
        return self.package_name_override or self.default_package_name(model)

    @abstractmethod
    def required_packages(self, model: API) -> list[str]: ...

    def imports(self, model: API) -> list[str]:  # noqa: ARG002
        return []

    def additional_context(self, model: API) -> dict[str, Any]:  # noqa: ARG002
        return {}

    def format_commands(self, output_dir: Path) -> list[list[str]]:  # noqa: ARG002
        """Commands that format a generated tree."""
        return []

    def referenced_packages(self, model: API) -> set[str]:
        """Packages of every type the generated code refers to."""
        packages: set[str] = set()
        for message in model.all_messages():
            for f in message.fields:
                self._collect_field_packages(f, model, packages)
        for service in model.services:
            for method in service.methods:
                for type_id in (method.input_type_id, method.output_type_id):
                    if (message := model.state.message_by_id.get(type_id)) is not None:
                        packages.add(message.package)
                if method.operation_info is not None:
                    for type_id in (method.operation_info.metadata_type_id, method.operation_info.response_type_id):
                        if (message := model.state.message_by_id.get(type_id)) is not None:
                            packages.add(message.package)
        return packages

    def _collect_field_packages(self, f: Field, model: API, packages: set[str]) -> None:
        if f.typez == Typez.ENUM_TYPE and (enum := model.state.enum_by_id.get(f.typez_id)) is not None:
            packages.add(enum.package)
        elif f.typez == Typez.MESSAGE_TYPE and (message := model.state.message_by_id.get(f.typez_id)) is not None:
            if message.is_map:
                for entry_field in message.fields:
                    self._collect_field_packages(entry_field, model, packages)
            else:
                packages.add(message.package)

    # Validation

    def validate(self, model: API) -> None:
        """Reject models whose generated names collide in the target language.

        Raises:
            SpecificationError: If two elements of one scope get the same name.
        """
        scopes: list[tuple[str, list[Message], list[Enum]]] = [("package", model.messages, model.enums)]
        scopes.extend((m.id, m.messages, m.enums) for m in model.all_messages())
        for scope, messages, enums in scopes:
            names: dict[str, str] = {}
            for element in [*messages, *enums]:
                name = (
                    self.message_name(element, model)
                    if isinstance(element, Message)
                    else self.enum_name(element, model)
                )
                if name in names:
                    msg = f"{element.id} and {names[name]} both map to {self.language} name {name} in {scope}"
                    raise SpecificationError(msg)
                names[name] = element.id
        for service in model.services:
            method_names: dict[str, str] = {}
            for method in service.methods:
                name = self.to_snake(method.name)
                if name in method_names:
                    msg = f"{method.id} and {method_names[name]} both map to {self.language} name {name}"
                    raise SpecificationError(msg)
                method_names[name] = method.id

    # Templates

    def templates_provider(self) -> TemplateProvider:
        return FileSystemTemplateProvider(Path(self.template_dir) if self.template_dir else BUNDLED_TEMPLATES_DIR)

    def generated_files(self, provider: TemplateProvider | None = None) -> list[GeneratedFile]:
        provider = provider or self.templates_provider()
        return walk_templates(provider.list_templates(), self.template_root)

    # Annotation

    def load_well_known_types(self, model: API) -> None:
        wkt.load_well_known_types(model.state)

    def annotate_model(self, model: API) -> APIAnnotation:
        """Annotate every generated node of ``model`` and return the API annotation."""
        self.load_well_known_types(model)
        messages = [self._annotate_message(m, model) for m in model.messages]
        enums = [self._annotate_enum(e, model) for e in model.enums]
        services = [self._annotate_service(s, model) for s in model.services]

        # Map entries are annotated but never generated as types.
        generated = [m for m in messages if not m.is_map]
        annotation = APIAnnotation(
            language=self.language,
            name=model.name,
            title=model.title,
            description=model.description,
            package_name=self.package_name(model),
            package_version=self.package_version,
            copyright_year=self.copyright_year,
            not_for_publication=self.not_for_publication,
            services=services,
            messages=generated,
            enums=enums,
            all_messages=[m.codec for m in model.all_messages() if not m.is_map],
            all_enums=[e.codec for e in model.all_enums()],
            required_packages=self.required_packages(model),
            imports=self.imports(model),
            extra=self.additional_context(model),
        )
        model.codec = annotation
        return annotation

    def _annotate_field(self, f: Field, model: API) -> FieldAnnotation:
        target = model.state.message_by_id.get(f.typez_id) if f.typez == Typez.MESSAGE_TYPE else None
        annotation = FieldAnnotation(
            language=self.language,
            name=self.field_name(f),
            wire_name=f.json_name,
            setter_name=f"set_{self.to_snake_no_mangling(f.name)}",
            field_type=self.field_type(f, model),
            primitive_type=self.primitive_field_type(f, model),
            doc_lines=self.format_doc_comments(f.documentation),
            attributes=self.field_attributes(f, model),
            optional=f.optional,
            repeated=f.repeated,
            is_map=target is not None and target.is_map,
            is_message=target is not None and not target.is_map,
            is_oneof=f.is_oneof,
            deprecated=f.deprecated,
        )
        f.codec = annotation
        return annotation

    def _annotate_oneof(self, oneof: OneOf) -> OneOfAnnotation:
        annotation = OneOfAnnotation(
            language=self.language,
            name=self.to_snake(oneof.name),
            field_names=[self.field_name(f) for f in oneof.fields],
            doc_lines=self.format_doc_comments(oneof.documentation),
        )
        oneof.codec = annotation
        return annotation

    def _annotate_enum(self, enum: Enum, model: API) -> EnumAnnotation:
        values: list[EnumValueAnnotation] = []
        for value in enum.values:
            value.codec = EnumValueAnnotation(
                language=self.language,
                name=self.enum_value_name(value, model),
                qualified_name=self.fq_enum_value_name(value, model),
                wire_name=value.name,
                number=value.number,
                doc_lines=self.format_doc_comments(value.documentation),
            )
            values.append(value.codec)
        annotation = EnumAnnotation(
            language=self.language,
            name=self.enum_name(enum, model),
            qualified_name=self.fq_enum_name(enum, model),
            module_name=self.module_name(enum, model),
            doc_lines=self.format_doc_comments(enum.documentation),
            values=values,
            deprecated=enum.deprecated,
        )
        enum.codec = annotation
        return annotation

    def _annotate_message(self, message: Message, model: API) -> MessageAnnotation:
        annotation = MessageAnnotation(
            language=self.language,
            name=self.message_name(message, model),
            qualified_name=self.fq_message_name(message, model),
            module_name=self.module_name(message, model),
            wire_name=message.name,
            doc_lines=self.format_doc_comments(message.documentation),
            attributes=self.message_attributes(message, model),
            fields=[self._annotate_field(f, model) for f in message.fields],
            one_ofs=[self._annotate_oneof(o) for o in message.one_ofs],
            messages=[a for a in (self._annotate_message(m, model) for m in message.messages) if not a.is_map],
            enums=[self._annotate_enum(e, model) for e in message.enums],
            is_map=message.is_map,
            deprecated=message.deprecated,
        )
        message.codec = annotation
        return annotation

    def _annotate_path_info(self, method: Method, model: API) -> PathInfoAnnotation:
        path_info = method.path_info
        annotation = PathInfoAnnotation(
            language=self.language,
            verb=path_info.verb,
            path_fmt=self.http_path_fmt(path_info),
            path_args=self.http_path_args(path_info, method, model),
            query_params=[
                QueryParameterAnnotation(
                    language=self.language,
                    wire_name=f.json_name,
                    expression=self.as_query_parameter(f, model),
                )
                for f in self.query_params(method, model)
            ],
            body_accessor=self.body_accessor(method),
            has_body=bool(path_info.body_field_path),
        )
        path_info.codec = annotation
        return annotation

    def _annotate_operation(self, info: OperationInfo, model: API) -> OperationAnnotation:
        annotation = OperationAnnotation(
            language=self.language,
            metadata_type=self.method_in_out_type_name(info.metadata_type_id, model),
            response_type=self.method_in_out_type_name(info.response_type_id, model),
        )
        info.codec = annotation
        return annotation

    def _annotate_method(self, method: Method, model: API) -> MethodAnnotation:
        annotation = MethodAnnotation(
            language=self.language,
            name=self.to_snake(method.name),
            wire_name=method.name,
            doc_lines=self.format_doc_comments(method.documentation),
            input_type=self.method_in_out_type_name(method.input_type_id, model),
            output_type=self.method_in_out_type_name(method.output_type_id, model),
            http=self._annotate_path_info(method, model) if self.generate_method(method) else None,
            operation=self._annotate_operation(method.operation_info, model) if method.operation_info else None,
            returns_empty=method.returns_empty,
            deprecated=method.deprecated,
        )
        method.codec = annotation
        return annotation

    def _annotate_service(self, service: Service, model: API) -> ServiceAnnotation:
        methods = [self._annotate_method(m, model) for m in service.methods]
        annotation = ServiceAnnotation(
            language=self.language,
            name=self.to_pascal(service.name),
            module_name=self.module_name(service, model),
            wire_name=service.name,
            doc_lines=self.format_doc_comments(service.documentation),
            default_host=service.default_host,
            methods=[a for a, m in zip(methods, service.methods, strict=True) if self.generate_method(m)],
        )
        service.codec = annotation
        return annotation
