"""
Protocol Buffers descriptor parser.

Builds the API model from a ``FileDescriptorSet``, either read from disk or
produced by running ``protoc`` over ``.proto`` sources. Every file in the
set populates the lookup tables; only the target files contribute the
messages, enums and services that get generated.
"""

from __future__ import annotations

import logging
import re
import tempfile
from collections.abc import Iterable
from pathlib import Path
from typing import Final

from google.api import http_pb2, service_pb2
from google.protobuf import descriptor_pb2
from google.protobuf.message import DecodeError

from clientgen.api.model import API, APIState, Enum, EnumValue, Field, Message, Method, OneOf, PathInfo, Service, Typez
from clientgen.errors import ConfigurationError, SpecificationError
from clientgen.parser import protobuf_annotations as annotations
from clientgen.parser.mixins import MIXIN_SERVICES, load_mixins, mixin_documentation
from clientgen.parser.service_config import package_from_config
from clientgen.toolchain import run_external_command
from clientgen.utils.string_case import camelcase

logger = logging.getLogger(__name__)

DESCRIPTOR_SET_SUFFIXES: Final = (".pb", ".binpb", ".desc")

# Field numbers used in SourceCodeInfo location paths.
_FILE_MESSAGE: Final = 4
_FILE_ENUM: Final = 5
_FILE_SERVICE: Final = 6
_MESSAGE_FIELD: Final = 2
_MESSAGE_NESTED: Final = 3
_MESSAGE_ENUM: Final = 4
_MESSAGE_ONEOF: Final = 8
_SERVICE_METHOD: Final = 2
_ENUM_VALUE: Final = 2

_VERSION_PATTERN: Final = re.compile(r"^v\d+([a-z]+\d*)?$")
_EMPTY_ID: Final = ".google.protobuf.Empty"

_LABEL_REPEATED = descriptor_pb2.FieldDescriptorProto.LABEL_REPEATED


def _normalize_comment(comment: str) -> str:
    lines = comment.removesuffix("\n").split("\n")
    return "\n".join(line[1:] if line.startswith(" ") else line for line in lines)


def _documentation_index(file: descriptor_pb2.FileDescriptorProto) -> dict[tuple[int, ...], str]:
    return {
        tuple(location.path): _normalize_comment(location.leading_comments)
        for location in file.source_code_info.location
        if location.leading_comments
    }


def _api_name_from_package(package: str) -> str:
    parts = [part for part in package.split(".") if not _VERSION_PATTERN.match(part)]
    return parts[-1] if parts else package


class _ModelBuilder:
    """Accumulates descriptor files into one ``API``."""

    def __init__(self, config: service_pb2.Service | None) -> None:
        self.config = config
        self.api = API()
        self.seen_files: set[str] = set()
        self.target_files: list[descriptor_pb2.FileDescriptorProto] = []

    @property
    def state(self) -> APIState:
        return self.api.state

    def add_files(self, files: Iterable[descriptor_pb2.FileDescriptorProto], targets: set[str]) -> None:
        for file in files:
            if file.name in self.seen_files:
                continue
            self.seen_files.add(file.name)
            is_target = file.name in targets
            self._add_types(file, is_target=is_target)
            if is_target:
                self.target_files.append(file)

    def _add_types(self, file: descriptor_pb2.FileDescriptorProto, *, is_target: bool) -> None:
        docs = _documentation_index(file)
        package = file.package
        for i, proto in enumerate(file.message_type):
            message = self._message(proto, f".{package}.{proto.name}", package, (_FILE_MESSAGE, i), docs, None)
            if is_target:
                self.api.messages.append(message)
        for i, proto in enumerate(file.enum_type):
            enum = self._enum(proto, f".{package}.{proto.name}", package, (_FILE_ENUM, i), docs, None)
            if is_target:
                self.api.enums.append(enum)

    def _message(
        self,
        proto: descriptor_pb2.DescriptorProto,
        message_id: str,
        package: str,
        path: tuple[int, ...],
        docs: dict[tuple[int, ...], str],
        parent_id: str | None,
    ) -> Message:
        message = Message(
            name=proto.name,
            id=message_id,
            package=package,
            documentation=docs.get(path, ""),
            is_map=proto.options.map_entry,
            deprecated=proto.options.deprecated,
            parent_id=parent_id,
        )
        self.state.register_message(message)

        for i, field_proto in enumerate(proto.field):
            message.fields.append(self._field(field_proto, message_id, docs.get((*path, _MESSAGE_FIELD, i), "")))
        for i, oneof in enumerate(proto.oneof_decl):
            members = [
                f for f, p in zip(message.fields, proto.field, strict=True) if p.HasField("oneof_index") and p.oneof_index == i
            ]
            # Synthetic oneofs only wrap a proto3 optional field.
            if members and all(not f.is_oneof for f in members):
                continue
            message.one_ofs.append(
                OneOf(
                    name=oneof.name,
                    id=f"{message_id}.{oneof.name}",
                    documentation=docs.get((*path, _MESSAGE_ONEOF, i), ""),
                    fields=members,
                )
            )
        for i, nested in enumerate(proto.nested_type):
            message.messages.append(
                self._message(
                    nested, f"{message_id}.{nested.name}", package, (*path, _MESSAGE_NESTED, i), docs, message_id
                )
            )
        for i, nested_enum in enumerate(proto.enum_type):
            message.enums.append(
                self._enum(
                    nested_enum, f"{message_id}.{nested_enum.name}", package, (*path, _MESSAGE_ENUM, i), docs, message_id
                )
            )
        return message

    @staticmethod
    def _field(proto: descriptor_pb2.FieldDescriptorProto, message_id: str, documentation: str) -> Field:
        typez = Typez(proto.type)
        repeated = proto.label == _LABEL_REPEATED
        optional = proto.proto3_optional or (typez == Typez.MESSAGE_TYPE and not repeated)
        return Field(
            name=proto.name,
            id=f"{message_id}.{proto.name}",
            typez=typez,
            typez_id=proto.type_name,
            json_name=proto.json_name or camelcase(proto.name),
            documentation=documentation,
            optional=optional,
            repeated=repeated,
            is_oneof=proto.HasField("oneof_index") and not proto.proto3_optional,
            deprecated=proto.options.deprecated,
        )

    def _enum(
        self,
        proto: descriptor_pb2.EnumDescriptorProto,
        enum_id: str,
        package: str,
        path: tuple[int, ...],
        docs: dict[tuple[int, ...], str],
        parent_id: str | None,
    ) -> Enum:
        enum = Enum(
            name=proto.name,
            id=enum_id,
            package=package,
            documentation=docs.get(path, ""),
            deprecated=proto.options.deprecated,
            parent_id=parent_id,
        )
        for i, value in enumerate(proto.value):
            enum.values.append(
                EnumValue(
                    name=value.name,
                    id=f"{enum_id}.{value.name}",
                    number=value.number,
                    documentation=docs.get((*path, _ENUM_VALUE, i), ""),
                    deprecated=value.options.deprecated,
                    parent_id=enum_id,
                )
            )
        self.state.register_enum(enum)
        return enum

    def resolve_map_fields(self) -> None:
        """Fields whose type is a map entry are maps, not repeated messages."""
        for message in self.state.message_by_id.values():
            for f in message.fields:
                target = self.state.message_by_id.get(f.typez_id) if f.typez == Typez.MESSAGE_TYPE else None
                if target is not None and target.is_map:
                    f.repeated = False
                    f.optional = False

    def add_services(self) -> None:
        for file in self.target_files:
            docs = _documentation_index(file)
            for i, proto in enumerate(file.service):
                self.api.services.append(self._service(proto, file.package, (_FILE_SERVICE, i), docs))

    def _service(
        self,
        proto: descriptor_pb2.ServiceDescriptorProto,
        package: str,
        path: tuple[int, ...],
        docs: dict[tuple[int, ...], str],
    ) -> Service:
        service_id = f".{package}.{proto.name}"
        service = Service(
            name=proto.name,
            id=service_id,
            package=package,
            documentation=docs.get(path, ""),
            default_host=annotations.default_host(proto.options, service_id),
            deprecated=proto.options.deprecated,
        )
        for i, method_proto in enumerate(proto.method):
            rule = annotations.http_rule(method_proto.options)
            request = self.state.message_by_id.get(method_proto.input_type)
            method = Method(
                name=method_proto.name,
                id=f"{service_id}.{method_proto.name}",
                input_type_id=method_proto.input_type,
                output_type_id=method_proto.output_type,
                documentation=docs.get((*path, _SERVICE_METHOD, i), ""),
                path_info=annotations.path_info_from_rule(rule, request) if rule is not None else PathInfo(),
                operation_info=annotations.operation_info(method_proto.options, package),
                client_side_streaming=method_proto.client_streaming,
                server_side_streaming=method_proto.server_streaming,
                returns_empty=method_proto.output_type == _EMPTY_ID,
                deprecated=method_proto.options.deprecated,
                service_id=service_id,
            )
            service.methods.append(method)
            self.state.register_method(method)
        self.state.register_service(service)
        return service

    def add_mixin_methods(
        self, mixin_files: list[descriptor_pb2.FileDescriptorProto], rules: dict[str, http_pb2.HttpRule]
    ) -> None:
        for file in mixin_files:
            for proto in file.service:
                mixin_name = f"{file.package}.{proto.name}"
                if mixin_name not in MIXIN_SERVICES:
                    continue
                for method_proto in proto.method:
                    selector = f"{mixin_name}.{method_proto.name}"
                    rule = rules.get(selector)
                    if rule is None:
                        continue
                    for service in self.api.services:
                        self._add_mixin_method(service, method_proto, selector, rule)

    def _add_mixin_method(
        self, service: Service, proto: descriptor_pb2.MethodDescriptorProto, selector: str, rule: http_pb2.HttpRule
    ) -> None:
        if any(m.name == proto.name for m in service.methods):
            logger.debug(f"Service {service.id} already defines {proto.name}, mixin method skipped")
            return
        request = self.state.message_by_id.get(proto.input_type)
        method = Method(
            name=proto.name,
            id=f"{service.id}.{proto.name}",
            input_type_id=proto.input_type,
            output_type_id=proto.output_type,
            documentation=mixin_documentation(self.config, selector),
            path_info=annotations.path_info_from_rule(rule, request),
            returns_empty=proto.output_type == _EMPTY_ID,
            service_id=service.id,
        )
        service.methods.append(method)
        self.state.register_method(method)

    def finish(self) -> API:
        api = self.api
        package = package_from_config(self.config, MIXIN_SERVICES)
        if not package and self.target_files:
            package = self.target_files[0].package
        api.package_name = package
        if self.config is not None and self.config.name:
            api.name = self.config.name.removesuffix(".googleapis.com")
            api.title = self.config.title
            api.description = self.config.documentation.summary
        else:
            api.name = _api_name_from_package(package)
        return api


def make_api_for_protobuf(
    service_config: service_pb2.Service | None,
    files: Iterable[descriptor_pb2.FileDescriptorProto],
    targets: Iterable[str],
) -> API:
    """Build the model from descriptor files.

    Args:
        service_config: Optional service configuration.
        files: Every file of the descriptor set, including dependencies.
        targets: Names of the files whose elements are generated.

    Returns:
        The parsed, not yet cross-referenced, model.
    """
    builder = _ModelBuilder(service_config)
    builder.add_files(files, set(targets))
    mixin_files, mixin_rules = load_mixins(service_config)
    builder.add_files(mixin_files, set())
    builder.resolve_map_fields()
    builder.add_services()
    builder.add_mixin_methods(mixin_files, mixin_rules)
    return builder.finish()


def _proto_roots(options: dict[str, str]) -> list[Path]:
    roots = [Path(options[key]) for key in ("extra-protos-root", "googleapis-root") if options.get(key)]
    return roots or [Path()]


def determine_input_files(source: str, options: dict[str, str]) -> list[Path]:
    """Find the ``.proto`` files to compile for ``source``.

    A source ending in ``.proto`` is a single file. Any other source is a
    directory whose ``.proto`` files (one level deep) are used, filtered
    by the ``include-list`` or ``exclude-list`` options.

    Raises:
        ConfigurationError: If both list options are set.
        SpecificationError: If the source does not exist or has no files.
    """
    include = [name.strip() for name in options.get("include-list", "").split(",") if name.strip()]
    exclude = {name.strip() for name in options.get("exclude-list", "").split(",") if name.strip()}
    if include and exclude:
        msg = "only one of 'include-list' and 'exclude-list' may be set"
        raise ConfigurationError(msg)

    path = Path(source)
    if not path.exists():
        for root in _proto_roots(options):
            if (root / source).exists():
                path = root / source
                break
        else:
            msg = f"specification source {source} not found"
            raise SpecificationError(msg)

    if path.is_file():
        return [path]
    if include:
        files = [path / name for name in include]
    else:
        files = sorted(p for p in path.iterdir() if p.suffix == ".proto" and p.name not in exclude)
    if not files:
        msg = f"no .proto files found in {path}"
        raise SpecificationError(msg)
    return files


def _descriptor_name(file: Path, roots: list[Path]) -> str:
    for root in roots:
        try:
            return file.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            continue
    return file.as_posix()


def compile_protos(files: list[Path], options: dict[str, str]) -> descriptor_pb2.FileDescriptorSet:
    """Run ``protoc`` over ``files`` and return the resulting descriptor set."""
    roots = _proto_roots(options)
    with tempfile.TemporaryDirectory() as tmp:
        output = Path(tmp) / "descriptors.pb"
        command = [
            "protoc",
            "--include_imports",
            "--include_source_info",
            "--retain_options",
            f"--descriptor_set_out={output}",
            *(f"--proto_path={root}" for root in roots),
            *(str(f) for f in files),
        ]
        run_external_command(command)
        return read_descriptor_set(output)


def read_descriptor_set(path: Path) -> descriptor_pb2.FileDescriptorSet:
    try:
        return descriptor_pb2.FileDescriptorSet.FromString(path.read_bytes())
    except DecodeError as e:
        msg = f"cannot decode descriptor set {path}: {e}"
        raise SpecificationError(msg) from e


def _root_files(file_set: descriptor_pb2.FileDescriptorSet) -> set[str]:
    imported = {dep for file in file_set.file for dep in file.dependency}
    return {file.name for file in file_set.file if file.name not in imported}


def parse_protobuf(source: str, service_config: service_pb2.Service | None, options: dict[str, str]) -> API:
    """Parse ``source`` into a model.

    ``source`` is either a serialized descriptor set or a ``.proto`` file /
    directory compiled with ``protoc``. For descriptor sets the generated
    files are those named in the ``target-files`` option, or by default the
    files no other file imports.
    """
    descriptor_set = options.get("descriptor-set")
    if descriptor_set or source.endswith(DESCRIPTOR_SET_SUFFIXES):
        file_set = read_descriptor_set(Path(descriptor_set or source))
        named = {name.strip() for name in options.get("target-files", "").split(",") if name.strip()}
        targets = named or _root_files(file_set)
    else:
        files = determine_input_files(source, options)
        file_set = compile_protos(files, options)
        roots = _proto_roots(options)
        targets = {_descriptor_name(f, roots) for f in files}
    logger.info(f"Parsing {len(file_set.file)} descriptor files, {len(targets)} targets")
    return make_api_for_protobuf(service_config, file_set.file, targets)
