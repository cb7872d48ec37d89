"""Shared fixtures: a small Secret Manager-like API built from in-memory descriptors."""

from pathlib import Path

import pytest
from google.api import annotations_pb2, client_pb2, http_pb2
from google.protobuf import descriptor_pb2, timestamp_pb2

from clientgen.api import API, cross_reference
from clientgen.parser.protobuf import make_api_for_protobuf

FieldProto = descriptor_pb2.FieldDescriptorProto

TEST_FILE = "test/secret.proto"


def add_field(  # noqa: PLR0913
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    json_name: str = "",
    type_name: str = "",
    repeated: bool = False,
) -> descriptor_pb2.FieldDescriptorProto:
    field = message.field.add(name=name, number=number, type=field_type)
    field.label = FieldProto.LABEL_REPEATED if repeated else FieldProto.LABEL_OPTIONAL
    field.json_name = json_name or name
    if type_name:
        field.type_name = type_name
    return field


def add_method(  # noqa: PLR0913
    service: descriptor_pb2.ServiceDescriptorProto,
    name: str,
    input_type: str,
    output_type: str,
    rule: http_pb2.HttpRule | None = None,
    *,
    server_streaming: bool = False,
) -> descriptor_pb2.MethodDescriptorProto:
    method = service.method.add(name=name, input_type=input_type, output_type=output_type)
    method.server_streaming = server_streaming
    if rule is not None:
        method.options.Extensions[annotations_pb2.http].CopyFrom(rule)
    return method


def build_secret_file() -> descriptor_pb2.FileDescriptorProto:
    file = descriptor_pb2.FileDescriptorProto(name=TEST_FILE, package="test", syntax="proto3")
    file.dependency.append("google/protobuf/timestamp.proto")

    secret = file.message_type.add(name="Secret")
    add_field(secret, "name", 1, FieldProto.TYPE_STRING)
    add_field(secret, "labels", 2, FieldProto.TYPE_MESSAGE, type_name=".test.Secret.LabelsEntry", repeated=True)
    add_field(
        secret,
        "create_time",
        3,
        FieldProto.TYPE_MESSAGE,
        json_name="createTime",
        type_name=".google.protobuf.Timestamp",
    )
    labels_entry = secret.nested_type.add(name="LabelsEntry")
    labels_entry.options.map_entry = True
    add_field(labels_entry, "key", 1, FieldProto.TYPE_STRING)
    add_field(labels_entry, "value", 2, FieldProto.TYPE_STRING)

    version = file.message_type.add(name="SecretVersion")
    add_field(version, "name", 1, FieldProto.TYPE_STRING)
    add_field(version, "state", 2, FieldProto.TYPE_ENUM, type_name=".test.SecretVersion.State")
    state = version.enum_type.add(name="State")
    state.value.add(name="STATE_UNSPECIFIED", number=0)
    state.value.add(name="ENABLED", number=1)
    state.value.add(name="DISABLED", number=2)

    request = file.message_type.add(name="CreateSecretRequest")
    add_field(request, "parent", 1, FieldProto.TYPE_STRING)
    add_field(request, "secret_id", 2, FieldProto.TYPE_STRING, json_name="secretId")
    add_field(request, "secret", 3, FieldProto.TYPE_MESSAGE, type_name=".test.Secret")
    add_field(request, "page_size", 4, FieldProto.TYPE_INT32, json_name="pageSize")

    get_request = file.message_type.add(name="GetSecretRequest")
    add_field(get_request, "name", 1, FieldProto.TYPE_STRING)

    node = file.message_type.add(name="Node")
    add_field(node, "child", 1, FieldProto.TYPE_MESSAGE, type_name=".test.Node")

    # Comments are attached by location path: 4 = message_type, 0 = Secret.
    file.source_code_info.location.add(path=[4, 0], leading_comments=" A secret.\n Holds versions.\n")
    file.source_code_info.location.add(path=[4, 1, 4, 0], leading_comments=" The state of a version.\n")

    service = file.service.add(name="SecretManagerService")
    service.options.Extensions[client_pb2.default_host] = "secretmanager.googleapis.com"
    add_method(
        service,
        "CreateSecret",
        ".test.CreateSecretRequest",
        ".test.Secret",
        http_pb2.HttpRule(post="/v1/{parent=projects/*}/secrets/{secretId}", body="secret"),
    )
    add_method(
        service,
        "GetSecret",
        ".test.GetSecretRequest",
        ".test.Secret",
        http_pb2.HttpRule(get="/v1/{name=projects/*/secrets/*}"),
    )
    add_method(
        service,
        "WatchSecrets",
        ".test.GetSecretRequest",
        ".test.Secret",
        http_pb2.HttpRule(get="/v1/{name=projects/*/secrets/*}:watch"),
        server_streaming=True,
    )
    file.source_code_info.location.add(path=[6, 0, 2, 0], leading_comments=" Creates a new secret.\n")
    return file


def timestamp_file() -> descriptor_pb2.FileDescriptorProto:
    proto = descriptor_pb2.FileDescriptorProto()
    timestamp_pb2.DESCRIPTOR.CopyToProto(proto)
    return proto


@pytest.fixture
def foo_file() -> descriptor_pb2.FileDescriptorProto:
    """A single-method service: CreateFoo posts a Foo under a project."""
    file = descriptor_pb2.FileDescriptorProto(name="test/foo.proto", package="test", syntax="proto3")
    foo = file.message_type.add(name="Foo")
    add_field(foo, "name", 1, FieldProto.TYPE_STRING)
    add_field(foo, "content", 2, FieldProto.TYPE_STRING)
    request = file.message_type.add(name="CreateFooRequest")
    add_field(request, "parent", 1, FieldProto.TYPE_STRING)
    add_field(request, "foo", 2, FieldProto.TYPE_MESSAGE, type_name=".test.Foo")
    service = file.service.add(name="FooService")
    add_method(
        service,
        "CreateFoo",
        ".test.CreateFooRequest",
        ".test.Foo",
        http_pb2.HttpRule(post="/v1/{parent=projects/*}/foos", body="foo"),
    )
    return file


@pytest.fixture
def secret_files() -> list[descriptor_pb2.FileDescriptorProto]:
    """The test file and its dependencies."""
    return [timestamp_file(), build_secret_file()]


@pytest.fixture
def secret_api(secret_files: list[descriptor_pb2.FileDescriptorProto]) -> API:
    """A parsed and cross-referenced model."""
    model = make_api_for_protobuf(None, secret_files, [TEST_FILE])
    cross_reference(model)
    return model


@pytest.fixture
def descriptor_set_path(tmp_path: Path, secret_files: list[descriptor_pb2.FileDescriptorProto]) -> Path:
    """The test files serialized as a descriptor set."""
    file_set = descriptor_pb2.FileDescriptorSet(file=secret_files)
    path = tmp_path / "secret.pb"
    path.write_bytes(file_set.SerializeToString())
    return path


@pytest.fixture
def openapi_spec() -> dict:
    """A small OpenAPI 3 document."""
    return {
        "openapi": "3.0.3",
        "info": {"title": "Pet Store", "description": "Manages pets.", "version": "1.0.0"},
        "servers": [{"url": "https://pets.example.com/v1"}, {"url": "https://pets.example.com"}],
        "paths": {
            "/v1/pets/{petId}": {
                "parameters": [{"name": "petId", "in": "path", "required": True, "schema": {"type": "string"}}],
                "get": {
                    "operationId": "getPet",
                    "parameters": [{"name": "view", "in": "query", "schema": {"type": "string"}}],
                    "responses": {
                        "200": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}}}
                    },
                },
                "delete": {"operationId": "deletePet", "responses": {"204": {"description": "Deleted"}}},
            },
            "/v1/pets": {
                "post": {
                    "operationId": "createPet",
                    "requestBody": {
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}}
                    },
                    "responses": {
                        "200": {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}}}
                    },
                },
            },
        },
        "components": {
            "schemas": {
                "Pet": {
                    "type": "object",
                    "description": "A pet.",
                    "required": ["name"],
                    "properties": {
                        "name": {"type": "string"},
                        "age": {"type": "integer", "format": "int32"},
                        "weight": {"type": "number"},
                        "kind": {"$ref": "#/components/schemas/Kind"},
                        "tags": {"type": "array", "items": {"type": "string"}},
                        "toys": {
                            "type": "array",
                            "items": {"type": "object", "properties": {"label": {"type": "string"}}},
                        },
                        "attributes": {"type": "object", "additionalProperties": {"type": "string"}},
                        "extra": {"type": "object"},
                        "birthTime": {"type": "string", "format": "date-time"},
                        "owner": {"type": "object", "properties": {"email": {"type": "string"}}},
                    },
                },
                "Kind": {"type": "string", "enum": ["DOG", "CAT"]},
            }
        },
    }
