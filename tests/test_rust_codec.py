"""Tests for the Rust codec."""

import logging
from typing import Any

import pytest

from clientgen.api import API, cross_reference
from clientgen.api.model import Field, Typez
from clientgen.errors import ConfigurationError, SpecificationError
from clientgen.language import RustCodec, new_codec
from clientgen.language.codec import APIAnnotation
from clientgen.language.rust import parse_package_option
from clientgen.parser import OpenAPIParser


@pytest.fixture
def codec() -> RustCodec:
    return RustCodec({"copyright-year": "2025"})


def _field(model: API, message_id: str, name: str) -> Field:
    return next(f for f in model.state.message_by_id[message_id].fields if f.name == name)


class TestNaming:
    """Identifiers and qualified names."""

    def test_nested_enum(self, codec: RustCodec, secret_api: API) -> None:
        state = secret_api.state.enum_by_id[".test.SecretVersion.State"]

        assert codec.enum_name(state, secret_api) == "State"
        assert codec.fq_enum_name(state, secret_api) == "crate::model::secret_version::State"

    def test_enum_values(self, codec: RustCodec, secret_api: API) -> None:
        state = secret_api.state.enum_by_id[".test.SecretVersion.State"]

        assert [codec.enum_value_name(v, secret_api) for v in state.values] == [
            "UNSPECIFIED",
            "ENABLED",
            "DISABLED",
        ]
        assert (
            codec.fq_enum_value_name(state.values[1], secret_api) == "crate::model::secret_version::State::ENABLED"
        )

    def test_enum_values_become_identifiers(self, codec: RustCodec, openapi_spec: dict[str, Any]) -> None:
        openapi_spec["components"]["schemas"]["Kind"]["enum"] = ["in-progress", "DONE.OK", "active"]
        model = OpenAPIParser(package_name="pets.v1").parse_dict(openapi_spec)
        cross_reference(model)
        kind = model.state.enum_by_id[".pets.v1.Kind"]

        assert [codec.enum_value_name(v, model) for v in kind.values] == ["IN_PROGRESS", "DONE_OK", "ACTIVE"]

    def test_names_are_deterministic(self, secret_api: API) -> None:
        state = secret_api.state.enum_by_id[".test.SecretVersion.State"]

        assert RustCodec().fq_enum_name(state, secret_api) == RustCodec().fq_enum_name(state, secret_api)

    def test_keywords(self, codec: RustCodec) -> None:
        assert codec.to_snake("type") == "r#type"
        assert codec.to_snake("self") == "self_"
        assert codec.to_pascal("Self") == "Self_"
        assert codec.to_snake_no_mangling("type") == "type"

    def test_well_known_types_use_their_crate(self, codec: RustCodec, secret_api: API) -> None:
        timestamp = secret_api.state.message_by_id[".google.protobuf.Timestamp"]

        assert codec.fq_message_name(timestamp, secret_api) == "wkt::Timestamp"


class TestFieldTypes:
    """Field types, presence and repetition."""

    def test_scalars(self, codec: RustCodec, secret_api: API) -> None:
        assert codec.field_type(_field(secret_api, ".test.Secret", "name"), secret_api) == "std::string::String"
        assert codec.field_type(_field(secret_api, ".test.CreateSecretRequest", "page_size"), secret_api) == "i32"

    def test_optional_message(self, codec: RustCodec, secret_api: API) -> None:
        secret = _field(secret_api, ".test.CreateSecretRequest", "secret")

        assert codec.field_type(secret, secret_api) == "std::option::Option<crate::model::Secret>"

    def test_recursive_message_is_boxed(self, codec: RustCodec, secret_api: API) -> None:
        child = _field(secret_api, ".test.Node", "child")

        assert codec.field_type(child, secret_api) == "std::option::Option<std::boxed::Box<crate::model::Node>>"

    def test_map(self, codec: RustCodec, secret_api: API) -> None:
        labels = _field(secret_api, ".test.Secret", "labels")

        assert (
            codec.field_type(labels, secret_api)
            == "std::collections::HashMap<std::string::String,std::string::String>"
        )

    def test_repeated(self, codec: RustCodec, secret_api: API) -> None:
        field = Field(name="tags", id=".test.Secret.tags", typez=Typez.STRING_TYPE, repeated=True)

        assert codec.field_type(field, secret_api) == "std::vec::Vec<std::string::String>"

    def test_enum_field(self, codec: RustCodec, secret_api: API) -> None:
        state = _field(secret_api, ".test.SecretVersion", "state")

        assert codec.field_type(state, secret_api) == "crate::model::secret_version::State"

    def test_unresolved_reference(
        self, codec: RustCodec, secret_api: API, caplog: pytest.LogCaptureFixture
    ) -> None:
        field = Field(
            name="ghost", id=".test.Secret.ghost", typez=Typez.MESSAGE_TYPE, typez_id=".test.DoesNotExist"
        )

        with caplog.at_level(logging.ERROR):
            assert codec.field_type(field, secret_api) == ""

        assert ".test.DoesNotExist" in caplog.text

    def test_attributes(self, codec: RustCodec, secret_api: API) -> None:
        secret_id = _field(secret_api, ".test.CreateSecretRequest", "secret_id")
        labels = _field(secret_api, ".test.Secret", "labels")

        assert codec.field_attributes(secret_id, secret_api) == [
            '#[serde(skip_serializing_if = "wkt::internal::is_default")]'
        ]
        assert codec.field_attributes(labels, secret_api) == [
            '#[serde(skip_serializing_if = "std::collections::HashMap::is_empty")]'
        ]


class TestHttp:
    """HTTP bindings of methods."""

    def test_path_format(self, codec: RustCodec, secret_api: API) -> None:
        method = secret_api.state.method_by_id[".test.SecretManagerService.CreateSecret"]

        path_fmt = codec.http_path_fmt(method.path_info)

        assert path_fmt == "/v1/{}/secrets/{}"
        assert path_fmt.count("{}") == len(method.path_info.field_paths) == 2

    def test_path_args(self, codec: RustCodec, secret_api: API) -> None:
        method = secret_api.state.method_by_id[".test.SecretManagerService.CreateSecret"]

        assert codec.http_path_args(method.path_info, method, secret_api) == ["req.parent", "req.secret_id"]

    def test_query_parameters_exclude_bound_fields(self, codec: RustCodec, secret_api: API) -> None:
        method = secret_api.state.method_by_id[".test.SecretManagerService.CreateSecret"]

        names = {f.json_name for f in codec.query_params(method, secret_api)}

        assert names == {"pageSize"}
        assert not names & {"parent", "secretId", "secret"}

    def test_query_parameter_expression(self, codec: RustCodec, secret_api: API) -> None:
        page_size = _field(secret_api, ".test.CreateSecretRequest", "page_size")

        assert (
            codec.as_query_parameter(page_size, secret_api)
            == 'let builder = builder.query(&[("pageSize", &req.page_size)]);'
        )

    def test_body_accessor(self, codec: RustCodec, secret_api: API) -> None:
        method = secret_api.state.method_by_id[".test.SecretManagerService.CreateSecret"]

        assert codec.body_accessor(method) == ".secret"

    def test_streaming_methods_are_not_generated(self, codec: RustCodec, secret_api: API) -> None:
        watch = secret_api.state.method_by_id[".test.SecretManagerService.WatchSecrets"]

        assert not codec.generate_method(watch)


class TestAnnotateModel:
    """Whole-model annotation."""

    def test_annotations(self, codec: RustCodec, secret_api: API) -> None:
        annotation = codec.annotate_model(secret_api)

        assert isinstance(annotation, APIAnnotation)
        assert secret_api.codec is annotation
        assert annotation.package_name == "google-cloud-test"
        assert annotation.copyright_year == "2025"
        assert [m.name for m in annotation.services[0].methods] == ["create_secret", "get_secret"]
        assert "State" in [e.name for e in annotation.all_enums]
        assert "LabelsEntry" not in [m.name for m in annotation.all_messages]

    def test_semantic_fields_are_untouched(self, codec: RustCodec, secret_api: API) -> None:
        method = secret_api.state.method_by_id[".test.SecretManagerService.CreateSecret"]
        before = (method.name, method.input_type_id, method.path_info.verb, set(method.path_info.query_parameters))

        codec.annotate_model(secret_api)

        assert (method.name, method.input_type_id, method.path_info.verb, method.path_info.query_parameters) == before
        assert method.codec.http.path_fmt == "/v1/{}/secrets/{}"

    def test_unresolved_field_does_not_stop_annotation(
        self, codec: RustCodec, secret_api: API, caplog: pytest.LogCaptureFixture
    ) -> None:
        secret = secret_api.state.message_by_id[".test.Secret"]
        broken = Field(
            name="broken",
            id=".test.Secret.broken",
            typez=Typez.MESSAGE_TYPE,
            typez_id=".test.DoesNotExist",
            optional=True,
        )
        secret.fields.append(broken)

        with caplog.at_level(logging.ERROR):
            codec.annotate_model(secret_api)

        assert broken.codec.field_type == ""
        assert _field(secret_api, ".test.Secret", "name").codec.field_type == "std::string::String"
        assert "Unable to lookup type .test.DoesNotExist" in caplog.text

    def test_required_packages(self, codec: RustCodec, secret_api: API) -> None:
        dependencies = codec.required_packages(secret_api)

        assert dependencies == ['wkt = { version = "0.2", package = "google-cloud-wkt" }']

    def test_name_collisions_are_rejected(self, codec: RustCodec, secret_api: API) -> None:
        clash = secret_api.state.message_by_id[".test.Node"]
        clash.name = "secret"

        with pytest.raises(SpecificationError, match="both map to rust name Secret"):
            codec.validate(secret_api)


class TestOptions:
    """Codec options."""

    def test_package_option(self) -> None:
        source, package = parse_package_option("package:gtype", "package=google-cloud-type,source=google.type")

        assert source == "google.type"
        assert package.dependency() == 'gtype = { package = "google-cloud-type" }'

    def test_package_option_needs_source(self) -> None:
        with pytest.raises(ConfigurationError):
            RustCodec({"package:gtype": "package=google-cloud-type"})

    def test_bad_boolean(self) -> None:
        with pytest.raises(ConfigurationError):
            new_codec("rust", {"not-for-publication": "maybe"})

    def test_unknown_language(self) -> None:
        with pytest.raises(ConfigurationError, match="unknown target language"):
            new_codec("cobol")
