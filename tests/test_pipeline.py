"""Tests for the generation pipeline."""

import json
import logging
from pathlib import Path
from typing import Any

import pytest

from clientgen.api import API
from clientgen.config import Config, DocumentationOverride, GeneralConfig
from clientgen.errors import CrossReferenceError, GenerationError, ToolchainError
from clientgen.generator.template_engine import DictTemplateProvider
from clientgen.language import GoCodec, RustCodec
from clientgen.pipeline import Pipeline, Stage, generate, generate_targets, post_process, render_target, run


@pytest.fixture
def openapi_config(tmp_path: Path, openapi_spec: dict[str, Any]) -> Config:
    source = tmp_path / "openapi.json"
    source.write_text(json.dumps(openapi_spec))
    return Config(
        general=GeneralConfig(language="rust", specification_format="openapi", specification_source=str(source)),
        source={"package-name": "pets", "skipped-ids": ".pets.Service.DeletePet"},
        codec={"copyright-year": "2025"},
        documentation_overrides=[DocumentationOverride(id=".pets.Pet", match="A pet.", replace="A furry pet.")],
    )


class TestGenerate:
    """Annotating and rendering one model."""

    def test_render_target_with_in_memory_templates(self, secret_api: API, tmp_path: Path) -> None:
        codec = RustCodec()
        codec.annotate_model(secret_api)
        provider = DictTemplateProvider({"rust/crate/name.txt.j2": "{{ annotations.package_name }}"})

        written = render_target(secret_api, codec, tmp_path, provider)

        assert written == [tmp_path / "name.txt"]
        assert (tmp_path / "name.txt").read_text() == "google-cloud-test"

    def test_custom_template_root(self, secret_api: API, tmp_path: Path) -> None:
        templates = tmp_path / "templates" / "go"
        templates.mkdir(parents=True)
        (templates / "services.txt.j2").write_text("{% for s in annotations.services %}{{ s.name }}{% endfor %}")

        written = generate(secret_api, GoCodec(), tmp_path / "out", template_root=tmp_path / "templates")

        assert written == [tmp_path / "out" / "services.txt"]
        assert written[0].read_text() == "SecretManagerService"

    def test_template_dir_option(self, secret_api: API, tmp_path: Path) -> None:
        templates = tmp_path / "templates" / "rust" / "crate"
        templates.mkdir(parents=True)
        (templates / "year.txt.j2").write_text("{{ annotations.copyright_year }}")
        codec = RustCodec({"template-dir": str(tmp_path / "templates"), "copyright-year": "2030"})

        written = generate(secret_api, codec, tmp_path / "out")

        assert [p.read_text() for p in written] == ["2030"]

    def test_render_failures_name_the_stage(self, secret_api: API, tmp_path: Path) -> None:
        codec = RustCodec()
        codec.annotate_model(secret_api)
        provider = DictTemplateProvider({"rust/crate/bad.txt.j2": "{{ missing }}"})

        with pytest.raises(GenerationError) as excinfo:
            render_target(secret_api, codec, tmp_path, provider)

        assert excinfo.value.stage is Stage.RENDERED
        assert "rendered" in str(excinfo.value)


class TestGenerateTargets:
    """One model, several languages."""

    def test_each_target_gets_its_own_tree(self, secret_api: API, tmp_path: Path) -> None:
        results = generate_targets(secret_api, [RustCodec(), GoCodec()], tmp_path)

        assert set(results) == {"rust", "go"}
        assert (tmp_path / "rust" / "src" / "model.rs").exists()
        assert (tmp_path / "go" / "model.go").exists()
        assert all(path.is_relative_to(tmp_path / "go") for path in results["go"])

    def test_model_is_not_shared(self, secret_api: API, tmp_path: Path) -> None:
        generate_targets(secret_api, [RustCodec(), GoCodec()], tmp_path)

        assert secret_api.codec is None
        assert all(m.codec is None for m in secret_api.all_messages())

    def test_duplicate_language(self, secret_api: API, tmp_path: Path) -> None:
        with pytest.raises(GenerationError, match="more than once"):
            generate_targets(secret_api, [GoCodec(), GoCodec()], tmp_path)


class TestRun:
    """End-to-end runs from a configuration."""

    def test_openapi_to_rust(self, openapi_config: Config, tmp_path: Path) -> None:
        out = tmp_path / "out"

        written = run(openapi_config, out)

        assert out / "src" / "model.rs" in written
        client = (out / "src" / "client.rs").read_text()
        model = (out / "src" / "model.rs").read_text()
        assert "pub async fn get_pet(" in client
        assert "delete_pet" not in client
        assert "/// A furry pet." in model
        assert "Copyright 2025" in model

    def test_missing_source(self, openapi_config: Config, tmp_path: Path) -> None:
        openapi_config.general.specification_source = str(tmp_path / "missing.json")

        with pytest.raises(GenerationError) as excinfo:
            run(openapi_config, tmp_path / "out")

        assert excinfo.value.stage is Stage.PARSED
        assert isinstance(excinfo.value.cause, FileNotFoundError)
        assert not (tmp_path / "out").exists()

    def test_post_processing_is_opt_in(
        self, openapi_config: Config, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls: list[list[str]] = []
        monkeypatch.setattr("clientgen.pipeline.is_available", lambda program: True)
        monkeypatch.setattr("clientgen.pipeline.run_external_command", lambda command, cwd: calls.append(command))

        run(openapi_config, tmp_path / "plain")
        openapi_config.codec["post-process"] = "true"
        run(openapi_config, tmp_path / "formatted")

        assert calls == [["cargo", "fmt", "--manifest-path", str(tmp_path / "formatted" / "Cargo.toml")]]


class TestPipelineStages:
    """Stage ordering and error attribution."""

    def test_stages_advance_in_order(self, openapi_config: Config, tmp_path: Path) -> None:
        pipeline = Pipeline(openapi_config)
        codec = RustCodec()

        assert pipeline.stage is Stage.UNPARSED
        pipeline.parse()
        pipeline.cross_reference()
        pipeline.annotate(codec)
        pipeline.render(codec, tmp_path)
        pipeline.post_process(codec, tmp_path)
        assert pipeline.stage is Stage.DONE

    def test_stages_cannot_be_skipped(self, openapi_config: Config) -> None:
        pipeline = Pipeline(openapi_config)
        pipeline.parse()

        with pytest.raises(RuntimeError, match="expected cross-referenced"):
            pipeline.annotate(RustCodec())

    def test_cross_reference_failures(self, openapi_config: Config) -> None:
        pipeline = Pipeline(openapi_config)
        model = pipeline.parse()
        model.services[0].methods[0].input_type_id = ".pets.Nope"

        with pytest.raises(GenerationError) as excinfo:
            pipeline.cross_reference()

        assert excinfo.value.stage is Stage.CROSS_REFERENCED
        assert isinstance(excinfo.value.cause, CrossReferenceError)

    def test_unmatched_selection_ids_are_kept(
        self, openapi_config: Config, caplog: pytest.LogCaptureFixture
    ) -> None:
        openapi_config.source["skipped-ids"] = ".pets.Service.DeletePet,.pets.Service.Nope"
        pipeline = Pipeline(openapi_config)
        pipeline.parse()

        with caplog.at_level(logging.WARNING):
            model = pipeline.cross_reference()

        assert pipeline.stale_ids == {".pets.Service.Nope"}
        assert ".pets.Service.Nope" in caplog.text
        assert [m.name for m in model.services[0].methods] == ["GetPet", "CreatePet"]


class TestPostProcess:
    """Formatting a generated tree."""

    def test_missing_tool_is_skipped(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        monkeypatch.setattr("clientgen.pipeline.is_available", lambda program: False)

        with caplog.at_level(logging.WARNING):
            post_process(GoCodec(), tmp_path)

        assert "gofmt is not installed" in caplog.text

    def test_tool_failure_stops_the_run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def failing(command: list[str], cwd: Path) -> None:
            raise ToolchainError(command, 2, "", "syntax error")

        monkeypatch.setattr("clientgen.pipeline.is_available", lambda program: True)
        monkeypatch.setattr("clientgen.pipeline.run_external_command", failing)

        with pytest.raises(GenerationError, match="syntax error") as excinfo:
            post_process(GoCodec(), tmp_path)

        assert excinfo.value.stage is Stage.DONE
