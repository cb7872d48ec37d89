"""Tests for the command line interface."""

import json
from pathlib import Path
from typing import Any

import pytest

from clientgen.cli import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_FILE_NOT_FOUND,
    EXIT_GENERATION_ERROR,
    EXIT_INVALID_INPUT,
    EXIT_SUCCESS,
    build_config,
    main,
    parse_command_line_args,
)
from clientgen.errors import ToolchainError


@pytest.fixture
def spec_path(tmp_path: Path, openapi_spec: dict[str, Any]) -> Path:
    path = tmp_path / "openapi.json"
    path.write_text(json.dumps(openapi_spec))
    return path


@pytest.fixture
def base_args(tmp_path: Path, spec_path: Path) -> list[str]:
    return [
        "--language",
        "rust",
        "--specification-format",
        "openapi",
        "--specification-source",
        str(spec_path),
        "--root-config",
        str(tmp_path / "no-root.yaml"),
        "--source-option",
        "package-name=pets",
        "--output",
        str(tmp_path / "out"),
    ]


class TestArguments:
    """Argument parsing and configuration assembly."""

    def test_defaults(self) -> None:
        args = parse_command_line_args([])

        assert args.output_dir == Path("./generated")
        assert args.root_config == Path(".clientgen.yaml")
        assert args.source_option == []

    def test_key_value_options(self) -> None:
        args = parse_command_line_args(["--codec-option", "copyright-year=2025", "--codec-option", "post-process=true"])

        assert dict(args.codec_option) == {"copyright-year": "2025", "post-process": "true"}

    def test_malformed_key_value(self) -> None:
        with pytest.raises(SystemExit):
            parse_command_line_args(["--source-option", "no-equals-sign"])

    def test_config_files_and_flags_are_layered(self, tmp_path: Path) -> None:
        root = tmp_path / "root.yaml"
        root.write_text("general:\n  language: go\ncodec:\n  copyright-year: 2024\n")
        local = tmp_path / "local.yaml"
        local.write_text("general:\n  specification-format: openapi\n  specification-source: a.json\n")

        config = build_config(
            parse_command_line_args(
                ["--root-config", str(root), "--config", str(local), "--codec-option", "copyright-year=2025"]
            )
        )

        assert config.general.language == "go"
        assert config.general.specification_source == "a.json"
        assert config.codec == {"copyright-year": "2025"}


class TestMain:
    """Exit codes and output handling."""

    def test_success(self, base_args: list[str], tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(base_args) == EXIT_SUCCESS

        assert (tmp_path / "out" / "src" / "model.rs").exists()
        assert "Client generated successfully" in capsys.readouterr().out

    def test_verbose_summary(self, base_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main([*base_args, "--verbose"]) == EXIT_SUCCESS

        output = capsys.readouterr().out
        assert "Generated 5 files:" in output
        assert "src/client.rs" in output

    def test_configuration_error(self, base_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
        assert main([*base_args, "--language", "cobol"]) == EXIT_CONFIGURATION_ERROR

        assert "cobol" in capsys.readouterr().err

    def test_missing_config_file(self, base_args: list[str], tmp_path: Path) -> None:
        assert main([*base_args, "--config", str(tmp_path / "missing.yaml")]) == EXIT_FILE_NOT_FOUND

    def test_missing_specification(self, base_args: list[str], tmp_path: Path) -> None:
        args = [*base_args, "--specification-source", str(tmp_path / "missing.json")]

        assert main(args) == EXIT_FILE_NOT_FOUND

    def test_invalid_specification_restores_output(self, base_args: list[str], spec_path: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        out.mkdir()
        (out / "keep.txt").write_text("previous run")
        spec_path.write_text(json.dumps({"swagger": "2.0"}))

        assert main(base_args) == EXIT_INVALID_INPUT

        assert (out / "keep.txt").read_text() == "previous run"

    def test_formatter_failure(self, base_args: list[str], monkeypatch: pytest.MonkeyPatch) -> None:
        def failing(command: list[str], cwd: Path) -> None:
            raise ToolchainError(command, 1, "", "cargo: error")

        monkeypatch.setattr("clientgen.pipeline.is_available", lambda program: True)
        monkeypatch.setattr("clientgen.pipeline.run_external_command", failing)

        assert main([*base_args, "--codec-option", "post-process=true"]) == EXIT_GENERATION_ERROR
