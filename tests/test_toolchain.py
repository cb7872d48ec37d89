"""Tests for running external commands."""

import subprocess
from pathlib import Path

import pytest

from clientgen.errors import ToolchainError
from clientgen.toolchain import is_available, run_external_command


class TestRunExternalCommand:
    """Blocking execution with captured output."""

    def test_success(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        seen: dict = {}

        def fake_run(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            seen.update(kwargs, command=command)
            return subprocess.CompletedProcess(command, 0, stdout="ok", stderr="")

        monkeypatch.setattr(subprocess, "run", fake_run)

        result = run_external_command(["protoc", "--version"], cwd=tmp_path)

        assert result.stdout == "ok"
        assert seen["command"] == ["protoc", "--version"]
        assert seen["cwd"] == tmp_path
        assert seen["capture_output"] is True

    def test_failure_carries_stderr(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            subprocess,
            "run",
            lambda command, **kwargs: subprocess.CompletedProcess(command, 1, stdout="", stderr="foo.proto:3: oops"),
        )

        with pytest.raises(ToolchainError) as excinfo:
            run_external_command(["protoc", "foo.proto"])

        assert excinfo.value.returncode == 1
        assert excinfo.value.stderr == "foo.proto:3: oops"
        assert "foo.proto:3: oops" in str(excinfo.value)

    def test_program_that_cannot_start(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def missing(command: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
            raise FileNotFoundError(2, "No such file or directory", command[0])

        monkeypatch.setattr(subprocess, "run", missing)

        with pytest.raises(ToolchainError) as excinfo:
            run_external_command(["no-such-tool"])

        assert excinfo.value.returncode == 127


def test_is_available(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("shutil.which", lambda program: "/usr/bin/gofmt" if program == "gofmt" else None)

    assert is_available("gofmt")
    assert not is_available("cargo")
