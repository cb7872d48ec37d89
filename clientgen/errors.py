"""Exception hierarchy for client generation.

Every failure raised by the generator derives from ``GeneratorError`` so
callers can catch the whole family at the front door. The subclasses map
to the stages that produce them: reading inputs, validating configuration,
linking the model, running external tools and rendering output.
"""

from __future__ import annotations

from typing import Any


class GeneratorError(Exception):
    """Base class for all generator failures."""


class SpecificationError(GeneratorError):
    """The input specification is malformed or uses an unsupported construct."""


class ConfigurationError(GeneratorError):
    """The generator configuration is invalid."""


class CrossReferenceError(GeneratorError):
    """A model invariant does not hold after parsing."""


class ToolchainError(GeneratorError):
    """An external command exited unsuccessfully."""

    def __init__(self, command: list[str], returncode: int, stdout: str = "", stderr: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(f"command {' '.join(command)!r} failed with exit code {returncode}:\n{stderr}")


class GenerationError(GeneratorError):
    """Wraps a failure with the pipeline stage and model element that caused it."""

    def __init__(self, stage: Any, element: str | None, cause: BaseException) -> None:  # noqa: ANN401
        self.stage = stage
        self.element = element
        self.cause = cause
        location = f" while processing {element}" if element else ""
        super().__init__(f"generation failed in stage {stage}{location}: {cause}")
