"""
Template engine for client generation.

Templates are Jinja2 files with a ``.j2`` suffix. A codec owns a template
root (for example ``rust/crate``); every template below that root is
rendered to the same relative path minus the suffix. Templates whose base
name has a single dot, such as ``message.j2``, are partials: they are only
reachable through ``{% include %}`` and are never rendered on their own.

Template text comes from a ``TemplateProvider`` so the engine does not care
whether templates live on disk or in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Final, Protocol

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateError, select_autoescape

from clientgen.errors import SpecificationError
from clientgen.generator.filters import FILTERS
from clientgen.utils.file_utils import write_files_to_disk

if TYPE_CHECKING:
    from clientgen.api.model import API
    from clientgen.language.codec import Codec

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX: Final = ".j2"
BUNDLED_TEMPLATES_DIR: Final = Path(__file__).parent.parent / "templates"


class TemplateProvider(Protocol):
    """Source of raw template text, keyed by ``/``-separated template name."""

    def list_templates(self) -> list[str]: ...

    def load(self, name: str) -> str: ...


class FileSystemTemplateProvider:
    """Templates stored in a directory tree."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def list_templates(self) -> list[str]:
        if not self.root.is_dir():
            msg = f"template directory {self.root} does not exist"
            raise SpecificationError(msg)
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file())

    def load(self, name: str) -> str:
        return (self.root / name).read_text(encoding="utf-8")


class DictTemplateProvider:
    """Templates held in memory."""

    def __init__(self, templates: dict[str, str]) -> None:
        self.templates = dict(templates)

    def list_templates(self) -> list[str]:
        return sorted(self.templates)

    def load(self, name: str) -> str:
        try:
            return self.templates[name]
        except KeyError:
            msg = f"unknown template {name}"
            raise SpecificationError(msg) from None


@dataclass(frozen=True)
class GeneratedFile:
    """A template and the path, relative to the output root, it renders to."""

    template_path: str
    output_path: str


def is_partial(name: str) -> bool:
    """Partials have exactly one dot in their base name, e.g. ``message.j2``."""
    return PurePosixPath(name).name.count(".") == 1


def walk_templates(names: list[str], root: str) -> list[GeneratedFile]:
    """Select the templates below ``root`` that produce output files.

    Args:
        names: Template names known to the provider.
        root: Template root directory, ``/``-separated.

    Returns:
        The generated files, sorted by template path.

    Examples:
        >>> walk_templates(["go/client.go.j2", "go/message.j2", "go/README"], "go")
        [GeneratedFile(template_path='go/client.go.j2', output_path='client.go')]
    """
    prefix = root.strip("/") + "/" if root.strip("/") else ""
    files: list[GeneratedFile] = []
    for name in sorted(names):
        if not name.startswith(prefix) or not name.endswith(TEMPLATE_SUFFIX) or is_partial(name):
            continue
        output = name[len(prefix) : -len(TEMPLATE_SUFFIX)]
        files.append(GeneratedFile(template_path=name, output_path=output))
    return files


class TemplateEngine:
    """Jinja2 environment over a template provider."""

    def __init__(self, provider: TemplateProvider) -> None:
        self.provider = provider
        # Register every template, partials included, before anything renders.
        templates = {name: provider.load(name) for name in provider.list_templates() if name.endswith(TEMPLATE_SUFFIX)}
        self.env = Environment(
            loader=DictLoader(templates),
            autoescape=select_autoescape(["html", "xml"]),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
        )
        self.env.filters.update(FILTERS)

    def render_template(self, template_name: str, context: dict[str, Any]) -> str:
        """Render a template with the given context."""
        template = self.env.get_template(template_name)
        return template.render(**context)


class CodeGenerator:
    """Renders the templates of a codec for an annotated model."""

    def __init__(self, codec: Codec, provider: TemplateProvider | None = None) -> None:
        self.codec = codec
        self.provider = provider or codec.templates_provider()
        self.template_engine = TemplateEngine(self.provider)

    def generate_client(self, model: API, output_dir: Path) -> dict[Path, str]:
        """Render every generated file of the codec.

        The model must already be annotated by ``self.codec``.

        Returns:
            Mapping from output path to rendered content.
        """
        if model.codec is None:
            msg = "the model must be annotated before rendering"
            raise SpecificationError(msg)
        output_dir = Path(output_dir)
        context = {"api": model, "annotations": model.codec}
        files: dict[Path, str] = {}
        for generated in self.codec.generated_files(self.provider):
            try:
                content = self.template_engine.render_template(generated.template_path, context)
            except TemplateError as e:
                msg = f"cannot render template {generated.template_path}: {e}"
                raise SpecificationError(msg) from e
            files[output_dir / generated.output_path] = content
        logger.info(f"Rendered {len(files)} files for {self.codec.language}")
        return files


def generate(model: API, codec: Codec, output_dir: Path, provider: TemplateProvider | None = None) -> list[Path]:
    """Render ``model`` with ``codec``'s templates and write the files under ``output_dir``."""
    files = CodeGenerator(codec, provider).generate_client(model, output_dir)
    return write_files_to_disk(files)
