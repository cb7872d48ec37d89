"""
Generation pipeline.

A run moves through the stages below in order, exactly once:

    UNPARSED -> PARSED -> CROSS_REFERENCED -> ANNOTATED -> RENDERED -> DONE

Any failure stops the run. It is reported as a ``GenerationError`` that
names the stage and, where one is known, the offending element.
"""

from __future__ import annotations

import contextlib
import copy
import logging
from collections.abc import Iterator
from enum import Enum
from pathlib import Path

from clientgen.api import apply_documentation_overrides, cross_reference, skip_model_elements
from clientgen.api.model import API
from clientgen.config import Config, validate_config
from clientgen.errors import GenerationError, GeneratorError
from clientgen.generator.template_engine import FileSystemTemplateProvider, TemplateProvider
from clientgen.generator.template_engine import generate as render
from clientgen.language import Codec, new_codec, parse_bool_option
from clientgen.parser import parse
from clientgen.toolchain import is_available, run_external_command

logger = logging.getLogger(__name__)

POST_PROCESS_OPTION = "post-process"


class Stage(Enum):
    UNPARSED = "unparsed"
    PARSED = "parsed"
    CROSS_REFERENCED = "cross-referenced"
    ANNOTATED = "annotated"
    RENDERED = "rendered"
    DONE = "done"

    def __str__(self) -> str:
        return self.value


@contextlib.contextmanager
def in_stage(name: Stage, element: str | None = None) -> Iterator[None]:
    """Attribute any failure inside the block to ``name`` and ``element``."""
    try:
        yield
    except GenerationError:
        raise
    except (GeneratorError, OSError) as e:
        raise GenerationError(name, element, e) from e


class Pipeline:
    """One generation run over one configuration."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.stage = Stage.UNPARSED
        self.model: API | None = None
        # Selection IDs from the source options that matched nothing.
        self.stale_ids: set[str] = set()

    def _enter(self, expected: Stage, following: Stage) -> None:
        if self.stage is not expected:
            msg = f"cannot move to {following} from {self.stage}, expected {expected}"
            raise RuntimeError(msg)

    def _advance(self, following: Stage) -> None:
        logger.debug(f"Pipeline stage {self.stage} -> {following}")
        self.stage = following

    def parse(self) -> API:
        self._enter(Stage.UNPARSED, Stage.PARSED)
        general = self.config.general
        with in_stage(Stage.PARSED, general.specification_source):
            self.model = parse(
                general.specification_format,
                general.specification_source,
                general.service_config,
                self.config.source,
            )
        self._advance(Stage.PARSED)
        return self.model

    def cross_reference(self) -> API:
        self._enter(Stage.PARSED, Stage.CROSS_REFERENCED)
        model = self._require_model()
        with in_stage(Stage.CROSS_REFERENCED, model.package_name or model.name):
            cross_reference(model)
            self.stale_ids = skip_model_elements(model, self.config.source)
            apply_documentation_overrides(model, self.config.documentation_overrides)
        self._advance(Stage.CROSS_REFERENCED)
        return model

    def annotate(self, codec: Codec) -> API:
        self._enter(Stage.CROSS_REFERENCED, Stage.ANNOTATED)
        model = self._require_model()
        annotate(model, codec)
        self._advance(Stage.ANNOTATED)
        return model

    def render(self, codec: Codec, output_root: Path) -> list[Path]:
        self._enter(Stage.ANNOTATED, Stage.RENDERED)
        written = render_target(self._require_model(), codec, output_root)
        self._advance(Stage.RENDERED)
        return written

    def post_process(self, codec: Codec, output_root: Path) -> None:
        self._enter(Stage.RENDERED, Stage.DONE)
        if parse_bool_option(codec.options, POST_PROCESS_OPTION):
            post_process(codec, output_root)
        self._advance(Stage.DONE)

    def _require_model(self) -> API:
        if self.model is None:
            msg = "the specification has not been parsed"
            raise RuntimeError(msg)
        return self.model


def annotate(model: API, codec: Codec) -> None:
    """Validate and annotate a cross-referenced model for ``codec``."""
    with in_stage(Stage.ANNOTATED, codec.language):
        codec.validate(model)
        codec.annotate_model(model)


def render_target(
    model: API, codec: Codec, output_root: Path, provider: TemplateProvider | None = None
) -> list[Path]:
    with in_stage(Stage.RENDERED, str(output_root)):
        written = render(model, codec, Path(output_root), provider)
    logger.info(f"Wrote {len(written)} {codec.language} files to {output_root}")
    return written


def post_process(codec: Codec, output_root: Path) -> None:
    """Run the codec's formatters over a rendered tree.

    Formatters that are not installed are skipped with a warning; a
    formatter that fails stops the run.
    """
    for command in codec.format_commands(Path(output_root)):
        if not is_available(command[0]):
            logger.warning(f"Skipping post-processing: {command[0]} is not installed")
            continue
        with in_stage(Stage.DONE, " ".join(command)):
            run_external_command(command, cwd=Path(output_root))


def generate(model: API, codec: Codec, output_root: Path, template_root: Path | None = None) -> list[Path]:
    """Annotate a cross-referenced model and render it under ``output_root``.

    Args:
        model: A parsed and cross-referenced model.
        codec: The target language codec.
        output_root: Directory receiving the generated tree.
        template_root: Directory of custom templates. Defaults to the
            codec's ``template-dir`` option, then to the bundled templates.

    Returns:
        The written files.
    """
    annotate(model, codec)
    provider = FileSystemTemplateProvider(Path(template_root)) if template_root is not None else None
    return render_target(model, codec, output_root, provider)


def generate_targets(model: API, codecs: list[Codec], output_root: Path) -> dict[str, list[Path]]:
    """Render one cross-referenced model for several languages.

    Each target annotates its own deep copy of the model, so no annotation
    slot is shared. Target ``language`` is written to ``output_root/language``.
    """
    results: dict[str, list[Path]] = {}
    for codec in codecs:
        if codec.language in results:
            msg = f"language {codec.language} is listed more than once"
            raise GenerationError(Stage.ANNOTATED, codec.language, ValueError(msg))
        target = copy.deepcopy(model)
        results[codec.language] = generate(target, codec, Path(output_root) / codec.language)
    return results


def run(config: Config, output_root: Path) -> list[Path]:
    """Run every stage for ``config``, writing the generated tree under ``output_root``.

    Raises:
        ConfigurationError: If the configuration is invalid. Nothing has
            been parsed or written at that point.
        GenerationError: If any later stage fails.
    """
    validate_config(config)
    codec = new_codec(config.general.language, config.codec)

    pipeline = Pipeline(config)
    pipeline.parse()
    pipeline.cross_reference()
    pipeline.annotate(codec)
    written = pipeline.render(codec, Path(output_root))
    pipeline.post_process(codec, Path(output_root))
    return written
