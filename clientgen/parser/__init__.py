"""
Specification parsers.

Each parser turns one input format into the language-neutral model. The
registry below is the only place that knows which formats exist.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Final

from google.api import service_pb2

from clientgen.api.model import API
from clientgen.errors import ConfigurationError

from .openapi import OpenAPIParser, parse_openapi
from .pathtemplate import parse_path_template
from .protobuf import make_api_for_protobuf, parse_protobuf
from .service_config import find_service_config_path, read_service_config

logger = logging.getLogger(__name__)

ParserFunc = Callable[[str, "service_pb2.Service | None", dict[str, str]], API]

PARSERS: Final[dict[str, ParserFunc]] = {
    "protobuf": parse_protobuf,
    "openapi": parse_openapi,
}


def validate_source_options(options: dict[str, str]) -> None:
    """Reject option combinations that cannot be honoured.

    Raises:
        ConfigurationError: If both ``include-list`` and ``exclude-list`` are set.
    """
    if options.get("include-list") and options.get("exclude-list"):
        msg = "only one of 'include-list' and 'exclude-list' may be set"
        raise ConfigurationError(msg)


def parse(specification_format: str, source: str, service_config: str, options: dict[str, str]) -> API:
    """Parse ``source`` with the parser registered for ``specification_format``.

    Args:
        specification_format: ``protobuf`` or ``openapi``.
        source: Path of the specification (file, directory or descriptor set).
        service_config: Optional path of a ``google.api.Service`` YAML file.
        options: Source options.

    Returns:
        The parsed model, not yet cross-referenced.

    Raises:
        ConfigurationError: For unknown formats or invalid options.
    """
    parser = PARSERS.get(specification_format)
    if parser is None:
        msg = f"unknown specification format {specification_format!r}, expected one of {sorted(PARSERS)}"
        raise ConfigurationError(msg)
    validate_source_options(options)

    config_path = find_service_config_path(service_config, options)
    config = read_service_config(config_path) if config_path is not None else None
    logger.info(f"Parsing {specification_format} specification {source}")
    return parser(source, config, options)


__all__ = [
    "PARSERS",
    "OpenAPIParser",
    "make_api_for_protobuf",
    "parse",
    "parse_openapi",
    "parse_path_template",
    "parse_protobuf",
    "validate_source_options",
]
