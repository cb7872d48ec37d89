"""
Generator configuration.

A configuration has a ``general`` section choosing the parser and codec, and
two free-form string maps: ``source`` options for the parser and ``codec``
options for the target language. A repository usually keeps shared defaults
in a root ``.clientgen.yaml`` and one small file per generated library;
``merge_configs`` combines the two.

Example::

    general:
      language: rust
      specification-format: protobuf
      specification-source: google/cloud/secretmanager/v1
      service-config: google/cloud/secretmanager/v1/secretmanager_v1.yaml
    source:
      googleapis-root: /src/googleapis
    codec:
      copyright-year: "2025"
    documentation-overrides:
      - id: .google.cloud.secretmanager.v1.Secret
        match: "[Secret][google.cloud.secretmanager.v1.Secret]"
        replace: "Secret"
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final

import yaml

from clientgen.api.skip import SelectionPolicy
from clientgen.errors import ConfigurationError
from clientgen.language import CODECS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE: Final = ".clientgen.yaml"

SPECIFICATION_FORMATS: Final = frozenset({"protobuf", "openapi"})


@dataclass
class GeneralConfig:
    """Selection of the parser and the codec."""

    language: str = ""
    specification_format: str = ""
    specification_source: str = ""
    service_config: str = ""


@dataclass
class DocumentationOverride:
    """Replace ``match`` with ``replace`` in the documentation of element ``id``."""

    id: str
    match: str
    replace: str


@dataclass
class Config:
    general: GeneralConfig = field(default_factory=GeneralConfig)
    source: dict[str, str] = field(default_factory=dict)
    codec: dict[str, str] = field(default_factory=dict)
    documentation_overrides: list[DocumentationOverride] = field(default_factory=list)


def _string_map(data: Any, section: str, origin: str) -> dict[str, str]:  # noqa: ANN401
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"section {section!r} of {origin} must be a mapping"
        raise ConfigurationError(msg)
    # YAML turns `true` and `2025` into non-strings; options are always strings.
    return {str(k): str(v).lower() if isinstance(v, bool) else str(v) for k, v in data.items()}


def config_from_dict(data: dict[str, Any], origin: str = "<dict>") -> Config:
    """Build a ``Config`` from the parsed YAML document.

    Raises:
        ConfigurationError: If a section has the wrong shape.
    """
    if not isinstance(data, dict):
        msg = f"{origin} must contain a mapping"
        raise ConfigurationError(msg)
    general = _string_map(data.get("general"), "general", origin)
    known = {"language", "specification-format", "specification-source", "service-config"}
    for key in sorted(set(general) - known):
        logger.warning(f"Ignoring unknown key general.{key} in {origin}")

    overrides: list[DocumentationOverride] = []
    for i, item in enumerate(data.get("documentation-overrides") or []):
        if not isinstance(item, dict) or not {"id", "match", "replace"} <= set(item):
            msg = f"documentation-overrides[{i}] in {origin} needs `id`, `match` and `replace`"
            raise ConfigurationError(msg)
        overrides.append(
            DocumentationOverride(id=str(item["id"]), match=str(item["match"]), replace=str(item["replace"]))
        )

    return Config(
        general=GeneralConfig(
            language=general.get("language", ""),
            specification_format=general.get("specification-format", ""),
            specification_source=general.get("specification-source", ""),
            service_config=general.get("service-config", ""),
        ),
        source=_string_map(data.get("source"), "source", origin),
        codec=_string_map(data.get("codec"), "codec", origin),
        documentation_overrides=overrides,
    )


def load_config(path: str | Path) -> Config:
    """Read a configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or has the wrong shape.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"invalid YAML in {path}: {e}"
            raise ConfigurationError(msg) from e
    return config_from_dict(data or {}, str(path))


def load_root_config(path: str | Path = DEFAULT_CONFIG_FILE) -> Config:
    """Read the shared defaults, or return an empty configuration if there are none."""
    path = Path(path)
    if not path.exists():
        logger.debug(f"No root configuration at {path}")
        return Config()
    return load_config(path)


def merge_configs(root: Config, local: Config) -> Config:
    """Overlay ``local`` on ``root``.

    The language and specification format fall back to the root values.
    The specification source and service config only make sense per
    library, so they always come from ``local``. Source and codec options
    are merged key by key, with ``local`` winning. Documentation overrides
    come from ``local`` only.
    """
    general = GeneralConfig(
        language=local.general.language or root.general.language,
        specification_format=local.general.specification_format or root.general.specification_format,
        specification_source=local.general.specification_source,
        service_config=local.general.service_config,
    )
    return Config(
        general=general,
        source={**root.source, **local.source},
        codec={**root.codec, **local.codec},
        documentation_overrides=list(local.documentation_overrides),
    )


def with_overrides(
    config: Config,
    *,
    language: str | None = None,
    specification_format: str | None = None,
    specification_source: str | None = None,
    service_config: str | None = None,
    source: dict[str, str] | None = None,
    codec: dict[str, str] | None = None,
) -> Config:
    """Apply command line values on top of ``config``; ``None`` keeps the configured value."""
    general = config.general
    general = replace(
        general,
        language=language or general.language,
        specification_format=specification_format or general.specification_format,
        specification_source=specification_source or general.specification_source,
        service_config=service_config if service_config is not None else general.service_config,
    )
    return replace(
        config,
        general=general,
        source={**config.source, **(source or {})},
        codec={**config.codec, **(codec or {})},
    )


def validate_config(config: Config) -> None:
    """Reject configurations that cannot produce a model.

    Raises:
        ConfigurationError: On a missing or unknown language or format, a
            missing source, or mutually exclusive options.
    """
    general = config.general
    if not general.language:
        msg = "no target language configured"
        raise ConfigurationError(msg)
    if general.language not in CODECS:
        msg = f"unknown target language {general.language!r}, expected one of {', '.join(sorted(CODECS))}"
        raise ConfigurationError(msg)
    if general.specification_format not in SPECIFICATION_FORMATS:
        msg = (
            f"unknown specification format {general.specification_format!r}, "
            f"expected one of {', '.join(sorted(SPECIFICATION_FORMATS))}"
        )
        raise ConfigurationError(msg)
    if not general.specification_source:
        msg = "no specification source configured"
        raise ConfigurationError(msg)
    if config.source.get("include-list") and config.source.get("exclude-list"):
        msg = "only one of 'include-list' and 'exclude-list' may be set"
        raise ConfigurationError(msg)
    SelectionPolicy.from_options(config.source)
