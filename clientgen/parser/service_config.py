"""Loading of ``google.api.Service`` configuration files."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from google.api import service_pb2
from google.protobuf import json_format

from clientgen.errors import SpecificationError

logger = logging.getLogger(__name__)

# Source options naming directories that relative paths are resolved against.
_ROOT_OPTIONS = ("googleapis-root", "extra-protos-root")


def read_service_config(path: str | Path) -> service_pb2.Service:
    """Read a YAML service configuration into a ``google.api.Service`` message.

    Keys unknown to the message (for example ``type``) are ignored.

    Raises:
        SpecificationError: If the file is not valid YAML or does not match
            the ``google.api.Service`` schema.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            msg = f"cannot parse service config {path}: {e}"
            raise SpecificationError(msg) from e
    return service_config_from_dict(data, str(path))


def service_config_from_dict(data: dict, origin: str = "<dict>") -> service_pb2.Service:
    try:
        return json_format.ParseDict(data, service_pb2.Service(), ignore_unknown_fields=True)
    except json_format.ParseError as e:
        msg = f"invalid service config {origin}: {e}"
        raise SpecificationError(msg) from e


def find_service_config_path(service_config: str, options: dict[str, str]) -> Path | None:
    """Resolve ``service_config`` against the configured source roots.

    Absolute paths and paths that exist relative to the working directory
    are returned as is.
    """
    if not service_config:
        return None
    candidate = Path(service_config)
    if candidate.is_absolute() or candidate.exists():
        return candidate
    for option in _ROOT_OPTIONS:
        root = options.get(option)
        if root and (Path(root) / service_config).exists():
            return Path(root) / service_config
    logger.warning(f"Service config {service_config} not found in the working directory or source roots")
    return candidate


def api_names(config: service_pb2.Service | None) -> list[str]:
    """Fully qualified service names listed in ``config.apis``."""
    if config is None:
        return []
    return [api.name for api in config.apis]


def package_from_config(config: service_pb2.Service | None, mixin_services: frozenset[str]) -> str:
    """Package of the first API in the config that is not a mixin, or ''."""
    for name in api_names(config):
        if name in mixin_services:
            continue
        package, _, _ = name.rpartition(".")
        return package
    return ""
