"""
clientgen

A Jinja2-based generator that produces client libraries from Protocol
Buffer descriptors or OpenAPI v3 specifications.
"""

from .api import API, cross_reference, skip_model_elements
from .config import Config, GeneralConfig, load_config, merge_configs
from .errors import (
    ConfigurationError,
    CrossReferenceError,
    GenerationError,
    GeneratorError,
    SpecificationError,
    ToolchainError,
)
from .language import CODECS, Codec, new_codec
from .parser import parse
from .pipeline import Stage, generate, generate_targets, run

__version__ = "0.1.0"

__all__ = [
    "API",
    "CODECS",
    "Codec",
    "Config",
    "ConfigurationError",
    "CrossReferenceError",
    "GeneralConfig",
    "GenerationError",
    "GeneratorError",
    "SpecificationError",
    "Stage",
    "ToolchainError",
    "cross_reference",
    "generate",
    "generate_targets",
    "load_config",
    "merge_configs",
    "new_codec",
    "parse",
    "run",
    "skip_model_elements",
]
