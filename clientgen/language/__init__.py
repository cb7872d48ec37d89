"""
Language codecs.

``CODECS`` is the only place that knows which target languages exist.
"""

from __future__ import annotations

from typing import Final

from clientgen.errors import ConfigurationError

from .codec import APIAnnotation, Codec, parse_bool_option
from .golang import GoCodec
from .rust import RustCodec

CODECS: Final[dict[str, type[Codec]]] = {
    "rust": RustCodec,
    "go": GoCodec,
}


def new_codec(language: str, options: dict[str, str] | None = None) -> Codec:
    """Create the codec registered for ``language``.

    Raises:
        ConfigurationError: If the language is unknown or an option is invalid.
    """
    codec_class = CODECS.get(language)
    if codec_class is None:
        msg = f"unknown target language {language!r}, expected one of {', '.join(sorted(CODECS))}"
        raise ConfigurationError(msg)
    return codec_class(options)


__all__ = [
    "CODECS",
    "APIAnnotation",
    "Codec",
    "GoCodec",
    "RustCodec",
    "new_codec",
    "parse_bool_option",
]
