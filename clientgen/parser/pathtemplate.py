"""
Parser for HTTP path templates such as ``/v1/{parent=projects/*}/secrets:list``.

The template is split on ``/`` outside of braces. A braced segment names a
request field (``{name}`` or ``{name=pattern}``), anything else is a
literal, and a ``:verb`` suffix after the last segment becomes a verb
segment. The pattern part of a variable is discarded.
"""

from __future__ import annotations

import re
from typing import Final

from clientgen.api.model import PathSegment
from clientgen.errors import SpecificationError

_FIELD_PATH_PATTERN: Final = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*(\.[A-Za-z_][A-Za-z0-9_\-]*)*$")


def _split_top_level(template: str, separator: str) -> list[str]:
    """Split ``template`` on ``separator`` where it is not inside braces."""
    parts: list[str] = []
    depth = 0
    current: list[str] = []
    for char in template:
        match char:
            case "{":
                depth += 1
            case "}":
                depth -= 1
                if depth < 0:
                    msg = f"unbalanced '}}' in path template {template!r}"
                    raise SpecificationError(msg)
        if char == separator and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    if depth != 0:
        msg = f"unbalanced '{{' in path template {template!r}"
        raise SpecificationError(msg)
    parts.append("".join(current))
    return parts


def _parse_segment(segment: str, template: str) -> PathSegment:
    if not segment:
        msg = f"empty segment in path template {template!r}"
        raise SpecificationError(msg)
    if not segment.startswith("{"):
        return PathSegment(literal=segment)
    if not segment.endswith("}"):
        msg = f"variable segment {segment!r} must end with '}}' in {template!r}"
        raise SpecificationError(msg)
    field_path = segment[1:-1].split("=", 1)[0].strip()
    if not _FIELD_PATH_PATTERN.match(field_path):
        msg = f"invalid field path {field_path!r} in path template {template!r}"
        raise SpecificationError(msg)
    return PathSegment(field_path=field_path)


def parse_path_template(template: str) -> list[PathSegment]:
    """Parse ``template`` into literal, field path and verb segments.

    Args:
        template: The template, starting with ``/``.

    Returns:
        The parsed segments, in order.

    Raises:
        SpecificationError: If the template is malformed.

    Examples:
        >>> [s.literal or s.field_path or s.verb for s in parse_path_template("/v1/{name=projects/*}:cancel")]
        ['v1', 'name', 'cancel']
    """
    if not template.startswith("/"):
        msg = f"path template {template!r} must start with '/'"
        raise SpecificationError(msg)

    segments = _split_top_level(template[1:], "/")
    verb: str | None = None
    last = _split_top_level(segments[-1], ":")
    if len(last) > 2:  # noqa: PLR2004
        msg = f"more than one verb in path template {template!r}"
        raise SpecificationError(msg)
    if len(last) == 2:  # noqa: PLR2004
        segments[-1], verb = last
        if not verb:
            msg = f"empty verb in path template {template!r}"
            raise SpecificationError(msg)

    result = [_parse_segment(segment, template) for segment in segments]
    if verb is not None:
        result.append(PathSegment(verb=verb))
    return result
