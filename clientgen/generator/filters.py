"""
Jinja2 filters shared by the bundled templates.

The codecs produce ready-to-use identifiers and types; these filters only
deal with text layout: documentation comments, string literals and
version strings.
"""

from __future__ import annotations

# Semantic versioning constants
_MAX_SEMVER_PARTS = 3
_DEFAULT_VERSION = "0.1.0"

_DOC_BULLET_PREFIXES = frozenset({"* ", "- ", "+ "})


def doc_comment(text: str, prefix: str = "///", indent: int = 0) -> str:
    """Convert free text into line comments.

    Bullet points keep their relative indentation and a paragraph that
    follows a bullet list is separated from it by an empty comment line.

    Args:
        text: The text to convert.
        prefix: The comment marker, ``///`` for Rust and ``//`` for Go.
        indent: Number of spaces for base indentation.

    Returns:
        The formatted comment block.

    Example:
        >>> doc_comment("This is a function")
        '/// This is a function'
        >>> doc_comment("Items:\\n* one\\nDone", prefix="//")
        '// Items:\\n// * one\\n//\\n// Done'
    """
    if not text:
        return ""

    indent_str = " " * indent
    result: list[str] = []
    in_list = False
    for line in text.strip().split("\n"):
        stripped_line = line.strip()
        is_bullet = any(stripped_line.startswith(p) for p in _DOC_BULLET_PREFIXES)
        if in_list and stripped_line and not is_bullet and not line.startswith(" "):
            result.append(f"{indent_str}{prefix}")
            in_list = False
        in_list = in_list or is_bullet
        content = line.rstrip() if is_bullet or line.startswith(" ") else stripped_line
        result.append(f"{indent_str}{prefix} {content}".rstrip())

    return "\n".join(result)


def _parse_version_parts(version_str: str) -> list[str]:
    """Parse version string into numeric parts, replacing invalid parts with "0"."""
    cleaned_version = version_str.lstrip("v")
    parts = [part.strip() for part in cleaned_version.split(".") if part.strip()]
    return [part if part.isdigit() else "0" for part in parts]


def ensure_semver(version_str: str) -> str:
    """Ensure version string is valid semantic versioning format.

    Examples:
        >>> ensure_semver("1")
        '1.0.0'
        >>> ensure_semver("v1.2.3")
        '1.2.3'
    """
    if not version_str:
        return _DEFAULT_VERSION

    parts = _parse_version_parts(version_str)
    if not parts:
        return _DEFAULT_VERSION

    match len(parts):
        case 1:
            parts.extend(["0", "0"])
        case 2:
            parts.append("0")
        case n if n > _MAX_SEMVER_PARTS:
            parts = parts[:_MAX_SEMVER_PARTS]

    return ".".join(parts)


def sanitize_string_literal(text: str) -> str:
    """Escape text for use inside a double-quoted Rust or Go string literal."""
    if not text:
        return ""

    escape_map = {
        "\\": "\\\\",
        '"': '\\"',
        "\n": "\\n",
        "\t": "\\t",
    }

    result = text
    for char, escaped in escape_map.items():
        result = result.replace(char, escaped)
    return result


def first_sentence(text: str) -> str:
    """The first sentence of ``text``, used for one-line summaries."""
    if not text:
        return ""
    flattened = " ".join(text.split())
    end = flattened.find(". ")
    return flattened if end < 0 else flattened[: end + 1]


# Register filters that will be available in Jinja templates
FILTERS = {
    "doc_comment": doc_comment,
    "ensure_semver": ensure_semver,
    "sanitize_string_literal": sanitize_string_literal,
    "first_sentence": first_sentence,
}
