"""
String case conversion utilities for generated identifiers.

This module converts between the naming conventions found in API
descriptions (snake_case proto fields, camelCase JSON names, PascalCase
messages) and the conventions of the target languages, including the
escaping of reserved words.

Based on https://github.com/okunishinishi/python-stringcase
with additional keyword handling for Rust and Go.
"""

import re
from collections.abc import Callable
from typing import Final

# Regex patterns for case conversion
_SNAKE_CASE_DELIMITER_PATTERN: Final = re.compile(r"[\-\.\s]")
_ACRONYM_PATTERN: Final = re.compile(r"([A-Z])([A-Z][a-z])")
_LOWER_UPPER_PATTERN: Final = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALPHANUMERIC_PATTERN: Final = re.compile(r"[^a-zA-Z0-9_]")
_PASCAL_CASE_PATTERN: Final = re.compile(r"^[A-Z][a-zA-Z0-9]*$")

# Reserved Rust keywords that need to be escaped with r#
RUST_KEYWORDS: Final = frozenset(
    {
        # Strict keywords
        "as",
        "break",
        "const",
        "continue",
        "else",
        "enum",
        "extern",
        "false",
        "fn",
        "for",
        "if",
        "impl",
        "in",
        "let",
        "loop",
        "match",
        "mod",
        "move",
        "mut",
        "pub",
        "ref",
        "return",
        "static",
        "struct",
        "trait",
        "true",
        "type",
        "unsafe",
        "use",
        "where",
        "while",
        # Edition 2018+
        "async",
        "await",
        "dyn",
        "try",
        # Reserved for future use
        "abstract",
        "become",
        "box",
        "do",
        "final",
        "macro",
        "override",
        "priv",
        "typeof",
        "unsized",
        "virtual",
        "yield",
    }
)

# These cannot be raw identifiers, r#self is rejected by rustc
_RUST_UNESCAPABLE: Final = frozenset({"crate", "self", "super", "Self"})

GO_KEYWORDS: Final = frozenset(
    {
        "break",
        "case",
        "chan",
        "const",
        "continue",
        "default",
        "defer",
        "else",
        "fallthrough",
        "for",
        "func",
        "go",
        "goto",
        "if",
        "import",
        "interface",
        "map",
        "package",
        "range",
        "return",
        "select",
        "struct",
        "switch",
        "type",
        "var",
    }
)


def _convert_if_not_empty(string: str | None, conversion_func: Callable[[str], str]) -> str:
    """Safely convert a string, returning empty string if input is None or empty."""
    return conversion_func(string) if string else ""


def snakecase(string: str | None) -> str:
    """Convert string into snake_case.

    Handles various formats including camelCase with acronyms.

    Args:
        string: String to convert.

    Returns:
        Snake case string.

    Examples:
        >>> snakecase("HelloWorld")
        'hello_world'
        >>> snakecase("hello-world")
        'hello_world'
        >>> snakecase("getHTTPResponse")
        'get_http_response'
    """

    def _snakecase(s: str) -> str:
        s = _SNAKE_CASE_DELIMITER_PATTERN.sub("_", s)
        s = _ACRONYM_PATTERN.sub(r"\1_\2", s)
        s = _LOWER_UPPER_PATTERN.sub(r"\1_\2", s)
        return s.lower()

    return _convert_if_not_empty(string, _snakecase)


def camelcase(string: str | None) -> str:
    """Convert string into camel case.

    Examples:
        >>> camelcase("hello_world")
        'helloWorld'
        >>> camelcase("getHTTPResponse")
        'getHttpResponse'
    """

    def _camelcase(s: str) -> str:
        words = snakecase(s).split("_")
        return words[0] + "".join(word.capitalize() for word in words[1:])

    return _convert_if_not_empty(string, _camelcase)


def pascalcase(string: str | None) -> str:
    """Convert string into PascalCase.

    Examples:
        >>> pascalcase("hello_world")
        'HelloWorld'
        >>> pascalcase("getHTTPResponse")
        'GetHttpResponse'
    """

    def _pascalcase(s: str) -> str:
        return "".join(word.capitalize() for word in snakecase(s).split("_"))

    return _convert_if_not_empty(string, _pascalcase)


def constcase(string: str | None) -> str:
    """Convert string into CONSTANT_CASE (upper snake case).

    Examples:
        >>> constcase("helloWorld")
        'HELLO_WORLD'
    """
    return snakecase(string).upper()


def is_pascalcase(string: str) -> bool:
    """Return True when ``string`` is already a PascalCase identifier."""
    return bool(_PASCAL_CASE_PATTERN.match(string))


def normalize_identifier(name: str | None) -> str:
    """Normalize name to be a valid identifier in C-like languages.

    Invalid characters become underscores and a leading digit gets an
    underscore prefix.

    Examples:
        >>> normalize_identifier("123invalid")
        '_123invalid'
        >>> normalize_identifier("valid@name")
        'valid_name'
    """

    def _normalize(s: str) -> str:
        normalized = _NON_ALPHANUMERIC_PATTERN.sub("_", s)
        if normalized and normalized[0].isdigit():
            normalized = f"_{normalized}"
        return normalized

    return _convert_if_not_empty(name, _normalize)


def escape_rust_keyword(name: str) -> str:
    """Escape Rust keywords with r# prefix if necessary.

    ``self``, ``super``, ``crate`` and ``Self`` cannot be raw identifiers and
    get a trailing underscore instead.

    Examples:
        >>> escape_rust_keyword("type")
        'r#type'
        >>> escape_rust_keyword("self")
        'self_'
        >>> escape_rust_keyword("name")
        'name'
    """
    if name in _RUST_UNESCAPABLE:
        return f"{name}_"
    return f"r#{name}" if name in RUST_KEYWORDS else name


def escape_go_keyword(name: str) -> str:
    """Escape Go keywords by appending an underscore.

    Examples:
        >>> escape_go_keyword("type")
        'type_'
        >>> escape_go_keyword("name")
        'name'
    """
    return f"{name}_" if name in GO_KEYWORDS else name
