"""Utility helpers shared by parsers, codecs and the template engine."""

from .file_utils import clean_output_directory, get_relative_path, write_files_to_disk
from .string_case import (
    camelcase,
    constcase,
    escape_go_keyword,
    escape_rust_keyword,
    normalize_identifier,
    pascalcase,
    snakecase,
)

__all__ = [
    "camelcase",
    "clean_output_directory",
    "constcase",
    "escape_go_keyword",
    "escape_rust_keyword",
    "get_relative_path",
    "normalize_identifier",
    "pascalcase",
    "snakecase",
    "write_files_to_disk",
]
