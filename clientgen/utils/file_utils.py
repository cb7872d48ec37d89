"""
File utilities for writing generated client trees.
"""

import shutil
from pathlib import Path


def write_files_to_disk(files: dict[Path, str]) -> list[Path]:
    """Write generated files to disk.

    Parent directories are created as needed; existing files are overwritten.

    Args:
        files: Dictionary mapping file paths to their content.

    Returns:
        The written paths, in the order they were written.
    """
    written: list[Path] = []
    for path, content in files.items():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        written.append(path)
    return written


def clean_output_directory(output_dir: Path) -> None:
    """Clean the output directory by removing all files and subdirectories.

    Args:
        output_dir: Path to the output directory to clean.
    """
    shutil.rmtree(output_dir, ignore_errors=True)
    output_dir.mkdir(parents=True, exist_ok=True)


def get_relative_path(file_path: Path, base_path: Path) -> Path:
    """Get relative path from base_path to file_path.

    Args:
        file_path: Target file path.
        base_path: Base path to calculate relative path from.

    Returns:
        Relative path from base_path to file_path, or the original
        path if it cannot be made relative.
    """
    try:
        return file_path.relative_to(base_path)
    except ValueError:
        return file_path
