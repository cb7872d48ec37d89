#!/usr/bin/env python3
"""Command-line interface for clientgen."""

import argparse
import contextlib
import logging
import shutil
import sys
import tempfile
import traceback
from collections.abc import Generator
from pathlib import Path

from clientgen.config import (
    DEFAULT_CONFIG_FILE,
    Config,
    load_config,
    load_root_config,
    merge_configs,
    validate_config,
    with_overrides,
)
from clientgen.errors import ConfigurationError, GenerationError, SpecificationError
from clientgen.pipeline import run
from clientgen.utils.file_utils import clean_output_directory, get_relative_path

logger = logging.getLogger(__name__)

# Exit codes for better error reporting
EXIT_SUCCESS = 0
EXIT_FILE_NOT_FOUND = 1
EXIT_INVALID_INPUT = 2
EXIT_GENERATION_ERROR = 3
EXIT_CONFIGURATION_ERROR = 4


def _key_value(text: str) -> tuple[str, str]:
    key, sep, value = text.partition("=")
    if not sep or not key:
        msg = f"expected KEY=VALUE, got {text!r}"
        raise argparse.ArgumentTypeError(msg)
    return key.strip(), value.strip()


def parse_command_line_args(args: list[str] | None = None) -> argparse.Namespace:
    """Create and configure the command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Generate client libraries from Protobuf or OpenAPI specifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --language rust --specification-format openapi --specification-source api.yaml
  %(prog)s --config secretmanager/.clientgen.yaml --output ./secretmanager
  %(prog)s --language go --specification-format protobuf \\
      --specification-source google/cloud/secretmanager/v1 \\
      --source-option googleapis-root=/src/googleapis --codec-option copyright-year=2025
        """,
    )
    parser.add_argument("--language", "-l", help="Target language (rust or go)")
    parser.add_argument(
        "--specification-format",
        "-f",
        choices=["protobuf", "openapi"],
        help="Format of the specification",
    )
    parser.add_argument(
        "--specification-source",
        "-s",
        help="Specification file or directory",
    )
    parser.add_argument("--service-config", help="google.api.Service YAML file")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=Path("./generated"),
        help="Output directory for generated files (default: %(default)s)",
        dest="output_dir",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=Path,
        help="Library configuration file, merged on top of the root configuration",
    )
    parser.add_argument(
        "--root-config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help="Shared configuration file (default: %(default)s)",
    )
    parser.add_argument(
        "--source-option",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Parser option, may be repeated",
    )
    parser.add_argument(
        "--codec-option",
        type=_key_value,
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Codec option, may be repeated",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose output",
    )
    return parser.parse_args(args)


def build_config(parsed_args: argparse.Namespace) -> Config:
    """Combine the configuration files and the command line flags."""
    config = load_root_config(parsed_args.root_config)
    if parsed_args.config is not None:
        config = merge_configs(config, load_config(parsed_args.config))
    return with_overrides(
        config,
        language=parsed_args.language,
        specification_format=parsed_args.specification_format,
        specification_source=parsed_args.specification_source,
        service_config=parsed_args.service_config,
        source=dict(parsed_args.source_option),
        codec=dict(parsed_args.codec_option),
    )


def print_generation_summary(*, files: list[Path], output_dir: Path) -> None:
    """Print summary of generated files."""
    print(f"Generated {len(files)} files:")
    for file_path in sorted(files):
        print(f"  {get_relative_path(file_path, output_dir)}")
    print(f"\nClient generated successfully in {output_dir}")


@contextlib.contextmanager
def backup_and_clean_output_dir(output_dir: Path) -> Generator[None, None, None]:
    """Start from an empty output directory, restoring the old content on failure."""
    backup_dir = None
    if output_dir.exists() and any(output_dir.iterdir()):
        backup_dir = Path(tempfile.mkdtemp())
        shutil.copytree(output_dir, backup_dir, dirs_exist_ok=True)

    clean_output_directory(output_dir)

    try:
        yield
    except Exception:
        if backup_dir:
            print(
                "Error: Generation failed. Restoring original content.",
                file=sys.stderr,
            )
            clean_output_directory(output_dir)
            shutil.copytree(backup_dir, output_dir, dirs_exist_ok=True)
        raise
    finally:
        if backup_dir:
            shutil.rmtree(backup_dir)


def _exit_code(error: BaseException) -> int:
    cause = error.cause if isinstance(error, GenerationError) else error
    match cause:
        case FileNotFoundError():
            return EXIT_FILE_NOT_FOUND
        case ConfigurationError():
            return EXIT_CONFIGURATION_ERROR
        case SpecificationError():
            return EXIT_INVALID_INPUT
        case _:
            return EXIT_GENERATION_ERROR


def main(args: list[str] | None = None) -> int:
    """Generate a client library."""
    parsed_args = parse_command_line_args(args)
    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(parsed_args)
        validate_config(config)
    except FileNotFoundError as e:
        print(f"Error: Configuration file not found: {e.filename}", file=sys.stderr)
        return EXIT_FILE_NOT_FOUND
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    logger.debug(f"Effective configuration: {config}")

    try:
        with backup_and_clean_output_dir(parsed_args.output_dir):
            written = run(config, parsed_args.output_dir)

        if parsed_args.verbose:
            print_generation_summary(files=written, output_dir=parsed_args.output_dir)
        else:
            print(f"Client generated successfully in {parsed_args.output_dir}")
        return EXIT_SUCCESS

    except (GenerationError, ConfigurationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if parsed_args.verbose:
            traceback.print_exc()
        return _exit_code(e)


if __name__ == "__main__":
    sys.exit(main())
