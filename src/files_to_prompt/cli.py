"""
CLI entrypoint for files_to_prompt package.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from colorama import just_fix_windows_console

from . import __version__
from .core import (
    check_paths,
    load_extra_patterns,
    process_paths,
    ConfigFileError,
    OutputError,
    PathNotFoundError,
    info,
)

def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="files-to-prompt",
        description="Concatenate a directory of files into a single prompt for LLMs",
    )
    p.add_argument("paths", nargs="+", help="Paths to files or directories")
    p.add_argument(
        "-e",
        "--extension",
        dest="extensions",
        action="append",
        default=[],
        metavar="EXT",
        help="Only include files with these extensions",
    )
    p.add_argument(
        "--include-hidden",
        action="store_true",
        help="Include files and folders starting with .",
    )
    p.add_argument(
        "--ignore-gitignore",
        action="store_true",
        help="Ignore .gitignore files and include all files",
    )
    p.add_argument(
        "--ignore",
        dest="ignore_patterns",
        action="append",
        default=[],
        metavar="PATTERN",
        help="Ignore files matching these patterns",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="Path to a file with extra ignore patterns (one per line)",
    )
    p.add_argument(
        "-o",
        "--output",
        type=Path,
        metavar="FILE",
        help="Output to a file instead of stdout",
    )
    p.add_argument(
        "-c",
        "--cxml",
        action="store_true",
        help="Output in XML-ish format suitable for Claude's long context window",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p.parse_args(argv)


def _run(ns: argparse.Namespace) -> None:
    ignore_patterns = list(ns.ignore_patterns)
    if ns.config:
        ignore_patterns.extend(load_extra_patterns(ns.config))
        info(f"Loaded extra patterns from {ns.config}", ns.verbose)

    options = dict(
        extensions=ns.extensions,
        include_hidden=ns.include_hidden,
        ignore_gitignore=ns.ignore_gitignore,
        ignore_patterns=ignore_patterns,
        cxml=ns.cxml,
        verbose=ns.verbose,
    )

    if ns.output is None:
        process_paths(ns.paths, sys.stdout, **options)
        return

    # Missing inputs must fail before the output file is created.
    check_paths(ns.paths)

    try:
        out_fh = ns.output.open("w", encoding="utf-8", newline="\n")
    except OSError as e:
        raise OutputError(f"Could not open output file '{ns.output}': {e}")

    with out_fh:
        try:
            process_paths(
                ns.paths, out_fh, exclude=ns.output.resolve(), **options
            )
        except OSError as e:
            raise OutputError(f"Could not write to output file '{ns.output}': {e}")
    info(f"Wrote {ns.output}", ns.verbose)


def main(argv: Optional[List[str]] = None) -> None:
    just_fix_windows_console()
    try:
        ns = _parse_args(argv)
        try:
            _run(ns)
        except (PathNotFoundError, ConfigFileError, OutputError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)

    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)

if __name__ == "__main__":
    main()
