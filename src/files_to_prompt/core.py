"""
Core logic for files_to_prompt package.
"""

from __future__ import annotations

import os
import re
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, TextIO

import pathspec
from colorama import Fore, Style


# Exceptions
class FilesToPromptError(Exception):
    """Base exception for files_to_prompt errors."""


class PathNotFoundError(FilesToPromptError):
    """Raised when an input path does not exist."""


class ConfigFileError(FilesToPromptError):
    """Raised when the extra-patterns config file cannot be used."""


class OutputError(FilesToPromptError):
    """Raised when the output file cannot be created or written."""


class FileReadError(FilesToPromptError):
    """Raised when a file's content is not usable as text."""


# Diagnostics
def _colored(msg: str, color: str) -> str:
    stream = sys.stderr
    if getattr(stream, "isatty", None) and stream.isatty():
        return color + msg + Style.RESET_ALL
    return msg


def warn(msg: str) -> None:
    print(_colored(f"Warning: {msg}", Fore.YELLOW), file=sys.stderr)


def info(msg: str, verbose: bool) -> None:
    if verbose:
        print(f"[files-to-prompt] {msg}", file=sys.stderr)


# Pattern matching
def _class_end(pattern: str, start: int) -> int:
    """Index one past the ``]`` closing the class opened at *start*, or -1."""
    j = start + 1
    if j < len(pattern) and pattern[j] in "!^":
        j += 1
    if j < len(pattern) and pattern[j] == "]":
        j += 1
    j = pattern.find("]", j)
    return -1 if j == -1 else j + 1


def _glob_to_gitwildmatch(pattern: str) -> Optional[str]:
    """Rewrite a shell glob so gitwildmatch reads it literally.

    Returns None when the glob can never match a base name: an unterminated
    ``[`` class, a dangling ``\\`` or a path separator. Whitespace is wrapped
    in a one-character class so it is not trimmed, and ``!``/``#`` are
    escaped so they are not read as negation or comment markers.
    """
    if "/" in pattern:
        return None
    out: List[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "[":
            end = _class_end(pattern, i)
            if end == -1:
                return None
            out.append(pattern[i:end])
            i = end
            continue
        if char == "\\":
            i += 1
            if i == len(pattern):
                return None
            char = pattern[i]
            out.append(f"[{char}]" if char.isspace() else "\\" + char)
        elif char.isspace():
            out.append(f"[{char}]")
        elif char in "!#":
            out.append("\\" + char)
        else:
            out.append(char)
        i += 1
    return "".join(out)


@lru_cache(maxsize=None)
def _compile_pattern(pattern: str) -> Optional["pathspec.PathSpec"]:
    translated = _glob_to_gitwildmatch(pattern)
    if not translated:
        return None
    try:
        return pathspec.PathSpec.from_lines("gitwildmatch", [translated])
    except (ValueError, re.error):
        return None


def matches_pattern(pattern: str, name: str) -> bool:
    """Glob-match a single base *name* against *pattern*.

    Patterns that fail to compile never match.
    """
    spec = _compile_pattern(pattern)
    return spec is not None and spec.match_file(name)


def matches_any(patterns: Iterable[str], name: str) -> bool:
    return any(matches_pattern(pat, name) for pat in patterns)


# Ignore-file utilities
class IgnoreRules:
    """Rules collected from ``.gitignore`` files while walking.

    The set only grows: rules picked up in one directory stay active for the
    rest of the run, including unrelated sibling trees visited later.
    """

    def __init__(self, rules: Optional[Iterable[str]] = None) -> None:
        self.rules: List[str] = list(rules or [])

    def __len__(self) -> int:
        return len(self.rules)

    def load_from_directory(self, directory: Path) -> None:
        gitignore_path = directory / ".gitignore"
        try:
            if not gitignore_path.is_file():
                return
            with gitignore_path.open("r", encoding="utf-8") as fh:
                lines = fh.read().splitlines()
        except (OSError, UnicodeDecodeError):
            return
        for line in lines:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            self.rules.append(line)

    def is_ignored(self, path: Path) -> bool:
        name = path.name
        if not name:
            return False
        for rule in self.rules:
            if rule.endswith("/"):
                if name == rule[:-1]:
                    return True
            elif matches_pattern(rule, name):
                return True
        return False


def load_extra_patterns(config_path: Path) -> List[str]:
    """Read newline-separated ignore patterns from *config_path*."""
    if not config_path.exists():
        raise ConfigFileError(f"Config file '{config_path}' does not exist")
    if not config_path.is_file():
        raise ConfigFileError(f"'{config_path}' is not a file")
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            return [
                ln.strip()
                for ln in fh
                if ln.strip() and not ln.lstrip().startswith("#")
            ]
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigFileError(f"Could not read config file '{config_path}': {e}")


# Content reading
def _is_binary(data: bytes) -> bool:
    return b"\0" in data


def read_text_content(path: Path) -> str:
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise FileReadError(str(e)) from e
    if _is_binary(raw):
        raise FileReadError("binary content")
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FileReadError(str(e)) from e


# Output formatting
class DocumentWriter:
    """Renders emitted files onto the output sink.

    In plain mode every file becomes a ``---`` delimited block. In cxml mode
    the run is wrapped in ``<documents>`` and each file gets a numbered
    ``<document>`` element; the index starts at 1 and is shared by the whole
    run. Content is written as-is in both modes.
    """

    def __init__(self, out: TextIO, cxml: bool = False) -> None:
        self.out = out
        self.cxml = cxml
        self.index = 1

    def open(self) -> None:
        if self.cxml:
            self.out.write("<documents>\n")

    def close(self) -> None:
        if self.cxml:
            self.out.write("</documents>\n")

    def write(self, path: str, content: str) -> None:
        if self.cxml:
            self.out.write(f'<document index="{self.index}">\n')
            self.out.write(f"<source>{path}</source>\n")
            self.out.write("<document_content>\n")
            self.out.write(f"{content}\n")
            self.out.write("</document_content>\n")
            self.out.write("</document>\n")
            self.index += 1
        else:
            self.out.write(f"{path}\n---\n{content}\n---\n")


# Traversal
def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def _normalize_extensions(extensions: Iterable[str]) -> List[str]:
    return [e.lstrip(".").lower() for e in extensions]


def _has_extension(path: Path, extensions: Sequence[str]) -> bool:
    suffix = path.suffix[1:].lower()
    return bool(suffix) and suffix in extensions


def _list_entries(directory: Path) -> Iterator[Path]:
    try:
        return iter(list(directory.iterdir()))
    except OSError as e:
        warn(f"Skipping entry due to error: {e}")
        return iter(())


def iter_directory(
    directory: Path,
    rules: IgnoreRules,
    extensions: Sequence[str] = (),
    include_hidden: bool = False,
    ignore_gitignore: bool = False,
    ignore_patterns: Sequence[str] = (),
    exclude: Optional[Path] = None,
) -> Iterator[Path]:
    """Yield the files under *directory* that pass every filter.

    Walks depth-first in pre-order, in the order the filesystem lists
    entries, keeping one entry iterator per open directory on an explicit
    stack. Excluded directories are pruned before they are pushed. *rules*
    is updated in place as ``.gitignore`` files are found.
    """
    stack = [_list_entries(directory)]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            stack.pop()
            continue

        try:
            is_dir = entry.is_dir()
            is_link = is_dir and entry.is_symlink()
        except OSError as e:
            warn(f"Skipping entry due to error: {e}")
            continue

        if is_dir:
            if not include_hidden and _is_hidden(entry):
                continue
            if not ignore_gitignore:
                rules.load_from_directory(entry)
                if rules.is_ignored(entry):
                    continue
            if not is_link:
                stack.append(_list_entries(entry))
            continue

        if not include_hidden and _is_hidden(entry):
            continue
        if not ignore_gitignore and rules.is_ignored(entry):
            continue
        if matches_any(ignore_patterns, entry.name):
            continue
        if extensions and not _has_extension(entry, extensions):
            continue
        if exclude is not None and _same_file(entry, exclude):
            continue
        yield entry


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b
    except (OSError, RuntimeError):
        return False


# Pipeline
@dataclass
class RunSummary:
    written: int = 0
    skipped: int = 0


def check_paths(paths: Sequence[str]) -> List[Path]:
    resolved: List[Path] = []
    for p in paths:
        path = Path(p)
        if not path.exists():
            raise PathNotFoundError(f"Path does not exist: {p}")
        resolved.append(path)
    return resolved


def process_paths(
    paths: Sequence[str],
    out: TextIO,
    extensions: Sequence[str] = (),
    include_hidden: bool = False,
    ignore_gitignore: bool = False,
    ignore_patterns: Sequence[str] = (),
    cxml: bool = False,
    exclude: Optional[Path] = None,
    verbose: bool = False,
) -> RunSummary:
    """Emit every selected file under *paths* onto *out*.

    Files named directly in *paths* are always emitted (when readable);
    filters only apply to files reached by walking a directory. Paths are
    rendered with the spelling they were given, so ``./src`` yields
    ``./src/main.py``. *exclude* is a resolved path that is never emitted
    from a walk, normally the output file of the run.
    """
    roots = check_paths(paths)
    extensions = _normalize_extensions(extensions)
    writer = DocumentWriter(out, cxml=cxml)
    rules = IgnoreRules()
    summary = RunSummary()

    def emit(path: Path, shown: str) -> None:
        try:
            content = read_text_content(path)
        except FileReadError as e:
            warn(f"Skipping file {shown} due to {e}")
            summary.skipped += 1
            return
        writer.write(shown, content)
        summary.written += 1

    if roots:
        writer.open()

    for given, root in zip(paths, roots):
        if root.is_file():
            info(f"Adding {given}", verbose)
            emit(root, given)
            continue

        info(f"Scanning {given} …", verbose)
        if not ignore_gitignore:
            if root.parent != root:
                rules.load_from_directory(root.parent)
            rules.load_from_directory(root)
        for path in iter_directory(
            root,
            rules,
            extensions=extensions,
            include_hidden=include_hidden,
            ignore_gitignore=ignore_gitignore,
            ignore_patterns=ignore_patterns,
            exclude=exclude,
        ):
            emit(path, os.path.join(given, path.relative_to(root)))

    if roots:
        writer.close()

    info(
        f"Done. {summary.written} files written, {summary.skipped} skipped.",
        verbose,
    )
    return summary
