#!/usr/bin/env python3
"""Utility helpers for electron2rpm."""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
import sys
import tempfile
import textwrap
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

ANSI_ESCAPE_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~]|[\(\)][0-9A-Za-z])")
INVALID_NAME_CHARS_RE = re.compile(r"[^a-zA-Z0-9._+-]")
AUTHOR_URL_RE = re.compile(r"\(([^)]+)\)\s*$")

DESCRIPTION_WRAP_WIDTH = 100


class Electron2RpmError(Exception):
    """Base exception for all electron2rpm errors."""


class ValidationError(Electron2RpmError):
    """Raised when the resolved options are incomplete."""


class ToolInvocationError(Electron2RpmError):
    """Raised when an external command cannot be started or exits non-zero."""


class ParseError(Electron2RpmError):
    """Raised when tool output does not contain the expected token."""


class UnsupportedToolVersionError(Electron2RpmError):
    """Raised when the installed rpmbuild is too old."""


class FileReadError(Electron2RpmError):
    """Raised when a referenced input file is missing or unreadable."""


class MetadataError(Electron2RpmError):
    """Raised when application metadata cannot be read."""


class PackagingError(Electron2RpmError):
    """Raised when a packaging step fails."""


def setup_logging(name: str = "electron2rpm", level: int = logging.INFO) -> logging.Logger:
    """Create and configure a logger with consistent formatting."""
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    logger.addHandler(stream_handler)
    return logger


def create_temp_dir(prefix: str = "electron-") -> Path:
    """Create a temporary directory for the staging tree."""
    return Path(tempfile.mkdtemp(prefix=prefix))


def cleanup_dir(path: Path, logger: Optional[logging.Logger] = None) -> None:
    """Best-effort temporary directory cleanup."""
    try:
        shutil.rmtree(path, ignore_errors=False)
    except FileNotFoundError:
        return
    except OSError as exc:  # pragma: no cover - best effort cleanup
        if logger:
            logger.warning("Failed to cleanup %s: %s", path, exc)


def command_exists(binary: str) -> bool:
    """Return True if a binary is available in PATH."""
    return shutil.which(binary) is not None


def sanitize_package_name(name: str) -> str:
    """Convert a package name into an RPM-compatible package token.

    A leading npm scope marker is dropped, so ``@scope/app`` becomes
    ``scope-app``.
    """
    if name.startswith("@"):
        name = name[1:]
    return INVALID_NAME_CHARS_RE.sub("-", name)


def replace_invalid_version_characters(version: Optional[str]) -> str:
    """Return a version containing only characters allowed in an RPM spec.

    RPM `Version` must not contain hyphens; each one becomes a period.
    """
    return (version or "").replace("-", ".")


def wrap_description(text: Optional[str], width: int = DESCRIPTION_WRAP_WIDTH) -> str:
    """Wrap a long description without hyphenating or truncating words.

    Existing line breaks are kept as paragraph separators.
    """
    if not text:
        return ""

    wrapped: list[str] = []
    for line in text.splitlines():
        if not line.strip():
            wrapped.append("")
            continue
        wrapped.extend(
            textwrap.wrap(
                line,
                width=width,
                break_long_words=False,
                break_on_hyphens=False,
            )
        )
    return "\n".join(wrapped)


def get_homepage(pkg: Mapping[str, Any]) -> str:
    """Find a homepage URL in package.json data.

    Uses `homepage` first, then the URL in the `author` field, which may be
    a string like "Name <email> (url)" or an object with a `url` key.
    """
    homepage = pkg.get("homepage")
    if homepage:
        return str(homepage)

    author = pkg.get("author")
    if isinstance(author, str):
        match = AUTHOR_URL_RE.search(author)
        return match.group(1) if match else ""
    if isinstance(author, Mapping):
        return str(author.get("url") or "")
    return ""


def strip_ansi_escapes(text: str) -> str:
    """Remove ANSI terminal escape codes from a log line."""
    return ANSI_ESCAPE_RE.sub("", text)


def _missing_executable_hint(binary: str) -> str:
    """Explain which system package provides a missing build tool."""
    if binary != "rpmbuild":
        return f"Executable not found: {binary}"

    package = "rpm"
    if sys.platform == "darwin":
        installer = "brew"
    elif command_exists("dnf"):
        installer = "dnf"
        package = "rpm-build"
    else:
        installer = "apt"
    return f"Your system is missing the {package} package. Try, e.g. '{installer} install {package}'"


def run_command(
    cmd: list[str],
    logger: logging.Logger,
    cwd: Optional[Path] = None,
    env: Optional[dict[str, str]] = None,
    check: bool = True,
) -> tuple[int, list[str]]:
    """Run a command and stream combined stdout/stderr line-by-line."""
    command_line = " ".join(cmd)
    logger.debug("Executing command %s", command_line)

    process_env = os.environ.copy()
    if env:
        process_env.update(env)

    try:
        process = subprocess.Popen(
            cmd,
            cwd=str(cwd) if cwd else None,
            env=process_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
    except FileNotFoundError as exc:
        raise ToolInvocationError(
            f"Error executing command ({command_line}):\n{_missing_executable_hint(cmd[0])}"
        ) from exc
    except OSError as exc:
        raise ToolInvocationError(f"Error executing command ({command_line}):\n{exc}") from exc

    output_lines: list[str] = []
    assert process.stdout is not None

    for line in iter(process.stdout.readline, ""):
        stripped = strip_ansi_escapes(line.rstrip("\n")).strip()
        output_lines.append(stripped)
        if stripped:
            logger.debug(stripped)

    process.wait()

    if check and process.returncode != 0:
        joined = "\n".join(output_lines)
        raise ToolInvocationError(
            f"Error executing command ({command_line}): exit code {process.returncode}\n{joined}"
        )

    return process.returncode, output_lines


def union_preserving_order(*groups: Iterable[str]) -> list[str]:
    """Concatenate groups of names, keeping only the first of each duplicate."""
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item not in seen:
                seen.add(item)
                merged.append(item)
    return merged


def format_dependency_list(items: Iterable[str]) -> str:
    """Format dependency names for readable display."""
    items = list(items)
    return ", ".join(items) if items else "none"
