#!/usr/bin/env python3
"""Read application metadata out of a packaged Electron bundle."""

from __future__ import annotations

import json
import logging
import struct
from pathlib import Path
from typing import Any, Optional

from .utils import FileReadError, MetadataError

ASAR_PATH = Path("resources") / "app.asar"
UNPACKED_PACKAGE_JSON = Path("resources") / "app" / "package.json"

logger = logging.getLogger("electron2rpm.metadata")


def _asar_header(handle) -> tuple[dict[str, Any], int]:
    """Return the asar header and the offset where file contents start.

    The archive starts with two pickled uint32 values (4, header size),
    followed by the header pickle: payload size, JSON length, JSON text.
    """
    size_pickle = handle.read(8)
    if len(size_pickle) != 8:
        raise MetadataError("Truncated asar archive")
    _, header_size = struct.unpack("<II", size_pickle)

    header_pickle = handle.read(header_size)
    if len(header_pickle) != header_size or header_size < 8:
        raise MetadataError("Truncated asar header")
    _, json_length = struct.unpack_from("<II", header_pickle, 0)

    try:
        header = json.loads(header_pickle[8 : 8 + json_length].decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataError(f"Invalid asar header: {exc}") from exc
    return header, 8 + header_size


def read_asar_file(archive: Path, member: str) -> bytes:
    """Extract one file from an asar archive."""
    with archive.open("rb") as handle:
        header, base_offset = _asar_header(handle)

        entry: dict[str, Any] = header
        for part in member.split("/"):
            children = entry.get("files") or {}
            if part not in children:
                raise MetadataError(f"{member} not found in {archive}")
            entry = children[part]

        if entry.get("unpacked"):
            return (archive.parent / f"{archive.name}.unpacked" / member).read_bytes()

        handle.seek(base_offset + int(entry["offset"]))
        data = handle.read(int(entry["size"]))

    if len(data) != int(entry["size"]):
        raise MetadataError(f"Truncated asar member {member} in {archive}")
    return data


def read_metadata(src: Path, log: Optional[logging.Logger] = None) -> dict[str, Any]:
    """Read `package.json` from `resources/app.asar` or `resources/app/`."""
    log = log or logger
    with_asar = src / ASAR_PATH
    without_asar = src / UNPACKED_PACKAGE_JSON

    try:
        if with_asar.is_file():
            log.info("Reading package metadata from %s", with_asar)
            raw = read_asar_file(with_asar, "package.json")
        else:
            log.info("Reading package metadata from %s", without_asar)
            raw = without_asar.read_bytes()
        pkg = json.loads(raw.decode("utf-8"))
    except (OSError, MetadataError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MetadataError(f"Error reading package metadata: {exc}") from exc

    if not isinstance(pkg, dict):
        raise MetadataError("Error reading package metadata: package.json is not an object")
    return pkg


def read_electron_version(src: Path) -> str:
    """Read the Electron version shipped in the bundle's `version` file."""
    version_file = src / "version"
    try:
        return version_file.read_text(encoding="utf-8").strip()
    except OSError as exc:
        raise FileReadError(f"Error reading Electron version from {version_file}: {exc}") from exc


def read_license(src: Path, log: Optional[logging.Logger] = None) -> str:
    """Read `LICENSE` from the root of the app."""
    license_src = src / "LICENSE"
    (log or logger).info("Reading license file from %s", license_src)
    try:
        return license_src.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileReadError(f"Error reading license file {license_src}: {exc}") from exc
