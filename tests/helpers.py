"""Helpers shared by the test modules."""

from __future__ import annotations

import json
import struct
from pathlib import Path


def write_asar(archive: Path, files: dict[str, bytes]) -> None:
    """Write a flat asar archive holding `files`."""
    entries = {}
    offset = 0
    for name, content in files.items():
        entries[name] = {"size": len(content), "offset": str(offset)}
        offset += len(content)

    header_json = json.dumps({"files": entries}).encode("utf-8")
    padding = (4 - len(header_json) % 4) % 4
    header_pickle = struct.pack("<II", 4 + len(header_json) + padding, len(header_json))
    header_pickle += header_json + b"\0" * padding

    archive.parent.mkdir(parents=True, exist_ok=True)
    with archive.open("wb") as handle:
        handle.write(struct.pack("<II", 4, len(header_pickle)))
        handle.write(header_pickle)
        for content in files.values():
            handle.write(content)
