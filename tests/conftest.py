"""Shared test fixtures for electron2rpm."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from electron2rpm import dependencies
from tests.helpers import write_asar


def _write_bundle(root: Path, electron_version: str = "v12.0.0") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "version").write_text(electron_version + "\n")
    (root / "LICENSE").write_text("Copyright (c) test authors\n")
    (root / "bartest").write_text("#!/bin/sh\n")
    return root


@pytest.fixture()
def package_json() -> dict:
    return {
        "name": "bartest",
        "productName": "Bartest",
        "description": "Just a test.",
        "version": "0.0.1",
        "license": "MIT",
        "homepage": "https://example.com/bartest",
    }


@pytest.fixture()
def app_dir(tmp_path: Path, package_json: dict) -> Path:
    """An unpacked Electron bundle with resources/app/package.json."""
    root = _write_bundle(tmp_path / "app-without-asar")
    pkg_file = root / "resources" / "app" / "package.json"
    pkg_file.parent.mkdir(parents=True)
    pkg_file.write_text(json.dumps(package_json))
    return root


@pytest.fixture()
def asar_app_dir(tmp_path: Path) -> Path:
    """An Electron bundle with package.json inside resources/app.asar."""
    root = _write_bundle(tmp_path / "app-with-asar")
    pkg = {"name": "footest", "description": "A test app.", "version": "0.0.1"}
    write_asar(
        root / "resources" / "app.asar",
        {"index.js": b"console.log('hi')\n", "package.json": json.dumps(pkg).encode("utf-8")},
    )
    return root


@pytest.fixture()
def rpm_supports_boolean(monkeypatch):
    """Pretend the installed rpmbuild supports boolean dependencies."""
    monkeypatch.setattr(dependencies, "rpm_supports_boolean_dependencies", lambda log=None: True)
