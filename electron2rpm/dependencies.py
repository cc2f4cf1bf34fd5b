#!/usr/bin/env python3
"""System package requirements for Electron applications packaged as RPMs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .utils import ParseError, UnsupportedToolVersionError, run_command

# rpm does not follow semantic versioning; boolean dependencies arrived in 4.13.0.
BOOLEAN_DEPENDENCY_RPM_VERSION = (4, 13, 0)

# `rpmbuild --version` prints "RPM version X.Y.Z"; the version is the last token.
RPM_VERSION_TOKEN_INDEX = -1

ELECTRON_VERSION_RE = re.compile(
    r"^v?(\d+)\.(\d+)\.(\d+)(?:-([0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)

DEPENDENCY_MAP: dict[str, tuple[str, ...]] = {
    "atspi": ("at-spi2-core",),
    "drm": ("libdrm",),
    "gbm": ("mesa-libgbm", "libgbm1"),
    "gconf": ("GConf2",),
    "glib2": ("glib2",),
    "gtk2": ("gtk2",),
    "gtk3": ("gtk3",),
    "gvfs": ("gvfs-client",),
    "kde_cli_tools": ("kde-cli-tools", "kde-cli-tools5"),
    "kde_runtime": ("kde-runtime",),
    "notify": ("libnotify", "libnotify4"),
    "nss": ("nss", "mozilla-nss"),
    "trash_cli": ("trash-cli",),
    "uuid": ("libuuid", "libuuid1"),
    "xcb_dri3": ("libxcb", "libxcb1"),
    "xdg_utils": ("xdg-utils",),
    "xss": ("libXScrnSaver",),
    "xtst": ("libXtst", "libXtst6"),
}

UNSUPPORTED_RPM_MESSAGE = (
    "Please upgrade to RPM 4.13 or above, which supports boolean dependencies.\n"
    "This is used to express Electron dependencies for a wide variety of "
    "RPM-using distributions."
)

logger = logging.getLogger("electron2rpm.dependencies")


@dataclass
class ElectronDependencies:
    """Requirements computed for one Electron version."""

    requires: list[str] = field(default_factory=list)


def get_rpm_version(log: Optional[logging.Logger] = None) -> str:
    """Run `rpmbuild --version` and return its version token."""
    _, output_lines = run_command(["rpmbuild", "--version"], log or logger)
    tokens = " ".join(output_lines).split()
    if not tokens:
        raise ParseError("rpmbuild --version produced no output")
    return tokens[RPM_VERSION_TOKEN_INDEX]


def parse_rpm_version(version: str) -> tuple[int, int, int]:
    """Parse the leading three numeric components of an rpm version.

    Suffixes such as `-rc1` or `-git12844` are ignored, and missing
    components are padded with zeros.
    """
    components: list[int] = []
    for part in version.strip().split(".")[:3]:
        match = re.match(r"\d+", part)
        if match is None:
            break
        components.append(int(match.group(0)))

    if not components:
        raise ParseError(f"Could not parse rpm version from {version!r}")

    while len(components) < 3:
        components.append(0)
    return components[0], components[1], components[2]


def compare_versions(version: tuple[int, ...], threshold: tuple[int, ...]) -> bool:
    """Return True if `version` is at least `threshold`, zero-padding both."""
    width = max(len(version), len(threshold))
    padded = tuple(version) + (0,) * (width - len(version))
    padded_threshold = tuple(threshold) + (0,) * (width - len(threshold))
    return padded >= padded_threshold


def rpm_version_supports_boolean_dependencies(rpm_version: str) -> bool:
    """Determine whether an rpm version string supports boolean dependencies."""
    return compare_versions(parse_rpm_version(rpm_version), BOOLEAN_DEPENDENCY_RPM_VERSION)


def rpm_supports_boolean_dependencies(log: Optional[logging.Logger] = None) -> bool:
    """Probe the installed rpmbuild for boolean dependency support."""
    rpm_version = get_rpm_version(log)
    (log or logger).debug("Detected rpmbuild version %s", rpm_version)
    return rpm_version_supports_boolean_dependencies(rpm_version)


def _electron_version_key(version: str) -> tuple:
    match = ELECTRON_VERSION_RE.match(version.strip())
    if match is None:
        raise ParseError(f"Invalid Electron version: {version!r}")

    major, minor, patch, prerelease = match.groups()
    if prerelease is None:
        # A release sorts after all of its pre-releases.
        pre_key: tuple = (1,)
    else:
        pre_key = (0,) + tuple(
            (0, int(ident), "") if ident.isdigit() else (1, 0, ident)
            for ident in prerelease.split(".")
        )
    return (int(major), int(minor), int(patch)) + (pre_key,)


def electron_version_at_least(version: str, minimum: str) -> bool:
    """Compare two Electron versions with semver pre-release ordering."""
    return _electron_version_key(version) >= _electron_version_key(minimum)


def required_capabilities(electron_version: str) -> list[str]:
    """List the capabilities an Electron version needs, trash support excluded."""
    gtk = "gtk3" if electron_version_at_least(electron_version, "2.0.0-beta.1") else "gtk2"
    capabilities = [gtk, "notify", "nss", "xss", "xtst", "xdg_utils"]

    if electron_version_at_least(electron_version, "5.0.0-beta.1"):
        capabilities.append("atspi")
    if electron_version_at_least(electron_version, "9.0.0-beta.1"):
        capabilities.extend(["drm", "gbm"])
    if not electron_version_at_least(electron_version, "3.0.0-beta.1"):
        capabilities.append("gconf")
    if electron_version_at_least(electron_version, "4.0.0-beta.1"):
        capabilities.append("uuid")
    if electron_version_at_least(electron_version, "11.0.0-beta.1"):
        capabilities.append("xcb_dri3")

    return capabilities


def trash_capabilities(electron_version: str) -> list[str]:
    """List the capabilities that can back `shell.moveItemToTrash`."""
    if not electron_version_at_least(electron_version, "1.4.1"):
        return ["gvfs"]
    if not electron_version_at_least(electron_version, "1.7.2"):
        return ["kde_cli_tools", "kde_runtime", "trash_cli", "gvfs"]
    return ["kde_cli_tools", "kde_runtime", "trash_cli", "glib2", "gvfs"]


def format_requirement(alternatives: tuple[str, ...] | list[str]) -> str:
    """Render alternatives as a bare name or an rpm boolean OR-group."""
    if len(alternatives) == 1:
        return alternatives[0]
    return f"({' or '.join(alternatives)})"


def trash_requires_as_boolean(
    electron_version: str,
    dependency_map: Mapping[str, tuple[str, ...]] = DEPENDENCY_MAP,
) -> list[str]:
    """Transform the trash requirements into a single boolean dependency."""
    packages: list[str] = []
    for capability in trash_capabilities(electron_version):
        packages.extend(dependency_map[capability])
    return [format_requirement(packages)]


def dependencies_for_electron(
    electron_version: str,
    log: Optional[logging.Logger] = None,
    supports_boolean: Optional[bool] = None,
    dependency_map: Mapping[str, tuple[str, ...]] = DEPENDENCY_MAP,
) -> ElectronDependencies:
    """The dependencies for Electron itself, given an Electron version.

    `supports_boolean` short-circuits the rpmbuild probe when the caller
    already knows the answer.
    """
    if supports_boolean is None:
        supports_boolean = rpm_supports_boolean_dependencies(log)
    if not supports_boolean:
        raise UnsupportedToolVersionError(UNSUPPORTED_RPM_MESSAGE)

    requires = [
        format_requirement(dependency_map[capability])
        for capability in required_capabilities(electron_version)
    ]
    return ElectronDependencies(
        requires=requires + trash_requires_as_boolean(electron_version, dependency_map)
    )
