#!/usr/bin/env python3
"""Resolve installer options from defaults, package metadata and user input."""

from __future__ import annotations

import logging
import os
import platform
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Union

from . import dependencies, metadata
from .utils import (
    DESCRIPTION_WRAP_WIDTH,
    FileReadError,
    ValidationError,
    get_homepage,
    replace_invalid_version_characters,
    sanitize_package_name,
    union_preserving_order,
    wrap_description,
)

SCRIPT_HOOKS = ("pre", "post", "preun", "postun")
DEFAULT_CATEGORIES = ("GNOME", "GTK", "Utility")
DEFAULT_ICON = Path(__file__).resolve().parent / "resources" / "icon.png"

# Original package.json / electron-installer spellings of option names.
OPTION_ALIASES = {
    "productName": "product_name",
    "genericName": "generic_name",
    "productDescription": "product_description",
    "execArguments": "exec_arguments",
    "mimeType": "mime_type",
    "compressionLevel": "compression_level",
    "os": "platform",
}

# Input keys that are not layered options.
INPUT_ONLY_KEYS = ("options", "scripts")

TUPLE_FIELDS = ("categories", "mime_type", "exec_arguments", "requires")

logger = logging.getLogger("electron2rpm.options")

Rename = Callable[[Union[str, Path], str], str]
IconSpec = Union[str, dict[str, str]]


def default_rename(dest: Union[str, Path], filename: str) -> str:
    """Name the package `<name>-<version>.<arch>.rpm` inside `dest`."""
    return os.path.join(str(dest), "{name}-{version}.{arch}.rpm")


@dataclass(frozen=True)
class Configuration:
    """Fully resolved options for a single packaging run."""

    name: str
    version: str
    src: Path
    dest: Path
    product_name: str = ""
    generic_name: str = ""
    revision: str = "1"
    description: str = ""
    product_description: str = ""
    license: Optional[str] = None
    homepage: str = ""
    arch: str = "x86_64"
    group: Optional[str] = None
    categories: tuple[str, ...] = DEFAULT_CATEGORIES
    mime_type: tuple[str, ...] = ()
    icon: IconSpec = str(DEFAULT_ICON)
    bin: str = "electron"
    exec_arguments: tuple[str, ...] = ()
    compression_level: int = 2
    vendor: str = "none"
    platform: str = "linux"
    requires: tuple[str, ...] = ()
    pre: Optional[str] = None
    post: Optional[str] = None
    preun: Optional[str] = None
    postun: Optional[str] = None
    logger: logging.Logger = field(default=logger, repr=False, compare=False)
    rename: Rename = field(default=default_rename, repr=False, compare=False)

    def template_fields(self) -> dict[str, str]:
        """Values available to the `rename` path template."""
        return {
            "name": self.name,
            "version": self.version,
            "revision": self.revision,
            "arch": self.arch,
        }


CONFIG_FIELDS = tuple(f.name for f in fields(Configuration))


def _host_arch() -> str:
    mapping = {
        "amd64": "x86_64",
        "x86_64": "x86_64",
        "i386": "i386",
        "i686": "i386",
        "x86": "i386",
        "arm64": "aarch64",
        "aarch64": "aarch64",
        "armv7l": "armv7hl",
    }
    machine = platform.machine().strip().lower()
    return mapping.get(machine, machine or "x86_64")


def _host_platform() -> str:
    return platform.system().lower() or "linux"


def _layer_from_mapping(mapping: Mapping[str, Any], source: str) -> dict[str, Any]:
    """Turn user input into a sparse layer keyed by Configuration fields."""
    layer: dict[str, Any] = {}
    for key, value in mapping.items():
        if key in INPUT_ONLY_KEYS or value is None:
            continue
        field_name = OPTION_ALIASES.get(key, key)
        if field_name not in CONFIG_FIELDS:
            raise ValidationError(f"Unknown option {key!r} in {source}")
        layer[field_name] = value
    return layer


def _metadata_layer(pkg: Mapping[str, Any]) -> dict[str, Any]:
    """Default options derived from package.json, with hardcoded fallbacks."""
    name = pkg.get("name") or "electron"
    layer = {
        "name": name,
        "product_name": pkg.get("productName") or pkg.get("name"),
        "generic_name": pkg.get("genericName") or pkg.get("productName") or pkg.get("name"),
        "description": pkg.get("description"),
        "product_description": pkg.get("productDescription") or pkg.get("description"),
        "version": pkg.get("version") or "0.0.0",
        "revision": pkg.get("revision") or "1",
        "license": pkg.get("license"),
        "homepage": get_homepage(pkg),
        "bin": name,
        "icon": str(DEFAULT_ICON),
        "categories": DEFAULT_CATEGORIES,
        "mime_type": (),
        "exec_arguments": (),
        "arch": _host_arch(),
        "platform": _host_platform(),
        "compression_level": 2,
    }
    return {key: value for key, value in layer.items() if value is not None}


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Merge sparse layers field by field; later layers win."""
    merged: dict[str, Any] = {}
    for field_name in CONFIG_FIELDS:
        for layer in layers:
            if field_name in layer:
                merged[field_name] = layer[field_name]
    return merged


def merge_requires(*groups: Any) -> tuple[str, ...]:
    """Union requirement lists, dropping duplicates."""
    normalized = [[group] if isinstance(group, str) else list(group or ()) for group in groups]
    return tuple(union_preserving_order(*normalized))


def normalize_description(description: Optional[str]) -> str:
    """Strip a trailing run of periods, which rpmlint flags in a Summary."""
    return re.sub(r"\.+$", "", (description or "").strip())


def _read_script(hook: str, path: Union[str, Path]) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise FileReadError(f"Error reading {hook} script {path}: {exc}") from exc


def read_scripts(scripts: Optional[Mapping[str, Any]], log: logging.Logger) -> dict[str, str]:
    """Read lifecycle script files into text keyed by hook name."""
    if not scripts:
        return {}

    hooks: dict[str, Union[str, Path]] = {}
    for hook, path in scripts.items():
        if hook not in SCRIPT_HOOKS:
            log.debug("Ignoring unknown script hook %s", hook)
            continue
        hooks[hook] = path

    if not hooks:
        return {}

    with ThreadPoolExecutor(max_workers=len(hooks)) as executor:
        futures = {hook: executor.submit(_read_script, hook, path) for hook, path in hooks.items()}
        return {hook: future.result() for hook, future in futures.items()}


def _read_metadata_or_empty(src: Path, log: logging.Logger) -> dict[str, Any]:
    """Read package.json, or return {} when the bundle ships none at all."""
    if not (src / metadata.ASAR_PATH).exists() and not (src / metadata.UNPACKED_PACKAGE_JSON).exists():
        log.warning(
            "Error reading package metadata: no %s or %s in %s; continuing without package metadata",
            metadata.ASAR_PATH,
            metadata.UNPACKED_PACKAGE_JSON,
            src,
        )
        return {}
    return metadata.read_metadata(src, log)


def _default_requires(src: Path, log: logging.Logger, supports_boolean: Optional[bool]) -> list[str]:
    electron_version = metadata.read_electron_version(src)
    return dependencies.dependencies_for_electron(
        electron_version, log, supports_boolean=supports_boolean
    ).requires


def _coerce(merged: dict[str, Any]) -> dict[str, Any]:
    for field_name in TUPLE_FIELDS:
        value = merged.get(field_name)
        if isinstance(value, str):
            merged[field_name] = (value,)
        elif value is not None:
            merged[field_name] = tuple(value)

    for field_name in ("name", "version", "revision", "bin", "product_name", "generic_name"):
        if field_name in merged:
            merged[field_name] = str(merged[field_name])

    icon = merged.get("icon")
    if isinstance(icon, Mapping):
        merged["icon"] = {str(resolution): str(path) for resolution, path in icon.items()}
    elif icon is not None:
        merged["icon"] = str(icon)

    if "compression_level" in merged:
        try:
            merged["compression_level"] = int(merged["compression_level"])
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid compression level: {merged['compression_level']!r}") from exc

    for field_name in ("src", "dest"):
        if field_name in merged:
            merged[field_name] = Path(merged[field_name])
    return merged


def resolve_options(
    data: Mapping[str, Any],
    supports_boolean: Optional[bool] = None,
) -> Configuration:
    """Build the resolved Configuration for one packaging run.

    `data` holds user options either flat or under an `options` key; flat
    keys win over nested ones, and both win over package.json defaults.
    """
    nested = data.get("options") or {}
    log: logging.Logger = data.get("logger") or nested.get("logger") or logger
    user_layers = [
        _layer_from_mapping(nested, "options"),
        _layer_from_mapping(data, "installer input"),
    ]

    src = data.get("src") or nested.get("src")
    dest = data.get("dest") or nested.get("dest")
    if not src:
        raise ValidationError("No source directory (src) provided")
    if not dest:
        raise ValidationError("No destination directory (dest) provided")
    src = Path(src)

    with ThreadPoolExecutor(max_workers=2) as executor:
        pkg_future = executor.submit(_read_metadata_or_empty, src, log)
        requires_future = executor.submit(_default_requires, src, log, supports_boolean)
        pkg = pkg_future.result()
        default_requires = requires_future.result()

    defaults = _metadata_layer(pkg)
    defaults["requires"] = default_requires
    merged = _coerce(merge_layers(defaults, *user_layers))

    name = sanitize_package_name(merged["name"])
    if name != merged["name"]:
        log.info("Sanitized package name %s to %s", merged["name"], name)
    merged["name"] = name
    merged["product_name"] = merged.get("product_name") or name
    merged["generic_name"] = merged.get("generic_name") or merged["product_name"]

    description = merged.get("description") or ""
    product_description = merged.get("product_description") or ""
    if not description.strip() and not product_description.strip():
        raise ValidationError("No Description or ProductDescription provided")

    if not description.strip():
        description = product_description.strip().splitlines()[0]
    merged["description"] = normalize_description(description)
    merged["product_description"] = wrap_description(
        product_description if product_description.strip() else description, DESCRIPTION_WRAP_WIDTH
    )

    merged["requires"] = merge_requires(
        default_requires, *(layer.get("requires") for layer in user_layers)
    )

    scripts = data.get("scripts") or nested.get("scripts")
    merged.update(read_scripts(scripts, log))

    version = replace_invalid_version_characters(merged.get("version"))
    if version != merged.get("version"):
        log.warning(
            "Warning: replacing disallowed characters in version to comply with SPEC format. "
            "Changing %s to %s",
            merged.get("version"),
            version,
        )
    merged["version"] = version

    merged["logger"] = log
    merged["rename"] = data.get("rename") or nested.get("rename") or default_rename
    merged["src"] = src
    merged["dest"] = Path(dest)

    return Configuration(**merged)
