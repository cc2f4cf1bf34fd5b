#!/usr/bin/env python3
"""Staging, rendering and rpmbuild invocation for resolved options."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Protocol

from .metadata import read_license
from .options import SCRIPT_HOOKS, Configuration, resolve_options
from .utils import (
    Electron2RpmError,
    PackagingError,
    cleanup_dir,
    create_temp_dir,
    format_dependency_list,
    run_command,
)

logger = logging.getLogger("electron2rpm.builder")


class PackagingTarget(Protocol):
    """Content operations a package format provides for a staging dir."""

    options: Configuration

    def create_spec(self, staging_dir: Path) -> Path: ...

    def create_binary(self, staging_dir: Path) -> Path: ...

    def create_desktop(self, staging_dir: Path) -> Path: ...

    def create_icon(self, staging_dir: Path) -> list[Path]: ...

    def create_copyright(self, staging_dir: Path) -> Path: ...

    def create_application(self, staging_dir: Path) -> Path: ...

    def build_package(self, staging_dir: Path) -> None: ...

    def package_pattern(self, staging_dir: Path) -> tuple[Path, str]: ...


# Content operations in the order they run, with the step named in errors.
CONTENT_STEPS = (
    ("create_spec", "creating spec file"),
    ("create_binary", "creating binary file"),
    ("create_desktop", "creating desktop file"),
    ("create_icon", "creating icon file"),
    ("create_copyright", "creating copyright file"),
    ("create_application", "copying application directory"),
)


def _icon_suffix(path: str) -> str:
    return Path(path).suffix or ".png"


def render_spec(options: Configuration) -> str:
    """Create the rpm spec file text for the package.

    See: https://fedoraproject.org/wiki/How_to_create_an_RPM_package
    """
    name = options.name
    lines = [
        f"%define _binary_payload w{options.compression_level}.xzdio",
        "",
        f"Name: {name}",
        f"Version: {options.version}",
        f"Release: {options.revision}%{{?dist}}",
    ]
    if options.license:
        lines.append(f"License: {options.license}")
    if options.homepage:
        lines.append(f"URL: {options.homepage}")
    if options.group:
        lines.append(f"Group: {options.group}")
    lines.append(f"Summary: {options.description}")
    if options.requires:
        lines.append(f"Requires: {', '.join(options.requires)}")
    lines.extend(
        [
            "AutoReqProv: no",
            "",
            "%description",
            options.product_description,
            "",
            "%install",
            "mkdir -p %{buildroot}/usr/",
            "cp -r usr/* %{buildroot}/usr/",
            "",
            "%files",
            f"/usr/bin/{name}",
            f"/usr/lib/{name}/",
            f"/usr/share/applications/{name}.desktop",
            f"/usr/share/doc/{name}/",
        ]
    )

    if isinstance(options.icon, Mapping):
        for resolution, icon in options.icon.items():
            lines.append(f"/usr/share/icons/hicolor/{resolution}/apps/{name}{_icon_suffix(icon)}")
    else:
        lines.append(f"/usr/share/pixmaps/{name}{_icon_suffix(options.icon)}")

    for hook in SCRIPT_HOOKS:
        script = getattr(options, hook)
        if script:
            lines.extend(["", f"%{hook}", script.rstrip("\n")])

    return "\n".join(lines) + "\n"


def render_desktop(options: Configuration) -> str:
    """Create the desktop entry for the package.

    See: http://standards.freedesktop.org/desktop-entry-spec/latest/
    """
    exec_line = " ".join([options.name, *options.exec_arguments, "%U"])
    lines = ["[Desktop Entry]"]
    if options.product_name:
        lines.append(f"Name={options.product_name}")
    if options.description:
        lines.append(f"Comment={options.description}")
    if options.generic_name:
        lines.append(f"GenericName={options.generic_name}")
    lines.extend(
        [
            f"Exec={exec_line}",
            f"Icon={options.name}",
            "Type=Application",
            "StartupNotify=true",
        ]
    )
    if options.categories:
        lines.append(f"Categories={';'.join(options.categories)};")
    if options.mime_type:
        lines.append(f"MimeType={';'.join(options.mime_type)};")
    return "\n".join(lines) + "\n"


class RpmTarget:
    """Lay out an rpmbuild tree and build a binary rpm from it."""

    def __init__(self, options: Configuration) -> None:
        self.options = options
        self.logger = options.logger

    def spec_path(self, staging_dir: Path) -> Path:
        return staging_dir / "SPECS" / f"{self.options.name}.spec"

    def create_spec(self, staging_dir: Path) -> Path:
        spec_dest = self.spec_path(staging_dir)
        self.logger.info("Creating spec file at %s", spec_dest)
        spec = render_spec(self.options)
        self.logger.debug("Generated spec file\n%s", spec)
        spec_dest.parent.mkdir(parents=True, exist_ok=True)
        spec_dest.write_text(spec, encoding="utf-8")
        return spec_dest

    def create_binary(self, staging_dir: Path) -> Path:
        bin_dir = staging_dir / "BUILD" / "usr" / "bin"
        bin_src = Path("..") / "lib" / self.options.name / self.options.bin
        bin_dest = bin_dir / self.options.name
        self.logger.info("Symlinking binary from %s to %s", bin_src, bin_dest)
        bin_dir.mkdir(parents=True, exist_ok=True)
        bin_dest.unlink(missing_ok=True)
        bin_dest.symlink_to(bin_src)
        return bin_dest

    def create_desktop(self, staging_dir: Path) -> Path:
        desktop_dest = (
            staging_dir / "BUILD" / "usr" / "share" / "applications" / f"{self.options.name}.desktop"
        )
        self.logger.info("Creating desktop file at %s", desktop_dest)
        desktop_dest.parent.mkdir(parents=True, exist_ok=True)
        desktop_dest.write_text(render_desktop(self.options), encoding="utf-8")
        return desktop_dest

    def create_icon(self, staging_dir: Path) -> list[Path]:
        share_dir = staging_dir / "BUILD" / "usr" / "share"
        icon = self.options.icon
        if isinstance(icon, Mapping):
            pairs = [
                (
                    Path(path),
                    share_dir / "icons" / "hicolor" / resolution / "apps"
                    / f"{self.options.name}{_icon_suffix(path)}",
                )
                for resolution, path in icon.items()
            ]
        else:
            pairs = [(Path(icon), share_dir / "pixmaps" / f"{self.options.name}{_icon_suffix(icon)}")]

        created: list[Path] = []
        for icon_src, icon_dest in pairs:
            self.logger.info("Creating icon file at %s", icon_dest)
            icon_dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(icon_src, icon_dest)
            created.append(icon_dest)
        return created

    def create_copyright(self, staging_dir: Path) -> Path:
        copyright_file = staging_dir / "BUILD" / "usr" / "share" / "doc" / self.options.name / "copyright"
        self.logger.info("Creating copyright file at %s", copyright_file)
        license_text = read_license(self.options.src, self.logger)
        copyright_file.parent.mkdir(parents=True, exist_ok=True)
        copyright_file.write_text(license_text, encoding="utf-8")
        return copyright_file

    def create_application(self, staging_dir: Path) -> Path:
        application_dir = staging_dir / "BUILD" / "usr" / "lib" / self.options.name
        self.logger.info("Copying application to %s", application_dir)
        shutil.copytree(self.options.src, application_dir, symlinks=True, dirs_exist_ok=True)
        return application_dir

    def build_package(self, staging_dir: Path) -> None:
        options = self.options
        self.logger.info("Creating package at %s", staging_dir)
        run_command(
            [
                "rpmbuild",
                "-bb",
                str(self.spec_path(staging_dir)),
                "--target",
                f"{options.arch}-{options.vendor}-{options.platform}",
                "--define",
                f"_topdir {staging_dir}",
            ],
            self.logger,
            cwd=staging_dir,
        )

    def package_pattern(self, staging_dir: Path) -> tuple[Path, str]:
        return staging_dir / "RPMS" / self.options.arch, "*.rpm"


def render_destination(options: Configuration, filename: str) -> Path:
    """Fill the rename template's file name; its directory is used verbatim."""
    template = Path(str(options.rename(options.dest, filename)))
    try:
        name = template.name.format(**options.template_fields())
    except (KeyError, IndexError, ValueError) as exc:
        raise PackagingError(
            f"Error moving package files: invalid file name template {template.name!r}: {exc!r}"
        ) from exc
    return template.parent / name


class PackageBuilder:
    """Drive a packaging target from staging to the final artifacts."""

    def __init__(self, target_factory: Callable[[Configuration], PackagingTarget] = RpmTarget) -> None:
        self.target_factory = target_factory

    def _run_step(self, step: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return func(*args)
        except (Electron2RpmError, OSError) as exc:
            raise PackagingError(f"Error {step}: {exc}") from exc

    def create_staging_dir(self, options: Configuration) -> tuple[Path, Path]:
        """Create the temporary root and the staging tree inside it."""
        options.logger.info("Creating temporary directory")
        temp_dir = self._run_step("creating temporary directory", create_temp_dir)
        staging_dir = temp_dir / f"{options.name}_{options.version}_{options.arch}"
        self._run_step(
            "creating temporary directory",
            lambda: staging_dir.mkdir(parents=True, exist_ok=True),
        )
        return temp_dir, staging_dir

    def create_contents(self, target: PackagingTarget, staging_dir: Path) -> None:
        target.options.logger.info("Creating contents of package")
        for operation, step in CONTENT_STEPS:
            self._run_step(step, getattr(target, operation), staging_dir)

    def move_packages(self, target: PackagingTarget, staging_dir: Path) -> list[Path]:
        """Move the built packages to their renamed destinations."""
        options = target.options
        options.logger.info("Moving package to destination")
        package_dir, pattern = target.package_pattern(staging_dir)
        built = sorted(package_dir.glob(pattern))
        if not built:
            raise PackagingError("Error moving package files: no package was generated")

        moved: list[Path] = []
        for package in built:
            dest = render_destination(options, package.name)
            options.logger.info("Moving file %s to %s", package, dest)
            try:
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.unlink(missing_ok=True)
                shutil.move(str(package), str(dest))
            except OSError as exc:
                raise PackagingError(f"Error moving package files: {exc}") from exc
            moved.append(dest)
        return moved

    def build(self, options: Configuration) -> list[Path]:
        """Stage, build and relocate the package; return the final paths."""
        target = self.target_factory(options)
        temp_dir, staging_dir = self.create_staging_dir(options)
        try:
            self.create_contents(target, staging_dir)
            self._run_step("creating package", target.build_package, staging_dir)
            return self.move_packages(target, staging_dir)
        finally:
            cleanup_dir(temp_dir, options.logger)


def create_installer(
    data: Mapping[str, Any],
    builder: Optional[PackageBuilder] = None,
) -> Configuration:
    """Resolve options for `data`, build the rpm and return the options used."""
    log: logging.Logger = data.get("logger") or logger
    try:
        options = resolve_options(data)
        log.debug("Creating package with options %r", options)
        log.info("Requires: %s", format_dependency_list(options.requires))
        (builder or PackageBuilder()).build(options)
    except Electron2RpmError as exc:
        log.error("Error creating package: %s", exc)
        raise

    log.info("Successfully created package at %s", options.dest)
    return options
