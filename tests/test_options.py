"""Tests for electron2rpm.options."""

from __future__ import annotations

import dataclasses
import json
import logging
from pathlib import Path

import pytest

from electron2rpm import dependencies
from electron2rpm.options import (
    DEFAULT_ICON,
    Configuration,
    default_rename,
    merge_layers,
    merge_requires,
    normalize_description,
    resolve_options,
)
from electron2rpm.utils import (
    FileReadError,
    MetadataError,
    ToolInvocationError,
    UnsupportedToolVersionError,
    ValidationError,
)


def _write_package_json(app_dir: Path, pkg: dict) -> None:
    (app_dir / "resources" / "app" / "package.json").write_text(json.dumps(pkg))


@pytest.fixture()
def data(app_dir: Path, tmp_path: Path) -> dict:
    return {"src": app_dir, "dest": tmp_path / "out"}


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestResolveDefaults:
    def test_reads_package_json(self, data):
        options = resolve_options(data)
        assert isinstance(options, Configuration)
        assert options.name == "bartest"
        assert options.product_name == "Bartest"
        assert options.generic_name == "Bartest"
        assert options.version == "0.0.1"
        assert options.revision == "1"
        assert options.license == "MIT"
        assert options.homepage == "https://example.com/bartest"
        assert options.bin == "bartest"
        assert options.icon == str(DEFAULT_ICON)
        assert options.categories == ("GNOME", "GTK", "Utility")
        assert options.compression_level == 2
        assert options.rename is default_rename

    def test_reads_asar(self, asar_app_dir, tmp_path):
        options = resolve_options({"src": asar_app_dir, "dest": tmp_path})
        assert options.name == "footest"

    def test_missing_metadata_falls_back(self, app_dir, data, caplog):
        (app_dir / "resources" / "app" / "package.json").unlink()
        data["description"] = "Something"
        with caplog.at_level(logging.WARNING):
            options = resolve_options(data)
        assert options.name == "electron"
        assert options.bin == "electron"
        assert options.version == "0.0.0"
        assert "Error reading package metadata" in caplog.text

    def test_invalid_package_json_is_fatal(self, app_dir, data):
        (app_dir / "resources" / "app" / "package.json").write_text("{not json")
        data["description"] = "Something"
        with pytest.raises(MetadataError, match="^Error reading package metadata"):
            resolve_options(data)

    def test_non_object_package_json_is_fatal(self, app_dir, data):
        (app_dir / "resources" / "app" / "package.json").write_text(json.dumps(["bartest"]))
        data["description"] = "Something"
        with pytest.raises(MetadataError, match="not an object"):
            resolve_options(data)

    def test_corrupt_asar_is_fatal(self, asar_app_dir, tmp_path):
        (asar_app_dir / "resources" / "app.asar").write_bytes(b"\x04\x00")
        with pytest.raises(MetadataError):
            resolve_options({"src": asar_app_dir, "dest": tmp_path, "description": "Something"})

    def test_requires_come_from_electron_version(self, data):
        options = resolve_options(data)
        expected = dependencies.dependencies_for_electron("v12.0.0", supports_boolean=True).requires
        assert options.requires == tuple(expected)

    def test_configuration_is_frozen(self, data):
        options = resolve_options(data)
        with pytest.raises(dataclasses.FrozenInstanceError):
            options.name = "other"  # type: ignore[misc]

    def test_missing_electron_version(self, app_dir, data):
        (app_dir / "version").unlink()
        with pytest.raises(FileReadError):
            resolve_options(data)


class TestResolveValidation:
    @pytest.mark.usefixtures("rpm_supports_boolean")
    def test_requires_a_description(self, app_dir, data):
        _write_package_json(app_dir, {"name": "bartest", "version": "1.0.0"})
        with pytest.raises(ValidationError, match="No Description or ProductDescription provided"):
            resolve_options(data)

    @pytest.mark.usefixtures("rpm_supports_boolean")
    def test_blank_descriptions_are_missing(self, data):
        data["options"] = {"description": "  ", "productDescription": ""}
        with pytest.raises(ValidationError):
            resolve_options(data)

    def test_requires_src_and_dest(self, tmp_path):
        with pytest.raises(ValidationError, match="src"):
            resolve_options({"dest": tmp_path})
        with pytest.raises(ValidationError, match="dest"):
            resolve_options({"src": tmp_path})

    @pytest.mark.usefixtures("rpm_supports_boolean")
    def test_unknown_option(self, data):
        data["options"] = {"colour": "blue"}
        with pytest.raises(ValidationError, match="colour"):
            resolve_options(data)

    @pytest.mark.usefixtures("rpm_supports_boolean")
    def test_invalid_compression_level(self, data):
        data["compressionLevel"] = "high"
        with pytest.raises(ValidationError, match="compression"):
            resolve_options(data)

    def test_old_rpm_is_fatal(self, monkeypatch, data):
        monkeypatch.setattr(dependencies, "rpm_supports_boolean_dependencies", lambda log=None: False)
        with pytest.raises(UnsupportedToolVersionError):
            resolve_options(data)

    def test_probe_failure_propagates(self, monkeypatch, data):
        def probe(log=None):
            raise ToolInvocationError("Error executing command (rpmbuild --version)")

        monkeypatch.setattr(dependencies, "rpm_supports_boolean_dependencies", probe)
        with pytest.raises(ToolInvocationError, match="rpmbuild --version"):
            resolve_options(data)


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestResolveOverrides:
    def test_flat_options_win_over_metadata(self, data):
        data.update({"name": "custom", "productName": "Custom App", "arch": "x86"})
        options = resolve_options(data)
        assert options.name == "custom"
        assert options.product_name == "Custom App"
        assert options.generic_name == "Bartest"
        assert options.arch == "x86"

    def test_nested_options_win_over_metadata(self, data):
        data["options"] = {"productDescription": "Nested description", "revision": 3}
        options = resolve_options(data)
        assert options.product_description == "Nested description"
        assert options.revision == "3"

    def test_flat_wins_over_nested(self, data):
        data["options"] = {"arch": "x86"}
        data["arch"] = "x86_64"
        assert resolve_options(data).arch == "x86_64"

    def test_none_is_absent(self, data):
        data["name"] = None
        assert resolve_options(data).name == "bartest"

    def test_name_is_sanitized(self, data):
        data["options"] = {"name": "Foo/Bar/Baz"}
        assert resolve_options(data).name == "Foo-Bar-Baz"

    def test_scoped_name_is_sanitized(self, app_dir, data):
        _write_package_json(app_dir, {"name": "@scoped/myapp", "description": "Scoped."})
        options = resolve_options(data)
        assert options.name == "scoped-myapp"
        assert options.product_name == "@scoped/myapp"

    def test_icon_mapping(self, data):
        data["icon"] = {"scalable": Path("icon.svg"), "1024x1024": "icon.png"}
        assert resolve_options(data).icon == {"scalable": "icon.svg", "1024x1024": "icon.png"}

    def test_lists_become_tuples(self, data):
        data.update({"categories": ["Utility"], "mimeType": ["text/plain"], "execArguments": ["--no-sandbox"]})
        options = resolve_options(data)
        assert options.categories == ("Utility",)
        assert options.mime_type == ("text/plain",)
        assert options.exec_arguments == ("--no-sandbox",)

    def test_custom_logger_and_rename(self, data):
        custom = logging.getLogger("electron2rpm.tests.custom")

        def rename(dest, filename):
            return str(Path(dest) / "{name}.{arch}.rpm")

        data.update({"logger": custom, "rename": rename})
        options = resolve_options(data)
        assert options.logger is custom
        assert options.rename is rename


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestDescriptions:
    def test_trailing_periods_are_stripped(self, data):
        data["description"] = "A test..."
        assert resolve_options(data).description == "A test"

    def test_product_description_defaults_to_description(self, data):
        options = resolve_options(data)
        assert options.description == "Just a test"
        assert options.product_description == "Just a test."

    def test_product_description_is_wrapped(self, data):
        data["productDescription"] = " ".join(["lorem"] * 60) + "\n\nSecond paragraph."
        options = resolve_options(data)
        lines = options.product_description.splitlines()
        assert all(len(line) <= 100 for line in lines)
        assert lines[-2:] == ["", "Second paragraph."]

    def test_summary_from_product_description(self, app_dir, data):
        _write_package_json(app_dir, {"name": "bartest", "productDescription": "Long text.\nMore."})
        options = resolve_options(data)
        assert options.description == "Long text"
        assert options.product_description == "Long text.\nMore."

    @pytest.mark.parametrize(
        ("description", "expected"),
        [("Plain", "Plain"), ("Ends with one.", "Ends with one"), ("Dots...", "Dots"), ("", "")],
    )
    def test_normalize_description(self, description, expected):
        assert normalize_description(description) == expected


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestRequires:
    def test_merge_requires_is_a_union(self):
        merged = merge_requires(["lsb", "libXScrnSaver"], ["dbus", "dbus", "lsb"])
        assert sorted(merged) == ["dbus", "libXScrnSaver", "lsb"]

    def test_user_requires_are_added(self, data):
        data["options"] = {"requires": ["dbus", "dbus", "gtk3"]}
        options = resolve_options(data)
        assert options.requires.count("dbus") == 1
        assert options.requires.count("gtk3") == 1
        assert options.requires[-1] == "dbus"

    def test_flat_and_nested_requires_are_both_kept(self, data):
        data["options"] = {"requires": ["dbus"]}
        data["requires"] = ["lsb"]
        requires = resolve_options(data).requires
        assert "dbus" in requires
        assert "lsb" in requires

    def test_single_string_requirement(self, data):
        data["requires"] = "lsb"
        assert "lsb" in resolve_options(data).requires


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestScripts:
    def test_reads_script_files(self, data, tmp_path):
        script = tmp_path / "script"
        script.write_text("echo hello\n")
        data["options"] = {"scripts": {hook: str(script) for hook in ("pre", "post", "preun", "postun")}}
        options = resolve_options(data)
        for hook in ("pre", "post", "preun", "postun"):
            assert getattr(options, hook) == "echo hello\n"

    def test_unknown_hooks_are_ignored(self, data, tmp_path):
        script = tmp_path / "script"
        script.write_text("echo hello\n")
        data["scripts"] = {"post": script, "posttrans": "/does/not/exist"}
        options = resolve_options(data)
        assert options.post == "echo hello\n"
        assert options.pre is None

    def test_missing_script_file(self, data, tmp_path):
        data["scripts"] = {"pre": tmp_path / "missing"}
        with pytest.raises(FileReadError, match="pre script"):
            resolve_options(data)


@pytest.mark.usefixtures("rpm_supports_boolean")
class TestVersion:
    def test_hyphens_are_replaced_with_a_warning(self, app_dir, data, caplog):
        _write_package_json(
            app_dir,
            {"name": "footest", "description": "Foo.", "version": "1.0.0-beta+internal-only.0"},
        )
        with caplog.at_level(logging.WARNING):
            options = resolve_options(data)
        assert options.version == "1.0.0.beta+internal.only.0"
        assert "replacing disallowed characters in version" in caplog.text
        assert "1.0.0-beta+internal-only.0" in caplog.text

    def test_valid_version_is_not_reported(self, data, caplog):
        with caplog.at_level(logging.WARNING):
            options = resolve_options(data)
        assert options.version == "0.0.1"
        assert "disallowed characters" not in caplog.text


def test_merge_layers_later_wins():
    merged = merge_layers({"name": "a", "arch": "x86"}, {"name": "b"}, {"version": "1"})
    assert merged == {"name": "b", "version": "1", "arch": "x86"}


def test_default_rename(tmp_path):
    assert default_rename(tmp_path, "ignored.rpm") == str(tmp_path / "{name}-{version}.{arch}.rpm")
