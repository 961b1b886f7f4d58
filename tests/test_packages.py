"""Tests for package models and the package loader."""

import json
import logging
from pathlib import Path

import pytest

from discovery_manager.config import DiscoveryConfig
from discovery_manager.discovery.models import BindingDescriptor, BindingTypeDescriptor
from discovery_manager.exceptions import NoSuchBindingError, NoSuchPackageError, NoSuchTypeError
from discovery_manager.packages.manager import PackageLoader
from discovery_manager.packages.models import (
    InstallInfo,
    Package,
    PackageCollection,
    PackageFile,
    RootPackage,
    RootPackageFile,
)


def _write(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


class TestPackageFile:
    """Tests for PackageFile."""

    def test_keeps_insertion_order(self) -> None:
        package_file = PackageFile("vendor/package")
        bindings = [BindingDescriptor.create(f"/{i}", "my/type") for i in range(3)]
        for binding in bindings:
            package_file.add_binding_descriptor(binding)

        assert package_file.get_binding_descriptors() == bindings
        assert package_file.index_of_binding_descriptor(bindings[2].uuid) == 2

    def test_insert_at_index(self) -> None:
        package_file = PackageFile("vendor/package")
        first = BindingTypeDescriptor("my/first")
        second = BindingTypeDescriptor("my/second")
        package_file.add_type_descriptor(second)

        package_file.add_type_descriptor(first, 0)

        assert package_file.get_type_descriptors() == [first, second]

    def test_find_binding_descriptors(self) -> None:
        package_file = PackageFile("vendor/package")
        a = BindingDescriptor.create("/a", "my/type")
        b = BindingDescriptor.create("/b", "my/other")
        package_file.add_binding_descriptor(a)
        package_file.add_binding_descriptor(b)

        assert package_file.find_binding_descriptors(lambda d: d.type_name == "my/other") == [b]

    def test_missing_entries_raise(self) -> None:
        package_file = PackageFile("vendor/package")

        with pytest.raises(NoSuchBindingError):
            package_file.get_binding_descriptor(BindingDescriptor.create("/a", "my/type").uuid)
        with pytest.raises(NoSuchTypeError):
            package_file.get_type_descriptor("my/type")

    def test_root_package_file_install_infos(self) -> None:
        root_file = RootPackageFile("vendor/root")
        root_file.add_install_info(InstallInfo("vendor/package", "vendor/package"))

        assert root_file.has_install_info("vendor/package")
        root_file.remove_install_info("vendor/package")
        with pytest.raises(NoSuchPackageError):
            root_file.get_install_info("vendor/package")


class TestPackageCollection:
    """Tests for PackageCollection."""

    def test_root_package(self, tmp_path: Path) -> None:
        root = RootPackage("vendor/root", RootPackageFile("vendor/root"), tmp_path)
        package = Package("vendor/package", PackageFile("vendor/package"), tmp_path / "p")
        collection = PackageCollection([package, root])

        assert collection.root_package is root
        assert collection.root_package_name == "vendor/root"
        assert collection.get_package_names() == ["vendor/package", "vendor/root"]
        assert "vendor/package" in collection
        assert collection["vendor/package"] is package
        assert len(collection) == 2

    def test_missing_root_package(self) -> None:
        with pytest.raises(NoSuchPackageError):
            _ = PackageCollection().root_package

    def test_unknown_package(self) -> None:
        with pytest.raises(NoSuchPackageError):
            PackageCollection().get("vendor/unknown")


class TestPackageLoader:
    """Tests for PackageLoader."""

    def test_load(self, tmp_path: Path) -> None:
        """Should load the root package and every installed package."""
        _write(
            tmp_path / "packages.json",
            {
                "name": "vendor/root",
                "packages": {
                    "vendor/package": {"install-path": "vendor/package"},
                },
            },
        )
        _write(
            tmp_path / "vendor" / "package" / "packages.json",
            {"binding-types": {"my/type": {}}},
        )

        packages = PackageLoader().load(tmp_path)

        assert packages.root_package_name == "vendor/root"
        assert packages.root_package.install_path == tmp_path
        package = packages.get("vendor/package")
        assert package.install_path == tmp_path / "vendor" / "package"
        assert package.install_info.install_path == "vendor/package"
        assert package.package_file.has_type_descriptor("my/type")
        assert package.package_file.package_name == "vendor/package"

    def test_default_root_name(self, tmp_path: Path) -> None:
        config = DiscoveryConfig(root_dir=tmp_path, root_package_name="my/project")

        packages = PackageLoader(config=config).load()

        assert packages.root_package_name == "my/project"
        assert len(packages) == 1

    def test_custom_manifest_name(self, tmp_path: Path) -> None:
        _write(tmp_path / "manifest.json", {"name": "vendor/root"})
        config = DiscoveryConfig(root_dir=tmp_path, manifest_name="manifest.json")

        packages = PackageLoader(config=config).load()

        assert packages.root_package_name == "vendor/root"

    def test_warns_about_missing_manifest(self, tmp_path: Path, caplog) -> None:
        _write(
            tmp_path / "packages.json",
            {"packages": {"vendor/package": {"install-path": "vendor/package"}}},
        )

        with caplog.at_level(logging.WARNING, logger="discovery_manager"):
            packages = PackageLoader().load(tmp_path)

        assert not packages.get("vendor/package").package_file.has_type_descriptors()
        assert "has no manifest" in caplog.text
