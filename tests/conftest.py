"""Shared pytest fixtures for discovery-manager tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from discovery_manager.discovery.manager import DiscoveryManager
from discovery_manager.discovery.models import (
    BindingDescriptor,
    BindingParameterDescriptor,
    BindingTypeDescriptor,
)
from discovery_manager.discovery.registry import EditableDiscovery
from discovery_manager.packages.models import (
    InstallInfo,
    Package,
    PackageCollection,
    PackageFile,
    RootPackage,
    RootPackageFile,
)
from discovery_manager.packages.storage import PackageFileStorage

ROOT = "vendor/root"
PACKAGE1 = "vendor/package1"
PACKAGE2 = "vendor/package2"
PACKAGE3 = "vendor/package3"


@pytest.fixture
def root_package_file(tmp_path: Path) -> RootPackageFile:
    """Root package file with three installed packages."""
    package_file = RootPackageFile(ROOT, tmp_path / "packages.json")
    for name in (PACKAGE1, PACKAGE2, PACKAGE3):
        package_file.add_install_info(InstallInfo(name, f"vendor/{name.split('/')[1]}"))
    return package_file


@pytest.fixture
def packages(root_package_file: RootPackageFile, tmp_path: Path) -> PackageCollection:
    """Root package plus three installed packages with empty package files."""
    collection = PackageCollection()
    collection.add(RootPackage(ROOT, root_package_file, tmp_path))
    for install_info in root_package_file.get_install_infos():
        install_path = tmp_path / install_info.install_path
        package_file = PackageFile(install_info.package_name, install_path / "packages.json")
        collection.add(Package(install_info.package_name, package_file, install_path, install_info))
    return collection


@pytest.fixture
def root_package(packages: PackageCollection) -> RootPackage:
    return packages.root_package


@pytest.fixture
def package1(packages: PackageCollection) -> Package:
    return packages.get(PACKAGE1)


@pytest.fixture
def package2(packages: PackageCollection) -> Package:
    return packages.get(PACKAGE2)


@pytest.fixture
def package3(packages: PackageCollection) -> Package:
    return packages.get(PACKAGE3)


@pytest.fixture
def discovery() -> MagicMock:
    """Mocked discovery registry that starts out empty."""
    mock = MagicMock(spec=EditableDiscovery)
    mock.get_bindings.return_value = []
    mock.get_defined_types.return_value = []
    return mock


@pytest.fixture
def storage() -> MagicMock:
    return MagicMock(spec=PackageFileStorage)


@pytest.fixture
def manager(packages: PackageCollection, discovery: MagicMock, storage: MagicMock) -> DiscoveryManager:
    return DiscoveryManager(packages, discovery, storage)


@pytest.fixture
def sample_type() -> BindingTypeDescriptor:
    """Type with one optional parameter."""
    return BindingTypeDescriptor(
        "my/type",
        "A test type",
        [BindingParameterDescriptor("param", default="default")],
    )


@pytest.fixture
def sample_binding() -> BindingDescriptor:
    return BindingDescriptor.create("/path", "my/type")
