"""Package data models."""
from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from uuid import UUID

from discovery_manager.discovery.models import BindingDescriptor, BindingTypeDescriptor
from discovery_manager.exceptions import (
    NoSuchBindingError,
    NoSuchPackageError,
    NoSuchTypeError,
    ValidationError,
)

DEFAULT_INSTALLER = "user"


@dataclass
class InstallInfo:
    """Installation record of a package, kept in the root package file.

    A binding UUID is in at most one of the enabled and disabled lists.
    """

    package_name: str
    install_path: str
    installer_name: str = DEFAULT_INSTALLER
    enabled_binding_uuids: list[UUID] = field(default_factory=list)
    disabled_binding_uuids: list[UUID] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.package_name:
            raise ValidationError("The package name must not be empty.")
        if not self.install_path:
            raise ValidationError("The install path must not be empty.")

    def add_enabled_binding_uuid(self, uuid: UUID) -> None:
        if uuid in self.disabled_binding_uuids:
            self.disabled_binding_uuids.remove(uuid)
        if uuid not in self.enabled_binding_uuids:
            self.enabled_binding_uuids.append(uuid)

    def remove_enabled_binding_uuid(self, uuid: UUID) -> None:
        if uuid in self.enabled_binding_uuids:
            self.enabled_binding_uuids.remove(uuid)

    def has_enabled_binding_uuid(self, uuid: UUID) -> bool:
        return uuid in self.enabled_binding_uuids

    def add_disabled_binding_uuid(self, uuid: UUID) -> None:
        if uuid in self.enabled_binding_uuids:
            self.enabled_binding_uuids.remove(uuid)
        if uuid not in self.disabled_binding_uuids:
            self.disabled_binding_uuids.append(uuid)

    def remove_disabled_binding_uuid(self, uuid: UUID) -> None:
        if uuid in self.disabled_binding_uuids:
            self.disabled_binding_uuids.remove(uuid)

    def has_disabled_binding_uuid(self, uuid: UUID) -> bool:
        return uuid in self.disabled_binding_uuids


class PackageFile:
    """The manifest of a package: its binding types and bindings."""

    def __init__(self, package_name: str | None = None, path: Path | None = None) -> None:
        self.package_name = package_name
        self.path = path
        # Names of the packages whose declarations this package overrides
        self.overridden_packages: list[str] = []
        self._binding_descriptors: dict[UUID, BindingDescriptor] = {}
        self._type_descriptors: dict[str, BindingTypeDescriptor] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.package_name!r})"

    # -- bindings ------------------------------------------------------------

    def add_binding_descriptor(
        self, descriptor: BindingDescriptor, index: int | None = None
    ) -> None:
        """Add a binding, replacing one with the same UUID in place.

        Args:
            descriptor: The binding to add
            index: Position among the bindings; appended when omitted
        """
        if index is None or descriptor.uuid in self._binding_descriptors:
            self._binding_descriptors[descriptor.uuid] = descriptor
            return
        items = list(self._binding_descriptors.items())
        items.insert(index, (descriptor.uuid, descriptor))
        self._binding_descriptors = dict(items)

    def remove_binding_descriptor(self, uuid: UUID) -> None:
        self._binding_descriptors.pop(uuid, None)

    def get_binding_descriptor(self, uuid: UUID) -> BindingDescriptor:
        if uuid not in self._binding_descriptors:
            raise NoSuchBindingError.for_uuid(uuid)
        return self._binding_descriptors[uuid]

    def get_binding_descriptors(self) -> list[BindingDescriptor]:
        return list(self._binding_descriptors.values())

    def find_binding_descriptors(
        self, predicate: Callable[[BindingDescriptor], bool]
    ) -> list[BindingDescriptor]:
        return [d for d in self._binding_descriptors.values() if predicate(d)]

    def has_binding_descriptor(self, uuid: UUID) -> bool:
        return uuid in self._binding_descriptors

    def has_binding_descriptors(self) -> bool:
        return bool(self._binding_descriptors)

    def index_of_binding_descriptor(self, uuid: UUID) -> int:
        return list(self._binding_descriptors).index(uuid)

    # -- types ---------------------------------------------------------------

    def add_type_descriptor(
        self, descriptor: BindingTypeDescriptor, index: int | None = None
    ) -> None:
        if index is None or descriptor.name in self._type_descriptors:
            self._type_descriptors[descriptor.name] = descriptor
            return
        items = list(self._type_descriptors.items())
        items.insert(index, (descriptor.name, descriptor))
        self._type_descriptors = dict(items)

    def remove_type_descriptor(self, type_name: str) -> None:
        self._type_descriptors.pop(type_name, None)

    def get_type_descriptor(self, type_name: str) -> BindingTypeDescriptor:
        if type_name not in self._type_descriptors:
            raise NoSuchTypeError.for_type_name(type_name)
        return self._type_descriptors[type_name]

    def get_type_descriptors(self) -> list[BindingTypeDescriptor]:
        return list(self._type_descriptors.values())

    def find_type_descriptors(
        self, predicate: Callable[[BindingTypeDescriptor], bool]
    ) -> list[BindingTypeDescriptor]:
        return [d for d in self._type_descriptors.values() if predicate(d)]

    def has_type_descriptor(self, type_name: str) -> bool:
        return type_name in self._type_descriptors

    def has_type_descriptors(self) -> bool:
        return bool(self._type_descriptors)

    def index_of_type_descriptor(self, type_name: str) -> int:
        return list(self._type_descriptors).index(type_name)


class RootPackageFile(PackageFile):
    """The manifest of the project itself; owns the install records."""

    def __init__(self, package_name: str | None = None, path: Path | None = None) -> None:
        super().__init__(package_name, path)
        self._install_infos: dict[str, InstallInfo] = {}

    def add_install_info(self, install_info: InstallInfo) -> None:
        self._install_infos[install_info.package_name] = install_info

    def remove_install_info(self, package_name: str) -> None:
        self._install_infos.pop(package_name, None)

    def get_install_info(self, package_name: str) -> InstallInfo:
        if package_name not in self._install_infos:
            raise NoSuchPackageError.for_package_name(package_name)
        return self._install_infos[package_name]

    def get_install_infos(self) -> list[InstallInfo]:
        return list(self._install_infos.values())

    def has_install_info(self, package_name: str) -> bool:
        return package_name in self._install_infos


@dataclass(eq=False)
class Package:
    """An installed package together with its manifest."""

    name: str
    package_file: PackageFile
    install_path: Path
    install_info: InstallInfo | None = None

    @property
    def is_root(self) -> bool:
        return False


@dataclass(eq=False)
class RootPackage(Package):
    """The project being managed. It has no install record."""

    @property
    def is_root(self) -> bool:
        return True


class PackageCollection:
    """Ordered collection of packages, keyed by name."""

    def __init__(self, packages: list[Package] | None = None) -> None:
        self._packages: dict[str, Package] = {}
        self._root_package_name: str | None = None
        for package in packages or []:
            self.add(package)

    def add(self, package: Package) -> None:
        if package.is_root:
            self._root_package_name = package.name
        self._packages[package.name] = package

    def remove(self, package_name: str) -> None:
        self._packages.pop(package_name, None)
        if package_name == self._root_package_name:
            self._root_package_name = None

    def get(self, package_name: str) -> Package:
        if package_name not in self._packages:
            raise NoSuchPackageError.for_package_name(package_name)
        return self._packages[package_name]

    def contains(self, package_name: str) -> bool:
        return package_name in self._packages

    def get_package_names(self) -> list[str]:
        return list(self._packages)

    @property
    def root_package(self) -> RootPackage:
        if self._root_package_name is None:
            raise NoSuchPackageError("The collection does not contain a root package.")
        return self._packages[self._root_package_name]  # type: ignore[return-value]

    @property
    def root_package_name(self) -> str:
        return self.root_package.name

    def __contains__(self, package_name: object) -> bool:
        return package_name in self._packages

    def __getitem__(self, package_name: str) -> Package:
        return self.get(package_name)

    def __iter__(self) -> Iterator[Package]:
        return iter(list(self._packages.values()))

    def __len__(self) -> int:
        return len(self._packages)
