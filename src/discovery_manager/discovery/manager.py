"""
Discovery manager.

Keeps the binding types and bindings declared by the packages of a project
in sync with a discovery registry. Every public method validates its input,
composes atomic operations, runs them in a transaction, saves the root
package file and rolls everything back if anything fails.

Example:
    from discovery_manager import DiscoveryManager, InMemoryDiscovery, PackageLoader

    packages = PackageLoader(storage).load(Path("."))
    manager = DiscoveryManager(packages, InMemoryDiscovery(), storage)
    manager.add_binding_type(BindingTypeDescriptor("acme/translations"))
    manager.add_binding(BindingDescriptor.create("/app/trans/*.xlf", "acme/translations"))
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Protocol
from uuid import UUID

from discovery_manager.discovery.interceptors import (
    ReloadBindingDescriptorsByTypeName,
    ReloadBindingDescriptorsByUuid,
    UpdateDuplicateMarksForTypeName,
    UpdateDuplicateMarksForUuid,
    UpdateOverriddenMarksForUuid,
)
from discovery_manager.discovery.models import (
    BindingCriteria,
    BindingDescriptor,
    BindingState,
    BindingTypeDescriptor,
    BindingTypeState,
)
from discovery_manager.discovery.operations import (
    AddBindingDescriptorToPackageFile,
    AddTypeDescriptorToPackageFile,
    BindBinding,
    DefineType,
    DisableBindingUuid,
    EnableBindingUuid,
    LoadBindingDescriptor,
    LoadTypeDescriptor,
    RemoveBindingDescriptorFromPackageFile,
    RemoveTypeDescriptorFromPackageFile,
    SyncBindingUuid,
    SyncTypeName,
    UnloadBindingDescriptor,
    UnloadTypeDescriptor,
)
from discovery_manager.discovery.registry import EditableDiscovery
from discovery_manager.discovery.store import BindingDescriptorStore, BindingTypeDescriptorStore
from discovery_manager.discovery.transaction import AtomicOperation, InterceptedOperation, Transaction
from discovery_manager.exceptions import (
    CannotDisableBindingError,
    CannotEnableBindingError,
    DiscoveryNotEmptyError,
    DuplicateBindingError,
    DuplicateTypeError,
    MissingParameterError,
    NoSuchBindingError,
    NoSuchParameterError,
    NoSuchTypeError,
    TypeNotEnabledError,
)
from discovery_manager.logging import get_logger
from discovery_manager.packages.models import InstallInfo, Package, PackageCollection, RootPackageFile

_module_logger = get_logger("discovery.manager")


class RootPackageFileWriter(Protocol):
    def save_root_package_file(self, package_file: RootPackageFile) -> None: ...


def _quote_list(names: list[str]) -> str:
    quoted = [f'"{name}"' for name in names]
    if len(quoted) == 1:
        return quoted[0]
    return ", ".join(quoted[:-1]) + " and " + quoted[-1]


class DiscoveryManager:
    """
    Manages the binding types and bindings of a project.

    Args:
        packages: All packages of the project, including the root package
        discovery: The registry to keep in sync
        storage: Writes the root package file after each change
        logger: Receives the warnings about duplicate types and invalid
            bindings. Defaults to the module logger.
    """

    def __init__(
        self,
        packages: PackageCollection,
        discovery: EditableDiscovery,
        storage: RootPackageFileWriter,
        logger: logging.Logger | None = None,
    ) -> None:
        self._packages = packages
        self._root_package = packages.root_package
        self._root_package_file: RootPackageFile = self._root_package.package_file  # type: ignore[assignment]
        self._discovery = discovery
        self._storage = storage
        self._logger = logger or _module_logger

        self._type_store: BindingTypeDescriptorStore | None = None
        self._binding_store: BindingDescriptorStore | None = None

    @property
    def packages(self) -> PackageCollection:
        return self._packages

    @property
    def discovery(self) -> EditableDiscovery:
        return self._discovery

    # ------------------------------------------------------------------
    # Binding types
    # ------------------------------------------------------------------

    def add_binding_type(self, type_descriptor: BindingTypeDescriptor) -> None:
        """
        Add a binding type to the root package.

        Bindings that were held back because the type was missing are
        registered along with the type.

        Raises:
            DuplicateTypeError: If any package already declares the type
        """
        type_store, _ = self._assert_packages_loaded()
        type_name = type_descriptor.name

        if type_store.exists_any(type_name):
            raise DuplicateTypeError.for_type_name(type_name)

        type_sync = self._sync_type_name(type_name)

        tx = Transaction()
        try:
            tx.execute(self._load_type_descriptor(type_descriptor, self._root_package))
            tx.execute(AddTypeDescriptorToPackageFile(type_descriptor, self._root_package_file))
            tx.execute(type_sync)
            self._save_root_package_file()
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    def remove_binding_type(self, type_name: str) -> None:
        """
        Remove a binding type from the root package.

        Does nothing if the root package does not declare the type. If
        another package declares the type, that declaration takes over.
        """
        self._assert_packages_loaded()

        if not self._root_package_file.has_type_descriptor(type_name):
            self._emit_warning_for_duplicate_type(type_name)
            return

        type_descriptor = self._root_package_file.get_type_descriptor(type_name)
        type_sync = self._sync_type_name(type_name)

        tx = Transaction()
        try:
            tx.execute(RemoveTypeDescriptorFromPackageFile(type_name, self._root_package_file))
            tx.execute(self._unload_type_descriptor(type_descriptor))
            tx.execute(type_sync)
            self._save_root_package_file()
            tx.commit()
        except Exception:
            tx.rollback()
            raise

        self._emit_warning_for_duplicate_type(type_name)

    def get_binding_types(
        self,
        package_names: Collection[str] | None = None,
        state: BindingTypeState | None = None,
    ) -> list[BindingTypeDescriptor]:
        """Get the binding types declared by the given (or all) packages."""
        self._assert_packages_loaded()
        descriptors = []
        for package in self._iter_packages(package_names):
            for descriptor in package.package_file.get_type_descriptors():
                if state is None or descriptor.state == state:
                    descriptors.append(descriptor)
        return descriptors

    # ------------------------------------------------------------------
    # Bindings
    # ------------------------------------------------------------------

    def add_binding(self, binding_descriptor: BindingDescriptor, override: bool = False) -> None:
        """
        Add a binding to the root package and register it.

        Args:
            binding_descriptor: The binding to add
            override: Replace a binding with the same UUID that the root
                package already contains

        Raises:
            DuplicateBindingError: If the root package already contains the
                UUID and ``override`` is not set
            NoSuchTypeError: If the type of the binding is not declared
            TypeNotEnabledError: If the type is declared but not enabled
            MissingParameterError: If a required parameter is not set
            NoSuchParameterError: If a parameter is not declared by the type
        """
        type_store, _ = self._assert_packages_loaded()
        type_name = binding_descriptor.type_name

        if not type_store.exists_any(type_name):
            raise NoSuchTypeError.for_type_name(type_name)
        type_descriptor = type_store.get_enabled(type_name)
        if type_descriptor is None:
            raise TypeNotEnabledError.for_type_name(type_name)
        self._validate_parameter_values(binding_descriptor, type_descriptor)

        uuid = binding_descriptor.uuid
        existing = None
        if self._root_package_file.has_binding_descriptor(uuid):
            if not override:
                raise DuplicateBindingError.for_uuid(uuid)
            existing = self._root_package_file.get_binding_descriptor(uuid)

        tx = Transaction()
        try:
            if existing is not None:
                # Unregister the replaced binding before the new one is compared
                unload_sync = self._sync_binding_uuid(uuid)
                tx.execute(self._unload_binding_descriptor(existing))
                tx.execute(unload_sync)
            sync = self._sync_binding_uuid(uuid)
            tx.execute(AddBindingDescriptorToPackageFile(binding_descriptor, self._root_package_file))
            tx.execute(self._load_binding_descriptor(binding_descriptor, self._root_package))
            tx.execute(sync)
            self._save_root_package_file()
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    def remove_binding(self, uuid: UUID) -> None:
        """
        Remove a binding from the root package.

        Does nothing if the root package does not contain the binding. If
        another package declares the same binding, it becomes enabled.
        """
        self._assert_packages_loaded()

        if not self._root_package_file.has_binding_descriptor(uuid):
            return

        binding_descriptor = self._root_package_file.get_binding_descriptor(uuid)
        sync = self._sync_binding_uuid(uuid)

        tx = Transaction()
        try:
            tx.execute(self._unload_binding_descriptor(binding_descriptor))
            tx.execute(sync)
            tx.execute(RemoveBindingDescriptorFromPackageFile(uuid, self._root_package_file))
            self._save_root_package_file()
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    def enable_binding(self, uuid: UUID, package_names: Collection[str] | None = None) -> None:
        """
        Enable a binding in installed packages.

        Args:
            uuid: The UUID of the binding
            package_names: Packages to enable the binding in. Defaults to
                all installed packages that declare it.

        Raises:
            NoSuchBindingError: If no matching package declares the binding
            CannotEnableBindingError: If a package is the root package, the
                type of the binding is not loaded or the binding is invalid
        """
        install_infos = []
        for package, descriptor in self._get_installed_bindings(
            uuid, package_names, CannotEnableBindingError
        ):
            install_info = package.install_info
            if install_info is None or install_info.has_enabled_binding_uuid(uuid):
                continue
            if descriptor.is_held_back():
                raise CannotEnableBindingError.type_not_loaded(uuid, package.name)
            if descriptor.is_ignored():
                raise CannotEnableBindingError.invalid(uuid, package.name)
            install_infos.append(install_info)

        if install_infos:
            self._toggle_binding_uuid(uuid, install_infos, EnableBindingUuid)

    def disable_binding(self, uuid: UUID, package_names: Collection[str] | None = None) -> None:
        """
        Disable a binding in installed packages.

        Raises:
            NoSuchBindingError: If no matching package declares the binding
            CannotDisableBindingError: If a package is the root package, the
                type of the binding is not loaded or the binding is invalid
        """
        install_infos = []
        for package, descriptor in self._get_installed_bindings(
            uuid, package_names, CannotDisableBindingError
        ):
            install_info = package.install_info
            if install_info is None or install_info.has_disabled_binding_uuid(uuid):
                continue
            if descriptor.is_held_back():
                raise CannotDisableBindingError.type_not_loaded(uuid, package.name)
            if descriptor.is_ignored():
                raise CannotDisableBindingError.invalid(uuid, package.name)
            install_infos.append(install_info)

        if install_infos:
            self._toggle_binding_uuid(uuid, install_infos, DisableBindingUuid)

    def get_bindings(
        self,
        package_names: Collection[str] | None = None,
        state: BindingState | None = BindingState.ENABLED,
    ) -> list[BindingDescriptor]:
        """
        Get the bindings of the given (or all) packages, one per UUID.

        Args:
            package_names: Restrict to these packages
            state: Only return bindings in this state; None returns all
        """
        self._assert_packages_loaded()
        bindings: dict[UUID, BindingDescriptor] = {}
        for package in self._iter_packages(package_names):
            for descriptor in package.package_file.get_binding_descriptors():
                if state is None or descriptor.state == state:
                    bindings.setdefault(descriptor.uuid, descriptor)
        return list(bindings.values())

    def find_bindings(self, criteria: BindingCriteria) -> list[BindingDescriptor]:
        """Get all bindings matching the criteria, one entry per package."""
        self._assert_packages_loaded()
        found = []
        for package in self._iter_packages(criteria.package_names):
            found.extend(package.package_file.find_binding_descriptors(criteria.matches))
        return found

    def has_bindings(self, criteria: BindingCriteria | None = None) -> bool:
        self._assert_packages_loaded()
        if criteria is None:
            return any(p.package_file.has_binding_descriptors() for p in self._packages)
        return bool(self.find_bindings(criteria))

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def build_discovery(self) -> None:
        """
        Register all enabled types and bindings with an empty discovery.

        Duplicated types and invalid bindings are skipped with a warning.

        Raises:
            DiscoveryNotEmptyError: If the discovery contains types or bindings
        """
        type_store, binding_store = self._assert_packages_loaded()

        self._emit_warnings_for_duplicate_types()
        self._emit_warnings_for_invalid_bindings()

        if self._discovery.get_bindings() or self._discovery.get_defined_types():
            raise DiscoveryNotEmptyError("The discovery is not empty.")

        operations: list[AtomicOperation] = []
        for type_name in type_store.get_type_names():
            type_descriptor = type_store.get_enabled(type_name)
            if type_descriptor is not None:
                operations.append(DefineType(type_descriptor.to_binding_type(), self._discovery))

        for uuid in binding_store.get_uuids():
            binding_descriptor = binding_store.get_enabled(uuid)
            if binding_descriptor is not None:
                operations.append(BindBinding.for_descriptor(binding_descriptor, self._discovery))

        Transaction().run(operations)

    def clear_discovery(self) -> None:
        self._discovery.clear()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _assert_packages_loaded(self) -> tuple[BindingTypeDescriptorStore, BindingDescriptorStore]:
        if self._type_store is None or self._binding_store is None:
            self._load_packages()
        assert self._type_store is not None and self._binding_store is not None
        return self._type_store, self._binding_store

    def _load_packages(self) -> None:
        self._type_store = BindingTypeDescriptorStore()
        self._binding_store = BindingDescriptorStore()

        # Types first, so that bindings load against them
        for package in self._packages:
            for type_descriptor in package.package_file.get_type_descriptors():
                self._load_type_descriptor(type_descriptor, package).execute()

        for package in self._packages:
            for binding_descriptor in package.package_file.get_binding_descriptors():
                self._load_binding_descriptor(binding_descriptor, package).execute()

        _module_logger.debug(
            "Loaded %d type(s) and %d binding UUID(s) from %d package(s)",
            len(self._type_store.get_type_names()),
            len(self._binding_store.get_uuids()),
            len(self._packages),
        )

    def _iter_packages(self, package_names: Collection[str] | None) -> list[Package]:
        if package_names is None:
            return list(self._packages)
        for name in package_names:
            self._packages.get(name)
        return [p for p in self._packages if p.name in package_names]

    def _load_type_descriptor(
        self, type_descriptor: BindingTypeDescriptor, package: Package
    ) -> AtomicOperation:
        type_store, binding_store = self._type_store, self._binding_store
        assert type_store is not None and binding_store is not None
        type_name = type_descriptor.name
        return InterceptedOperation(
            LoadTypeDescriptor(type_descriptor, package, type_store),
            [
                UpdateDuplicateMarksForTypeName(type_name, type_store, self._root_package.name),
                ReloadBindingDescriptorsByTypeName(
                    type_name, binding_store, type_store, self._root_package.name
                ),
            ],
        )

    def _unload_type_descriptor(self, type_descriptor: BindingTypeDescriptor) -> AtomicOperation:
        type_store, binding_store = self._type_store, self._binding_store
        assert type_store is not None and binding_store is not None
        type_name = type_descriptor.name
        return InterceptedOperation(
            UnloadTypeDescriptor(type_descriptor, type_store),
            [
                UpdateDuplicateMarksForTypeName(type_name, type_store, self._root_package.name),
                ReloadBindingDescriptorsByTypeName(
                    type_name, binding_store, type_store, self._root_package.name
                ),
            ],
        )

    def _load_binding_descriptor(
        self, binding_descriptor: BindingDescriptor, package: Package
    ) -> AtomicOperation:
        type_store, binding_store = self._type_store, self._binding_store
        assert type_store is not None and binding_store is not None
        uuid = binding_descriptor.uuid
        return InterceptedOperation(
            LoadBindingDescriptor(binding_descriptor, package, binding_store, type_store),
            [
                UpdateOverriddenMarksForUuid(uuid, binding_store),
                UpdateDuplicateMarksForUuid(uuid, binding_store, self._root_package.name),
            ],
        )

    def _unload_binding_descriptor(self, binding_descriptor: BindingDescriptor) -> AtomicOperation:
        binding_store = self._binding_store
        assert binding_store is not None
        uuid = binding_descriptor.uuid
        return InterceptedOperation(
            UnloadBindingDescriptor(binding_descriptor, binding_store),
            [
                UpdateOverriddenMarksForUuid(uuid, binding_store),
                UpdateDuplicateMarksForUuid(uuid, binding_store, self._root_package.name),
            ],
        )

    def _sync_binding_uuid(self, uuid: UUID) -> SyncBindingUuid:
        assert self._binding_store is not None
        sync = SyncBindingUuid(uuid, self._discovery, self._binding_store)
        sync.take_snapshot()
        return sync

    def _sync_type_name(self, type_name: str) -> SyncTypeName:
        assert self._type_store is not None and self._binding_store is not None
        sync = SyncTypeName(type_name, self._discovery, self._type_store, self._binding_store)
        sync.take_snapshot()
        return sync

    def _get_installed_bindings(
        self,
        uuid: UUID,
        package_names: Collection[str] | None,
        error: type[CannotEnableBindingError] | type[CannotDisableBindingError],
    ) -> list[tuple[Package, BindingDescriptor]]:
        _, binding_store = self._assert_packages_loaded()

        if not binding_store.exists_any(uuid):
            raise NoSuchBindingError.for_uuid(uuid)
        declared = binding_store.get_all(uuid)

        if package_names is None:
            names = [name for name in declared if name != self._root_package.name]
            if not names:
                raise error.root_package_not_accepted(uuid, self._root_package.name)
        else:
            names = []
            for name in package_names:
                package = self._packages.get(name)
                if package.is_root:
                    raise error.root_package_not_accepted(uuid, name)
                if name in declared:
                    names.append(name)
            if not names:
                raise NoSuchBindingError.for_uuid(uuid)

        return [(self._packages.get(name), declared[name]) for name in names]

    def _toggle_binding_uuid(
        self,
        uuid: UUID,
        install_infos: list[InstallInfo],
        operation_class: type[EnableBindingUuid] | type[DisableBindingUuid],
    ) -> None:
        type_store, binding_store = self._assert_packages_loaded()
        sync = self._sync_binding_uuid(uuid)

        tx = Transaction()
        try:
            for install_info in install_infos:
                tx.execute(
                    InterceptedOperation(
                        operation_class(uuid, install_info),
                        ReloadBindingDescriptorsByUuid(
                            uuid, binding_store, type_store, self._root_package.name
                        ),
                    )
                )
            tx.execute(sync)
            self._save_root_package_file()
            tx.commit()
        except Exception:
            tx.rollback()
            raise

    def _validate_parameter_values(
        self, binding_descriptor: BindingDescriptor, type_descriptor: BindingTypeDescriptor
    ) -> None:
        values = binding_descriptor.get_parameter_values()
        for parameter in type_descriptor.parameters.values():
            if parameter.required and parameter.name not in values:
                raise MissingParameterError.for_parameter_name(
                    parameter.name, type_descriptor.name
                )
        for name in values:
            if not type_descriptor.has_parameter(name):
                raise NoSuchParameterError.for_parameter_name(name, type_descriptor.name)

    def _save_root_package_file(self) -> None:
        self._storage.save_root_package_file(self._root_package_file)

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    def _emit_warning_for_duplicate_type(self, type_name: str) -> None:
        assert self._type_store is not None
        package_names = self._type_store.get_owning_package_names(type_name)
        if len(package_names) < 2 or self._root_package.name in package_names:
            return
        self._logger.warning(
            'The packages %s contain type definitions for the same type "%s". '
            "The type has been disabled.",
            _quote_list(package_names),
            type_name,
        )

    def _emit_warnings_for_duplicate_types(self) -> None:
        assert self._type_store is not None
        for type_name in self._type_store.get_type_names():
            self._emit_warning_for_duplicate_type(type_name)

    def _emit_warnings_for_invalid_bindings(self) -> None:
        type_store, binding_store = self._type_store, self._binding_store
        assert type_store is not None and binding_store is not None
        for uuid in binding_store.get_uuids():
            for package_name, descriptor in binding_store.get_all(uuid).items():
                if descriptor.is_held_back() and not type_store.exists_any(descriptor.type_name):
                    self._logger.warning(
                        'The binding "%s" in package "%s" references the unknown type "%s".',
                        uuid,
                        package_name,
                        descriptor.type_name,
                    )
                for violation in descriptor.get_violations():
                    self._logger.warning(
                        'The binding "%s" in package "%s" is invalid: %s',
                        uuid,
                        package_name,
                        violation.message,
                    )
