"""
Atomic operations used by the discovery manager.

Every operation restores the exact observable state from before
``execute()`` in ``rollback()``: the package files, the descriptor stores,
the install records and the discovery registry.
"""

from __future__ import annotations

from uuid import UUID

from discovery_manager.discovery.models import (
    BindingArguments,
    BindingDescriptor,
    BindingType,
    BindingTypeDescriptor,
)
from discovery_manager.discovery.registry import EditableDiscovery
from discovery_manager.discovery.store import BindingDescriptorStore, BindingTypeDescriptorStore
from discovery_manager.discovery.transaction import AtomicOperation
from discovery_manager.logging import get_logger
from discovery_manager.packages.models import InstallInfo, Package, PackageFile

logger = get_logger("discovery.operations")


# ---------------------------------------------------------------------------
# Package file operations
# ---------------------------------------------------------------------------


class AddBindingDescriptorToPackageFile(AtomicOperation):
    def __init__(self, descriptor: BindingDescriptor, package_file: PackageFile) -> None:
        self._descriptor = descriptor
        self._package_file = package_file
        self._previous: BindingDescriptor | None = None

    def execute(self) -> None:
        uuid = self._descriptor.uuid
        if self._package_file.has_binding_descriptor(uuid):
            self._previous = self._package_file.get_binding_descriptor(uuid)
        self._package_file.add_binding_descriptor(self._descriptor)

    def rollback(self) -> None:
        if self._previous is not None:
            self._package_file.add_binding_descriptor(self._previous)
        else:
            self._package_file.remove_binding_descriptor(self._descriptor.uuid)


class RemoveBindingDescriptorFromPackageFile(AtomicOperation):
    def __init__(self, uuid: UUID, package_file: PackageFile) -> None:
        self._uuid = uuid
        self._package_file = package_file
        self._previous: BindingDescriptor | None = None
        self._index = 0

    def execute(self) -> None:
        if not self._package_file.has_binding_descriptor(self._uuid):
            return
        self._previous = self._package_file.get_binding_descriptor(self._uuid)
        self._index = self._package_file.index_of_binding_descriptor(self._uuid)
        self._package_file.remove_binding_descriptor(self._uuid)

    def rollback(self) -> None:
        if self._previous is not None:
            self._package_file.add_binding_descriptor(self._previous, self._index)


class AddTypeDescriptorToPackageFile(AtomicOperation):
    def __init__(self, descriptor: BindingTypeDescriptor, package_file: PackageFile) -> None:
        self._descriptor = descriptor
        self._package_file = package_file
        self._previous: BindingTypeDescriptor | None = None

    def execute(self) -> None:
        name = self._descriptor.name
        if self._package_file.has_type_descriptor(name):
            self._previous = self._package_file.get_type_descriptor(name)
        self._package_file.add_type_descriptor(self._descriptor)

    def rollback(self) -> None:
        if self._previous is not None:
            self._package_file.add_type_descriptor(self._previous)
        else:
            self._package_file.remove_type_descriptor(self._descriptor.name)


class RemoveTypeDescriptorFromPackageFile(AtomicOperation):
    def __init__(self, type_name: str, package_file: PackageFile) -> None:
        self._type_name = type_name
        self._package_file = package_file
        self._previous: BindingTypeDescriptor | None = None
        self._index = 0

    def execute(self) -> None:
        if not self._package_file.has_type_descriptor(self._type_name):
            return
        self._previous = self._package_file.get_type_descriptor(self._type_name)
        self._index = self._package_file.index_of_type_descriptor(self._type_name)
        self._package_file.remove_type_descriptor(self._type_name)

    def rollback(self) -> None:
        if self._previous is not None:
            self._package_file.add_type_descriptor(self._previous, self._index)


# ---------------------------------------------------------------------------
# Store operations
# ---------------------------------------------------------------------------


class LoadBindingDescriptor(AtomicOperation):
    """Load a binding into its package and add it to the binding store."""

    def __init__(
        self,
        descriptor: BindingDescriptor,
        package: Package,
        binding_store: BindingDescriptorStore,
        type_store: BindingTypeDescriptorStore,
    ) -> None:
        self._descriptor = descriptor
        self._package = package
        self._binding_store = binding_store
        self._type_store = type_store
        self._previous: BindingDescriptor | None = None
        self._loaded = False

    def execute(self) -> None:
        uuid = self._descriptor.uuid
        package_name = self._package.name
        if self._binding_store.exists(uuid, package_name):
            self._previous = self._binding_store.get(uuid, package_name)

        self._binding_store.add(self._descriptor, package_name)

        if not self._descriptor.is_loaded():
            type_descriptor = self._type_store.find_for_binding(self._descriptor.type_name)
            self._descriptor.load(self._package, type_descriptor)
            self._loaded = True

    def rollback(self) -> None:
        if self._loaded and self._descriptor.is_loaded():
            self._descriptor.unload()
        self._loaded = False

        if self._previous is not None:
            self._binding_store.add(self._previous, self._package.name)
        else:
            self._binding_store.remove(self._descriptor.uuid, self._package.name)


class UnloadBindingDescriptor(AtomicOperation):
    """Unload a binding and remove it from the binding store."""

    def __init__(self, descriptor: BindingDescriptor, binding_store: BindingDescriptorStore) -> None:
        self._descriptor = descriptor
        self._binding_store = binding_store
        self._package: Package | None = None
        self._type_descriptor: BindingTypeDescriptor | None = None
        self._was_removed = False

    def execute(self) -> None:
        if not self._descriptor.is_loaded():
            return

        self._package = self._descriptor.containing_package
        self._type_descriptor = self._descriptor.type_descriptor
        uuid = self._descriptor.uuid
        package_name = self._package.name

        if (
            self._binding_store.exists(uuid, package_name)
            and self._binding_store.get(uuid, package_name) is self._descriptor
        ):
            self._binding_store.remove(uuid, package_name)
            self._was_removed = True

        self._descriptor.unload()

    def rollback(self) -> None:
        if self._package is None or self._descriptor.is_loaded():
            return

        type_descriptor = self._type_descriptor
        if type_descriptor is not None and not type_descriptor.is_loaded():
            type_descriptor = None
        self._descriptor.load(self._package, type_descriptor)

        if self._was_removed:
            self._binding_store.add(self._descriptor, self._package.name)
            self._was_removed = False
        self._package = None


class LoadTypeDescriptor(AtomicOperation):
    """Load a type into its package and add it to the type store."""

    def __init__(
        self,
        descriptor: BindingTypeDescriptor,
        package: Package,
        type_store: BindingTypeDescriptorStore,
    ) -> None:
        self._descriptor = descriptor
        self._package = package
        self._type_store = type_store
        self._previous: BindingTypeDescriptor | None = None
        self._loaded = False

    def execute(self) -> None:
        name = self._descriptor.name
        package_name = self._package.name
        if self._type_store.exists(name, package_name):
            self._previous = self._type_store.get(name, package_name)

        self._type_store.add(self._descriptor, package_name)

        if not self._descriptor.is_loaded():
            self._descriptor.load(self._package)
            self._loaded = True

    def rollback(self) -> None:
        if self._loaded and self._descriptor.is_loaded():
            self._descriptor.unload()
        self._loaded = False

        if self._previous is not None:
            self._type_store.add(self._previous, self._package.name)
        else:
            self._type_store.remove(self._descriptor.name, self._package.name)


class UnloadTypeDescriptor(AtomicOperation):
    """Unload a type and remove it from the type store."""

    def __init__(
        self, descriptor: BindingTypeDescriptor, type_store: BindingTypeDescriptorStore
    ) -> None:
        self._descriptor = descriptor
        self._type_store = type_store
        self._package: Package | None = None
        self._was_removed = False

    def execute(self) -> None:
        if not self._descriptor.is_loaded():
            return

        self._package = self._descriptor.containing_package
        name = self._descriptor.name
        package_name = self._package.name

        if (
            self._type_store.exists(name, package_name)
            and self._type_store.get(name, package_name) is self._descriptor
        ):
            self._type_store.remove(name, package_name)
            self._was_removed = True

        self._descriptor.unload()

    def rollback(self) -> None:
        if self._package is None or self._descriptor.is_loaded():
            return

        self._descriptor.load(self._package)

        if self._was_removed:
            self._type_store.add(self._descriptor, self._package.name)
            self._was_removed = False
        self._package = None


# ---------------------------------------------------------------------------
# Install record operations
# ---------------------------------------------------------------------------


class _ToggleBindingUuid(AtomicOperation):
    def __init__(self, uuid: UUID, install_info: InstallInfo) -> None:
        self._uuid = uuid
        self._install_info = install_info
        self._was_enabled = False
        self._was_disabled = False

    def _remember(self) -> None:
        self._was_enabled = self._install_info.has_enabled_binding_uuid(self._uuid)
        self._was_disabled = self._install_info.has_disabled_binding_uuid(self._uuid)

    def rollback(self) -> None:
        self._install_info.remove_enabled_binding_uuid(self._uuid)
        self._install_info.remove_disabled_binding_uuid(self._uuid)
        if self._was_enabled:
            self._install_info.add_enabled_binding_uuid(self._uuid)
        elif self._was_disabled:
            self._install_info.add_disabled_binding_uuid(self._uuid)


class EnableBindingUuid(_ToggleBindingUuid):
    """Mark a binding UUID as enabled in an install record."""

    def execute(self) -> None:
        self._remember()
        self._install_info.add_enabled_binding_uuid(self._uuid)


class DisableBindingUuid(_ToggleBindingUuid):
    """Mark a binding UUID as disabled in an install record."""

    def execute(self) -> None:
        self._remember()
        self._install_info.add_disabled_binding_uuid(self._uuid)


# ---------------------------------------------------------------------------
# Registry operations
# ---------------------------------------------------------------------------


def _bind(discovery: EditableDiscovery, arguments: BindingArguments) -> None:
    discovery.bind(
        arguments.query,
        arguments.type_name,
        arguments.get_parameter_values(),
        arguments.language,
    )


def _unbind(discovery: EditableDiscovery, arguments: BindingArguments) -> None:
    discovery.unbind(
        arguments.query,
        arguments.type_name,
        arguments.get_parameter_values(),
        arguments.language,
    )


class BindBinding(AtomicOperation):
    """Add a binding to the registry.

    The arguments are captured when the operation is created.
    """

    def __init__(self, arguments: BindingArguments, discovery: EditableDiscovery) -> None:
        self._arguments = arguments
        self._discovery = discovery

    @classmethod
    def for_descriptor(
        cls, descriptor: BindingDescriptor, discovery: EditableDiscovery
    ) -> BindBinding:
        return cls(BindingArguments.from_descriptor(descriptor), discovery)

    def execute(self) -> None:
        _bind(self._discovery, self._arguments)

    def rollback(self) -> None:
        _unbind(self._discovery, self._arguments)


class UnbindBinding(AtomicOperation):
    """Remove a binding from the registry."""

    def __init__(self, arguments: BindingArguments, discovery: EditableDiscovery) -> None:
        self._arguments = arguments
        self._discovery = discovery

    @classmethod
    def for_descriptor(
        cls, descriptor: BindingDescriptor, discovery: EditableDiscovery
    ) -> UnbindBinding:
        return cls(BindingArguments.from_descriptor(descriptor), discovery)

    def execute(self) -> None:
        _unbind(self._discovery, self._arguments)

    def rollback(self) -> None:
        _bind(self._discovery, self._arguments)


class DefineType(AtomicOperation):
    def __init__(self, binding_type: BindingType, discovery: EditableDiscovery) -> None:
        self._binding_type = binding_type
        self._discovery = discovery

    def execute(self) -> None:
        self._discovery.define_type(self._binding_type)

    def rollback(self) -> None:
        self._discovery.undefine_type(self._binding_type.name)


class UndefineType(AtomicOperation):
    def __init__(self, binding_type: BindingType, discovery: EditableDiscovery) -> None:
        self._binding_type = binding_type
        self._discovery = discovery

    def execute(self) -> None:
        self._discovery.undefine_type(self._binding_type.name)

    def rollback(self) -> None:
        self._discovery.define_type(self._binding_type)


class SyncBindingUuid(AtomicOperation):
    """
    Bring the registry in line with the enabled binding of a UUID.

    ``take_snapshot()`` records the enabled binding before the surrounding
    changes; ``execute()`` compares it with the enabled binding afterwards
    and binds or unbinds accordingly.
    """

    def __init__(
        self,
        uuid: UUID,
        discovery: EditableDiscovery,
        binding_store: BindingDescriptorStore,
    ) -> None:
        self._uuid = uuid
        self._discovery = discovery
        self._binding_store = binding_store
        self._snapshot_taken = False
        self._before: BindingArguments | None = None
        self._after: BindingArguments | None = None

    def take_snapshot(self) -> None:
        self._before = self._enabled_arguments()
        self._snapshot_taken = True

    def execute(self) -> None:
        if not self._snapshot_taken:
            raise RuntimeError("take_snapshot() must be called before execute().")
        self._after = self._enabled_arguments()
        self._sync(self._before, self._after)

    def rollback(self) -> None:
        self._sync(self._after, self._before)

    def _enabled_arguments(self) -> BindingArguments | None:
        descriptor = self._binding_store.get_enabled(self._uuid)
        if descriptor is None:
            return None
        return BindingArguments.from_descriptor(descriptor)

    def _sync(self, before: BindingArguments | None, after: BindingArguments | None) -> None:
        if before is None and after is not None:
            _bind(self._discovery, after)
        elif before is not None and after is None:
            _unbind(self._discovery, before)
        elif before is not None and after is not None and before != after:
            logger.warning(
                'The enabled binding "%s" changed its arguments; the discovery was left unchanged.',
                self._uuid,
            )


class SyncTypeName(AtomicOperation):
    """
    Bring the registry in line with the enabled declaration of a type.

    Works like ``SyncBindingUuid``, but also owns the enabled bindings of
    the type: they are bound after the type is defined and unbound before
    it is undefined. When the enabled declaration is replaced by one with
    different parameters, the old bindings are unbound, the type is
    redefined and the bindings are bound again with their current values.
    """

    def __init__(
        self,
        type_name: str,
        discovery: EditableDiscovery,
        type_store: BindingTypeDescriptorStore,
        binding_store: BindingDescriptorStore,
    ) -> None:
        self._type_name = type_name
        self._discovery = discovery
        self._type_store = type_store
        self._binding_store = binding_store
        self._snapshot_taken = False
        self._before: BindingType | None = None
        self._after: BindingType | None = None
        self._bindings_before: dict[UUID, BindingArguments] = {}
        self._bindings_after: dict[UUID, BindingArguments] = {}

    def take_snapshot(self) -> None:
        self._before = self._enabled_type()
        self._bindings_before = self._enabled_bindings()
        self._snapshot_taken = True

    def execute(self) -> None:
        if not self._snapshot_taken:
            raise RuntimeError("take_snapshot() must be called before execute().")
        self._after = self._enabled_type()
        self._bindings_after = self._enabled_bindings()
        self._sync(self._before, self._after, self._bindings_before, self._bindings_after)

    def rollback(self) -> None:
        self._sync(self._after, self._before, self._bindings_after, self._bindings_before)

    def _enabled_type(self) -> BindingType | None:
        descriptor = self._type_store.get_enabled(self._type_name)
        if descriptor is None:
            return None
        return descriptor.to_binding_type()

    def _enabled_bindings(self) -> dict[UUID, BindingArguments]:
        bindings: dict[UUID, BindingArguments] = {}
        for descriptor in self._binding_store.list_by_type_name(self._type_name):
            enabled = self._binding_store.get_enabled(descriptor.uuid)
            if enabled is None or enabled.type_name != self._type_name:
                continue
            if descriptor.uuid not in bindings:
                bindings[descriptor.uuid] = BindingArguments.from_descriptor(enabled)
        return bindings

    def _sync(
        self,
        before: BindingType | None,
        after: BindingType | None,
        bindings_before: dict[UUID, BindingArguments],
        bindings_after: dict[UUID, BindingArguments],
    ) -> None:
        if before is None and after is not None:
            self._discovery.define_type(after)
            self._bind_all(bindings_after)
        elif before is not None and after is None:
            self._unbind_all(bindings_before)
            self._discovery.undefine_type(before.name)
        elif before is not None and after is not None and before != after:
            self._replace(before, after, bindings_before, bindings_after)
        elif before is not None:
            self._sync_bindings(bindings_before, bindings_after)

    def _replace(
        self,
        before: BindingType,
        after: BindingType,
        bindings_before: dict[UUID, BindingArguments],
        bindings_after: dict[UUID, BindingArguments],
    ) -> None:
        self._unbind_all(bindings_before)
        self._discovery.undefine_type(before.name)
        try:
            self._discovery.define_type(after)
            self._bind_all(bindings_after)
        except Exception:
            self._discovery.undefine_type(after.name)
            self._discovery.define_type(before)
            self._bind_all(bindings_before)
            raise

    def _sync_bindings(
        self,
        bindings_before: dict[UUID, BindingArguments],
        bindings_after: dict[UUID, BindingArguments],
    ) -> None:
        for uuid, arguments in bindings_before.items():
            if uuid not in bindings_after:
                _unbind(self._discovery, arguments)
        for uuid, arguments in bindings_after.items():
            if uuid not in bindings_before:
                _bind(self._discovery, arguments)
            elif bindings_before[uuid] != arguments:
                logger.warning(
                    'The enabled binding "%s" changed its arguments; the discovery was left unchanged.',
                    uuid,
                )

    def _bind_all(self, bindings: dict[UUID, BindingArguments]) -> None:
        for arguments in bindings.values():
            _bind(self._discovery, arguments)

    def _unbind_all(self, bindings: dict[UUID, BindingArguments]) -> None:
        for arguments in bindings.values():
            _unbind(self._discovery, arguments)
