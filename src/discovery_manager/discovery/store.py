"""
Two-level descriptor stores.

Descriptors are stored by identity (binding UUID or type name) and by the
name of the package that declares them. Within one identity the insertion
order of the packages is preserved, since the first inserted descriptor is
the default candidate when duplicates are resolved.
"""

from __future__ import annotations

from typing import Generic, TypeVar
from uuid import UUID

from discovery_manager.discovery.models import BindingDescriptor, BindingTypeDescriptor

V = TypeVar("V")
K = TypeVar("K")


class CompositeKeyStore(Generic[V]):
    """Nested mapping ``primary key -> package name -> value``."""

    def __init__(self) -> None:
        self._values: dict[str, dict[str, V]] = {}

    def set(self, key: str, package_name: str, value: V) -> None:
        self._values.setdefault(key, {})[package_name] = value

    def get(self, key: str, package_name: str) -> V:
        if key not in self._values or package_name not in self._values[key]:
            raise KeyError(f'No entry for "{key}" in the package "{package_name}".')
        return self._values[key][package_name]

    def get_first(self, key: str) -> V:
        if key not in self._values:
            raise KeyError(f'No entry for "{key}".')
        return next(iter(self._values[key].values()))

    def get_all(self, key: str) -> dict[str, V]:
        if key not in self._values:
            raise KeyError(f'No entry for "{key}".')
        return dict(self._values[key])

    def remove(self, key: str, package_name: str) -> None:
        group = self._values.get(key)
        if group is None:
            return
        group.pop(package_name, None)
        if not group:
            del self._values[key]

    def contains(self, key: str, package_name: str | None = None) -> bool:
        if key not in self._values:
            return False
        return package_name is None or package_name in self._values[key]

    def get_keys(self) -> list[str]:
        return list(self._values)

    def get_package_names(self, key: str | None = None) -> list[str]:
        if key is not None:
            return list(self._values.get(key, {}))
        names: dict[str, None] = {}
        for group in self._values.values():
            names.update(dict.fromkeys(group))
        return list(names)

    def is_empty(self) -> bool:
        return not self._values


class DescriptorStore(Generic[K, V]):
    """Shared behavior of the binding and type descriptor stores."""

    def __init__(self) -> None:
        self._store: CompositeKeyStore[V] = CompositeKeyStore()

    def _key(self, identity: K) -> str:
        return str(identity)

    def _identity(self, descriptor: V) -> K:
        raise NotImplementedError

    def _is_enabled(self, descriptor: V) -> bool:
        raise NotImplementedError

    def add(self, descriptor: V, package_name: str) -> None:
        """Insert a descriptor, overwriting the one at the same slot."""
        self._store.set(self._key(self._identity(descriptor)), package_name, descriptor)

    def remove(self, identity: K, package_name: str) -> None:
        self._store.remove(self._key(identity), package_name)

    def get(self, identity: K, package_name: str | None = None) -> V:
        """
        Get a descriptor.

        Args:
            identity: UUID or type name
            package_name: Owning package; the first inserted descriptor is
                returned when omitted

        Raises:
            KeyError: If no such descriptor is stored
        """
        if package_name is None:
            return self._store.get_first(self._key(identity))
        return self._store.get(self._key(identity), package_name)

    def get_enabled(self, identity: K) -> V | None:
        key = self._key(identity)
        if not self._store.contains(key):
            return None
        for descriptor in self._store.get_all(key).values():
            if self._is_enabled(descriptor):
                return descriptor
        return None

    def list_all(self, identity: K) -> list[V]:
        return list(self._store.get_all(self._key(identity)).values())

    def get_all(self, identity: K) -> dict[str, V]:
        """Descriptors of an identity keyed by owning package name."""
        return self._store.get_all(self._key(identity))

    def exists(self, identity: K, package_name: str | None = None) -> bool:
        return self._store.contains(self._key(identity), package_name)

    def exists_any(self, identity: K) -> bool:
        return self._store.contains(self._key(identity))

    def exists_enabled(self, identity: K) -> bool:
        return self.get_enabled(identity) is not None

    def get_owning_package_names(self, identity: K | None = None) -> list[str]:
        if identity is None:
            return self._store.get_package_names()
        return self._store.get_package_names(self._key(identity))

    def is_empty(self) -> bool:
        return self._store.is_empty()


class BindingDescriptorStore(DescriptorStore[UUID, BindingDescriptor]):
    """Binding descriptors keyed by UUID and package name."""

    def _identity(self, descriptor: BindingDescriptor) -> UUID:
        return descriptor.uuid

    def _is_enabled(self, descriptor: BindingDescriptor) -> bool:
        return descriptor.is_enabled()

    def get_uuids(self) -> list[UUID]:
        return [UUID(key) for key in self._store.get_keys()]

    def list_by_type_name(self, type_name: str) -> list[BindingDescriptor]:
        """All stored bindings of a type, across all packages."""
        descriptors = []
        for key in self._store.get_keys():
            for descriptor in self._store.get_all(key).values():
                if descriptor.type_name == type_name:
                    descriptors.append(descriptor)
        return descriptors


class BindingTypeDescriptorStore(DescriptorStore[str, BindingTypeDescriptor]):
    """Binding type descriptors keyed by type name and package name."""

    def _identity(self, descriptor: BindingTypeDescriptor) -> str:
        return descriptor.name

    def _is_enabled(self, descriptor: BindingTypeDescriptor) -> bool:
        return descriptor.is_enabled()

    def get_type_names(self) -> list[str]:
        return self._store.get_keys()

    def find_for_binding(self, type_name: str) -> BindingTypeDescriptor | None:
        """The type a binding should load with: the enabled one, else the first."""
        if not self.exists_any(type_name):
            return None
        enabled = self.get_enabled(type_name)
        return enabled if enabled is not None else self.get(type_name)
