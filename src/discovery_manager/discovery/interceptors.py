"""
Interceptors that keep descriptor marks and states current.

They run after an operation was executed and again after it was rolled
back, so the marks always reflect the store contents at that moment.
"""

from __future__ import annotations

from uuid import UUID

from discovery_manager.discovery.models import BindingDescriptor
from discovery_manager.discovery.resolution import (
    update_duplicate_marks_for_type_name,
    update_duplicate_marks_for_uuid,
    update_overridden_marks_for_uuid,
)
from discovery_manager.discovery.store import BindingDescriptorStore, BindingTypeDescriptorStore
from discovery_manager.discovery.transaction import OperationInterceptor


class UpdateDuplicateMarksForUuid(OperationInterceptor):
    def __init__(
        self, uuid: UUID, binding_store: BindingDescriptorStore, root_package_name: str
    ) -> None:
        self._uuid = uuid
        self._binding_store = binding_store
        self._root_package_name = root_package_name

    def post_execute(self) -> None:
        update_duplicate_marks_for_uuid(self._uuid, self._binding_store, self._root_package_name)

    def post_rollback(self) -> None:
        update_duplicate_marks_for_uuid(self._uuid, self._binding_store, self._root_package_name)


class UpdateOverriddenMarksForUuid(OperationInterceptor):
    def __init__(self, uuid: UUID, binding_store: BindingDescriptorStore) -> None:
        self._uuid = uuid
        self._binding_store = binding_store

    def post_execute(self) -> None:
        update_overridden_marks_for_uuid(self._uuid, self._binding_store)

    def post_rollback(self) -> None:
        update_overridden_marks_for_uuid(self._uuid, self._binding_store)


class UpdateDuplicateMarksForTypeName(OperationInterceptor):
    def __init__(
        self, type_name: str, type_store: BindingTypeDescriptorStore, root_package_name: str
    ) -> None:
        self._type_name = type_name
        self._type_store = type_store
        self._root_package_name = root_package_name

    def post_execute(self) -> None:
        update_duplicate_marks_for_type_name(
            self._type_name, self._type_store, self._root_package_name
        )

    def post_rollback(self) -> None:
        update_duplicate_marks_for_type_name(
            self._type_name, self._type_store, self._root_package_name
        )


class _ReloadBindingDescriptors(OperationInterceptor):
    """
    Unload and load bindings again so their state follows the type store.

    Reloading clears the duplicate and overridden marks, so both passes run
    again for every reloaded UUID. Running the reload twice in a row gives
    the same result as running it once.
    """

    def __init__(
        self,
        binding_store: BindingDescriptorStore,
        type_store: BindingTypeDescriptorStore,
        root_package_name: str,
    ) -> None:
        self._binding_store = binding_store
        self._type_store = type_store
        self._root_package_name = root_package_name

    def _get_descriptors(self) -> list[BindingDescriptor]:
        raise NotImplementedError

    def post_execute(self) -> None:
        self._reload()

    def post_rollback(self) -> None:
        self._reload()

    def _reload(self) -> None:
        uuids: dict[UUID, None] = {}
        for descriptor in self._get_descriptors():
            if not descriptor.is_loaded():
                continue
            package = descriptor.containing_package
            descriptor.unload()
            descriptor.load(package, self._type_store.find_for_binding(descriptor.type_name))
            uuids[descriptor.uuid] = None

        for uuid in uuids:
            update_overridden_marks_for_uuid(uuid, self._binding_store)
            update_duplicate_marks_for_uuid(uuid, self._binding_store, self._root_package_name)


class ReloadBindingDescriptorsByTypeName(_ReloadBindingDescriptors):
    def __init__(
        self,
        type_name: str,
        binding_store: BindingDescriptorStore,
        type_store: BindingTypeDescriptorStore,
        root_package_name: str,
    ) -> None:
        super().__init__(binding_store, type_store, root_package_name)
        self._type_name = type_name

    def _get_descriptors(self) -> list[BindingDescriptor]:
        return self._binding_store.list_by_type_name(self._type_name)


class ReloadBindingDescriptorsByUuid(_ReloadBindingDescriptors):
    def __init__(
        self,
        uuid: UUID,
        binding_store: BindingDescriptorStore,
        type_store: BindingTypeDescriptorStore,
        root_package_name: str,
    ) -> None:
        super().__init__(binding_store, type_store, root_package_name)
        self._uuid = uuid

    def _get_descriptors(self) -> list[BindingDescriptor]:
        if not self._binding_store.exists_any(self._uuid):
            return []
        return self._binding_store.list_all(self._uuid)
