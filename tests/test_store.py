"""Tests for the descriptor stores."""

import pytest

from discovery_manager.discovery.models import BindingDescriptor, BindingTypeDescriptor
from discovery_manager.discovery.store import (
    BindingDescriptorStore,
    BindingTypeDescriptorStore,
    CompositeKeyStore,
)


class TestCompositeKeyStore:
    """Tests for CompositeKeyStore."""

    def test_keeps_insertion_order(self) -> None:
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.set("key", "b", 1)
        store.set("key", "a", 2)

        assert store.get_first("key") == 1
        assert store.get_package_names("key") == ["b", "a"]

    def test_overwrite_keeps_position(self) -> None:
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.set("key", "b", 1)
        store.set("key", "a", 2)
        store.set("key", "b", 3)

        assert store.get_all("key") == {"b": 3, "a": 2}

    def test_remove_drops_empty_group(self) -> None:
        """Should forget a key once its last package is removed."""
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.set("key", "a", 1)

        store.remove("key", "a")

        assert not store.contains("key")
        assert store.is_empty()
        assert store.get_keys() == []

    def test_remove_unknown_is_noop(self) -> None:
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.remove("key", "a")
        assert store.is_empty()

    def test_missing_entries_raise(self) -> None:
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.set("key", "a", 1)

        with pytest.raises(KeyError):
            store.get("key", "b")
        with pytest.raises(KeyError):
            store.get_first("other")
        with pytest.raises(KeyError):
            store.get_all("other")

    def test_package_names_across_keys(self) -> None:
        store: CompositeKeyStore[int] = CompositeKeyStore()
        store.set("k1", "a", 1)
        store.set("k2", "b", 2)
        store.set("k2", "a", 3)

        assert store.get_package_names() == ["a", "b"]
        assert store.get_package_names("missing") == []


class TestBindingDescriptorStore:
    """Tests for BindingDescriptorStore."""

    def test_add_and_get(self, sample_binding: BindingDescriptor) -> None:
        store = BindingDescriptorStore()
        other = BindingDescriptor.create("/path", "my/type")

        store.add(sample_binding, "vendor/a")
        store.add(other, "vendor/b")

        assert store.get(sample_binding.uuid) is sample_binding
        assert store.get(sample_binding.uuid, "vendor/b") is other
        assert store.get_owning_package_names(sample_binding.uuid) == ["vendor/a", "vendor/b"]
        assert store.get_uuids() == [sample_binding.uuid]

    def test_get_enabled(
        self, sample_binding: BindingDescriptor, sample_type: BindingTypeDescriptor, package1, package2
    ) -> None:
        store = BindingDescriptorStore()
        held_back = BindingDescriptor.create("/path", "my/type")
        held_back.load(package1)
        sample_type.load(package2)
        sample_binding.load(package2, sample_type)

        store.add(held_back, package1.name)
        assert store.get_enabled(sample_binding.uuid) is None
        assert not store.exists_enabled(sample_binding.uuid)

        store.add(sample_binding, package2.name)
        assert store.get_enabled(sample_binding.uuid) is sample_binding

    def test_list_by_type_name(self) -> None:
        store = BindingDescriptorStore()
        a = BindingDescriptor.create("/a", "my/type")
        b = BindingDescriptor.create("/b", "my/other")
        c = BindingDescriptor.create("/c", "my/type")
        for descriptor in (a, b, c):
            store.add(descriptor, "vendor/a")

        assert store.list_by_type_name("my/type") == [a, c]

    def test_remove(self, sample_binding: BindingDescriptor) -> None:
        store = BindingDescriptorStore()
        store.add(sample_binding, "vendor/a")

        store.remove(sample_binding.uuid, "vendor/a")

        assert not store.exists_any(sample_binding.uuid)
        assert store.is_empty()


class TestBindingTypeDescriptorStore:
    """Tests for BindingTypeDescriptorStore."""

    def test_find_for_binding_prefers_enabled(self, package1, package2) -> None:
        store = BindingTypeDescriptorStore()
        first = BindingTypeDescriptor("my/type")
        second = BindingTypeDescriptor("my/type")
        first.load(package1)
        first.mark_duplicate(True)
        second.load(package2)
        store.add(first, package1.name)
        store.add(second, package2.name)

        assert store.find_for_binding("my/type") is second

    def test_find_for_binding_falls_back_to_first(self, package1, package2) -> None:
        store = BindingTypeDescriptorStore()
        first = BindingTypeDescriptor("my/type")
        second = BindingTypeDescriptor("my/type")
        for descriptor, package in ((first, package1), (second, package2)):
            descriptor.load(package)
            descriptor.mark_duplicate(True)
            store.add(descriptor, package.name)

        assert store.find_for_binding("my/type") is first

    def test_find_for_binding_unknown_type(self) -> None:
        assert BindingTypeDescriptorStore().find_for_binding("my/type") is None

    def test_type_names(self) -> None:
        store = BindingTypeDescriptorStore()
        store.add(BindingTypeDescriptor("my/b"), "vendor/a")
        store.add(BindingTypeDescriptor("my/a"), "vendor/a")

        assert store.get_type_names() == ["my/b", "my/a"]
        assert store.exists("my/a", "vendor/a")
        assert not store.exists("my/a", "vendor/b")
