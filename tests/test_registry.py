"""Tests for the discovery registries."""

import json
from pathlib import Path

import pytest

from discovery_manager.discovery.models import BindingArguments, BindingParameter, BindingType
from discovery_manager.discovery.registry import InMemoryDiscovery, JsonFileDiscovery
from discovery_manager.exceptions import (
    DuplicateTypeError,
    MissingParameterError,
    NoQueryMatchesError,
    NoSuchParameterError,
    NoSuchTypeError,
    StorageError,
)

MY_TYPE = BindingType(
    "my/type",
    (BindingParameter("param", default="default"), BindingParameter("required", required=True)),
)


@pytest.fixture
def discovery() -> InMemoryDiscovery:
    registry = InMemoryDiscovery()
    registry.define_type(MY_TYPE)
    return registry


class TestInMemoryDiscovery:
    """Tests for InMemoryDiscovery."""

    def test_define_twice_raises(self, discovery: InMemoryDiscovery) -> None:
        with pytest.raises(DuplicateTypeError):
            discovery.define_type(MY_TYPE)

    def test_bind_merges_defaults(self, discovery: InMemoryDiscovery) -> None:
        discovery.bind("/path", "my/type", {"required": 1})

        assert discovery.get_bindings() == [
            BindingArguments.create("/path", "my/type", {"param": "default", "required": 1})
        ]
        assert discovery.has_bindings()

    def test_bind_is_idempotent(self, discovery: InMemoryDiscovery) -> None:
        discovery.bind("/path", "my/type", {"required": 1})
        discovery.bind("/path", "my/type", {"required": 1, "param": "default"})

        assert len(discovery.get_bindings()) == 1

    def test_bind_validates(self, discovery: InMemoryDiscovery) -> None:
        with pytest.raises(NoSuchTypeError):
            discovery.bind("/path", "my/other")
        with pytest.raises(MissingParameterError):
            discovery.bind("/path", "my/type")
        with pytest.raises(NoSuchParameterError):
            discovery.bind("/path", "my/type", {"required": 1, "foo": "bar"})

        assert discovery.get_bindings() == []

    def test_bind_rejects_unmatched_queries(self) -> None:
        """Should ask the matcher whether the query finds any resource."""
        discovery = InMemoryDiscovery(matcher=lambda query, language: query.startswith("/app"))
        discovery.define_type(BindingType("my/type"))

        discovery.bind("/app/file", "my/type")
        with pytest.raises(NoQueryMatchesError):
            discovery.bind("/other", "my/type")

        assert [b.query for b in discovery.get_bindings()] == ["/app/file"]

    def test_unbind_with_explicit_values_only(self, discovery: InMemoryDiscovery) -> None:
        discovery.bind("/path", "my/type", {"required": 1})

        discovery.unbind("/path", "my/type", {"required": 1})

        assert discovery.get_bindings() == []

    def test_unbind_unknown_is_noop(self, discovery: InMemoryDiscovery) -> None:
        discovery.unbind("/path", "my/type", {"required": 1})
        discovery.unbind("/path", "my/unknown")

    def test_undefine_drops_bindings(self, discovery: InMemoryDiscovery) -> None:
        discovery.define_type(BindingType("my/other"))
        discovery.bind("/path", "my/type", {"required": 1})
        discovery.bind("/path", "my/other")

        discovery.undefine_type("my/type")

        assert [t.name for t in discovery.get_defined_types()] == ["my/other"]
        assert [b.type_name for b in discovery.get_bindings()] == ["my/other"]
        assert discovery.get_bindings("my/type") == []

    def test_undefine_unknown_is_noop(self, discovery: InMemoryDiscovery) -> None:
        discovery.undefine_type("my/unknown")
        assert discovery.has_defined_types()

    def test_clear(self, discovery: InMemoryDiscovery) -> None:
        discovery.bind("/path", "my/type", {"required": 1})

        discovery.clear()

        assert not discovery.has_bindings()
        assert not discovery.has_defined_types()

    def test_dict_round_trip(self, discovery: InMemoryDiscovery) -> None:
        discovery.bind("/path", "my/type", {"required": 1}, "xpath")
        restored = InMemoryDiscovery()

        restored.load_dict(discovery.to_dict())

        assert restored.get_defined_types() == discovery.get_defined_types()
        assert restored.get_bindings() == discovery.get_bindings()


class TestJsonFileDiscovery:
    """Tests for JsonFileDiscovery."""

    def test_persists_changes(self, tmp_path: Path) -> None:
        path = tmp_path / "registry" / "discovery.json"
        discovery = JsonFileDiscovery(path)
        discovery.define_type(MY_TYPE)
        discovery.bind("/path", "my/type", {"required": 1})

        reopened = JsonFileDiscovery(path)

        assert reopened.get_defined_type("my/type") == MY_TYPE
        assert reopened.get_bindings() == discovery.get_bindings()

    def test_file_format(self, tmp_path: Path) -> None:
        path = tmp_path / "discovery.json"
        discovery = JsonFileDiscovery(path)
        discovery.define_type(BindingType("my/type"))
        discovery.bind("/path", "my/type")

        data = json.loads(path.read_text())

        assert data == {
            "types": {"my/type": {}},
            "bindings": [
                {"query": "/path", "type": "my/type", "language": "glob", "parameters": {}}
            ],
        }

    def test_invalid_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "discovery.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            JsonFileDiscovery(path)

    def test_missing_file_starts_empty(self, tmp_path: Path) -> None:
        discovery = JsonFileDiscovery(tmp_path / "missing.json")

        assert not discovery.has_defined_types()
        assert not (tmp_path / "missing.json").exists()

    def test_failed_write_leaves_state_unchanged(self, tmp_path: Path) -> None:
        """Should undo a change in memory if the file cannot be written."""
        (tmp_path / "blocker").write_text("")
        discovery = JsonFileDiscovery(tmp_path / "blocker" / "discovery.json")

        with pytest.raises(StorageError):
            discovery.define_type(MY_TYPE)

        assert discovery.get_defined_types() == []

    def test_failed_write_keeps_previous_bindings(self, tmp_path: Path) -> None:
        discovery = JsonFileDiscovery(tmp_path / "discovery.json")
        discovery.define_type(BindingType("my/type"))
        discovery.bind("/path", "my/type")
        (tmp_path / "blocker").write_text("")
        discovery.path = tmp_path / "blocker" / "discovery.json"

        with pytest.raises(StorageError):
            discovery.unbind("/path", "my/type")
        with pytest.raises(StorageError):
            discovery.clear()

        assert discovery.get_bindings() == [BindingArguments.create("/path", "my/type")]
        assert discovery.get_defined_types() == [BindingType("my/type")]
