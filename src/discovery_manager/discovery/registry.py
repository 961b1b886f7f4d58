"""
Discovery registry.

The registry holds the live set of binding types and bindings that
resource consumers query. The manager only talks to it through the
``EditableDiscovery`` interface.

Example:
    discovery = InMemoryDiscovery()
    discovery.define_type(BindingType("acme/translations"))
    discovery.bind("/app/trans/*.xlf", "acme/translations")
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from discovery_manager.discovery.models import (
    DEFAULT_LANGUAGE,
    BindingArguments,
    BindingParameter,
    BindingType,
)
from discovery_manager.exceptions import (
    DuplicateTypeError,
    MissingParameterError,
    NoQueryMatchesError,
    NoSuchParameterError,
    NoSuchTypeError,
    StorageError,
)
from discovery_manager.logging import get_logger

logger = get_logger("discovery.registry")

QueryMatcher = Callable[[str, str], bool]


class EditableDiscovery(ABC):
    """Interface of a discovery registry that can be modified."""

    @abstractmethod
    def define_type(self, binding_type: BindingType) -> None:
        """Define a type. Raises DuplicateTypeError if it is defined already."""

    @abstractmethod
    def undefine_type(self, type_name: str) -> None:
        """Remove a type and all of its bindings."""

    @abstractmethod
    def bind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        """Add a binding."""

    @abstractmethod
    def unbind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        """Remove a binding. Unknown bindings are ignored."""

    @abstractmethod
    def get_bindings(self, type_name: str | None = None) -> list[BindingArguments]: ...

    @abstractmethod
    def get_defined_types(self) -> list[BindingType]: ...

    @abstractmethod
    def clear(self) -> None:
        """Remove all types and bindings."""

    def has_bindings(self) -> bool:
        return bool(self.get_bindings())

    def has_defined_types(self) -> bool:
        return bool(self.get_defined_types())


class InMemoryDiscovery(EditableDiscovery):
    """
    Registry that keeps its state in memory.

    Args:
        matcher: Optional ``matcher(query, language)`` returning whether the
            query matches any resource. Bindings whose query matches nothing
            are rejected.
    """

    def __init__(self, matcher: QueryMatcher | None = None) -> None:
        self._matcher = matcher
        self._types: dict[str, BindingType] = {}
        self._bindings: list[BindingArguments] = []

    def define_type(self, binding_type: BindingType) -> None:
        if binding_type.name in self._types:
            raise DuplicateTypeError.for_type_name(binding_type.name)
        logger.debug("Defining type %s", binding_type.name)
        self._types[binding_type.name] = binding_type

    def undefine_type(self, type_name: str) -> None:
        if type_name not in self._types:
            return
        logger.debug("Undefining type %s", type_name)
        del self._types[type_name]
        self._bindings = [b for b in self._bindings if b.type_name != type_name]

    def bind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        binding = self._create_binding(query, type_name, parameter_values, language)
        if self._matcher is not None and not self._matcher(query, language):
            raise NoQueryMatchesError.for_query(query, language)
        if binding in self._bindings:
            return
        logger.debug("Binding %s to %s", query, type_name)
        self._bindings.append(binding)

    def unbind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        binding_type = self._types.get(type_name)
        values = dict(parameter_values or {})
        if binding_type is not None:
            values = {**binding_type.get_parameter_values(), **values}
        binding = BindingArguments.create(query, type_name, values, language)
        if binding in self._bindings:
            logger.debug("Unbinding %s from %s", query, type_name)
            self._bindings.remove(binding)

    def get_bindings(self, type_name: str | None = None) -> list[BindingArguments]:
        if type_name is None:
            return list(self._bindings)
        return [b for b in self._bindings if b.type_name == type_name]

    def get_defined_types(self) -> list[BindingType]:
        return list(self._types.values())

    def get_defined_type(self, type_name: str) -> BindingType:
        if type_name not in self._types:
            raise NoSuchTypeError.for_type_name(type_name)
        return self._types[type_name]

    def clear(self) -> None:
        logger.debug("Clearing discovery")
        self._types.clear()
        self._bindings.clear()

    def _create_binding(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None,
        language: str,
    ) -> BindingArguments:
        binding_type = self.get_defined_type(type_name)
        values = dict(parameter_values or {})
        for parameter in binding_type.parameters:
            if parameter.required and parameter.name not in values:
                raise MissingParameterError.for_parameter_name(parameter.name, type_name)
        for name in values:
            if not binding_type.has_parameter(name):
                raise NoSuchParameterError.for_parameter_name(name, type_name)
        return BindingArguments.create(
            query, type_name, {**binding_type.get_parameter_values(), **values}, language
        )

    # -- serialization -------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "types": {
                binding_type.name: {
                    parameter.name: {"required": parameter.required, "default": parameter.default}
                    for parameter in binding_type.parameters
                }
                for binding_type in self._types.values()
            },
            "bindings": [
                {
                    "query": binding.query,
                    "type": binding.type_name,
                    "language": binding.language,
                    "parameters": binding.get_parameter_values(),
                }
                for binding in self._bindings
            ],
        }

    def load_dict(self, data: dict[str, Any]) -> None:
        """Replace the state with one exported by ``to_dict()``."""
        self._types = {
            name: BindingType(
                name,
                tuple(
                    BindingParameter(p_name, p.get("required", False), p.get("default"))
                    for p_name, p in (parameters or {}).items()
                ),
            )
            for name, parameters in data.get("types", {}).items()
        }
        self._bindings = [
            BindingArguments.create(
                b["query"], b["type"], b.get("parameters"), b.get("language", DEFAULT_LANGUAGE)
            )
            for b in data.get("bindings", [])
        ]


class JsonFileDiscovery(InMemoryDiscovery):
    """
    Registry that persists its state to a JSON file after each change.

    If the file cannot be written, the change is undone in memory before
    the ``StorageError`` propagates.
    """

    def __init__(self, path: Path, matcher: QueryMatcher | None = None) -> None:
        super().__init__(matcher)
        self.path = Path(path)
        if self.path.exists():
            try:
                with open(self.path) as f:
                    self.load_dict(json.load(f))
            except (OSError, json.JSONDecodeError, KeyError) as e:
                raise StorageError(f"Failed to read the discovery file {self.path}: {e}") from e

    def define_type(self, binding_type: BindingType) -> None:
        previous = self._copy_state()
        super().define_type(binding_type)
        self._save(previous)

    def undefine_type(self, type_name: str) -> None:
        previous = self._copy_state()
        super().undefine_type(type_name)
        self._save(previous)

    def bind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        previous = self._copy_state()
        super().bind(query, type_name, parameter_values, language)
        self._save(previous)

    def unbind(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        previous = self._copy_state()
        super().unbind(query, type_name, parameter_values, language)
        self._save(previous)

    def clear(self) -> None:
        previous = self._copy_state()
        super().clear()
        self._save(previous)

    def _copy_state(self) -> tuple[dict[str, BindingType], list[BindingArguments]]:
        return dict(self._types), list(self._bindings)

    def _save(self, previous: tuple[dict[str, BindingType], list[BindingArguments]]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.to_dict(), indent=2))
        except OSError as e:
            self._types, self._bindings = previous
            raise StorageError(f"Failed to write the discovery file {self.path}: {e}") from e
