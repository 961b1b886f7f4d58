"""
Descriptor models for binding types and bindings.

A *descriptor* is the manager's own tracking record for a type or binding
declared in a package manifest. Descriptors are loaded into a package,
which computes their state, and unloaded again when the package releases
them. The lightweight ``BindingType`` and ``BindingArguments`` values are
what actually travels to the discovery registry.
"""

from __future__ import annotations

import re
import uuid as uuid_lib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from discovery_manager.exceptions import (
    AlreadyLoadedError,
    NoSuchParameterError,
    NotLoadedError,
    ValidationError,
)

if TYPE_CHECKING:
    from discovery_manager.packages.models import Package

DEFAULT_LANGUAGE = "glob"

# Separates the type name from the parameter name in "vendor/type:param"
PARAMETER_DELIMITER = ":"

TYPE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9\-]*/[a-z0-9\-]+$")
PARAMETER_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9\-]*$")

BINDING_UUID_NAMESPACE = uuid_lib.uuid5(uuid_lib.NAMESPACE_URL, "discovery-manager:binding")

_SCALAR_TYPES = (str, int, float, bool)


def _assert_scalar(value: Any, what: str) -> None:
    if value is not None and not isinstance(value, _SCALAR_TYPES):
        raise ValidationError(
            f"The {what} must be a scalar value, got {type(value).__name__}."
        )


def _assert_non_empty_string(value: Any, what: str) -> None:
    if not isinstance(value, str):
        raise ValidationError(f"The {what} must be a string, got {type(value).__name__}.")
    if not value:
        raise ValidationError(f"The {what} must not be empty.")


def validate_type_name(name: Any) -> None:
    """Raise ValidationError unless ``name`` looks like ``vendor/name``."""
    _assert_non_empty_string(name, "type name")
    if not TYPE_NAME_PATTERN.match(name):
        raise ValidationError(
            f'The type name "{name}" must have the format "vendor/name" and contain '
            "lowercase letters, digits and hyphens only."
        )


def generate_binding_uuid(
    query: str,
    type_name: str,
    parameter_values: Mapping[str, Any],
    language: str,
) -> UUID:
    """Derive the stable UUID of a binding from its arguments."""
    parts = [query, type_name]
    for name in sorted(parameter_values):
        value = parameter_values[name]
        parts.append(f"{name}={type(value).__name__}:{value!r}")
    parts.append(language)
    return uuid_lib.uuid5(BINDING_UUID_NAMESPACE, "\x00".join(parts))


class BindingState(str, Enum):
    """State of a binding descriptor, derived on every load and mark."""

    UNLOADED = "unloaded"
    ENABLED = "enabled"
    DISABLED = "disabled"
    DUPLICATE = "duplicate"
    OVERRIDDEN = "overridden"
    HELD_BACK = "held-back"
    IGNORED = "ignored"


class BindingTypeState(str, Enum):
    """State of a binding type descriptor."""

    NOT_LOADED = "not-loaded"
    ENABLED = "enabled"
    DUPLICATE = "duplicate"


class ViolationCode(str, Enum):
    MISSING_PARAMETER = "missing-parameter"
    NO_SUCH_PARAMETER = "no-such-parameter"


@dataclass(frozen=True)
class ConstraintViolation:
    """A binding does not satisfy the parameter declarations of its type."""

    code: ViolationCode
    parameter_name: str
    type_name: str

    @property
    def message(self) -> str:
        if self.code == ViolationCode.MISSING_PARAMETER:
            return f'The parameter "{self.parameter_name}" is missing.'
        return f'The parameter "{self.parameter_name}" does not exist.'


# ---------------------------------------------------------------------------
# Registry values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BindingParameter:
    """A parameter as registered with the discovery registry."""

    name: str
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class BindingType:
    """A binding type as registered with the discovery registry."""

    name: str
    parameters: tuple[BindingParameter, ...] = ()

    def has_parameter(self, name: str) -> bool:
        return any(p.name == name for p in self.parameters)

    def get_parameter(self, name: str) -> BindingParameter:
        for parameter in self.parameters:
            if parameter.name == name:
                return parameter
        raise NoSuchParameterError.for_parameter_name(name, self.name)

    def get_parameter_values(self) -> dict[str, Any]:
        """Defaults of all optional parameters."""
        return {p.name: p.default for p in self.parameters if not p.required}


@dataclass(frozen=True)
class BindingArguments:
    """
    Immutable snapshot of the arguments of a bind or unbind call.

    Operations capture this value when they are built, so later changes to
    the live descriptor never leak into their rollback.
    """

    query: str
    type_name: str
    parameter_values: tuple[tuple[str, Any], ...] = ()
    language: str = DEFAULT_LANGUAGE

    @classmethod
    def create(
        cls,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> BindingArguments:
        items = tuple(sorted((parameter_values or {}).items()))
        return cls(query=query, type_name=type_name, parameter_values=items, language=language)

    @classmethod
    def from_descriptor(cls, descriptor: BindingDescriptor) -> BindingArguments:
        """Snapshot a descriptor, including the defaults of its loaded type."""
        return cls.create(
            descriptor.query,
            descriptor.type_name,
            descriptor.get_parameter_values(include_defaults=True),
            descriptor.language,
        )

    def get_parameter_values(self) -> dict[str, Any]:
        return dict(self.parameter_values)


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BindingParameterDescriptor:
    """Declaration of a parameter of a binding type."""

    name: str
    required: bool = False
    default: Any = None
    description: str | None = None

    def __post_init__(self) -> None:
        _assert_non_empty_string(self.name, "parameter name")
        if not PARAMETER_NAME_PATTERN.match(self.name):
            raise ValidationError(
                f'The parameter name "{self.name}" must start with a lowercase letter '
                "and contain lowercase letters, digits and hyphens only."
            )
        _assert_scalar(self.default, "parameter default")
        if self.required and self.default is not None:
            raise ValidationError(
                f'The required parameter "{self.name}" must not have a default value.'
            )

    def to_binding_parameter(self) -> BindingParameter:
        return BindingParameter(self.name, self.required, self.default)


class BindingTypeDescriptor:
    """
    Describes a binding type declared by a package.

    Example:
        descriptor = BindingTypeDescriptor(
            "acme/translations",
            parameters=[BindingParameterDescriptor("locale", default="en")],
        )
    """

    def __init__(
        self,
        name: str,
        description: str | None = None,
        parameters: Iterable[BindingParameterDescriptor] = (),
    ) -> None:
        validate_type_name(name)
        if description is not None:
            _assert_non_empty_string(description, "type description")

        self._name = name
        self._description = description
        self._parameters: dict[str, BindingParameterDescriptor] = {}
        for parameter in parameters:
            self._parameters[parameter.name] = parameter

        self._state = BindingTypeState.NOT_LOADED
        self._containing_package: Package | None = None
        self._duplicate = False

    def __repr__(self) -> str:
        return f"BindingTypeDescriptor({self._name!r}, state={self._state.value})"

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str | None:
        return self._description

    @property
    def parameters(self) -> dict[str, BindingParameterDescriptor]:
        return dict(self._parameters)

    def get_parameter(self, name: str) -> BindingParameterDescriptor:
        if name not in self._parameters:
            raise NoSuchParameterError.for_parameter_name(name, self._name)
        return self._parameters[name]

    def has_parameter(self, name: str) -> bool:
        return name in self._parameters

    def has_required_parameters(self) -> bool:
        return any(p.required for p in self._parameters.values())

    def get_parameter_values(self) -> dict[str, Any]:
        """Defaults of all optional parameters."""
        return {p.name: p.default for p in self._parameters.values() if not p.required}

    def to_binding_type(self) -> BindingType:
        return BindingType(
            self._name,
            tuple(p.to_binding_parameter() for p in self._parameters.values()),
        )

    # -- lifecycle -----------------------------------------------------------

    def load(self, package: Package) -> None:
        if self._state != BindingTypeState.NOT_LOADED:
            raise AlreadyLoadedError(f'The type "{self._name}" is already loaded.')
        self._containing_package = package
        self._duplicate = False
        self._refresh_state()

    def unload(self) -> None:
        if self._state == BindingTypeState.NOT_LOADED:
            raise NotLoadedError(f'The type "{self._name}" is not loaded.')
        self._containing_package = None
        self._duplicate = False
        self._refresh_state()

    def mark_duplicate(self, duplicate: bool) -> None:
        if not self.is_loaded():
            raise NotLoadedError(f'The type "{self._name}" is not loaded.')
        self._duplicate = duplicate
        self._refresh_state()

    def _refresh_state(self) -> None:
        if self._containing_package is None:
            self._state = BindingTypeState.NOT_LOADED
        elif self._duplicate:
            self._state = BindingTypeState.DUPLICATE
        else:
            self._state = BindingTypeState.ENABLED

    @property
    def containing_package(self) -> Package:
        if self._containing_package is None:
            raise NotLoadedError(f'The type "{self._name}" is not loaded.')
        return self._containing_package

    @property
    def state(self) -> BindingTypeState:
        return self._state

    def is_loaded(self) -> bool:
        return self._containing_package is not None

    def is_enabled(self) -> bool:
        return self._state == BindingTypeState.ENABLED

    def is_duplicate(self) -> bool:
        return self._state == BindingTypeState.DUPLICATE


class BindingDescriptor:
    """
    Describes a binding declared by a package.

    A binding associates a resource query with a binding type. Its UUID is
    derived from the arguments unless given explicitly.

    Example:
        descriptor = BindingDescriptor.create("/app/trans/*.xlf", "acme/translations")
    """

    def __init__(
        self,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
        uuid: UUID | None = None,
    ) -> None:
        _assert_non_empty_string(query, "query")
        _assert_non_empty_string(type_name, "type name")
        _assert_non_empty_string(language, "language")

        values = dict(parameter_values or {})
        for name, value in values.items():
            _assert_non_empty_string(name, "parameter name")
            if PARAMETER_DELIMITER in name:
                raise ValidationError(
                    f'The parameter name "{name}" must not contain "{PARAMETER_DELIMITER}".'
                )
            _assert_scalar(value, f'value of the parameter "{name}"')

        if uuid is None:
            uuid = generate_binding_uuid(query, type_name, values, language)
        elif not isinstance(uuid, UUID):
            raise ValidationError(f"The UUID must be a UUID instance, got {type(uuid).__name__}.")

        self._uuid = uuid
        self._query = query
        self._type_name = type_name
        self._parameter_values = values
        self._language = language

        self._state = BindingState.UNLOADED
        self._containing_package: Package | None = None
        self._type_descriptor: BindingTypeDescriptor | None = None
        self._violations: list[ConstraintViolation] = []
        self._duplicate = False
        self._overridden = False

    @classmethod
    def create(
        cls,
        query: str,
        type_name: str,
        parameter_values: Mapping[str, Any] | None = None,
        language: str = DEFAULT_LANGUAGE,
    ) -> BindingDescriptor:
        """Create a descriptor with a UUID generated from its arguments."""
        return cls(query, type_name, parameter_values, language)

    def __repr__(self) -> str:
        return (
            f"BindingDescriptor({self._query!r}, {self._type_name!r}, "
            f"uuid={self._uuid}, state={self._state.value})"
        )

    @property
    def uuid(self) -> UUID:
        return self._uuid

    @property
    def query(self) -> str:
        return self._query

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def language(self) -> str:
        return self._language

    def get_parameter_values(self, include_defaults: bool = False) -> dict[str, Any]:
        """
        Get the parameter values of the binding.

        Args:
            include_defaults: Merge the defaults of the loaded type under the
                explicit values. Only takes effect while the type is enabled.
        """
        values: dict[str, Any] = {}
        type_descriptor = self._type_descriptor
        if include_defaults and type_descriptor is not None and type_descriptor.is_enabled():
            values.update(type_descriptor.get_parameter_values())
        values.update(self._parameter_values)
        return values

    def get_parameter_value(self, name: str, include_defaults: bool = False) -> Any:
        values = self.get_parameter_values(include_defaults)
        if name not in values:
            raise NoSuchParameterError.for_parameter_name(name, self._type_name)
        return values[name]

    def has_parameter_value(self, name: str, include_defaults: bool = False) -> bool:
        return name in self.get_parameter_values(include_defaults)

    def has_parameter_values(self, include_defaults: bool = False) -> bool:
        return bool(self.get_parameter_values(include_defaults))

    # -- lifecycle -----------------------------------------------------------

    def load(self, package: Package, type_descriptor: BindingTypeDescriptor | None = None) -> None:
        """
        Attach the descriptor to its package and compute its state.

        Args:
            package: The package that declares the binding
            type_descriptor: The type of the binding, if known
        """
        if self._containing_package is not None:
            raise AlreadyLoadedError(f'The binding "{self._uuid}" is already loaded.')
        if type_descriptor is not None and type_descriptor.name != self._type_name:
            raise ValidationError(
                f'The type "{type_descriptor.name}" does not match the binding type '
                f'"{self._type_name}".'
            )

        self._containing_package = package
        self._type_descriptor = type_descriptor
        self._duplicate = False
        self._overridden = False
        self._violations = self._find_violations()
        self._refresh_state()

    def unload(self) -> None:
        if self._containing_package is None:
            raise NotLoadedError(f'The binding "{self._uuid}" is not loaded.')
        self._containing_package = None
        self._type_descriptor = None
        self._duplicate = False
        self._overridden = False
        self._violations = []
        self._refresh_state()

    def mark_duplicate(self, duplicate: bool) -> None:
        if self._containing_package is None:
            raise NotLoadedError(f'The binding "{self._uuid}" is not loaded.')
        self._duplicate = duplicate
        self._refresh_state()

    def mark_overridden(self, overridden: bool) -> None:
        if self._containing_package is None:
            raise NotLoadedError(f'The binding "{self._uuid}" is not loaded.')
        self._overridden = overridden
        self._refresh_state()

    def _find_violations(self) -> list[ConstraintViolation]:
        type_descriptor = self._type_descriptor
        if type_descriptor is None or not type_descriptor.is_enabled():
            return []

        violations = []
        for parameter in type_descriptor.parameters.values():
            if parameter.required and parameter.name not in self._parameter_values:
                violations.append(
                    ConstraintViolation(
                        ViolationCode.MISSING_PARAMETER, parameter.name, self._type_name
                    )
                )
        for name in self._parameter_values:
            if not type_descriptor.has_parameter(name):
                violations.append(
                    ConstraintViolation(ViolationCode.NO_SUCH_PARAMETER, name, self._type_name)
                )
        return violations

    def _refresh_state(self) -> None:
        if self._containing_package is None:
            self._state = BindingState.UNLOADED
        elif self._type_descriptor is None or not self._type_descriptor.is_enabled():
            self._state = BindingState.HELD_BACK
        elif self._violations:
            self._state = BindingState.IGNORED
        elif self._overridden:
            self._state = BindingState.OVERRIDDEN
        elif self._duplicate:
            self._state = BindingState.DUPLICATE
        elif self.is_disabled_by_install_info():
            self._state = BindingState.DISABLED
        else:
            self._state = BindingState.ENABLED

    def is_disabled_by_install_info(self) -> bool:
        """Whether the owning package explicitly disabled this UUID."""
        if self._containing_package is None:
            return False
        install_info = self._containing_package.install_info
        return install_info is not None and install_info.has_disabled_binding_uuid(self._uuid)

    @property
    def containing_package(self) -> Package:
        if self._containing_package is None:
            raise NotLoadedError(f'The binding "{self._uuid}" is not loaded.')
        return self._containing_package

    @property
    def type_descriptor(self) -> BindingTypeDescriptor | None:
        if self._containing_package is None:
            raise NotLoadedError(f'The binding "{self._uuid}" is not loaded.')
        return self._type_descriptor

    @property
    def state(self) -> BindingState:
        return self._state

    def get_violations(self) -> list[ConstraintViolation]:
        return list(self._violations)

    def is_loaded(self) -> bool:
        return self._containing_package is not None

    def is_enabled(self) -> bool:
        return self._state == BindingState.ENABLED

    def is_disabled(self) -> bool:
        return self._state == BindingState.DISABLED

    def is_duplicate(self) -> bool:
        return self._state == BindingState.DUPLICATE

    def is_overridden(self) -> bool:
        return self._state == BindingState.OVERRIDDEN

    def is_held_back(self) -> bool:
        return self._state == BindingState.HELD_BACK

    def is_ignored(self) -> bool:
        return self._state == BindingState.IGNORED


@dataclass(frozen=True)
class BindingCriteria:
    """
    Immutable filter for binding descriptors.

    Every field that is set must match; unset fields match anything.
    """

    uuid_prefix: str | None = None
    package_names: frozenset[str] | None = None
    states: frozenset[BindingState] | None = None
    type_name: str | None = None
    language: str | None = None
    query: str | None = None

    def __post_init__(self) -> None:
        # Accept any iterable for the set-valued fields
        if self.package_names is not None and not isinstance(self.package_names, frozenset):
            object.__setattr__(self, "package_names", frozenset(self.package_names))
        if self.states is not None and not isinstance(self.states, frozenset):
            object.__setattr__(self, "states", frozenset(self.states))

    def matches(self, descriptor: BindingDescriptor) -> bool:
        if self.uuid_prefix is not None and not str(descriptor.uuid).startswith(
            self.uuid_prefix.lower()
        ):
            return False
        if self.package_names is not None:
            if not descriptor.is_loaded():
                return False
            if descriptor.containing_package.name not in self.package_names:
                return False
        if self.states is not None and descriptor.state not in self.states:
            return False
        if self.type_name is not None and descriptor.type_name != self.type_name:
            return False
        if self.language is not None and descriptor.language != self.language:
            return False
        if self.query is not None and descriptor.query != self.query:
            return False
        return True
