"""
Exception hierarchy for the discovery manager.

Every error raised on purpose by this package derives from
``DiscoveryManagerError`` so callers can catch the whole family at once.
Errors that describe a domain condition provide classmethod constructors
that produce a consistent message.
"""

from __future__ import annotations

from typing import Any


class DiscoveryManagerError(Exception):
    """Base class for all discovery manager errors."""


class ValidationError(DiscoveryManagerError, ValueError):
    """A query, type name, parameter name or value is malformed."""


class AlreadyLoadedError(DiscoveryManagerError):
    """A descriptor was loaded twice without being unloaded."""


class NotLoadedError(DiscoveryManagerError):
    """A descriptor was used in a way that requires it to be loaded."""


class StorageError(DiscoveryManagerError):
    """A manifest or registry file could not be read or written."""


class NoSuchTypeError(DiscoveryManagerError):
    """A binding type is not known."""

    @classmethod
    def for_type_name(cls, type_name: str) -> NoSuchTypeError:
        return cls(f'The binding type "{type_name}" does not exist.')


class TypeNotEnabledError(DiscoveryManagerError):
    """A binding type exists but is not enabled (e.g. it is duplicated)."""

    @classmethod
    def for_type_name(cls, type_name: str) -> TypeNotEnabledError:
        return cls(f'The binding type "{type_name}" is not enabled.')


class DuplicateTypeError(DiscoveryManagerError):
    """A binding type is already defined."""

    @classmethod
    def for_type_name(cls, type_name: str) -> DuplicateTypeError:
        return cls(f'The binding type "{type_name}" is already defined.')


class MissingParameterError(DiscoveryManagerError):
    """A required binding parameter was not supplied."""

    @classmethod
    def for_parameter_name(cls, parameter_name: str, type_name: str) -> MissingParameterError:
        return cls(
            f'The parameter "{parameter_name}" is required by the binding type "{type_name}".'
        )


class NoSuchParameterError(DiscoveryManagerError):
    """A binding parameter is not declared by its type."""

    @classmethod
    def for_parameter_name(
        cls, parameter_name: str, type_name: str | None = None
    ) -> NoSuchParameterError:
        if type_name is None:
            return cls(f'The parameter "{parameter_name}" does not exist.')
        return cls(
            f'The parameter "{parameter_name}" does not exist on the binding type "{type_name}".'
        )


class NoQueryMatchesError(DiscoveryManagerError):
    """A binding query does not match any resource."""

    @classmethod
    def for_query(cls, query: str, language: str = "glob") -> NoQueryMatchesError:
        return cls(f'The query "{query}" ({language}) did not match any resources.')


class NoSuchBindingError(DiscoveryManagerError):
    """No binding with the given UUID exists."""

    @classmethod
    def for_uuid(cls, uuid: Any) -> NoSuchBindingError:
        return cls(f'The binding with UUID "{uuid}" does not exist.')


class DuplicateBindingError(DiscoveryManagerError):
    """The root package already contains a binding with the given UUID."""

    @classmethod
    def for_uuid(cls, uuid: Any) -> DuplicateBindingError:
        return cls(f'The root package already contains a binding with UUID "{uuid}".')


class NoSuchPackageError(DiscoveryManagerError):
    """A package is not part of the project."""

    @classmethod
    def for_package_name(cls, package_name: str) -> NoSuchPackageError:
        return cls(f'The package "{package_name}" does not exist.')


class DiscoveryNotEmptyError(DiscoveryManagerError):
    """The discovery registry must be empty for this operation."""


class CannotEnableBindingError(DiscoveryManagerError):
    """A binding cannot be enabled in a package."""

    @classmethod
    def root_package_not_accepted(cls, uuid: Any, package_name: str) -> CannotEnableBindingError:
        return cls(
            f'Cannot enable the binding "{uuid}" in the package "{package_name}": '
            "bindings of the root package are always enabled."
        )

    @classmethod
    def type_not_loaded(cls, uuid: Any, package_name: str) -> CannotEnableBindingError:
        return cls(
            f'Cannot enable the binding "{uuid}" in the package "{package_name}": '
            "its type is not loaded."
        )

    @classmethod
    def invalid(cls, uuid: Any, package_name: str) -> CannotEnableBindingError:
        return cls(
            f'Cannot enable the binding "{uuid}" in the package "{package_name}": '
            "the binding is invalid."
        )


class CannotDisableBindingError(DiscoveryManagerError):
    """A binding cannot be disabled in a package."""

    @classmethod
    def root_package_not_accepted(cls, uuid: Any, package_name: str) -> CannotDisableBindingError:
        return cls(
            f'Cannot disable the binding "{uuid}" in the package "{package_name}": '
            "bindings of the root package cannot be disabled."
        )

    @classmethod
    def type_not_loaded(cls, uuid: Any, package_name: str) -> CannotDisableBindingError:
        return cls(
            f'Cannot disable the binding "{uuid}" in the package "{package_name}": '
            "its type is not loaded."
        )

    @classmethod
    def invalid(cls, uuid: Any, package_name: str) -> CannotDisableBindingError:
        return cls(
            f'Cannot disable the binding "{uuid}" in the package "{package_name}": '
            "the binding is invalid."
        )
