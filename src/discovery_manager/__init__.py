"""
Discovery Manager - keeps the bindings of a multi-package project in sync
with a discovery registry.

Packages declare binding types and bindings in their manifests. When the
same binding or type is declared more than once, exactly one declaration is
chosen (the root package wins). Every change is applied transactionally:
if saving the manifest or updating the registry fails, all changes are
rolled back.

Example:
    from pathlib import Path

    from discovery_manager import (
        BindingDescriptor,
        BindingTypeDescriptor,
        DiscoveryManager,
        InMemoryDiscovery,
        PackageFileStorage,
        PackageLoader,
    )

    storage = PackageFileStorage()
    packages = PackageLoader(storage).load(Path("."))
    manager = DiscoveryManager(packages, InMemoryDiscovery(), storage)

    manager.add_binding_type(BindingTypeDescriptor("acme/translations"))
    manager.add_binding(BindingDescriptor.create("/app/trans/*.xlf", "acme/translations"))
"""

from discovery_manager.config import DiscoveryConfig
from discovery_manager.discovery import (
    BindingArguments,
    BindingCriteria,
    BindingDescriptor,
    BindingParameter,
    BindingParameterDescriptor,
    BindingState,
    BindingType,
    BindingTypeDescriptor,
    BindingTypeState,
    DiscoveryManager,
    EditableDiscovery,
    InMemoryDiscovery,
    JsonFileDiscovery,
    Transaction,
)
from discovery_manager.exceptions import (
    AlreadyLoadedError,
    CannotDisableBindingError,
    CannotEnableBindingError,
    DiscoveryManagerError,
    DiscoveryNotEmptyError,
    DuplicateBindingError,
    DuplicateTypeError,
    MissingParameterError,
    NoQueryMatchesError,
    NoSuchBindingError,
    NoSuchPackageError,
    NoSuchParameterError,
    NoSuchTypeError,
    NotLoadedError,
    StorageError,
    TypeNotEnabledError,
    ValidationError,
)
from discovery_manager.logging import get_logger, setup_logging
from discovery_manager.packages import (
    InstallInfo,
    Package,
    PackageCollection,
    PackageFile,
    PackageFileStorage,
    PackageLoader,
    RootPackage,
    RootPackageFile,
)

__version__ = "0.1.0"

__all__ = [
    # Config
    "DiscoveryConfig",
    # Descriptors
    "BindingArguments",
    "BindingCriteria",
    "BindingDescriptor",
    "BindingParameter",
    "BindingParameterDescriptor",
    "BindingState",
    "BindingType",
    "BindingTypeDescriptor",
    "BindingTypeState",
    # Manager and registry
    "DiscoveryManager",
    "EditableDiscovery",
    "InMemoryDiscovery",
    "JsonFileDiscovery",
    "Transaction",
    # Packages
    "InstallInfo",
    "Package",
    "PackageCollection",
    "PackageFile",
    "PackageFileStorage",
    "PackageLoader",
    "RootPackage",
    "RootPackageFile",
    # Errors
    "AlreadyLoadedError",
    "CannotDisableBindingError",
    "CannotEnableBindingError",
    "DiscoveryManagerError",
    "DiscoveryNotEmptyError",
    "DuplicateBindingError",
    "DuplicateTypeError",
    "MissingParameterError",
    "NoQueryMatchesError",
    "NoSuchBindingError",
    "NoSuchPackageError",
    "NoSuchParameterError",
    "NoSuchTypeError",
    "NotLoadedError",
    "StorageError",
    "TypeNotEnabledError",
    "ValidationError",
    # Logging
    "get_logger",
    "setup_logging",
]
