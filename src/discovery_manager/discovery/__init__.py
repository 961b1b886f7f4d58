"""Binding and type reconciliation against a discovery registry."""
from __future__ import annotations

from discovery_manager.discovery.models import (
    BindingArguments,
    BindingCriteria,
    BindingDescriptor,
    BindingParameter,
    BindingParameterDescriptor,
    BindingState,
    BindingType,
    BindingTypeDescriptor,
    BindingTypeState,
    ConstraintViolation,
    ViolationCode,
)
from discovery_manager.discovery.registry import (
    EditableDiscovery,
    InMemoryDiscovery,
    JsonFileDiscovery,
)
from discovery_manager.discovery.store import (
    BindingDescriptorStore,
    BindingTypeDescriptorStore,
    CompositeKeyStore,
)
from discovery_manager.discovery.transaction import (
    AtomicOperation,
    InterceptedOperation,
    OperationInterceptor,
    Transaction,
)
from discovery_manager.discovery.manager import DiscoveryManager

__all__ = [
    "BindingArguments",
    "BindingCriteria",
    "BindingDescriptor",
    "BindingParameter",
    "BindingParameterDescriptor",
    "BindingState",
    "BindingType",
    "BindingTypeDescriptor",
    "BindingTypeState",
    "ConstraintViolation",
    "ViolationCode",
    "EditableDiscovery",
    "InMemoryDiscovery",
    "JsonFileDiscovery",
    "BindingDescriptorStore",
    "BindingTypeDescriptorStore",
    "CompositeKeyStore",
    "AtomicOperation",
    "InterceptedOperation",
    "OperationInterceptor",
    "Transaction",
    "DiscoveryManager",
]
