"""
Duplicate and override resolution.

When several packages declare the same binding (same UUID) or the same
binding type (same name), only one declaration may be live in the
discovery registry. These functions choose that declaration and mark all
others. They are re-run after every load, unload or rollback that touches
an identity, so the marks always describe the current store contents.
"""

from __future__ import annotations

from uuid import UUID

from discovery_manager.discovery.models import BindingDescriptor
from discovery_manager.discovery.store import BindingDescriptorStore, BindingTypeDescriptorStore


def _root_first(
    group: dict[str, BindingDescriptor], root_package_name: str
) -> list[BindingDescriptor]:
    members = list(group.items())
    if root_package_name in group:
        members.sort(key=lambda item: item[0] != root_package_name)
    return [member for _, member in members]


def _is_binding_candidate(descriptor: BindingDescriptor) -> bool:
    if descriptor.is_enabled():
        return True
    # DUPLICATE hides DISABLED, so a duplicate the user disabled is no candidate
    return descriptor.is_duplicate() and not descriptor.is_disabled_by_install_info()


def update_duplicate_marks_for_uuid(
    uuid: UUID, store: BindingDescriptorStore, root_package_name: str
) -> None:
    """
    Mark all but one binding with the given UUID as duplicate.

    The root package wins. Otherwise the binding that is already enabled (or
    the first one inserted) keeps priority, so repeated passes do not flip
    the choice.
    """
    if not store.exists_any(uuid):
        return

    group = store.get_all(uuid)
    if len(group) == 1:
        next(iter(group.values())).mark_duplicate(False)
        return

    chosen = False
    for descriptor in _root_first(group, root_package_name):
        if not chosen and _is_binding_candidate(descriptor):
            descriptor.mark_duplicate(False)
            chosen = True
        else:
            descriptor.mark_duplicate(True)


def update_overridden_marks_for_uuid(uuid: UUID, store: BindingDescriptorStore) -> None:
    """
    Mark bindings whose package is overridden by another declaring package.

    A binding is overridden when another package that declares the same UUID
    lists the binding's package among its overridden packages.
    """
    if not store.exists_any(uuid):
        return

    group = store.get_all(uuid)
    if len(group) == 1:
        next(iter(group.values())).mark_overridden(False)
        return

    overriding: dict[str, set[str]] = {
        name: set(descriptor.containing_package.package_file.overridden_packages)
        for name, descriptor in group.items()
    }
    for name, descriptor in group.items():
        overridden = any(
            name in overridden_names
            for other_name, overridden_names in overriding.items()
            if other_name != name
        )
        descriptor.mark_overridden(overridden)


def update_duplicate_marks_for_type_name(
    type_name: str, store: BindingTypeDescriptorStore, root_package_name: str
) -> None:
    """
    Mark duplicated type declarations.

    A type declared once is enabled. If the root package declares it, the
    root's declaration is enabled and all others are duplicates. If two or
    more other packages declare it, all of them are duplicates and the type
    stays disabled until the conflict is resolved.
    """
    if not store.exists_any(type_name):
        return

    group = store.get_all(type_name)
    if len(group) == 1:
        next(iter(group.values())).mark_duplicate(False)
        return

    for package_name, descriptor in group.items():
        descriptor.mark_duplicate(package_name != root_package_name)
