"""
Command-line interface for the discovery manager.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from discovery_manager.config import DiscoveryConfig
from discovery_manager.discovery.manager import DiscoveryManager
from discovery_manager.discovery.models import (
    BindingCriteria,
    BindingDescriptor,
    BindingParameterDescriptor,
    BindingState,
    BindingTypeDescriptor,
)
from discovery_manager.discovery.registry import JsonFileDiscovery
from discovery_manager.exceptions import DiscoveryManagerError, NoSuchBindingError
from discovery_manager.logging import setup_logging
from discovery_manager.packages.manager import PackageLoader
from discovery_manager.packages.storage import PackageFileStorage

console = Console()

_STATE_STYLES = {
    BindingState.ENABLED: "green",
    BindingState.DISABLED: "dim",
    BindingState.DUPLICATE: "yellow",
    BindingState.OVERRIDDEN: "yellow",
    BindingState.HELD_BACK: "magenta",
    BindingState.IGNORED: "red",
}


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Manage the binding types and bindings of a project",
        prog="discovery-manager",
    )

    # Global options
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output (debug logging)",
    )
    parser.add_argument("--root", help="Project root directory")
    parser.add_argument("-c", "--config", help="YAML configuration file")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("types", help="List binding types")

    type_add_parser = subparsers.add_parser("type-add", help="Add a binding type")
    type_add_parser.add_argument("name", help="Type name (vendor/name)")
    type_add_parser.add_argument("--description", help="Type description")
    type_add_parser.add_argument(
        "--param",
        action="append",
        dest="params",
        default=[],
        help="Optional parameter, as name or name=default",
    )
    type_add_parser.add_argument(
        "--required",
        action="append",
        default=[],
        help="Required parameter name",
    )

    type_remove_parser = subparsers.add_parser("type-remove", help="Remove a binding type")
    type_remove_parser.add_argument("name", help="Type name")

    bindings_parser = subparsers.add_parser("bindings", help="List bindings")
    bindings_parser.add_argument(
        "--all",
        action="store_true",
        help="Show bindings in all states (not only enabled ones)",
    )

    bind_parser = subparsers.add_parser("bind", help="Add a binding")
    bind_parser.add_argument("query", help="Resource query")
    bind_parser.add_argument("type", help="Binding type name")
    bind_parser.add_argument(
        "--param",
        action="append",
        dest="params",
        default=[],
        help="Parameter value, as name=value",
    )
    bind_parser.add_argument("--lang", default=None, help="Query language")

    unbind_parser = subparsers.add_parser("unbind", help="Remove a binding of the root package")
    unbind_parser.add_argument("uuid", help="UUID or UUID prefix")

    for name, help_text in (("enable", "Enable a binding"), ("disable", "Disable a binding")):
        toggle_parser = subparsers.add_parser(name, help=help_text)
        toggle_parser.add_argument("uuid", help="UUID or UUID prefix")
        toggle_parser.add_argument(
            "-p",
            "--package",
            action="append",
            dest="packages",
            help="Package to change (defaults to all installed packages)",
        )

    subparsers.add_parser("build", help="Build the discovery from all packages")
    subparsers.add_parser("clear", help="Remove everything from the discovery")

    args = parser.parse_args(argv)

    if getattr(args, "verbose", False):
        setup_logging("DEBUG")
    else:
        setup_logging(_load_config(args).log_level)

    commands = {
        "types": cmd_types,
        "type-add": cmd_type_add,
        "type-remove": cmd_type_remove,
        "bindings": cmd_bindings,
        "bind": cmd_bind,
        "unbind": cmd_unbind,
        "enable": cmd_enable,
        "disable": cmd_disable,
        "build": cmd_build,
        "clear": cmd_clear,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return

    try:
        command(args)
    except DiscoveryManagerError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _load_config(args: argparse.Namespace) -> DiscoveryConfig:
    """Build the configuration from CLI args and the environment."""
    config_file = getattr(args, "config", None)
    config = DiscoveryConfig.from_yaml(Path(config_file)) if config_file else DiscoveryConfig()
    config = DiscoveryConfig.from_env(config)
    if getattr(args, "root", None):
        config.root_dir = Path(args.root)
    return config


def _create_manager(args: argparse.Namespace) -> tuple[DiscoveryManager, DiscoveryConfig]:
    """Create a discovery manager from CLI args."""
    config = _load_config(args)
    storage = PackageFileStorage()
    packages = PackageLoader(storage, config).load()
    discovery = JsonFileDiscovery(config.registry_path)
    return DiscoveryManager(packages, discovery, storage), config


def _parse_value(raw: str) -> Any:
    """Parse a scalar parameter value ("1", "true", "null" or text)."""
    try:
        value = yaml.safe_load(raw)
    except yaml.YAMLError:
        return raw
    if value is None and raw.strip() not in ("null", "~", ""):
        return raw
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return raw


def _parse_assignments(assignments: list[str]) -> dict[str, Any]:
    values = {}
    for assignment in assignments:
        name, sep, raw = assignment.partition("=")
        if not sep:
            raise DiscoveryManagerError(f'Invalid parameter "{assignment}", expected name=value.')
        values[name.strip()] = _parse_value(raw)
    return values


def _resolve_uuid(
    manager: DiscoveryManager, prefix: str, package_names: list[str] | None = None
) -> UUID:
    """Find the single binding UUID that starts with ``prefix``."""
    criteria = BindingCriteria(uuid_prefix=prefix, package_names=package_names)
    uuids = {descriptor.uuid for descriptor in manager.find_bindings(criteria)}
    if not uuids:
        raise NoSuchBindingError.for_uuid(prefix)
    if len(uuids) > 1:
        raise DiscoveryManagerError(f'The UUID prefix "{prefix}" matches more than one binding.')
    return uuids.pop()


def cmd_types(args: argparse.Namespace) -> None:
    """List binding types."""
    manager, _ = _create_manager(args)

    table = Table(title="Binding Types")
    table.add_column("Name", style="cyan")
    table.add_column("Package")
    table.add_column("State")
    table.add_column("Parameters", style="dim")

    types = manager.get_binding_types()
    for type_descriptor in types:
        parameters = ", ".join(
            f"{p.name}*" if p.required else f"{p.name}={p.default!r}"
            for p in type_descriptor.parameters.values()
        )
        table.add_row(
            type_descriptor.name,
            type_descriptor.containing_package.name,
            type_descriptor.state.value,
            parameters,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(types)} types[/dim]")


def cmd_type_add(args: argparse.Namespace) -> None:
    """Add a binding type to the root package."""
    manager, _ = _create_manager(args)

    parameters = [BindingParameterDescriptor(name, required=True) for name in args.required]
    for param in args.params:
        name, sep, raw = param.partition("=")
        default = _parse_value(raw) if sep else None
        parameters.append(BindingParameterDescriptor(name.strip(), default=default))

    manager.add_binding_type(BindingTypeDescriptor(args.name, args.description, parameters))
    console.print(f"[green]Added type {args.name}[/green]")


def cmd_type_remove(args: argparse.Namespace) -> None:
    """Remove a binding type from the root package."""
    manager, _ = _create_manager(args)
    manager.remove_binding_type(args.name)
    console.print(f"[green]Removed type {args.name}[/green]")


def cmd_bindings(args: argparse.Namespace) -> None:
    """List bindings."""
    manager, _ = _create_manager(args)

    if args.all:
        bindings = manager.find_bindings(BindingCriteria())
    else:
        bindings = manager.get_bindings()

    table = Table(title="Bindings")
    table.add_column("UUID", style="cyan")
    table.add_column("Query")
    table.add_column("Type")
    table.add_column("Package", style="dim")
    table.add_column("State")

    for binding in bindings:
        style = _STATE_STYLES.get(binding.state, "")
        state = f"[{style}]{binding.state.value}[/{style}]" if style else binding.state.value
        table.add_row(
            str(binding.uuid)[:8],
            binding.query,
            binding.type_name,
            binding.containing_package.name,
            state,
        )

    console.print(table)
    console.print(f"\n[dim]Total: {len(bindings)} bindings[/dim]")


def cmd_bind(args: argparse.Namespace) -> None:
    """Add a binding to the root package."""
    manager, config = _create_manager(args)
    descriptor = BindingDescriptor.create(
        args.query,
        args.type,
        _parse_assignments(args.params),
        args.lang or config.default_language,
    )
    manager.add_binding(descriptor)
    console.print(f"[green]Added binding {descriptor.uuid}[/green]")


def cmd_unbind(args: argparse.Namespace) -> None:
    """Remove a binding from the root package."""
    manager, _ = _create_manager(args)
    root_name = manager.packages.root_package_name
    uuid = _resolve_uuid(manager, args.uuid, [root_name])
    manager.remove_binding(uuid)
    console.print(f"[green]Removed binding {uuid}[/green]")


def cmd_enable(args: argparse.Namespace) -> None:
    """Enable a binding in installed packages."""
    manager, _ = _create_manager(args)
    uuid = _resolve_uuid(manager, args.uuid, args.packages)
    manager.enable_binding(uuid, args.packages)
    console.print(f"[green]Enabled binding {uuid}[/green]")


def cmd_disable(args: argparse.Namespace) -> None:
    """Disable a binding in installed packages."""
    manager, _ = _create_manager(args)
    uuid = _resolve_uuid(manager, args.uuid, args.packages)
    manager.disable_binding(uuid, args.packages)
    console.print(f"[green]Disabled binding {uuid}[/green]")


def cmd_build(args: argparse.Namespace) -> None:
    """Build the discovery."""
    manager, _ = _create_manager(args)
    manager.build_discovery()
    console.print("[green]Discovery built[/green]")


def cmd_clear(args: argparse.Namespace) -> None:
    """Clear the discovery."""
    manager, _ = _create_manager(args)
    manager.clear_discovery()
    console.print("[green]Discovery cleared[/green]")


if __name__ == "__main__":
    main()
