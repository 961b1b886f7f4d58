#!/usr/bin/env python3
"""
Discovery Manager Demo

Builds a small project in a temporary directory with one installed
package, then walks through the main operations of the manager.

Usage:
    python examples/basic_usage.py
"""

import json
import sys
import tempfile
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from discovery_manager import (
    BindingDescriptor,
    BindingParameterDescriptor,
    BindingState,
    BindingTypeDescriptor,
    DiscoveryManager,
    InMemoryDiscovery,
    PackageFileStorage,
    PackageLoader,
    setup_logging,
)


def create_project(root: Path) -> None:
    """Write a root manifest and the manifest of one installed package."""
    (root / "packages.json").write_text(
        json.dumps(
            {
                "name": "acme/app",
                "packages": {"acme/blog": {"install-path": "vendor/acme/blog"}},
            }
        )
    )
    blog = root / "vendor" / "acme" / "blog"
    blog.mkdir(parents=True)
    (blog / "packages.json").write_text(
        json.dumps(
            {
                "bindings": {
                    "c8e2ab8d-2d4c-5b8e-9d6e-7a4b6a9f1c11": {
                        "query": "/acme/blog/trans/*.xlf",
                        "type": "acme/translations",
                    }
                }
            }
        )
    )


def show(manager: DiscoveryManager, discovery: InMemoryDiscovery) -> None:
    for binding in manager.get_bindings(state=None):
        print(f"  {binding.query} [{binding.containing_package.name}] {binding.state.value}")
    print(f"  registry: {len(discovery.get_bindings())} binding(s)")


def main() -> None:
    setup_logging("INFO")

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        create_project(root)

        storage = PackageFileStorage()
        packages = PackageLoader(storage).load(root)
        discovery = InMemoryDiscovery()
        manager = DiscoveryManager(packages, discovery, storage)

        print("Before the type exists, the blog binding is held back:")
        show(manager, discovery)

        manager.add_binding_type(
            BindingTypeDescriptor(
                "acme/translations",
                "Translation catalogs",
                [BindingParameterDescriptor("locale", default="en")],
            )
        )
        print("\nAfter adding the type to the root package:")
        show(manager, discovery)

        manager.add_binding(BindingDescriptor.create("/app/trans/*.xlf", "acme/translations"))
        print("\nAfter adding a binding to the root package:")
        show(manager, discovery)

        [blog_binding] = manager.get_bindings(["acme/blog"], state=BindingState.ENABLED)
        manager.disable_binding(blog_binding.uuid)
        print("\nAfter disabling the blog binding:")
        show(manager, discovery)

        print("\nRoot manifest:")
        print((root / "packages.json").read_text())


if __name__ == "__main__":
    main()
