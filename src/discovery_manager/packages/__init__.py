"""Packages, their manifests and install records."""
from __future__ import annotations

from discovery_manager.packages.manager import PackageLoader
from discovery_manager.packages.models import (
    InstallInfo,
    Package,
    PackageCollection,
    PackageFile,
    RootPackage,
    RootPackageFile,
)
from discovery_manager.packages.storage import PackageFileStorage

__all__ = [
    "InstallInfo",
    "Package",
    "PackageCollection",
    "PackageFile",
    "RootPackage",
    "RootPackageFile",
    "PackageFileStorage",
    "PackageLoader",
]
