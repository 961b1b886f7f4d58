"""
JSON persistence of package files.

A package file looks like::

    {
        "name": "acme/blog",
        "override": ["acme/legacy-blog"],
        "binding-types": {
            "acme/translations": {
                "description": "Translation catalogs",
                "parameters": {"locale": {"default": "en"}}
            }
        },
        "bindings": {
            "2ba2f3b8-...": {"query": "/acme/blog/trans/*.xlf", "type": "acme/translations"}
        }
    }

The root package file additionally stores the install records under
``"packages"``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from uuid import UUID

from discovery_manager.discovery.models import (
    DEFAULT_LANGUAGE,
    BindingDescriptor,
    BindingParameterDescriptor,
    BindingTypeDescriptor,
)
from discovery_manager.exceptions import StorageError
from discovery_manager.logging import get_logger
from discovery_manager.packages.models import (
    DEFAULT_INSTALLER,
    InstallInfo,
    PackageFile,
    RootPackageFile,
)

logger = get_logger("packages.storage")


class PackageFileStorage:
    """Reads and writes package files as JSON."""

    def __init__(self, indent: int = 4) -> None:
        self._indent = indent

    # -- loading -------------------------------------------------------------

    def load_package_file(self, path: Path, package_name: str | None = None) -> PackageFile:
        """
        Load the package file at ``path``.

        A missing file yields an empty package file.

        Raises:
            StorageError: If the file cannot be read or is not valid
        """
        path = Path(path)
        data = self._read(path)
        package_file = PackageFile(data.get("name", package_name), path)
        self._populate(package_file, data, path)
        return package_file

    def load_root_package_file(self, path: Path) -> RootPackageFile:
        path = Path(path)
        data = self._read(path)
        package_file = RootPackageFile(data.get("name"), path)
        self._populate(package_file, data, path)

        try:
            for name, info in data.get("packages", {}).items():
                package_file.add_install_info(
                    InstallInfo(
                        package_name=name,
                        install_path=info["install-path"],
                        installer_name=info.get("installer", DEFAULT_INSTALLER),
                        enabled_binding_uuids=[UUID(u) for u in info.get("enabled-bindings", [])],
                        disabled_binding_uuids=[UUID(u) for u in info.get("disabled-bindings", [])],
                    )
                )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise StorageError(f"Invalid install records in {path}: {e}") from e

        return package_file

    def _read(self, path: Path) -> dict[str, Any]:
        if not path.is_file():
            logger.debug("No package file at %s", path)
            return {}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            raise StorageError(f"Failed to read the package file {path}: {e}") from e
        if not isinstance(data, dict):
            raise StorageError(f"The package file {path} must contain a JSON object.")
        return data

    def _populate(self, package_file: PackageFile, data: dict[str, Any], path: Path) -> None:
        try:
            package_file.overridden_packages = list(data.get("override", []))

            for type_name, type_data in data.get("binding-types", {}).items():
                type_data = type_data or {}
                parameters = [
                    BindingParameterDescriptor(
                        name,
                        required=param.get("required", False),
                        default=param.get("default"),
                        description=param.get("description"),
                    )
                    for name, param in type_data.get("parameters", {}).items()
                ]
                package_file.add_type_descriptor(
                    BindingTypeDescriptor(type_name, type_data.get("description"), parameters)
                )

            for uuid, binding_data in data.get("bindings", {}).items():
                package_file.add_binding_descriptor(
                    BindingDescriptor(
                        binding_data["query"],
                        binding_data["type"],
                        binding_data.get("parameters"),
                        binding_data.get("language", DEFAULT_LANGUAGE),
                        uuid=UUID(uuid),
                    )
                )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            # ValidationError is a ValueError
            raise StorageError(f"Invalid package file {path}: {e}") from e

    # -- saving --------------------------------------------------------------

    def save_package_file(self, package_file: PackageFile) -> None:
        self._write(package_file, self.package_file_to_dict(package_file))

    def save_root_package_file(self, package_file: RootPackageFile) -> None:
        self._write(package_file, self.root_package_file_to_dict(package_file))

    def _write(self, package_file: PackageFile, data: dict[str, Any]) -> None:
        if package_file.path is None:
            raise StorageError(f"The package file {package_file!r} has no path.")
        try:
            package_file.path.parent.mkdir(parents=True, exist_ok=True)
            package_file.path.write_text(
                json.dumps(data, indent=self._indent) + "\n", encoding="utf-8"
            )
        except OSError as e:
            raise StorageError(f"Failed to write the package file {package_file.path}: {e}") from e
        logger.debug("Saved %s", package_file.path)

    # -- conversion ----------------------------------------------------------

    def package_file_to_dict(self, package_file: PackageFile) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if package_file.package_name:
            data["name"] = package_file.package_name
        if package_file.overridden_packages:
            data["override"] = list(package_file.overridden_packages)

        types: dict[str, Any] = {}
        for type_descriptor in package_file.get_type_descriptors():
            type_data: dict[str, Any] = {}
            if type_descriptor.description:
                type_data["description"] = type_descriptor.description
            parameters = {}
            for parameter in type_descriptor.parameters.values():
                param_data: dict[str, Any] = {}
                if parameter.required:
                    param_data["required"] = True
                if parameter.default is not None:
                    param_data["default"] = parameter.default
                if parameter.description:
                    param_data["description"] = parameter.description
                parameters[parameter.name] = param_data
            if parameters:
                type_data["parameters"] = parameters
            types[type_descriptor.name] = type_data
        if types:
            data["binding-types"] = types

        bindings: dict[str, Any] = {}
        for binding in package_file.get_binding_descriptors():
            binding_data: dict[str, Any] = {"query": binding.query, "type": binding.type_name}
            if binding.language != DEFAULT_LANGUAGE:
                binding_data["language"] = binding.language
            values = binding.get_parameter_values()
            if values:
                binding_data["parameters"] = values
            bindings[str(binding.uuid)] = binding_data
        if bindings:
            data["bindings"] = bindings

        return data

    def root_package_file_to_dict(self, package_file: RootPackageFile) -> dict[str, Any]:
        data = self.package_file_to_dict(package_file)
        packages: dict[str, Any] = {}
        for install_info in package_file.get_install_infos():
            info: dict[str, Any] = {"install-path": install_info.install_path}
            if install_info.installer_name != DEFAULT_INSTALLER:
                info["installer"] = install_info.installer_name
            if install_info.enabled_binding_uuids:
                info["enabled-bindings"] = [str(u) for u in install_info.enabled_binding_uuids]
            if install_info.disabled_binding_uuids:
                info["disabled-bindings"] = [str(u) for u in install_info.disabled_binding_uuids]
            packages[install_info.package_name] = info
        if packages:
            data["packages"] = packages
        return data

