"""
Configuration for the discovery manager.

The configuration can be loaded from a YAML file, from a YAML string, or
constructed programmatically. Environment variables override the project
root and the log level.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

ROOT_ENV_VAR = "DISCOVERY_MANAGER_ROOT"
LOG_LEVEL_ENV_VAR = "DISCOVERY_MANAGER_LOG_LEVEL"


@dataclass
class DiscoveryConfig:
    """
    Settings of a discovery manager project.

    Example YAML:
        root_dir: ./my-project
        manifest_name: packages.json
        registry_file: .discovery/registry.json
        default_language: glob
        log_level: INFO
    """

    root_dir: Path = Path(".")  # Project root containing the root manifest
    manifest_name: str = "packages.json"  # Manifest file name inside each package
    registry_file: Path = Path(".discovery/registry.json")  # Relative to root_dir
    default_language: str = "glob"  # Query language of new bindings
    log_level: str = "WARNING"
    root_package_name: str = "__root__"  # Used when the root manifest has no name

    @property
    def root_manifest_path(self) -> Path:
        return self.root_dir / self.manifest_name

    @property
    def registry_path(self) -> Path:
        if self.registry_file.is_absolute():
            return self.registry_file
        return self.root_dir / self.registry_file

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DiscoveryConfig:
        """Create config from a dictionary."""
        return cls(
            root_dir=Path(data.get("root_dir", ".")),
            manifest_name=data.get("manifest_name", "packages.json"),
            registry_file=Path(data.get("registry_file", ".discovery/registry.json")),
            default_language=data.get("default_language", "glob"),
            log_level=str(data.get("log_level", "WARNING")).upper(),
            root_package_name=data.get("root_package_name", "__root__"),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> DiscoveryConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> DiscoveryConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, base: DiscoveryConfig | None = None) -> DiscoveryConfig:
        """Apply environment variable overrides on top of ``base``."""
        config = base if base is not None else cls()
        root = os.environ.get(ROOT_ENV_VAR)
        if root:
            config.root_dir = Path(root)
        level = os.environ.get(LOG_LEVEL_ENV_VAR)
        if level:
            config.log_level = level.upper()
        return config

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "root_dir": str(self.root_dir),
            "manifest_name": self.manifest_name,
            "registry_file": str(self.registry_file),
            "default_language": self.default_language,
            "log_level": self.log_level,
            "root_package_name": self.root_package_name,
        }
