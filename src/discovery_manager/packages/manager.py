"""Loading the packages of a project from disk."""
from __future__ import annotations

from pathlib import Path

from discovery_manager.config import DiscoveryConfig
from discovery_manager.logging import get_logger
from discovery_manager.packages.models import Package, PackageCollection, RootPackage
from discovery_manager.packages.storage import PackageFileStorage

logger = get_logger("packages")


class PackageLoader:
    """Builds a :class:`PackageCollection` from a project directory.

    The root manifest lists the installed packages with their install
    paths (relative to the project root or absolute). Each installed
    package's manifest is read from ``<install-path>/<manifest name>``.
    """

    def __init__(
        self,
        storage: PackageFileStorage | None = None,
        config: DiscoveryConfig | None = None,
    ) -> None:
        self._storage = storage or PackageFileStorage()
        self._config = config or DiscoveryConfig()

    def load(self, root_dir: Path | None = None) -> PackageCollection:
        """Load the root package and all installed packages.

        Args:
            root_dir: Project root. Defaults to the configured root.
        """
        root_dir = Path(root_dir) if root_dir is not None else self._config.root_dir
        manifest_name = self._config.manifest_name

        root_file = self._storage.load_root_package_file(root_dir / manifest_name)
        root_name = root_file.package_name or self._config.root_package_name
        collection = PackageCollection()
        collection.add(RootPackage(root_name, root_file, root_dir))

        for install_info in root_file.get_install_infos():
            install_path = Path(install_info.install_path)
            if not install_path.is_absolute():
                install_path = root_dir / install_path

            manifest_path = install_path / manifest_name
            if not manifest_path.is_file():
                logger.warning(
                    "Package %s has no manifest at %s", install_info.package_name, manifest_path
                )
            package_file = self._storage.load_package_file(
                manifest_path, install_info.package_name
            )
            collection.add(
                Package(install_info.package_name, package_file, install_path, install_info)
            )

        logger.debug("Loaded %d package(s) from %s", len(collection), root_dir)
        return collection
