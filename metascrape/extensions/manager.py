"""Extension lifecycle: install, uninstall, reload and call into extensions.

An extension is a Python module or package exposing ``initialize()``
(plain or async). The object it returns is the extension instance; it may
carry ``id``, ``name``, ``author``, ``description`` and a ``dispose()``
teardown. Instances that also expose ``pre_process``/``parsing_process``
can be registered as scrapers and run like built-in sources.

Sources:
- a local path (``.py`` file or package directory): copied into the
  extensions directory and imported from there;
- anything else is a package identifier, installed with
  ``pip install --target`` into the extensions directory.

Every lifecycle failure is logged and swallowed; only `call_method`
re-raises, after logging.
"""

import asyncio
import importlib.metadata
import importlib.util
import inspect
import os
import re
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from metascrape.extensions.models import ExtensionError, ExtensionInfo, build_extension_info
from metascrape.scraping.contract import ScraperContract
from metascrape.utils.config_loader import ConfigLoader
from metascrape.utils.log_service import LogService


# =============================================================================
# Constants
# =============================================================================

LOG_TAG = "extensionManager"
MODULE_NAMESPACE = "metascrape_extension"
PACKAGES_SUBDIR = "packages"
BACKUP_SUFFIX = ".bak"

Installer = Callable[[str, Path], None]


def is_local_path(source: str) -> bool:
    """True for filesystem paths, False for package identifiers.

    Examples:
        >>> is_local_path("./my_extension")
        True
        >>> is_local_path("metascrape-arxiv-extension==1.2")
        False
    """
    if source.startswith((".", "/", "~")) or os.path.isabs(source):
        return True
    if re.match(r"^[A-Za-z]:[\\/]", source):
        return True
    return os.path.exists(source)


def pip_install(identifier: str, target: Path) -> None:
    """Install a package from the index into `target`."""
    target.mkdir(parents=True, exist_ok=True)
    subprocess.run(
        [sys.executable, "-m", "pip", "install", "--upgrade", "--target", str(target), identifier],
        check=True,
        capture_output=True,
        text=True,
    )


def _distribution_name(identifier: str) -> str:
    """Strip version specifiers and extras: "pkg[x]>=1.0" -> "pkg"."""
    return re.split(r"[\[<>=!~;@\s]", identifier.strip(), maxsplit=1)[0]


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


# =============================================================================
# Extension manager
# =============================================================================


class ExtensionManager:
    """Owns installed extension instances and their metadata."""

    def __init__(
        self,
        extensions_dir: Path,
        config: Optional[ConfigLoader] = None,
        log_service: Optional[LogService] = None,
        installer: Installer = pip_install,
    ):
        """Initialize the manager.

        Args:
            extensions_dir: Working directory for installed extension code
            config: Config whose ``extensions.<id>`` sections hold
                per-extension preferences
            log_service: Logging collaborator
            installer: Callable installing a package identifier into a
                target directory (pip by default)
        """
        self.extensions_dir = Path(extensions_dir).resolve()
        self.config = config
        self.log_service = log_service or LogService()
        self.installer = installer

        self._instances: Dict[str, Any] = {}
        self._infos: Dict[str, ExtensionInfo] = {}
        self._module_names: Dict[str, str] = {}
        self._registry = None

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def installed_extensions(self) -> Dict[str, ExtensionInfo]:
        return dict(self._infos)

    def get_instance(self, ext_id: str) -> Optional[Any]:
        return self._instances.get(ext_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def install(self, source: str) -> Optional[ExtensionInfo]:
        """Install and initialize an extension from a path or package identifier.

        Returns:
            ExtensionInfo on success, None if installation failed (logged)
        """
        try:
            if is_local_path(source):
                info = await self._install_from_path(Path(source).expanduser())
            else:
                info = await self._install_from_index(source)
        except Exception as e:
            self.log_service.error(f"Failed to install extension {source}", error=e, source_tag=LOG_TAG)
            return None

        self.log_service.info(f"Installed extension {source}", source_tag=LOG_TAG)
        return info

    async def uninstall(self, ext_id: str) -> bool:
        """Dispose and remove an installed extension.

        Returns:
            True if the extension was removed
        """
        try:
            if ext_id not in self._infos:
                raise ExtensionError(f"Extension {ext_id} is not installed")

            info, module_name = await self._forget(ext_id)
            if module_name:
                for name in [m for m in sys.modules if m == module_name or m.startswith(module_name + ".")]:
                    del sys.modules[name]
            if self._registry is not None and not self._registry.is_builtin(ext_id):
                self._registry.unregister(ext_id)

            _remove_path(Path(info.location))
        except Exception as e:
            self.log_service.error(f"Failed to uninstall extension {ext_id}", error=e, source_tag=LOG_TAG)
            return False

        self.log_service.info(f"Uninstalled extension {ext_id}", source_tag=LOG_TAG)
        return True

    async def reload(self, ext_id: str) -> Optional[ExtensionInfo]:
        """Uninstall and install again.

        Extensions copied from a local path are reinstalled from that path.
        Otherwise the installed files are backed up, the extension is
        uninstalled, the backup is linked back into place and installed.
        """
        try:
            info = self._infos[ext_id]
            if info.origin_location and info.origin_location != info.location:
                await self.uninstall(ext_id)
                return await self.install(info.origin_location)

            location = Path(info.location)
            backup = location.with_name(location.name + BACKUP_SUFFIX)
            _remove_path(backup)
            if location.is_dir():
                shutil.copytree(location, backup)
            else:
                shutil.copy2(location, backup)

            await self.uninstall(ext_id)

            if backup.is_dir():
                shutil.copytree(backup, location, copy_function=os.link)
            else:
                os.link(backup, location)
            reinstalled = await self.install(str(location))
            if reinstalled is None:
                return None

            _remove_path(backup)
            if reinstalled.version != info.version:
                reinstalled = reinstalled.model_copy(update={"version": info.version})
                self._infos[reinstalled.id] = reinstalled
            return reinstalled
        except Exception as e:
            self.log_service.error(f"Failed to reload extension {ext_id}", error=e, source_tag=LOG_TAG)
            return None

    async def reload_all(self) -> None:
        for ext_id in list(self._infos):
            await self.reload(ext_id)

    async def call_method(self, ext_id: str, method_name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke a method exposed by an installed extension.

        Raises:
            Whatever the lookup or the method raised, after logging it
        """
        try:
            instance = self._instances.get(ext_id)
            if instance is None:
                raise ExtensionError(f"Extension {ext_id} is not installed")
            method = getattr(instance, method_name, None)
            if not callable(method):
                raise ExtensionError(f"Extension {ext_id} has no method {method_name}")
            result = method(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as e:
            self.log_service.error(
                f"Failed to call extension method {method_name} of extension {ext_id}",
                error=e,
                source_tag=LOG_TAG,
            )
            raise

    def register_scrapers(self, registry) -> List[str]:
        """Register every installed scraper-shaped extension into `registry`.

        The registry is remembered: later installs register into it and
        uninstalls remove from it. Extensions whose id names a built-in
        source are skipped.
        """
        self._registry = registry
        registered = []
        for ext_id, info in self._infos.items():
            if not info.provides_scraper:
                continue
            if registry.is_builtin(ext_id):
                self.log_service.error(
                    f"Extension {ext_id} clashes with a built-in source, not registered",
                    source_tag=LOG_TAG,
                )
                continue
            registry.register(ext_id, self._instances[ext_id], builtin=False)
            registered.append(ext_id)
        return registered

    # -------------------------------------------------------------------------
    # Install helpers
    # -------------------------------------------------------------------------

    async def _install_from_path(self, path: Path) -> ExtensionInfo:
        path = path.resolve()
        if not path.exists():
            raise ExtensionError(f"Extension path does not exist: {path}")

        root = self.extensions_dir.resolve()
        if root in path.parents:
            location, origin = path, None
        else:
            root.mkdir(parents=True, exist_ok=True)
            location, origin = root / path.name, str(path)
            _remove_path(location)
            if path.is_dir():
                shutil.copytree(path, location)
            else:
                shutil.copy2(path, location)

        package_name = location.stem if location.is_file() else location.name
        return await self._activate(location, package_name, version=None, origin_location=origin)

    async def _install_from_index(self, identifier: str) -> ExtensionInfo:
        target = self.extensions_dir / PACKAGES_SUBDIR
        await asyncio.to_thread(self.installer, identifier, target)

        dist_name = _distribution_name(identifier)
        package_name = dist_name.replace("-", "_")
        location = target / package_name
        if not location.is_dir():
            location = target / f"{package_name}.py"
        if not location.exists():
            raise ExtensionError(f"Installed {identifier} but found no module {package_name} in {target}")

        dist = next(iter(importlib.metadata.distributions(name=dist_name, path=[str(target)])), None)
        version = dist.version if dist is not None else None
        return await self._activate(location, package_name, version=version, origin_location=None)

    async def _activate(
        self,
        location: Path,
        package_name: str,
        version: Optional[str],
        origin_location: Optional[str],
    ) -> ExtensionInfo:
        module, module_name = self._load_module(location, package_name)

        initialize = getattr(module, "initialize", None)
        if not callable(initialize):
            del sys.modules[module_name]
            raise ExtensionError(f"Extension {package_name} has no initialize() entry point")

        instance = initialize()
        if inspect.isawaitable(instance):
            instance = await instance
        if instance is None:
            del sys.modules[module_name]
            raise ExtensionError(f"initialize() of {package_name} returned nothing")

        ext_id_hint = getattr(instance, "id", None) or package_name
        preference = self.config.get(f"extensions.{ext_id_hint}", {}) if self.config else {}

        info = build_extension_info(
            instance,
            package_name=package_name,
            version=version,
            location=str(location),
            origin_location=origin_location,
            preference=preference if isinstance(preference, dict) else {},
            provides_scraper=isinstance(instance, ScraperContract),
        )

        if info.provides_scraper and self._registry is not None and self._registry.is_builtin(info.id):
            del sys.modules[module_name]
            raise ExtensionError(f"Extension id {info.id} clashes with a built-in source")

        # Installing over an existing id replaces it; files at the new
        # location belong to the new install.
        if info.id in self._infos:
            previous, _ = await self._forget(info.id)
            if previous.location != info.location:
                _remove_path(Path(previous.location))

        self._instances[info.id] = instance
        self._infos[info.id] = info
        self._module_names[info.id] = module_name
        if self._registry is not None and info.provides_scraper:
            self._registry.register(info.id, instance, builtin=False)
        return info

    async def _forget(self, ext_id: str) -> Tuple[ExtensionInfo, Optional[str]]:
        """Dispose the instance and drop it from the manager's tables."""
        instance = self._instances.get(ext_id)
        dispose = getattr(instance, "dispose", None)
        if callable(dispose):
            result = dispose()
            if inspect.isawaitable(result):
                await result

        self._instances.pop(ext_id, None)
        return self._infos.pop(ext_id), self._module_names.pop(ext_id, None)

    def _load_module(self, location: Path, package_name: str) -> Tuple[Any, str]:
        module_name = f"{MODULE_NAMESPACE}_{package_name}"
        if location.is_dir():
            init_file = location / "__init__.py"
            if not init_file.exists():
                raise ExtensionError(f"Extension package {location} has no __init__.py")
            spec = importlib.util.spec_from_file_location(
                module_name, init_file, submodule_search_locations=[str(location)]
            )
        else:
            spec = importlib.util.spec_from_file_location(module_name, location)

        if spec is None or spec.loader is None:
            raise ExtensionError(f"Cannot load extension from {location}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            del sys.modules[module_name]
            raise ExtensionError(f"Extension {package_name} failed to import", original_error=e) from e
        return module, module_name
