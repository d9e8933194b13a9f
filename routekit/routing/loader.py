"""Filesystem discovery and loading of route modules.

A routes directory holds one Python file per route family, plus optional
version subdirectories (``v1/``, ``v2/`` ...) with version-scoped modules.
Each eligible file is imported in isolation and must expose a handler
collection (a FastAPI ``APIRouter`` or any ASGI app) under one of the
configured export names. A module that fails to import, times out or
exports nothing is recorded as a ``LoadError`` and skipped; it never aborts
the batch.
"""

from __future__ import annotations

import asyncio
import importlib.util
import os
import re
import sys
from datetime import datetime
from pathlib import Path
from types import ModuleType
from typing import Any

from routekit.config.routes import RouteLoaderSettings
from routekit.core.errors import ConfigurationError, RouteDiscoveryError, RouteLoadError
from routekit.core.logging import get_logger

from .models import LoadedModule, LoadError, RouteCandidate, utcnow


logger = get_logger(__name__)


class RouteLoader:
    """Discovers route files and loads them into ``LoadedModule`` records."""

    def __init__(self, settings: RouteLoaderSettings | None = None) -> None:
        self.settings = settings or RouteLoaderSettings()
        try:
            self._exclude = [re.compile(p) for p in self.settings.exclude_patterns]
        except re.error as e:
            raise ConfigurationError(f"Invalid exclude pattern: {e}", cause=e) from e

        self._loaded: dict[str, LoadedModule] = {}
        self._candidates: dict[str, RouteCandidate] = {}
        self._errors: list[LoadError] = []
        # Memoized imports keyed by source file; evicted on reload
        self._module_cache: dict[Path, ModuleType] = {}
        self._last_load_time: datetime | None = None

    @property
    def routes_directory(self) -> Path:
        return self.settings.routes_directory

    @property
    def errors(self) -> list[LoadError]:
        return list(self._errors)

    def is_route_file(self, filename: str) -> bool:
        """Whitelisted extension and no deny-list match."""
        if not any(filename.endswith(ext) for ext in self.settings.file_extensions):
            return False
        return not any(pattern.search(filename) for pattern in self._exclude)

    def derive_name(self, filename: str) -> str:
        """Canonical route name: extension and structural suffixes stripped."""
        matching = [ext for ext in self.settings.file_extensions if filename.endswith(ext)]
        if matching:
            name = filename[: -len(max(matching, key=len))]
        else:
            name = os.path.splitext(filename)[0]

        for suffix in self.settings.name_suffixes:
            if name.endswith(suffix):
                name = name[: -len(suffix)]
        return name

    def derive_path(self, name: str, version: str | None = None) -> str:
        """Mount path for a route name, ``/api/<version>`` prefixed if versioned."""
        key = name.replace("_", "-")
        special = self.settings.special_routes
        base_path = special.get(name) or special.get(key) or f"/{key}"
        return f"/api/{version}{base_path}" if version else base_path

    def discover(
        self, directory: Path | str | None = None, version: str | None = None
    ) -> list[RouteCandidate]:
        """List route candidates in ``directory`` (non-recursive, sorted by name).

        Raises:
            RouteDiscoveryError: If the directory cannot be read
        """
        directory = Path(directory) if directory is not None else self.routes_directory

        try:
            with os.scandir(directory) as entries:
                filenames = sorted(
                    entry.name
                    for entry in entries
                    if entry.is_file() and self.is_route_file(entry.name)
                )
        except OSError as e:
            logger.error(
                "route_discovery_failed",
                directory=str(directory),
                error=str(e),
                category="routing",
            )
            raise RouteDiscoveryError(
                f"Cannot read routes directory {directory}: {e}",
                directory=directory,
                cause=e,
            ) from e

        candidates = [
            RouteCandidate(
                filename=filename,
                source_path=directory / filename,
                name=self.derive_name(filename),
                version=version,
            )
            for filename in filenames
        ]

        logger.debug(
            "route_files_discovered",
            directory=str(directory),
            version=version,
            count=len(candidates),
            files=filenames,
            category="routing",
        )
        return candidates

    def discover_versioned(self, version: str) -> list[RouteCandidate]:
        """Candidates in the ``<routes_directory>/<version>`` subdirectory."""
        version_dir = self.routes_directory / version
        if not version_dir.is_dir():
            logger.warning(
                "version_directory_not_found",
                version=version,
                directory=str(version_dir),
                category="routing",
            )
            return []
        return self.discover(version_dir, version=version)

    async def load_all(
        self, directory: Path | str | None = None
    ) -> dict[str, LoadedModule]:
        """Discover then load every candidate in ``directory``.

        Discovery errors propagate; individual module failures do not.
        """
        candidates = await asyncio.to_thread(self.discover, directory)
        loaded = await self._load_batch(candidates)

        logger.info(
            "route_loading_completed",
            total_routes=len(loaded),
            errors=len(self._errors),
            category="routing",
        )
        return loaded

    async def load_versioned(self, version: str) -> dict[str, LoadedModule]:
        """Load the modules of one version subdirectory.

        A missing or unreadable version directory yields an empty result.
        """
        try:
            candidates = await asyncio.to_thread(self.discover_versioned, version)
        except RouteDiscoveryError as e:
            logger.error(
                "versioned_route_loading_failed",
                version=version,
                error=str(e),
                category="routing",
            )
            return {}

        loaded = await self._load_batch(candidates)
        logger.debug(
            "versioned_routes_loaded",
            version=version,
            count=len(loaded),
            category="routing",
        )
        return loaded

    async def _load_batch(
        self, candidates: list[RouteCandidate]
    ) -> dict[str, LoadedModule]:
        loaded: dict[str, LoadedModule] = {}
        # Sequential on purpose: load order must follow discovery order
        for candidate in candidates:
            module = await self.load_one(candidate)
            if module is not None:
                loaded[module.route_path] = module
        self._last_load_time = utcnow()
        return loaded

    async def load_one(self, candidate: RouteCandidate) -> LoadedModule | None:
        """Import one candidate and wrap its handler collection.

        Returns:
            The loaded module, or None after recording a ``LoadError``
        """
        source_path = candidate.source_path
        timeout = self.settings.load_timeout

        try:
            module = self._module_cache.get(source_path)
            if module is None:
                module = await asyncio.wait_for(
                    asyncio.to_thread(self._import_module, candidate),
                    timeout=timeout,
                )
                self._module_cache[source_path] = module

            handler_collection = self._find_handler_collection(module)
            if handler_collection is None:
                self._module_cache.pop(source_path, None)
                raise RouteLoadError(
                    f"No handler collection exported from {source_path} "
                    f"(expected one of: {', '.join(self.settings.export_names)})",
                    source_path=source_path,
                )
        except TimeoutError as e:
            self._record_error(
                source_path, f"Timed out after {timeout}s importing {source_path}", e
            )
            return None
        except RouteLoadError as e:
            self._record_error(source_path, str(e), e)
            return None
        except Exception as e:
            self._record_error(source_path, f"{type(e).__name__}: {e}", e)
            return None

        route_path = self.derive_path(candidate.name, candidate.version)
        loaded = LoadedModule(
            name=candidate.name,
            route_path=route_path,
            handler_collection=handler_collection,
            source_path=source_path,
            version=candidate.version,
        )
        self._loaded[route_path] = loaded
        self._candidates[route_path] = candidate
        self._last_load_time = loaded.loaded_at

        logger.debug(
            "route_loaded",
            route_path=route_path,
            file=str(source_path),
            version=candidate.version,
            category="routing",
        )
        return loaded

    def _import_module(self, candidate: RouteCandidate) -> ModuleType:
        module_name = self._module_name(candidate)
        spec = importlib.util.spec_from_file_location(module_name, candidate.source_path)
        if spec is None or spec.loader is None:
            raise RouteLoadError(
                f"Cannot create import spec for {candidate.source_path}",
                source_path=candidate.source_path,
            )

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except (Exception, KeyboardInterrupt, asyncio.CancelledError):
            sys.modules.pop(module_name, None)
            raise
        except BaseException as e:
            # sys.exit() in a route module must not take the batch down with it
            sys.modules.pop(module_name, None)
            raise RouteLoadError(
                f"{type(e).__name__} raised while importing {candidate.source_path}",
                source_path=candidate.source_path,
            ) from e
        return module

    def _find_handler_collection(self, module: ModuleType) -> Any:
        for export_name in self.settings.export_names:
            handler_collection = getattr(module, export_name, None)
            if handler_collection is not None:
                return handler_collection
        return None

    @staticmethod
    def _module_name(candidate: RouteCandidate) -> str:
        stem = re.sub(r"\W", "_", candidate.source_path.stem)
        return f"routekit_route_{candidate.version or 'global'}_{stem}"

    def _record_error(self, source_path: Path, message: str, error: Exception) -> None:
        self._errors.append(LoadError(source_path=source_path, message=message))
        logger.error(
            "route_load_failed",
            file=str(source_path),
            error=message,
            error_type=type(error).__name__,
            category="routing",
        )

    def _evict(self, candidate: RouteCandidate) -> None:
        self._module_cache.pop(candidate.source_path, None)
        sys.modules.pop(self._module_name(candidate), None)
        # Bytecode freshness is checked by whole-second mtime; drop it outright
        Path(importlib.util.cache_from_source(str(candidate.source_path))).unlink(
            missing_ok=True
        )
        importlib.invalidate_caches()

    def get(self, route_path: str) -> LoadedModule | None:
        return self._loaded.get(route_path)

    async def reload(self, route_path: str) -> LoadedModule | None:
        """Re-import a previously loaded route from disk.

        Returns:
            The fresh module, or None if the path was never loaded or the
            reload failed
        """
        candidate = self._candidates.get(route_path)
        if candidate is None:
            logger.warning(
                "route_not_found_for_reload", route_path=route_path, category="routing"
            )
            return None

        self._evict(candidate)
        self._loaded.pop(route_path, None)

        reloaded = await self.load_one(candidate)
        if reloaded is not None:
            logger.info("route_reloaded", route_path=route_path, category="routing")
        return reloaded

    def stats(self) -> dict[str, Any]:
        return {
            "total_routes": len(self._loaded),
            "total_errors": len(self._errors),
            "loaded_routes": list(self._loaded),
            "errors": [error.model_dump(mode="json") for error in self._errors],
            "last_load_time": (
                self._last_load_time.isoformat() if self._last_load_time else None
            ),
        }

    def clear(self) -> None:
        """Discard loaded routes, cached imports and errors."""
        for candidate in self._candidates.values():
            sys.modules.pop(self._module_name(candidate), None)
        self._loaded.clear()
        self._candidates.clear()
        self._module_cache.clear()
        self._errors.clear()
        self._last_load_time = None
        logger.debug("route_loader_cleared", category="routing")
