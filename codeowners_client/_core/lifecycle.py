"""
Binary lifecycle management for codeowners-client.

Handles:
- Resolution order: custom path, PATH, cached binary, fresh download
- Version checks against the latest release
- Serialized provisioning per session
- Starting the language server process
"""

from __future__ import annotations

import asyncio
import logging
import platform
import shutil
from pathlib import Path
from typing import Callable, Iterator, Optional

import requests

from codeowners_client._core.cache import CacheStore
from codeowners_client._core.platform_info import compute_asset_name, current_platform
from codeowners_client._core.release import download_asset, fetch_latest_release
from codeowners_client._core.version import BINARY_NAME
from codeowners_client.config import ExtensionConfig
from codeowners_client.errors import (
    AssetNotFoundError,
    ConfigurationError,
    NetworkError,
    ProvisioningError,
    TransportError,
    UnsupportedPlatformError,
)
from codeowners_client.types import (
    PlatformTarget,
    ProvisionResult,
    ProvisionSource,
    ReleaseDescriptor,
)

logger = logging.getLogger(__name__)

PathLookup = Callable[[str], Optional[str]]

_DETECT = object()


class BinaryProvisioner:
    """
    Resolves exactly one runnable codeowners-lsp executable.

    Resolution order, first match wins:
    1. Custom server path from configuration (missing path is an error)
    2. ``codeowners-lsp`` on PATH
    3. Cached binary, when the release feed is unreachable
    4. Cached binary, when it matches the latest release
    5. Download of the latest release asset for this platform

    Only one provisioning attempt runs at a time per provisioner; later
    callers wait for the in-flight attempt to finish.
    """

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        target: object = _DETECT,
        session: Optional[requests.Session] = None,
        path_lookup: Optional[PathLookup] = None,
    ):
        self.target: Optional[PlatformTarget] = (
            current_platform() if target is _DETECT else target  # type: ignore[assignment]
        )
        self._cache = cache
        self._session = session
        self._path_lookup = path_lookup or shutil.which
        self._lock: Optional[asyncio.Lock] = None

    def _get_lock(self) -> asyncio.Lock:
        """Get or create the provisioning lock in the running event loop."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def cache_for(self, config: ExtensionConfig) -> CacheStore:
        if self._cache is not None:
            return self._cache
        return CacheStore(config.storage_root, self.target)

    async def ensure_binary(self, config: ExtensionConfig) -> ProvisionResult:
        """
        Provision the binary without blocking the event loop.

        Args:
            config: Current extension configuration

        Returns:
            ProvisionResult with either a path or a typed error
        """
        async with self._get_lock():
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self.provision, config)

    def provision(self, config: ExtensionConfig) -> ProvisionResult:
        """Synchronous provisioning; errors are returned, not raised."""
        try:
            result = self._resolve(config)
        except ProvisioningError as e:
            logger.debug(f"Provisioning failed: {e!r}")
            return ProvisionResult.failure(e)

        logger.debug(f"Using {BINARY_NAME} from {result.source.value}: {result.path}")
        return result

    def find_binary_in_path(self) -> Optional[Path]:
        """First ``codeowners-lsp`` on the executable search path."""
        found = self._path_lookup(BINARY_NAME)
        if not found:
            return None
        path = Path(found)
        return path if path.is_file() else None

    def _resolve(self, config: ExtensionConfig) -> ProvisionResult:
        custom_path = config.expanded_server_path
        if custom_path is not None:
            if custom_path.exists():
                logger.info(f"Using custom server path: {custom_path}")
                return ProvisionResult.success(custom_path, ProvisionSource.CUSTOM)
            raise ConfigurationError(
                f"Custom server path not found: {config.server_path}",
                path=config.server_path,
            )

        path_binary = self.find_binary_in_path()
        if path_binary is not None:
            return ProvisionResult.success(path_binary, ProvisionSource.PATH)

        cache = self.cache_for(config)
        try:
            cache.ensure_dir()
        except OSError as e:
            raise ProvisioningError(f"Cannot create storage directory {cache.storage_dir}: {e}") from e
        current_version = cache.read_cached_version()

        try:
            release = self._fetch_release()
        except NetworkError as e:
            if current_version is not None:
                logger.warning(
                    f"Could not check for updates ({e}); using cached v{current_version}"
                )
                return ProvisionResult.success(
                    cache.binary_path,
                    ProvisionSource.CACHE,
                    version=current_version,
                    offline=True,
                )
            raise NetworkError(
                f"Failed to fetch latest release: {e}",
                status_code=e.status_code,
                url=e.url,
            ) from e

        latest_version = release.version
        if current_version == latest_version and cache.binary_path.is_file():
            logger.debug(f"Cached {BINARY_NAME} v{current_version} is up to date")
            return ProvisionResult.success(
                cache.binary_path, ProvisionSource.CACHE, version=current_version
            )

        return self._install(cache, release)

    def _fetch_release(self) -> ReleaseDescriptor:
        return fetch_latest_release(self._session)

    def _download(self, url: str) -> Iterator[bytes]:
        return download_asset(url, self._session)

    def _install(self, cache: CacheStore, release: ReleaseDescriptor) -> ProvisionResult:
        version = release.version
        asset_name = compute_asset_name(version, self.target)
        if asset_name is None:
            raise UnsupportedPlatformError(
                f"Unsupported platform: {platform.system()} {platform.machine()}",
                system=platform.system(),
                machine=platform.machine(),
            )

        asset = release.find_asset(asset_name)
        if asset is None:
            raise AssetNotFoundError(
                f"No binary found for {asset_name} ({self.target})",
                asset_name=asset_name,
            )

        logger.info(f"Downloading language server v{version} for {self.target}...")
        try:
            path = cache.commit(self._download(asset.download_url), version)
        except OSError as e:
            raise ProvisioningError(f"Failed to install binary: {e}") from e

        logger.info(f"Successfully installed {BINARY_NAME} v{version}")
        return ProvisionResult.success(path, ProvisionSource.DOWNLOAD, version=version)


async def start_server_process(binary_path: Path) -> asyncio.subprocess.Process:
    """
    Start the language server with stdio pipes.

    Args:
        binary_path: Path to the binary

    Returns:
        The asyncio subprocess

    Raises:
        TransportError: If the process fails to start
    """
    try:
        process = await asyncio.create_subprocess_exec(
            str(binary_path),
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise TransportError(f"Failed to start {binary_path}: {e}") from e

    logger.debug(f"Started {BINARY_NAME} process (PID: {process.pid})")
    return process
