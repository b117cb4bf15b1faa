"""
Core machinery for codeowners-client.

This module handles:
- Platform detection and release asset naming
- Release feed access and binary caching
- Binary provisioning and the language server client
"""

from codeowners_client._core.version import (
    CLIENT_VERSION,
    SERVER_MIN_VERSION,
    BINARY_NAME,
    GITHUB_REPO,
    is_server_compatible,
)
from codeowners_client._core.platform_info import (
    identify,
    current_platform,
    compute_asset_name,
)
from codeowners_client._core.release import (
    fetch_latest_release,
    download_asset,
)
from codeowners_client._core.cache import CacheStore
from codeowners_client._core.lifecycle import BinaryProvisioner
from codeowners_client._core.client import LanguageClient

__all__ = [
    # Version
    "CLIENT_VERSION",
    "SERVER_MIN_VERSION",
    "BINARY_NAME",
    "GITHUB_REPO",
    "is_server_compatible",
    # Platform
    "identify",
    "current_platform",
    "compute_asset_name",
    # Release feed
    "fetch_latest_release",
    "download_asset",
    # Provisioning
    "CacheStore",
    "BinaryProvisioner",
    # Client
    "LanguageClient",
]
