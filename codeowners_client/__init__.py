"""
codeowners-client: provisioning and client bridge for codeowners-lsp.

This package provides:
- Resolution of the codeowners-lsp binary (custom path, PATH, cache, download)
- A per-user cache of the latest release, upgraded when a new release ships
- A Language Server Protocol client that runs the binary over stdio
- An ExtensionSession an editor host drives through commands and config changes

Quickstart:
    from codeowners_client import ExtensionConfig, ExtensionSession

    session = ExtensionSession(ExtensionConfig.from_mapping(settings))
    await session.activate()
    print(await session.show_ownership("file:///repo/src/app.py"))
    await session.deactivate()

Provisioning only:
    from codeowners_client import BinaryProvisioner, ExtensionConfig

    result = await BinaryProvisioner().ensure_binary(ExtensionConfig.from_env())
    binary = result.unwrap()
"""

from codeowners_client.types import (
    ClientSettings,
    ClientState,
    PlatformTarget,
    ProvisionResult,
    ProvisionSource,
    ReleaseAsset,
    ReleaseDescriptor,
)
from codeowners_client.errors import (
    CodeownersError,
    ProvisioningError,
    ConfigurationError,
    UnsupportedPlatformError,
    NetworkError,
    AssetNotFoundError,
    TransportError,
)
from codeowners_client.config import (
    DiagnosticKind,
    ExtensionConfig,
)
from codeowners_client._core.platform_info import (
    identify,
    compute_asset_name,
)
from codeowners_client._core.release import fetch_latest_release
from codeowners_client._core.cache import CacheStore
from codeowners_client._core.lifecycle import BinaryProvisioner
from codeowners_client._core.client import LanguageClient
from codeowners_client.session import (
    ExtensionSession,
    format_hover_contents,
)
from codeowners_client._core.version import CLIENT_VERSION

__version__ = CLIENT_VERSION

__all__ = [
    # Version
    "__version__",
    "CLIENT_VERSION",
    # Types
    "ClientSettings",
    "ClientState",
    "PlatformTarget",
    "ProvisionResult",
    "ProvisionSource",
    "ReleaseAsset",
    "ReleaseDescriptor",
    # Errors
    "CodeownersError",
    "ProvisioningError",
    "ConfigurationError",
    "UnsupportedPlatformError",
    "NetworkError",
    "AssetNotFoundError",
    "TransportError",
    # Configuration
    "DiagnosticKind",
    "ExtensionConfig",
    # Provisioning
    "identify",
    "compute_asset_name",
    "fetch_latest_release",
    "CacheStore",
    "BinaryProvisioner",
    # Client
    "LanguageClient",
    "ExtensionSession",
    "format_hover_contents",
]
