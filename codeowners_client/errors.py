"""
Exception types for codeowners-client.

Provides typed exceptions for:
- Binary provisioning (custom path, platform, release feed, assets)
- Language server transport (startup, crashes, protocol errors)
"""

from __future__ import annotations

from typing import Optional


class CodeownersError(Exception):
    """Base exception for all codeowners-client errors."""
    pass


# =============================================================================
# Provisioning Errors
# =============================================================================


class ProvisioningError(CodeownersError):
    """
    Raised when no runnable language server binary could be resolved.

    Provisioning errors are terminal for one attempt: the caller surfaces
    them to the user and does not start the server.
    """
    pass


class ConfigurationError(ProvisioningError):
    """
    Raised when the configured custom server path does not exist.

    A bad custom path never falls through to PATH lookup or the cache.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class UnsupportedPlatformError(ProvisioningError):
    """Raised when no release artifact exists for this OS/architecture."""

    def __init__(self, message: str, system: str = "", machine: str = ""):
        self.system = system
        self.machine = machine
        super().__init__(message)


class NetworkError(ProvisioningError):
    """
    Raised when the release feed or an asset download fails.

    This includes:
    - Non-2xx terminal responses (``status_code`` is set)
    - Transport failures (connection refused, timeouts, TLS)
    - Malformed release JSON
    - Too many redirects
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ):
        self.status_code = status_code
        self.url = url
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"NetworkError({str(self)!r}, status_code={self.status_code!r}, "
            f"url={self.url!r})"
        )


class AssetNotFoundError(ProvisioningError):
    """Raised when the latest release has no artifact for this platform."""

    def __init__(self, message: str, asset_name: str = ""):
        self.asset_name = asset_name
        super().__init__(message)


# =============================================================================
# Transport Errors
# =============================================================================


class TransportError(CodeownersError):
    """
    Raised when the language server subprocess cannot be used.

    This includes:
    - Process spawn failures
    - Initialize handshake failures or timeouts
    - Error responses to requests
    - The process exiting while requests are pending
    """

    def __init__(self, message: str, code: Optional[int] = None):
        self.code = code
        super().__init__(message)
