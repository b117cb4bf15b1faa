"""
Type definitions for codeowners-client.

Defines enums and dataclasses used across the package for:
- Platform targets and release descriptors
- Provisioning outcomes
- Language server client state
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from codeowners_client.errors import ProvisioningError


# Flattened settings sent to the server. Absent keys mean "server default".
ClientSettings = Dict[str, Any]


# =============================================================================
# Platform & Release Types
# =============================================================================


@dataclass(frozen=True)
class PlatformTarget:
    """
    A supported (OS, architecture) pair in release-artifact naming.

    Attributes:
        os_tag: Target OS triple part (apple-darwin, unknown-linux-gnu, pc-windows-msvc)
        arch_tag: CPU architecture (aarch64, x86_64)
        suffix: Executable suffix (".exe" on Windows, "" elsewhere)
    """
    os_tag: str
    arch_tag: str
    suffix: str = ""

    @property
    def is_windows(self) -> bool:
        return self.suffix == ".exe"

    def __str__(self) -> str:
        return f"{self.arch_tag}-{self.os_tag}"


@dataclass(frozen=True)
class ReleaseAsset:
    """A single downloadable file attached to a release."""
    name: str
    download_url: str


@dataclass(frozen=True)
class ReleaseDescriptor:
    """
    A published release and its downloadable assets.

    The asset tuple is a snapshot taken when the release was fetched.
    """
    tag_name: str
    assets: Tuple[ReleaseAsset, ...] = ()

    @property
    def version(self) -> str:
        """Tag with a single leading ``v`` stripped."""
        return self.tag_name[1:] if self.tag_name.startswith("v") else self.tag_name

    def find_asset(self, name: str) -> Optional[ReleaseAsset]:
        for asset in self.assets:
            if asset.name == name:
                return asset
        return None


# =============================================================================
# Provisioning Types
# =============================================================================


class ProvisionSource(str, Enum):
    """Where a provisioned binary came from."""
    CUSTOM = "custom"        # Configured server path
    PATH = "path"            # Found on the executable search path
    CACHE = "cache"          # Previously downloaded binary
    DOWNLOAD = "download"    # Freshly downloaded from the release feed


@dataclass
class ProvisionResult:
    """
    Outcome of a provisioning attempt.

    Exactly one of ``path`` and ``error`` is set.

    Attributes:
        path: Executable path on success
        error: Typed failure otherwise
        source: Which resolution step produced the path
        version: Version of a cached/downloaded binary, if known
        offline: True when the cache was reused because the feed was unreachable
    """
    path: Optional[Path] = None
    error: Optional[ProvisioningError] = None
    source: Optional[ProvisionSource] = None
    version: Optional[str] = None
    offline: bool = False

    def __post_init__(self) -> None:
        if (self.path is None) == (self.error is None):
            raise ValueError("ProvisionResult needs exactly one of path or error")

    @classmethod
    def success(
        cls,
        path: Path,
        source: ProvisionSource,
        version: Optional[str] = None,
        offline: bool = False,
    ) -> "ProvisionResult":
        return cls(path=path, source=source, version=version, offline=offline)

    @classmethod
    def failure(cls, error: ProvisioningError) -> "ProvisionResult":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.path is not None

    def unwrap(self) -> Path:
        """Return the path or raise the stored error."""
        if self.path is None:
            raise self.error or ProvisioningError("Provisioning produced no binary")
        return self.path


# =============================================================================
# Client Types
# =============================================================================


class ClientState(str, Enum):
    """
    Language server session state.

    NOT_STARTED -> STARTING -> RUNNING -> STOPPING -> NOT_STARTED.
    A failed start goes straight back to NOT_STARTED.
    """
    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class ServerInfo:
    """Server identity reported in the initialize result."""
    name: str = ""
    version: Optional[str] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)
