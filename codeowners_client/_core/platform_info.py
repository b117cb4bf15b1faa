"""
Platform detection for release artifacts.

Maps the running OS and CPU architecture to the target triple used in
codeowners-lsp asset names.
"""

from __future__ import annotations

import functools
import platform
from typing import Optional

from codeowners_client._core.version import BINARY_NAME
from codeowners_client.types import PlatformTarget

_OS_TAGS = {
    "darwin": ("apple-darwin", ""),
    "linux": ("unknown-linux-gnu", ""),
    "windows": ("pc-windows-msvc", ".exe"),
}

_ARCH_TAGS = {
    "arm64": "aarch64",
    "aarch64": "aarch64",
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
}


def identify(
    system: Optional[str] = None,
    machine: Optional[str] = None,
) -> Optional[PlatformTarget]:
    """
    Determine the release target for an OS and architecture.

    Args:
        system: OS name as reported by platform.system() (default: current)
        machine: Machine name as reported by platform.machine() (default: current)

    Returns:
        PlatformTarget, or None if the combination is unsupported
    """
    system = (platform.system() if system is None else system).lower()
    machine = (platform.machine() if machine is None else machine).lower()

    os_entry = _OS_TAGS.get(system)
    arch_tag = _ARCH_TAGS.get(machine)
    if os_entry is None or arch_tag is None:
        return None

    os_tag, suffix = os_entry
    return PlatformTarget(os_tag=os_tag, arch_tag=arch_tag, suffix=suffix)


@functools.lru_cache(maxsize=1)
def current_platform() -> Optional[PlatformTarget]:
    """Platform target of this process, computed once."""
    return identify()


def compute_asset_name(version: str, target: Optional[PlatformTarget]) -> Optional[str]:
    """
    Name of the release asset for a version and platform.

    Returns:
        ``{binary}-{version}-{arch}-{os}{suffix}``, or None if target is None
    """
    if target is None:
        return None
    return f"{BINARY_NAME}-{version}-{target.arch_tag}-{target.os_tag}{target.suffix}"
