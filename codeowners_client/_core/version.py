"""
Version constants and compatibility checking for codeowners-client.

- CLIENT_VERSION: This package's version
- SERVER_MIN_VERSION: Oldest codeowners-lsp the client was tested against
- GITHUB_REPO / BINARY_NAME: Where and under which name binaries are published
"""

from __future__ import annotations

import re
from typing import Tuple

# codeowners-client version (user-facing, independent semver)
CLIENT_VERSION = "0.1.0"

# Older servers still work but may not understand every setting
SERVER_MIN_VERSION = "0.1.0"

# GitHub repository for binary downloads
GITHUB_REPO = "radiosilence/codeowners-lsp"
BINARY_NAME = "codeowners-lsp"

GITHUB_API_URL = "https://api.github.com"
USER_AGENT = f"codeowners-client/{CLIENT_VERSION}"


def parse_version(version: str) -> Tuple[int, int, int]:
    """
    Parse a semver version string into (major, minor, patch) tuple.

    Args:
        version: Version string like "1.2.3" or "v1.2.3"

    Returns:
        Tuple of (major, minor, patch)

    Raises:
        ValueError: If version string is invalid
    """
    version = normalize_version(version.strip())

    match = re.match(r"^(\d+)\.(\d+)\.(\d+)", version)
    if not match:
        raise ValueError(f"Invalid version string: {version}")

    return (int(match.group(1)), int(match.group(2)), int(match.group(3)))


def normalize_version(tag: str) -> str:
    """Strip a single leading ``v`` from a release tag."""
    return tag[1:] if tag.startswith("v") else tag


def is_server_compatible(server_version: str) -> bool:
    """
    Check if a codeowners-lsp version is at least SERVER_MIN_VERSION.

    Args:
        server_version: Server version string (e.g., "1.2.3")

    Returns:
        True if compatible, False otherwise (including unparsable versions)
    """
    try:
        return parse_version(server_version) >= parse_version(SERVER_MIN_VERSION)
    except ValueError:
        return False


def get_latest_release_url() -> str:
    """URL of the release feed's "latest release" endpoint."""
    return f"{GITHUB_API_URL}/repos/{GITHUB_REPO}/releases/latest"
