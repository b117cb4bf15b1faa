"""
Local storage for the downloaded language server binary.

The storage directory holds the binary and a ``version`` sidecar. The
sidecar is only written after the binary is fully in place.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Iterable, Optional, Union

from platformdirs import user_data_dir

from codeowners_client._core.version import BINARY_NAME
from codeowners_client.types import PlatformTarget

logger = logging.getLogger(__name__)

VERSION_FILENAME = "version"


def get_default_storage_root() -> Path:
    """Per-user directory where downloaded binaries are kept."""
    return Path(user_data_dir("codeowners-client", "codeowners"))


class CacheStore:
    """
    Owns the storage directory for one platform target.

    Attributes:
        storage_dir: Directory holding binary and sidecar
        binary_path: Path of the cached executable
        version_path: Path of the version sidecar
    """

    def __init__(
        self,
        storage_root: Optional[Union[str, Path]] = None,
        target: Optional[PlatformTarget] = None,
    ):
        self.storage_dir = Path(storage_root) if storage_root else get_default_storage_root()
        self.target = target
        suffix = target.suffix if target else ""
        self.binary_path = self.storage_dir / f"{BINARY_NAME}{suffix}"
        self.version_path = self.storage_dir / VERSION_FILENAME

    def ensure_dir(self) -> Path:
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        return self.storage_dir

    def read_cached_version(self) -> Optional[str]:
        """
        Version of the cached binary.

        Returns:
            Trimmed sidecar contents, or None unless both files exist
        """
        if not (self.version_path.is_file() and self.binary_path.is_file()):
            return None
        try:
            version = self.version_path.read_text(encoding="utf-8").strip()
        except OSError as e:
            logger.warning(f"Could not read {self.version_path}: {e}")
            return None
        return version or None

    def commit(self, content: Union[bytes, Iterable[bytes]], version: str) -> Path:
        """
        Install a binary and record its version.

        The binary is written to a temporary file next to its final
        location, made executable, and moved into place. The sidecar is
        written afterwards, so an interrupted commit leaves the previous
        binary/version pair intact.

        Args:
            content: Binary contents, or an iterable of byte chunks
            version: Version to record in the sidecar

        Returns:
            Path to the installed binary
        """
        if isinstance(content, (bytes, bytearray)):
            content = [bytes(content)]

        self.ensure_dir()
        tmp_binary = self._write_temp(content, prefix=f".{BINARY_NAME}-")

        try:
            if not (self.target and self.target.is_windows):
                st = os.stat(tmp_binary)
                os.chmod(tmp_binary, st.st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            os.replace(tmp_binary, self.binary_path)
        except BaseException:
            _unlink_quietly(tmp_binary)
            raise

        tmp_version = self._write_temp([version.encode("utf-8")], prefix=".version-")
        try:
            os.replace(tmp_version, self.version_path)
        except BaseException:
            _unlink_quietly(tmp_version)
            raise

        logger.debug(f"Cached {BINARY_NAME} v{version} at {self.binary_path}")
        return self.binary_path

    def _write_temp(self, chunks: Iterable[bytes], prefix: str) -> Path:
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=".tmp", dir=self.storage_dir)
        tmp_path = Path(name)
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
        except BaseException:
            _unlink_quietly(tmp_path)
            raise
        return tmp_path


def _unlink_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
