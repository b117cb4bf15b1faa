"""
Extension configuration and the settings snapshot sent to the server.

Every recognized option is enumerated on ExtensionConfig. Options that are
not set are left out of the snapshot so the server applies its defaults.

Usage:
    config = ExtensionConfig.from_mapping({
        "serverPath": "~/bin/codeowners-lsp",
        "validateOwners": True,
        "diagnostics": {"noOwners": "warning"},
    })
    settings = config.to_settings()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from codeowners_client.errors import ConfigurationError
from codeowners_client.types import ClientSettings

logger = logging.getLogger(__name__)

ENV_SERVER_PATH = "CODEOWNERS_LSP_SERVER_PATH"
ENV_STORAGE = "CODEOWNERS_LSP_STORAGE"


class DiagnosticKind(str, Enum):
    """
    Diagnostic kinds whose severity can be configured.

    Values are the editor-side setting names; ``server_key`` is the name
    the language server expects.
    """
    INVALID_PATTERN = "invalidPattern"
    INVALID_OWNER = "invalidOwner"
    PATTERN_NO_MATCH = "patternNoMatch"
    DUPLICATE_OWNER = "duplicateOwner"
    SHADOWED_RULE = "shadowedRule"
    NO_OWNERS = "noOwners"
    UNOWNED_FILES = "unownedFiles"
    GITHUB_OWNER_NOT_FOUND = "githubOwnerNotFound"
    FILE_NOT_OWNED = "fileNotOwned"

    @property
    def server_key(self) -> str:
        return _SERVER_KEYS[self]


_SERVER_KEYS = {
    DiagnosticKind.INVALID_PATTERN: "invalid-pattern",
    DiagnosticKind.INVALID_OWNER: "invalid-owner",
    DiagnosticKind.PATTERN_NO_MATCH: "pattern-no-match",
    DiagnosticKind.DUPLICATE_OWNER: "duplicate-owner",
    DiagnosticKind.SHADOWED_RULE: "shadowed-rule",
    DiagnosticKind.NO_OWNERS: "no-owners",
    DiagnosticKind.UNOWNED_FILES: "unowned-files",
    DiagnosticKind.GITHUB_OWNER_NOT_FOUND: "github-owner-not-found",
    DiagnosticKind.FILE_NOT_OWNED: "file-not-owned",
}

_STRING_OPTIONS = ("server_path", "codeowners_path", "individual", "team", "github_token")


@dataclass
class ExtensionConfig:
    """
    Configuration read from the editor host.

    Attributes:
        server_path: Custom language server binary (``~`` allowed)
        codeowners_path: Custom CODEOWNERS file location
        individual: GitHub user handle of the current user
        team: GitHub team of the current user
        github_token: Token the server uses to validate owners
        validate_owners: Whether the server checks owners against GitHub
        diagnostics: Severity override per diagnostic kind
        storage_root: Directory for downloaded binaries (default: per-user data dir)
    """
    server_path: Optional[str] = None
    codeowners_path: Optional[str] = None
    individual: Optional[str] = None
    team: Optional[str] = None
    github_token: Optional[str] = None
    validate_owners: Optional[bool] = None
    diagnostics: Dict[DiagnosticKind, str] = field(default_factory=dict)
    storage_root: Optional[Path] = None

    def __post_init__(self) -> None:
        """Validate configuration on creation."""
        self.validate()

    def validate(self) -> None:
        """Check option types and drop empty strings."""
        for name in _STRING_OPTIONS:
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, str):
                raise ConfigurationError(
                    f"{name} must be a string, got {type(value).__name__}"
                )
            if not value.strip():
                setattr(self, name, None)

        if self.validate_owners is not None and not isinstance(self.validate_owners, bool):
            raise ConfigurationError(
                f"validate_owners must be a boolean, got {type(self.validate_owners).__name__}"
            )

        cleaned: Dict[DiagnosticKind, str] = {}
        for kind, severity in self.diagnostics.items():
            try:
                kind = DiagnosticKind(kind)
            except ValueError as e:
                raise ConfigurationError(f"Unknown diagnostic kind: {kind}") from e
            if severity is None or severity == "":
                continue
            if not isinstance(severity, str):
                raise ConfigurationError(
                    f"diagnostics.{kind.value} must be a string, got {type(severity).__name__}"
                )
            cleaned[kind] = severity
        self.diagnostics = cleaned

        if self.storage_root is not None:
            self.storage_root = Path(self.storage_root)

    @property
    def expanded_server_path(self) -> Optional[Path]:
        """Custom server path with a leading ``~`` expanded."""
        if not self.server_path:
            return None
        return Path(os.path.expanduser(self.server_path.strip()))

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "ExtensionConfig":
        """
        Build a config from host settings in the editor's key style.

        Diagnostics may be given as a nested ``diagnostics`` mapping or as
        dotted ``diagnostics.<kind>`` keys. Unknown kinds are ignored.
        """
        raw_diagnostics: Dict[str, Any] = {}
        nested = settings.get("diagnostics")
        if isinstance(nested, Mapping):
            raw_diagnostics.update(nested)
        for key, value in settings.items():
            if key.startswith("diagnostics."):
                raw_diagnostics[key[len("diagnostics."):]] = value

        diagnostics: Dict[DiagnosticKind, str] = {}
        for key, value in raw_diagnostics.items():
            try:
                diagnostics[DiagnosticKind(key)] = value
            except ValueError:
                logger.warning(f"Ignoring unknown diagnostic kind: {key}")

        return cls(
            server_path=settings.get("serverPath"),
            codeowners_path=settings.get("path"),
            individual=settings.get("individual"),
            team=settings.get("team"),
            github_token=settings.get("githubToken"),
            validate_owners=settings.get("validateOwners"),
            diagnostics=diagnostics,
            storage_root=settings.get("storageRoot"),
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "ExtensionConfig":
        """
        Build a config from environment variables.

        Environment Variables:
            CODEOWNERS_LSP_SERVER_PATH: Path to a local binary (skips download)
            CODEOWNERS_LSP_STORAGE: Directory for downloaded binaries
        """
        values: Dict[str, Any] = {
            "server_path": os.environ.get(ENV_SERVER_PATH),
            "storage_root": os.environ.get(ENV_STORAGE) or None,
        }
        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigurationError(f"Unknown configuration option: {key}")
            values[key] = value
        return cls(**values)

    def to_settings(self) -> ClientSettings:
        """Flatten into the snapshot sent as initializationOptions and on change."""
        settings: ClientSettings = {}

        if self.codeowners_path:
            settings["path"] = self.codeowners_path
        if self.individual:
            settings["individual"] = self.individual
        if self.team:
            settings["team"] = self.team
        if self.github_token:
            settings["github_token"] = self.github_token
        if self.validate_owners is not None:
            settings["validate_owners"] = self.validate_owners

        if self.diagnostics:
            settings["diagnostics"] = {
                kind.server_key: severity for kind, severity in self.diagnostics.items()
            }

        return settings
