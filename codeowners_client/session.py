"""
Extension session: the narrow contract the editor host calls into.

An ExtensionSession owns the provisioner and the current language client.
Command handlers receive the session instead of sharing a global client.

Usage:
    session = ExtensionSession(
        ExtensionConfig.from_mapping(host_settings),
        notify=window.show_error_message,
        execute_command=commands.execute,
    )
    for name, handler in session.commands().items():
        host.register_command(name, handler)
    await session.activate()
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from codeowners_client._core.client import LanguageClient
from codeowners_client._core.lifecycle import BinaryProvisioner
from codeowners_client.config import ExtensionConfig
from codeowners_client.errors import CodeownersError, TransportError
from codeowners_client.types import ProvisionResult

logger = logging.getLogger(__name__)

RESTART_SERVER = "codeowners.restartServer"
SHOW_OWNERSHIP = "codeowners.showOwnership"
GO_TO_RULE = "codeowners.goToRule"

GO_TO_DECLARATION = "editor.action.goToDeclaration"

NOT_RUNNING_MESSAGE = "CODEOWNERS server not running"
NO_OWNERSHIP_MESSAGE = "No ownership information found"

Notifier = Callable[[str], None]
CommandExecutor = Callable[..., Awaitable[Any]]
ClientFactory = Callable[..., LanguageClient]


def _log_notification(message: str) -> None:
    logger.error(message)


def format_hover_contents(contents: Any) -> Optional[str]:
    """
    Flatten hover contents into plain text.

    Accepts a string, a MarkupContent/MarkedString object with ``value``,
    or a list of either. Returns None when there is nothing to show.
    """
    if not contents:
        return None
    if isinstance(contents, str):
        return contents
    if isinstance(contents, dict):
        return contents.get("value") or None
    if isinstance(contents, list):
        parts = []
        for item in contents:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict):
                parts.append(item.get("value", ""))
        return "\n".join(parts) or None
    return None


class ExtensionSession:
    """
    Lifecycle controller for one editor session.

    Provisioning and startup run one at a time: a restart requested while
    another is in flight waits for it instead of interleaving.
    """

    def __init__(
        self,
        config: ExtensionConfig,
        provisioner: Optional[BinaryProvisioner] = None,
        client_factory: ClientFactory = LanguageClient,
        notify: Optional[Notifier] = None,
        execute_command: Optional[CommandExecutor] = None,
        root_uri: Optional[str] = None,
    ):
        self.config = config
        self.provisioner = provisioner or BinaryProvisioner()
        self.root_uri = root_uri
        self._client_factory = client_factory
        self._notify = notify or _log_notification
        self._execute_command = execute_command
        self._client: Optional[LanguageClient] = None
        self._lock: Optional[asyncio.Lock] = None
        self.last_result: Optional[ProvisionResult] = None

    def _get_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def client(self) -> Optional[LanguageClient]:
        return self._client

    @property
    def is_running(self) -> bool:
        return self._client is not None and self._client.is_running

    def commands(self) -> Dict[str, Callable[..., Awaitable[Any]]]:
        """Command table for the host to register."""
        return {
            RESTART_SERVER: self.restart,
            SHOW_OWNERSHIP: self.show_ownership,
            GO_TO_RULE: self.go_to_rule,
        }

    async def activate(self) -> bool:
        """Provision the binary and start the server, replacing any running one."""
        async with self._get_lock():
            await self._stop()
            return await self._start()

    async def restart(self) -> bool:
        """Stop the server, re-provision, and start again."""
        return await self.activate()

    async def deactivate(self) -> None:
        async with self._get_lock():
            await self._stop()

    async def configuration_changed(self, config: ExtensionConfig) -> None:
        """Store the new config and push its snapshot to a running server."""
        self.config = config
        if self._client is None:
            return
        try:
            await self._client.on_settings_changed(config.to_settings())
        except TransportError as e:
            self._report(f"Failed to update server settings: {e}")

    async def show_ownership(self, uri: str) -> str:
        """
        Ownership summary for a document, via a hover at its first character.

        Returns the message shown to the user.
        """
        client = self._client
        if client is None or not client.is_running:
            self._notify(NOT_RUNNING_MESSAGE)
            return NOT_RUNNING_MESSAGE

        try:
            result = await client.hover(uri, 0, 0)
        except TransportError as e:
            self._report(f"Hover request failed: {e}")
            return NO_OWNERSHIP_MESSAGE

        contents = result.get("contents") if isinstance(result, dict) else None
        return format_hover_contents(contents) or NO_OWNERSHIP_MESSAGE

    async def go_to_rule(self, uri: str, position: Any) -> Any:
        """Jump to the CODEOWNERS rule via the host's go-to-declaration command."""
        if not self.is_running:
            self._notify(NOT_RUNNING_MESSAGE)
            return None
        if self._execute_command is None:
            raise CodeownersError("No host command executor configured")
        return await self._execute_command(GO_TO_DECLARATION, uri, position)

    async def _start(self) -> bool:
        result = await self.provisioner.ensure_binary(self.config)
        self.last_result = result
        if result.path is None:
            self._report(str(result.error))
            return False

        client = self._client_factory(root_uri=self.root_uri, on_crash=self._on_crash)
        try:
            await client.start(Path(result.path), self.config.to_settings())
        except TransportError as e:
            self._report(str(e))
            return False

        self._client = client
        return True

    async def _stop(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            await client.stop()

    def _on_crash(self, return_code: Optional[int]) -> None:
        self._report(
            f"Language server exited unexpectedly (code {return_code}). "
            "Run 'Restart Server' to start it again."
        )

    def _report(self, message: str) -> None:
        self._notify(f"CODEOWNERS: {message}")
