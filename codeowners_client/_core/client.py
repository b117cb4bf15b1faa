"""
Language server client for codeowners-lsp.

Runs the resolved binary as a subprocess speaking LSP over stdio, hands it
the settings snapshot on startup and on change, and watches for crashes.

Usage:
    client = LanguageClient(on_crash=report)
    await client.start(binary_path, config.to_settings())
    hover = await client.hover("file:///repo/src/app.py")
    await client.stop()
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from codeowners_client._core.lifecycle import start_server_process
from codeowners_client._core.transport import JsonRpcConnection
from codeowners_client._core.version import (
    BINARY_NAME,
    CLIENT_VERSION,
    SERVER_MIN_VERSION,
    is_server_compatible,
)
from codeowners_client.errors import TransportError
from codeowners_client.types import ClientSettings, ClientState, ServerInfo

logger = logging.getLogger(__name__)

CrashCallback = Callable[[Optional[int]], None]

_LOG_LEVELS = {1: logging.ERROR, 2: logging.WARNING, 3: logging.INFO, 4: logging.DEBUG}

CLIENT_CAPABILITIES: Dict[str, Any] = {
    "workspace": {
        "configuration": True,
        "didChangeConfiguration": {"dynamicRegistration": False},
        "didChangeWatchedFiles": {"dynamicRegistration": True},
    },
    "textDocument": {
        "hover": {"contentFormat": ["markdown", "plaintext"]},
        "definition": {"linkSupport": False},
        "publishDiagnostics": {"relatedInformation": False},
    },
    "window": {"workDoneProgress": True},
}


class LanguageClient:
    """
    One LSP session with a codeowners-lsp subprocess.

    State machine: NOT_STARTED -> STARTING -> RUNNING -> STOPPING ->
    NOT_STARTED. A failed start returns to NOT_STARTED without retrying,
    and a crash while RUNNING is reported but never respawned.
    """

    def __init__(
        self,
        root_uri: Optional[str] = None,
        on_crash: Optional[CrashCallback] = None,
        initialize_timeout: float = 30.0,
        shutdown_timeout: float = 5.0,
        request_timeout: float = 10.0,
    ):
        self.root_uri = root_uri
        self.on_crash = on_crash
        self.initialize_timeout = initialize_timeout
        self.shutdown_timeout = shutdown_timeout
        self.request_timeout = request_timeout

        self._state = ClientState.NOT_STARTED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._connection: Optional[JsonRpcConnection] = None
        self._settings: ClientSettings = {}
        self._server_info: Optional[ServerInfo] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ClientState.RUNNING

    @property
    def server_info(self) -> Optional[ServerInfo]:
        return self._server_info

    @property
    def settings(self) -> ClientSettings:
        return dict(self._settings)

    async def start(self, binary_path: Path, settings: ClientSettings) -> None:
        """
        Launch the server and complete the initialize handshake.

        Args:
            binary_path: Resolved codeowners-lsp executable
            settings: Snapshot sent as initializationOptions

        Raises:
            TransportError: If the client is not stopped, or startup fails
        """
        if self._state != ClientState.NOT_STARTED:
            raise TransportError(f"Cannot start client in state {self._state.value}")

        self._state = ClientState.STARTING
        self._settings = dict(settings)

        try:
            self._process = await start_server_process(binary_path)
            self._connection = JsonRpcConnection(
                self._process.stdout, self._process.stdin, name=BINARY_NAME
            )
            self._register_handlers(self._connection)
            self._connection.start()
            self._stderr_task = asyncio.create_task(self._drain_stderr(self._process))

            result = await self._connection.request(
                "initialize",
                self._initialize_params(),
                timeout=self.initialize_timeout,
            )
            self._server_info = self._parse_server_info(result)
            await self._connection.notify("initialized", {})
        except Exception as e:
            await self._teardown(kill=True)
            self._state = ClientState.NOT_STARTED
            if isinstance(e, TransportError):
                raise
            raise TransportError(f"Failed to start {BINARY_NAME}: {e}") from e

        self._check_server_version()
        self._state = ClientState.RUNNING
        self._watch_task = asyncio.create_task(self._watch(self._process))
        logger.info(f"{BINARY_NAME} started (PID: {self._process.pid})")

    async def stop(self) -> None:
        """Shut the server down gracefully. No-op when not running."""
        if self._state in (ClientState.NOT_STARTED, ClientState.STOPPING):
            return

        self._state = ClientState.STOPPING
        if self._watch_task:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

        connection = self._connection
        if connection is not None and not connection.closed:
            try:
                await connection.request("shutdown", timeout=self.shutdown_timeout)
                await connection.notify("exit")
            except TransportError as e:
                logger.debug(f"Graceful shutdown failed: {e}")

        await self._teardown(kill=False)
        self._state = ClientState.NOT_STARTED
        logger.info(f"{BINARY_NAME} stopped")

    async def on_settings_changed(self, settings: ClientSettings) -> None:
        """Push a new settings snapshot to a running server without restarting it."""
        self._settings = dict(settings)
        if not self.is_running or self._connection is None:
            return
        await self._connection.notify(
            "workspace/didChangeConfiguration", {"settings": self._settings}
        )

    async def request(self, method: str, params: Any = None, timeout: Optional[float] = None) -> Any:
        if not self.is_running or self._connection is None:
            raise TransportError(f"{BINARY_NAME} is not running")
        return await self._connection.request(method, params, timeout=timeout)

    async def hover(self, uri: str, line: int = 0, character: int = 0) -> Any:
        """Send textDocument/hover for a document position."""
        return await self.request(
            "textDocument/hover",
            {
                "textDocument": {"uri": uri},
                "position": {"line": line, "character": character},
            },
            timeout=self.request_timeout,
        )

    def _initialize_params(self) -> Dict[str, Any]:
        return {
            "processId": os.getpid(),
            "clientInfo": {"name": "codeowners-client", "version": CLIENT_VERSION},
            "rootUri": self.root_uri,
            "capabilities": CLIENT_CAPABILITIES,
            "initializationOptions": self._settings,
        }

    def _register_handlers(self, connection: JsonRpcConnection) -> None:
        connection.on_request("workspace/configuration", self._handle_configuration)
        connection.on_request("client/registerCapability", lambda params: None)
        connection.on_request("client/unregisterCapability", lambda params: None)
        connection.on_request("window/workDoneProgress/create", lambda params: None)
        connection.on_notification("window/logMessage", self._handle_log_message)
        connection.on_notification("window/showMessage", self._handle_log_message)

    def _handle_configuration(self, params: Any) -> List[ClientSettings]:
        # Every requested section gets the full snapshot.
        items = params.get("items", []) if isinstance(params, dict) else []
        return [dict(self._settings) for _ in items] or [dict(self._settings)]

    def _handle_log_message(self, params: Any) -> None:
        if not isinstance(params, dict):
            return
        level = _LOG_LEVELS.get(params.get("type"), logging.INFO)
        logger.log(level, f"[{BINARY_NAME}] {params.get('message', '')}")

    @staticmethod
    def _parse_server_info(result: Any) -> ServerInfo:
        if not isinstance(result, dict):
            return ServerInfo()
        info = result.get("serverInfo") or {}
        return ServerInfo(
            name=info.get("name", ""),
            version=info.get("version"),
            capabilities=result.get("capabilities") or {},
        )

    def _check_server_version(self) -> None:
        version = self._server_info.version if self._server_info else None
        if version is None:
            logger.debug(f"{BINARY_NAME} did not report a version")
        elif not is_server_compatible(version):
            logger.warning(
                f"{BINARY_NAME} version {version} is older than {SERVER_MIN_VERSION}; "
                "some settings may be ignored"
            )
        else:
            logger.debug(f"Connected to {BINARY_NAME} {version}")

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        return_code = await process.wait()
        if self._state != ClientState.RUNNING:
            return

        logger.error(f"{BINARY_NAME} exited unexpectedly with code {return_code}")
        self._state = ClientState.STOPPING
        await self._teardown(kill=False)
        self._watch_task = None
        self._state = ClientState.NOT_STARTED
        if self.on_crash is not None:
            self.on_crash(return_code)

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            logger.debug(f"[{BINARY_NAME} stderr] {line.decode('utf-8', errors='replace').rstrip()}")

    async def _teardown(self, kill: bool) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

        process = self._process
        self._process = None
        if process is not None and process.returncode is None:
            if kill:
                process.kill()
            else:
                try:
                    await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
                except asyncio.TimeoutError:
                    process.terminate()
                    try:
                        await asyncio.wait_for(process.wait(), timeout=self.shutdown_timeout)
                    except asyncio.TimeoutError:
                        process.kill()
            await process.wait()

        if self._stderr_task is not None:
            self._stderr_task.cancel()
            try:
                await self._stderr_task
            except asyncio.CancelledError:
                pass
            self._stderr_task = None
