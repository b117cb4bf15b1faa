"""
Pytest configuration for codeowners-client tests.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from codeowners_client._core.cache import CacheStore
from codeowners_client._core.transport import encode_message
from codeowners_client.types import PlatformTarget

# Note: With pytest-asyncio in auto mode, no event_loop fixture needed


LINUX_X64 = PlatformTarget(os_tag="unknown-linux-gnu", arch_tag="x86_64", suffix="")
WINDOWS_X64 = PlatformTarget(os_tag="pc-windows-msvc", arch_tag="x86_64", suffix=".exe")


@pytest.fixture
def linux_target():
    return LINUX_X64


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "storage"


@pytest.fixture
def cache(storage_root, linux_target):
    return CacheStore(storage_root, linux_target)


@pytest.fixture
def release_payload():
    """GitHub release body for v1.2.3."""
    return {
        "tag_name": "v1.2.3",
        "assets": [
            {
                "name": "codeowners-lsp-1.2.3-x86_64-unknown-linux-gnu",
                "browser_download_url": "https://github.com/radiosilence/codeowners-lsp/releases/download/v1.2.3/codeowners-lsp-1.2.3-x86_64-unknown-linux-gnu",
            },
            {
                "name": "codeowners-lsp-1.2.3-aarch64-apple-darwin",
                "browser_download_url": "https://github.com/radiosilence/codeowners-lsp/releases/download/v1.2.3/codeowners-lsp-1.2.3-aarch64-apple-darwin",
            },
        ],
    }


def make_response(
    status_code: int = 200,
    json_body: Any = None,
    chunks: Optional[List[bytes]] = None,
    location: Optional[str] = None,
) -> MagicMock:
    """Build a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = {"Location": location} if location else {}
    if json_body is not None:
        response.json = MagicMock(return_value=json_body)
    else:
        response.json = MagicMock(side_effect=ValueError("No JSON object could be decoded"))
    response.iter_content = MagicMock(return_value=list(chunks or []))
    return response


# =============================================================================
# Fake language server
# =============================================================================


class FakeStdin:
    """Collects framed messages written by the client and hands them to the server."""

    def __init__(self, server: "FakeServerProcess"):
        self._server = server
        self._buffer = b""

    def write(self, data: bytes) -> None:
        self._buffer += data
        while True:
            header_end = self._buffer.find(b"\r\n\r\n")
            if header_end < 0:
                return
            header = self._buffer[:header_end].decode("ascii")
            length = int(header.split(":", 1)[1].strip())
            start = header_end + 4
            if len(self._buffer) < start + length:
                return
            body = self._buffer[start:start + length]
            self._buffer = self._buffer[start + length:]
            self._server.handle(json.loads(body))

    async def drain(self) -> None:
        pass


class FakeServerProcess:
    """
    In-memory stand-in for a codeowners-lsp subprocess.

    Answers initialize, shutdown and hover, records notifications, and
    asks for workspace/configuration after ``initialized``.
    """

    def __init__(
        self,
        server_version: Optional[str] = "0.5.0",
        hover_result: Any = None,
        fail_initialize: bool = False,
        answer_hover: bool = True,
    ):
        self.pid = 4242
        self.returncode: Optional[int] = None
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.stdin = FakeStdin(self)
        self.server_version = server_version
        self.hover_result = hover_result
        self.fail_initialize = fail_initialize
        self.answer_hover = answer_hover
        self.received: List[Dict[str, Any]] = []
        self.client_responses: List[Dict[str, Any]] = []
        self.terminated = False
        self.killed = False
        self._exited = asyncio.Event()

    def method_calls(self, method: str) -> List[Dict[str, Any]]:
        return [m for m in self.received if m.get("method") == method]

    def send(self, message: Dict[str, Any]) -> None:
        self.stdout.feed_data(encode_message(message))

    def handle(self, message: Dict[str, Any]) -> None:
        method = message.get("method")
        if method is None:
            self.client_responses.append(message)
            return

        self.received.append(message)
        if method == "initialize":
            if self.fail_initialize:
                self.send({
                    "jsonrpc": "2.0",
                    "id": message["id"],
                    "error": {"code": -32603, "message": "boom"},
                })
                return
            result: Dict[str, Any] = {"capabilities": {"hoverProvider": True}}
            if self.server_version is not None:
                result["serverInfo"] = {"name": "codeowners-lsp", "version": self.server_version}
            self.send({"jsonrpc": "2.0", "id": message["id"], "result": result})
        elif method == "initialized":
            self.send({
                "jsonrpc": "2.0",
                "id": "cfg-1",
                "method": "workspace/configuration",
                "params": {"items": [{"section": "codeowners"}]},
            })
        elif method == "shutdown":
            self.send({"jsonrpc": "2.0", "id": message["id"], "result": None})
        elif method == "exit":
            self.exit(0)
        elif method == "textDocument/hover" and self.answer_hover:
            self.send({"jsonrpc": "2.0", "id": message["id"], "result": self.hover_result})

    def exit(self, code: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = code
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode  # type: ignore[return-value]

    def terminate(self) -> None:
        self.terminated = True
        self.exit(-15)

    def kill(self) -> None:
        self.killed = True
        self.exit(-9)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Poll ``predicate`` until true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def fake_binary(tmp_path) -> Path:
    path = tmp_path / "bin" / "codeowners-lsp"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"#!/bin/sh\n")
    return path
