"""
JSON-RPC 2.0 over stdio with Language Server Protocol framing.

Each message is a block of ``Header: value`` lines terminated by an empty
line, followed by ``Content-Length`` bytes of UTF-8 JSON.
"""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from codeowners_client.errors import TransportError

logger = logging.getLogger(__name__)

METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603

RequestHandler = Callable[[Any], Union[Any, Awaitable[Any]]]
NotificationHandler = Callable[[Any], None]


def encode_message(payload: Dict[str, Any]) -> bytes:
    """Frame a JSON-RPC payload with a Content-Length header."""
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    header = f"Content-Length: {len(body)}\r\n\r\n".encode("ascii")
    return header + body


async def read_message(reader: asyncio.StreamReader) -> Optional[Dict[str, Any]]:
    """
    Read one framed message.

    Returns:
        Decoded payload, or None at end of stream

    Raises:
        TransportError: On malformed headers or body
    """
    content_length: Optional[int] = None

    while True:
        line = await reader.readline()
        if not line:
            return None
        line = line.rstrip(b"\r\n")
        if not line:
            if content_length is None:
                continue
            break
        name, _, value = line.decode("ascii", errors="replace").partition(":")
        if name.strip().lower() == "content-length":
            try:
                content_length = int(value.strip())
            except ValueError as e:
                raise TransportError(f"Invalid Content-Length header: {value.strip()}") from e

    try:
        body = await reader.readexactly(content_length)
    except asyncio.IncompleteReadError:
        return None

    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError as e:
        raise TransportError(f"Malformed JSON-RPC message: {e}") from e
    if not isinstance(payload, dict):
        raise TransportError("Malformed JSON-RPC message: expected an object")
    return payload


class JsonRpcConnection:
    """
    Bidirectional JSON-RPC session over a reader/writer pair.

    Outgoing requests get futures resolved by the read loop. Incoming
    requests are answered by registered handlers, or with MethodNotFound.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: Any,
        name: str = "server",
    ):
        self._reader = reader
        self._writer = writer
        self._name = name
        self._ids = itertools.count(1)
        self._pending: Dict[int, asyncio.Future] = {}
        self._request_handlers: Dict[str, RequestHandler] = {}
        self._notification_handlers: Dict[str, NotificationHandler] = {}
        self._write_lock = asyncio.Lock()
        self._reader_task: Optional[asyncio.Task] = None
        self._handler_tasks: Set[asyncio.Task] = set()
        self._closed = False

    def on_request(self, method: str, handler: RequestHandler) -> None:
        self._request_handlers[method] = handler

    def on_notification(self, method: str, handler: NotificationHandler) -> None:
        self._notification_handlers[method] = handler

    def start(self) -> None:
        """Begin dispatching incoming messages."""
        if self._reader_task is None:
            self._reader_task = asyncio.create_task(self._read_loop())

    @property
    def closed(self) -> bool:
        return self._closed

    async def request(
        self,
        method: str,
        params: Any = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """
        Send a request and wait for its result.

        Raises:
            TransportError: On error responses, timeouts or a closed connection
        """
        if self._closed:
            raise TransportError(f"Connection to {self._name} is closed")

        request_id = next(self._ids)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        try:
            await self._send(message)
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} timed out after {timeout}s") from e
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: Any = None) -> None:
        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._send(message)

    async def close(self) -> None:
        """Stop reading and fail pending requests."""
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None
        self._fail_pending(TransportError(f"Connection to {self._name} closed"))

    async def _send(self, message: Dict[str, Any]) -> None:
        if self._closed:
            raise TransportError(f"Connection to {self._name} is closed")
        async with self._write_lock:
            try:
                self._writer.write(encode_message(message))
                await self._writer.drain()
            except (ConnectionError, RuntimeError) as e:
                self._fail_pending(TransportError(f"Write to {self._name} failed: {e}"))
                raise TransportError(f"Write to {self._name} failed: {e}") from e

    async def _read_loop(self) -> None:
        try:
            while True:
                message = await read_message(self._reader)
                if message is None:
                    logger.debug(f"{self._name} closed its output stream")
                    break
                await self._dispatch(message)
        except TransportError as e:
            logger.error(f"Protocol error from {self._name}: {e}")
            self._fail_pending(e)
            return
        except ConnectionError as e:
            logger.debug(f"Lost connection to {self._name}: {e}")
        except Exception as e:
            logger.exception(f"Reader for {self._name} failed")
            self._fail_pending(TransportError(f"Reader for {self._name} failed: {e}"))
            return
        self._fail_pending(TransportError(f"{self._name} exited"))

    async def _dispatch(self, message: Dict[str, Any]) -> None:
        method = message.get("method")
        if method is None:
            self._resolve_response(message)
        elif "id" in message:
            task = asyncio.create_task(
                self._handle_request(message["id"], method, message.get("params"))
            )
            self._handler_tasks.add(task)
            task.add_done_callback(self._handler_tasks.discard)
        else:
            handler = self._notification_handlers.get(method)
            if handler is None:
                logger.debug(f"Unhandled notification from {self._name}: {method}")
                return
            try:
                handler(message.get("params"))
            except Exception:
                logger.exception(f"Notification handler for {method} failed")

    def _resolve_response(self, message: Dict[str, Any]) -> None:
        request_id = message.get("id")
        future = self._pending.get(request_id) if isinstance(request_id, int) else None
        if future is None or future.done():
            logger.debug(f"Dropping response for unknown request id {message.get('id')!r}")
            return
        error = message.get("error")
        if isinstance(error, dict):
            future.set_exception(
                TransportError(
                    f"{self._name} returned error: {error.get('message', error)}",
                    code=error.get("code"),
                )
            )
        elif error is not None:
            future.set_exception(TransportError(f"{self._name} returned error: {error!r}"))
        else:
            future.set_result(message.get("result"))

    async def _handle_request(self, request_id: Any, method: str, params: Any) -> None:
        handler = self._request_handlers.get(method)
        response: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
        if handler is None:
            logger.debug(f"Rejecting unsupported request from {self._name}: {method}")
            response["error"] = {"code": METHOD_NOT_FOUND, "message": f"Method not found: {method}"}
        else:
            try:
                result = handler(params)
                if asyncio.iscoroutine(result):
                    result = await result
                response["result"] = result
            except Exception as e:
                logger.exception(f"Request handler for {method} failed")
                response["error"] = {"code": INTERNAL_ERROR, "message": str(e)}
        try:
            await self._send(response)
        except TransportError as e:
            logger.debug(f"Could not answer {method}: {e}")

    def _fail_pending(self, error: TransportError) -> None:
        self._closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()
