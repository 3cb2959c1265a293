"""JSON-lines bridge between the host process and the event router.

One JSON request per line on stdin, one JSON response per line on stdout.
Requests run concurrently so update checks for the same app coalesce.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import structlog

from .router import DISCONNECT_EVENT, AddonEventRouter, AddonResponse

logger = structlog.get_logger()


async def _open_stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader()
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
    )
    return reader


def _write_stdout_line(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class StdioBridge:
    """Serve host requests until EOF or a ``disconnect`` event."""

    def __init__(
        self,
        router: AddonEventRouter,
        *,
        read_line: Optional[Callable[[], Awaitable[str]]] = None,
        write_line: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.router = router
        self._read_line = read_line or self._read_stdin_line
        self._write_line = write_line or _write_stdout_line
        self._in_flight: Set[asyncio.Task[None]] = set()
        self._stdin: Optional[asyncio.StreamReader] = None

    async def serve(self) -> None:
        try:
            while True:
                line = await self._read_line()
                if not line:
                    logger.info("Host closed input stream")
                    break
                line = line.strip()
                if not line:
                    continue

                request = self._parse(line)
                if request is None:
                    continue
                if request.get("event") == DISCONNECT_EVENT:
                    logger.info("Disconnect requested by host")
                    await self._handle(request)
                    break

                task = asyncio.create_task(self._handle(request))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
        except asyncio.CancelledError:
            for task in self._in_flight:
                task.cancel()
            raise
        finally:
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    async def _read_stdin_line(self) -> str:
        if self._stdin is None:
            self._stdin = await _open_stdin_reader()
        raw = await self._stdin.readline()
        return raw.decode("utf-8", errors="replace")

    def _parse(self, line: str) -> Optional[Dict[str, Any]]:
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Malformed request line", error=str(e))
            self._send(
                AddonResponse(
                    request_id=None, event=None, ok=False, error="Malformed JSON"
                )
            )
            return None
        if not isinstance(request, dict):
            self._send(
                AddonResponse(
                    request_id=None,
                    event=None,
                    ok=False,
                    error="Request must be a JSON object",
                )
            )
            return None
        return request

    async def _handle(self, request: Dict[str, Any]) -> None:
        response = await self.router.dispatch(request)
        self._send(response)

    def _send(self, response: AddonResponse) -> None:
        self._write_line(json.dumps(response.to_payload(), ensure_ascii=False))
