"""Tests for the JSON-lines host bridge."""

import asyncio
import json

import pytest

from src.addon.router import AddonResponse
from src.addon.stdio import StdioBridge


class _FakeRouter:
    def __init__(self, delays=None):
        self.delays = delays or {}
        self.seen = []

    async def dispatch(self, request):
        self.seen.append(request.get("id"))
        await asyncio.sleep(self.delays.get(request.get("id"), 0))
        return AddonResponse(
            request_id=request.get("id"), event=request.get("event"), ok=True, data=None
        )


def _lines(*lines):
    queue = list(lines)

    async def read_line() -> str:
        await asyncio.sleep(0)
        return queue.pop(0) if queue else ""

    return read_line


@pytest.mark.asyncio
async def test_bridge_answers_each_request_until_eof() -> None:
    written = []
    router = _FakeRouter(delays={"slow": 0.02})
    bridge = StdioBridge(
        router,
        read_line=_lines(
            json.dumps({"id": "slow", "event": "catalog"}) + "\n",
            "\n",
            json.dumps({"id": "fast", "event": "catalog"}) + "\n",
        ),
        write_line=written.append,
    )

    await bridge.serve()

    ids = [json.loads(line)["id"] for line in written]
    assert sorted(ids) == ["fast", "slow"]
    assert ids[0] == "fast"


@pytest.mark.asyncio
async def test_bridge_reports_malformed_lines() -> None:
    written = []
    bridge = StdioBridge(
        _FakeRouter(),
        read_line=_lines("{oops\n", "[1]\n"),
        write_line=written.append,
    )

    await bridge.serve()

    payloads = [json.loads(line) for line in written]
    assert payloads == [
        {"id": None, "event": None, "ok": False, "error": "Malformed JSON"},
        {"id": None, "event": None, "ok": False, "error": "Request must be a JSON object"},
    ]


@pytest.mark.asyncio
async def test_bridge_stops_on_disconnect() -> None:
    written = []
    router = _FakeRouter()
    bridge = StdioBridge(
        router,
        read_line=_lines(
            json.dumps({"id": 1, "event": "disconnect"}) + "\n",
            json.dumps({"id": 2, "event": "catalog"}) + "\n",
        ),
        write_line=written.append,
    )

    await bridge.serve()

    assert router.seen == [1]
    assert len(written) == 1
