"""Update resolution service.

Each app id gets its own FIFO queue of pending update checks and at most one
processor task draining it. The processor serves cache hits immediately and
routes every metadata fetch through the app's rate limiter, so at any moment
there is at most one in-flight fetch per app.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

import structlog

from src.exceptions import StoreError
from src.steam.models import AppBuildRecord

from .legacy_versions import LegacyVersionResolver, is_placeholder_version
from .metadata import AppMetadataSource, derive_version
from .rate_limiter import AppRateLimiter
from .version_cache import VersionCache

logger = structlog.get_logger()


@dataclass(frozen=True)
class UpdateCheckResult:
    version: str
    available: bool

    def as_dict(self) -> Dict[str, Any]:
        return {"version": self.version, "available": self.available}


@dataclass
class PendingRequest:
    app_id: int
    current_version: str
    future: "asyncio.Future[UpdateCheckResult]"


@dataclass
class _AppQueue:
    requests: Deque[PendingRequest] = field(default_factory=deque)
    processing: bool = False
    task: Optional["asyncio.Task[None]"] = None


class UpdateService:
    """Coalesce, rate-limit and cache update checks per app id."""

    def __init__(
        self,
        metadata_source: AppMetadataSource,
        version_cache: VersionCache,
        rate_limiter: AppRateLimiter,
        legacy_resolver: Optional[LegacyVersionResolver] = None,
        *,
        cooldown_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.metadata_source = metadata_source
        self.version_cache = version_cache
        self.rate_limiter = rate_limiter
        self.legacy_resolver = legacy_resolver
        self.cooldown_seconds = (
            rate_limiter.cooldown_seconds
            if cooldown_seconds is None
            else max(0.0, float(cooldown_seconds))
        )
        self._sleep = sleep
        self._queues: Dict[int, _AppQueue] = {}

    def submit(
        self, app_id: int, current_version: str
    ) -> "asyncio.Future[UpdateCheckResult]":
        """Enqueue a check and return the future the processor will fulfil."""
        future: asyncio.Future[UpdateCheckResult] = (
            asyncio.get_running_loop().create_future()
        )
        queue = self._queues.get(app_id)
        if queue is None:
            queue = _AppQueue()
            self._queues[app_id] = queue
        queue.requests.append(
            PendingRequest(
                app_id=app_id, current_version=str(current_version), future=future
            )
        )

        if not queue.processing:
            queue.processing = True
            queue.task = asyncio.create_task(
                self._drain(app_id, queue), name=f"update-check:{app_id}"
            )
        else:
            logger.debug(
                "Update check queued behind active processor",
                app_id=app_id,
                pending=len(queue.requests),
            )
        return future

    async def check_for_update(
        self, app_id: int, current_version: str
    ) -> UpdateCheckResult:
        """Resolve the latest version of ``app_id`` against ``current_version``.

        Raises:
            AppNotFoundError: upstream does not know the app.
            TransientFetchError: the metadata fetch failed.
        """
        return await self.submit(app_id, current_version)

    def pending_count(self, app_id: int) -> int:
        queue = self._queues.get(app_id)
        return len(queue.requests) if queue else 0

    def is_processing(self, app_id: int) -> bool:
        queue = self._queues.get(app_id)
        return bool(queue and queue.processing)

    def active_app_ids(self) -> List[int]:
        return list(self._queues)

    async def close(self) -> None:
        """Cancel running processors; their unserved requests are cancelled."""
        tasks = [q.task for q in self._queues.values() if q.task and not q.task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Update service closed", cancelled_processors=len(tasks))

    async def _drain(self, app_id: int, queue: _AppQueue) -> None:
        current: Optional[PendingRequest] = None
        try:
            while queue.requests:
                current = queue.requests.popleft()
                used_network = await self._serve(current)
                current = None
                if used_network and queue.requests and self.cooldown_seconds > 0:
                    await self._sleep(self.cooldown_seconds)
        finally:
            queue.processing = False
            if self._queues.get(app_id) is queue:
                del self._queues[app_id]
            leftovers = [current] if current is not None else []
            leftovers.extend(queue.requests)
            queue.requests.clear()
            for request in leftovers:
                if not request.future.done():
                    request.future.cancel()

    async def _serve(self, request: PendingRequest) -> bool:
        """Fulfil one request; returns True when a metadata fetch was made."""
        app_id = request.app_id
        used_network = False

        async def fetch_record(target_app_id: int) -> AppBuildRecord:
            nonlocal used_network
            used_network = True
            await self.rate_limiter.await_turn(target_app_id)
            record = await self.metadata_source.fetch_app_metadata(target_app_id)
            self.version_cache.put(target_app_id, derive_version(record))
            return record

        try:
            current_version = request.current_version
            if self.legacy_resolver is not None and is_placeholder_version(
                current_version
            ):
                current_version = await self.legacy_resolver.resolve(
                    app_id, current_version, fetch=fetch_record
                )

            cached = self.version_cache.get(app_id)
            if cached is not None:
                version = cached.version
                source = "cache"
            else:
                version = derive_version(await fetch_record(app_id))
                source = "upstream"

            result = UpdateCheckResult(
                version=version, available=version != current_version
            )
            logger.info(
                "Update check resolved",
                app_id=app_id,
                version=version,
                current_version=current_version,
                available=result.available,
                source=source,
            )
            if not request.future.done():
                request.future.set_result(result)
        except StoreError as e:
            logger.warning(
                "Update check failed",
                app_id=app_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            if not request.future.done():
                request.future.set_exception(e)
        except Exception as e:
            logger.exception("Unexpected update check error", app_id=app_id)
            if not request.future.done():
                request.future.set_exception(e)
        return used_network
