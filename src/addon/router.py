"""Dispatch host events to handlers and build response envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from src.exceptions import CatalogError, InvalidRequestError

from .handlers import AddonHandlers

logger = structlog.get_logger()

DISCONNECT_EVENT = "disconnect"


@dataclass
class AddonResponse:
    """Envelope written back to the host for one request."""

    request_id: Optional[Any]
    event: Optional[str]
    ok: bool
    data: Any = None
    error: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.request_id,
            "event": self.event,
            "ok": self.ok,
        }
        if self.ok:
            payload["data"] = self.data
        else:
            payload["error"] = self.error
        return payload


def _require_app_id(args: Dict[str, Any]) -> int:
    raw = args.get("appID")
    try:
        app_id = int(raw)
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid appID: {raw!r}")
    if app_id <= 0:
        raise InvalidRequestError(f"Invalid appID: {raw!r}")
    return app_id


class AddonEventRouter:
    """Map host event names onto ``AddonHandlers`` calls."""

    def __init__(self, handlers: AddonHandlers):
        self.handlers = handlers
        self._routes: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "configure": self._configure,
            "config-update": self._config_update,
            "connect": self._connect,
            "library-search": self._library_search,
            "game-details": self._game_details,
            "catalog": self._catalog,
            "check-for-updates": self._check_for_updates,
            DISCONNECT_EVENT: self._disconnect,
        }

    @property
    def events(self) -> list[str]:
        return sorted(self._routes)

    async def dispatch(self, request: Dict[str, Any]) -> AddonResponse:
        """Run one request; never raises for handler failures."""
        request_id = request.get("id")
        event = request.get("event")
        args = request.get("args") or {}

        route = self._routes.get(event) if isinstance(event, str) else None
        if route is None:
            logger.warning("Unknown event", event_name=event, request_id=request_id)
            return AddonResponse(
                request_id=request_id,
                event=event,
                ok=False,
                error=f"Unknown event: {event}",
            )
        if not isinstance(args, dict):
            return AddonResponse(
                request_id=request_id,
                event=event,
                ok=False,
                error="Request args must be an object",
            )

        try:
            data = await route(args)
        except CatalogError as e:
            logger.info(
                "Event failed",
                event_name=event,
                request_id=request_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return AddonResponse(
                request_id=request_id, event=event, ok=False, error=str(e)
            )
        except Exception:
            logger.exception("Unhandled event error", event_name=event, request_id=request_id)
            return AddonResponse(
                request_id=request_id, event=event, ok=False, error="Internal error"
            )

        return AddonResponse(request_id=request_id, event=event, ok=True, data=data)

    async def _configure(self, args: Dict[str, Any]) -> Any:
        return self.handlers.configure()

    async def _config_update(self, args: Dict[str, Any]) -> Any:
        self.handlers.apply_config(args)
        return {"steam-limit": self.handlers.search_limit}

    async def _connect(self, args: Dict[str, Any]) -> Any:
        return {"log": await self.handlers.connect()}

    async def _library_search(self, args: Dict[str, Any]) -> Any:
        query = args.get("query")
        if not isinstance(query, str):
            raise InvalidRequestError("library-search requires a query string")
        return await self.handlers.library_search(query)

    async def _game_details(self, args: Dict[str, Any]) -> Any:
        return await self.handlers.game_details(_require_app_id(args))

    async def _catalog(self, args: Dict[str, Any]) -> Any:
        return await self.handlers.catalog()

    async def _check_for_updates(self, args: Dict[str, Any]) -> Any:
        app_id = _require_app_id(args)
        current_version = args.get("currentVersion")
        if not isinstance(current_version, str) or not current_version.strip():
            raise InvalidRequestError("check-for-updates requires currentVersion")
        return await self.handlers.check_for_updates(app_id, current_version.strip())

    async def _disconnect(self, args: Dict[str, Any]) -> Any:
        return None
