"""Host-facing addon surface: handlers, event routing and transport."""

from .handlers import AddonHandlers
from .router import AddonEventRouter, AddonResponse
from .stdio import StdioBridge

__all__ = ["AddonEventRouter", "AddonHandlers", "AddonResponse", "StdioBridge"]
