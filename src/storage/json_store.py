"""Whole-file JSON record store.

Every write replaces the file as a unit (load, modify, save). Concurrent
writers inside this process are only safe because the update service never
runs two processors for the same app id; two processes sharing a data
directory can still lose each other's writes.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping

import structlog

from src.exceptions import PersistenceError

logger = structlog.get_logger()


class JsonRecordStore:
    """Persist a flat string-keyed mapping to a local JSON file."""

    def __init__(self, state_file: Path) -> None:
        self.state_file = state_file

    def load_all(self) -> Dict[str, Any]:
        """Load the whole mapping; missing or corrupt files read as empty."""
        if not self.state_file.exists():
            return {}

        try:
            raw = self.state_file.read_bytes()
        except OSError as e:
            raise PersistenceError(f"Cannot read {self.state_file}: {e}") from e

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                "Corrupt state file, treating as empty",
                path=str(self.state_file),
                error=str(e),
            )
            return {}

        if not isinstance(payload, dict):
            logger.warning(
                "State file does not hold an object, treating as empty",
                path=str(self.state_file),
                payload_type=type(payload).__name__,
            )
            return {}
        return payload

    def save_all(self, records: Mapping[str, Any]) -> None:
        """Replace the persisted mapping with ``records``."""
        tmp_file = self.state_file.with_suffix(f"{self.state_file.suffix}.tmp")
        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(
                json.dumps(dict(records), ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            tmp_file.replace(self.state_file)
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Cannot write {self.state_file}: {e}") from e
