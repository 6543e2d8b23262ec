"""JSON file persistence for daily productivity snapshots.

All days live in one document, `<data_dir>/productivity_data.json`:

    {"dailyData": {"2024-05-01": {...snapshot...}}, "lastUpdated": <ms>}

Persistence is best-effort. Load and save failures are logged and reported
through return values; they never raise into the monitoring loop.
"""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

DATA_FILE_NAME = "productivity_data.json"


class StoredDay(BaseModel):
    """One persisted day, as written by `ProductivityStore.save`."""

    date: str
    hourlyData: dict[str, dict[str, Any]] = Field(default_factory=dict)
    ledger: dict[str, Any] = Field(default_factory=dict)
    sessionData: dict[str, Any] = Field(default_factory=dict)
    savedAt: float = 0.0

    def snapshot(self) -> dict[str, Any]:
        return {"hourlyData": self.hourlyData, "ledger": self.ledger, "sessionData": self.sessionData}


class ProductivityStore:
    """Day-keyed snapshot store backed by a single JSON file."""

    def __init__(self, data_dir: str | Path, retain_days: int = 31) -> None:
        self.path = Path(data_dir) / DATA_FILE_NAME
        self.retain_days = retain_days

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            doc = json.load(f)
        return doc if isinstance(doc, dict) else {}

    def load(self, day: str) -> StoredDay | None:
        """Return the stored snapshot for `day`, or None if missing/unreadable."""

        try:
            raw = (self._read().get("dailyData") or {}).get(day)
            if raw is None:
                return None
            return StoredDay.model_validate({**raw, "date": day})
        except (OSError, ValueError, ValidationError):
            logger.exception("Failed to load stored data for %s", day)
            return None

    def days(self) -> list[str]:
        """Return stored days, oldest first."""

        try:
            return sorted((self._read().get("dailyData") or {}).keys())
        except (OSError, ValueError):
            logger.exception("Failed to list stored days")
            return []

    def load_range(self, start: str, end: str) -> dict[str, StoredDay]:
        """Return stored days with `start <= day <= end` (ISO dates), keyed by day."""

        try:
            daily = self._read().get("dailyData") or {}
        except (OSError, ValueError):
            logger.exception("Failed to read stored data for %s..%s", start, end)
            return {}
        out: dict[str, StoredDay] = {}
        for day in sorted(daily):
            if not start <= day <= end:
                continue
            try:
                out[day] = StoredDay.model_validate({**daily[day], "date": day})
            except (TypeError, ValidationError):
                logger.warning("Skipping unreadable stored day %s", day)
        return out

    def save(self, day: str, snapshot: dict[str, Any]) -> bool:
        """Write `snapshot` under `day`. Returns False on failure."""

        try:
            try:
                doc = self._read()
            except ValueError:
                logger.warning("Stored data at %s is corrupt; starting a new file", self.path)
                doc = {}
            daily = doc.get("dailyData") or {}
            now_ms = time.time() * 1000.0
            entry = StoredDay(
                date=day,
                hourlyData=snapshot.get("hourlyData") or {},
                ledger=snapshot.get("ledger") or {},
                sessionData=snapshot.get("sessionData") or {},
                savedAt=now_ms,
            )
            daily[day] = entry.model_dump()
            for old in sorted(daily)[: max(0, len(daily) - self.retain_days)]:
                del daily[old]

            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_suffix(".json.tmp")
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump({"dailyData": daily, "lastUpdated": now_ms}, f)
                os.replace(tmp, self.path)
            except (OSError, TypeError, ValueError):
                tmp.unlink(missing_ok=True)
                raise
            return True
        except (OSError, TypeError, ValueError):
            logger.exception("Failed to save data for %s", day)
            return False
