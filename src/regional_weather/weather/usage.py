"""Daily API call budget tracking."""

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from regional_weather.config import FORCE_ANALYSIS, MAX_DAILY_CALLS, USAGE_TRACKING_FILE

logger = logging.getLogger(__name__)


class UsageRecord(BaseModel):
    """Persisted usage state."""
    daily_calls: Dict[str, int] = Field(default_factory=dict, description="Calls per UTC date")
    total_calls: int = Field(0, ge=0)
    last_reset: Optional[str] = Field(None, description="UTC date of the last counter reset")


class UsageStatus(BaseModel):
    """Budget status for today."""
    today_calls: int
    remaining: int
    limit_reached: bool
    can_call: bool


def utc_today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def write_json_atomic(path: Path, payload: str) -> None:
    """Write text to ``path`` through a temporary file and an atomic rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class UsageTracker:
    """Date-keyed call counter, loaded once and saved once per run.

    The counter is the only state carried between runs. Increments are
    serialized so concurrent region analyses never lose an update, and
    ``save`` merges this run's calls into whatever is on disk so overlapping
    runs add up instead of overwriting each other.
    """

    def __init__(
        self,
        path: Union[str, Path] = USAGE_TRACKING_FILE,
        daily_limit: int = MAX_DAILY_CALLS,
        force: bool = FORCE_ANALYSIS,
        today: Optional[str] = None
    ):
        """Initialize the usage tracker.

        Args:
            path: JSON file holding the counters
            daily_limit: Maximum calls per UTC day
            force: Ignore the daily limit
            today: Override the current UTC date (YYYY-MM-DD)
        """
        self.path = Path(path)
        self.daily_limit = daily_limit
        self.force = force
        self.today = today or utc_today()
        self.record = UsageRecord()
        self.unsaved_calls = 0
        self._lock = asyncio.Lock()

    def _read(self) -> UsageRecord:
        try:
            with open(self.path, encoding="utf-8") as f:
                record = UsageRecord(**json.load(f))
        except FileNotFoundError:
            logger.info(f"No usage tracking file at {self.path}, starting fresh")
            record = UsageRecord()
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable usage tracking file {self.path}: {type(e).__name__}")
            record = UsageRecord()

        if record.last_reset != self.today:
            # New day: only today's counter is kept
            record = UsageRecord(total_calls=record.total_calls, last_reset=self.today)

        return record

    def load(self) -> UsageRecord:
        """Read the persisted counters; a missing or corrupt file starts fresh."""
        self.record = self._read()
        self.unsaved_calls = 0
        return self.record

    @property
    def today_calls(self) -> int:
        return self.record.daily_calls.get(self.today, 0)

    def check(self) -> UsageStatus:
        today_calls = self.today_calls
        limit_reached = today_calls >= self.daily_limit
        return UsageStatus(
            today_calls=today_calls,
            remaining=max(0, self.daily_limit - today_calls),
            limit_reached=limit_reached,
            can_call=self.force or not limit_reached,
        )

    async def acquire(self) -> bool:
        """Reserve one call against today's budget.

        Returns:
            True if the call may proceed (and was counted), False otherwise
        """
        async with self._lock:
            if not self.check().can_call:
                return False
            self.record.daily_calls[self.today] = self.today_calls + 1
            self.record.total_calls += 1
            self.unsaved_calls += 1
            return True

    def save(self) -> None:
        """Add this run's calls to the counters on disk and write them back."""
        record = self._read()
        record.daily_calls[self.today] = record.daily_calls.get(self.today, 0) + self.unsaved_calls
        record.total_calls += self.unsaved_calls

        write_json_atomic(self.path, record.model_dump_json(indent=2))
        self.record = record
        self.unsaved_calls = 0
        logger.info(f"Usage tracking saved: {self.today_calls}/{self.daily_limit} calls today")
