# --- Future imports ---
from __future__ import annotations

# --- Standard library imports ---
import os
import json
import tempfile
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, replace, asdict
from typing import Optional, Protocol

# --- Project imports ---
from .errors import PersistenceFailure
from .escalation import Stage
from .logger import get_logger


logger = get_logger("state")

# --- Record ---
@dataclass(frozen=True)
class StageRecord:
    """
    Durable per-host escalation record; the only memory between runs.

    Invariants:
      - scheduled_reboot_time is set only while stage is FINAL
      - reset() returns the NOMINAL record and drops every timestamp
        except the latest sample
    """
    stage: Stage = Stage.NOMINAL
    uptime_days: float = 0.0
    last_check: Optional[datetime] = None
    last_notification: Optional[datetime] = None
    scheduled_reboot_time: Optional[datetime] = None

    def with_sample(self, uptime_days: float, at: datetime) -> StageRecord:
        """Record a fresh uptime sample without touching the stage."""
        return replace(self, uptime_days=uptime_days, last_check=at)

    def advanced_to(self, stage: Stage, at: datetime) -> StageRecord:
        """Record that the notification for `stage` was shown at `at`."""
        if stage < self.stage:
            raise ValueError(f"Stage cannot move backward ({self.stage} → {stage})")
        return replace(self, stage=Stage(stage), last_notification=at)

    def with_reboot(self, at: datetime) -> StageRecord:
        if self.stage != Stage.FINAL:
            raise ValueError("A forced reboot can only be recorded at stage FINAL")
        return replace(self, scheduled_reboot_time=at)

    def reset(self) -> StageRecord:
        return StageRecord(uptime_days=self.uptime_days, last_check=self.last_check)

    # --- Serialization ---
    def to_dict(self) -> dict:
        data = asdict(self)
        data["stage"] = int(self.stage)
        for key in ("last_check", "last_notification", "scheduled_reboot_time"):
            value = data[key]
            data[key] = value.isoformat() if value is not None else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> StageRecord:
        """
        Build a record from its persisted form.

        Raises:
            ValueError: On an unknown stage, a negative uptime or a bad timestamp.
        """
        def _ts(key: str) -> Optional[datetime]:
            value = data.get(key)
            return datetime.fromisoformat(value) if value else None

        stage = Stage(int(data.get("stage", 0)))
        uptime_days = float(data.get("uptime_days", 0.0))
        if uptime_days < 0:
            raise ValueError(f"Negative uptime in record: {uptime_days}")

        scheduled = _ts("scheduled_reboot_time")
        if stage != Stage.FINAL:
            scheduled = None

        return cls(
            stage=stage,
            uptime_days=uptime_days,
            last_check=_ts("last_check"),
            last_notification=_ts("last_notification"),
            scheduled_reboot_time=scheduled,
        )


# --- Store contract ---
class StageStore(Protocol):
    def read(self) -> Optional[StageRecord]: ...
    def write(self, record: StageRecord) -> None: ...
    def clear(self) -> None: ...

def read_or_default(store: StageStore) -> StageRecord:
    """An absent record is equivalent to a NOMINAL one."""
    record = store.read()
    return record if record is not None else StageRecord()


class JsonStageStore:
    """
    Flat JSON record at a fixed, well-known path.

    Last writer wins; exactly one enforcer run per host is expected at a
    time, so there is no locking. Writes go through a temp file and
    os.replace() so readers never observe a half-written record.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def read(self) -> Optional[StageRecord]:
        """
        Raises:
            PersistenceFailure: The file exists but is unreadable or corrupt.
        """
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceFailure(f"Cannot read stage record {self.path}: {e}") from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("record is not a JSON object")
            return StageRecord.from_dict(data)
        except (ValueError, TypeError) as e:
            raise PersistenceFailure(f"Corrupt stage record {self.path}: {e}") from e

    def write(self, record: StageRecord) -> None:
        payload = json.dumps(record.to_dict(), indent=2)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceFailure(f"Cannot write stage record {self.path}: {e}") from e

        logger.debug(f"Stage record written → {self.path}")

    def clear(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceFailure(f"Cannot clear stage record {self.path}: {e}") from e

        logger.debug(f"Stage record cleared ({self.path})")


class MemoryStageStore:
    """In-process store for tests and dry runs."""

    def __init__(self, record: Optional[StageRecord] = None):
        self.record = record

    def read(self) -> Optional[StageRecord]:
        return self.record

    def write(self, record: StageRecord) -> None:
        self.record = record

    def clear(self) -> None:
        self.record = None
