"""
Persistence port.

Operations never save anything themselves. The editor hands every committed
snapshot to one ``SchedulePersistencePort``; these are the two stores that
ship with the package.
"""

import logging
from pathlib import Path
from typing import Protocol

from schedule_cascade.core.models import Schedule
from schedule_cascade.persistence.serialization import load_schedule, save_schedule

logger = logging.getLogger(__name__)


class SchedulePersistencePort(Protocol):
    def save(self, schedule: Schedule) -> None: ...


class InMemoryScheduleStore:
    """Keeps every saved snapshot in memory (useful for tests and dry runs)."""

    def __init__(self):
        self.saved: list[Schedule] = []

    def save(self, schedule: Schedule) -> None:
        self.saved.append(schedule)

    @property
    def latest(self) -> Schedule | None:
        return self.saved[-1] if self.saved else None

    def __len__(self) -> int:
        return len(self.saved)


class FileScheduleStore:
    """Writes each committed snapshot to one JSON/YAML file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.save_count = 0

    def save(self, schedule: Schedule) -> None:
        save_schedule(schedule, self.path)
        self.save_count += 1
        logger.debug(f"Schedule saved to {self.path} ({self.save_count} saves)")

    def load(self) -> Schedule:
        return load_schedule(self.path)
