"""In-memory sink for finalized tasks."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

DUPLICATE_WINDOW_SECONDS = 3.0


@dataclass(slots=True)
class Task:
    title: str
    due_date: Optional[datetime] = None
    created_at: float = field(default_factory=time.time)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.due_date is None:
            return False
        now = now or datetime.now(self.due_date.tzinfo)
        return self.due_date < now


class TaskInbox:
    """Accepts (title, due_date) pairs, skipping blanks and near-duplicates."""

    def __init__(
        self,
        *,
        duplicate_window: float = DUPLICATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.duplicate_window = duplicate_window
        self.clock = clock
        self._tasks: List[Task] = []
        self._lock = threading.Lock()

    def add(self, title: str, due_date: Optional[datetime] = None) -> Optional[Task]:
        if not title:
            return None
        now = self.clock()
        with self._lock:
            for task in self._tasks:
                if task.title.lower() == title.lower() and task.created_at > now - self.duplicate_window:
                    return None
            task = Task(title=title, due_date=due_date, created_at=now)
            self._tasks.append(task)
            return task

    def list(self) -> List[Task]:
        with self._lock:
            return list(self._tasks)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)
