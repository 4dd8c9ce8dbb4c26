"""
Soft cancellation for pipeline runs

asyncio task cancellation would interrupt a provider call in the middle of
whatever it is doing. A CancellationToken instead lets the queue mark a run
as abandoned; the pipeline checks it after each suspension point and stops
with TaskCancelledError before touching any shared state.
"""

import threading
from typing import Optional

from ..core.exceptions import TaskCancelledError


class CancellationToken:
    """One-shot flag shared between the queue and a single pipeline run"""

    def __init__(self, task_id: Optional[str] = None):
        self.task_id = task_id
        self._cancelled = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled.is_set():
            self.reason = reason
            self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        """
        Raises:
            TaskCancelledError: If cancel() has been called
        """
        if self._cancelled.is_set():
            raise TaskCancelledError(
                f"Run of task {self.task_id} was {self.reason}",
                details={'task_id': self.task_id, 'reason': self.reason}
            )

    def __repr__(self) -> str:
        state = f"cancelled ({self.reason})" if self.cancelled else "active"
        return f"CancellationToken(task_id={self.task_id!r}, {state})"
