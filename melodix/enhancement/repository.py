"""
Persistence of the enhancement task list
"""

from typing import Iterable, List

from .models import EnhancementTask, TaskStatus
from ..core.exceptions import StorageError
from ..core.storage import KeyValueStore
from ..utils.logger import get_logger


DEFAULT_TASKS_KEY = "melodix-enhancement-tasks-v1"


class TaskRepository:
    """
    Typed load/save of enhancement tasks over a key-value store

    Neither operation raises: a task list that cannot be loaded starts empty,
    and a failed save is logged and simply repeated on the next mutation,
    since every save writes the complete list.
    """

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_TASKS_KEY):
        self.store = store
        self.key = key
        self.logger = get_logger(__name__)

    def load(self) -> List[EnhancementTask]:
        """
        Load persisted tasks

        Tasks persisted as 'processing' were interrupted by a shutdown and come
        back as 'pending' with their progress reset. Malformed records are
        skipped.
        """
        try:
            records = self.store.get(self.key, [])
        except StorageError as e:
            self.logger.error(f"Failed to load enhancement tasks, starting empty: {e}")
            return []

        if not isinstance(records, list):
            self.logger.warning(f"Ignoring enhancement task store with unexpected type {type(records).__name__}")
            return []

        tasks = []
        seen = set()
        for record in records:
            try:
                task = EnhancementTask.from_dict(record)
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                self.logger.warning(f"Skipping malformed enhancement task record: {e}")
                continue

            if task.id in seen:
                continue
            seen.add(task.id)

            if task.status == TaskStatus.PROCESSING:
                task.status = TaskStatus.PENDING
                task.progress = 0
            tasks.append(task)

        self.logger.debug(f"Loaded {len(tasks)} enhancement tasks")
        return tasks

    def save(self, tasks: Iterable[EnhancementTask]) -> bool:
        """
        Persist the full task list

        Returns:
            True if the write succeeded
        """
        records = [task.to_dict() for task in tasks]
        try:
            self.store.put(self.key, records)
            return True
        except StorageError as e:
            self.logger.error(f"Failed to save enhancement tasks: {e}")
            return False
