"""
Enhancement task queue

Accepts enrichment requests, keeps at most one active task per song, runs
the enrichment pipeline for pending tasks under a concurrency ceiling,
retries failures a bounded number of times, and persists and broadcasts the
whole task list after every change.

Scheduling:
    Pending task ids wait in an explicit FIFO deque, separate from the task
    map that also archives completed and failed tasks. A drain pass pops ids
    from the front of the deque while fewer than max_concurrent tasks are
    processing, and runs each on the current asyncio event loop. Drain passes
    happen after enqueue, completion, failure, resume, retry and removal.
    Without a running event loop drain is a no-op; the next drain inside a
    loop (for example wait_until_idle) picks the work up.

Cancellation:
    Removing, pausing or manually retrying a processing task cancels the
    CancellationToken of its run. The run notices at its next suspension
    point and its outcome is discarded.

Thread Safety:
    All state changes and drain passes happen under one re-entrant lock, so a
    host that calls into the queue from several threads can never start more
    than max_concurrent runs. Subscribers are notified while that lock is
    held; they may call back into the queue from the same thread.
"""

import asyncio
import threading
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional, Set, Tuple

from .cancellation import CancellationToken
from .models import EnhancementTask, TaskStatus
from .pipeline import EnrichmentPipeline, PROGRESS_FINALIZED
from .repository import TaskRepository
from ..core.exceptions import TaskCancelledError, user_message
from ..core.observable import Observable
from ..library.models import Song
from ..utils.logger import get_logger


TaskSnapshot = Tuple[EnhancementTask, ...]
SongResolver = Callable[[str], Optional[Song]]
ResultCallback = Callable[[Song], None]


class EnhancementTaskQueue:
    """
    Bounded-concurrency enrichment queue with retry and persistence

    Usage:
        queue = EnhancementTaskQueue(TaskRepository(store), EnrichmentPipeline(provider))
        queue.subscribe(render)
        queue.enqueue(song)
        await queue.wait_until_idle()
    """

    def __init__(
        self,
        repository: TaskRepository,
        pipeline: EnrichmentPipeline,
        max_concurrent: int = 3,
        max_retries: int = 2,
        song_resolver: Optional[SongResolver] = None,
        on_result: Optional[ResultCallback] = None
    ):
        """
        Initialize the queue and restore persisted tasks

        Args:
            repository: Persistence of the task list
            pipeline: Enrichment step run for each task
            max_concurrent: Maximum number of tasks processing at once
            max_retries: Automatic retries before a task is marked failed
            song_resolver: Looks up a song by id for tasks persisted without
                a song snapshot
            on_result: Receives the enhanced song of every completed task
        """
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if max_retries < 0:
            raise ValueError("max_retries must not be negative")

        self.repository = repository
        self.pipeline = pipeline
        self.max_concurrent = max_concurrent
        self.max_retries = max_retries
        self.song_resolver = song_resolver
        self.on_result = on_result
        self.logger = get_logger(__name__)

        self._lock = threading.RLock()
        self._tasks: Dict[str, EnhancementTask] = {}
        self._pending: Deque[str] = deque()
        self._runs: Dict[str, CancellationToken] = {}
        self._inflight: Set[asyncio.Task] = set()
        self._closed = False
        self._bus: Observable[TaskSnapshot] = Observable(self.snapshot, name="enhancement queue", lock=self._lock)

        self._restore()

    def _restore(self) -> None:
        tasks = self.repository.load()
        for task in tasks:
            self._tasks[task.id] = task
        restored = sorted(
            (task for task in tasks if task.status == TaskStatus.PENDING),
            key=lambda task: task.created_at
        )
        self._pending.extend(task.id for task in restored)
        if tasks:
            self.logger.info(f"Restored {len(tasks)} enhancement tasks ({len(restored)} pending)")

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[TaskSnapshot], None]) -> Callable[[], None]:
        """Receive the task list now and after every change"""
        return self._bus.subscribe(callback)

    def snapshot(self) -> TaskSnapshot:
        """Copies of all tasks in creation order"""
        with self._lock:
            return tuple(task.copy() for task in self._tasks.values())

    def get_task(self, task_id: str) -> Optional[EnhancementTask]:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.copy() if task else None

    def stats(self) -> Dict[str, int]:
        """Number of tasks per status, plus the total"""
        with self._lock:
            counts = {status.value: 0 for status in TaskStatus}
            for task in self._tasks.values():
                counts[task.status.value] += 1
            counts['total'] = len(self._tasks)
            return counts

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def enqueue(self, song: Song) -> Optional[EnhancementTask]:
        """
        Request enrichment of a song

        Args:
            song: Song to enrich; a snapshot is stored with the task

        Returns:
            Copy of the new task, copy of the already active task for this
            song, or None for a song without an id
        """
        if song is None or not getattr(song, 'id', None):
            self.logger.warning("Ignoring enhancement request for a song without an id")
            return None

        with self._lock:
            existing = self._active_task_for(song.id)
            if existing is not None:
                self.logger.debug(f"Song {song.id} already has active task {existing.id}")
                return existing.copy()

            task = EnhancementTask.for_song(song)
            self._tasks[task.id] = task
            self._pending.append(task.id)
            self.logger.info(f"Queued enhancement of '{song.title}' by {song.artist} as task {task.id}")
            self._commit()
            created = task.copy()

        self._drain()
        return created

    def pause_all(self) -> int:
        """
        Park every pending and processing task

        Runs in flight are cancelled; their results are discarded.

        Returns:
            Number of tasks paused
        """
        with self._lock:
            paused = 0
            for task in self._tasks.values():
                if task.status in (TaskStatus.PENDING, TaskStatus.PROCESSING):
                    self._cancel_run(task.id, "paused")
                    task.transition(TaskStatus.PAUSED)
                    paused += 1
            self._pending.clear()
            if paused:
                self.logger.info(f"Paused {paused} enhancement tasks")
                self._commit()
            return paused

    def resume_all(self) -> int:
        """
        Make every paused task pending again, oldest first

        Returns:
            Number of tasks resumed
        """
        with self._lock:
            paused = sorted(
                (task for task in self._tasks.values() if task.status == TaskStatus.PAUSED),
                key=lambda task: task.created_at
            )
            for task in paused:
                task.transition(TaskStatus.PENDING)
                task.progress = 0
                self._pending.append(task.id)
            if paused:
                self.logger.info(f"Resumed {len(paused)} enhancement tasks")
                self._commit()

        self._drain()
        return len(paused)

    def retry_task(self, task_id: str) -> bool:
        """
        Restart a task from the top of the pipeline with a fresh retry budget

        Refused when another task for the same song is active.

        Returns:
            True if the task is pending afterwards
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                self.logger.warning(f"Cannot retry unknown task {task_id}")
                return False

            other = self._active_task_for(task.song_id, exclude=task_id)
            if other is not None:
                self.logger.warning(
                    f"Cannot retry task {task_id}: song {task.song_id} already has active task {other.id}"
                )
                return False

            if task.status != TaskStatus.PENDING:
                self._cancel_run(task_id, "retried")
                task.transition(TaskStatus.PENDING)
                task.progress = 0
                task.result = None
                self._pending.append(task_id)

            task.retry_count = 0
            task.error = None
            self.logger.info(f"Retrying enhancement task {task_id}")
            self._commit()

        self._drain()
        return True

    def remove_task(self, task_id: str) -> bool:
        """
        Delete a task in any state, cancelling its run if one is in flight

        Returns:
            True if the task existed
        """
        with self._lock:
            task = self._tasks.pop(task_id, None)
            if task is None:
                return False
            self._cancel_run(task_id, "removed")
            self._discard_pending(task_id)
            self.logger.info(f"Removed enhancement task {task_id} ({task.status.value})")
            self._commit()

        self._drain()
        return True

    def clear_completed(self) -> int:
        """Remove all completed tasks; returns how many were removed"""
        return self._clear(TaskStatus.COMPLETED)

    def clear_failed(self) -> int:
        """Remove all failed tasks; returns how many were removed"""
        return self._clear(TaskStatus.FAILED)

    async def wait_until_idle(self) -> None:
        """
        Drain and wait until no run is in flight and nothing can be started

        Must be awaited on the event loop that runs the tasks.
        """
        while True:
            self._drain()
            with self._lock:
                running = [runner for runner in self._inflight if not runner.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    async def close(self) -> None:
        """
        Stop scheduling and abandon runs in flight

        Interrupted tasks go back to pending and are restarted from the top
        the next time the queue is constructed or drained.
        """
        with self._lock:
            self._closed = True
            running = [runner for runner in self._inflight if not runner.done()]
        for runner in running:
            runner.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def _drain(self) -> None:
        with self._lock:
            if self._closed:
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                if self._pending:
                    self.logger.debug("No running event loop, deferring drain")
                return

            started = 0
            while self._pending and self._processing_count() < self.max_concurrent:
                task_id = self._pending.popleft()
                task = self._tasks.get(task_id)
                if task is None or task.status != TaskStatus.PENDING:
                    continue

                task.transition(TaskStatus.PROCESSING)
                token = CancellationToken(task_id)
                self._runs[task_id] = token
                runner = loop.create_task(self._execute(task_id, token))
                self._inflight.add(runner)
                runner.add_done_callback(self._inflight.discard)
                started += 1

            if started:
                self._commit()

    async def _execute(self, task_id: str, token: CancellationToken) -> None:
        interrupted = False
        try:
            with self._lock:
                task = self._tasks.get(task_id)
                if task is None or token.cancelled:
                    return
                song = task.song
                title = task.song_title

            if song is None and self.song_resolver is not None:
                try:
                    song = self.song_resolver(task.song_id)
                except Exception as e:
                    self.logger.error(f"Could not resolve song {task.song_id} for task {task_id}: {e}")
                    song = None
            if song is None or not song.is_valid:
                self._settle_failure(task_id, token, f"Song '{title}' is no longer available.", retry=False)
                return

            self.logger.debug(f"Running enhancement task {task_id} for song {song.id}")
            try:
                patch = await self.pipeline.run(
                    song,
                    lambda value: self._report_progress(task_id, token, value),
                    token
                )
            except TaskCancelledError:
                self.logger.debug(f"Discarded cancelled run of task {task_id} ({token.reason})")
                return
            except asyncio.CancelledError:
                interrupted = True
                self._requeue_interrupted(task_id, token)
                raise
            except Exception as e:
                self.logger.debug(f"Enhancement task {task_id} raised {type(e).__name__}: {e}")
                self._settle_failure(task_id, token, user_message(e), retry=True)
                return

            self._settle_success(task_id, token, song, patch)
        finally:
            with self._lock:
                if self._runs.get(task_id) is token:
                    del self._runs[task_id]
            if not interrupted:
                self._drain()

    def _report_progress(self, task_id: str, token: CancellationToken, value: int) -> None:
        with self._lock:
            if token.cancelled:
                return
            task = self._tasks.get(task_id)
            if task is None or task.status != TaskStatus.PROCESSING:
                return
            value = min(PROGRESS_FINALIZED, max(task.progress, int(value)))
            if value != task.progress:
                task.progress = value
                self._commit()

    def _settle_success(self, task_id: str, token: CancellationToken, song: Song, patch) -> None:
        with self._lock:
            task = self._tasks.get(task_id)
            if token.cancelled or task is None or task.status != TaskStatus.PROCESSING:
                return
            task.transition(TaskStatus.COMPLETED)
            task.progress = PROGRESS_FINALIZED
            task.result = patch
            task.error = None
            self.logger.info(f"Enhancement of '{task.song_title}' completed")
            self._commit()

        if self.on_result is not None:
            enhanced = song.apply_patch(patch)
            try:
                self.on_result(enhanced)
            except Exception as e:
                self.logger.error(f"Result callback failed for song {song.id}: {e}", exc_info=True)

    def _settle_failure(self, task_id: str, token: CancellationToken, message: str, retry: bool) -> None:
        with self._lock:
            task = self._tasks.get(task_id)
            if token.cancelled or task is None or task.status != TaskStatus.PROCESSING:
                return

            task.error = message
            if retry and task.retry_count < self.max_retries:
                task.transition(TaskStatus.PENDING)
                task.retry_count += 1
                task.progress = 0
                self._pending.append(task_id)
                self.logger.warning(
                    f"Enhancement of '{task.song_title}' failed, retry {task.retry_count}/{self.max_retries}: {message}"
                )
            else:
                task.transition(TaskStatus.FAILED)
                self.logger.error(f"Enhancement of '{task.song_title}' failed: {message}")
            self._commit()

    def _requeue_interrupted(self, task_id: str, token: CancellationToken) -> None:
        with self._lock:
            task = self._tasks.get(task_id)
            if token.cancelled or task is None or task.status != TaskStatus.PROCESSING:
                return
            task.transition(TaskStatus.PENDING)
            task.progress = 0
            self._pending.appendleft(task_id)
            self._commit()

    # ------------------------------------------------------------------
    # Internal helpers (callers hold the lock)
    # ------------------------------------------------------------------

    def _commit(self) -> None:
        self.repository.save(self._tasks.values())
        self._bus.notify()

    def _processing_count(self) -> int:
        return sum(1 for task in self._tasks.values() if task.status == TaskStatus.PROCESSING)

    def _active_task_for(self, song_id: str, exclude: Optional[str] = None) -> Optional[EnhancementTask]:
        for task in self._tasks.values():
            if task.song_id == song_id and task.id != exclude and task.is_active:
                return task
        return None

    def _cancel_run(self, task_id: str, reason: str) -> None:
        token = self._runs.pop(task_id, None)
        if token is not None:
            token.cancel(reason)

    def _discard_pending(self, task_id: str) -> None:
        try:
            self._pending.remove(task_id)
        except ValueError:
            pass

    def _clear(self, status: TaskStatus) -> int:
        with self._lock:
            doomed = [task_id for task_id, task in self._tasks.items() if task.status == status]
            for task_id in doomed:
                del self._tasks[task_id]
            if doomed:
                self.logger.info(f"Cleared {len(doomed)} {status.value} enhancement tasks")
                self._commit()
            return len(doomed)

    def tasks_with_status(self, statuses: Iterable[TaskStatus]) -> TaskSnapshot:
        """Copies of the tasks whose status is in statuses"""
        wanted = set(statuses)
        with self._lock:
            return tuple(task.copy() for task in self._tasks.values() if task.status in wanted)
