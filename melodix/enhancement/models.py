"""
Enhancement task model and its state machine

An EnhancementTask tracks one request to enrich one song. Tasks are owned by
the EnhancementTaskQueue; everything else sees copies.

State Transitions:
    PENDING -> PROCESSING -> COMPLETED (success path)
    PROCESSING -> PENDING (recoverable failure, retry_count incremented)
    PROCESSING -> FAILED (retries exhausted or unrecoverable failure)
    PENDING / PROCESSING -> PAUSED (pause all)
    PAUSED -> PENDING (resume all)
    COMPLETED / FAILED / PAUSED / PROCESSING -> PENDING (manual retry)

Any other change is a bug in the caller and raises InvalidTransitionError.
"""

import copy
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from ..core.exceptions import InvalidTransitionError
from ..library.models import Song, SongPatch


class TaskStatus(Enum):
    """
    Lifecycle states of an enhancement task

    Values:
        PENDING: Waiting in the FIFO for a free processing slot
        PROCESSING: Pipeline run in flight
        COMPLETED: Enrichment finished and the result is recorded
        FAILED: Gave up after exhausting retries
        PAUSED: Parked by pause_all until resume_all
    """
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


class TaskType(Enum):
    FULL_ENHANCEMENT = "full-enhancement"


# Statuses that block another task for the same song from being enqueued
ACTIVE_STATUSES: FrozenSet[TaskStatus] = frozenset({
    TaskStatus.PENDING,
    TaskStatus.PROCESSING,
    TaskStatus.PAUSED,
})

ALLOWED_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING, TaskStatus.PAUSED}),
    TaskStatus.PROCESSING: frozenset({
        TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.PENDING, TaskStatus.PAUSED,
    }),
    TaskStatus.COMPLETED: frozenset({TaskStatus.PENDING}),
    TaskStatus.FAILED: frozenset({TaskStatus.PENDING}),
    TaskStatus.PAUSED: frozenset({TaskStatus.PENDING}),
}


def check_transition(current: TaskStatus, target: TaskStatus) -> None:
    """
    Raises:
        InvalidTransitionError: If current -> target is not in the table
    """
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Illegal task transition {current.value} -> {target.value}",
            details={'from': current.value, 'to': target.value}
        )


@dataclass
class EnhancementTask:
    """
    One enrichment request for one song

    Attributes:
        id: Opaque task identifier
        song_id: Song being enriched (one active task per song)
        song_title: Denormalized for display
        artist: Denormalized for display
        cover_url: Denormalized for display
        task_type: Kind of work requested
        status: Current lifecycle state
        progress: Completion percentage, 0-100
        retry_count: Automatic retries performed so far
        error: Human-readable reason of the last failure
        created_at: Epoch seconds of creation
        song: Snapshot of the song used to rerun the task after a restart
        result: Enrichment result once completed
    """
    song_id: str
    song_title: str
    artist: str
    cover_url: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    task_type: TaskType = TaskType.FULL_ENHANCEMENT
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    retry_count: int = 0
    error: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    song: Optional[Song] = None
    result: Optional[SongPatch] = None

    @classmethod
    def for_song(cls, song: Song) -> 'EnhancementTask':
        """Create a pending task carrying a snapshot of song"""
        return cls(
            song_id=song.id,
            song_title=song.title,
            artist=song.artist,
            cover_url=song.cover_url,
            song=copy.deepcopy(song),
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def transition(self, target: TaskStatus) -> None:
        """Move to target, enforcing the transition table"""
        check_transition(self.status, target)
        self.status = target

    def copy(self) -> 'EnhancementTask':
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'song_id': self.song_id,
            'song_title': self.song_title,
            'artist': self.artist,
            'cover_url': self.cover_url,
            'type': self.task_type.value,
            'status': self.status.value,
            'progress': self.progress,
            'retry_count': self.retry_count,
            'error': self.error,
            'created_at': self.created_at,
            'song': self.song.to_dict() if self.song else None,
            'result': self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EnhancementTask':
        """
        Rebuild a task from its persisted form

        Raises:
            KeyError, ValueError, TypeError: If the record is malformed
        """
        progress = int(data.get('progress', 0))
        song_data = data.get('song')
        result_data = data.get('result')
        return cls(
            id=str(data['id']),
            song_id=str(data['song_id']),
            song_title=data.get('song_title') or "Unknown Title",
            artist=data.get('artist') or "Unknown Artist",
            cover_url=data.get('cover_url'),
            task_type=TaskType(data.get('type', TaskType.FULL_ENHANCEMENT.value)),
            status=TaskStatus(data['status']),
            progress=min(100, max(0, progress)),
            retry_count=max(0, int(data.get('retry_count', 0))),
            error=data.get('error'),
            created_at=float(data.get('created_at') or time.time()),
            song=Song.from_dict(song_data) if song_data else None,
            result=SongPatch.from_dict(result_data) if result_data else None,
        )
