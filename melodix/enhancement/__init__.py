"""
Enhancement package
Background enrichment of library songs: providers, the pipeline step and
the bounded-concurrency task queue
"""

from .cancellation import CancellationToken
from .models import EnhancementTask, TaskStatus, TaskType, ALLOWED_TRANSITIONS
from .providers import EnrichmentProvider, CallableProvider, OnlineEnrichmentProvider, TagSuggestion
from .pipeline import (
    EnrichmentPipeline,
    PROGRESS_TAGS_STARTED,
    PROGRESS_TAGS_DONE,
    PROGRESS_LYRICS_DONE,
    PROGRESS_FINALIZED
)
from .repository import TaskRepository, DEFAULT_TASKS_KEY
from .queue import EnhancementTaskQueue

__all__ = [
    'CancellationToken',
    'EnhancementTask',
    'TaskStatus',
    'TaskType',
    'ALLOWED_TRANSITIONS',
    'EnrichmentProvider',
    'CallableProvider',
    'OnlineEnrichmentProvider',
    'TagSuggestion',
    'EnrichmentPipeline',
    'PROGRESS_TAGS_STARTED',
    'PROGRESS_TAGS_DONE',
    'PROGRESS_LYRICS_DONE',
    'PROGRESS_FINALIZED',
    'TaskRepository',
    'DEFAULT_TASKS_KEY',
    'EnhancementTaskQueue',
]
