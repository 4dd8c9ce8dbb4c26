"""
Core building blocks shared by the Melodix services: exceptions, the
observation bus and key-value storage.
"""

from .exceptions import (
    MelodixError,
    StorageError,
    EnrichmentError,
    ProviderError,
    LookupTimeoutError,
    TaskCancelledError,
    InvalidTransitionError,
    AudioDecodeError,
    user_message
)
from .observable import Observable
from .storage import KeyValueStore, MemoryStore, JsonFileStore

__all__ = [
    'MelodixError',
    'StorageError',
    'EnrichmentError',
    'ProviderError',
    'LookupTimeoutError',
    'TaskCancelledError',
    'InvalidTransitionError',
    'AudioDecodeError',
    'user_message',
    'Observable',
    'KeyValueStore',
    'MemoryStore',
    'JsonFileStore',
]
