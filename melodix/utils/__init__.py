"""
Utilities package
Common helpers, logging, and utility functions
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
    log_performance,
    get_current_log_file
)
from .helpers import (
    format_duration,
    truncate_string,
    generate_song_id,
    is_remote_resource,
    validate_lyrics_content,
    format_timestamp
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',
    'log_performance',
    'get_current_log_file',

    # Helper exports
    'format_duration',
    'truncate_string',
    'generate_song_id',
    'is_remote_resource',
    'validate_lyrics_content',
    'format_timestamp',
]
