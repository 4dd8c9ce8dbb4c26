"""
Lyrics package
LRC parsing and formatting
"""

from .lrc import LrcLine, parse, stringify, format_timestamp, is_lrc, plain_to_lrc

__all__ = [
    'LrcLine',
    'parse',
    'stringify',
    'format_timestamp',
    'is_lrc',
    'plain_to_lrc',
]
