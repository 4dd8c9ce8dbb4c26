"""
LRC (synchronized lyrics) parsing and generation

LRC lines carry one or more [mm:ss.xx] timestamps followed by the text sung
at that moment:

    [00:12.00][01:40.50]Chorus line
    [00:15.30]Next line

Parsing expands every timestamp into its own line and sorts the result by
time. Metadata headers such as [ar:Artist] are not timestamps and are
ignored by the parser.
"""

import math
import re
from dataclasses import dataclass
from typing import List


TIMESTAMP_PATTERN = re.compile(r'\[(\d+):(\d+(?:\.\d+)?)\]')


@dataclass(frozen=True)
class LrcLine:
    """One timed lyric line (time in seconds)"""
    time: float
    text: str


def parse(raw: str) -> List[LrcLine]:
    """
    Parse LRC text into timed lines

    Args:
        raw: LRC document

    Returns:
        Lines sorted by time; lines that only carry timestamps are kept with
        empty text since they mark instrumental gaps
    """
    if not raw:
        return []

    result = []
    for line in raw.splitlines():
        text = TIMESTAMP_PATTERN.sub('', line).strip()
        for match in TIMESTAMP_PATTERN.finditer(line):
            minutes = int(match.group(1))
            seconds = float(match.group(2))
            result.append(LrcLine(time=minutes * 60 + seconds, text=text))

    # sorted() is stable, so lines sharing a timestamp keep document order
    return sorted(result, key=lambda line: line.time)


def format_timestamp(seconds: float) -> str:
    """Format seconds as mm:ss.xx"""
    seconds = max(0.0, float(seconds))
    centis = int(round(seconds * 100))
    minutes, centis = divmod(centis, 6000)
    return f"{minutes:02d}:{centis / 100:05.2f}"


def stringify(lines: List[LrcLine]) -> str:
    """Render timed lines back into an LRC document"""
    return '\n'.join(f"[{format_timestamp(line.time)}]{line.text}" for line in lines)


def is_lrc(content: str) -> bool:
    """Check whether text contains at least one LRC timestamp"""
    if not content:
        return False
    return TIMESTAMP_PATTERN.search(content) is not None


def plain_to_lrc(lyrics_text: str, seconds_per_line: float = 3.0) -> str:
    """
    Give plain lyrics a rough timing so LRC-only consumers can display them

    Each non-empty line is spaced seconds_per_line apart; blank lines are
    dropped.
    """
    if seconds_per_line <= 0 or math.isnan(seconds_per_line):
        raise ValueError("seconds_per_line must be positive")

    lines = []
    current_time = 0.0
    for text in lyrics_text.splitlines():
        text = text.strip()
        if text:
            lines.append(LrcLine(time=current_time, text=text))
            current_time += seconds_per_line
    return stringify(lines)
