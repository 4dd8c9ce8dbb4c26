"""
Melodix: media-player core services
Background song enhancement and real-time audio visualization.

Melodix keeps a music library in good shape while it plays. Songs with
missing tags or lyrics are handed to a persistent enhancement queue that
looks them up in the background, a few at a time, retrying lookups that
fail. While a track plays, the signal adapter turns its samples into
spectrum bars, and every newly selected track gets a waveform for the seek
bar.

## Packages

**Core (`melodix/core/`)**
- Exception hierarchy and user-facing error messages
- Observation bus used by every stateful service
- Key-value storage (JSON file, in-memory)

**Library (`melodix/library/`)**
- Song and SongPatch models
- Loading songs from audio file tags

**Enhancement (`melodix/enhancement/`)**
- Enrichment providers (MusicBrainz, LRCLIB, Cover Art Archive)
- The enrichment pipeline step with progress checkpoints
- The bounded-concurrency task queue and its persistence

**Audio (`melodix/audio/`)**
- Spectrum analyser with Web Audio style smoothing and scaling
- Decoding through pydub
- Waveform peak reduction
- The signal source adapter tying them together

**Extensions (`melodix/extensions/`)**
- Registry of installed add-ons

**Configuration and utilities (`melodix/config/`, `melodix/utils/`)**
- YAML and environment variable settings
- Colored console and rotating file logging

## Quick Start
```bash
pip install -e .

# Enhance a few files and wait for the results
melodix enhance ~/Music/*.mp3

# Inspect the persisted task list
melodix tasks list

# Draw a waveform
melodix waveform ~/Music/song.wav --resolution 80
```
"""

__version__ = "1.0.0"

__author__ = "Melodix Team"

__description__ = "Background song enhancement and real-time audio visualization for the Melodix player"

__all__ = [
    "__version__",
    "__author__",
    "__description__"
]
