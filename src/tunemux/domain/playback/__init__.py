"""Playback domain - stream resolution, queue control, and the mpv engine.

This domain handles:
- Resolving online tracks to playable stream URLs
- Keeping the engine queue in step with the active source list
- Auto-advancing past unplayable items
- Driving mpv over JSON IPC
"""

from .engine import EngineError, EngineListener, PlaybackEngine, QueueItem
from .mpv import MpvEngine, MpvUnavailable, check_mpv_available
from .queue import PlayQueue, QueueController, QueueSource
from .resolver import StreamResolver

__all__ = [
    "EngineError",
    "EngineListener",
    "PlaybackEngine",
    "QueueItem",
    "MpvEngine",
    "MpvUnavailable",
    "check_mpv_available",
    "PlayQueue",
    "QueueController",
    "QueueSource",
    "StreamResolver",
]
