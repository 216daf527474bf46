from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Set
from enum import Enum
import asyncio


class PresenceState(Enum):
    """Voice presence lifecycle states (per guild)."""
    IDLE = "idle"
    JOINING = "joining"
    CONNECTED = "connected"


@dataclass
class VoiceSession:
    """
    One continuous occupancy of a voice channel by the bot.

    The session owns its voice connection. The thread is only referenced:
    Discord owns it, the session is responsible for archiving it on teardown.
    """
    guild_id: int
    channel_id: int
    connection: Any
    receiver: Any = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    thread: Optional[Any] = None
    ended: bool = False
    invited_user_ids: Set[int] = field(default_factory=set)
    thread_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def elapsed(self, now: Optional[datetime] = None) -> float:
        """Seconds since the session started."""
        now = now or datetime.now(timezone.utc)
        return max((now - self.start_time).total_seconds(), 0.0)


@dataclass
class SpeakingAttempt:
    """One speech-start to recognized-or-discarded cycle for one speaker."""
    user_id: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def duration(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return max((now - self.started_at).total_seconds(), 0.0)


@dataclass
class TranscriptionResult:
    """Result from transcription provider."""
    text: str
    confidence: float
    language: Optional[str] = None
    duration: Optional[float] = None


@dataclass
class TranscriptResult:
    """A recognized utterance ready to be routed."""
    speaker_id: int
    text: str
    confidence: float  # 0.0 - 1.0
    elapsed: float  # seconds since session start
