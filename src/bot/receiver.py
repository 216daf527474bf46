import discord
import discord.sinks
import asyncio
import logging
import threading
import time
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Decoded voice is 48kHz, 16-bit, interleaved stereo
CHANNELS = 2
SAMPLE_WIDTH = 2

# Opus encoding of 20ms of silence
SILENCE_FRAME = b"\xf8\xff\xfe"


class UtteranceCapture:
    """PCM accumulated for one speaker until the recorder closes it."""

    def __init__(self, user_id: int, sample_rate: int = 48000):
        self.user_id = user_id
        self.sample_rate = sample_rate
        self.channels = CHANNELS
        self.sample_width = SAMPLE_WIDTH
        self._pcm = bytearray()
        self._lock = threading.Lock()
        self.started_at = time.monotonic()
        self.last_packet_at = self.started_at

    def feed(self, data: bytes) -> None:
        with self._lock:
            self._pcm.extend(data)
            self.last_packet_at = time.monotonic()

    def pcm(self) -> bytes:
        with self._lock:
            return bytes(self._pcm)

    def silent_for(self, now: Optional[float] = None) -> float:
        """Seconds since the last voice packet."""
        now = time.monotonic() if now is None else now
        return now - self.last_packet_at

    def age(self, now: Optional[float] = None) -> float:
        now = time.monotonic() if now is None else now
        return now - self.started_at

    @property
    def duration(self) -> float:
        """Captured audio length in seconds."""
        with self._lock:
            size = len(self._pcm)
        return size / (self.sample_rate * self.channels * self.sample_width)


class SpeechReceiver(discord.sinks.Sink):
    """
    Receive sink that splits incoming voice into per-speaker captures.

    The first packet from a speaker without an open capture opens one and
    raises a speech-start on the bot's event loop. Packets keep flowing into
    that capture until the recorder closes or discards it.
    """

    def __init__(
        self,
        on_speech_start: Callable[[int], None],
        loop: asyncio.AbstractEventLoop,
        sample_rate: int = 48000
    ):
        super().__init__()
        self.on_speech_start = on_speech_start
        self.loop = loop
        self.sample_rate = sample_rate
        self._captures: Dict[int, UtteranceCapture] = {}
        self._lock = threading.Lock()

    @discord.sinks.Filters.container
    def write(self, data, user):
        """
        Called from the voice receive thread for every decoded packet.

        Args:
            data: Audio data (PCM bytes)
            user: User ID (integer)
        """
        if not data or user is None:
            return

        user_id = int(user)
        started = False
        with self._lock:
            capture = self._captures.get(user_id)
            if capture is None:
                capture = UtteranceCapture(user_id, self.sample_rate)
                self._captures[user_id] = capture
                started = True

        capture.feed(data)

        if started:
            logger.debug(f"Voice activity from user {user_id}")
            self.loop.call_soon_threadsafe(self.on_speech_start, user_id)

    def open_capture(self, user_id: int) -> UtteranceCapture:
        """Return the speaker's open capture, creating an empty one if needed."""
        with self._lock:
            capture = self._captures.get(user_id)
            if capture is None:
                capture = UtteranceCapture(user_id, self.sample_rate)
                self._captures[user_id] = capture
            return capture

    def close_capture(self, user_id: int) -> Optional[UtteranceCapture]:
        """Detach the speaker's capture; the next packet starts a new utterance."""
        with self._lock:
            return self._captures.pop(user_id, None)

    def discard_capture(self, user_id: int) -> None:
        if self.close_capture(user_id) is not None:
            logger.debug(f"Discarded open capture for user {user_id}")

    def format_audio(self, audio):
        """Required by parent Sink class; captures are written by the recorder."""
        pass

    def cleanup(self):
        """Called when recording is stopped."""
        self.finished = True
        with self._lock:
            dropped = len(self._captures)
            self._captures.clear()
        if dropped:
            logger.debug(f"Dropped {dropped} open capture(s) on cleanup")
