from typing import Any, Optional
from src.providers.interfaces import IRecorder
from src.bot.receiver import SpeechReceiver, UtteranceCapture
from src.config import settings as default_settings, Settings
import asyncio
import logging
import os
import re
import tempfile
import wave

logger = logging.getLogger(__name__)


def _file_prefix(user: Any, user_id: int) -> str:
    name = getattr(user, "name", None) or str(user_id)
    safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", str(name)).strip("_") or str(user_id)
    return f"{safe}-{user_id}-"


class WaveRecorder(IRecorder):
    """
    Records a single utterance from a SpeechReceiver into a temporary WAV file.

    An utterance ends when no packets arrive for `silence_threshold` seconds,
    or when it has run for `max_duration` seconds.
    """

    def __init__(
        self,
        silence_threshold: float = None,
        max_duration: float = None,
        output_dir: Optional[str] = None,
        poll_interval: float = 0.05,
        settings: Settings = None
    ):
        self.settings = settings or default_settings
        self.silence_threshold = (
            silence_threshold if silence_threshold is not None
            else self.settings.audio_silence_threshold
        )
        self.max_duration = (
            max_duration if max_duration is not None
            else self.settings.audio_max_utterance
        )
        self.output_dir = output_dir or self.settings.recording_dir
        self.poll_interval = poll_interval

    async def record(self, receiver: SpeechReceiver, user_id: int, user: Any) -> str:
        capture = receiver.open_capture(user_id)

        while not self._utterance_done(capture):
            await asyncio.sleep(self.poll_interval)

        receiver.close_capture(user_id)
        logger.debug(
            f"Utterance from {user_id} complete: {capture.duration:.2f}s of audio"
        )

        return await asyncio.to_thread(self._write_wave, capture, _file_prefix(user, user_id))

    def _utterance_done(self, capture: UtteranceCapture) -> bool:
        if capture.silent_for() >= self.silence_threshold:
            return True
        if capture.age() >= self.max_duration:
            logger.debug(f"Utterance from {capture.user_id} hit max duration")
            return True
        return False

    def _write_wave(self, capture: UtteranceCapture, prefix: str) -> str:
        tmp_file = tempfile.NamedTemporaryFile(
            delete=False, suffix=".wav", prefix=prefix, dir=self.output_dir
        )
        try:
            with tmp_file, wave.open(tmp_file, "wb") as wf:
                wf.setnchannels(capture.channels)
                wf.setsampwidth(capture.sample_width)
                wf.setframerate(capture.sample_rate)
                wf.writeframes(capture.pcm())
        except Exception:
            os.unlink(tmp_file.name)
            raise
        return tmp_file.name
