from vosk import Model, KaldiRecognizer
from typing import Optional
from src.providers.interfaces import ITranscriptionProvider
from src.providers.audio import read_wav_mono, resample, contains_speech
from src.models.domain import TranscriptionResult
from src.config import settings as default_settings, Settings
import numpy as np
import asyncio
import logging
import json

logger = logging.getLogger(__name__)

VOSK_SAMPLE_RATE = 16000


class VoskProvider(ITranscriptionProvider):
    """
    Vosk transcription provider - lightweight, fast, offline speech recognition.

    Download models from: https://alphacephei.com/vosk/models
    Recommended: vosk-model-en-us-0.22 (1.8GB) or vosk-model-small-en-us-0.15 (40MB)
    """

    def __init__(self, model_path: str = None, settings: Settings = None):
        """
        Initialize Vosk model.

        Args:
            model_path: Path to Vosk model directory
            settings: Settings override (defaults to the global settings)
        """
        self.settings = settings or default_settings
        self.model_path = model_path or self.settings.vosk_model_path

        logger.info(f"Initializing Vosk model from: {self.model_path}")

        try:
            self.model = Model(self.model_path)
            logger.info("Vosk model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load Vosk model: {e}")
            logger.error("Download a model from https://alphacephei.com/vosk/models")
            raise

    async def transcribe_file(self, file_path: str) -> Optional[TranscriptionResult]:
        """
        Transcribe a recorded utterance using Vosk.

        Args:
            file_path: Path to a 16-bit PCM WAV file

        Returns:
            TranscriptionResult, or None for silence, empty text or low confidence
        """
        try:
            audio_data, sample_rate = read_wav_mono(file_path)

            if not contains_speech(
                audio_data,
                sample_rate,
                min_duration=self.settings.audio_min_duration,
                min_rms=self.settings.audio_min_rms
            ):
                logger.debug(f"Skipping silent or short capture: {file_path}")
                return None

            if sample_rate != VOSK_SAMPLE_RATE:
                audio_data = resample(audio_data, sample_rate, VOSK_SAMPLE_RATE)
                sample_rate = VOSK_SAMPLE_RATE

            result = await asyncio.to_thread(self._recognize, audio_data, sample_rate)

            text = result.get('text', '').strip()
            if not text:
                logger.debug("Transcription resulted in empty text")
                return None

            words = result.get('result', [])
            if words:
                confidence = float(np.mean([w.get('conf', 0.0) for w in words]))
            else:
                # No word timings returned, assume a reasonable default
                confidence = 0.8

            if confidence < self.settings.recognition_min_confidence:
                logger.debug(f"Discarding low confidence transcript ({confidence:.2f}): {text!r}")
                return None

            return TranscriptionResult(
                text=text,
                confidence=confidence,
                language='en',
                duration=len(audio_data) / sample_rate
            )

        except Exception as e:
            logger.error(f"Vosk transcription failed: {e}", exc_info=True)
            return None

    def _recognize(self, audio_data: np.ndarray, sample_rate: int) -> dict:
        # Convert float32 to int16 PCM
        audio_int16 = (np.clip(audio_data, -1.0, 1.0) * 32767).astype(np.int16)

        rec = KaldiRecognizer(self.model, sample_rate)
        rec.SetWords(True)  # Enables per-word confidence
        rec.AcceptWaveform(audio_int16.tobytes())

        return json.loads(rec.FinalResult())
