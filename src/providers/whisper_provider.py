from faster_whisper import WhisperModel
from typing import Optional
from src.providers.interfaces import ITranscriptionProvider
from src.providers.audio import read_wav_mono, resample, contains_speech
from src.models.domain import TranscriptionResult
from src.config import settings as default_settings, Settings
import numpy as np
import asyncio
import logging

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


class WhisperProvider(ITranscriptionProvider):
    """
    Whisper transcription using faster-whisper (optimized with CTranslate2).
    Supports GPU acceleration via CUDA.
    """

    def __init__(
        self,
        model_size: str = None,
        device: str = None,
        compute_type: str = None,
        settings: Settings = None
    ):
        """
        Initialize Whisper model.

        Args:
            model_size: Model size (tiny, base, small, medium, large-v2, large-v3)
            device: Device to use (cuda or cpu)
            compute_type: Compute type (float16, int8, int8_float16)
            settings: Settings override (defaults to the global settings)
        """
        self.settings = settings or default_settings
        self.model_size = model_size or self.settings.whisper_model
        self.device = device or self.settings.whisper_device
        self.compute_type = compute_type or self.settings.whisper_compute_type

        logger.info(
            f"Initializing Whisper model: {self.model_size} "
            f"on {self.device} with {self.compute_type}"
        )

        try:
            self.model = WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type
            )
            logger.info("Whisper model loaded successfully")
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise

    async def transcribe_file(self, file_path: str) -> Optional[TranscriptionResult]:
        """
        Transcribe a recorded utterance.

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

            # Whisper expects 16kHz
            if sample_rate != WHISPER_SAMPLE_RATE:
                audio_data = resample(audio_data, sample_rate, WHISPER_SAMPLE_RATE)
                sample_rate = WHISPER_SAMPLE_RATE

            # Inference is CPU/GPU bound, keep it off the event loop
            text, confidence, language = await asyncio.to_thread(self._run_model, audio_data)

            if not text:
                logger.debug("Transcription resulted in empty text")
                return None

            if confidence < self.settings.recognition_min_confidence:
                logger.debug(f"Discarding low confidence transcript ({confidence:.2f}): {text!r}")
                return None

            return TranscriptionResult(
                text=text,
                confidence=confidence,
                language=language,
                duration=len(audio_data) / sample_rate
            )

        except Exception as e:
            logger.error(f"File transcription failed: {e}", exc_info=True)
            return None

    def _run_model(self, audio_data: np.ndarray):
        segments, info = self.model.transcribe(
            audio_data,
            beam_size=5,
            language=self.settings.whisper_language,
            vad_filter=self.settings.whisper_vad_enabled,
            vad_parameters=dict(
                min_silence_duration_ms=self.settings.whisper_vad_min_silence_ms
            ) if self.settings.whisper_vad_enabled else None
        )

        text_segments = []
        confidences = []

        for segment in segments:
            text_segments.append(segment.text.strip())
            # Convert log probability to linear probability for each segment
            confidences.append(np.exp(segment.avg_logprob))

        full_text = " ".join(text_segments).strip()
        avg_confidence = float(np.mean(confidences)) if confidences else 0.0

        return full_text, avg_confidence, info.language
