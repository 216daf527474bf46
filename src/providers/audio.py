"""WAV helpers shared by the transcription providers."""
from typing import Tuple
import numpy as np
import wave


def read_wav_mono(file_path: str) -> Tuple[np.ndarray, int]:
    """
    Load a 16-bit PCM WAV file as mono float32 samples in [-1, 1].

    Returns:
        (samples, sample_rate)
    """
    with wave.open(file_path, 'rb') as wf:
        if wf.getsampwidth() != 2:
            raise ValueError(f"Expected 16-bit PCM, got {wf.getsampwidth() * 8}-bit")

        channels = wf.getnchannels()
        sample_rate = wf.getframerate()
        audio_bytes = wf.readframes(wf.getnframes())

    audio = np.frombuffer(audio_bytes, dtype=np.int16).astype(np.float32) / 32768.0

    # Discord sends interleaved stereo; average the channels down to mono
    if channels > 1:
        usable = len(audio) - (len(audio) % channels)
        audio = audio[:usable].reshape(-1, channels).mean(axis=1)

    return audio.astype(np.float32), sample_rate


def resample(audio: np.ndarray, orig_sr: int, target_sr: int) -> np.ndarray:
    """
    Simple resampling using linear interpolation.
    For better quality, use librosa or scipy.
    """
    if orig_sr == target_sr or len(audio) == 0:
        return audio

    duration = len(audio) / orig_sr
    target_length = int(duration * target_sr)

    indices = np.linspace(0, len(audio) - 1, target_length)
    resampled = np.interp(indices, np.arange(len(audio)), audio)

    return resampled.astype(np.float32)


def rms(audio: np.ndarray) -> float:
    """Root mean square level of the samples (0.0 for empty input)."""
    if len(audio) == 0:
        return 0.0
    return float(np.sqrt(np.mean(audio ** 2)))


def contains_speech(
    audio: np.ndarray,
    sample_rate: int,
    min_duration: float,
    min_rms: float
) -> bool:
    """Reject clips that are too short or mostly silence."""
    duration = len(audio) / sample_rate if sample_rate else 0.0
    if duration < min_duration:
        return False
    return rms(audio) >= min_rms
