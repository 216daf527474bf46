from abc import ABC, abstractmethod
from typing import Any, Optional
from src.models.domain import TranscriptionResult


class ITranscriptionProvider(ABC):
    """Interface for speech-to-text transcription services."""

    @abstractmethod
    async def transcribe_file(self, file_path: str) -> Optional[TranscriptionResult]:
        """
        Transcribe audio from a file.

        Args:
            file_path: Path to a WAV file

        Returns:
            TranscriptionResult with text and metadata, or None when nothing
            usable was recognized
        """
        pass


class IRecorder(ABC):
    """Interface for capturing a single utterance to disk."""

    @abstractmethod
    async def record(self, receiver: Any, user_id: int, user: Any) -> str:
        """
        Capture one utterance from a speaker.

        Args:
            receiver: Receive sink attached to the voice connection
            user_id: Speaker's Discord user ID
            user: Resolved Discord user (used for logging and file naming)

        Returns:
            Path to a complete, readable audio file
        """
        pass
