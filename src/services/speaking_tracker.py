from typing import Optional, Set
import asyncio
import logging
import os

from src.models.domain import SpeakingAttempt, TranscriptResult, VoiceSession
from src.providers.interfaces import IRecorder, ITranscriptionProvider
from src.services.user_resolver import UserResolver
from src.services.message_router import MessageRouter

logger = logging.getLogger(__name__)


class SpeakingTracker:
    """
    Turns speech-start events into record -> transcribe -> route tasks.

    Holds the process-wide set of speakers currently being recorded; a
    speaker is in the set for exactly the lifetime of one attempt.
    """

    def __init__(
        self,
        recorder: IRecorder,
        transcription_provider: ITranscriptionProvider,
        user_resolver: UserResolver,
        message_router: MessageRouter
    ):
        self.recorder = recorder
        self.transcription_provider = transcription_provider
        self.user_resolver = user_resolver
        self.message_router = message_router

        self._recording: Set[int] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def recording_users(self) -> Set[int]:
        return set(self._recording)

    def is_recording(self, user_id: int) -> bool:
        return user_id in self._recording

    def handle_speech_start(self, session: VoiceSession, user_id: int) -> Optional[asyncio.Task]:
        """
        Accept a speech-start for a speaker.

        Returns:
            The attempt task, or None if the speaker is already being recorded
        """
        if user_id in self._recording:
            logger.debug(f"User {user_id} already recording, ignoring speech start")
            return None

        self._recording.add(user_id)
        attempt = SpeakingAttempt(user_id=user_id)

        task = asyncio.create_task(self._run_attempt(session, attempt))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for every in-flight attempt to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run_attempt(self, session: VoiceSession, attempt: SpeakingAttempt) -> None:
        user_id = attempt.user_id
        try:
            user = await self.user_resolver.resolve(user_id)
            logger.info(f"💬 {user} starts speaking")

            file_path = await self.recorder.record(session.receiver, user_id, user)
            logger.info(
                f"⏩ {user} ends speaking after {attempt.duration():.1f}s (and recognizing) -> {file_path}"
            )

            try:
                result = await self.transcription_provider.transcribe_file(file_path)
            finally:
                self._delete_recording(file_path)

            if result is None:
                logger.info(f"❌ {user} failed to recognize speech")
                return

            transcript = TranscriptResult(
                speaker_id=user_id,
                text=result.text,
                confidence=result.confidence,
                elapsed=session.elapsed()
            )
            await self.message_router.dispatch(session, user, transcript)

        except Exception as e:
            logger.error(f"Speaking attempt for user {user_id} failed: {e}", exc_info=True)
        finally:
            self._recording.discard(user_id)
            if session.receiver is not None:
                session.receiver.discard_capture(user_id)

    @staticmethod
    def _delete_recording(file_path: str) -> None:
        try:
            if os.path.exists(file_path):
                os.unlink(file_path)
        except OSError as e:
            logger.warning(f"Failed to delete recording {file_path}: {e}")
