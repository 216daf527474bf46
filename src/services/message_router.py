from typing import Any
import asyncio
import discord
import logging
import math

from src.models.domain import TranscriptResult, VoiceSession
from src.services.thread_manager import SessionThreadManager
from src.config import settings as default_settings, Settings

logger = logging.getLogger(__name__)


def format_elapsed(seconds: float) -> str:
    """Format seconds as HH:MM:SS."""
    total = int(max(seconds, 0))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def format_confidence(confidence: float) -> int:
    """Confidence as a floored integer percentage."""
    # Round off float noise first so 0.29 -> 29, not 28
    return math.floor(round(confidence * 100, 6))


def format_transcript(result: TranscriptResult, speaker_name: str, include_elapsed: bool = False) -> str:
    elapsed = f"`{format_elapsed(result.elapsed)}` " if include_elapsed else ""
    return f"{elapsed}`{speaker_name}`: `{result.text}` ({format_confidence(result.confidence)}%)"


def speaker_name(user: Any) -> str:
    return getattr(user, "display_name", None) or getattr(user, "name", None) or str(user)


class MessageRouter:
    """Posts transcript lines to the configured channel and session thread."""

    def __init__(
        self,
        client: discord.Client,
        thread_manager: SessionThreadManager,
        settings: Settings = None
    ):
        self.client = client
        self.thread_manager = thread_manager
        self.settings = settings or default_settings

    async def dispatch(self, session: VoiceSession, user: Any, result: TranscriptResult) -> None:
        """
        Send one transcript to every configured destination.

        Destinations are independent: a failure on one is logged and does
        not affect the other.
        """
        message = format_transcript(result, speaker_name(user), self.settings.enable_elapsed_time)
        logger.info(
            f"✅ {format_elapsed(result.elapsed)} {user} recognized speech: "
            f"{result.text} ({format_confidence(result.confidence)}%)"
        )

        targets = []
        if self.settings.send_channel is not None:
            targets.append(self._send_to_channel(message))
        if self.settings.thread_routing_enabled:
            targets.append(self._send_to_thread(session, user, message))

        if not targets:
            logger.debug("No transcript destination configured")
            return

        await asyncio.gather(*targets)

    async def _send_to_channel(self, message: str) -> None:
        channel_id = self.settings.send_channel
        try:
            channel = self.client.get_channel(channel_id)
            if channel is None:
                channel = await self.client.fetch_channel(channel_id)

            if not isinstance(channel, discord.abc.Messageable):
                logger.warning(f"send_channel {channel_id} cannot receive messages")
                return

            await channel.send(message)
        except Exception as e:
            logger.error(f"Failed to send transcript to channel {channel_id}: {e}")

    async def _send_to_thread(self, session: VoiceSession, user: Any, message: str) -> None:
        try:
            thread = await self.thread_manager.resolve_thread(session, user)
            if thread is None:
                logger.info("No session thread available, dropping thread transcript")
                return

            await thread.send(message)
        except Exception as e:
            logger.error(f"Failed to send transcript to session thread: {e}")
