from typing import Any, Optional
import discord
import logging

from src.models.domain import VoiceSession
from src.config import settings as default_settings, Settings

logger = logging.getLogger(__name__)


def session_marker(session: VoiceSession) -> str:
    """Text of the message a session thread is anchored to."""
    return f"💬 {session.start_time.strftime('%Y-%m-%d %H:%M:%S')}"


def thread_name(marker: str) -> str:
    """Thread names may not contain colons."""
    return marker.replace(":", "-")


class SessionThreadManager:
    """
    Owns the lifecycle of the discussion thread for a voice session.

    A session gets at most one thread: the first transcript routed to the
    thread destination resolves (reuses, adopts or creates) it, and every
    later transcript in the session gets the same object back.
    """

    def __init__(self, client: discord.Client, settings: Settings = None):
        self.client = client
        self.settings = settings or default_settings

    async def resolve_thread(self, session: VoiceSession, user: Any = None) -> Optional[Any]:
        """
        Find the thread transcripts of this session should be posted to.

        Resolution order: the session's own thread, the configured
        `send_thread`, then a freshly created thread. Ended sessions never
        adopt or create a thread.

        Returns:
            The thread, or None if no destination could be resolved
        """
        async with session.thread_lock:
            thread = session.thread

            if thread is None and self.settings.send_thread is not None:
                thread = await self._fetch_configured_thread()
                if thread is not None and not session.ended:
                    logger.info(f"Adopted configured thread {thread.id} for session in {session.channel_id}")
                    session.thread = thread

            if thread is None and not session.ended:
                thread = await self._create_thread(session, user)
                if thread is not None:
                    session.thread = thread

            if thread is None:
                return None

            if self.settings.invite_thread_on_speaking and user is not None:
                await self._invite(session, thread, user)

            return thread

    async def archive(self, session: VoiceSession) -> None:
        """Archive the session thread (best-effort) and forget it."""
        # Waits out an in-flight resolution so a thread created mid-teardown is archived too
        async with session.thread_lock:
            thread = session.thread
            session.thread = None
        if thread is None:
            return

        try:
            await thread.archive()
            logger.info(f"Archived session thread {thread.id}")
        except Exception as e:
            logger.warning(f"Failed to archive thread {getattr(thread, 'id', '?')}: {e}")

    async def _fetch_configured_thread(self) -> Optional[Any]:
        thread_id = self.settings.send_thread
        try:
            thread = self.client.get_channel(thread_id)
            if thread is None:
                thread = await self.client.fetch_channel(thread_id)
        except Exception as e:
            logger.error(f"Failed to fetch thread {thread_id}: {e}")
            return None

        if not isinstance(thread, discord.Thread):
            logger.warning(f"Configured send_thread {thread_id} is not a thread")
            return None
        return thread

    async def _create_thread(self, session: VoiceSession, user: Any) -> Optional[Any]:
        parent = await self._fetch_parent_channel()
        if parent is None:
            return None

        marker = session_marker(session)
        try:
            message = await parent.send(marker)
            thread = await message.create_thread(
                name=thread_name(marker),
                auto_archive_duration=self.settings.thread_auto_archive_minutes
            )
        except Exception as e:
            logger.error(f"Failed to create session thread in {parent.id}: {e}", exc_info=True)
            return None

        logger.info(f"Created session thread {thread.id} ({thread_name(marker)}) for {user}")
        return thread

    async def _fetch_parent_channel(self) -> Optional[discord.TextChannel]:
        channel_id = self.settings.thread_channel
        if channel_id is None:
            return None

        try:
            channel = self.client.get_channel(channel_id)
            if channel is None:
                channel = await self.client.fetch_channel(channel_id)
        except Exception as e:
            logger.error(f"Failed to fetch thread channel {channel_id}: {e}")
            return None

        if not isinstance(channel, discord.TextChannel):
            logger.warning(f"Configured thread_channel {channel_id} is not a text channel")
            return None
        return channel

    async def _invite(self, session: VoiceSession, thread: Any, user: Any) -> None:
        if user.id in session.invited_user_ids:
            return
        try:
            await thread.add_user(user)
            session.invited_user_ids.add(user.id)
        except Exception as e:
            logger.warning(f"Failed to add {user} to thread {thread.id}: {e}")
