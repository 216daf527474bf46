from typing import Dict, Optional
import asyncio
import discord
import logging

from src.bot.receiver import SpeechReceiver, SILENCE_FRAME
from src.models.domain import PresenceState, VoiceSession
from src.services.speaking_tracker import SpeakingTracker
from src.services.thread_manager import SessionThreadManager
from src.config import settings as default_settings, Settings

logger = logging.getLogger(__name__)


class VoicePresenceController:
    """
    Decides when the bot joins, stays in, leaves or rejoins a voice channel.

    Per guild the controller is IDLE, JOINING or CONNECTED, and while
    CONNECTED it owns exactly one VoiceSession.
    """

    def __init__(
        self,
        client: discord.Client,
        speaking_tracker: SpeakingTracker,
        thread_manager: SessionThreadManager,
        settings: Settings = None
    ):
        self.client = client
        self.speaking_tracker = speaking_tracker
        self.thread_manager = thread_manager
        self.settings = settings or default_settings

        self._states: Dict[int, PresenceState] = {}
        self._sessions: Dict[int, VoiceSession] = {}
        self._closing = False

    def get_state(self, guild_id: int) -> PresenceState:
        return self._states.get(guild_id, PresenceState.IDLE)

    def get_session(self, guild_id: int) -> Optional[VoiceSession]:
        return self._sessions.get(guild_id)

    async def on_member_join(self, channel, member) -> None:
        """Handle a member joining a voice channel."""
        guild = channel.guild
        logger.info(f"Member {member} joined {channel.name} in {guild.name}")

        if member.bot:
            return

        state = self.get_state(guild.id)
        if state is PresenceState.CONNECTED:
            session = self._sessions[guild.id]
            if session.channel_id != channel.id:
                logger.debug(f"Already connected to {session.channel_id}, not following to {channel.id}")
            return

        if state is PresenceState.JOINING:
            logger.debug(f"Connection to guild {guild.id} already in progress")
            return

        if self.settings.voice_channel is not None and self.settings.voice_channel != channel.id:
            logger.debug(f"{channel.name} is not the pinned voice channel, staying idle")
            return

        await self._join(channel)

    async def on_member_leave(self, channel, member) -> None:
        """Handle a member leaving a voice channel."""
        guild = channel.guild
        logger.info(f"Member {member} left {channel.name} in {guild.name}")

        human_count = self._count_humans(channel)

        if member.id == self.client.user.id:
            if human_count > 0 and not self._closing:
                logger.info(f"🤖 Dropped from {channel.name} with {human_count} member(s) left, reconnecting...")
                await self._reconnect(channel)
            return

        if human_count == 0:
            session = self._sessions.get(guild.id)
            if session is not None and session.channel_id == channel.id:
                logger.info(f"🤖 {channel.name} is empty, disconnecting")
                await self._end_session(session, force=False)

    async def on_member_move(self, before_channel, after_channel, member) -> None:
        await self.on_member_leave(before_channel, member)
        await self.on_member_join(after_channel, member)

    async def shutdown(self) -> None:
        """End every session; no reconnects happen after this."""
        self._closing = True
        for session in list(self._sessions.values()):
            await self._end_session(session, force=False)

    def _count_humans(self, channel) -> int:
        bot_id = self.client.user.id
        return sum(1 for m in channel.members if m.id != bot_id and not m.bot)

    async def _join(self, channel) -> Optional[VoiceSession]:
        guild_id = channel.guild.id
        self._states[guild_id] = PresenceState.JOINING

        try:
            connection = await channel.connect(timeout=self.settings.voice_connect_timeout)
        except asyncio.TimeoutError:
            logger.error(
                f"Timed out after {self.settings.voice_connect_timeout}s connecting to {channel.name}"
            )
            self._states[guild_id] = PresenceState.IDLE
            return None
        except Exception as e:
            logger.error(f"Failed to connect to {channel.name}: {e}", exc_info=True)
            self._states[guild_id] = PresenceState.IDLE
            return None

        session = self._start_session(channel, connection)
        if session is None:
            self._states[guild_id] = PresenceState.IDLE
            try:
                await connection.disconnect(force=True)
            except Exception as e:
                logger.warning(f"Error dropping half-open connection: {e}")
            return None

        self._sessions[guild_id] = session
        self._states[guild_id] = PresenceState.CONNECTED
        logger.info(f"Connected to {channel.name}, session started at {session.start_time.isoformat()}")
        return session

    def _start_session(self, channel, connection) -> Optional[VoiceSession]:
        session = VoiceSession(
            guild_id=channel.guild.id,
            channel_id=channel.id,
            connection=connection
        )

        try:
            # Keeps the receive pipeline warm
            connection.send_audio_packet(SILENCE_FRAME, encode=False)
            logger.debug("Sent silence packet")
        except Exception as e:
            logger.warning(f"Failed to send silence packet: {e}")

        receiver = SpeechReceiver(
            on_speech_start=lambda user_id: self.speaking_tracker.handle_speech_start(session, user_id),
            loop=asyncio.get_running_loop(),
            sample_rate=self.settings.audio_sample_rate
        )

        async def recording_finished(sink, *args):
            logger.debug(f"Recording stopped for channel {channel.name}")

        try:
            connection.start_recording(receiver, recording_finished)
        except Exception as e:
            logger.error(f"Failed to start recording in {channel.name}: {e}", exc_info=True)
            return None

        session.receiver = receiver
        return session

    async def _end_session(self, session: VoiceSession, force: bool) -> None:
        guild_id = session.guild_id
        if self._sessions.get(guild_id) is session:
            del self._sessions[guild_id]
        self._states[guild_id] = PresenceState.IDLE
        session.ended = True

        connection = session.connection
        try:
            connection.stop_recording()
        except Exception as e:
            logger.warning(f"Error stopping recording: {e}")

        try:
            await connection.disconnect(force=force)
        except Exception as e:
            logger.warning(f"Error disconnecting from {session.channel_id}: {e}")

        await self.thread_manager.archive(session)
        logger.info(f"Session in {session.channel_id} ended")

    async def _reconnect(self, channel) -> None:
        guild_id = channel.guild.id
        if self.get_state(guild_id) is PresenceState.JOINING:
            logger.debug(f"Reconnect to {channel.name} already in progress")
            return

        old_session = self._sessions.get(guild_id)
        if old_session is not None:
            await self._end_session(old_session, force=True)

        await self._join(channel)
