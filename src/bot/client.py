import discord
import logging
from typing import Optional

from src.services.presence_controller import VoicePresenceController
from src.services.speaking_tracker import SpeakingTracker

logger = logging.getLogger(__name__)


class VoiceRelayBot(discord.Client):
    """Discord client that relays voice channel speech into text."""

    def __init__(self):
        intents = discord.Intents.default()
        intents.voice_states = True
        intents.guilds = True
        intents.members = True

        super().__init__(intents=intents)

        self.presence_controller: Optional[VoicePresenceController] = None
        self.speaking_tracker: Optional[SpeakingTracker] = None

    def attach(self, presence_controller: VoicePresenceController, speaking_tracker: SpeakingTracker) -> None:
        """Wire in the services; they need the client, so this runs after construction."""
        self.presence_controller = presence_controller
        self.speaking_tracker = speaking_tracker

    async def on_ready(self):
        """Called when bot is connected and ready."""
        logger.info(f'Logged in as {self.user} (ID: {self.user.id})')
        logger.info(f'Connected to {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Activity(
                type=discord.ActivityType.listening,
                name="voice conversations"
            )
        )

    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState
    ):
        """Handle voice state changes (join/leave/move)."""
        if self.presence_controller is None:
            return

        try:
            # User joined a channel
            if before.channel is None and after.channel is not None:
                await self.presence_controller.on_member_join(after.channel, member)

            # User left a channel
            elif before.channel is not None and after.channel is None:
                await self.presence_controller.on_member_leave(before.channel, member)

            # User moved channels
            elif before.channel != after.channel:
                await self.presence_controller.on_member_move(before.channel, after.channel, member)
        except Exception as e:
            logger.error(f"Error handling voice state update for {member}: {e}", exc_info=True)

    async def close(self):
        """Clean shutdown."""
        logger.info("Shutting down bot...")

        if self.presence_controller is not None:
            await self.presence_controller.shutdown()

        if self.speaking_tracker is not None:
            await self.speaking_tracker.wait_idle()

        await super().close()
