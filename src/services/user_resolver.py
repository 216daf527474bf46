import discord
import logging

logger = logging.getLogger(__name__)


class UserResolver:
    """Looks users up in the client cache, falling back to the API."""

    def __init__(self, client: discord.Client):
        self.client = client

    async def resolve(self, user_id: int) -> discord.User:
        """
        Resolve a user ID to a user object.

        Raises:
            discord.NotFound / discord.HTTPException if the fetch fails
        """
        user = self.client.get_user(user_id)
        if user is not None:
            return user

        logger.debug(f"User {user_id} not cached, fetching")
        return await self.client.fetch_user(user_id)
