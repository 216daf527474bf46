"""
Pytest fixtures for voice relay tests.
"""

import os

# src.config builds the global settings at import time
os.environ.setdefault("DISCORD_TOKEN", "test-token")

import math
import struct
import wave
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from src.config import Settings
from src.models.domain import VoiceSession

BOT_USER_ID = 999


@pytest.fixture
def make_settings():
    """Build Settings with explicit overrides."""
    def _make(**overrides):
        return Settings(discord_token="test-token", **overrides)
    return _make


@pytest.fixture
def client():
    """Mock Discord client with empty caches."""
    bot = MagicMock()
    bot.user.id = BOT_USER_ID
    bot.get_channel = MagicMock(return_value=None)
    bot.fetch_channel = AsyncMock()
    bot.get_user = MagicMock(return_value=None)
    bot.fetch_user = AsyncMock()
    return bot


@pytest.fixture
def make_user():
    def _make(user_id, name=None, bot=False):
        user = MagicMock()
        user.id = user_id
        user.bot = bot
        user.name = name or f"user{user_id}"
        user.display_name = user.name
        user.__str__.return_value = user.name
        return user
    return _make


@pytest.fixture
def make_thread():
    def _make(thread_id=500):
        thread = MagicMock(spec=discord.Thread)
        thread.id = thread_id
        thread.send = AsyncMock()
        thread.archive = AsyncMock()
        thread.add_user = AsyncMock()
        return thread
    return _make


@pytest.fixture
def make_text_channel(make_thread):
    """Text channel whose sent messages can open a thread."""
    def _make(channel_id=200, thread=None):
        channel = MagicMock(spec=discord.TextChannel)
        channel.id = channel_id
        message = MagicMock()
        message.create_thread = AsyncMock(return_value=thread or make_thread())
        channel.send = AsyncMock(return_value=message)
        channel.sent_message = message
        return channel
    return _make


@pytest.fixture
def make_session():
    def _make(guild_id=1, channel_id=10, start_time=None):
        return VoiceSession(
            guild_id=guild_id,
            channel_id=channel_id,
            connection=MagicMock(),
            receiver=MagicMock(),
            start_time=start_time or datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        )
    return _make


@pytest.fixture
def write_wav(tmp_path):
    """Write a 16-bit WAV file, either a sine tone or silence."""
    def _write(name="clip.wav", seconds=1.0, amplitude=0.5, sample_rate=48000, channels=2):
        path = tmp_path / name
        frames = int(seconds * sample_rate)
        samples = bytearray()
        for i in range(frames):
            value = int(amplitude * 32767 * math.sin(2 * math.pi * 440 * i / sample_rate))
            samples.extend(struct.pack("<h", value) * channels)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)
            wf.setframerate(sample_rate)
            wf.writeframes(bytes(samples))
        return str(path)
    return _write
