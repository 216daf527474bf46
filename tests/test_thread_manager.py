"""Tests for session thread resolution and archiving."""

import asyncio
import pytest
from unittest.mock import MagicMock

from src.services.thread_manager import SessionThreadManager, session_marker, thread_name


def channels(client, mapping):
    client.get_channel.side_effect = lambda channel_id: mapping.get(channel_id)


class TestNaming:

    def test_marker_uses_session_start(self, make_session):
        assert session_marker(make_session()) == "💬 2026-01-02 03:04:05"

    def test_thread_name_has_no_colons(self):
        assert thread_name("💬 2026-01-02 03:04:05") == "💬 2026-01-02 03-04-05"


class TestResolveThread:
    """Tests for reuse / adopt / create resolution order."""

    @pytest.mark.asyncio
    async def test_creates_thread_from_marker(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        thread = make_thread()
        parent = make_text_channel(channel_id=200, thread=thread)
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        resolved = await manager.resolve_thread(session, make_user(1))

        assert resolved is thread
        assert session.thread is thread
        parent.send.assert_awaited_once_with("💬 2026-01-02 03:04:05")
        parent.sent_message.create_thread.assert_awaited_once_with(
            name="💬 2026-01-02 03-04-05",
            auto_archive_duration=60
        )

    @pytest.mark.asyncio
    async def test_same_thread_within_session(
        self, client, make_settings, make_text_channel, make_session, make_user
    ):
        parent = make_text_channel(channel_id=200)
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        first = await manager.resolve_thread(session, make_user(1))
        second = await manager.resolve_thread(session, make_user(2))

        assert first is second
        parent.sent_message.create_thread.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_first_transcripts_share_thread(
        self, client, make_settings, make_text_channel, make_session, make_user
    ):
        parent = make_text_channel(channel_id=200)
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        results = await asyncio.gather(
            manager.resolve_thread(session, make_user(1)),
            manager.resolve_thread(session, make_user(2)),
            manager.resolve_thread(session, make_user(3)),
        )

        assert results[0] is results[1] is results[2]
        parent.send.assert_awaited_once()
        parent.sent_message.create_thread.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reuses_session_thread(self, client, make_settings, make_thread, make_session, make_user):
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()
        session.thread = make_thread()

        resolved = await manager.resolve_thread(session, make_user(1))

        assert resolved is session.thread
        client.get_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_adopts_configured_thread(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        configured = make_thread(thread_id=300)
        parent = make_text_channel(channel_id=200)
        channels(client, {200: parent, 300: configured})
        manager = SessionThreadManager(client, make_settings(thread_channel=200, send_thread=300))
        session = make_session()

        resolved = await manager.resolve_thread(session, make_user(1))

        assert resolved is configured
        assert session.thread is configured
        parent.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fetches_uncached_configured_thread(self, client, make_settings, make_thread, make_session):
        configured = make_thread(thread_id=300)
        client.fetch_channel.return_value = configured
        manager = SessionThreadManager(client, make_settings(thread_channel=200, send_thread=300))

        resolved = await manager.resolve_thread(make_session())

        assert resolved is configured
        client.fetch_channel.assert_awaited_once_with(300)

    @pytest.mark.asyncio
    async def test_parent_must_be_text_channel(self, client, make_settings, make_session, make_user):
        channels(client, {200: MagicMock()})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        assert await manager.resolve_thread(session, make_user(1)) is None
        assert session.thread is None

    @pytest.mark.asyncio
    async def test_creation_failure_returns_none(
        self, client, make_settings, make_text_channel, make_session, make_user
    ):
        parent = make_text_channel(channel_id=200)
        parent.sent_message.create_thread.side_effect = RuntimeError("Missing Permissions")
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        assert await manager.resolve_thread(session, make_user(1)) is None
        assert session.thread is None

    @pytest.mark.asyncio
    async def test_ended_session_never_creates(
        self, client, make_settings, make_text_channel, make_session, make_user
    ):
        parent = make_text_channel(channel_id=200)
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()
        session.ended = True

        assert await manager.resolve_thread(session, make_user(1)) is None
        parent.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ended_session_uses_configured_thread_without_adopting(
        self, client, make_settings, make_thread, make_session, make_user
    ):
        configured = make_thread(thread_id=300)
        channels(client, {300: configured})
        manager = SessionThreadManager(client, make_settings(thread_channel=200, send_thread=300))
        session = make_session()
        session.ended = True

        assert await manager.resolve_thread(session, make_user(1)) is configured
        assert session.thread is None


class TestInvite:

    @pytest.mark.asyncio
    async def test_invites_each_speaker_once(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        thread = make_thread()
        channels(client, {200: make_text_channel(channel_id=200, thread=thread)})
        manager = SessionThreadManager(
            client, make_settings(thread_channel=200, invite_thread_on_speaking=True)
        )
        session = make_session()
        alice, bob = make_user(1), make_user(2)

        await manager.resolve_thread(session, alice)
        await manager.resolve_thread(session, alice)
        await manager.resolve_thread(session, bob)

        assert thread.add_user.await_count == 2
        thread.add_user.assert_any_await(alice)
        thread.add_user.assert_any_await(bob)

    @pytest.mark.asyncio
    async def test_no_invite_when_disabled(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        thread = make_thread()
        channels(client, {200: make_text_channel(channel_id=200, thread=thread)})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))

        await manager.resolve_thread(make_session(), make_user(1))

        thread.add_user.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invite_failure_still_returns_thread(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        thread = make_thread()
        thread.add_user.side_effect = RuntimeError("Forbidden")
        channels(client, {200: make_text_channel(channel_id=200, thread=thread)})
        manager = SessionThreadManager(
            client, make_settings(thread_channel=200, invite_thread_on_speaking=True)
        )

        assert await manager.resolve_thread(make_session(), make_user(1)) is thread


class TestArchive:

    @pytest.mark.asyncio
    async def test_archives_once_and_clears(self, client, make_settings, make_thread, make_session):
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()
        thread = make_thread()
        session.thread = thread

        await manager.archive(session)
        await manager.archive(session)

        thread.archive.assert_awaited_once()
        assert session.thread is None

    @pytest.mark.asyncio
    async def test_teardown_during_thread_creation_archives_new_thread(
        self, client, make_settings, make_text_channel, make_thread, make_session, make_user
    ):
        thread = make_thread()
        parent = make_text_channel(channel_id=200, thread=thread)
        created = asyncio.Event()

        async def slow_create_thread(**kwargs):
            await created.wait()
            return thread

        parent.sent_message.create_thread.side_effect = slow_create_thread
        channels(client, {200: parent})
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()

        resolving = asyncio.create_task(manager.resolve_thread(session, make_user(1)))
        await asyncio.sleep(0)
        session.ended = True
        archiving = asyncio.create_task(manager.archive(session))
        await asyncio.sleep(0)
        created.set()
        await asyncio.gather(resolving, archiving)

        thread.archive.assert_awaited_once()
        assert session.thread is None

    @pytest.mark.asyncio
    async def test_archive_failure_is_absorbed(self, client, make_settings, make_thread, make_session):
        manager = SessionThreadManager(client, make_settings(thread_channel=200))
        session = make_session()
        session.thread = make_thread()
        session.thread.archive.side_effect = RuntimeError("Unknown Channel")

        await manager.archive(session)

        assert session.thread is None
