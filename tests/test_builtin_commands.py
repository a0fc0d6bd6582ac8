"""Tests for commands/builtin.py: end-to-end through the controller."""

import pytest

from chesster.commands.builtin import SOURCE_URL, register_builtin
from chesster.domain.dispatch import DispatchController
from chesster.domain.entity_index import EntityDirectory, EntityIndex
from chesster.domain.league import LeagueRegistry, LeagueResolver
from chesster.domain.listeners import ListenerRegistry
from chesster.domain.models import DispatchState, EntityRecord, League
from chesster.ports.inbound import RawEvent

ALICE = EntityRecord(id="U1", display_name="alice")
MOD = EntityRecord(id="U7", display_name="mod", secondary_key="lakinwecker")
GENERAL = EntityRecord(id="C1", display_name="general")


class MockReplies:
    def __init__(self):
        self.texts = []

    async def post_message(self, channel_id, text, thread_ts=None, reply_broadcast=False):
        self.texts.append(text)

    async def add_reaction(self, channel_id, ts, emoji):
        pass

    async def open_conversation(self, user_ids):
        return None


def _controller(source_url=SOURCE_URL):
    leagues = LeagueRegistry([
        League(name="45+45", aliases=frozenset({"4545"}), moderators=frozenset({"lakinwecker", "ghost"})),
        League(name="lonewolf"),
    ])
    registry = ListenerRegistry()
    register_builtin(registry, source_url=source_url)
    replies = MockReplies()
    controller = DispatchController(
        registry,
        EntityDirectory(users=EntityIndex.build([ALICE, MOD], label="users")),
        LeagueResolver({"C45": "45+45"}, leagues),
        replies=replies,
        bot_id="U999",
        bot_name="chesster",
    )
    return controller, replies


def _mention(text, channel=GENERAL):
    return RawEvent(text=f"<@U999> {text}", user="U1", channel=channel, is_mention=True)


class TestBuiltin:
    @pytest.mark.asyncio
    async def test_help_lists_commands(self):
        controller, replies = _controller()
        result = await controller.handle_event(_mention("help"))
        assert result.dispatched
        assert replies.texts == ["I know these commands: help, mods, source"]

    @pytest.mark.asyncio
    async def test_source(self):
        controller, replies = _controller(source_url="https://example.org/chesster")
        await controller.handle_event(_mention("source"))
        assert replies.texts == ["https://example.org/chesster"]

    @pytest.mark.asyncio
    async def test_help_ignored_in_ambient_channel(self):
        controller, replies = _controller()
        result = await controller.handle_event(RawEvent(text="help", user="U1", channel=GENERAL))
        assert result.state is DispatchState.DROPPED
        assert replies.texts == []

    @pytest.mark.asyncio
    async def test_mods_in_bound_channel(self):
        controller, replies = _controller()
        channel = EntityRecord(id="C45")
        result = await controller.handle_event(RawEvent(text="mods", user="U1", channel=channel))
        assert result.dispatched
        assert replies.texts == ["45+45 moderators: ghost, <@U7|mod>"]

    @pytest.mark.asyncio
    async def test_mods_without_moderators(self):
        controller, replies = _controller()
        await controller.handle_event(_mention("mods lonewolf"))
        assert replies.texts == ["The lonewolf league has no moderators configured."]

    @pytest.mark.asyncio
    async def test_mods_without_league_is_silent(self):
        controller, replies = _controller()
        result = await controller.handle_event(_mention("mods"))
        assert result.state is DispatchState.DROPPED
        assert replies.texts == []
