"""Discord adapter: bridges discord.Client to the DispatchController.

DiscordGateway implements ReplyPort and DirectoryPort on top of a client;
DiscordBotAdapter is the thin discord.Client subclass that turns
discord.Message into RawEvent and hands it to the controller.
"""

import re
from typing import Dict, List, Optional, Sequence

import discord
import structlog

from chesster.domain.models import EntityRecord
from chesster.ports.inbound import PlatformEvent, RawEvent

log = structlog.get_logger(__name__)

MAX_MESSAGE_LENGTH = 2000

_NICK_MENTION_RE = re.compile(r"<@!(\d+)>")
_LABELLED_MENTION_RE = re.compile(r"<@(\d+)\|[^>]*>")


def _snowflake(value: str) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def channel_record(channel) -> EntityRecord:
    """EntityRecord for any discord channel object."""
    return EntityRecord(
        id=str(channel.id),
        display_name=getattr(channel, "name", None),
        is_im=isinstance(channel, discord.DMChannel),
        is_group=isinstance(channel, discord.GroupChannel),
    )


def user_record(user) -> EntityRecord:
    return EntityRecord(id=str(user.id), display_name=user.name, is_bot=bool(user.bot))


class DiscordGateway:
    """ReplyPort and DirectoryPort implementation using discord.Client."""

    def __init__(self, client: discord.Client):
        self._client = client

    async def _messageable(self, channel_id: str):
        cid = _snowflake(channel_id)
        if cid is None:
            return None
        channel = self._client.get_channel(cid)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(cid)
            except discord.NotFound:
                return None
        return channel

    async def post_message(
        self,
        channel_id: str,
        text: str,
        thread_ts: Optional[str] = None,
        reply_broadcast: bool = False,
    ) -> None:
        channel = await self._messageable(channel_id)
        if channel is None:
            log.warning("cannot post, unknown channel", channel=channel_id)
            return
        # Discord renders bare <@id> tokens only
        text = _LABELLED_MENTION_RE.sub(r"<@\1>", text)
        parent = None
        if thread_ts and _snowflake(thread_ts) is not None:
            parent = channel.get_partial_message(int(thread_ts))
        # Split long messages
        while text:
            chunk, text = text[:MAX_MESSAGE_LENGTH], text[MAX_MESSAGE_LENGTH:]
            if parent is not None:
                await parent.reply(chunk, mention_author=reply_broadcast)
            else:
                await channel.send(chunk)

    async def add_reaction(self, channel_id: str, ts: str, emoji: str) -> None:
        channel = await self._messageable(channel_id)
        message_id = _snowflake(ts)
        if channel is None or message_id is None:
            return
        await channel.get_partial_message(message_id).add_reaction(emoji)

    async def open_conversation(self, user_ids: Sequence[str]) -> Optional[str]:
        # Bots cannot open group DMs; only one-to-one conversations.
        if len(user_ids) != 1:
            log.warning("private conversation needs exactly one user", users=list(user_ids))
            return None
        user = await self._fetch_discord_user(user_ids[0])
        if user is None:
            return None
        dm = await user.create_dm()
        return str(dm.id)

    async def list_users(self) -> List[EntityRecord]:
        seen: Dict[int, EntityRecord] = {}
        for member in self._client.get_all_members():
            if member.id not in seen:
                seen[member.id] = user_record(member)
        return list(seen.values())

    async def list_channels(self) -> List[EntityRecord]:
        records = [channel_record(ch) for ch in self._client.get_all_channels() if isinstance(ch, discord.abc.Messageable)]
        records.extend(channel_record(ch) for ch in self._client.private_channels)
        return records

    async def fetch_channel(self, channel_id: str) -> Optional[EntityRecord]:
        channel = await self._messageable(channel_id)
        return channel_record(channel) if channel is not None else None

    async def _fetch_discord_user(self, user_id: str):
        uid = _snowflake(user_id)
        if uid is None:
            return None
        user = self._client.get_user(uid)
        if user is None:
            try:
                user = await self._client.fetch_user(uid)
            except discord.NotFound:
                return None
        return user

    async def fetch_user(self, user_id: str) -> Optional[EntityRecord]:
        user = await self._fetch_discord_user(user_id)
        return user_record(user) if user is not None else None


class DiscordBotAdapter(discord.Client):
    """Thin Discord client that delegates routing to the controller.

    ``bind`` wires the controller and the optional refresher once they exist;
    both need the client's gateway, so they are built after the client.
    """

    def __init__(self, bot_name: Optional[str] = None, **discord_kwargs):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        super().__init__(intents=intents, **discord_kwargs)
        self._bot_name = bot_name
        self._controller = None
        self._refresher = None

    def bind(self, controller, refresher=None) -> None:
        self._controller = controller
        self._refresher = refresher

    @property
    def bot_name(self) -> Optional[str]:
        if self._bot_name:
            return self._bot_name
        return self.user.name if self.user else None

    def _is_text_mentioned(self, content: str) -> bool:
        name = self.bot_name
        return bool(name) and f"@{name.lower()}" in content.lower()

    def to_raw_event(self, message: discord.Message) -> Optional[RawEvent]:
        """Convert a Discord message; None for messages the bot must ignore."""
        if not self.user or message.author == self.user or message.author.bot:
            return None
        content = _NICK_MENTION_RE.sub(r"<@\1>", message.content)
        is_mention = self.user.mentioned_in(message) or self._is_text_mentioned(content)
        attachments = tuple(
            {"url": a.url, "filename": a.filename, "content_type": a.content_type}
            for a in message.attachments
        )
        return RawEvent(
            text=content,
            user=str(message.author.id),
            channel=channel_record(message.channel),
            ts=str(message.id),
            is_mention=bool(is_mention),
            attachments=attachments,
        )

    async def on_ready(self):
        log.info("logged in", user=str(self.user))
        if self._controller is not None:
            self._controller.set_identity(str(self.user.id), self.bot_name)
        if self._refresher is not None:
            self._refresher.start()

    async def on_message(self, message: discord.Message):
        if self._controller is None:
            return
        event = self.to_raw_event(message)
        if event is None:
            return
        await self._controller.handle_event(event)

    async def on_member_join(self, member: discord.Member):
        if self._controller is None:
            return
        channel = member.guild.system_channel
        await self._controller.handle_platform_event(
            PlatformEvent(
                type="member_joined_channel",
                user=str(member.id),
                channel=str(channel.id if channel is not None else member.guild.id),
            )
        )

    async def close(self):
        if self._refresher is not None:
            await self._refresher.stop()
        await super().close()

