"""DispatchController: routes one inbound event to at most one command.

Per message: Classified -> Matched -> LeagueGated -> IdentityGated ->
MiddlewareApplied -> Dispatched, with Dropped and Aborted as terminal
non-success states. Nothing raised by a listener escapes handle_event.
"""

import inspect
from dataclasses import replace
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

import structlog

from chesster.domain.context import classify, normalize_text
from chesster.domain.entity_index import EntityDirectory
from chesster.domain.errors import AmbiguousLeagueError, MalformedEventError
from chesster.domain.league import LeagueResolver, disambiguation_reply
from chesster.domain.listeners import ListenerKind, ListenerRegistry
from chesster.domain.middleware import Abort, apply_middleware
from chesster.domain.models import (
    CommandMessage,
    DispatchResult,
    DispatchState,
    EntityRecord,
)
from chesster.ports.inbound import PlatformEvent, RawEvent
from chesster.ports.outbound import DirectoryPort, ReplyPort

log = structlog.get_logger(__name__)

APOLOGY = "Something has gone terribly terribly wrong. Please forgive me."

EventCallback = Callable[["DispatchController", PlatformEvent], Union[Awaitable[Any], Any]]


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class DispatchController:
    """Owns the listener registry and the top-level failure boundary.

    Also the bot handle given to callbacks: ``reply``, ``say``, ``react``,
    ``start_private_conversation`` and the member lookups live here.
    """

    def __init__(
        self,
        registry: ListenerRegistry,
        directory: EntityDirectory,
        resolver: LeagueResolver,
        replies: ReplyPort,
        ping_mods: Optional[Mapping[str, Sequence[str]]] = None,
        platform: Optional[DirectoryPort] = None,
        bot_id: Optional[str] = None,
        bot_name: Optional[str] = None,
    ):
        self.registry = registry
        self.directory = directory
        self.resolver = resolver
        self._replies = replies
        self._platform = platform
        self._ping_mods = {k: frozenset(v) for k, v in (ping_mods or {}).items()}
        self.bot_id = bot_id
        self.bot_name = bot_name
        self._event_listeners: Dict[str, List[EventCallback]] = {}

    def set_identity(self, bot_id: Optional[str], bot_name: Optional[str]) -> None:
        self.bot_id = bot_id
        self.bot_name = bot_name
        log.info("bot identity set", bot_id=bot_id, bot_name=bot_name)

    # -- Inbound --

    async def handle_event(self, event: RawEvent) -> DispatchResult:
        try:
            return await self._handle(event)
        except Exception as e:
            log.exception("unhandled error while routing event", channel=str(event.channel), user=event.user)
            return DispatchResult(DispatchState.DROPPED, reason="internal error", error=e)

    async def _handle(self, event: RawEvent) -> DispatchResult:
        try:
            event.validate()
        except MalformedEventError as e:
            log.warning("dropping malformed event", error=str(e), user=event.user, channel=str(event.channel))
            return DispatchResult(DispatchState.DROPPED, reason="malformed event")

        channel = await self.resolve_channel(event.channel)
        if channel is None:
            log.warning("unable to get details for channel", channel=str(event.channel))
            return DispatchResult(DispatchState.DROPPED, reason="unknown channel")

        is_im = channel.is_im if event.is_im is None else event.is_im
        is_group = channel.is_group if event.is_group is None else event.is_group
        context = classify(is_im, is_group, event.is_mention)
        text = normalize_text(event.text, self.bot_id, self.bot_name)
        trail = [DispatchState.CLASSIFIED]
        log.debug("message classified", category=context.category.value, text=text)

        matched = self.registry.find_match(text, context)
        if matched is None:
            log.debug("no matching listener", text=text, listeners=len(self.registry))
            trail.append(DispatchState.DROPPED)
            return DispatchResult(DispatchState.DROPPED, reason="no match", trail=tuple(trail))
        listener = matched.listener
        trail.append(DispatchState.MATCHED)

        message = CommandMessage(
            user=event.user,
            channel=channel,
            text=text,
            ts=event.ts,
            context=context,
            attachments=tuple(event.attachments),
            match=matched.match,
        )

        if listener.wants_league:
            try:
                league = self.resolver.resolve(channel, text, channel_only=listener.channel_only)
            except AmbiguousLeagueError as e:
                await self._safe_reply(message, disambiguation_reply(e.leagues))
                trail.append(DispatchState.ABORTED)
                return DispatchResult(DispatchState.ABORTED, reason="ambiguous league", message=message, trail=tuple(trail))
            message = replace(message, league=league, league_resolved=True)
            trail.append(DispatchState.LEAGUE_GATED)

        member = self.directory.users.get_by_name_or_id(event.user)
        if member is None:
            log.warning("acting member not in user index", user=event.user)
        league = message.league
        if listener.kind is ListenerKind.LEAGUE_COMMAND and (league is None or member is None):
            log.debug(
                "cannot execute league command - missing league or member",
                listener=listener.describe(),
                league=league.name if league else None,
                member=member.id if member else None,
            )
            trail.append(DispatchState.DROPPED)
            return DispatchResult(DispatchState.DROPPED, reason="missing league or member", message=message, trail=tuple(trail))

        message = replace(
            message,
            member=member,
            is_moderator=bool(league and league.is_moderator(member)),
            is_ping_moderator=self._is_ping_moderator(channel, member),
        )
        trail.append(DispatchState.IDENTITY_GATED)

        try:
            result = await apply_middleware(message, listener.middleware, self._safe_reply)
        except Exception as e:
            log.exception("middleware failed", listener=listener.describe())
            await self._safe_reply(message, APOLOGY)
            trail.append(DispatchState.ABORTED)
            return DispatchResult(DispatchState.ABORTED, reason="middleware fault", message=message, trail=tuple(trail), error=e)
        if isinstance(result, Abort):
            trail.append(DispatchState.ABORTED)
            return DispatchResult(DispatchState.ABORTED, reason=result.reason, message=message, trail=tuple(trail))
        message = result.message
        trail.append(DispatchState.MIDDLEWARE_APPLIED)

        log.info("executing command", listener=listener.describe(), kind=listener.kind.value, user=event.user)
        trail.append(DispatchState.DISPATCHED)
        try:
            await _maybe_await(listener.callback(self, message))
        except Exception as e:
            log.exception("error in command execution", listener=listener.describe())
            await self._safe_reply(message, APOLOGY)
            return DispatchResult(DispatchState.DISPATCHED, reason="callback fault", message=message, trail=tuple(trail), error=e)
        return DispatchResult(DispatchState.DISPATCHED, message=message, trail=tuple(trail))

    def _is_ping_moderator(self, channel: EntityRecord, member: Optional[EntityRecord]) -> bool:
        if member is None:
            return False
        mods = self._ping_mods.get(channel.id)
        return bool(mods) and member.id in mods

    async def resolve_channel(self, channel: Union[str, EntityRecord]) -> Optional[EntityRecord]:
        if isinstance(channel, EntityRecord):
            return channel
        record = self.directory.get_channel(channel)
        if record is not None or self._platform is None:
            return record
        try:
            record = await self._platform.fetch_channel(channel)
        except Exception:
            log.warning("channel fetch failed", channel=channel, exc_info=True)
            return None
        if record is not None:
            self.directory.remember_channel(record)
        return record

    # -- Platform events --

    def on(self, event_type: str, callback: EventCallback) -> None:
        self._event_listeners.setdefault(event_type, []).append(callback)

    async def handle_platform_event(self, event: PlatformEvent) -> None:
        for callback in self._event_listeners.get(event.type, ()):
            try:
                await _maybe_await(callback(self, event))
            except Exception:
                log.exception("error in event callback", event_type=event.type)

    # -- Outbound, used by callbacks --

    async def reply(self, message: CommandMessage, text: str) -> None:
        if message.channel is None:
            return
        await self.say(message.channel.id, text)

    async def say(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        reply_broadcast: bool = False,
    ) -> None:
        if text:
            text = self.directory.rewrite_mentions(text)
        await self._replies.post_message(channel, text, thread_ts=thread_ts, reply_broadcast=reply_broadcast)

    async def _safe_reply(self, message: CommandMessage, text: str) -> None:
        try:
            await self.reply(message, text)
        except Exception:
            log.exception("failed to send reply", channel=message.channel.id)

    async def react(self, message: CommandMessage, emoji: str) -> None:
        if not message.ts:
            return
        await self._replies.add_reaction(message.channel.id, message.ts, emoji)

    async def start_private_conversation(self, names_or_ids: Sequence[str]) -> Optional[str]:
        ids = [m.id for m in (self.find_member(n) for n in names_or_ids) if m is not None]
        if not ids:
            raise LookupError("Unable to find user")
        return await self._replies.open_conversation(ids)

    def find_member(self, name_or_id: str) -> Optional[EntityRecord]:
        return self.directory.find_member(name_or_id)

    def member_target(self, message: CommandMessage) -> Optional[EntityRecord]:
        """The member named by the first captured argument, else the sender."""
        if message.member is None:
            return None
        return self.find_member(message.group(1) or message.member.id)

    async def has_single_account(self, message: CommandMessage) -> bool:
        usernames: List[str] = []
        for record in self.directory.users.claims_for_id(message.user):
            if record.secondary_key and record.secondary_key not in usernames:
                usernames.append(record.secondary_key)
        if len(usernames) == 1:
            return True
        await self.reply(
            message,
            "This command requires you to have a single roster account associated with "
            f"your chat account. You have {len(usernames)}:\n{', '.join(usernames)}",
        )
        return False
