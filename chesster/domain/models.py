"""Domain data models: pure Python dataclasses."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, FrozenSet, Optional, Tuple

if TYPE_CHECKING:
    from chesster.domain.listeners import Listener


class MessageCategory(str, Enum):
    DIRECT_MESSAGE = "direct_message"
    DIRECT_MENTION = "direct_mention"
    AMBIENT = "ambient"
    # Never produced by the classifier: bot-originated events are filtered
    # by the platform adapter before they reach the core.
    BOT_MESSAGE = "bot_message"


@dataclass(frozen=True)
class MessageContext:
    """Category of an inbound message. The flags derive from the single category."""

    category: MessageCategory

    @property
    def is_direct_message(self) -> bool:
        return self.category is MessageCategory.DIRECT_MESSAGE

    @property
    def is_direct_mention(self) -> bool:
        return self.category is MessageCategory.DIRECT_MENTION

    @property
    def is_ambient(self) -> bool:
        return self.category is MessageCategory.AMBIENT

    @property
    def is_bot_message(self) -> bool:
        return self.category is MessageCategory.BOT_MESSAGE


@dataclass(frozen=True)
class EntityRecord:
    """A platform user or channel as held by the entity index."""

    id: str
    display_name: Optional[str] = None
    secondary_key: Optional[str] = None  # e.g. the member's roster username
    is_im: bool = False
    is_group: bool = False
    is_bot: bool = False
    tz: Optional[str] = None


@dataclass(frozen=True)
class League:
    name: str
    aliases: FrozenSet[str] = frozenset()
    channel_bindings: FrozenSet[str] = frozenset()
    moderators: FrozenSet[str] = frozenset()
    roster_tag: Optional[str] = None

    def is_moderator(self, member: Optional[EntityRecord]) -> bool:
        """Moderator sets hold platform ids or roster usernames, case-insensitively."""
        if member is None:
            return False
        mods = {m.lower() for m in self.moderators}
        if member.id.lower() in mods:
            return True
        return bool(member.secondary_key) and member.secondary_key.lower() in mods


@dataclass(frozen=True)
class NormalizedMessage:
    """Inbound event after mention stripping and classification."""

    user: str
    channel: EntityRecord
    text: str
    ts: str
    context: MessageContext
    attachments: Tuple[dict, ...] = ()


@dataclass(frozen=True)
class CommandMessage(NormalizedMessage):
    """A matched message as seen by middleware and command callbacks."""

    match: Optional[re.Match] = None
    member: Optional[EntityRecord] = None
    league: Optional[League] = None
    league_resolved: bool = False
    is_moderator: bool = False
    is_ping_moderator: bool = False

    @property
    def matches(self) -> Tuple[Optional[str], ...]:
        """Whole match followed by the captured groups."""
        if self.match is None:
            return ()
        return (self.match.group(0),) + self.match.groups()

    def group(self, index: int) -> Optional[str]:
        matches = self.matches
        return matches[index] if index < len(matches) else None


@dataclass(frozen=True)
class MatchResult:
    listener: "Listener"
    match: re.Match

    @property
    def captured_groups(self) -> Tuple[Optional[str], ...]:
        return self.match.groups()


class DispatchState(str, Enum):
    CLASSIFIED = "classified"
    MATCHED = "matched"
    LEAGUE_GATED = "league_gated"
    IDENTITY_GATED = "identity_gated"
    MIDDLEWARE_APPLIED = "middleware_applied"
    DISPATCHED = "dispatched"
    DROPPED = "dropped"
    ABORTED = "aborted"


@dataclass
class DispatchResult:
    """Terminal outcome of one message's trip through the controller."""

    state: DispatchState
    reason: str = ""
    message: Optional[CommandMessage] = None
    trail: Tuple[DispatchState, ...] = field(default_factory=tuple)
    error: Optional[BaseException] = None

    @property
    def dispatched(self) -> bool:
        return self.state is DispatchState.DISPATCHED
