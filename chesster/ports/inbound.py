"""Inbound port: platform-agnostic event representation."""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from chesster.domain.errors import MalformedEventError
from chesster.domain.models import EntityRecord


@dataclass(frozen=True)
class RawEvent:
    """Discord/Slack-agnostic inbound message event.

    ``channel`` is either a channel id or an already-resolved record.
    ``is_im``/``is_group`` override the channel record's flags when the
    platform reports them on the event itself.
    """

    text: str
    user: str
    channel: Union[str, EntityRecord, None]
    ts: str = ""
    is_mention: bool = False
    is_im: Optional[bool] = None
    is_group: Optional[bool] = None
    attachments: Tuple[dict, ...] = field(default_factory=tuple)

    def validate(self) -> None:
        if not self.user:
            raise MalformedEventError("event has no user")
        if self.channel is None or self.channel == "":
            raise MalformedEventError("event has no channel")


@dataclass(frozen=True)
class PlatformEvent:
    """Non-message platform event, e.g. a member joining a channel."""

    type: str
    user: str
    channel: str
    inviter: Optional[str] = None
