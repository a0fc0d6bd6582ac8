"""Middleware pipeline: ordered, abortable transforms over a matched message.

A middleware is a plain function ``CommandMessage -> Continue | Abort``.
Abort stops the pipeline without invoking the callback and is not a fault.
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

import structlog

from chesster.domain.errors import MiddlewareOrderError
from chesster.domain.models import CommandMessage

log = structlog.get_logger(__name__)

REQUIRES_LEAGUE_REPLY = (
    "This command requires you to specify the league you are interested in. "
    "Please include that next time"
)


@dataclass(frozen=True)
class Continue:
    message: CommandMessage


@dataclass(frozen=True)
class Abort:
    reply: Optional[str] = None
    reason: str = ""


MiddlewareResult = Union[Continue, Abort]
Middleware = Callable[[CommandMessage], MiddlewareResult]
ReplyFn = Callable[[CommandMessage, str], Awaitable[object]]


async def apply_middleware(
    message: CommandMessage,
    middleware: Sequence[Middleware],
    reply: ReplyFn,
) -> MiddlewareResult:
    """Thread the message through each transform in order.

    On Abort the carried reply is sent once and the pipeline is abandoned.
    """
    current = message
    for fn in middleware:
        result = fn(current)
        if isinstance(result, Abort):
            log.info("middleware aborted", middleware=getattr(fn, "__name__", repr(fn)), reason=result.reason)
            if result.reply:
                await reply(current, result.reply)
            return result
        if not isinstance(result, Continue):
            raise TypeError(f"middleware {fn!r} returned {type(result).__name__}, expected Continue or Abort")
        current = result.message
    return Continue(current)


def requires_league(message: CommandMessage) -> MiddlewareResult:
    if message.league is None:
        return Abort(reply=REQUIRES_LEAGUE_REPLY, reason="No league specified")
    return Continue(message)


def requires_moderator(message: CommandMessage) -> MiddlewareResult:
    """Must run after league resolution; raises MiddlewareOrderError otherwise."""
    if not message.league_resolved:
        raise MiddlewareOrderError("requires_moderator must run after league resolution")
    if message.league is None:
        return Abort(reply=REQUIRES_LEAGUE_REPLY, reason="Not in a league context")
    if not message.is_moderator:
        return Abort(
            reply=(
                f"You are not a moderator of the {message.league.name} league. "
                "Your temerity has been logged."
            ),
            reason="Not a moderator",
        )
    return Continue(message)
