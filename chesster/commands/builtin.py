"""Generic commands: help, source and the league moderator listing."""

import structlog

from chesster.domain.dispatch import DispatchController
from chesster.domain.listeners import ListenerKind, ListenerRegistry
from chesster.domain.models import CommandMessage, MessageCategory

log = structlog.get_logger(__name__)

SOURCE_URL = "https://github.com/Lichess4545/Chesster"

ADDRESSED = (MessageCategory.DIRECT_MESSAGE, MessageCategory.DIRECT_MENTION)


async def help_command(bot: DispatchController, message: CommandMessage) -> None:
    names = sorted({listener.describe() for listener in bot.registry if listener.name})
    await bot.reply(message, "I know these commands: " + ", ".join(names))


def source_command(url: str = SOURCE_URL):
    async def source(bot: DispatchController, message: CommandMessage) -> None:
        await bot.reply(message, url)
    return source


async def mods_command(bot: DispatchController, message: CommandMessage) -> None:
    league = message.league
    mods = []
    for key in sorted(league.moderators):
        member = bot.find_member(key)
        mods.append(f"<@{member.id}>" if member else key)
    if not mods:
        await bot.reply(message, f"The {league.name} league has no moderators configured.")
        return
    await bot.reply(message, f"{league.name} moderators: " + ", ".join(mods))


def register_builtin(registry: ListenerRegistry, source_url: str = SOURCE_URL) -> None:
    registry.hears([r"^help$", r"^commands$"], ADDRESSED, help_command, name="help")
    registry.hears(r"^source$", ADDRESSED, source_command(source_url), name="source")
    registry.hears(
        r"^(?:mods|moderators)\b",
        ADDRESSED + (MessageCategory.AMBIENT,),
        mods_command,
        kind=ListenerKind.LEAGUE_COMMAND,
        name="mods",
    )
    log.debug("builtin commands registered", count=len(registry))
