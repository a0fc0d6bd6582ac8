"""Launcher: wires config, core, Discord client, roster refresh and status API."""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog
import uvicorn

from chesster.adapters.discord import DiscordBotAdapter, DiscordGateway
from chesster.adapters.roster import HeltourClient
from chesster.adapters.web.status_routes import create_app
from chesster.commands.builtin import register_builtin
from chesster.config import ChessterConfig, Settings, load_config
from chesster.domain.dispatch import DispatchController
from chesster.domain.entity_index import EntityDirectory
from chesster.domain.league import LeagueRegistry, LeagueResolver, build_channel_map
from chesster.domain.listeners import ListenerRegistry
from chesster.infrastructure.refresh import DirectoryRefresher
from chesster.logging import setup_logging

log = structlog.get_logger(__name__)


@dataclass
class Bot:
    client: DiscordBotAdapter
    controller: DispatchController
    refresher: DirectoryRefresher


def _create_roster(config: ChessterConfig) -> Optional[HeltourClient]:
    """Roster client with graceful degradation when unconfigured."""
    if config.roster is None:
        log.info("roster API not configured, skipping")
        return None
    client = HeltourClient(config.roster, config.refresh)
    if not client.is_configured:
        log.warning("roster API token missing, skipping")
        return None
    return client


def build_bot(settings: Settings, config: ChessterConfig) -> Bot:
    leagues = LeagueRegistry(config.build_leagues())
    resolver = LeagueResolver(build_channel_map(config.channel_map, leagues.all()), leagues)
    directory = EntityDirectory()
    registry = ListenerRegistry()
    register_builtin(registry)

    client = DiscordBotAdapter(bot_name=settings.bot_name)
    gateway = DiscordGateway(client)
    controller = DispatchController(
        registry,
        directory,
        resolver,
        replies=gateway,
        ping_mods=config.ping_mods,
        platform=gateway,
        bot_name=settings.bot_name,
    )
    refresher = DirectoryRefresher(
        directory,
        gateway,
        leagues,
        roster=_create_roster(config),
        config=config.refresh,
        identity=lambda: (controller.bot_id, controller.bot_name),
    )
    client.bind(controller, refresher)
    return Bot(client=client, controller=controller, refresher=refresher)


async def launch(settings: Settings) -> None:
    config = load_config(settings.config_path)
    bot = build_bot(settings, config)

    tasks = []
    if settings.status_port:
        app = create_app(bot.controller, bot.refresher)
        server = uvicorn.Server(
            uvicorn.Config(app, host=settings.status_host, port=settings.status_port, log_level="warning")
        )
        tasks.append(server.serve())
        log.info("status API enabled", host=settings.status_host, port=settings.status_port)

    async def _run_client():
        try:
            await bot.client.start(settings.discord_token)
        except Exception:
            log.exception("discord client crashed")
            raise
        finally:
            if not bot.client.is_closed():
                await bot.client.close()

    tasks.append(_run_client())
    await asyncio.gather(*tasks)


def main() -> None:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    if not settings.discord_token:
        log.error("no bot token configured, set CHESSTER_DISCORD_TOKEN")
        raise SystemExit(1)
    asyncio.run(launch(settings))


if __name__ == "__main__":
    main()
