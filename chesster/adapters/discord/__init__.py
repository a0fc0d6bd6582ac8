"""Discord platform adapter."""

from chesster.adapters.discord.adapter import DiscordBotAdapter, DiscordGateway

__all__ = ["DiscordBotAdapter", "DiscordGateway"]
