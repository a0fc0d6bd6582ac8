"""Roster API adapter."""

from chesster.adapters.roster.heltour import HeltourClient

__all__ = ["HeltourClient"]
