"""Chesster: command routing core for a league community chat bot."""

__version__ = "0.1.0"
