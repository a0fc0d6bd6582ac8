"""Adapters: platform, roster and web implementations of the ports."""
