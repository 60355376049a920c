"""Jugger Connect realtime messaging service."""

__version__ = "0.1.0"
