"""Switchboard: conversation routing core for a human + AI live-chat platform."""

__version__ = "0.1.0"
