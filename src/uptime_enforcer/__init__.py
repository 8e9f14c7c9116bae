"""Staged reboot nudges and forced reboots for hosts that have run too long."""

__version__ = "0.1.0"
