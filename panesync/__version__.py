"""Version information for panesync."""

__version__ = "0.4.0"
