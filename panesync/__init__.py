"""panesync: file-based event log and live-state sync for terminal sessions."""

from .__version__ import __version__

__all__ = ["__version__"]
