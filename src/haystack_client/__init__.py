"""
Haystack Client - companion client for the Haystack code search daemon.

Installs the platform-specific daemon binary, keeps the daemon's workspace
index in step with file edits, and brokers full-text search requests to it.
"""

__version__ = "0.3.0"
__author__ = "Haystack Contributors"
