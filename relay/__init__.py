"""
Store-and-Forward Relay

Accepts JSON payloads over HTTP, stores them durably and delivers them to a
downstream backend with bounded retries and a background retry sweep.
"""

__version__ = "1.0.0"
