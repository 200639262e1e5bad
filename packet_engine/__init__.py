"""Packet Engine.

Generates personalized client packets from intake data and delivers them
through a status-driven background queue with durable retries.
"""

__version__ = "0.1.0"
