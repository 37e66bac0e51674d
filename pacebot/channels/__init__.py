"""Messaging transports for PaceBot."""

from pacebot.channels.base import InboundHandler, InboundMessage, Transport
from pacebot.channels.console import ConsoleTransport

__all__ = ["InboundHandler", "InboundMessage", "Transport", "ConsoleTransport"]
