"""Best-effort SMS / WhatsApp notifications.

Delivery is mocked: the default transport only logs. Callers treat the
boolean result as informational; a failed send never affects a booking.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Literal

from . import config

logger = logging.getLogger(__name__)

Channel = Literal["sms", "whatsapp"]
CHANNELS = ("sms", "whatsapp")

Transport = Callable[[str, str, str], Awaitable[None]]


async def mock_transport(to: str, message: str, channel: str) -> None:
    logger.info("[mock notification] sending %s to %s: %r", channel.upper(), to, message)
    if config.NOTIFY_SIMULATED_DELAY:
        await asyncio.sleep(config.NOTIFY_SIMULATED_DELAY)


def normalize_channel(channel: str | None) -> Channel:
    return "whatsapp" if channel == "whatsapp" else "sms"


async def send_notification(
    to: str,
    message: str,
    channel: str = "sms",
    *,
    transport: Transport | None = None,
) -> bool:
    """Send ``message`` to ``to``; returns False instead of raising on failure."""
    channel = normalize_channel(channel)
    try:
        await (transport or mock_transport)(to, message, channel)
    except Exception as exc:
        logger.error("Failed to send %s notification to %s: %s", channel, to, exc)
        return False
    return True
