"""Operator alerts for the routing core, delivered to a Telegram chat.

Alerts are best effort: an unconfigured bot or a failed delivery is logged
and reported as ``False``, never raised into the conversation flow.
"""

from typing import Optional

import httpx

from switchboard.config import settings
from switchboard.logging_config import get_logger

logger = get_logger("alert_service")

ALERT_BOT_TOKEN = settings.alert_bot_token
ALERT_CHAT_ID = settings.alert_chat_id

TELEGRAM_API = "https://api.telegram.org"
SEND_TIMEOUT_SECONDS = 10.0

LEVEL_MARKERS = {"INFO": "ℹ️", "WARNING": "⚠️", "ERROR": "❌", "CRITICAL": "🔥"}


def format_alert(level: str, message: str, context: Optional[dict] = None) -> str:
    """Markdown alert body: marker and level, message, then context in a code block."""
    lines = [f"{LEVEL_MARKERS.get(level, '📢')} *{level}* · switchboard", "", message]
    if context:
        lines += ["", "```"] + [f"{key}: {value}" for key, value in context.items()] + ["```"]
    return "\n".join(lines)


async def send_alert(level: str, message: str, context: Optional[dict] = None) -> bool:
    if not ALERT_BOT_TOKEN or not ALERT_CHAT_ID:
        logger.warning(f"Alert skipped, bot not configured: {level} {message}", extra={"context": context or {}})
        return False

    payload = {"chat_id": ALERT_CHAT_ID, "text": format_alert(level, message, context), "parse_mode": "Markdown"}
    try:
        async with httpx.AsyncClient(timeout=SEND_TIMEOUT_SECONDS) as client:
            response = await client.post(f"{TELEGRAM_API}/bot{ALERT_BOT_TOKEN}/sendMessage", json=payload)
    except httpx.HTTPError as e:
        logger.error(f"Alert delivery failed: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Telegram rejected alert with status {response.status_code}")
        return False
    return True


async def alert_error(message: str, context: Optional[dict] = None) -> bool:
    return await send_alert("ERROR", message, context)


async def alert_warning(message: str, context: Optional[dict] = None) -> bool:
    return await send_alert("WARNING", message, context)
