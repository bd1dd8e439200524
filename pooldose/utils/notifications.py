"""Operator alerts over Telegram."""

import logging
from typing import Optional

import httpx

from pooldose.config import settings
from pooldose.domain.models import CycleOutcome, CycleResult

logger = logging.getLogger(__name__)

TIER_BLOCKED = "BLOCKED"
TIER_ACTIONABLE = "ACTIONABLE"
TIER_INFO = "INFO"

# Faults that need a person at the pool
_ALERT_TIERS = {
    CycleOutcome.BLOCKED_SAFETY_BOUNDS: TIER_BLOCKED,
    CycleOutcome.BLOCKED_MAX_CHANGE: TIER_BLOCKED,
    CycleOutcome.INVALID_CONFIG: TIER_ACTIONABLE,
    CycleOutcome.DISPATCH_FAILED: TIER_ACTIONABLE,
    CycleOutcome.ERROR: TIER_ACTIONABLE,
}


def format_tiered_message(tier: str, title: str, body: str) -> str:
    tier_u = (tier or TIER_INFO).upper()
    if tier_u not in (TIER_ACTIONABLE, TIER_BLOCKED):
        tier_u = TIER_INFO
    return f"[{tier_u}] {title}\n\n{body}".strip()


def alert_tier_for(result: CycleResult) -> Optional[str]:
    """Alert tier for a cycle result, None if it does not warrant an alert"""
    return _ALERT_TIERS.get(result.outcome)


async def send_telegram_message(text: str) -> bool:
    """Send a Telegram message if alerts are enabled and configured."""
    if not settings.TELEGRAM_ENABLED:
        return False

    token = settings.TELEGRAM_BOT_TOKEN
    chat_id = settings.TELEGRAM_CHAT_ID
    if not token or not chat_id:
        logger.info("Telegram alert skipped (missing TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID)")
        return False

    url = f"https://api.telegram.org/bot{token}/sendMessage"
    payload = {"chat_id": chat_id, "text": text}

    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            resp = await client.post(url, json=payload)
            resp.raise_for_status()
        return True
    except httpx.HTTPError as exc:
        logger.error(f"Telegram alert failed: {exc}")
        return False


async def send_cycle_alert(result: CycleResult) -> bool:
    """Tiered alert for a faulted cycle; no-op for routine outcomes."""
    tier = alert_tier_for(result)
    if tier is None:
        return False

    lines = [result.message]
    if result.current_ph is not None:
        lines.append(f"Current pH: {result.current_ph:.2f}")
    if result.target_ph is not None:
        lines.append(f"Target pH: {result.target_ph:.2f}")

    text = format_tiered_message(
        tier=tier,
        title=f"Pool {result.pool_id}: {result.outcome.value}",
        body="\n".join(lines),
    )
    return await send_telegram_message(text)
