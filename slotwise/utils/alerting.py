"""
Ops alerting for background failures nobody is watching a request for.

Every alert is logged; when ALERT_WEBHOOK_URL is set it is also posted to a
Discord/Slack-style webhook. Each alert type has a cooldown so a sweep that
fails every interval produces one alert, not hundreds. Cooldowns are shared
through Redis and fall back to process memory when Redis is unreachable.
"""
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 300
WEBHOOK_TIMEOUT_SECONDS = 5.0
COOLDOWN_KEY_PREFIX = "slotwise:alert_cooldown:"


class AlertType:
    SWEEP_FAILED = "sweep_failed"
    NOTIFICATION_FAILED = "notification_failed"
    NOTIFICATION_QUEUE_FULL = "notification_queue_full"
    RECOVERY_RESTORED = "recovery_restored"


# A full queue stays full for a while; one alert per 15 minutes is enough
COOLDOWNS: dict[str, int] = {
    AlertType.NOTIFICATION_QUEUE_FULL: 900,
}

_SEVERITY_LEVELS = {
    "critical": logging.CRITICAL,
    "error": logging.ERROR,
    "warning": logging.WARNING,
}

_SEVERITY_PREFIX = {
    "critical": "\U0001f6a8",
    "error": "❌",
    "warning": "⚠️",
}

# alert_type -> monotonic expiry, used only while Redis is down
_memory_cooldowns: dict[str, float] = {}


def cooldown_for(alert_type: str) -> int:
    return COOLDOWNS.get(alert_type, DEFAULT_COOLDOWN_SECONDS)


async def send_alert(
    alert_type: str,
    message: str,
    correlation_id: Optional[str] = None,
    severity: str = "error",
    extra: Optional[dict] = None,
) -> bool:
    """
    Log an alert and forward it to the webhook, unless the type is cooling down.

    Returns True when the alert went out. Never raises: alerting runs inside
    sweeps and the notification dispatcher, which must keep going.
    """
    if not await _claim_slot(alert_type):
        logger.debug("Alert %s suppressed by cooldown", alert_type)
        return False

    from slotwise.utils.logging import get_correlation_id, sweep_ctx
    cid = correlation_id or get_correlation_id()
    fields = dict(extra or {})
    sweep = sweep_ctx.get()
    if sweep and "sweep" not in fields:
        fields["sweep"] = sweep

    logger.log(
        _SEVERITY_LEVELS.get(severity, logging.ERROR),
        "ALERT [%s]: %s", alert_type, message,
        extra={"error_code": alert_type},
    )
    await _post_webhook(format_webhook_content(alert_type, message, severity, cid, fields))
    return True


async def _claim_slot(alert_type: str) -> bool:
    """SET NX EX on a per-type key; whoever sets it first sends the alert."""
    ttl = cooldown_for(alert_type)
    try:
        from slotwise.utils.redis_client import get_redis
        redis = await get_redis()
        claimed = await redis.set(f"{COOLDOWN_KEY_PREFIX}{alert_type}", "1", nx=True, ex=ttl)
        return bool(claimed)
    except Exception as e:
        logger.debug("Redis cooldown unavailable for %s: %s", alert_type, str(e))

    now = time.monotonic()
    if _memory_cooldowns.get(alert_type, 0.0) > now:
        return False
    _memory_cooldowns[alert_type] = now + ttl
    return True


def format_webhook_content(
    alert_type: str,
    message: str,
    severity: str,
    correlation_id: Optional[str],
    fields: dict,
) -> str:
    lines = [f"{_SEVERITY_PREFIX.get(severity, '')} **{alert_type}**".strip(), message]
    if correlation_id:
        lines.append(f"`correlation_id: {correlation_id}`")
    lines.extend(f"`{key}: {value}`" for key, value in fields.items())
    return "\n".join(lines)


async def _post_webhook(content: str) -> None:
    from slotwise.config import get_settings
    url = get_settings().alert_webhook_url
    if not url:
        return

    import httpx
    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(url, json={"content": content})
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("Alert webhook delivery failed: %s", str(e))
