import httpx

from swapmatch.logger import log
from swapmatch.settings import Settings


async def send_match_notification(match_id: str, settings: Settings) -> None:
    """
    Tell the notification service a match was found. Without a configured
    webhook this only logs.
    """
    if not settings.notification_webhook_url:
        log.info(f"Match {match_id} found (no notification webhook configured)")
        return

    async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
        resp = await client.post(
            settings.notification_webhook_url, json={"match_id": match_id}
        )
        resp.raise_for_status()

    log.info(f"Notification sent for match {match_id}")
