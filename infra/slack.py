"""Slack client for sending notifications."""

import os
from typing import Optional

import httpx
from loguru import logger


def get_webhook_url(channel: str = "#leads") -> Optional[str]:
    """Get Slack webhook URL from environment.

    Args:
        channel: Channel name (used to select webhook if multiple configured)

    Returns:
        Webhook URL or None if not configured
    """
    # Default webhook
    url = os.getenv("SLACK_WEBHOOK_URL")

    # Channel-specific webhooks (optional)
    if channel == "#leads":
        url = os.getenv("SLACK_LEADS_WEBHOOK_URL", url)

    return url


def send_message(
    text: str,
    channel: str = "#leads",
    webhook_url: Optional[str] = None,
) -> bool:
    """Send a message to Slack.

    Args:
        text: Message text (supports Slack markdown)
        channel: Channel name (for webhook selection)
        webhook_url: Override webhook URL

    Returns:
        True if sent successfully, False otherwise
    """
    url = webhook_url or get_webhook_url(channel)

    if not url:
        logger.warning(f"Slack webhook URL not configured for {channel}")
        return False

    try:
        response = httpx.post(
            url,
            json={"text": text},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.error(f"Failed to send Slack message: {e}")
        return False

    if response.status_code != 200:
        logger.error(f"Slack API error: {response.status_code} - {response.text}")
        return False

    logger.info(f"Sent Slack message to {channel}")
    return True


def send_discovery_summary(
    grid_name: str,
    cells_searched: int,
    cells_saturated: int,
    cells_failed: int,
    new_leads: int,
    channel: str = "#leads",
) -> bool:
    """Send a formatted summary of a discovery batch.

    Returns:
        True if sent successfully
    """
    message = f"""*Discovery Run Complete*
• Grid: {grid_name}
• Cells searched: {cells_searched} ({cells_saturated} saturated)
• Cells failed: {cells_failed}
• New leads: {new_leads}"""

    return send_message(message, channel)


def send_cluster_summary(
    cluster_count: int,
    leads_clustered: int,
    leads_considered: int,
    clusters_removed: int = 0,
    channel: str = "#leads",
) -> bool:
    """Send a formatted summary of a clustering run."""
    message = f"""*Lead Clusters Regenerated*
• Clusters: {cluster_count} (replaced {clusters_removed})
• Leads clustered: {leads_clustered}/{leads_considered}"""

    return send_message(message, channel)
