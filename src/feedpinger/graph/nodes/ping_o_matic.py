"""
Ping-O-Matic Node - Tells the Ping-O-Matic aggregator that a site's feed changed.

Ping-O-Matic relays a "this blog updated" notice to several downstream
services. The ping is per site, not per URL, and is only sent when the run
found at least one new or updated post.

LangGraph Integration:
- Input: SiteState with site, qualifying_urls
- Output: {"notifications": [NotificationResult]}
"""

import httpx
import structlog

from feedpinger.config import DEFAULT_PING_O_MATIC_ENDPOINT, PingOMaticConfig
from feedpinger.graph.state import NotificationResult, SiteState

logger = structlog.get_logger()

# Downstream services Ping-O-Matic should relay to
SERVICE_FLAGS = {
    "chk_blogs": "on",
    "chk_feedburner": "on",
    "chk_tailrank": "on",
    "chk_superfeedr": "on",
}


def build_ping_params(config: PingOMaticConfig) -> dict[str, str]:
    return {
        "title": config.title,
        "blogurl": config.blog_url,
        "rssurl": config.rss_url,
        **SERVICE_FLAGS,
    }


async def notify_ping_o_matic(
    client: httpx.AsyncClient,
    config: PingOMaticConfig,
    endpoint: str = DEFAULT_PING_O_MATIC_ENDPOINT,
    site_id: str | None = None,
) -> NotificationResult:
    """Send one ping. Skips with a warning if title/blogUrl/rssUrl is missing."""
    log = logger.bind(target="ping_o_matic", site_id=site_id)

    if not config.is_complete:
        log.warning("Missing Ping-O-Matic configuration (title, blogUrl, or rssUrl), skipping")
        return NotificationResult(
            target="ping_o_matic",
            status="skipped",
            status_code=None,
            detail="Incomplete configuration",
        )

    try:
        response = await client.get(endpoint, params=build_ping_params(config))
    except httpx.RequestError as e:
        log.error("Error pinging Ping-O-Matic", error=str(e), error_type=type(e).__name__)
        return NotificationResult(
            target="ping_o_matic", status="failed", status_code=None, detail=str(e)
        )
    except Exception as e:
        log.exception("Unexpected error pinging Ping-O-Matic")
        return NotificationResult(
            target="ping_o_matic", status="failed", status_code=None, detail=str(e)
        )

    if response.is_success:
        log.info("Successfully pinged Ping-O-Matic", response_preview=response.text[:100])
        return NotificationResult(
            target="ping_o_matic",
            status="sent",
            status_code=response.status_code,
            detail=response.text[:100],
        )

    log.error(
        "Failed to ping Ping-O-Matic",
        status_code=response.status_code,
        response=response.text,
    )
    return NotificationResult(
        target="ping_o_matic",
        status="failed",
        status_code=response.status_code,
        detail=response.text,
    )


def create_ping_o_matic_node(
    client: httpx.AsyncClient,
    endpoint: str = DEFAULT_PING_O_MATIC_ENDPOINT,
):
    async def node(state: SiteState) -> dict:
        site = state["site"]

        if not state.get("qualifying_urls"):
            detail = "No new or updated posts"
        elif site.ping_o_matic is None:
            detail = "Not configured"
        else:
            result = await notify_ping_o_matic(
                client, site.ping_o_matic, endpoint=endpoint, site_id=site.id
            )
            return {"notifications": [result]}

        return {
            "notifications": [
                NotificationResult(
                    target="ping_o_matic", status="skipped", status_code=None, detail=detail
                )
            ]
        }

    return node
