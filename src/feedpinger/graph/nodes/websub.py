"""
WebSub Node - Sends a publish notification to a WebSub (PubSubHubbub) hub.

    POST <hub>  hub.mode=publish&hub.url=<feed url>

Subscribers of the hub then re-fetch the feed. Only sent for sites with a
webSubHubUrl, and only when the run found new or updated posts.
"""

import httpx
import structlog

from feedpinger.graph.state import NotificationResult, SiteState

logger = structlog.get_logger()

DEFAULT_WEBSUB_HUB = "https://pubsubhubbub.appspot.com/publish"


async def notify_websub(
    client: httpx.AsyncClient,
    feed_url: str,
    hub_url: str = DEFAULT_WEBSUB_HUB,
) -> NotificationResult:
    log = logger.bind(target="websub", hub_url=hub_url, feed_url=feed_url)

    try:
        # Passing a dict as data= sends application/x-www-form-urlencoded
        response = await client.post(hub_url, data={"hub.mode": "publish", "hub.url": feed_url})
    except httpx.RequestError as e:
        log.error("Error notifying WebSub hub", error=str(e), error_type=type(e).__name__)
        return NotificationResult(target="websub", status="failed", status_code=None, detail=str(e))
    except Exception as e:
        log.exception("Unexpected error notifying WebSub hub")
        return NotificationResult(target="websub", status="failed", status_code=None, detail=str(e))

    if response.is_success:
        log.info("Successfully notified WebSub hub", status_code=response.status_code)
        return NotificationResult(
            target="websub", status="sent", status_code=response.status_code, detail=hub_url
        )

    log.error(
        "Failed to notify WebSub hub",
        status_code=response.status_code,
        response=response.text,
    )
    return NotificationResult(
        target="websub",
        status="failed",
        status_code=response.status_code,
        detail=response.text,
    )


def create_websub_node(client: httpx.AsyncClient):
    async def node(state: SiteState) -> dict:
        site = state["site"]

        if not state.get("qualifying_urls"):
            detail = "No new or updated posts"
        elif not site.web_sub_hub_url:
            detail = "Not configured"
        else:
            result = await notify_websub(client, site.feed_url, site.web_sub_hub_url)
            return {"notifications": [result]}

        return {
            "notifications": [
                NotificationResult(target="websub", status="skipped", status_code=None, detail=detail)
            ]
        }

    return node
