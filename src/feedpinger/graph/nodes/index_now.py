"""
IndexNow Node - Submits new or updated URLs to the IndexNow API.

One batched POST per site per run:
    {"host": ..., "key": ..., "urlList": [{"loc": url}, ...]}

The API key is looked up by name (site.index_now_key_env) through the
SecretProvider. A missing key skips IndexNow only; the other notifiers and
the checkpoint write carry on. Failures are logged, never retried.

LangGraph Integration:
- Input: SiteState with site, qualifying_urls
- Output: {"notifications": [NotificationResult]}
"""

import httpx
import structlog

from feedpinger.config import DEFAULT_INDEX_NOW_ENDPOINT
from feedpinger.graph.state import NotificationResult, SiteState
from feedpinger.secret_provider import SecretProvider

logger = structlog.get_logger()


def build_index_now_payload(host: str, api_key: str, urls: list[str]) -> dict:
    return {
        "host": host,
        "key": api_key,
        "urlList": [{"loc": url} for url in urls],
    }


async def notify_index_now(
    client: httpx.AsyncClient,
    host: str,
    api_key: str,
    urls: list[str],
    endpoint: str = DEFAULT_INDEX_NOW_ENDPOINT,
) -> NotificationResult:
    """
    Submit a URL batch to IndexNow.

    An empty URL list is a logged no-op.
    """
    log = logger.bind(target="index_now", host=host)

    if not urls:
        log.info("No new URLs for IndexNow")
        return NotificationResult(
            target="index_now", status="skipped", status_code=None, detail="No new URLs"
        )

    payload = build_index_now_payload(host, api_key, urls)
    log.debug("IndexNow payload", url_count=len(urls), urls=urls)

    try:
        response = await client.post(endpoint, json=payload)
    except httpx.RequestError as e:
        log.error("Error pinging IndexNow", error=str(e), error_type=type(e).__name__)
        return NotificationResult(
            target="index_now", status="failed", status_code=None, detail=str(e)
        )
    except Exception as e:
        log.exception("Unexpected error pinging IndexNow")
        return NotificationResult(
            target="index_now", status="failed", status_code=None, detail=str(e)
        )

    if response.is_success:
        log.info("Successfully pinged IndexNow", url_count=len(urls), status_code=response.status_code)
        return NotificationResult(
            target="index_now",
            status="sent",
            status_code=response.status_code,
            detail=f"Submitted {len(urls)} URLs",
        )

    log.error(
        "Failed to ping IndexNow",
        status_code=response.status_code,
        response=response.text,
    )
    return NotificationResult(
        target="index_now",
        status="failed",
        status_code=response.status_code,
        detail=response.text,
    )


def create_index_now_node(
    client: httpx.AsyncClient,
    secrets: SecretProvider,
    endpoint: str = DEFAULT_INDEX_NOW_ENDPOINT,
):
    async def node(state: SiteState) -> dict:
        site = state["site"]
        api_key = secrets.get(site.index_now_key_env)

        if not api_key:
            logger.error(
                "IndexNow API key not found, skipping IndexNow ping",
                site_id=site.id,
                secret_name=site.index_now_key_env,
            )
            result = NotificationResult(
                target="index_now",
                status="skipped",
                status_code=None,
                detail=f"Secret {site.index_now_key_env!r} is not set",
            )
        else:
            result = await notify_index_now(
                client, site.host, api_key, state.get("qualifying_urls", []), endpoint=endpoint
            )

        return {"notifications": [result]}

    return node
