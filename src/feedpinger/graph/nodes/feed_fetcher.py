"""
Feed Fetcher Node - Fetches and parses a site's JSON feed.

This node:
1. Fetches the site's feed URL using httpx (async HTTP)
2. Parses the body as JSON with an `items` array
3. Normalizes each item into a Post (URL + resolved dates)
4. Handles errors gracefully (logs them, the site is skipped for this run)

Date fields come in several aliases; the first non-empty one wins:
- published: date_published, published, date
- updated: date_modified, updated_at (falls back to the published date)

LangGraph Integration:
- Input: SiteState with site
- Output: {"feed": FeedDocument | None, "fetch_error": FetchFailure | None}
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import httpx
import structlog

from feedpinger.graph.state import FeedDocument, FetchFailure, Post, SiteState

logger = structlog.get_logger()

PUBLISHED_ALIASES = ("date_published", "published", "date")
UPDATED_ALIASES = ("date_modified", "updated_at")


def parse_feed_date(value: object) -> datetime | None:
    """
    Parse a feed date string into an aware UTC datetime.

    Accepts ISO-8601 (JSON Feed style) and RFC 2822 (RSS style).
    Naive values are taken as UTC. Returns None if the value can't be parsed.
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError):
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the value past datetime.min/max
        return None


def first_present(item: dict, aliases: tuple[str, ...]) -> object | None:
    """Return the first truthy value among the alias fields."""
    for field in aliases:
        if value := item.get(field):
            return value
    return None


def normalize_post(item: dict) -> Post:
    """Resolve URL and date aliases for one feed item."""
    published_at = parse_feed_date(first_present(item, PUBLISHED_ALIASES))

    updated_raw = first_present(item, UPDATED_ALIASES)
    updated_at = parse_feed_date(updated_raw) if updated_raw else published_at

    url = item.get("url")
    return Post(
        url=url if isinstance(url, str) and url else None,
        published_at=published_at,
        updated_at=updated_at,
        raw=item,
    )


def _failure(feed_url: str, error_type: str, error_message: str) -> FetchFailure:
    return FetchFailure(
        feed_url=feed_url,
        error_type=error_type,
        error_message=error_message,
        timestamp=datetime.now(timezone.utc),
    )


async def fetch_feed(
    client: httpx.AsyncClient,
    feed_url: str,
) -> tuple[FeedDocument | None, FetchFailure | None]:
    """
    Fetch and parse a single JSON feed.

    Args:
        client: Shared httpx client (for connection pooling)
        feed_url: URL of the feed

    Returns:
        Tuple of (document, failure) - exactly one is None
    """
    log = logger.bind(feed_url=feed_url)

    try:
        log.info("Fetching feed")
        response = await client.get(feed_url)
        response.raise_for_status()

        body = response.json()
        if not isinstance(body, dict) or not isinstance(body.get("items"), list):
            log.error("Feed has no items array")
            return None, _failure(feed_url, "InvalidFeed", "Feed JSON has no 'items' array")

        posts: list[Post] = []
        for item in body["items"]:
            if not isinstance(item, dict):
                log.warning("Skipping non-object feed item", item=repr(item)[:100])
                continue
            posts.append(normalize_post(item))

        log.info("Feed fetched", item_count=len(posts))
        return FeedDocument(feed_url=feed_url, title=body.get("title"), items=posts), None

    except httpx.HTTPStatusError as e:
        log.error("HTTP error fetching feed", status_code=e.response.status_code)
        return None, _failure(
            feed_url,
            "HTTPStatusError",
            f"HTTP {e.response.status_code}: {e.response.reason_phrase}",
        )

    except httpx.RequestError as e:
        log.error("Request error fetching feed", error=str(e))
        return None, _failure(feed_url, type(e).__name__, str(e))

    except ValueError as e:
        # response.json() raises json.JSONDecodeError, a ValueError
        log.error("Feed is not valid JSON", error=str(e))
        return None, _failure(feed_url, type(e).__name__, str(e))

    except Exception as e:
        log.exception("Unexpected error fetching feed")
        return None, _failure(feed_url, type(e).__name__, str(e))


def create_feed_fetcher_node(client: httpx.AsyncClient):
    """
    Factory for the fetch_feed graph node, bound to a shared client.

    Returns:
        An async function compatible with LangGraph nodes.
    """

    async def node(state: SiteState) -> dict:
        feed, failure = await fetch_feed(client, state["site"].feed_url)
        return {"feed": feed, "fetch_error": failure}

    return node
