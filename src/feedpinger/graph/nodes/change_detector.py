"""
Change Detector Node - Picks the posts that are new or updated.

Rules:
- First run for a site (no checkpoint): a post qualifies if it was published
  within FIRST_RUN_WINDOW of now. This notifies genuinely recent content
  without replaying a feed's whole history.
- Otherwise: a post qualifies if it was published OR updated after the
  checkpoint. Edits to old posts therefore re-trigger notification.

Posts without a usable date never satisfy a comparison: on a first run they
never qualify, and with a checkpoint they qualify only through a valid
updated date. Qualifying posts without a URL are logged and dropped.

LangGraph Integration:
- Input: SiteState with feed, last_checked_at
- Output: {"qualifying_urls": [...]}
"""

from datetime import datetime, timedelta, timezone

import structlog

from feedpinger.graph.state import Post, SiteState

logger = structlog.get_logger()

FIRST_RUN_WINDOW = timedelta(hours=24)


def is_new_or_updated(
    post: Post,
    last_checked_at: datetime | None,
    now: datetime | None = None,
    first_run_window: timedelta = FIRST_RUN_WINDOW,
) -> bool:
    published_at = post["published_at"]
    updated_at = post["updated_at"]

    if last_checked_at is None:
        if published_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now - published_at <= first_run_window

    return bool(
        (published_at is not None and published_at > last_checked_at)
        or (updated_at is not None and updated_at > last_checked_at)
    )


def select_qualifying_urls(
    posts: list[Post],
    last_checked_at: datetime | None,
    site_id: str,
    now: datetime | None = None,
    first_run_window: timedelta = FIRST_RUN_WINDOW,
) -> list[str]:
    """
    Return URLs of new-or-updated posts, in feed order.

    Duplicate URLs are kept once.
    """
    log = logger.bind(site_id=site_id)
    now = now or datetime.now(timezone.utc)
    urls: list[str] = []

    for post in posts:
        if post["published_at"] is None:
            log.warning(
                "Post has no usable published date",
                url=post["url"],
                has_updated_date=post["updated_at"] is not None,
            )

        if not is_new_or_updated(post, last_checked_at, now=now, first_run_window=first_run_window):
            continue

        if not post["url"]:
            log.warning("Post found without a 'url' field, skipping", post=post["raw"])
            continue

        if post["url"] not in urls:
            urls.append(post["url"])

    return urls


def create_change_detector_node(first_run_window: timedelta = FIRST_RUN_WINDOW):
    async def node(state: SiteState) -> dict:
        site = state["site"]
        urls = select_qualifying_urls(
            state["feed"]["items"],
            state.get("last_checked_at"),
            site_id=site.id,
            first_run_window=first_run_window,
        )

        if urls:
            logger.info("New or updated posts found", site_id=site.id, url_count=len(urls))
        else:
            logger.info("No new or updated posts", site_id=site.id)

        return {"qualifying_urls": urls}

    return node
