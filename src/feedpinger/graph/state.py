"""
LangGraph state schemas for the feed notifier.

This module defines:
1. Post / FeedDocument - Normalized feed content
2. FetchFailure - A failed feed fetch (non-fatal)
3. NotificationResult - Outcome of one outbound notification
4. SiteResult / RunSummary - Per-site and per-run outcomes
5. SiteState - The graph state passed between nodes for one site
"""

import operator
from datetime import datetime
from typing import Annotated, Literal, TypedDict

from feedpinger.config import SiteConfig

NotificationTarget = Literal["index_now", "ping_o_matic", "websub"]


class Post(TypedDict):
    """
    One feed entry after date-alias resolution.

    published_at / updated_at are None when no alias was present or the
    value could not be parsed.
    """

    url: str | None
    published_at: datetime | None
    updated_at: datetime | None
    raw: dict  # Original item, kept for logging


class FeedDocument(TypedDict):
    feed_url: str
    title: str | None
    items: list[Post]


class FetchFailure(TypedDict):
    """
    Non-fatal error while fetching a feed.

    The site is skipped for this run and its checkpoint is left alone.
    """

    feed_url: str
    error_type: str  # Exception class name
    error_message: str
    timestamp: datetime


class NotificationResult(TypedDict):
    target: NotificationTarget
    status: Literal["sent", "failed", "skipped"]
    status_code: int | None
    detail: str


class SiteResult(TypedDict):
    site_id: str
    status: Literal["completed", "skipped", "failed"]
    qualifying_urls: list[str]
    notifications: list[NotificationResult]
    checkpoint_advanced: bool
    error: str | None


class RunSummary(TypedDict):
    run_id: str
    started_at: datetime
    completed_at: datetime
    site_count: int
    completed: int
    skipped: int
    failed: int
    sites: list[SiteResult]


class SiteState(TypedDict, total=False):
    """
    State for one site's pass through the graph.

    START -> load_checkpoint -> fetch_feed -> detect_changes
          -> [index_now, ping_o_matic, websub] -> save_checkpoint -> END

    The three notifier nodes run in parallel and each appends to
    `notifications`; the Annotated reducer concatenates their outputs.
    fetch_feed routes straight to END when the feed failed or was empty.
    """

    # === Input ===
    site: SiteConfig

    # === Checkpoint ===
    last_checked_at: datetime | None
    run_started_at: datetime  # Captured before fetching, becomes the next checkpoint
    checkpoint_error: str | None

    # === Fetch ===
    feed: FeedDocument | None
    fetch_error: FetchFailure | None

    # === Change detection ===
    qualifying_urls: list[str]  # Non-empty means the site has updates

    # === Notification (parallel nodes merge via operator.add) ===
    notifications: Annotated[list[NotificationResult], operator.add]

    # === Output ===
    checkpoint_advanced: bool
