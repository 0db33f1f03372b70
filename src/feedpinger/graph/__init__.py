"""
LangGraph pipeline for the feed notifier.

This package contains:
- state.py: State schemas (SiteState, Post, SiteResult, RunSummary)
- nodes/: Individual graph nodes
- orchestrator.py: Graph wiring, per-site processing and the run fan-out

Usage:
    from feedpinger.graph import run_notifier

    summary = await run_notifier()
"""

from feedpinger.graph.orchestrator import (
    RunContext,
    create_graph,
    process_site,
    run_all,
    run_notifier,
)
from feedpinger.graph.state import (
    FeedDocument,
    FetchFailure,
    NotificationResult,
    Post,
    RunSummary,
    SiteResult,
    SiteState,
)

__all__ = [
    # Orchestration
    "RunContext",
    "create_graph",
    "process_site",
    "run_all",
    "run_notifier",
    # State types
    "SiteState",
    "Post",
    "FeedDocument",
    "FetchFailure",
    "NotificationResult",
    "SiteResult",
    "RunSummary",
]
