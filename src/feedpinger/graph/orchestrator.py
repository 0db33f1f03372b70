"""
LangGraph Orchestrator - Wires the per-site graph and fans it out over sites.

Per-site flow (Feed Processor):
    START
      ↓
    load_checkpoint ──→ END (store unreadable)
      ↓
    fetch_feed ──→ END (fetch failed or feed empty: checkpoint untouched)
      ↓
    detect_changes
      ↓
    index_now │ ping_o_matic │ websub   (parallel, each isolated)
      ↓
    save_checkpoint
      ↓
    END

Run Coordinator:
    run_all() invokes the compiled graph once per site with asyncio.gather().
    Every site runs to completion independently; a site that blows up is
    recorded as failed and never cancels the others.

Usage:
    from feedpinger.graph.orchestrator import run_notifier

    summary = await run_notifier()

    # Or with explicit dependencies (tests, embedding)
    context = RunContext(client=client, checkpoints=checkpoints, secrets=secrets, settings=settings)
    summary = await run_all(sites, context)
"""

import asyncio
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx
import structlog
from langgraph.graph import END, START, StateGraph

from feedpinger.config import Settings, SiteConfig, get_settings
from feedpinger.db.checkpoints import CheckpointStore
from feedpinger.db.kv_store import get_kv_store
from feedpinger.db.sites import load_site_configs
from feedpinger.graph.nodes import (
    create_change_detector_node,
    create_feed_fetcher_node,
    create_index_now_node,
    create_load_checkpoint_node,
    create_ping_o_matic_node,
    create_save_checkpoint_node,
    create_websub_node,
)
from feedpinger.graph.state import RunSummary, SiteResult, SiteState
from feedpinger.secret_provider import EnvSecretProvider, SecretProvider

logger = structlog.get_logger()

NOTIFIER_NODES = ("index_now", "ping_o_matic", "websub")


@dataclass
class RunContext:
    """Long-lived collaborators shared by every site in a run."""

    client: httpx.AsyncClient
    checkpoints: CheckpointStore
    secrets: SecretProvider
    settings: Settings


def route_after_load(state: SiteState) -> str:
    if state.get("checkpoint_error"):
        return END
    return "fetch_feed"


def route_after_fetch(state: SiteState) -> str:
    """Stop early when there is nothing to look at; the checkpoint stays put."""
    feed = state.get("feed")
    if state.get("fetch_error") or not feed or not feed["items"]:
        logger.info("Could not fetch feed or feed is empty", site_id=state["site"].id)
        return END
    return "detect_changes"


def create_graph(context: RunContext):
    """
    Build and compile the per-site graph.

    Nodes are created by factories so they close over the run's shared
    client, checkpoint store and secret provider.
    """
    settings = context.settings
    builder = StateGraph(SiteState)

    builder.add_node("load_checkpoint", create_load_checkpoint_node(context.checkpoints))
    builder.add_node("fetch_feed", create_feed_fetcher_node(context.client))
    builder.add_node(
        "detect_changes",
        create_change_detector_node(timedelta(hours=settings.first_run_window_hours)),
    )
    builder.add_node(
        "index_now",
        create_index_now_node(
            context.client, context.secrets, endpoint=settings.index_now_endpoint
        ),
    )
    builder.add_node(
        "ping_o_matic",
        create_ping_o_matic_node(context.client, endpoint=settings.ping_o_matic_endpoint),
    )
    builder.add_node("websub", create_websub_node(context.client))
    builder.add_node("save_checkpoint", create_save_checkpoint_node(context.checkpoints))

    builder.add_edge(START, "load_checkpoint")
    builder.add_conditional_edges(
        "load_checkpoint", route_after_load, {"fetch_feed": "fetch_feed", END: END}
    )
    builder.add_conditional_edges(
        "fetch_feed", route_after_fetch, {"detect_changes": "detect_changes", END: END}
    )

    # Fan out to the notifiers, then wait for all three before saving
    for name in NOTIFIER_NODES:
        builder.add_edge("detect_changes", name)
    builder.add_edge(list(NOTIFIER_NODES), "save_checkpoint")
    builder.add_edge("save_checkpoint", END)

    return builder.compile()


def build_site_result(site: SiteConfig, final_state: SiteState) -> SiteResult:
    """Summarize a finished graph run for one site."""
    fetch_error = final_state.get("fetch_error")
    checkpoint_error = final_state.get("checkpoint_error")
    advanced = final_state.get("checkpoint_advanced", False)

    if "run_started_at" not in final_state:
        status, error = "failed", checkpoint_error
    elif fetch_error is not None:
        status, error = "skipped", fetch_error["error_message"]
    elif "qualifying_urls" not in final_state:
        status, error = "skipped", "Feed is empty"
    elif not advanced:
        status, error = "failed", checkpoint_error
    else:
        status, error = "completed", None

    return SiteResult(
        site_id=site.id,
        status=status,
        qualifying_urls=final_state.get("qualifying_urls", []),
        notifications=final_state.get("notifications", []),
        checkpoint_advanced=advanced,
        error=error,
    )


def _failed_result(site_id: str, error: BaseException) -> SiteResult:
    return SiteResult(
        site_id=site_id,
        status="failed",
        qualifying_urls=[],
        notifications=[],
        checkpoint_advanced=False,
        error=f"{type(error).__name__}: {error}",
    )


async def process_site(site: SiteConfig, context: RunContext, graph=None) -> SiteResult:
    """
    Run one site through the graph. Never raises.

    Args:
        site: Site to check
        context: Shared run collaborators
        graph: Compiled graph to reuse (built from context if None)
    """
    log = logger.bind(site_id=site.id, feed_url=site.feed_url)
    log.info("Processing feed")

    if graph is None:
        graph = create_graph(context)

    try:
        final_state = await graph.ainvoke({"site": site, "notifications": []})
    except Exception as e:
        log.exception("Unexpected error processing site")
        return _failed_result(site.id, e)

    result = build_site_result(site, final_state)
    log.info(
        "Site finished",
        status=result["status"],
        url_count=len(result["qualifying_urls"]),
        checkpoint_advanced=result["checkpoint_advanced"],
    )
    return result


def generate_run_id() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"run_{timestamp}_{uuid.uuid4().hex[:8]}"


async def run_all(
    sites: list[SiteConfig],
    context: RunContext,
    run_id: str | None = None,
) -> RunSummary:
    """
    Process every site concurrently and wait for all of them.

    Returns:
        RunSummary with one SiteResult per site, in configuration order
    """
    run_id = run_id or generate_run_id()
    started_at = datetime.now(timezone.utc)

    logger.info("Starting run", run_id=run_id, site_count=len(sites))

    graph = create_graph(context)
    outcomes = await asyncio.gather(
        *(process_site(site, context, graph=graph) for site in sites),
        return_exceptions=True,
    )

    results: list[SiteResult] = []
    for site, outcome in zip(sites, outcomes):
        if isinstance(outcome, BaseException):
            logger.error(
                "Site task raised",
                site_id=site.id,
                error=str(outcome),
                error_type=type(outcome).__name__,
            )
            results.append(_failed_result(site.id, outcome))
        else:
            results.append(outcome)

    summary = RunSummary(
        run_id=run_id,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
        site_count=len(sites),
        completed=sum(1 for r in results if r["status"] == "completed"),
        skipped=sum(1 for r in results if r["status"] == "skipped"),
        failed=sum(1 for r in results if r["status"] == "failed"),
        sites=results,
    )

    logger.info(
        "All site feeds processed",
        run_id=run_id,
        completed=summary["completed"],
        skipped=summary["skipped"],
        failed=summary["failed"],
    )
    return summary


async def run_notifier(
    settings: Settings | None = None,
    secrets: SecretProvider | None = None,
    run_id: str | None = None,
) -> RunSummary:
    """
    High-level entry point: load configuration and run every site once.

    Opens the shared HTTP client for the duration of the run. The database
    pool (postgres backend) stays open; callers close it at shutdown.
    """
    settings = settings or get_settings()
    kv = await get_kv_store(settings)

    sites = await load_site_configs(settings, kv)
    if not sites:
        logger.warning("No site configurations found, nothing to process")

    async with httpx.AsyncClient(
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
        timeout=settings.http_timeout_seconds,
    ) as client:
        context = RunContext(
            client=client,
            checkpoints=CheckpointStore(kv),
            secrets=secrets or EnvSecretProvider(),
            settings=settings,
        )
        return await run_all(sites, context, run_id=run_id)
