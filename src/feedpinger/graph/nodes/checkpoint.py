"""
Checkpoint Nodes - Read the site's checkpoint before fetching, write it after.

load_checkpoint also stamps run_started_at. It is taken before the fetch so
the next run's window starts where this one started, and posts published
while this run was fetching or notifying are still picked up next time.

save_checkpoint runs after all three notifiers regardless of their outcome;
a permanently failing endpoint must not pin the checkpoint and resubmit the
same posts on every run.
"""

from datetime import datetime, timezone

import structlog

from feedpinger.db.checkpoints import CheckpointStore
from feedpinger.graph.state import SiteState

logger = structlog.get_logger()


def create_load_checkpoint_node(checkpoints: CheckpointStore):
    async def node(state: SiteState) -> dict:
        site = state["site"]

        try:
            last_checked_at = await checkpoints.get_last_checked(site.id)
        except Exception as e:
            logger.exception("Failed to read checkpoint", site_id=site.id)
            return {"checkpoint_error": f"{type(e).__name__}: {e}"}

        logger.info(
            "Loaded checkpoint",
            site_id=site.id,
            last_checked_at=last_checked_at.isoformat() if last_checked_at else None,
        )
        return {
            "last_checked_at": last_checked_at,
            "run_started_at": datetime.now(timezone.utc),
            "checkpoint_error": None,
        }

    return node


def create_save_checkpoint_node(checkpoints: CheckpointStore):
    async def node(state: SiteState) -> dict:
        site = state["site"]
        run_started_at = state["run_started_at"]

        try:
            await checkpoints.set_last_checked(site.id, run_started_at)
        except Exception as e:
            logger.exception("Failed to write checkpoint", site_id=site.id)
            return {"checkpoint_advanced": False, "checkpoint_error": f"{type(e).__name__}: {e}"}

        logger.info(
            "Processing complete, last checked timestamp updated",
            site_id=site.id,
            last_checked_at=run_started_at.isoformat(),
        )
        return {"checkpoint_advanced": True}

    return node
