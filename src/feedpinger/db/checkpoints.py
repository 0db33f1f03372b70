"""
Per-site checkpoints.

A checkpoint is the start time of the last run that fetched a non-empty feed
for a site. It is stored as an ISO-8601 UTC string under
"last_check_" + site id. Each site only ever touches its own key, so
concurrent site tasks never contend.
"""

from datetime import datetime, timezone

import structlog

from feedpinger.db.kv_store import KeyValueStore

logger = structlog.get_logger()

LAST_CHECK_KEY_PREFIX = "last_check_"


def checkpoint_key(site_id: str) -> str:
    return LAST_CHECK_KEY_PREFIX + site_id


class CheckpointStore:
    """Reads and writes last-checked timestamps on top of a KeyValueStore."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    async def get_last_checked(self, site_id: str) -> datetime | None:
        """
        Return the stored checkpoint for a site, or None on its first run.

        An unreadable stored value is treated like a missing one (first run),
        with a warning.
        """
        value = await self.kv.get(checkpoint_key(site_id))
        if not value:
            return None

        try:
            checkpoint = datetime.fromisoformat(value)
        except ValueError:
            logger.warning("Ignoring unreadable checkpoint", site_id=site_id, value=value)
            return None

        if checkpoint.tzinfo is None:
            checkpoint = checkpoint.replace(tzinfo=timezone.utc)
        return checkpoint

    async def set_last_checked(self, site_id: str, timestamp: datetime) -> None:
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        await self.kv.set(checkpoint_key(site_id), timestamp.astimezone(timezone.utc).isoformat())
