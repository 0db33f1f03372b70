"""
Site configuration source.

SITE_CONFIG (environment) wins when set; otherwise the admin-editable
record stored under "site_configs" in the key-value store is used.
"""

import json

import structlog

from feedpinger.config import (
    ConfigError,
    Settings,
    SiteConfig,
    dump_site_configs,
    parse_site_configs,
)
from feedpinger.db.kv_store import KeyValueStore

logger = structlog.get_logger()

SITE_CONFIG_KEY = "site_configs"


async def get_stored_site_configs(kv: KeyValueStore) -> list[SiteConfig]:
    """Read the stored site-config record. Missing record means no sites."""
    raw = await kv.get(SITE_CONFIG_KEY)
    if not raw:
        return []
    return parse_site_configs(raw)


async def set_stored_site_configs(kv: KeyValueStore, configs: list[SiteConfig]) -> None:
    await kv.set(SITE_CONFIG_KEY, json.dumps(dump_site_configs(configs)))
    logger.info("Site configurations updated", site_count=len(configs))


async def load_site_configs(settings: Settings, kv: KeyValueStore) -> list[SiteConfig]:
    """
    Load the site list for a run.

    Raises:
        ConfigError: If the configured JSON is malformed
    """
    if settings.site_config:
        sites = parse_site_configs(settings.site_config)
        source = "environment"
    else:
        sites = await get_stored_site_configs(kv)
        source = "store"

    ids = [site.id for site in sites]
    if len(ids) != len(set(ids)):
        raise ConfigError("Site ids must be unique; they are checkpoint keys")

    logger.info("Loaded site configurations", source=source, site_count=len(sites))
    return sites
