"""
LangGraph nodes for the per-site notifier graph.

Each node is created by a factory that binds the run's shared collaborators
(HTTP client, checkpoint store, secret provider). The resulting async
function:
- Takes SiteState as input
- Returns a dict with partial state updates
- Handles errors gracefully (logs but doesn't crash)

Nodes:
- checkpoint: Load the site's checkpoint / save it after notifying
- feed_fetcher: Fetch and normalize the JSON feed
- change_detector: Select new or updated post URLs
- index_now, ping_o_matic, websub: The three independent notifiers
"""

from feedpinger.graph.nodes.change_detector import create_change_detector_node
from feedpinger.graph.nodes.checkpoint import (
    create_load_checkpoint_node,
    create_save_checkpoint_node,
)
from feedpinger.graph.nodes.feed_fetcher import create_feed_fetcher_node
from feedpinger.graph.nodes.index_now import create_index_now_node
from feedpinger.graph.nodes.ping_o_matic import create_ping_o_matic_node
from feedpinger.graph.nodes.websub import create_websub_node

__all__ = [
    "create_load_checkpoint_node",
    "create_feed_fetcher_node",
    "create_change_detector_node",
    "create_index_now_node",
    "create_ping_o_matic_node",
    "create_websub_node",
    "create_save_checkpoint_node",
]
