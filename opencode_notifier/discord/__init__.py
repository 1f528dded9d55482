"""
Discord delivery boundary.

Handles:
- REST calls with a bot token (client)
- Session -> thread routes persisted across restarts (routes)
- Target resolution, thread affinity and progress edits (adapter)
"""

from .client import DiscordClient, message_payload
from .routes import ThreadRouteStore, thread_identity_keys
from .adapter import DeliveryAdapter, DryRunDelivery

__all__ = [
    "DiscordClient",
    "message_payload",
    "ThreadRouteStore",
    "thread_identity_keys",
    "DeliveryAdapter",
    "DryRunDelivery",
]
