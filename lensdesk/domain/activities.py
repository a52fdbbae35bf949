"""
Activity feed helpers.

The upstream serves one shared activity feed (GET /api/activities). Detail
views show the slice of it that belongs to their entity, identified through
the activity's metadata.
"""

import logging
from typing import Iterable, Optional

from ..cache import QueryCache
from ..upstream import UpstreamClient

logger = logging.getLogger(__name__)

ACTIVITIES_QUERY_KEY = ("/api/activities",)


async def fetch_activities(upstream: UpstreamClient, cache: QueryCache, user_id: Optional[str]) -> list[dict]:
    """The shared activity feed, through the query cache"""

    async def load():
        return await upstream.get("/api/activities")

    return await cache.fetch(user_id, ACTIVITIES_QUERY_KEY, load) or []


def for_entity(
    activities: Iterable[dict], entity_type: str, entity_id: str, id_field: Optional[str] = None
) -> list[dict]:
    """
    Activities about one entity.

    Matches metadata.entityType/metadata.entityId, or metadata[id_field] for
    feeds that tag the entity with a dedicated field (e.g. purchaseOrderId).
    """
    matches = []
    for activity in activities:
        metadata = activity.get("metadata") or {}
        if not isinstance(metadata, dict):
            continue
        if metadata.get("entityType") == entity_type and metadata.get("entityId") == entity_id:
            matches.append(activity)
        elif id_field and metadata.get(id_field) == entity_id:
            matches.append(activity)
    return matches
