"""
Caching helpers for KTV Request Hub.
Keeps the catalog snapshot in Flask-Caching; it is dropped whenever the songs table changes.
"""

import logging
from datetime import datetime
from flask import current_app

from ktv.core.entities import Song, ensure_utc

logger = logging.getLogger(__name__)

CATALOG_KEY = "catalog_snapshot"


def _song_from_cache(data):
    added_at = data.get("added_at")
    return Song(
        id=data["id"],
        title=data["title"],
        artist=data["artist"],
        language=data.get("language") or "Unknown",
        tags=list(data.get("tags") or []),
        added_at=ensure_utc(datetime.fromisoformat(added_at)) if added_at else None,
        is_deleted=bool(data.get("is_deleted")),
    )


def get_catalog_snapshot(store):
    """Get the whole catalog, from cache when fresh, otherwise from the store"""
    cache = getattr(current_app, "cache", None)
    if cache is not None:
        cached = cache.get(CATALOG_KEY)
        if cached is not None:
            return [_song_from_cache(item) for item in cached]

    songs = store.fetch_all()
    if cache is not None:
        # Cache plain dicts so the Redis backend can pickle them without our classes
        cache.set(CATALOG_KEY, [song.to_dict() for song in songs])
    return songs


def invalidate_catalog_cache(app):
    cache = getattr(app, "cache", None)
    if cache is not None:
        cache.delete(CATALOG_KEY)
        logger.debug("Catalog snapshot cache cleared")


def register_cache_invalidation(app, channel):
    """Subscribe to songs changes so edits are visible on the next read"""
    return channel.subscribe("songs", lambda: invalidate_catalog_cache(app))
