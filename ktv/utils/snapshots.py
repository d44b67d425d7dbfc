"""
Snapshot helpers shared by the HTTP routes and Socket.IO handlers.
Every view is derived from full table snapshots read here.
"""

from flask import current_app

from ktv.core.lifecycle import LocalRequestState
from .cache import get_catalog_snapshot


def catalog_snapshot():
    return get_catalog_snapshot(current_app.catalog_store)


def request_snapshot():
    return current_app.request_store.fetch_all()


def user_snapshot():
    return current_app.user_store.fetch_all()


def request_state():
    """A fresh local request state seeded from the store."""
    return LocalRequestState(request_snapshot())


def find_song(song_id):
    for song in catalog_snapshot():
        if song.id == song_id:
            return song
    return None
