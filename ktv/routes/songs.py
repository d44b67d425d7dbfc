"""
Song book routes for KTV Request Hub.
Handles catalog search, song details and favorites.
"""

from flask import Blueprint, current_app, jsonify, request

from ktv.auth.user_auth import current_user, require_login
from ktv.core.catalog import paginate, search_songs
from ktv.core.errors import NotFound
from ktv.core.ranking import per_user_stats
from ktv.utils.snapshots import catalog_snapshot, find_song, request_snapshot

songs_bp = Blueprint('songs', __name__)


def search_params():
    return {
        "query": request.args.get('q', '').strip(),
        "language": request.args.get('language') or None,
        "title_length": request.args.get('length', 0, type=int),
        "sort": request.args.get('sort', 'length'),
    }


def page_response(items, page, page_size):
    page_items, total_pages = paginate(items, page, page_size)
    return {
        "songs": [song.to_dict() for song in page_items],
        "page": page,
        "total_pages": total_pages,
        "total": len(items),
    }


@songs_bp.route("")
def search():
    """Search the requestable catalog"""
    songs = search_songs(catalog_snapshot(), **search_params())
    page = request.args.get('page', 1, type=int)
    return jsonify(page_response(songs, page, current_app.config["KTV_PAGE_SIZE"]))


@songs_bp.route("/<song_id>")
def song_detail(song_id):
    """A song with its request counts, overall and for the current user"""
    song = find_song(song_id)
    if song is None:
        raise NotFound("Song", song_id)

    user = current_user()
    stats = per_user_stats(song_id, user.id if user else None, request_snapshot())
    return jsonify({"song": song.to_dict(), "stats": stats.to_dict()})


@songs_bp.route("/favorites")
def favorites():
    user = require_login()
    songs = search_songs(catalog_snapshot(), favorites=user.favorites, **search_params())
    page = request.args.get('page', 1, type=int)
    return jsonify(page_response(songs, page, current_app.config["KTV_PAGE_SIZE"]))


@songs_bp.route("/<song_id>/favorite", methods=["POST"])
def toggle_favorite(song_id):
    """Add the song to favorites, or remove it if it is already there"""
    user = require_login()
    if find_song(song_id) is None:
        raise NotFound("Song", song_id)

    favorites = current_app.lifecycle.toggle_favorite(user.id, song_id)
    return jsonify({"song_id": song_id, "favorite": song_id in favorites, "favorites": sorted(favorites)})
