"""
Profile routes for KTV Request Hub.
A resident's own request and singing history.
"""

from flask import Blueprint, jsonify, request

from ktv.auth.user_auth import require_login
from ktv.core.catalog import paginate
from ktv.core.ranking import per_user_stats, sung_history, user_history
from ktv.utils.snapshots import catalog_snapshot, request_snapshot

profile_bp = Blueprint('profile', __name__)

HISTORY_PAGE_SIZE = 5


def history_page(history, requests, user):
    page = request.args.get('page', 1, type=int)
    page_items, total_pages = paginate(history, page, HISTORY_PAGE_SIZE)
    songs = {song.id: song for song in catalog_snapshot()}

    entries = []
    for item in page_items:
        song = songs.get(item.song_id)
        entries.append({
            "request": item.to_dict(),
            "song": song.to_dict() if song else None,
            "stats": per_user_stats(item.song_id, user.id, requests).to_dict(),
        })
    return {"history": entries, "page": page, "total_pages": total_pages, "total": len(history)}


@profile_bp.route("")
def profile():
    user = require_login()
    return jsonify({"user": user.to_dict(), "residence": user.residence})


@profile_bp.route("/history")
def history():
    """Every request the user made, newest first"""
    user = require_login()
    requests = request_snapshot()
    return jsonify(history_page(user_history(requests, user.id), requests, user))


@profile_bp.route("/sung")
def sung():
    """Only the requests that were actually sung"""
    user = require_login()
    requests = request_snapshot()
    return jsonify(history_page(sung_history(requests, user.id), requests, user))
