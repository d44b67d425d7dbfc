"""
Queue routes for KTV Request Hub.
Handles song requests and the live singing queue.
"""

import logging
from flask import Blueprint, current_app, jsonify, request

from ktv.auth.user_auth import current_user, require_login
from ktv.core.errors import NotFound, ValidationFailed
from ktv.core.queue_engine import queue_position, queue_view
from ktv.utils.snapshots import catalog_snapshot, find_song, request_state, user_snapshot

logger = logging.getLogger(__name__)

queue_bp = Blueprint('queue', __name__)


@queue_bp.route("")
def get_queue():
    """The live queue, numbered from 1"""
    state = request_state()
    return jsonify({"queue": queue_view(state.requests, catalog_snapshot(), user_snapshot())})


@queue_bp.route("/requests", methods=["POST"])
def request_song():
    """Request a song for the current user"""
    data = request.get_json(silent=True) or {}
    song_id = str(data.get('song_id') or '').strip()
    if not song_id:
        raise ValidationFailed("song_id is required")

    user = current_user()
    song = find_song(song_id)
    if song is None:
        raise NotFound("Song", song_id)

    state = request_state()
    new_request = current_app.lifecycle.request_song(song, user, state)
    return jsonify({
        "request": new_request.to_dict(),
        "position": queue_position(state.requests, new_request.id),
    }), 201


@queue_bp.route("/<request_id>/played", methods=["POST"])
def mark_played(request_id):
    user = require_login()
    changed = current_app.lifecycle.mark_played(request_id, user, request_state())
    return jsonify({"id": request_id, "status": "played", "changed": changed})


@queue_bp.route("/<request_id>/cancel", methods=["POST"])
def cancel(request_id):
    """Cancel a request. Residents may cancel their own; admins any."""
    user = require_login()
    changed = current_app.lifecycle.cancel_own_request(request_id, user, request_state())
    return jsonify({"id": request_id, "status": "cancelled", "changed": changed})
