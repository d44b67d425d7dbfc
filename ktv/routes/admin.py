"""
Admin routes for KTV Request Hub.
Handles the dashboard, song book maintenance, resident accounts, queue management and feedback.
Every endpoint requires the ADMIN role.
"""

import logging
from datetime import datetime
from flask import Blueprint, Response, current_app, jsonify, request

from ktv.auth.user_auth import (
    check_password_strength,
    is_valid_email,
    require_admin,
    residence_from_form,
)
from ktv.core.catalog import export_csv, paginate, parse_song_csv, search_songs, song_from_form
from ktv.core.entities import Role, User
from ktv.core.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from ktv.core.queue_engine import queue_view
from ktv.core.ranking import dashboard_stats
from ktv.stores.user_store import new_user_id
from ktv.utils.snapshots import catalog_snapshot, request_snapshot, request_state, user_snapshot

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

EXPORT_TABLES = ("songs", "users", "feedbacks")


@admin_bp.before_request
def check_admin():
    require_admin()


def _json():
    return request.get_json(silent=True) or {}


def _flag(data, key, default):
    """A JSON boolean field; strings such as "false" are rejected rather than coerced"""
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValidationFailed(f"'{key}' must be true or false")
    return value


@admin_bp.route("/stats")
def stats():
    """Dashboard numbers plus the live queue"""
    requests = request_snapshot()
    users = user_snapshot()
    return jsonify({
        "stats": dashboard_stats(requests, users),
        "queue": queue_view(requests, catalog_snapshot(), users),
    })


# Song book

@admin_bp.route("/songs")
def list_songs():
    """Full catalog including soft-deleted songs"""
    songs = search_songs(
        catalog_snapshot(),
        query=request.args.get('q', '').strip(),
        language=request.args.get('language') or None,
        sort=request.args.get('sort', 'id'),
        include_deleted=True,
    )
    page = request.args.get('page', 1, type=int)
    page_items, total_pages = paginate(songs, page, current_app.config["KTV_PAGE_SIZE"])
    return jsonify({
        "songs": [song.to_dict() for song in page_items],
        "page": page,
        "total_pages": total_pages,
        "total": len(songs),
    })


@admin_bp.route("/songs", methods=["POST"])
def save_song():
    """Create a song. An existing number is only replaced with overwrite=true."""
    data = _json()
    store = current_app.catalog_store
    existing = store.get(str(data.get('id') or '').strip())
    if existing is not None and not data.get('overwrite'):
        raise InvalidState(f"Song number {existing.id} already exists")

    song = song_from_form(data, existing)
    store.upsert(song)
    logger.info(f"Saved song {song.id} ({song.title})")
    return jsonify({"song": song.to_dict(), "created": existing is None}), 201 if existing is None else 200


@admin_bp.route("/songs/<song_id>", methods=["PUT"])
def update_song(song_id):
    store = current_app.catalog_store
    existing = store.get(song_id)
    if existing is None:
        raise NotFound("Song", song_id)

    song = song_from_form({**_json(), "id": song_id}, existing)
    store.upsert(song)
    return jsonify({"song": song.to_dict()})


@admin_bp.route("/songs/<song_id>/delete", methods=["POST"])
def delete_song(song_id):
    """Soft delete: hidden from new requests, kept for history and rankings"""
    current_app.catalog_store.soft_delete(song_id)
    return jsonify({"id": song_id, "is_deleted": True})


@admin_bp.route("/songs/<song_id>/restore", methods=["POST"])
def restore_song(song_id):
    current_app.catalog_store.restore(song_id)
    return jsonify({"id": song_id, "is_deleted": False})


@admin_bp.route("/songs/import", methods=["POST"])
def import_songs():
    """Bulk import from a CSV upload (form field 'file') or a raw CSV body"""
    upload = request.files.get('file')
    if upload is not None:
        text = upload.read().decode('utf-8-sig')
    else:
        text = request.get_data(as_text=True)
    if not text.strip():
        raise ValidationFailed("CSV content is required")

    songs = parse_song_csv(text)
    if not songs:
        raise ValidationFailed("No valid rows found in the CSV")

    result = current_app.catalog_store.upsert_bulk(songs, current_app.config["KTV_IMPORT_BATCH_SIZE"])
    return jsonify({"parsed": len(songs), **result.to_dict()})


@admin_bp.route("/export/<table>")
def export(table):
    """Download a table as CSV"""
    if table not in EXPORT_TABLES:
        raise NotFound("Export", table)

    if table == "songs":
        rows = [song.to_dict() for song in catalog_snapshot()]
    elif table == "users":
        rows = [user.to_dict() for user in user_snapshot()]
    else:
        rows = [feedback.to_dict() for feedback in current_app.feedback_store.fetch_all()]

    filename = f"{table}_{datetime.now().strftime('%Y%m%d')}.csv"
    return Response(
        export_csv(rows),
        mimetype="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# Residents

def _user_from_form(data, existing=None):
    email = (data.get('email') or '').strip().lower()
    name = (data.get('name') or '').strip()
    if not email or not name:
        raise ValidationFailed("Email and name are required")
    if not is_valid_email(email):
        raise ValidationFailed("Please enter a valid email address")
    building, floor, door = residence_from_form(data)

    role = data.get('role', existing.role.value if existing else Role.USER.value)
    try:
        role = Role(role)
    except ValueError:
        raise ValidationFailed(f"Unknown role '{role}'")

    return User(
        id=existing.id if existing else new_user_id(),
        email=email,
        name=name,
        building=building,
        floor=floor,
        door=door,
        role=role,
        is_suspended=existing.is_suspended if existing else False,
        favorites=set(existing.favorites) if existing else set(),
        login_count=existing.login_count if existing else 0,
        last_login=existing.last_login if existing else None,
    )


@admin_bp.route("/users")
def list_users():
    return jsonify({"users": [user.to_dict() for user in user_snapshot()]})


@admin_bp.route("/users", methods=["POST"])
def create_user():
    data = _json()
    password = data.get('password') or ''
    check_password_strength(password)
    user = current_app.user_store.create(_user_from_form(data), password)
    return jsonify({"user": user.to_dict()}), 201


@admin_bp.route("/users/<user_id>", methods=["PUT"])
def update_user(user_id):
    """Update an account; the password is only re-hashed when a new one is sent"""
    store = current_app.user_store
    existing = store.get(user_id)
    if existing is None:
        raise NotFound("User", user_id)

    data = _json()
    password = data.get('password') or None
    if password:
        check_password_strength(password)
    user = store.save(_user_from_form(data, existing), password)
    return jsonify({"user": user.to_dict()})


@admin_bp.route("/users/<user_id>/suspend", methods=["POST"])
def toggle_suspension(user_id):
    """Suspend or unsuspend. Without a 'suspended' flag the current value is flipped."""
    store = current_app.user_store
    user = store.get(user_id)
    if user is None:
        raise NotFound("User", user_id)

    suspended = _flag(_json(), 'suspended', not user.is_suspended)
    if suspended and user.is_admin:
        raise Forbidden("Administrators cannot be suspended")

    updated = store.set_suspended(user_id, suspended)
    logger.info(f"User {user_id} suspended={updated.is_suspended}")
    return jsonify({"user": updated.to_dict()})


@admin_bp.route("/users/<user_id>", methods=["DELETE"])
def delete_user(user_id):
    admin = require_admin()
    if admin.id == user_id:
        raise InvalidState("You cannot delete your own account")
    current_app.user_store.delete(user_id)
    return jsonify({"id": user_id, "deleted": True})


@admin_bp.route("/users/dedupe", methods=["POST"])
def dedupe_users():
    removed = current_app.user_store.fix_duplicate_users()
    return jsonify({"removed": removed, "count": len(removed)})


# Queue management

@admin_bp.route("/queue")
def admin_queue():
    return jsonify({"queue": queue_view(request_snapshot(), catalog_snapshot(), user_snapshot())})


@admin_bp.route("/queue/<request_id>/played", methods=["POST"])
def admin_mark_played(request_id):
    admin = require_admin()
    changed = current_app.lifecycle.mark_played(request_id, admin, request_state())
    return jsonify({"id": request_id, "status": "played", "changed": changed})


@admin_bp.route("/queue/<request_id>/cancel", methods=["POST"])
def admin_cancel(request_id):
    admin = require_admin()
    changed = current_app.lifecycle.cancel(request_id, admin, request_state())
    return jsonify({"id": request_id, "status": "cancelled", "changed": changed})


# Feedback

@admin_bp.route("/feedback")
def list_feedback():
    return jsonify({"feedback": [item.to_dict() for item in current_app.feedback_store.fetch_all()]})


@admin_bp.route("/feedback/<int:feedback_id>/read", methods=["POST"])
def read_feedback(feedback_id):
    is_read = _flag(_json(), 'is_read', True)
    current_app.feedback_store.mark_read(feedback_id, is_read)
    return jsonify({"id": feedback_id, "is_read": is_read})


@admin_bp.route("/feedback/<int:feedback_id>", methods=["DELETE"])
def delete_feedback(feedback_id):
    current_app.feedback_store.delete(feedback_id)
    return jsonify({"id": feedback_id, "deleted": True})
