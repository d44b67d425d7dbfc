"""
Ranking routes for KTV Request Hub.
Every leaderboard is recomputed from the current request snapshot on each call.
"""

from flask import Blueprint, jsonify, request

from ktv.core.errors import ValidationFailed
from ktv.core.ranking import (
    DEFAULT_LIMIT,
    LANGUAGES,
    PERIODS,
    rankings_snapshot,
    top_artists,
    top_requesters,
    top_songs,
    top_songs_by_language,
    window_start_for,
)
from ktv.utils.snapshots import catalog_snapshot, request_snapshot, user_snapshot

rankings_bp = Blueprint('rankings', __name__)

MAX_LIMIT = 50


def _limit():
    return min(max(request.args.get('limit', DEFAULT_LIMIT, type=int), 1), MAX_LIMIT)


def _period():
    period = request.args.get('period', 'week')
    if period not in PERIODS:
        raise ValidationFailed(f"period must be one of {', '.join(PERIODS)}")
    return period


def _entries(ranked):
    return [entry.to_dict() for entry in ranked]


def serialize_snapshot(snapshot):
    return {
        "generated_at": snapshot["generated_at"],
        "top_songs": {period: _entries(ranked) for period, ranked in snapshot["top_songs"].items()},
        "top_artists": _entries(snapshot["top_artists"]),
        "by_language": {lang: _entries(ranked) for lang, ranked in snapshot["by_language"].items()},
        "top_requesters": _entries(snapshot["top_requesters"]),
    }


@rankings_bp.route("")
def all_rankings():
    """All leaderboards in one consistent snapshot"""
    snapshot = rankings_snapshot(request_snapshot(), catalog_snapshot(), user_snapshot(), limit=_limit())
    return jsonify(serialize_snapshot(snapshot))


@rankings_bp.route("/songs")
def songs():
    period = _period()
    ranked = top_songs(request_snapshot(), catalog_snapshot(), window_start_for(period), _limit())
    return jsonify({"period": period, "songs": _entries(ranked)})


@rankings_bp.route("/languages/<language>")
def by_language(language):
    if language not in LANGUAGES:
        raise ValidationFailed(f"Unknown language '{language}'")
    ranked = top_songs_by_language(request_snapshot(), catalog_snapshot(), language, _limit())
    return jsonify({"language": language, "songs": _entries(ranked)})


@rankings_bp.route("/artists")
def artists():
    period = request.args.get('period', 'month')
    if period not in PERIODS:
        raise ValidationFailed(f"period must be one of {', '.join(PERIODS)}")
    ranked = top_artists(request_snapshot(), catalog_snapshot(), window_start_for(period), _limit())
    return jsonify({"period": period, "artists": _entries(ranked)})


@rankings_bp.route("/requesters")
def requesters():
    ranked = top_requesters(request_snapshot(), user_snapshot(), _limit())
    return jsonify({"requesters": _entries(ranked)})
