"""
Ranking engine for KTV Request Hub.

All leaderboards are recomputed from the full request snapshot on every call;
nothing here is cached. Window starts are inclusive: a request made exactly at
`window_start` counts. Equal counts keep the order in which their key first
appears in the snapshot (Counter.most_common is insertion-ordered).
"""

import calendar
from collections import Counter
from datetime import timedelta
from typing import NamedTuple

from .entities import RequestStatus, ensure_utc, utcnow

DEFAULT_LIMIT = 10

PERIODS = ("week", "month", "year")

LANGUAGES = ("Mandarin", "Taiwanese", "Hakka", "English", "Cantonese", "Japanese", "Korean")


class RankedSong(NamedTuple):
    song: object
    count: int

    def to_dict(self):
        return {"song": self.song.to_dict(), "count": self.count}


class RankedArtist(NamedTuple):
    artist: str
    count: int

    def to_dict(self):
        return {"artist": self.artist, "count": self.count}


class RankedUser(NamedTuple):
    user: object
    count: int

    def to_dict(self):
        user = self.user
        return {
            "user": {"id": user.id, "name": user.name, "building": user.building},
            "count": self.count,
        }


class SongStats(NamedTuple):
    global_count: int
    my_count: int

    def to_dict(self):
        return {"global_count": self.global_count, "my_count": self.my_count}


def subtract_months(moment, months):
    """Calendar month subtraction; the day is clamped to the target month's length."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start_for(period, now=None):
    """Start of a trailing window ending at `now` (computed at call time)."""
    now = ensure_utc(now) if now else utcnow()
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return subtract_months(now, 1)
    if period == "year":
        return subtract_months(now, 12)
    raise ValueError(f"Unknown ranking period: {period}")


def in_window(moment, start):
    if start is None:
        return True
    return moment is not None and ensure_utc(moment) >= ensure_utc(start)


def _index(records):
    return {record.id: record for record in records}


def top_songs(requests, songs, window_start=None, limit=DEFAULT_LIMIT):
    """Most requested songs since `window_start` (all time when None).

    The list is truncated to `limit` before entries whose song id no longer
    resolves are dropped, so it can come back shorter than `limit`.
    """
    catalog = _index(songs)
    counts = Counter(r.song_id for r in requests if in_window(r.requested_at, window_start))
    return [
        RankedSong(catalog[song_id], count)
        for song_id, count in counts.most_common(limit)
        if song_id in catalog
    ]


def top_songs_by_language(requests, songs, language, limit=DEFAULT_LIMIT):
    """Most requested songs of one language over the entire history."""
    catalog = _index(songs)
    counts = Counter(
        r.song_id for r in requests
        if r.song_id in catalog and catalog[r.song_id].language == language
    )
    return [RankedSong(catalog[song_id], count) for song_id, count in counts.most_common(limit)]


def top_artists(requests, songs, window_start=None, limit=DEFAULT_LIMIT):
    catalog = _index(songs)
    counts = Counter()
    for request in requests:
        song = catalog.get(request.song_id)
        if song and song.artist and in_window(request.requested_at, window_start):
            counts[song.artist] += 1
    return [RankedArtist(artist, count) for artist, count in counts.most_common(limit)]


def top_requesters(requests, users, limit=DEFAULT_LIMIT):
    """All-time leaderboard of residents by number of requests."""
    people = _index(users)
    counts = Counter(r.user_id for r in requests)
    return [
        RankedUser(people[user_id], count)
        for user_id, count in counts.most_common(limit)
        if user_id in people
    ]


def active_users(users, start):
    return sum(1 for u in users if u.last_login and in_window(u.last_login, start))


def weekly_active_users(users, now=None):
    return active_users(users, window_start_for("week", now))


def monthly_active_users(users, now=None):
    return active_users(users, window_start_for("month", now))


def request_volume(requests, start):
    return sum(1 for r in requests if in_window(r.requested_at, start))


def per_user_stats(song_id, user_id, requests):
    """How often a song was requested overall and by one user (any status)."""
    global_count = 0
    my_count = 0
    for request in requests:
        if request.song_id != song_id:
            continue
        global_count += 1
        if user_id is not None and request.user_id == user_id:
            my_count += 1
    return SongStats(global_count, my_count)


def user_history(requests, user_id):
    """Every request a user made, newest first."""
    mine = [r for r in requests if r.user_id == user_id]
    return sorted(mine, key=lambda r: r.requested_at, reverse=True)


def sung_history(requests, user_id):
    return [r for r in user_history(requests, user_id) if r.status == RequestStatus.PLAYED]


def rankings_snapshot(requests, songs, users, now=None, languages=LANGUAGES, limit=DEFAULT_LIMIT):
    """Every leaderboard shown on the rankings page, computed from one snapshot."""
    now = ensure_utc(now) if now else utcnow()
    month_start = window_start_for("month", now)
    return {
        "generated_at": now.isoformat(),
        "top_songs": {
            period: top_songs(requests, songs, window_start_for(period, now), limit)
            for period in PERIODS
        },
        "top_artists": top_artists(requests, songs, month_start, limit),
        "by_language": {
            language: top_songs_by_language(requests, songs, language, limit)
            for language in languages
        },
        "top_requesters": top_requesters(requests, users, limit),
    }


def dashboard_stats(requests, users, now=None):
    now = ensure_utc(now) if now else utcnow()
    week_start = window_start_for("week", now)
    month_start = window_start_for("month", now)
    return {
        "weekly_active_users": active_users(users, week_start),
        "monthly_active_users": active_users(users, month_start),
        "weekly_requests": request_volume(requests, week_start),
        "monthly_requests": request_volume(requests, month_start),
    }
