"""
Catalog browsing, song form validation and CSV import/export.
"""

import csv
import io
import json
import math
from datetime import datetime

from .entities import Song, ensure_utc, utcnow
from .errors import ValidationFailed

SORT_MODES = ("length", "artist", "id")

# A title-length filter of 11 means "11 characters or more"
LONG_TITLE = 11

UNKNOWN_ARTIST = "未知"


def eligible_songs(songs):
    """Songs that can be requested: everything not soft-deleted."""
    return [s for s in songs if not s.is_deleted]


def _matches(song, query):
    q = query.lower()
    return q in song.title.lower() or q in song.artist.lower() or q in song.id


def search_songs(songs, query="", language=None, title_length=0, sort="length",
                 favorites=None, include_deleted=False):
    result = list(songs) if include_deleted else eligible_songs(songs)

    if favorites is not None:
        result = [s for s in result if s.id in favorites]
    if query:
        result = [s for s in result if _matches(s, query.strip())]
    if language and language != "All":
        result = [s for s in result if s.language == language]
    if title_length:
        if title_length >= LONG_TITLE:
            result = [s for s in result if len(s.title) >= LONG_TITLE]
        else:
            result = [s for s in result if len(s.title) == title_length]

    if sort == "artist":
        result.sort(key=lambda s: (s.artist, s.id))
    elif sort == "id":
        result.sort(key=lambda s: s.id)
    else:
        result.sort(key=lambda s: (len(s.title), s.id))
    return result


def paginate(items, page=1, page_size=10):
    """Return (page_items, total_pages). Pages start at 1."""
    total_pages = math.ceil(len(items) / page_size) if items else 0
    page = max(page, 1)
    start = (page - 1) * page_size
    return items[start:start + page_size], total_pages


def song_from_form(data, existing=None):
    """Validate an admin song form. id, title and artist are required."""
    song_id = str(data.get("id") or "").strip()
    title = (data.get("title") or "").strip()
    artist = (data.get("artist") or "").strip()
    if not song_id or not title or not artist:
        raise ValidationFailed("Song number, title and artist are required")

    return Song(
        id=song_id,
        title=title,
        artist=artist,
        language=(data.get("language") or "Mandarin").strip(),
        tags=list(data.get("tags") or []),
        added_at=existing.added_at if existing and existing.added_at else utcnow(),
        is_deleted=bool(existing.is_deleted) if existing else False,
    )


def _parse_timestamp(value, default):
    if not value:
        return default
    try:
        return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        return default


def parse_song_csv(text, now=None):
    """Parse a catalog CSV export.

    The first row is a header. Columns: id, title, artist, language, tags,
    added_at. Rows missing an id or a title are skipped.
    """
    now = now or utcnow()
    songs = []
    rows = csv.reader(io.StringIO(text.lstrip("\ufeff")))
    next(rows, None)
    for values in rows:
        values = [v.strip() for v in values]
        if len(values) < 2:
            continue
        song_id, title = values[0], values[1]
        if not song_id or not title:
            continue
        songs.append(Song(
            id=song_id,
            title=title,
            artist=(values[2] if len(values) > 2 else "") or UNKNOWN_ARTIST,
            language=(values[3] if len(values) > 3 else "") or "Unknown",
            tags=[],
            added_at=_parse_timestamp(values[5] if len(values) > 5 else "", now),
            is_deleted=False,
        ))
    return songs


def _cell(value):
    if value is None:
        return ""
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def export_csv(rows):
    """Serialise a list of dicts as CSV with a UTF-8 BOM so spreadsheet apps show CJK text."""
    if not rows:
        return ""
    keys = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(keys)
    for row in rows:
        writer.writerow([_cell(row.get(key)) for key in keys])
    return "\ufeff" + buffer.getvalue()
