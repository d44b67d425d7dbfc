"""
Catalog store: the song book.
"""

import logging
from typing import NamedTuple

from ktv.core.entities import Song, ensure_utc, utcnow
from ktv.core.errors import BackendUnavailable, NotFound
from ktv.models import SongModel
from .base import BaseStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


class BulkResult(NamedTuple):
    succeeded: int
    failed: int

    def to_dict(self):
        return {"succeeded": self.succeeded, "failed": self.failed}


def song_from_row(row):
    return Song(
        id=row.id,
        title=row.title,
        artist=row.artist,
        language=row.language or "Unknown",
        tags=list(row.tags or []),
        added_at=ensure_utc(row.added_at),
        is_deleted=bool(row.is_deleted),
    )


def _apply(row, song):
    row.title = song.title
    row.artist = song.artist
    row.language = song.language
    row.tags = list(song.tags)
    row.added_at = song.added_at or utcnow()
    row.is_deleted = song.is_deleted


class CatalogStore(BaseStore):
    table = "songs"

    def fetch_all(self):
        with self.session("fetching songs") as db:
            return [song_from_row(row) for row in db.query(SongModel).order_by(SongModel.id).all()]

    def get(self, song_id):
        with self.session(f"fetching song {song_id}") as db:
            row = db.get(SongModel, song_id)
            return song_from_row(row) if row else None

    def _upsert_rows(self, db, songs):
        # Sessions don't autoflush, so a repeated id in one batch must collapse here (last row wins)
        latest = {song.id: song for song in songs}
        for song in latest.values():
            row = db.get(SongModel, song.id)
            if row is None:
                row = SongModel(id=song.id)
                db.add(row)
            # Upsert overwrites on id collision
            _apply(row, song)

    def upsert(self, song):
        with self.session(f"saving song {song.id}") as db:
            self._upsert_rows(db, [song])
        self.changed()

    def upsert_bulk(self, songs, batch_size=DEFAULT_BATCH_SIZE):
        """Upsert in batches. A failed batch is counted and the import carries on."""
        succeeded = 0
        failed = 0
        for start in range(0, len(songs), batch_size):
            batch = songs[start:start + batch_size]
            try:
                with self.session(f"saving songs batch at {start}") as db:
                    self._upsert_rows(db, batch)
                succeeded += len(batch)
            except BackendUnavailable:
                failed += len(batch)

        if succeeded:
            self.changed()
        logger.info(f"Bulk song import finished: {succeeded} saved, {failed} failed")
        return BulkResult(succeeded, failed)

    def _set_deleted(self, song_id, is_deleted):
        action = "soft deleting" if is_deleted else "restoring"
        with self.session(f"{action} song {song_id}") as db:
            row = db.get(SongModel, song_id)
            if row is None:
                raise NotFound("Song", song_id)
            row.is_deleted = is_deleted
        self.changed()

    def soft_delete(self, song_id):
        self._set_deleted(song_id, True)

    def restore(self, song_id):
        self._set_deleted(song_id, False)
