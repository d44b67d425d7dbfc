"""
Request store: the canonical list of song requests.
"""

import logging

from ktv.core.entities import RequestStatus, SongRequest, ensure_utc
from ktv.core.errors import InvalidState, NotFound
from ktv.models import SongRequestModel
from .base import BaseStore

logger = logging.getLogger(__name__)


def request_from_row(row):
    return SongRequest(
        id=row.id,
        song_id=row.song_id,
        user_id=row.user_id,
        requested_at=ensure_utc(row.requested_at),
        status=RequestStatus(row.status),
        key_shift=row.key_shift,
    )


class RequestStore(BaseStore):
    table = "requests"

    def fetch_all(self):
        # Insertion order, so the queue's stable sort keeps ties in submission order
        with self.session("fetching requests") as db:
            rows = db.query(SongRequestModel).order_by(SongRequestModel.seq).all()
            return [request_from_row(row) for row in rows]

    def insert(self, song_request):
        with self.session(f"adding request {song_request.id}") as db:
            db.add(SongRequestModel(
                id=song_request.id,
                song_id=song_request.song_id,
                user_id=song_request.user_id,
                requested_at=song_request.requested_at,
                status=song_request.status.value,
                key_shift=song_request.key_shift,
            ))
        self.changed()

    def update_status(self, request_id, status):
        """Move a queued request to a terminal status.

        Only rows still 'queued' are updated. When nothing matched, the row
        is read back: already in `status` is a no-op (returns False), missing
        is NotFound, any other status is InvalidState.
        """
        status = RequestStatus(status)
        with self.session(f"updating request {request_id}") as db:
            updated = (
                db.query(SongRequestModel)
                .filter(
                    SongRequestModel.id == request_id,
                    SongRequestModel.status == RequestStatus.QUEUED.value,
                )
                .update({SongRequestModel.status: status.value}, synchronize_session=False)
            )
            if not updated:
                row = db.query(SongRequestModel).filter_by(id=request_id).first()
                if row is None:
                    raise NotFound("Request", request_id)
                if row.status != status.value:
                    raise InvalidState(f"Request {request_id} is already {row.status}")
                logger.info(f"Request {request_id} was already {status.value}")
                return False

        self.changed()
        return True

    def delete_for_user(self, user_id):
        with self.session(f"deleting requests of user {user_id}") as db:
            removed = (
                db.query(SongRequestModel)
                .filter(SongRequestModel.user_id == user_id)
                .delete(synchronize_session=False)
            )
        if removed:
            self.changed()
        return removed
