"""
Request lifecycle for KTV Request Hub.

Creates new requests, runs state transitions against a local snapshot and the
request store, and keeps the local snapshot honest when the store says no.

Optimistic policy: a new request is appended to local state before the durable
write. If that write fails the entry is rolled back, a warning is logged and
BackendUnavailable reaches the caller. Status transitions are applied locally
first and restored to the previous record when the store rejects them.
"""

import logging
import uuid
from dataclasses import replace

from .entities import RequestStatus, SongRequest, utcnow
from .errors import BackendUnavailable, Forbidden, InvalidState, NotFound, Unauthenticated
from .queue_engine import check_transition, derive_queue, find_request

logger = logging.getLogger(__name__)


def new_request_id(now):
    """Time-based id: epoch milliseconds plus a short random suffix."""
    return f"{int(now.timestamp() * 1000)}{uuid.uuid4().hex[:6]}"


class LocalRequestState:
    """The request list as one client sees it, including unconfirmed submissions."""

    def __init__(self, requests=()):
        self._snapshot = list(requests)
        self._pending = {}

    @property
    def requests(self):
        known = {r.id for r in self._snapshot}
        return self._snapshot + [r for r in self._pending.values() if r.id not in known]

    def replace_snapshot(self, requests):
        """Take a full refresh from the store. Derived views are rebuilt from it, never patched."""
        self._snapshot = list(requests)
        known = {r.id for r in self._snapshot}
        for request_id in [rid for rid in self._pending if rid in known]:
            del self._pending[request_id]

    def add_optimistic(self, request):
        self._pending[request.id] = request

    def is_pending(self, request_id):
        return request_id in self._pending

    def confirm(self, request_id):
        request = self._pending.pop(request_id, None)
        if request is not None and all(r.id != request_id for r in self._snapshot):
            self._snapshot.append(request)

    def rollback(self, request_id):
        return self._pending.pop(request_id, None)

    def get(self, request_id):
        return find_request(self.requests, request_id)

    def put(self, record):
        if record.id in self._pending:
            self._pending[record.id] = record
            return
        self._snapshot = [record if r.id == record.id else r for r in self._snapshot]

    def queue(self):
        return derive_queue(self.requests)


class RequestLifecycleController:
    """Validates user intent and mediates between local state and the stores.

    The acting user is always passed in explicitly; nothing is read from
    ambient request context.
    """

    def __init__(self, request_store, user_store=None, clock=utcnow, id_factory=new_request_id):
        self.request_store = request_store
        self.user_store = user_store
        self.clock = clock
        self.id_factory = id_factory

    def submit_request(self, song, user):
        """Build a new queued request for `song`. Nothing is written yet."""
        if user is None:
            raise Unauthenticated("Please log in to request a song")
        if song.is_deleted:
            raise InvalidState(f"Song {song.id} is no longer available")

        now = self.clock()
        return SongRequest(
            id=self.id_factory(now),
            song_id=song.id,
            user_id=user.id,
            requested_at=now,
            status=RequestStatus.QUEUED,
        )

    def persist_request(self, new_request, state=None):
        """Durably write a submitted request, rolling back `state` on failure."""
        try:
            self.request_store.insert(new_request)
        except BackendUnavailable:
            if state is not None:
                state.rollback(new_request.id)
            logger.warning(f"Rolled back optimistic request {new_request.id}: store rejected the write")
            raise

        if state is not None:
            state.confirm(new_request.id)
        logger.info(f"Queued song {new_request.song_id} for user {new_request.user_id} ({new_request.id})")
        return new_request

    def request_song(self, song, user, state=None):
        """Submit, append optimistically, then persist."""
        new_request = self.submit_request(song, user)
        if state is not None:
            state.add_optimistic(new_request)
        return self.persist_request(new_request, state)

    def _transition(self, state, request_id, target):
        current = state.get(request_id)
        if not check_transition(current, target):
            logger.info(f"Request {request_id} already {target.value}, nothing to do")
            return False

        state.put(replace(current, status=target))
        try:
            changed = self.request_store.update_status(request_id, target)
        except (BackendUnavailable, NotFound, InvalidState) as e:
            state.put(current)
            logger.warning(f"Could not mark request {request_id} {target.value}: {e.message}")
            raise

        logger.info(f"Request {request_id} -> {target.value}")
        return changed

    def mark_played(self, request_id, user, state):
        if user is None:
            raise Unauthenticated()
        return self._transition(state, request_id, RequestStatus.PLAYED)

    def cancel(self, request_id, user, state):
        """Queue-management cancel, administrators only."""
        if user is None:
            raise Unauthenticated()
        if not user.is_admin:
            raise Forbidden("Only administrators can manage the queue")
        return self._transition(state, request_id, RequestStatus.CANCELLED)

    def cancel_own_request(self, request_id, requesting_user, state):
        if requesting_user is None:
            raise Unauthenticated()

        current = state.get(request_id)
        if current.user_id != requesting_user.id and not requesting_user.is_admin:
            raise Forbidden("You can only cancel your own requests")
        if current.status != RequestStatus.QUEUED:
            raise InvalidState(f"Request {request_id} is already {current.status.value}")

        return self._transition(state, request_id, RequestStatus.CANCELLED)

    def toggle_favorite(self, user_id, song_id):
        """Flip membership of `song_id` in the user's favorites (last writer wins)."""
        if user_id is None:
            raise Unauthenticated("Please log in to keep favorites")
        return self.user_store.toggle_favorite(user_id, song_id)
