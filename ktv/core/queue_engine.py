"""
Queue engine for KTV Request Hub.

The live queue is never stored. It is derived from the full request snapshot
every time that snapshot changes, so positions renumber themselves as soon as
a request is played or cancelled.
"""

from dataclasses import replace

from .entities import RequestStatus
from .errors import InvalidState, NotFound


def derive_queue(requests):
    """Return the queued requests, oldest first.

    sorted() is stable, so requests sharing a requested_at keep the order
    they had in the snapshot.
    """
    queued = [r for r in requests if r.status == RequestStatus.QUEUED]
    return sorted(queued, key=lambda r: r.requested_at)


def numbered_queue(requests):
    """Return (position, request) pairs, position starting at 1."""
    return list(enumerate(derive_queue(requests), start=1))


def queue_position(requests, request_id):
    """1-indexed position of a request in the live queue, or None."""
    for position, request in numbered_queue(requests):
        if request.id == request_id:
            return position
    return None


def find_request(requests, request_id):
    for request in requests:
        if request.id == request_id:
            return request
    raise NotFound("Request", request_id)


def check_transition(request, target):
    """Decide whether `request` has to move to `target`.

    Returns True when the transition applies, False when the request is
    already in `target` (another operator got there first). Raises
    InvalidState for any other terminal state.
    """
    target = RequestStatus(target)
    if not target.is_terminal:
        raise InvalidState("Requests can only be marked played or cancelled")
    if request.status == target:
        return False
    if request.status != RequestStatus.QUEUED:
        raise InvalidState(f"Request {request.id} is already {request.status.value}")
    return True


def transition(requests, request_id, target):
    """Apply a state transition to a snapshot.

    Returns (new_snapshot, changed). The input list is left untouched.
    """
    current = find_request(requests, request_id)
    if not check_transition(current, target):
        return list(requests), False

    updated = replace(current, status=RequestStatus(target))
    return [updated if r.id == request_id else r for r in requests], True


def mark_played(requests, request_id):
    return transition(requests, request_id, RequestStatus.PLAYED)


def cancel(requests, request_id):
    return transition(requests, request_id, RequestStatus.CANCELLED)


def queue_view(requests, songs, users):
    """Numbered queue rows for display, each joined with its song and requester.

    Requests whose song or user no longer resolves keep their slot with None
    in place of the missing record.
    """
    songs_by_id = {s.id: s for s in songs}
    users_by_id = {u.id: u for u in users}
    rows = []
    for position, request in numbered_queue(requests):
        song = songs_by_id.get(request.song_id)
        user = users_by_id.get(request.user_id)
        rows.append({
            "position": position,
            "request": request.to_dict(),
            "song": song.to_dict() if song else None,
            "requester": user.name if user else None,
            "residence": user.residence if user else None,
        })
    return rows
