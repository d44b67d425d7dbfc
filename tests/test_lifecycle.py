import pytest

from conftest import NOW, make_request, make_song, make_user
from ktv.core.entities import RequestStatus, Role
from ktv.core.errors import BackendUnavailable, Forbidden, InvalidState, NotFound, Unauthenticated
from ktv.core.lifecycle import LocalRequestState, RequestLifecycleController, new_request_id


class FakeRequestStore:
    """In-memory request store with the same conditional update rules"""

    def __init__(self, requests=()):
        self.rows = {r.id: r for r in requests}
        self.inserted = []
        self.updates = []

    def insert(self, song_request):
        self.rows[song_request.id] = song_request
        self.inserted.append(song_request)

    def update_status(self, request_id, status):
        self.updates.append((request_id, status))
        row = self.rows.get(request_id)
        if row is None:
            raise NotFound("Request", request_id)
        if row.status == status:
            return False
        if row.status != RequestStatus.QUEUED:
            raise InvalidState(f"Request {request_id} is already {row.status.value}")
        self.rows[request_id] = make_request(row.id, row.song_id, row.user_id, status=status)
        return True


class FailingRequestStore(FakeRequestStore):
    def insert(self, song_request):
        raise BackendUnavailable("database is down")

    def update_status(self, request_id, status):
        raise BackendUnavailable("database is down")


class FakeUserStore:
    def __init__(self):
        self.favorites = {}

    def toggle_favorite(self, user_id, song_id):
        current = self.favorites.setdefault(user_id, set())
        current ^= {song_id}
        return set(current)


def fixed_ids():
    counter = iter(range(1, 1000))
    return lambda now: f"req-{next(counter)}"


@pytest.fixture
def user():
    return make_user('u1')


@pytest.fixture
def admin():
    return make_user('admin', role=Role.ADMIN)


def controller(store, user_store=None):
    return RequestLifecycleController(store, user_store or FakeUserStore(), clock=lambda: NOW, id_factory=fixed_ids())


class TestSubmitRequest:
    """Creating requests"""

    def test_submit_builds_queued_request(self, user):
        new_request = controller(FakeRequestStore()).submit_request(make_song('s1'), user)
        assert new_request.status == RequestStatus.QUEUED
        assert new_request.user_id == 'u1'
        assert new_request.song_id == 's1'
        assert new_request.requested_at == NOW

    def test_guest_cannot_request(self):
        store = FakeRequestStore()
        with pytest.raises(Unauthenticated):
            controller(store).request_song(make_song('s1'), None)
        assert store.inserted == []

    def test_deleted_song_cannot_be_requested(self, user):
        store = FakeRequestStore()
        with pytest.raises(InvalidState):
            controller(store).request_song(make_song('s1', is_deleted=True), user)
        assert store.inserted == []

    def test_request_joins_the_queue(self, user):
        """The new request appears at the end of the derived queue"""
        state = LocalRequestState([make_request('old', minutes_ago=5)])
        store = FakeRequestStore(state.requests)
        new_request = controller(store).request_song(make_song('s1'), user, state)

        assert [r.id for r in state.queue()] == ['old', new_request.id]
        assert not state.is_pending(new_request.id)
        assert store.inserted == [new_request]

    def test_failed_write_rolls_back(self, user):
        """The optimistic entry disappears when the store rejects the write"""
        state = LocalRequestState()
        with pytest.raises(BackendUnavailable):
            controller(FailingRequestStore()).request_song(make_song('s1'), user, state)
        assert state.requests == []
        assert state.queue() == []

    def test_generated_ids_are_unique(self):
        assert new_request_id(NOW) != new_request_id(NOW)


class TestTransitions:
    """Marking played and cancelling through the controller"""

    def test_mark_played(self, user):
        state = LocalRequestState([make_request('r1')])
        store = FakeRequestStore(state.requests)
        assert controller(store).mark_played('r1', user, state) is True
        assert state.get('r1').status == RequestStatus.PLAYED
        assert state.queue() == []

    def test_mark_played_requires_login(self):
        state = LocalRequestState([make_request('r1')])
        store = FakeRequestStore(state.requests)
        with pytest.raises(Unauthenticated):
            controller(store).mark_played('r1', None, state)
        assert store.updates == []

    def test_repeat_is_idempotent(self, user):
        """The second of two concurrent 'played' clicks is a no-op"""
        state = LocalRequestState([make_request('r1', status=RequestStatus.PLAYED)])
        store = FakeRequestStore(state.requests)
        assert controller(store).mark_played('r1', user, state) is False
        assert store.updates == []

    def test_store_already_terminal(self, user):
        """Local state was stale; the store says someone else played it first"""
        state = LocalRequestState([make_request('r1')])
        store = FakeRequestStore([make_request('r1', status=RequestStatus.PLAYED)])
        assert controller(store).mark_played('r1', user, state) is False

    def test_store_conflict_restores_local_state(self, user):
        state = LocalRequestState([make_request('r1')])
        store = FakeRequestStore([make_request('r1', status=RequestStatus.CANCELLED)])
        with pytest.raises(InvalidState):
            controller(store).mark_played('r1', user, state)
        assert state.get('r1').status == RequestStatus.QUEUED

    def test_backend_failure_restores_local_state(self, user):
        state = LocalRequestState([make_request('r1')])
        with pytest.raises(BackendUnavailable):
            controller(FailingRequestStore()).mark_played('r1', user, state)
        assert [r.id for r in state.queue()] == ['r1']

    def test_unknown_request(self, user):
        with pytest.raises(NotFound):
            controller(FakeRequestStore()).mark_played('missing', user, LocalRequestState())

    def test_admin_cancel(self, admin):
        state = LocalRequestState([make_request('r1')])
        store = FakeRequestStore(state.requests)
        assert controller(store).cancel('r1', admin, state)
        assert state.get('r1').status == RequestStatus.CANCELLED

    def test_cancel_requires_admin(self, user):
        state = LocalRequestState([make_request('r1')])
        with pytest.raises(Forbidden):
            controller(FakeRequestStore(state.requests)).cancel('r1', user, state)


class TestCancelOwnRequest:
    """Residents cancel their own requests; admins cancel anyone's"""

    def test_owner_can_cancel(self, user):
        state = LocalRequestState([make_request('r1', user_id='u1')])
        store = FakeRequestStore(state.requests)
        assert controller(store).cancel_own_request('r1', user, state)
        assert store.rows['r1'].status == RequestStatus.CANCELLED

    def test_other_resident_is_forbidden(self):
        state = LocalRequestState([make_request('r1', user_id='u1')])
        store = FakeRequestStore(state.requests)
        with pytest.raises(Forbidden):
            controller(store).cancel_own_request('r1', make_user('u2'), state)
        assert store.updates == []

    def test_admin_can_cancel_anyone(self, admin):
        state = LocalRequestState([make_request('r1', user_id='u1')])
        assert controller(FakeRequestStore(state.requests)).cancel_own_request('r1', admin, state)

    def test_guest_is_unauthenticated(self):
        state = LocalRequestState([make_request('r1')])
        with pytest.raises(Unauthenticated):
            controller(FakeRequestStore(state.requests)).cancel_own_request('r1', None, state)

    def test_only_queued_requests(self, user):
        state = LocalRequestState([make_request('r1', user_id='u1', status=RequestStatus.PLAYED)])
        with pytest.raises(InvalidState):
            controller(FakeRequestStore(state.requests)).cancel_own_request('r1', user, state)


class TestLocalState:
    """Client-side snapshot bookkeeping"""

    def test_refresh_drops_confirmed_pending_entries(self):
        state = LocalRequestState()
        pending = make_request('r1')
        state.add_optimistic(pending)
        state.replace_snapshot([pending])
        assert not state.is_pending('r1')
        assert [r.id for r in state.requests] == ['r1']

    def test_refresh_keeps_unconfirmed_pending_entries(self):
        state = LocalRequestState()
        state.add_optimistic(make_request('r1', minutes_ago=1))
        state.replace_snapshot([make_request('r0', minutes_ago=2)])
        assert [r.id for r in state.queue()] == ['r0', 'r1']

    def test_positions_renumber_after_refresh(self):
        state = LocalRequestState([make_request('r1', minutes_ago=2), make_request('r2', minutes_ago=1)])
        state.replace_snapshot([
            make_request('r1', minutes_ago=2, status=RequestStatus.PLAYED),
            make_request('r2', minutes_ago=1),
        ])
        assert [r.id for r in state.queue()] == ['r2']


class TestFavorites:
    def test_toggle_twice_restores(self, user):
        ctl = controller(FakeRequestStore())
        assert ctl.toggle_favorite(user.id, 's1') == {'s1'}
        assert ctl.toggle_favorite(user.id, 's1') == set()

    def test_guest_cannot_keep_favorites(self):
        with pytest.raises(Unauthenticated):
            controller(FakeRequestStore()).toggle_favorite(None, 's1')
