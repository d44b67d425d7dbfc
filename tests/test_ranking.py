from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, make_request, make_song, make_user
from ktv.core.entities import RequestStatus
from ktv.core.ranking import (
    dashboard_stats,
    per_user_stats,
    rankings_snapshot,
    subtract_months,
    sung_history,
    top_artists,
    top_requesters,
    top_songs,
    top_songs_by_language,
    user_history,
    window_start_for,
)


@pytest.fixture
def catalog():
    return [
        make_song('s1', artist='A', language='Mandarin'),
        make_song('s2', artist='B', language='Taiwanese'),
        make_song('s3', artist='A', language='English'),
    ]


class TestWindows:
    """Trailing windows measured back from now"""

    def test_week_is_seven_days(self):
        assert window_start_for('week', NOW) == NOW - timedelta(days=7)

    def test_month_is_calendar_month(self):
        assert window_start_for('month', NOW) == datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc)

    def test_year_is_twelve_months(self):
        assert window_start_for('year', NOW) == datetime(2023, 6, 15, 12, 0, tzinfo=timezone.utc)

    def test_month_subtraction_clamps_day(self):
        """March 31st minus one month lands on the last day of February"""
        moment = datetime(2024, 3, 31, tzinfo=timezone.utc)
        assert subtract_months(moment, 1) == datetime(2024, 2, 29, tzinfo=timezone.utc)

    def test_unknown_period(self):
        with pytest.raises(ValueError):
            window_start_for('decade', NOW)


class TestTopSongs:
    """Song leaderboards"""

    def test_counts_every_status(self, catalog):
        """Played and cancelled requests still count towards popularity"""
        requests = [
            make_request('r1', 's1'),
            make_request('r2', 's1', status=RequestStatus.PLAYED),
            make_request('r3', 's2', status=RequestStatus.CANCELLED),
        ]
        ranked = top_songs(requests, catalog)
        assert [(r.song.id, r.count) for r in ranked] == [('s1', 2), ('s2', 1)]

    def test_window_start_is_inclusive(self, catalog):
        """A request made exactly at the window start is counted"""
        start = NOW - timedelta(minutes=10)
        requests = [
            make_request('r1', 's1', minutes_ago=10),
            make_request('r2', 's2', minutes_ago=11),
        ]
        assert [r.song.id for r in top_songs(requests, catalog, start)] == ['s1']

    def test_ties_follow_first_appearance(self, catalog):
        """Equal counts keep the order their song first appeared in the snapshot"""
        requests = [
            make_request('r1', 's2'),
            make_request('r2', 's1'),
            make_request('r3', 's1'),
            make_request('r4', 's2'),
        ]
        assert [r.song.id for r in top_songs(requests, catalog)] == ['s2', 's1']

    def test_unknown_songs_are_dropped_after_truncation(self, catalog):
        """A vanished song still takes its slot before being filtered out"""
        requests = [
            make_request('r1', 'gone'),
            make_request('r2', 'gone'),
            make_request('r3', 's1'),
            make_request('r4', 's2'),
        ]
        ranked = top_songs(requests, catalog, limit=2)
        assert [r.song.id for r in ranked] == ['s1']

    def test_soft_deleted_songs_still_rank(self, catalog):
        """History is kept for songs that left the song book"""
        catalog.append(make_song('s4', is_deleted=True))
        ranked = top_songs([make_request('r1', 's4')], catalog)
        assert ranked[0].song.id == 's4'

    def test_limit(self, catalog):
        requests = [make_request(f'r{i}', song_id) for i, song_id in enumerate(['s1', 's2', 's3'])]
        assert len(top_songs(requests, catalog, limit=2)) == 2

    def test_empty(self, catalog):
        assert top_songs([], catalog) == []

    def test_truncates_to_ten_in_descending_order(self):
        """Fifteen songs with distinct counts give the ten most requested, highest first"""
        catalog = [make_song(f's{n}') for n in range(1, 16)]
        requests = [
            make_request(f's{n}-{i}', f's{n}')
            for n in range(1, 16)
            for i in range(n)
        ]
        ranked = top_songs(requests, catalog)
        assert [r.count for r in ranked] == list(range(15, 5, -1))
        assert ranked[0].song.id == 's15'


class TestOtherLeaderboards:
    """Language, artist and requester rankings"""

    def test_by_language_ignores_window(self, catalog):
        """Language rankings cover the whole history"""
        requests = [
            make_request('r1', 's1', minutes_ago=60 * 24 * 800),
            make_request('r2', 's2'),
        ]
        ranked = top_songs_by_language(requests, catalog, 'Mandarin')
        assert [(r.song.id, r.count) for r in ranked] == [('s1', 1)]

    def test_by_language_with_no_matches(self, catalog):
        assert top_songs_by_language([make_request('r1', 's1')], catalog, 'Korean') == []

    def test_artists_sum_over_their_songs(self, catalog):
        requests = [
            make_request('r1', 's1'),
            make_request('r2', 's3'),
            make_request('r3', 's2'),
        ]
        ranked = top_artists(requests, catalog, NOW - timedelta(days=1))
        assert [(r.artist, r.count) for r in ranked] == [('A', 2), ('B', 1)]

    def test_requesters_skip_unknown_users(self):
        users = [make_user('u1'), make_user('u2')]
        requests = [
            make_request('r1', user_id='u2'),
            make_request('r2', user_id='u2'),
            make_request('r3', user_id='ghost'),
            make_request('r4', user_id='u1'),
        ]
        ranked = top_requesters(requests, users)
        assert [(r.user.id, r.count) for r in ranked] == [('u2', 2), ('u1', 1)]


class TestPersonalStats:
    """Per-user views"""

    def test_per_user_stats(self):
        requests = [
            make_request('r1', 's1', user_id='u1'),
            make_request('r2', 's1', user_id='u2'),
            make_request('r3', 's1', user_id='u1', status=RequestStatus.CANCELLED),
            make_request('r4', 's2', user_id='u1'),
        ]
        stats = per_user_stats('s1', 'u1', requests)
        assert stats.global_count == 3
        assert stats.my_count == 2

    def test_per_user_stats_for_guest(self):
        stats = per_user_stats('s1', None, [make_request('r1', 's1')])
        assert stats.to_dict() == {'global_count': 1, 'my_count': 0}

    def test_history_newest_first(self):
        requests = [
            make_request('old', user_id='u1', minutes_ago=30),
            make_request('new', user_id='u1', minutes_ago=1),
            make_request('other', user_id='u2'),
        ]
        assert [r.id for r in user_history(requests, 'u1')] == ['new', 'old']

    def test_sung_history_only_played(self):
        requests = [
            make_request('r1', user_id='u1', status=RequestStatus.PLAYED),
            make_request('r2', user_id='u1'),
            make_request('r3', user_id='u1', status=RequestStatus.CANCELLED),
        ]
        assert [r.id for r in sung_history(requests, 'u1')] == ['r1']


class TestSnapshots:
    """Aggregates recomputed from one snapshot"""

    def test_rankings_snapshot_shape(self, catalog):
        users = [make_user('u1')]
        requests = [make_request('r1', 's1', user_id='u1')]
        snapshot = rankings_snapshot(requests, catalog, users, now=NOW)

        assert set(snapshot['top_songs']) == {'week', 'month', 'year'}
        assert snapshot['top_songs']['week'][0].song.id == 's1'
        assert snapshot['by_language']['Mandarin'][0].count == 1
        assert snapshot['by_language']['Korean'] == []
        assert snapshot['top_requesters'][0].user.id == 'u1'
        assert snapshot['generated_at'] == NOW.isoformat()

    def test_dashboard_stats(self):
        users = [
            make_user('u1', last_login=NOW - timedelta(days=2)),
            make_user('u2', last_login=NOW - timedelta(days=20)),
            make_user('u3'),
        ]
        requests = [
            make_request('r1', minutes_ago=60),
            make_request('r2', minutes_ago=60 * 24 * 10),
            make_request('r3', minutes_ago=60 * 24 * 40),
        ]
        stats = dashboard_stats(requests, users, now=NOW)
        assert stats == {
            'weekly_active_users': 1,
            'monthly_active_users': 2,
            'weekly_requests': 1,
            'monthly_requests': 2,
        }
