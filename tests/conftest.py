import os
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment before importing app
os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['SECRET_KEY'] = 'test-secret'
os.environ.pop('REDIS_URL', None)

from app import create_app
from ktv.core.entities import Role, Song, SongRequest, User, RequestStatus

ADMIN_EMAIL = 'admin@test.local'
ADMIN_PASSWORD = 'admin-secret'

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def app(tmp_path):
    """Create an app backed by an in-memory database"""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'DATABASE_URL': 'sqlite:///:memory:',
        'SESSION_TYPE': 'filesystem',
        'SESSION_FILE_DIR': str(tmp_path / 'sessions'),
        'CACHE_TYPE': 'SimpleCache',
        'KTV_ADMIN_EMAIL': ADMIN_EMAIL,
        'KTV_ADMIN_PASSWORD': ADMIN_PASSWORD,
    })
    yield app


@pytest.fixture
def client(app):
    """Create a test client"""
    with app.test_client() as client:
        yield client


@pytest.fixture
def socketio_client(app, client):
    """Socket.IO test client sharing the HTTP client's session cookie"""
    sio_client = app.socketio.test_client(app, flask_test_client=client)
    yield sio_client
    if sio_client.is_connected():
        sio_client.disconnect()


def register(client, email='singer@test.local', password='secret1', name='Singer', building='A', floor='19', door='76'):
    return client.post('/auth/register', json={
        'email': email,
        'password': password,
        'name': name,
        'building': building,
        'floor': floor,
        'door': door,
    })


def login(client, email='singer@test.local', password='secret1'):
    return client.post('/auth/login', json={'email': email, 'password': password})


def login_admin(client):
    return login(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def songs(app):
    """A small song book stored in the catalog"""
    book = [
        Song(id='10001', title='月亮代表我的心', artist='鄧麗君', language='Mandarin'),
        Song(id='10002', title='愛拼才會贏', artist='葉啟田', language='Taiwanese'),
        Song(id='10003', title='Yesterday', artist='The Beatles', language='English'),
        Song(id='10004', title='舊歌', artist='某人', language='Mandarin', is_deleted=True),
    ]
    for song in book:
        app.catalog_store.upsert(song)
    return book


# Snapshot builders for the pure engine tests

def make_song(song_id, title=None, artist='Artist', language='Mandarin', is_deleted=False):
    return Song(id=song_id, title=title or f'Song {song_id}', artist=artist, language=language, is_deleted=is_deleted)


def make_request(request_id, song_id='s1', user_id='u1', minutes_ago=0, status=RequestStatus.QUEUED, now=NOW):
    return SongRequest(
        id=request_id,
        song_id=song_id,
        user_id=user_id,
        requested_at=now - timedelta(minutes=minutes_ago),
        status=status,
    )


def make_user(user_id, role=Role.USER, last_login=None, email=None):
    return User(
        id=user_id,
        email=email or f'{user_id}@test.local',
        name=f'User {user_id}',
        building='A',
        floor='3',
        door='12',
        role=role,
        last_login=last_login,
    )
