"""
Socket.IO event handlers for KTV Request Hub.
Pushes table change notifications to every connected client and serves queue snapshots.
"""

import logging
from flask import request
from flask_socketio import SocketIO, emit

from ktv.auth.user_auth import current_user
from ktv.core.errors import KtvError
from ktv.core.queue_engine import queue_view
from ktv.stores.notifications import TABLES
from ktv.utils.snapshots import catalog_snapshot, request_snapshot, user_snapshot

logger = logging.getLogger(__name__)

# SocketIO instance will be created by the app factory
socketio = None


def init_socketio(app):
    """Initialize Socket.IO with the Flask app"""
    global socketio
    socketio = SocketIO(
        app,
        cors_allowed_origins="*",
        ping_timeout=120,
        ping_interval=30,
        max_http_buffer_size=16384,
        allow_upgrades=False,  # Polling only, for reverse proxies without websocket support
        transports=['polling'],
        manage_session=False,  # Let Flask handle sessions
        cookie=False,
        engineio_logger=False,
        logger=False,
        async_mode='threading'
    )

    register_handlers()
    register_change_broadcasts(app.change_channel, socketio)
    return socketio


def broadcast_change(sio, table):
    """Tell every client that `table` changed; clients re-fetch the snapshot"""
    sio.emit(f"{table}_changed", {"table": table})


def register_change_broadcasts(channel, sio):
    subscriptions = []
    for table in TABLES:
        # Bind table now, not at call time
        subscriptions.append(channel.subscribe(table, lambda table=table: broadcast_change(sio, table)))
    return subscriptions


def build_queue_snapshot():
    return queue_view(request_snapshot(), catalog_snapshot(), user_snapshot())


def register_handlers():
    """Register all Socket.IO event handlers"""

    @socketio.on("connect")
    def handle_connect(auth=None):
        user = current_user()
        logger.info(f"[CONNECTION] {'guest' if user is None else user.email} connected (sid: {request.sid})")
        emit("connected", {
            "authenticated": user is not None,
            "role": user.role.value if user else None,
        })
        emit("queue_snapshot", {"queue": build_queue_snapshot()})

    @socketio.on("disconnect")
    def handle_disconnect(reason=None):
        logger.info(f"[DISCONNECT] sid {request.sid} ({reason})")

    @socketio.on("queue_refresh")
    def handle_queue_refresh(data=None):
        """Explicit re-fetch, e.g. after a client reconnects"""
        emit("queue_snapshot", {"queue": build_queue_snapshot()})

    @socketio.on_error_default
    def default_error_handler(e):
        if isinstance(e, KtvError):
            emit("error", e.to_dict())
            return
        logger.error(f"Socket.IO error: {e}")
        emit("error", {"error": "Internal error", "kind": "KtvError"})
