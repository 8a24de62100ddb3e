from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit, join_room

from arcade import socketio
from arcade.services.ledger.notifier import SOCKET_NAMESPACE, player_topic


def _wallet_address():
    if current_user and current_user.is_authenticated:
        return current_user.wallet_address
    return None


def handle_connect(auth=None):
    # Logged-in sockets join their private player room; everyone gets broadcasts
    wallet_address = _wallet_address()
    if wallet_address:
        join_room(player_topic(wallet_address))
    current_app.logger.info(f"[socket-connect] sid={request.sid} wallet={wallet_address or 'anonymous'}")  # type: ignore
    emit('connection_ack', {'connected': True, 'wallet_address': wallet_address})


def handle_disconnect(*args):
    # Socket.IO drops the sid from its rooms on disconnect
    wallet_address = _wallet_address()
    current_app.logger.info(f"[socket-disconnect] sid={request.sid} wallet={wallet_address or 'anonymous'}")  # type: ignore


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=SOCKET_NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=SOCKET_NAMESPACE)
