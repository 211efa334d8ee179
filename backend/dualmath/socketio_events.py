import logging

from flask import request
from flask_socketio import emit

from dualmath import socketio
from dualmath.commands import CLIENT_COMMANDS, Disconnect, parse_command

logger = logging.getLogger(__name__)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected', 'selfId': _get_sid()})


def handle_ping(data=None):
    emit('pong', data or {})


def handle_error(exc):
    # Keep the connection and the process alive; the message is simply dropped
    logger.exception(f"[handler-error] sid={_get_sid()} error={exc}")


def _make_handler(coordinator, event: str):
    def handler(data=None):
        command = parse_command(event, data)
        if command is None:
            logger.debug(f"[drop] sid={_get_sid()} event={event} malformed payload")
            return
        coordinator.process(_get_sid(), command)
    handler.__name__ = f"handle_{event.replace(':', '_')}"
    return handler


def register_socketio_handlers(coordinator, namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers bound to ``coordinator``.

    Every client event in the catalogue goes through ``parse_command`` and
    then the coordinator's single entry point.
    """

    def handle_disconnect(reason=None):
        coordinator.process(_get_sid(), Disconnect())

    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
    for event in CLIENT_COMMANDS:
        socketio.on_event(event, _make_handler(coordinator, event), namespace=namespace)
    socketio.on_error(namespace)(handle_error)
