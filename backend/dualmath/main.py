import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request

main = Blueprint('main', __name__)

_started_at = time.time()


def _coordinator():
    return current_app.extensions['dualmath']


@main.route('/')
def index():
    return jsonify({'message': 'Math duel server is running. Connect over Socket.IO to play.'})


@main.route('/health')
def health():
    coordinator = _coordinator()
    with coordinator.lock:
        room_count = len(coordinator.registry)
    return jsonify({
        'status': 'healthy',
        'uptime': round(time.time() - _started_at, 3),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'rooms': room_count,
    })


@main.route('/rooms')
def list_rooms():
    """Rooms still in the lobby with a free seat."""
    coordinator = _coordinator()
    with coordinator.lock:
        rooms = [
            {'roomCode': r.code, 'name': r.name, 'players': len(r.players), 'phase': r.phase}
            for r in coordinator.registry.joinable()
        ]
    return jsonify(rooms)


@main.app_errorhandler(404)
def not_found(error):
    return jsonify({'error': 'not_found', 'path': request.path}), 404
