import re

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
import click
from config import Config

socketio = SocketIO(async_mode=None)


def _origin_pattern(origin: str):
    # `*` stands for one or more subdomain labels, e.g. https://*.vercel.app
    parts = [re.escape(part) for part in origin.split('*')]
    return re.compile('[A-Za-z0-9.-]+'.join(parts) + r'\Z', re.IGNORECASE)


def cors_origins(allowed):
    """Exact origins stay strings, wildcard entries become compiled patterns."""
    return [_origin_pattern(o) if '*' in o and o != '*' else o for o in allowed]


def origin_allowed(origin, allowed) -> bool:
    """Socket.IO handshake check; requests without an Origin header pass."""
    if not origin or '*' in allowed:
        return True
    for entry in cors_origins(allowed):
        if isinstance(entry, str):
            if entry.lower() == origin.lower():
                return True
        elif entry.match(origin):
            return True
    return False


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    # module loggers under dualmath.* propagate to the app logger
    flask_app.logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))

    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS') or []
    CORS(flask_app, supports_credentials=True, origins=cors_origins(allowed_origins))
    socketio.init_app(
        flask_app,
        cors_allowed_origins=lambda origin, environ=None: origin_allowed(origin, allowed_origins),
    )

    from dualmath.main import main
    flask_app.register_blueprint(main)

    # One registry and coordinator per app; handlers and routes reach them
    # through the app rather than module globals
    from dualmath.services.games.broadcast import BroadcastGateway
    from dualmath.services.games.coordinator import GameSettings, MatchCoordinator
    from dualmath.services.games.registry import RoomRegistry
    from dualmath.services.games.scheduler import ManualScheduler, TimerScheduler

    namespace = flask_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    settings = GameSettings.from_config(flask_app.config)
    if flask_app.config.get('TESTING') and not flask_app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        scheduler = ManualScheduler()
    else:
        scheduler = TimerScheduler(socketio)
    gateway = BroadcastGateway(socketio, namespace)
    coordinator = MatchCoordinator(
        RoomRegistry(max_players=settings.max_room_players),
        scheduler,
        sink=gateway.dispatch,
        settings=settings,
    )
    flask_app.extensions['dualmath'] = coordinator

    from dualmath.socketio_events import register_socketio_handlers
    register_socketio_handlers(coordinator, namespace=namespace)

    @click.command('questions')
    @click.option('--difficulty', default='easy', type=click.Choice(['easy', 'medium', 'hard']))
    @click.option('--count', default=10, show_default=True, type=click.IntRange(1, 1000))
    def questions_command(difficulty, count):
        """Print sample questions for a difficulty."""
        from dualmath.services.games.questions import make_question
        for _ in range(count):
            q = make_question(difficulty)
            click.echo(f"{q.a} {q.op} {q.b} = {q.answer}")

    flask_app.cli.add_command(questions_command)

    return flask_app
