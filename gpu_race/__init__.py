import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)

COORDINATOR_KEY = 'race_coordinator'


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    level = logging.getLevelName(str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper())
    if isinstance(level, int):
        flask_app.logger.setLevel(level)
        logging.getLogger('gpu_race').setLevel(level)

    origin = flask_app.config.get('CORS_ORIGIN', 'http://localhost:3000')
    CORS(flask_app, supports_credentials=True, origins=[origin], methods=['GET', 'POST'])

    socketio.init_app(
        flask_app,
        cors_allowed_origins=[origin],
        ping_timeout=flask_app.config.get('PING_TIMEOUT', 60),
        ping_interval=flask_app.config.get('PING_INTERVAL', 25),
    )

    # Fresh in-memory session state per app instance
    from gpu_race.services.race import RoomTable, SessionCoordinator, SocketIOEmitter
    flask_app.extensions[COORDINATOR_KEY] = SessionCoordinator(
        RoomTable(),
        SocketIOEmitter(socketio),
        seed_bytes=int(flask_app.config.get('SEED_BYTES', 16)),
    )

    from gpu_race.main import main
    flask_app.register_blueprint(main)

    from gpu_race.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    return flask_app
