import signal

from gpu_race import create_app, socketio
from gpu_race.socketio_events import drain_connections

app = create_app()


def _handle_sigterm(signum, frame):
    app.logger.info('SIGTERM received. Shutting down gracefully...')
    with app.app_context():
        drained = drain_connections(timeout=app.config['SHUTDOWN_TIMEOUT_SEC'])
    app.logger.info(f"[shutdown] {drained} connection(s) drained")
    # serve_forever() treats KeyboardInterrupt as a stop request and closes the listener
    raise KeyboardInterrupt


if __name__ == '__main__':
    signal.signal(signal.SIGTERM, _handle_sigterm)
    app.logger.info(f"Server running on port {app.config['PORT']}")
    socketio.run(
        app,
        host=app.config['HOST'],
        port=app.config['PORT'],
        debug=app.config['DEBUG'],
        allow_unsafe_werkzeug=app.config['ALLOW_UNSAFE_WERKZEUG'],
    )
    app.logger.info('Server closed')
