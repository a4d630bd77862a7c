import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    HOST = os.environ.get('HOST', '0.0.0.0')
    PORT = int(os.environ.get('PORT', '3001'))
    # Single origin allowed for both HTTP and Socket.IO traffic
    CORS_ORIGIN = os.environ.get('CORS_ORIGIN', 'http://localhost:3000')
    # Engine.IO heartbeat (seconds)
    PING_TIMEOUT = int(os.environ.get('PING_TIMEOUT', '60'))
    PING_INTERVAL = int(os.environ.get('PING_INTERVAL', '25'))
    # Random bytes per race seed; rendered as 2x hex characters
    SEED_BYTES = int(os.environ.get('SEED_BYTES', '16'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Seconds to wait for disconnected sockets to close on SIGTERM
    SHUTDOWN_TIMEOUT_SEC = float(os.environ.get('SHUTDOWN_TIMEOUT_SEC', '5'))
    # Werkzeug's server is for development; production runs under eventlet/gevent
    ALLOW_UNSAFE_WERKZEUG = os.environ.get('ALLOW_UNSAFE_WERKZEUG', '0') == '1'
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
