import os


def _origins():
    env = os.environ.get('ALLOWED_ORIGINS')
    if env:
        return [o.strip() for o in env.split(',') if o.strip()]
    return [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "https://dual-math.vercel.app",
        "https://dualmath.onrender.com",
        # preview deployments
        "https://*.vercel.app",
        "https://*.onrender.com",
    ]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    ALLOWED_ORIGINS = _origins()
    SOCKETIO_NAMESPACE = os.environ.get('SOCKETIO_NAMESPACE', '/ws')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Race rules
    TARGET_CORRECT = int(os.environ.get('TARGET_CORRECT', '10'))
    # Grace delay between a board locking and the round being scored (ms)
    FINALIZE_DELAY_MS = int(os.environ.get('FINALIZE_DELAY_MS', '150'))
    # Pause before a team's next question is dealt (ms)
    NEXT_ROUND_DELAY_MS = int(os.environ.get('NEXT_ROUND_DELAY_MS', '800'))
    MAX_ROOM_PLAYERS = int(os.environ.get('MAX_ROOM_PLAYERS', '4'))
    # Input limits
    CHAT_MAX_CHARS = int(os.environ.get('CHAT_MAX_CHARS', '300'))
    NAME_MAX_CHARS = int(os.environ.get('NAME_MAX_CHARS', '32'))
    AVATAR_MAX_CHARS = int(os.environ.get('AVATAR_MAX_CHARS', '200000'))
    # New room defaults (round length and total rounds are kept for older clients)
    DEFAULT_DIFFICULTY = os.environ.get('DEFAULT_DIFFICULTY', 'easy')
    DEFAULT_ROUND_MS = int(os.environ.get('DEFAULT_ROUND_MS', '12000'))
    DEFAULT_TOTAL_ROUNDS = int(os.environ.get('DEFAULT_TOTAL_ROUNDS', '10'))
    # Under TESTING the timers are driven by hand unless this is set
    ENABLE_SCHEDULER_IN_TESTS = False
