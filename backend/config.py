import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///dominoes.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Computer "thinking" delay before each AI move (seconds). 0 plays immediately.
    AI_THINK_DELAY_SEC = float(os.environ.get('AI_THINK_DELAY_SEC', '1.5'))
    # Defaults for new games
    DEFAULT_TARGET_SCORE = int(os.environ.get('DEFAULT_TARGET_SCORE', '300'))
    DEFAULT_DIFFICULTY = os.environ.get('DEFAULT_DIFFICULTY', 'medium')
    # Room transport: 'replicated' (shared database + Socket.IO) or 'local' (JSON file)
    ROOM_TRANSPORT = os.environ.get('ROOM_TRANSPORT', 'replicated')
    LOCAL_ROOM_STORE_PATH = os.environ.get('LOCAL_ROOM_STORE_PATH', 'rooms.json')
    # Attempts at finding an unused room code before giving up
    ROOM_CODE_ATTEMPTS = int(os.environ.get('ROOM_CODE_ATTEMPTS', '10'))
    # Finished games kept per user
    HISTORY_LIMIT = int(os.environ.get('HISTORY_LIMIT', '50'))
    # Optional: heartbeat interval for timer worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
