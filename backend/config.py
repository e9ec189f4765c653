import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///blackjack.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # Table rules
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    STARTING_BALANCE = int(os.environ.get('STARTING_BALANCE', '1000'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Turn timer (seconds) before a silent hand is auto-stood
    TURN_TIMEOUT_SEC = float(os.environ.get('TURN_TIMEOUT_SEC', '60'))
    # Presentation pacing (seconds)
    DEAL_DELAY_SEC = float(os.environ.get('DEAL_DELAY_SEC', '0.65'))
    DEALER_TURN_DELAY_SEC = float(os.environ.get('DEALER_TURN_DELAY_SEC', '1.0'))
    DEALER_DRAW_DELAY_SEC = float(os.environ.get('DEALER_DRAW_DELAY_SEC', '0.6'))
    VOTE_PROMPT_DELAY_SEC = float(os.environ.get('VOTE_PROMPT_DELAY_SEC', '2'))
    # Delay before an auto-advancing room deals the next round
    AUTO_ADVANCE_DELAY_SEC = float(os.environ.get('AUTO_ADVANCE_DELAY_SEC', '5'))
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '500'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    # 'socketio' runs delayed steps as Socket.IO background tasks; 'manual' waits for an explicit clock advance
    ROOM_SCHEDULER = os.environ.get('ROOM_SCHEDULER', 'socketio')
