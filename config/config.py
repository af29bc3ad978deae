import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'
    DATABASE_URL = os.environ.get('DATABASE_URL') or 'sqlite:///reviewflow.db'

    # Notification channels
    TWILIO_ACCOUNT_SID = os.environ.get('TWILIO_ACCOUNT_SID')
    TWILIO_AUTH_TOKEN = os.environ.get('TWILIO_AUTH_TOKEN')
    TWILIO_PHONE_NUMBER = os.environ.get('TWILIO_PHONE_NUMBER')
    SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY')
    SENDGRID_FROM_EMAIL = os.environ.get('SENDGRID_FROM_EMAIL', 'noreply@reviewflow.app')
    NOTIFICATION_DEDUP_SECONDS = int(os.environ.get('NOTIFICATION_DEDUP_SECONDS', '60'))
    NOTIFY_ASYNC = os.environ.get('NOTIFY_ASYNC', 'false').lower() == 'true'

    # Application Settings
    APP_URL = os.environ.get('APP_URL', 'http://localhost:5000')
    MEETING_BASE_URL = os.environ.get('MEETING_BASE_URL', 'https://meet.jit.si')
    MEETING_ROOM_PREFIX = os.environ.get('MEETING_ROOM_PREFIX', 'reviewflow')

    # Token Settings
    ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

    # Scoring (0-10 in half-point steps)
    SCORE_MIN = 0
    SCORE_MAX = 10
    SCORE_STEP = 0.5
    SCORE_DIMENSIONS = (
        'technical_understanding',
        'task_completion',
        'communication',
        'problem_solving',
    )
    FEEDBACK_MIN_LENGTH = 10
    FEEDBACK_MAX_LENGTH = 2000
    REMARKS_MAX_LENGTH = 500
    FINAL_REMARKS_MAX_LENGTH = 1000

    # Logging
    LOG_FILE = os.environ.get('LOG_FILE', 'logs/reviewflow.log')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    DEBUG = True
    TESTING = True


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
