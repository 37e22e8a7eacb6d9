# portal/core/config.py

import os


class Config:
    """Settings shared by every environment."""
    # Signs access/refresh tokens issued after a Firebase ID token is exchanged.
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
    FIREBASE_PROJECT_ID = os.getenv('FIREBASE_PROJECT_ID')

    # Wall-clock zone used to combine the event form's date and time-of-day fields.
    PORTAL_TIMEZONE = os.getenv('PORTAL_TIMEZONE', 'Africa/Johannesburg')

    # Forum-wide fan-out is written in small groups with a pause between them.
    NOTIFICATION_BATCH_SIZE = int(os.getenv('NOTIFICATION_BATCH_SIZE', 5))
    NOTIFICATION_BATCH_DELAY_SECONDS = float(os.getenv('NOTIFICATION_BATCH_DELAY_SECONDS', 0.3))
    # Read notifications disappear from the inbox this long after being read.
    NOTIFICATION_READ_RETENTION_HOURS = int(os.getenv('NOTIFICATION_READ_RETENTION_HOURS', 24))

    EVENT_DUPLICATE_WINDOW_SECONDS = int(os.getenv('EVENT_DUPLICATE_WINDOW_SECONDS', 5))

    # Keeps an in-memory forum view patched from Firestore snapshot listeners.
    FORUM_REALTIME_ENABLED = os.getenv('FORUM_REALTIME_ENABLED', 'false').lower() == 'true'


class DevelopmentConfig(Config):
    """Local development against the development Firebase project."""
    DEBUG = True
    FIREBASE_CREDENTIALS_PATH = os.getenv('DEV_FIREBASE_CREDENTIALS_PATH')


class TestingConfig(Config):
    """Test runs. Firestore is injected by the test suite."""
    TESTING = True
    DEBUG = False
    JWT_SECRET_KEY = os.getenv('TEST_JWT_SECRET_KEY', 'testing-secret-key-with-enough-length-for-hs256')
    FIREBASE_CREDENTIALS_PATH = os.getenv('TEST_FIREBASE_CREDENTIALS_PATH')
    NOTIFICATION_BATCH_DELAY_SECONDS = 0
    FORUM_REALTIME_ENABLED = False


class ProductionConfig(Config):
    DEBUG = False
    FIREBASE_CREDENTIALS_PATH = os.getenv('FIREBASE_CREDENTIALS_PATH')
    FORUM_REALTIME_ENABLED = os.getenv('FORUM_REALTIME_ENABLED', 'true').lower() == 'true'


config_by_name = dict(
    development=DevelopmentConfig,
    testing=TestingConfig,
    production=ProductionConfig
)
