"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # DynamoDB Tables
    PROFILES_TABLE = os.environ.get('PROFILES_TABLE', 'soundtrump-profiles')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', 'soundtrump-tasks')
    TASK_CATEGORIES_TABLE = os.environ.get('TASK_CATEGORIES_TABLE', 'soundtrump-task-categories')
    USER_TASKS_TABLE = os.environ.get('USER_TASKS_TABLE', 'soundtrump-user-tasks')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', 'soundtrump-task-submissions')
    REWARDS_TABLE = os.environ.get('REWARDS_TABLE', 'soundtrump-rewards')
    USER_REWARDS_TABLE = os.environ.get('USER_REWARDS_TABLE', 'soundtrump-user-rewards')
    REFERRALS_TABLE = os.environ.get('REFERRALS_TABLE', 'soundtrump-referrals')
    REFERRED_USERS_TABLE = os.environ.get('REFERRED_USERS_TABLE', 'soundtrump-referred-users')
    CONNECTED_SERVICES_TABLE = os.environ.get('CONNECTED_SERVICES_TABLE', 'soundtrump-connected-services')

    # S3 Buckets
    TASK_IMAGES_BUCKET = os.environ.get('TASK_IMAGES_BUCKET', 'task-images')
    TASK_SCREENSHOTS_BUCKET = os.environ.get('TASK_SCREENSHOTS_BUCKET', 'task-screenshots')

    # SQS Queues
    CHANGES_QUEUE_URL = os.environ.get('CHANGES_QUEUE_URL', '')

    # Spotify OAuth
    SPOTIFY_CLIENT_ID = os.environ.get('SPOTIFY_CLIENT_ID', '')
    SPOTIFY_CLIENT_SECRET = os.environ.get('SPOTIFY_CLIENT_SECRET', '')
    SPOTIFY_TOKEN_URL = os.environ.get('SPOTIFY_TOKEN_URL', 'https://accounts.spotify.com/api/token')
    SPOTIFY_HTTP_TIMEOUT = float(os.environ.get('SPOTIFY_HTTP_TIMEOUT', '10'))

    # Points economy
    REFERRAL_BONUS_POINTS = int(os.environ.get('REFERRAL_BONUS_POINTS', '10'))
    DEFAULT_TASK_DURATION_HOURS = int(os.environ.get('DEFAULT_TASK_DURATION_HOURS', '24'))
    LEADERBOARD_LIMIT = int(os.environ.get('LEADERBOARD_LIMIT', '100'))


config = Config()
