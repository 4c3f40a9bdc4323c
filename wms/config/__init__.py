import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Provide a safe development fallback to avoid 500s when SECRET_KEY is missing.
    SECRET_KEY = os.getenv('SECRET_KEY') or 'dev-secret-key-change-me'
    DATABASE_URL = os.getenv('DATABASE_URL')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL or 'sqlite:///wms.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'true').lower() in ('1', 'true', 'yes')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    REMEMBER_COOKIE_SECURE = SESSION_COOKIE_SECURE
    REMEMBER_COOKIE_HTTPONLY = True

    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    # Run the daily rollover through RQ; disable when an external cron calls `flask shift rollover`
    ENABLE_SCHEDULER = os.getenv('ENABLE_SCHEDULER', 'false').lower() in ('1', 'true', 'yes')

    # Shift clock: windows open at this UTC hour and last one day
    SHIFT_BOUNDARY_HOUR = int(os.getenv('SHIFT_BOUNDARY_HOUR', '0'))
    DEFAULT_MAX_PAGES_PER_SHIFT = int(os.getenv('DEFAULT_MAX_PAGES_PER_SHIFT', '20'))

    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER', './uploads')
    MAX_UPLOAD_FILES = int(os.getenv('MAX_UPLOAD_FILES', '10'))
    MAX_CONTENT_LENGTH = 50 * 1024 * 1024

    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3002')
    INVITE_EXPIRY_HOURS = int(os.getenv('INVITE_EXPIRY_HOURS', '48'))
    RESET_CODE_EXPIRY_MINUTES = int(os.getenv('RESET_CODE_EXPIRY_MINUTES', '15'))
    PAYMENT_CURRENCY = os.getenv('PAYMENT_CURRENCY', 'KSH')
    # Hand payment notifications to the RQ worker instead of recording them in-request
    QUEUE_NOTIFICATIONS = os.getenv('QUEUE_NOTIFICATIONS', 'false').lower() in ('1', 'true', 'yes')
