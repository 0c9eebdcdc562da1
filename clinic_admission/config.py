import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_SECRET_KEY = 'dev-secret-key-change-in-production'


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY') or DEFAULT_SECRET_KEY

    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'sqlite:///clinic_admission.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Clinic scheduling policy (see ClinicPolicy.from_config)
    CLINIC_TIMEZONE = os.getenv('CLINIC_TIMEZONE', 'America/Mexico_City')
    CLINIC_OPERATING_WEEKDAYS = os.getenv('CLINIC_OPERATING_WEEKDAYS', '1,2,3,4,5,6')  # ISO: 1=Mon, 7=Sun
    CLINIC_OPENING_TIME = os.getenv('CLINIC_OPENING_TIME', '09:00')
    CLINIC_CLOSING_TIME = os.getenv('CLINIC_CLOSING_TIME', '15:00')  # exclusive
    CLINIC_EXCLUDED_WINDOW = os.getenv('CLINIC_EXCLUDED_WINDOW', '12:00-13:00')  # lunch; empty disables
    CLINIC_SLOT_MINUTES = int(os.getenv('CLINIC_SLOT_MINUTES', '30'))
    CLINIC_MAX_ADVANCE_DAYS = os.getenv('CLINIC_MAX_ADVANCE_DAYS', '60')  # empty disables

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_DIR = os.getenv('LOG_DIR', 'logs')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 3600,
        'pool_size': 20,
        'max_overflow': 40,
        'connect_args': {
            'connect_timeout': 10,
            'options': '-c statement_timeout=30000'
        }
    }

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'WARNING')

    @classmethod
    def validate(cls):
        """Refuse to boot with a missing or default SECRET_KEY."""
        secret = os.getenv('SECRET_KEY')
        if not secret or secret == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set in production and must not be the default value")


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///:memory:')
    SQLALCHEMY_ENGINE_OPTIONS = {}


# Configuration mapping
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on FLASK_ENV"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
