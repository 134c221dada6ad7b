import os


class Config:
    """Base configuration"""

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(os.path.abspath(os.path.dirname(__file__)), 'instance', 'car_stats.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False  # Set to True for SQL query logging during development

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
    }

    # Take a row lock on the total summary row before each multi-statement
    # stats sequence (SELECT ... FOR UPDATE; ignored by SQLite)
    STATS_LOCK_SUMMARY_ROWS = True

    # Rotating log files (non-debug, non-testing only)
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False  # Set to True only when debugging SQL queries


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False

    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or os.environ.get('SQLALCHEMY_DATABASE_URI')

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)

        if not app.config.get('SQLALCHEMY_DATABASE_URI'):
            raise ValueError("DATABASE_URL environment variable must be set in production!")

        # Row locks are a no-op on SQLite, concurrent writers rely on them
        if 'sqlite' in app.config.get('SQLALCHEMY_DATABASE_URI', ''):
            import warnings
            warnings.warn("Using SQLite in production is not recommended. Use PostgreSQL.")


# Add init_app to base config
Config.init_app = classmethod(lambda cls, app: None)


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('TEST_DATABASE_URL') or 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
