# config.py
# Flask application configuration

import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    # Absolute path to the default SQLite database
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        f'sqlite:///{os.path.join(BASE_DIR, "instance", "feiras.db")}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    # Evaluator PINs are generated with this many digits
    PIN_LENGTH = 6


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret'
    LOG_LEVEL = 'WARNING'
