import os
import tempfile
from dotenv import load_dotenv

load_dotenv()


def _database_url():
    database_url = os.environ.get('DATABASE_URL')
    if not database_url:
        return 'sqlite:///' + os.path.join(tempfile.gettempdir(), 'library_lending.db')
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)
    return database_url


def _engine_options(database_url):
    if not database_url.startswith('postgresql://'):
        return {}
    options = {
        'connect_args': {'connect_timeout': 10},
        'pool_size': 5,
        'max_overflow': 10,
        'pool_timeout': 30,
    }
    # Neon and other hosted postgres require ssl
    if os.environ.get('DATABASE_SSLMODE'):
        options['connect_args']['sslmode'] = os.environ['DATABASE_SSLMODE']
    return options


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI)
    SECRET_KEY = os.environ.get('SECRET_KEY', 'xYz9wV1uT0sR9qP8oN7mL6kJ5iH4gF3eD2cB1a')

    TOKEN_MAX_AGE_DAYS = int(os.environ.get('TOKEN_MAX_AGE_DAYS', '15'))
    BORROW_LIMIT = int(os.environ.get('BORROW_LIMIT', '5'))
    LOAN_PERIOD_DAYS = int(os.environ.get('LOAN_PERIOD_DAYS', '14'))
    LEDGER_MAX_ATTEMPTS = int(os.environ.get('LEDGER_MAX_ATTEMPTS', '3'))
    BCRYPT_ROUNDS = int(os.environ.get('BCRYPT_ROUNDS', '12'))
    OVERDUE_SWEEP_HOURS = int(os.environ.get('OVERDUE_SWEEP_HOURS', '0'))

    CORS_ORIGINS = [o.strip() for o in os.environ.get('CORS_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SECRET_KEY = 'testing-secret'
    OVERDUE_SWEEP_HOURS = 0
    LOG_LEVEL = 'WARNING'
    BCRYPT_ROUNDS = 4
