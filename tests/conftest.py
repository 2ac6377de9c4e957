import itertools

import pytest

from app import create_app
from auth import hash_password, issue_token
from config import TestingConfig
from extensions import db
from ledger import BorrowLedger, apply_status
from models import Book, User

PASSWORD = 'Secret123!'

_counter = itertools.count(1)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ledger(app):
    return BorrowLedger.from_config(app.config, retry_delay=0)


@pytest.fixture
def make_user(app):
    def _make_user(role='reader', name=None, email=None):
        n = next(_counter)
        user = User(
            name=name or f'{role.capitalize()} {n}',
            email=email or f'{role}{n}@library.org',
            password=hash_password(PASSWORD),
            role=role,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def author(make_user):
    return make_user('author')


@pytest.fixture
def reader(make_user):
    return make_user('reader')


@pytest.fixture
def make_book(app, author):
    def _make_book(total=5, title=None, owner=None, genre='Fiction', isbn=None):
        n = next(_counter)
        book = Book(
            title=title or f'Book {n}',
            genre=genre,
            description='A book used in tests.',
            isbn=isbn,
            owner_id=(owner or author).user_id,
            stock_total=total,
            stock_available=total,
        )
        apply_status(book)
        db.session.add(book)
        db.session.commit()
        return book
    return _make_book


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        return {'Authorization': f'Bearer {issue_token(user)}'}
    return _auth_headers
