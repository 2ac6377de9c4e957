import logging

from flask import Blueprint, current_app, g, jsonify, request

import catalog
from auth import (delete_account, is_self, issue_token, login, login_required, owns_book,
                  register_user, update_account)
from errors import ValidationError
from ledger import BorrowLedger
from schemas import (AccountUpdateRequest, BookCreateRequest, BookUpdateRequest, BorrowRequest,
                     DiscontinueRequest, GENRES, LoginRequest, SignupRequest, parse)
from stores import MembershipStore

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__, url_prefix='/api/users')
books_bp = Blueprint('books', __name__, url_prefix='/api/books')
borrow_bp = Blueprint('borrow', __name__, url_prefix='/api/borrow')
reader_bp = Blueprint('reader', __name__, url_prefix='/api/reader')


def get_ledger():
    return BorrowLedger.from_config(current_app.config)


def _body():
    return request.get_json(silent=True) or {}


def _success(status_code=200, **payload):
    return jsonify({'status': 'success', **payload}), status_code


# Users

@users_bp.route('/signup', methods=['POST'])
def signup():
    payload = parse(SignupRequest, _body())
    user = register_user(payload)
    return _success(201, token=issue_token(user), data={'user': user.to_dict()})


@users_bp.route('/login', methods=['POST'])
def user_login():
    data = _body()
    if not isinstance(data, dict) or not data.get('email') or not data.get('password'):
        raise ValidationError('Please provide email and password')
    payload = parse(LoginRequest, data)
    user, token = login(payload.email, payload.password)
    logger.debug(f"Token issued for user: {user.email}")
    return _success(token=token, data={'user': user.to_dict()})


@users_bp.route('/update/<int:user_id>', methods=['PUT'])
@login_required(owner=is_self)
def update_user(user_id):
    payload = parse(AccountUpdateRequest, _body())
    user = update_account(user_id, payload)
    return _success(data={'user': user.to_dict()})


@users_bp.route('/delete/<int:user_id>', methods=['DELETE'])
@login_required(owner=is_self)
def delete_user(user_id):
    delete_account(user_id)
    return '', 204


@users_bp.route('/session/validate', methods=['GET'])
@login_required()
def validate_session():
    user = MembershipStore().get(g.identity.user_id)
    return _success(data={'user': user.to_dict()})


# Books

@books_bp.route('/create', methods=['POST'])
@login_required(role='author')
def create_book():
    payload = parse(BookCreateRequest, _body())
    book = catalog.create_book(g.identity.user_id, payload)
    return _success(201, data={'book': book.to_dict()})


@books_bp.route('', methods=['GET'])
def list_books():
    genre = request.args.get('genre') or None
    if genre is not None and genre not in GENRES:
        raise ValidationError(f'{genre} is not a supported genre')
    author = request.args.get('author')
    try:
        owner_id = int(author) if author else None
    except ValueError:
        raise ValidationError('author must be a user id')
    books = catalog.list_books(genre=genre, owner_id=owner_id)
    return _success(results=len(books), data={'books': [b.to_dict() for b in books]})


@books_bp.route('/<int:book_id>', methods=['GET'])
def get_book(book_id):
    book = catalog.get_book(book_id)
    return _success(data={'book': book.to_dict()})


@books_bp.route('/author/<int:user_id>', methods=['GET'])
@login_required(role='author', owner=is_self)
def author_books(user_id):
    books = catalog.list_books(owner_id=user_id)
    return _success(data={'books': [b.to_dict(include_history=True) for b in books]})


@books_bp.route('/update/<int:book_id>', methods=['PUT'])
@login_required(role='author', owner=owns_book)
def update_book(book_id):
    payload = parse(BookUpdateRequest, _body())
    book = catalog.update_book(book_id, payload)
    return _success(data={'book': book.to_dict()})


@books_bp.route('/delete/<int:book_id>', methods=['DELETE'])
@login_required(role='author', owner=owns_book)
def delete_book(book_id):
    catalog.delete_book(book_id)
    return '', 204


@books_bp.route('/<int:book_id>/discontinue', methods=['PATCH'])
@login_required(role='admin')
def discontinue_book(book_id):
    payload = parse(DiscontinueRequest, _body())
    book = catalog.set_discontinued(book_id, payload.discontinued)
    return _success(data={'book': book.to_dict()})


# Borrowing

def _borrow(book_id):
    receipt = get_ledger().borrow(g.identity.user_id, book_id)
    return _success(message='Book borrowed successfully', data=receipt.to_dict())


def _return(book_id):
    get_ledger().return_book(g.identity.user_id, book_id)
    return _success(message='Book returned successfully')


def _my_books(user_id):
    include_returned = request.args.get('all', 'false').lower() == 'true'
    books = get_ledger().borrowed_books(user_id, include_returned=include_returned)
    return _success(results=len(books), data={'books': books})


@borrow_bp.route('/borrow/<int:book_id>', methods=['POST'])
@login_required(role='reader')
def borrow_book(book_id):
    return _borrow(book_id)


@borrow_bp.route('/return/<int:book_id>', methods=['POST'])
@login_required(role='reader')
def return_book(book_id):
    return _return(book_id)


@borrow_bp.route('/my-books', methods=['GET'])
@login_required(role='reader')
def my_books():
    return _my_books(g.identity.user_id)


@reader_bp.route('/books/borrow', methods=['POST'])
@login_required(role='reader')
def reader_borrow():
    payload = parse(BorrowRequest, _body())
    return _borrow(payload.book_id)


@reader_bp.route('/books/return', methods=['POST'])
@login_required(role='reader')
def reader_return():
    payload = parse(BorrowRequest, _body())
    return _return(payload.book_id)


@reader_bp.route('/books/<int:user_id>', methods=['GET'])
@login_required(role='reader', owner=is_self)
def reader_books(user_id):
    return _my_books(user_id)


def register_blueprints(app):
    for blueprint in (users_bp, books_bp, borrow_bp, reader_bp):
        app.register_blueprint(blueprint)
