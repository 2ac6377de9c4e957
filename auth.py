"""Access guard: password hashing, bearer tokens and the authorization gate.

Tokens are signed and timestamped with itsdangerous, the same signing
library Flask uses for its session cookie, and must be sent as
``Authorization: Bearer <token>``. ``login_required`` is the single gate every
protected route goes through: it authenticates the caller, checks the
required role and, when given, an ownership predicate over the route
arguments.
"""

import functools
import logging
from dataclasses import dataclass

import bcrypt
from flask import current_app, g, request
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from sqlalchemy.exc import IntegrityError

from errors import Conflict, Forbidden, NotFound, Unauthenticated
from extensions import db
from models import User, utcnow
from stores import CatalogStore, MembershipStore

logger = logging.getLogger(__name__)

TOKEN_SALT = 'library-access-token'


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: str


def hash_password(password):
    rounds = current_app.config.get('BCRYPT_ROUNDS', 12)
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds)).decode('utf-8')


def check_password(password, password_hash):
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user):
    return _serializer().dumps({'id': user.user_id})


def authenticate(token, members=None):
    """Resolve a bearer token to the caller's identity."""
    if not token:
        raise Unauthenticated('You are not logged in. Please provide a token')
    max_age = current_app.config.get('TOKEN_MAX_AGE_DAYS', 15) * 24 * 60 * 60
    try:
        payload = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.debug("Rejected expired token")
        raise Unauthenticated('Token has expired')
    except BadSignature:
        logger.debug("Rejected invalid token")
        raise Unauthenticated('Invalid token')

    user_id = payload.get('id') if isinstance(payload, dict) else None
    try:
        user = (members or MembershipStore()).get(user_id)
    except NotFound:
        raise Unauthenticated('User no longer exists')
    return Identity(user_id=user.user_id, role=user.role)


def bearer_token():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return None


def login_required(role=None, owner=None):
    """Gate a view on authentication, an optional role and an optional ownership predicate.

    ``owner`` is called as ``owner(identity, **view_kwargs)`` and must return a
    truthy value for the call to proceed.
    """
    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            identity = authenticate(bearer_token())
            if role and identity.role != role:
                logger.error(f"Access denied: Required role {role}, got {identity.role}")
                raise Forbidden(f'Only {role}s can perform this action')
            if owner is not None and not owner(identity, **kwargs):
                logger.error(f"Access denied: user_id={identity.user_id} does not own {kwargs}")
                raise Forbidden('You can only access your own resources')
            g.identity = identity
            return f(*args, **kwargs)
        return wrapped
    return decorator


def is_self(identity, user_id, **_):
    return identity.user_id == user_id


def owns_book(identity, book_id, **_):
    # a missing book is reported as 404 before ownership is considered
    return CatalogStore().get(book_id).owner_id == identity.user_id


def register_user(payload, members=None):
    members = members or MembershipStore()
    if members.by_email(payload.email):
        raise Conflict('email_taken')
    user = User(
        name=payload.name,
        email=payload.email,
        password=hash_password(payload.password),
        role=payload.role,
    )
    try:
        members.save(user)
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict('email_taken') from e
    logger.debug(f"User registered: {user.email} role={user.role}")
    return user


def login(email, password, members=None):
    members = members or MembershipStore()
    user = members.by_email(email)
    if not user or not check_password(password, user.password):
        logger.debug(f"Failed login for email: {email}")
        raise Unauthenticated('Incorrect email or password')
    user.last_active = utcnow()
    members.save(user)
    db.session.commit()
    return user, issue_token(user)


def update_account(user_id, payload, members=None):
    members = members or MembershipStore()
    user = members.get(user_id)
    if payload.email is not None and payload.email != user.email:
        existing = members.by_email(payload.email)
        if existing is not None and existing.user_id != user.user_id:
            raise Conflict('email_taken')
        user.email = payload.email
    if payload.name is not None:
        user.name = payload.name.strip()
    try:
        members.save(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return user


def delete_account(user_id, members=None):
    members = members or MembershipStore()
    user = members.get(user_id)
    if user.open_borrows():
        raise Conflict('books_outstanding')
    if CatalogStore().list(owner_id=user.user_id):
        raise Conflict('owns_books')
    try:
        members.delete(user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.debug(f"User deleted: user_id={user_id}")
