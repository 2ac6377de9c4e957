"""Catalog and membership stores.

Both stores wrap the SQLAlchemy session with the same two-call contract:
``get(id)`` returns the entity or raises ``NotFound`` and ``save(entity)``
flushes it, raising ``VersionConflict`` when another transaction updated the
row first. Stores never commit; whoever owns the unit of work does.
"""

import logging

from sqlalchemy import func
from sqlalchemy.orm.exc import StaleDataError

from errors import NotFound, VersionConflict
from extensions import db
from models import Book, User

logger = logging.getLogger(__name__)

# upper bound of a 32-bit integer primary key
MAX_ID = 2**31 - 1


class _Store:
    model = None
    entity = None

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def get(self, entity_id):
        instance = None
        if isinstance(entity_id, int) and 0 < entity_id <= MAX_ID:
            instance = self.session.get(self.model, entity_id)
        if instance is None:
            logger.debug(f"{self.entity} not found: id={entity_id}")
            raise NotFound(self.entity, entity_id)
        return instance

    def save(self, instance):
        self.session.add(instance)
        try:
            self.session.flush()
        except StaleDataError as e:
            logger.warning(f"Stale {self.entity} write rejected: {e}")
            raise VersionConflict(f'{self.entity.capitalize()} was modified concurrently') from e
        return instance

    def delete(self, instance):
        self.session.delete(instance)
        try:
            self.session.flush()
        except StaleDataError as e:
            raise VersionConflict(f'{self.entity.capitalize()} was modified concurrently') from e


class CatalogStore(_Store):
    model = Book
    entity = 'book'

    def by_isbn(self, isbn):
        return self.session.query(Book).filter_by(isbn=isbn).first()

    def list(self, genre=None, owner_id=None):
        query = self.session.query(Book)
        if genre:
            query = query.filter(Book.genre == genre)
        if owner_id is not None:
            query = query.filter(Book.owner_id == owner_id)
        return query.order_by(Book.title).all()


class MembershipStore(_Store):
    model = User
    entity = 'user'

    def by_email(self, email):
        return self.session.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
