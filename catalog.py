"""Author-side catalog management.

Authors create, edit and delete the books they own; administrators can take a
book out of circulation by marking it discontinued. Stock edits keep the
copies currently on loan intact and re-derive the availability status.
"""

import logging

from sqlalchemy.exc import IntegrityError

from errors import Conflict, VersionConflict
from extensions import db
from ledger import DISCONTINUED, apply_status, derive_status
from models import Book
from stores import CatalogStore

logger = logging.getLogger(__name__)


def _commit(book_id=None):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.error(f"Integrity error saving book_id={book_id}: {e}")
        raise Conflict('isbn_taken') from e


def create_book(owner_id, payload, catalog=None):
    catalog = catalog or CatalogStore()
    if payload.isbn and catalog.by_isbn(payload.isbn):
        logger.debug(f"Duplicate ISBN: {payload.isbn}")
        raise Conflict('isbn_taken')
    book = Book(
        title=payload.title,
        genre=payload.genre,
        description=payload.description,
        isbn=payload.isbn,
        owner_id=owner_id,
        stock_total=payload.stock.total,
        stock_available=payload.stock.total,
    )
    apply_status(book)
    try:
        catalog.save(book)
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict('isbn_taken') from e
    _commit()
    logger.debug(f"Book added: {book.title} (book_id={book.book_id}) by owner_id={owner_id}")
    return book


def update_book(book_id, payload, catalog=None):
    catalog = catalog or CatalogStore()
    book = catalog.get(book_id)

    if payload.isbn is not None and payload.isbn != book.isbn:
        existing = catalog.by_isbn(payload.isbn)
        if existing is not None and existing.book_id != book.book_id:
            raise Conflict('isbn_taken')
        book.isbn = payload.isbn
    if payload.title is not None:
        book.title = payload.title
    if payload.genre is not None:
        book.genre = payload.genre
    if payload.description is not None:
        book.description = payload.description
    if payload.stock is not None:
        on_loan = book.copies_on_loan
        if payload.stock.total < on_loan:
            logger.error(f"Cannot reduce total copies below borrowed copies: {on_loan}")
            db.session.rollback()
            raise Conflict('stock_below_borrowed')
        book.stock_total = payload.stock.total
        book.stock_available = payload.stock.total - on_loan
        apply_status(book)

    try:
        catalog.save(book)
    except VersionConflict as e:
        db.session.rollback()
        raise Conflict('concurrent_update') from e
    except IntegrityError as e:
        db.session.rollback()
        raise Conflict('isbn_taken') from e
    _commit(book_id)
    logger.debug(f"Book updated: book_id={book_id}")
    return book


def delete_book(book_id, catalog=None):
    catalog = catalog or CatalogStore()
    book = catalog.get(book_id)
    if book.copies_on_loan > 0:
        logger.debug(f"Refusing to delete book_id={book_id} with {book.copies_on_loan} copies on loan")
        raise Conflict('book_on_loan')
    try:
        catalog.delete(book)
        db.session.commit()
    except VersionConflict as e:
        db.session.rollback()
        raise Conflict('concurrent_update') from e
    logger.debug(f"Book deleted: book_id={book_id}")


def set_discontinued(book_id, discontinued=True, catalog=None):
    catalog = catalog or CatalogStore()
    book = catalog.get(book_id)
    if discontinued:
        book.status = DISCONTINUED
    else:
        book.status = derive_status(book.stock_available)
    try:
        catalog.save(book)
        db.session.commit()
    except VersionConflict as e:
        db.session.rollback()
        raise Conflict('concurrent_update') from e
    logger.debug(f"Book status set: book_id={book_id} status={book.status}")
    return book


def get_book(book_id, catalog=None):
    return (catalog or CatalogStore()).get(book_id)


def list_books(genre=None, owner_id=None, catalog=None):
    books = (catalog or CatalogStore()).list(genre=genre, owner_id=owner_id)
    logger.debug(f"Fetched {len(books)} books")
    return books
