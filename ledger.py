"""Borrow ledger: the borrow/return lifecycle and availability accounting.

Every borrow or return touches two records, the book (stock counts, status
and borrow history) and the user (borrowed-books list). Both writes happen
inside one session transaction; the ``version`` columns on ``book`` and
``user`` turn a concurrent update of either row into a ``VersionConflict``,
in which case the whole unit of work is rolled back and replayed.
"""

import functools
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from errors import Conflict, VersionConflict
from extensions import db
from models import BorrowedBook, BorrowRecord, utcnow
from stores import CatalogStore, MembershipStore

logger = logging.getLogger(__name__)

AVAILABLE = 'available'
LIMITED = 'limited'
OUT_OF_STOCK = 'out_of_stock'
DISCONTINUED = 'discontinued'

LIMITED_THRESHOLD = 3
DEFAULT_BORROW_LIMIT = 5
DEFAULT_LOAN_PERIOD_DAYS = 14
DEFAULT_MAX_ATTEMPTS = 3


def derive_status(available):
    """Map an available-copy count to the book's availability status."""
    if available < 0:
        raise ValueError(f'available copies cannot be negative: {available}')
    if available == 0:
        return OUT_OF_STOCK
    if available <= LIMITED_THRESHOLD:
        return LIMITED
    return AVAILABLE


def apply_status(book):
    # discontinued is set by an administrator and survives stock changes
    if book.status != DISCONTINUED:
        book.status = derive_status(book.stock_available)
    return book.status


@dataclass
class BorrowReceipt:
    book_id: int
    book_title: str
    due_date: datetime

    def to_dict(self):
        return {'bookId': self.book_id, 'bookTitle': self.book_title, 'dueDate': self.due_date.isoformat()}


@dataclass
class ReturnReceipt:
    book_id: int
    book_title: str
    returned_at: datetime

    def to_dict(self):
        return {'bookId': self.book_id, 'bookTitle': self.book_title, 'returnedAt': self.returned_at.isoformat()}


def transactional(func):
    """Run a ledger operation as a single unit of work.

    The session is committed when the operation returns and rolled back when it
    raises. Stale version checks and dropped connections are replayed up to
    ``max_attempts`` times; an exhausted version conflict surfaces as
    ``Conflict('concurrent_update')``, an exhausted connection error is re-raised.
    """
    @functools.wraps(func)
    def wrapper(self, *args, **kwargs):
        attempts = 0
        while True:
            try:
                result = func(self, *args, **kwargs)
                self.session.commit()
                return result
            except (VersionConflict, StaleDataError, OperationalError) as e:
                self.session.rollback()
                attempts += 1
                if attempts >= self.max_attempts:
                    logger.error(f"{func.__name__} gave up after {attempts} attempts: {e}")
                    if isinstance(e, OperationalError):
                        raise
                    raise Conflict('concurrent_update') from e
                logger.debug(f"Retrying {func.__name__} ({attempts}/{self.max_attempts})")
                if self.retry_delay:
                    time.sleep(self.retry_delay)
            except Exception:
                self.session.rollback()
                raise
    return wrapper


class BorrowLedger:
    def __init__(self, catalog=None, members=None, borrow_limit=DEFAULT_BORROW_LIMIT,
                 loan_period_days=DEFAULT_LOAN_PERIOD_DAYS, max_attempts=DEFAULT_MAX_ATTEMPTS,
                 retry_delay=0.05, clock=utcnow):
        self.catalog = catalog or CatalogStore()
        self.members = members or MembershipStore()
        self.borrow_limit = borrow_limit
        self.loan_period = timedelta(days=loan_period_days)
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self.clock = clock

    @classmethod
    def from_config(cls, config, **kwargs):
        params = {
            'borrow_limit': config.get('BORROW_LIMIT', DEFAULT_BORROW_LIMIT),
            'loan_period_days': config.get('LOAN_PERIOD_DAYS', DEFAULT_LOAN_PERIOD_DAYS),
            'max_attempts': config.get('LEDGER_MAX_ATTEMPTS', DEFAULT_MAX_ATTEMPTS),
        }
        params.update(kwargs)
        return cls(**params)

    @property
    def session(self):
        return db.session

    @transactional
    def borrow(self, user_id, book_id):
        book = self.catalog.get(book_id)
        user = self.members.get(user_id)

        if book.stock_available < 1:
            logger.debug(f"Borrow rejected, out of stock: book_id={book_id} user_id={user_id}")
            raise Conflict('out_of_stock')
        if book.status == DISCONTINUED:
            logger.debug(f"Borrow rejected, discontinued: book_id={book_id} user_id={user_id}")
            raise Conflict('discontinued')
        if user.find_open_borrow(book.book_id) is not None:
            logger.debug(f"Borrow rejected, already borrowed: book_id={book_id} user_id={user_id}")
            raise Conflict('already_borrowed')
        if not user.can_borrow_more(self.borrow_limit):
            logger.debug(f"Borrow rejected, limit of {self.borrow_limit} reached: user_id={user_id}")
            raise Conflict('limit_reached', f'You have reached the maximum limit of borrowed books ({self.borrow_limit})')

        now = self.clock()
        due_date = now + self.loan_period

        book.borrow_history.append(BorrowRecord(user_id=user.user_id, borrow_date=now, status='active'))
        book.stock_available -= 1
        apply_status(book)
        user.borrowed_books.append(
            BorrowedBook(book_id=book.book_id, borrowed_date=now, due_date=due_date, status='active')
        )
        # bumps the user row version so concurrent borrows by one user serialize
        user.last_active = now

        self.catalog.save(book)
        self.members.save(user)
        logger.debug(f"Book borrowed: book_id={book.book_id} by user_id={user.user_id}, "
                     f"available={book.stock_available} status={book.status}")
        return BorrowReceipt(book_id=book.book_id, book_title=book.title, due_date=due_date)

    @transactional
    def return_book(self, user_id, book_id):
        book = self.catalog.get(book_id)
        user = self.members.get(user_id)

        entry = user.find_open_borrow(book.book_id)
        if entry is None:
            logger.debug(f"Return rejected, not borrowed: book_id={book_id} user_id={user_id}")
            raise Conflict('not_borrowed')

        now = self.clock()
        record = book.find_open_record(user.user_id)
        if record is None:
            logger.warning(f"No open history entry on book_id={book_id} for user_id={user_id}")
        else:
            record.status = 'returned'
            record.return_date = now
        entry.status = 'returned'
        entry.return_date = now

        book.stock_available = min(book.stock_total, book.stock_available + 1)
        apply_status(book)
        user.last_active = now

        self.catalog.save(book)
        self.members.save(user)
        logger.debug(f"Book returned: book_id={book.book_id} by user_id={user.user_id}, "
                     f"available={book.stock_available} status={book.status}")
        return ReturnReceipt(book_id=book.book_id, book_title=book.title, returned_at=now)

    def borrowed_books(self, user_id, include_returned=False):
        user = self.members.get(user_id)
        now = self.clock()
        entries = user.borrowed_books if include_returned else user.open_borrows()
        return [entry.to_dict(now) for entry in entries]

    @transactional
    def sweep_overdue(self):
        """Persist the overdue status on every active borrow past its due date."""
        now = self.clock()
        entries = (
            self.session.query(BorrowedBook)
            .filter(BorrowedBook.status == 'active', BorrowedBook.due_date < now)
            .all()
        )
        for entry in entries:
            entry.status = 'overdue'
            book = entry.book
            if book is not None:
                record = book.find_open_record(entry.user_id)
                if record is not None:
                    record.status = 'overdue'
            entry.user.last_active = now
            self.members.save(entry.user)
        logger.debug(f"Overdue sweep completed: {len(entries)} borrows updated")
        return len(entries)
