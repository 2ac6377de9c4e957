"""Error taxonomy shared by the stores, the ledger, the access guard and the routes.

Each error carries the HTTP status the transport layer answers with, so a
single Flask error handler can render all of them as
``{"status": "fail", "message": ...}``.
"""


class LibraryError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'status': 'fail', 'message': self.message}


class ValidationError(LibraryError):
    status_code = 400


class Unauthenticated(LibraryError):
    status_code = 401


class Forbidden(LibraryError):
    status_code = 403


class NotFound(LibraryError):
    status_code = 404

    def __init__(self, entity, entity_id=None):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f'{entity.capitalize()} not found')


class Conflict(LibraryError):
    """A business rule rejected the request; ``reason`` is a stable code."""

    status_code = 409

    MESSAGES = {
        'out_of_stock': 'Book is out of stock',
        'discontinued': 'Book has been discontinued',
        'already_borrowed': 'You have already borrowed this book',
        'limit_reached': 'You have reached the maximum limit of borrowed books',
        'not_borrowed': 'You have not borrowed this book',
        'concurrent_update': 'The record was modified concurrently, please retry',
        'email_taken': 'Email already exists',
        'isbn_taken': 'A book with this ISBN already exists',
        'stock_below_borrowed': 'Cannot reduce total copies below borrowed copies',
        'book_on_loan': 'Book has copies on loan',
        'books_outstanding': 'Account still has borrowed books',
        'owns_books': 'Delete your books before deleting the account',
    }

    def __init__(self, reason, message=None):
        self.reason = reason
        super().__init__(message or self.MESSAGES.get(reason, reason))

    def to_dict(self):
        payload = super().to_dict()
        payload['reason'] = self.reason
        return payload


class VersionConflict(LibraryError):
    """Raised by a store when an optimistic version check fails on flush."""

    status_code = 409
