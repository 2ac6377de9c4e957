from datetime import datetime, timezone

from extensions import db

OPEN_STATUSES = ('active', 'overdue')


def utcnow():
    # naive UTC so values compare cleanly after a round trip through sqlite
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'user'
    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(20), nullable=False, default='reader')
    last_active = db.Column(db.DateTime, default=utcnow)
    created_at = db.Column(db.DateTime, default=utcnow)
    version = db.Column(db.Integer, nullable=False)
    borrowed_books = db.relationship(
        'BorrowedBook',
        back_populates='user',
        order_by='BorrowedBook.entry_id',
        cascade='all, delete-orphan',
    )

    __mapper_args__ = {'version_id_col': version}

    def open_borrows(self):
        return [entry for entry in self.borrowed_books if entry.status in OPEN_STATUSES]

    def find_open_borrow(self, book_id):
        return next((entry for entry in self.open_borrows() if entry.book_id == book_id), None)

    def can_borrow_more(self, limit):
        return len(self.open_borrows()) < limit

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'name': self.name,
            'email': self.email,
            'role': self.role,
            'last_active': _iso(self.last_active),
            'borrowed_count': len(self.open_borrows()),
        }


class Book(db.Model):
    __tablename__ = 'book'
    book_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    genre = db.Column(db.String(50), nullable=False)
    description = db.Column(db.String(2000), nullable=False)
    isbn = db.Column(db.String(13), unique=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('user.user_id'), nullable=False)
    stock_total = db.Column(db.Integer, nullable=False)
    stock_available = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='available')
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    version = db.Column(db.Integer, nullable=False)
    owner = db.relationship('User')
    borrow_history = db.relationship(
        'BorrowRecord',
        back_populates='book',
        order_by='BorrowRecord.record_id',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.CheckConstraint('stock_total >= 0', name='ck_book_stock_total'),
        db.CheckConstraint(
            'stock_available >= 0 AND stock_available <= stock_total',
            name='ck_book_stock_available',
        ),
    )
    __mapper_args__ = {'version_id_col': version}

    @property
    def copies_on_loan(self):
        return self.stock_total - self.stock_available

    def find_open_record(self, user_id):
        return next(
            (r for r in self.borrow_history if r.user_id == user_id and r.status in OPEN_STATUSES),
            None,
        )

    def to_dict(self, include_history=False):
        data = {
            'book_id': self.book_id,
            'title': self.title,
            'genre': self.genre,
            'description': self.description,
            'isbn': self.isbn,
            'owner_id': self.owner_id,
            'stock': {'total': self.stock_total, 'available': self.stock_available},
            'status': self.status,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if include_history:
            data['borrow_history'] = [record.to_dict() for record in self.borrow_history]
        return data


class BorrowRecord(db.Model):
    """One entry of a book's borrow history."""
    __tablename__ = 'borrow_record'
    record_id = db.Column(db.Integer, primary_key=True)
    book_id = db.Column(db.Integer, db.ForeignKey('book.book_id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.user_id', ondelete='SET NULL'))
    borrow_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    return_date = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default='active')
    book = db.relationship('Book', back_populates='borrow_history')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'user_name': self.user.name if self.user else None,
            'user_email': self.user.email if self.user else None,
            'borrow_date': _iso(self.borrow_date),
            'return_date': _iso(self.return_date),
            'status': self.status,
        }


class BorrowedBook(db.Model):
    """One entry of a user's borrowed-books list."""
    __tablename__ = 'borrowed_book'
    entry_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.user_id', ondelete='CASCADE'), nullable=False)
    book_id = db.Column(db.Integer, db.ForeignKey('book.book_id', ondelete='SET NULL'))
    borrowed_date = db.Column(db.DateTime, nullable=False, default=utcnow)
    due_date = db.Column(db.DateTime, nullable=False)
    return_date = db.Column(db.DateTime)
    status = db.Column(db.String(20), nullable=False, default='active')
    user = db.relationship('User', back_populates='borrowed_books')
    book = db.relationship('Book')

    def effective_status(self, now=None):
        """Overdue is derived at read time from the due date."""
        if self.status == 'active' and self.due_date < (now or utcnow()):
            return 'overdue'
        return self.status

    def to_dict(self, now=None):
        return {
            'book_id': self.book_id,
            'book_title': self.book.title if self.book else None,
            'borrowed_date': _iso(self.borrowed_date),
            'due_date': _iso(self.due_date),
            'return_date': _iso(self.return_date),
            'status': self.effective_status(now),
        }
