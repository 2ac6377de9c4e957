import pytest

from ledger import apply_status, derive_status
from models import Book


@pytest.mark.parametrize('available,expected', [
    (0, 'out_of_stock'),
    (1, 'limited'),
    (3, 'limited'),
    (4, 'available'),
    (250, 'available'),
])
def test_derive_status(available, expected):
    assert derive_status(available) == expected


def test_derive_status_rejects_negative_counts():
    with pytest.raises(ValueError):
        derive_status(-1)


def test_apply_status_follows_stock():
    book = Book(stock_total=5, stock_available=2, status='available')
    assert apply_status(book) == 'limited'
    book.stock_available = 0
    assert apply_status(book) == 'out_of_stock'


def test_apply_status_keeps_discontinued():
    book = Book(stock_total=5, stock_available=5, status='discontinued')
    assert apply_status(book) == 'discontinued'
    assert book.status == 'discontinued'
