from extensions import db
from tests.conftest import PASSWORD


def test_home(client):
    response = client.get('/')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'success'


def test_health(client):
    response = client.get('/api/health')
    assert response.status_code == 200
    assert response.get_json()['database'] == 'ok'


def test_unknown_route_uses_fail_shape(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json()['status'] == 'fail'


# Users

def test_signup_returns_token(client):
    response = client.post('/api/users/signup', json={
        'name': 'Grace', 'email': 'grace@library.org', 'password': 'Hopper12!', 'role': 'reader',
    })
    assert response.status_code == 201
    body = response.get_json()
    assert body['token']
    assert body['data']['user']['email'] == 'grace@library.org'
    assert 'password' not in body['data']['user']

    validate = client.get('/api/users/session/validate',
                          headers={'Authorization': f"Bearer {body['token']}"})
    assert validate.status_code == 200
    assert validate.get_json()['data']['user']['name'] == 'Grace'


def test_signup_rejects_weak_password(client):
    response = client.post('/api/users/signup', json={
        'name': 'Grace', 'email': 'grace@library.org', 'password': 'password',
    })
    assert response.status_code == 400
    body = response.get_json()
    assert body['status'] == 'fail'
    assert body['message'].startswith('password')


def test_signup_rejects_bad_email(client):
    response = client.post('/api/users/signup', json={
        'name': 'Grace', 'email': 'not-an-email', 'password': 'Hopper12!',
    })
    assert response.status_code == 400
    assert 'valid email' in response.get_json()['message']


def test_signup_duplicate_email(client, reader):
    response = client.post('/api/users/signup', json={
        'name': 'Twin', 'email': reader.email, 'password': 'Hopper12!',
    })
    assert response.status_code == 409
    assert response.get_json()['reason'] == 'email_taken'


def test_login(client, reader):
    response = client.post('/api/users/login', json={'email': reader.email, 'password': PASSWORD})
    assert response.status_code == 200
    assert response.get_json()['token']


def test_login_missing_fields(client):
    response = client.post('/api/users/login', json={'email': 'a@library.org'})
    assert response.status_code == 400
    assert response.get_json()['message'] == 'Please provide email and password'


def test_login_bad_credentials(client, reader):
    response = client.post('/api/users/login', json={'email': reader.email, 'password': 'Wrong123!'})
    assert response.status_code == 401


def test_update_own_account(client, reader, auth_headers):
    response = client.put(f'/api/users/update/{reader.user_id}', json={'name': 'Renamed'},
                          headers=auth_headers(reader))
    assert response.status_code == 200
    assert response.get_json()['data']['user']['name'] == 'Renamed'


def test_cannot_update_someone_else(client, make_user, auth_headers):
    me, other = make_user('reader'), make_user('reader')
    response = client.put(f'/api/users/update/{other.user_id}', json={'name': 'Hijacked'},
                          headers=auth_headers(me))
    assert response.status_code == 403


def test_delete_account_with_borrowed_books(client, ledger, reader, make_book, auth_headers):
    book = make_book()
    ledger.borrow(reader.user_id, book.book_id)
    response = client.delete(f'/api/users/delete/{reader.user_id}', headers=auth_headers(reader))
    assert response.status_code == 409
    assert response.get_json()['reason'] == 'books_outstanding'


def test_delete_account(client, reader, auth_headers):
    headers = auth_headers(reader)
    response = client.delete(f'/api/users/delete/{reader.user_id}', headers=headers)
    assert response.status_code == 204
    again = client.get('/api/users/session/validate', headers=headers)
    assert again.status_code == 401


# Borrowing

def test_borrow_requires_token(client, make_book):
    book = make_book()
    response = client.post(f'/api/borrow/borrow/{book.book_id}')
    assert response.status_code == 401
    assert response.get_json() == {'status': 'fail', 'message': 'You are not logged in. Please provide a token'}


def test_borrow_rejects_invalid_token(client, make_book):
    book = make_book()
    response = client.post(f'/api/borrow/borrow/{book.book_id}', headers={'Authorization': 'Bearer nope'})
    assert response.status_code == 401
    assert response.get_json()['message'] == 'Invalid token'


def test_only_readers_borrow(client, author, make_book, auth_headers):
    book = make_book()
    response = client.post(f'/api/borrow/borrow/{book.book_id}', headers=auth_headers(author))
    assert response.status_code == 403
    db.session.refresh(book)
    assert book.stock_available == book.stock_total


def test_borrow_and_return(client, reader, make_book, auth_headers):
    book = make_book(total=2, title='Middlemarch')
    headers = auth_headers(reader)

    response = client.post(f'/api/borrow/borrow/{book.book_id}', headers=headers)
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['bookTitle'] == 'Middlemarch'
    assert data['dueDate']
    db.session.refresh(book)
    assert book.stock_available == 1

    response = client.post(f'/api/borrow/return/{book.book_id}', headers=headers)
    assert response.status_code == 200
    assert response.get_json()['message'] == 'Book returned successfully'
    db.session.refresh(book)
    assert book.stock_available == 2


def test_borrow_missing_book(client, reader, auth_headers):
    response = client.post('/api/borrow/borrow/4242', headers=auth_headers(reader))
    assert response.status_code == 404
    assert response.get_json() == {'status': 'fail', 'message': 'Book not found'}


def test_borrow_conflicts_use_409(client, make_user, make_book, auth_headers):
    book = make_book(total=1)
    first, second = make_user('reader'), make_user('reader')
    assert client.post(f'/api/borrow/borrow/{book.book_id}', headers=auth_headers(first)).status_code == 200

    again = client.post(f'/api/borrow/borrow/{book.book_id}', headers=auth_headers(second))

    assert again.status_code == 409
    assert again.get_json()['reason'] == 'out_of_stock'


def test_return_not_borrowed(client, reader, make_book, auth_headers):
    book = make_book()
    response = client.post(f'/api/borrow/return/{book.book_id}', headers=auth_headers(reader))
    assert response.status_code == 409
    assert response.get_json()['reason'] == 'not_borrowed'


def test_my_books(client, reader, make_book, auth_headers):
    book = make_book(title='Emma')
    headers = auth_headers(reader)
    client.post(f'/api/borrow/borrow/{book.book_id}', headers=headers)

    response = client.get('/api/borrow/my-books', headers=headers)

    assert response.status_code == 200
    books = response.get_json()['data']['books']
    assert [(b['book_title'], b['status']) for b in books] == [('Emma', 'active')]


def test_reader_routes_take_book_id_in_body(client, reader, make_book, auth_headers):
    book = make_book(total=4)
    headers = auth_headers(reader)

    response = client.post('/api/reader/books/borrow', json={'bookId': book.book_id}, headers=headers)
    assert response.status_code == 200
    assert response.get_json()['data']['bookId'] == book.book_id

    listing = client.get(f'/api/reader/books/{reader.user_id}', headers=headers)
    assert listing.get_json()['results'] == 1

    response = client.post('/api/reader/books/return', json={'bookId': book.book_id}, headers=headers)
    assert response.status_code == 200
    db.session.refresh(book)
    assert book.stock_available == 4


def test_reader_borrow_validates_body(client, reader, auth_headers):
    response = client.post('/api/reader/books/borrow', json={}, headers=auth_headers(reader))
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('bookId')


def test_reader_can_only_list_own_books(client, make_user, auth_headers):
    me, other = make_user('reader'), make_user('reader')
    response = client.get(f'/api/reader/books/{other.user_id}', headers=auth_headers(me))
    assert response.status_code == 403
    assert response.get_json()['status'] == 'fail'


def test_signup_cannot_claim_admin(client):
    response = client.post('/api/users/signup', json={
        'name': 'Mallory', 'email': 'mallory@library.org', 'password': 'Hopper12!', 'role': 'admin',
    })
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('role')


def test_login_rejects_non_object_body(client):
    for body in ([1, 2], 'email'):
        response = client.post('/api/users/login', json=body)
        assert response.status_code == 400
        assert response.get_json()['message'] == 'Please provide email and password'


def test_oversized_book_id_in_path(client, reader, auth_headers):
    response = client.post(f'/api/borrow/borrow/{10**20}', headers=auth_headers(reader))
    assert response.status_code == 404
    assert response.get_json()['message'] == 'Book not found'


def test_oversized_book_id_in_body(client, reader, auth_headers):
    response = client.post('/api/reader/books/borrow', json={'bookId': 10**20}, headers=auth_headers(reader))
    assert response.status_code == 400
    assert response.get_json()['message'].startswith('bookId')
