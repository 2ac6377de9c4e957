from app import create_app
from auth import hash_password
from extensions import db
from ledger import BorrowLedger, apply_status
from models import Book, User

app = create_app()

with app.app_context():
    # Reset the database
    db.drop_all()
    db.create_all()
    print("🔄 Database reset")

    # Insert Users
    users = [
        {"name": "Admin User", "email": "admin@example.com", "password": "Admin123!", "role": "admin"},
        {"name": "Author One", "email": "author1@example.com", "password": "Author123!", "role": "author"},
        {"name": "Reader One", "email": "reader1@example.com", "password": "Reader123!", "role": "reader"},
        {"name": "Reader Two", "email": "reader2@example.com", "password": "Reader123!", "role": "reader"}
    ]

    for u in users:
        user = User(name=u["name"], email=u["email"], password=hash_password(u["password"]), role=u["role"])
        db.session.add(user)

    db.session.commit()
    print("✅ Users inserted")

    author = User.query.filter_by(email="author1@example.com").first()

    # Insert Books
    books = [
        {"title": "Python Programming", "genre": "Technology", "isbn": "9781590282410", "total": 5,
         "description": "An introduction to computer science using Python."},
        {"title": "Flask Web Development", "genre": "Technology", "isbn": "9781491991732", "total": 3,
         "description": "Developing web applications with Python and Flask."},
        {"title": "Clean Code", "genre": "Business", "isbn": "9780132350884", "total": 2,
         "description": "A handbook of agile software craftsmanship."}
    ]

    for b in books:
        book = Book(
            title=b["title"],
            genre=b["genre"],
            description=b["description"],
            isbn=b["isbn"],
            owner_id=author.user_id,
            stock_total=b["total"],
            stock_available=b["total"]
        )
        apply_status(book)
        db.session.add(book)

    db.session.commit()
    print("✅ Books inserted")

    # Borrow a sample book through the ledger
    reader = User.query.filter_by(email="reader1@example.com").first()
    book = Book.query.filter_by(title="Python Programming").first()

    if reader and book and book.stock_available > 0:
        receipt = BorrowLedger.from_config(app.config).borrow(reader.user_id, book.book_id)
        print(f"✅ Borrow recorded: {reader.name} borrowed '{receipt.book_title}', due {receipt.due_date:%Y-%m-%d}")
    else:
        print("⚠️ Could not record borrow (missing user/book or no available copies)")
