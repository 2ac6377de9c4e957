import re
from typing import Literal, Optional, get_args

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from errors import ValidationError
from stores import MAX_ID

Genre = Literal[
    'Fiction', 'Non-Fiction', 'Science', 'Technology', 'History',
    'Biography', 'Mystery', 'Romance', 'Fantasy', 'Science Fiction',
    'Horror', 'Thriller', 'Poetry', 'Drama', 'Business', 'Self-Help',
    'Travel', 'Other',
]
GENRES = get_args(Genre)
# admins are provisioned out of band, never through signup
SignupRole = Literal['reader', 'author']

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
ISBN_RE = re.compile(r'^(?:\d{10}|\d{13})$')


def _check_email(value):
    value = value.strip().lower()
    if not EMAIL_RE.match(value):
        raise ValueError('Please provide a valid email')
    return value


class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    email: str
    password: str = Field(..., min_length=8)
    role: SignupRole = 'reader'

    @field_validator('name')
    @classmethod
    def strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError('Please provide your name')
        return value

    @field_validator('email')
    @classmethod
    def valid_email(cls, value):
        return _check_email(value)

    @field_validator('password')
    @classmethod
    def strong_password(cls, value):
        if not (re.search(r'[A-Z]', value) and re.search(r'[a-z]', value)
                and re.search(r'\d', value) and re.search(r'[!@#$%^&*]', value)):
            raise ValueError('Password must contain at least one uppercase letter, one lowercase letter, '
                             'one number, and one special character')
        return value


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class AccountUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[str] = None

    @field_validator('email')
    @classmethod
    def valid_email(cls, value):
        return _check_email(value) if value is not None else value


class StockRequest(BaseModel):
    total: int = Field(..., ge=0)


class BookCreateRequest(BaseModel):
    title: str = Field(..., min_length=2, max_length=100)
    genre: Genre
    description: str = Field(..., min_length=1, max_length=2000)
    isbn: Optional[str] = None
    stock: StockRequest

    @field_validator('title', mode='before')
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('isbn')
    @classmethod
    def valid_isbn(cls, value):
        if value is not None and not ISBN_RE.match(value):
            raise ValueError('ISBN must be either 10 or 13 digits')
        return value


class BookUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=2, max_length=100)
    genre: Optional[Genre] = None
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    isbn: Optional[str] = None
    stock: Optional[StockRequest] = None

    @field_validator('title', mode='before')
    @classmethod
    def strip_title(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator('isbn')
    @classmethod
    def valid_isbn(cls, value):
        if value is not None and not ISBN_RE.match(value):
            raise ValueError('ISBN must be either 10 or 13 digits')
        return value


class BorrowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    book_id: int = Field(..., alias='bookId', ge=1, le=MAX_ID)


class DiscontinueRequest(BaseModel):
    discontinued: bool = True


def parse(schema, data):
    """Validate a request body against ``schema`` or raise ValidationError."""
    try:
        return schema.model_validate(data if isinstance(data, dict) else {})
    except pydantic.ValidationError as e:
        error = e.errors()[0]
        field = '.'.join(str(part) for part in error['loc']) or 'body'
        message = error['msg']
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        raise ValidationError(f'{field}: {message}') from e
