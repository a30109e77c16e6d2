"""
API Routes for ReadCommons

Route modules:
- books: Book catalogue CRUD and search
- reviews: Reviews per book, owner-only edits
- reading_lists: Reading lists and their books
- comments: Public comments
- users: Registration, activation, password reset, profiles
- tokens: Authentication, activation and password-reset tokens
"""

from readcommons.api.routes.books import router as books_router
from readcommons.api.routes.comments import router as comments_router
from readcommons.api.routes.reading_lists import router as reading_lists_router
from readcommons.api.routes.reviews import router as reviews_router
from readcommons.api.routes.tokens import router as tokens_router
from readcommons.api.routes.users import router as users_router

__all__ = [
    "books_router",
    "reviews_router",
    "reading_lists_router",
    "comments_router",
    "users_router",
    "tokens_router",
]
