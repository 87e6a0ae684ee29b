# modules/accounts/__init__.py

from .service import AccountService

__all__ = [
    "AccountService",
]
