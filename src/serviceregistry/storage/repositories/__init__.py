from .base import RevisionStore
from .revision_repository import RevisionRepository
from .user_repository import UserRepository

__all__ = [
    "RevisionStore",
    "RevisionRepository",
    "UserRepository",
]
