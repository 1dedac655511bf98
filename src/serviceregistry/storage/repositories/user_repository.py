from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select
import logging

from serviceregistry.storage.models import UserModel

logger = logging.getLogger(__name__)


class UserRepository:
    """Users are known by the username the identity provider hands us."""

    def get_by_username(self, session: Session, username: str) -> Optional[UserModel]:
        stmt = select(UserModel).where(UserModel.username == username)
        return session.scalar(stmt)

    def get_or_create(self, session: Session, username: str) -> UserModel:
        user = self.get_by_username(session, username)
        if user:
            return user

        try:
            # Savepoint, so losing the race does not roll back the caller's work
            with session.begin_nested():
                user = UserModel(username=username)
                session.add(user)
        except IntegrityError:
            logger.info(f"User '{username}' was registered concurrently")
            user = self.get_by_username(session, username)
            if user is None:
                raise
        return user
