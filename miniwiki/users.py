import logging
from typing import Optional

from fastapi import Depends, Request
from passlib.exc import PasswordValueError
from passlib.hash import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_db
from .models import User


logger = logging.getLogger(__name__)


class UsernameTaken(Exception):
    def __init__(self, username: str):
        super().__init__(f"Username {username!r} is already taken")
        self.username = username


class InvalidPassword(Exception):
    pass


def build_password_hasher(rounds: int):
    return bcrypt.using(rounds=rounds)


# -------------------------
# Credential store
# -------------------------
class UserStore:
    """Lookups and inserts against the ``users`` table."""

    def __init__(self, session: AsyncSession, hasher=bcrypt):
        self.session = session
        self.hasher = hasher

    async def get_by_id(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create(self, username: str, password: str) -> User:
        if await self.get_by_username(username) is not None:
            raise UsernameTaken(username)

        try:
            password_hash = self.hasher.hash(password)
        except PasswordValueError as exc:
            # bcrypt refuses NUL bytes
            raise InvalidPassword(str(exc))
        user = User(username=username, password_hash=password_hash)
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError:
            # lost a race against a concurrent registration
            await self.session.rollback()
            raise UsernameTaken(username)
        await self.session.refresh(user)
        logger.info("User %s registered as %r", user.id, user.username)
        return user

    async def authenticate(self, username: str, password: str) -> Optional[User]:
        """Unknown username and wrong password both return None."""
        user = await self.get_by_username(username) if username else None
        if user is None:
            logger.info("Login failed for %r: unknown user", username)
            return None
        try:
            matches = self.hasher.verify(password, user.password_hash)
        except PasswordValueError:
            matches = False
        if not matches:
            logger.info("Login failed for %r: bad password", username)
            return None
        return user


async def get_user_store(request: Request, session: AsyncSession = Depends(get_db)) -> UserStore:
    yield UserStore(session, request.app.state.password_hasher)
