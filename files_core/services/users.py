# files_core/services/users.py
import logging
from typing import List, Optional, Tuple

from passlib.context import CryptContext
from sqlalchemy import select, func, delete
from sqlalchemy.orm import sessionmaker

from ..exceptions import DuplicateEntity, EntityNotFound, ValidationFailed
from ..models.database import Credential, Document, Folder, User
from ..models.schemas import UserCreate, UserUpdate
from .activity import ActivityService

logger = logging.getLogger(__name__)


class UserService:
    """Handles user accounts and password checks"""

    def __init__(self, session_factory: sessionmaker, activity: ActivityService, bcrypt_rounds: int = 10):
        self._session_factory = session_factory
        self._activity = activity
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds)

    def get_password_hash(self, password: str) -> str:
        return self.pwd_context.hash(password)

    async def _email_taken(self, db, email: str, exclude_id=None) -> bool:
        query = select(User.id).where(User.email == email)
        if exclude_id:
            query = query.where(User.id != exclude_id)
        return (await db.execute(query)).first() is not None

    async def create(self, data: UserCreate) -> User:
        async with self._session_factory() as db:
            if await self._email_taken(db, data.email):
                raise DuplicateEntity(f"A user with email {data.email} already exists")

            user = User(
                email=data.email,
                name=data.name,
                password_hash=self.get_password_hash(data.password),
            )
            db.add(user)
            await db.commit()

        await self._activity.log(
            action="USER_CREATE",
            entity="USER",
            entity_id=user.id,
            user_id=user.id,
            details=f"User created: {user.email}",
        )
        return user

    async def get(self, user_id) -> Optional[User]:
        async with self._session_factory() as db:
            return await db.get(User, user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        async with self._session_factory() as db:
            result = await db.execute(select(User).where(User.email == email))
            return result.scalar_one_or_none()

    async def resolve(self, user_id=None, email: str = None) -> User:
        """Look a user up by id or email, raising EntityNotFound"""
        if not user_id and not email:
            raise ValidationFailed("id or email is required")
        user = await self.get(user_id) if user_id else await self.get_by_email(email)
        if not user:
            raise EntityNotFound(f"User not found: {user_id or email}")
        return user

    async def list(self, skip: int = 0, take: int = 20) -> List[Tuple[User, int]]:
        """Users with their document counts, newest first"""
        async with self._session_factory() as db:
            result = await db.execute(
                select(User, func.count(Document.id))
                .outerjoin(Document, Document.owner_id == User.id)
                .group_by(User.id)
                .order_by(User.created_at.desc())
                .offset(skip)
                .limit(take)
            )
            return [(user, count) for user, count in result.all()]

    async def count_documents(self, user_id) -> int:
        async with self._session_factory() as db:
            return await db.scalar(select(func.count(Document.id)).where(Document.owner_id == user_id)) or 0

    async def update(self, user_id, data: UserUpdate) -> User:
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            raise ValidationFailed("No changes provided")

        async with self._session_factory() as db:
            user = await db.get(User, user_id)
            if not user:
                raise EntityNotFound(f"User {user_id} not found")

            if "email" in changes and await self._email_taken(db, changes["email"], exclude_id=user.id):
                raise DuplicateEntity(f"A user with email {changes['email']} already exists")

            if "name" in changes:
                user.name = changes["name"]
            if "email" in changes:
                user.email = changes["email"]
            if "password" in changes:
                user.password_hash = self.get_password_hash(changes["password"])
            await db.commit()

        await self._activity.log(
            action="USER_UPDATE",
            entity="USER",
            entity_id=user.id,
            user_id=user.id,
            details=f"User updated: {', '.join(sorted(changes))}",
        )
        return user

    async def delete(self, user_id):
        """Delete a user together with their documents, folders and storage credentials"""
        async with self._session_factory() as db:
            user = await db.get(User, user_id)
            if not user:
                raise EntityNotFound(f"User {user_id} not found")
            email = user.email
        document_count = await self.count_documents(user_id)

        await self._activity.log(
            action="USER_DELETE",
            entity="USER",
            entity_id=user_id,
            details=f"User deleted: {email} ({document_count} documents deleted)",
        )

        async with self._session_factory() as db:
            await db.execute(delete(Document).where(Document.owner_id == user_id))
            await db.execute(delete(Folder).where(Folder.owner_id == user_id))
            await db.execute(delete(Credential).where(Credential.user_id == user_id))
            await db.execute(delete(User).where(User.id == user_id))
            await db.commit()
        logger.info("Deleted user %s and %d documents", email, document_count)
        return document_count

    async def verify_password(self, email: str, password: str) -> Optional[User]:
        """Return the user when the password matches, else None"""
        user = await self.get_by_email(email)
        if not user or not self.pwd_context.verify(password, user.password_hash):
            return None

        await self._activity.log(
            action="USER_LOGIN",
            entity="USER",
            entity_id=user.id,
            user_id=user.id,
            details=f"Successful login: {user.email}",
        )
        return user
