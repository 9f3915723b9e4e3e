# files_core/services/credentials.py
"""Per-user remote storage credentials, encrypted at rest"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..exceptions import EntityNotFound
from ..models.database import Credential
from ..models.schemas import CredentialView
from .activity import ActivityService
from .encryption import EncryptionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageCredentials:
    email: str
    password: str


class CredentialStore:
    """Stores one remote storage credential set per user"""

    def __init__(
        self,
        session_factory: sessionmaker,
        encryption: EncryptionService,
        activity: ActivityService,
    ):
        self._session_factory = session_factory
        self._encryption = encryption
        self._activity = activity

    async def _find(self, db, user_id) -> Optional[Credential]:
        result = await db.execute(select(Credential).where(Credential.user_id == user_id))
        return result.scalar_one_or_none()

    def _view(self, record: Credential, email: str) -> CredentialView:
        return CredentialView(
            id=record.id,
            user_id=record.user_id,
            email=email,
            is_active=record.is_active,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    async def upsert(self, user_id, email: str, password: str, active: bool = True) -> CredentialView:
        """Create or replace the user's credentials. The password is never returned."""
        encrypted_email = self._encryption.encrypt(email)
        encrypted_password = self._encryption.encrypt(password)

        async with self._session_factory() as db:
            record = await self._find(db, user_id)
            if record:
                record.email = encrypted_email
                record.password = encrypted_password
                record.is_active = active
                record.updated_at = datetime.utcnow()
            else:
                record = Credential(
                    user_id=user_id,
                    email=encrypted_email,
                    password=encrypted_password,
                    is_active=active,
                )
                db.add(record)
            await db.commit()

        await self._activity.log(
            action="CREDENTIAL_UPSERT",
            entity="CREDENTIAL",
            entity_id=record.id,
            user_id=user_id,
            details=f"Storage credentials saved ({'active' if active else 'inactive'})",
        )
        return self._view(record, email)

    async def get(self, user_id) -> Optional[CredentialView]:
        """Return the credentials for display, or None if absent or unreadable"""
        async with self._session_factory() as db:
            record = await self._find(db, user_id)

        if not record:
            return None

        try:
            email = self._encryption.decrypt(record.email)
        except ValueError as e:
            logger.error("Could not decrypt storage credentials for user %s: %s", user_id, e)
            return None
        return self._view(record, email)

    async def get_credentials_for_use(self, user_id) -> Optional[StorageCredentials]:
        """Decrypted credentials for the gateway; None when no active set exists"""
        async with self._session_factory() as db:
            result = await db.execute(
                select(Credential).where(
                    Credential.user_id == user_id,
                    Credential.is_active.is_(True),
                )
            )
            record = result.scalar_one_or_none()

        if not record:
            return None

        try:
            return StorageCredentials(
                email=self._encryption.decrypt(record.email),
                password=self._encryption.decrypt(record.password),
            )
        except ValueError as e:
            logger.error("Could not decrypt storage credentials for user %s: %s", user_id, e)
            return None

    async def has_active(self, user_id) -> bool:
        async with self._session_factory() as db:
            record = await self._find(db, user_id)
        return bool(record and record.is_active)

    async def toggle_active(self, user_id, active: bool) -> Optional[CredentialView]:
        async with self._session_factory() as db:
            record = await self._find(db, user_id)
            if not record:
                raise EntityNotFound(f"No storage credentials configured for user {user_id}")
            record.is_active = active
            record.updated_at = datetime.utcnow()
            await db.commit()

        await self._activity.log(
            action="CREDENTIAL_TOGGLE",
            entity="CREDENTIAL",
            entity_id=record.id,
            user_id=user_id,
            details=f"Storage credentials {'enabled' if active else 'disabled'}",
        )

        try:
            email = self._encryption.decrypt(record.email)
        except ValueError as e:
            logger.error("Could not decrypt storage credentials for user %s: %s", user_id, e)
            return None
        return self._view(record, email)

    async def delete(self, user_id):
        async with self._session_factory() as db:
            record = await self._find(db, user_id)
            if not record:
                raise EntityNotFound(f"No storage credentials configured for user {user_id}")
            record_id = record.id
            await db.delete(record)
            await db.commit()

        await self._activity.log(
            action="CREDENTIAL_DELETE",
            entity="CREDENTIAL",
            entity_id=record_id,
            user_id=user_id,
            details="Storage credentials removed",
        )
