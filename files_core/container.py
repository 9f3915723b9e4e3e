# files_core/container.py
"""Explicit wiring of the engine and services"""
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

from .config import Settings
from .database import create_engine, create_session_factory, init_models
from .services import (
    ActivityService,
    CredentialStore,
    DocumentService,
    EncryptionService,
    FolderService,
    RemoteStorageGateway,
    S3Connector,
    S3Session,
    StorageCredentials,
    SyncReconciler,
    UserService,
    derive_key,
)


@dataclass
class Container:
    settings: Settings
    engine: AsyncEngine
    session_factory: sessionmaker
    activity: ActivityService
    encryption: EncryptionService
    credentials: CredentialStore
    gateway: RemoteStorageGateway
    reconciler: SyncReconciler
    users: UserService
    documents: DocumentService
    folders: FolderService

    async def init_models(self):
        await init_models(self.engine)

    async def aclose(self):
        """Close cached storage sessions and dispose of the engine"""
        await self.gateway.aclose()
        await self.engine.dispose()


def build_container(
    settings: Settings,
    connector: Optional[Callable[[StorageCredentials], S3Session]] = None,
) -> Container:
    """Assemble every service once; pass a connector to swap the storage client"""
    engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    session_factory = create_session_factory(engine)

    activity = ActivityService(session_factory)
    encryption = EncryptionService(derive_key(settings.ENCRYPTION_SECRET_KEY, settings.SECRET_KEY))
    credentials = CredentialStore(session_factory, encryption, activity)

    default_credentials = None
    if settings.has_default_storage_credentials:
        default_credentials = StorageCredentials(settings.STORAGE_EMAIL, settings.STORAGE_PASSWORD)

    gateway = RemoteStorageGateway(
        connector or S3Connector(
            bucket=settings.STORAGE_BUCKET,
            endpoint_url=settings.STORAGE_ENDPOINT_URL,
            region=settings.STORAGE_REGION,
            connect_timeout=settings.STORAGE_CONNECT_TIMEOUT,
            read_timeout=settings.STORAGE_READ_TIMEOUT,
        ),
        credentials=credentials,
        default_credentials=default_credentials,
    )
    reconciler = SyncReconciler(session_factory, gateway, activity)

    return Container(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        activity=activity,
        encryption=encryption,
        credentials=credentials,
        gateway=gateway,
        reconciler=reconciler,
        users=UserService(session_factory, activity, settings.BCRYPT_ROUNDS),
        documents=DocumentService(
            session_factory, gateway, activity, reconciler, url_expiry=settings.URL_EXPIRY_SECONDS
        ),
        folders=FolderService(session_factory, activity, gateway),
    )
