# files_core/services/__init__.py
"""Business logic services"""
from .activity import ActivityService
from .credentials import CredentialStore, StorageCredentials
from .documents import DocumentService, DownloadedDocument
from .encryption import EncryptionService, derive_key
from .folders import FolderService, FolderSummary
from .remote_storage import RemoteFile, RemoteStorageGateway, S3Connector, S3Session
from .sync import SyncReconciler, SyncResult
from .users import UserService
