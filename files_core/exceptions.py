# files_core/exceptions.py
"""
Exceptions raised by Files Core services.
"""


class FilesCoreError(Exception):
    """Base exception for Files Core operations."""


class ValidationFailed(FilesCoreError):
    """Raised when a required field is missing or invalid."""


class EntityNotFound(FilesCoreError):
    """Raised when a record cannot be found by id, name or email."""


class OwnerNotFound(EntityNotFound):
    """Raised when a document owner does not resolve to a user."""


class DuplicateEntity(FilesCoreError):
    """Raised when a unique field is already taken."""


class InvalidOperation(FilesCoreError):
    """Raised when an operation would break an invariant (cycles, non-empty deletes)."""


class RemoteStorageError(FilesCoreError):
    """Base exception for remote object storage failures."""


class CredentialsMissing(RemoteStorageError):
    """Raised when neither per-user nor default storage credentials are configured."""


class ConnectionFailed(RemoteStorageError):
    """Raised when a storage session cannot be established."""


class FileNotFound(RemoteStorageError):
    """Raised when a remote file reference cannot be located."""


class CorruptFile(RemoteStorageError):
    """Raised when downloaded bytes fail checksum verification."""


class FolderNotFound(RemoteStorageError):
    """Raised when a remote folder reference cannot be located."""
