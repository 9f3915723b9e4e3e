# files_core/services/remote_storage.py

import asyncio
import base64
import hashlib
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    FlexibleChecksumError,
)

from ..exceptions import (
    ConnectionFailed,
    CorruptFile,
    CredentialsMissing,
    FileNotFound,
    FolderNotFound,
    RemoteStorageError,
)
from ..utils.file_types import get_extension, get_mime_type
from .credentials import CredentialStore, StorageCredentials

logger = logging.getLogger(__name__)

DEFAULT_IDENTITY = "default"
NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class RemoteFile:
    file_ref: str
    name: str
    data: bytes
    extension: str
    mime_type: str
    size: int


@dataclass
class S3Session:
    """An authenticated client bound to one bucket"""
    client: object
    bucket: str

    def close(self):
        close = getattr(self.client, "close", None)
        if close:
            close()


class S3Connector:
    """Opens S3 sessions for a credential set (email = access key id, password = secret)"""

    def __init__(
        self,
        bucket: str,
        endpoint_url: Optional[str] = None,
        region: Optional[str] = None,
        connect_timeout: int = 10,
        read_timeout: int = 60,
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.region = region
        self.config = Config(connect_timeout=connect_timeout, read_timeout=read_timeout)

    def __call__(self, credentials: StorageCredentials) -> S3Session:
        client = boto3.client(
            "s3",
            aws_access_key_id=credentials.email,
            aws_secret_access_key=credentials.password,
            endpoint_url=self.endpoint_url,
            region_name=self.region,
            config=self.config,
        )
        try:
            client.head_bucket(Bucket=self.bucket)
        except (ClientError, BotoCoreError) as e:
            client.close()
            raise ConnectionFailed(f"Storage connection failed: {e}") from e
        return S3Session(client=client, bucket=self.bucket)


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _basename(key: str) -> str:
    return key.rstrip("/").rsplit("/", 1)[-1]


def _parent_prefix(key: str) -> str:
    head, sep, _ = key.rstrip("/").rpartition("/")
    return f"{head}{sep}"


def verify_checksum(data: bytes, response: dict) -> bool:
    """Check downloaded bytes against the checksum the provider stored"""
    expected = response.get("ChecksumSHA256")
    if expected and "-" not in expected:
        return base64.b64encode(hashlib.sha256(data).digest()).decode() == expected

    etag = (response.get("ETag") or "").strip('"')
    # multipart and KMS-encrypted objects don't carry a plain MD5 ETag
    if etag and "-" not in etag and response.get("ServerSideEncryption") != "aws:kms":
        return hashlib.md5(data).hexdigest() == etag

    return True


class RemoteStorageGateway:
    """Handles file operations on the remote object store, one session per credential set"""

    def __init__(
        self,
        connector: Callable[[StorageCredentials], S3Session],
        credentials: Optional[CredentialStore] = None,
        default_credentials: Optional[StorageCredentials] = None,
    ):
        self._connector = connector
        self._credentials = credentials
        self._default_credentials = default_credentials
        self._cache: Dict[str, S3Session] = {}
        self._opened_with: Dict[str, StorageCredentials] = {}
        self._lock = asyncio.Lock()

    # =============================
    # Sessions
    # =============================
    async def connect(self, user_id=None) -> S3Session:
        """Return the cached session for the user's credentials (or the default set)"""
        storage_key = DEFAULT_IDENTITY
        credentials = self._default_credentials

        if user_id is not None and self._credentials is not None:
            user_credentials = await self._credentials.get_credentials_for_use(user_id)
            if user_credentials:
                storage_key = str(user_id)
                credentials = user_credentials

        async with self._lock:
            cached = self._cache.get(storage_key)
            if cached is not None:
                if self._opened_with.get(storage_key) == credentials:
                    return cached
                # credentials changed since the session was opened
                del self._cache[storage_key]
                await asyncio.to_thread(cached.close)
                logger.debug("Storage credentials changed for %s, reconnecting", storage_key)

            if not credentials or not credentials.email or not credentials.password:
                raise CredentialsMissing(
                    "Storage credentials required: configure your account credentials "
                    "or set STORAGE_EMAIL and STORAGE_PASSWORD"
                )

            try:
                session = await asyncio.to_thread(self._connector, credentials)
            except RemoteStorageError:
                raise
            except Exception as e:
                raise ConnectionFailed(f"Storage connection failed: {e}") from e

            self._cache[storage_key] = session
            self._opened_with[storage_key] = credentials
            logger.debug("Opened storage session for %s", storage_key)
            return session

    @asynccontextmanager
    async def session(self, user_id=None):
        """Scoped session: evicted and closed if the connection breaks while in use"""
        session = await self.connect(user_id)
        try:
            yield session
        except ConnectionFailed:
            await self._evict(session)
            raise

    async def _evict(self, session: S3Session):
        async with self._lock:
            for key, cached in list(self._cache.items()):
                if cached is session:
                    del self._cache[key]
                    self._opened_with.pop(key, None)
        await asyncio.to_thread(session.close)

    def clear_user_cache(self, user_id):
        session = self._cache.pop(str(user_id), None)
        self._opened_with.pop(str(user_id), None)
        if session:
            session.close()

    def clear_all_cache(self):
        for session in self._cache.values():
            session.close()
        self._cache.clear()
        self._opened_with.clear()

    async def aclose(self):
        await asyncio.to_thread(self.clear_all_cache)

    # =============================
    # Helpers
    # =============================
    async def _call(self, func, *args, **kwargs):
        """Run a blocking client call off the event loop"""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (EndpointConnectionError, ConnectTimeoutError) as e:
            raise ConnectionFailed(f"Storage connection lost: {e}") from e

    async def _list(self, session: S3Session, prefix: str = "", delimiter: Optional[str] = None) -> List[dict]:
        """All objects under prefix (direct children only when a delimiter is given)"""
        objects = []
        kwargs = {"Bucket": session.bucket, "Prefix": prefix}
        if delimiter:
            kwargs["Delimiter"] = delimiter

        while True:
            response = await self._call(session.client.list_objects_v2, **kwargs)
            objects.extend(response.get("Contents", []))
            if not response.get("IsTruncated"):
                break
            kwargs["ContinuationToken"] = response["NextContinuationToken"]
        return objects

    async def _exists(self, session: S3Session, key: str) -> bool:
        try:
            await self._call(session.client.head_object, Bucket=session.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise RemoteStorageError(f"Could not check {key}: {e}") from e

    async def _folder_exists(self, session: S3Session, folder_ref: str) -> bool:
        if not folder_ref:
            return True
        if not folder_ref.endswith("/"):
            return False
        if await self._exists(session, folder_ref):
            return True
        # prefix with content but no marker object
        response = await self._call(
            session.client.list_objects_v2, Bucket=session.bucket, Prefix=folder_ref, MaxKeys=1
        )
        return bool(response.get("Contents"))

    async def _resolve_folder(self, session: S3Session, folder_ref: Optional[str]) -> str:
        """Folder prefix to write into; unknown folders fall back to the root"""
        if folder_ref and await self._folder_exists(session, folder_ref):
            return folder_ref
        if folder_ref:
            logger.warning("Remote folder %s not found, using the root folder", folder_ref)
        return ""

    async def _available_key(self, session: S3Session, prefix: str, name: str) -> str:
        """First free key for name in prefix: notes.txt, notes (1).txt, notes (2).txt..."""
        key = f"{prefix}{name}"
        stem, extension = os.path.splitext(name)
        counter = 0
        while await self._exists(session, key):
            counter += 1
            key = f"{prefix}{stem} ({counter}){extension}"
        return key

    # =============================
    # File operations
    # =============================
    async def upload(
        self,
        session: S3Session,
        name: str,
        mime_type: str,
        data: bytes,
        folder_ref: Optional[str] = None,
    ) -> str:
        """Upload bytes and return the remote file reference; existing files are never overwritten"""
        prefix = await self._resolve_folder(session, folder_ref)
        key = await self._available_key(session, prefix, name)
        try:
            await self._call(
                session.client.put_object,
                Bucket=session.bucket,
                Key=key,
                Body=data,
                ContentType=mime_type,
                ChecksumAlgorithm="SHA256",
            )
        except ClientError as e:
            raise RemoteStorageError(f"Upload of {name} failed: {e}") from e
        logger.debug("Uploaded %s (%d bytes)", key, len(data))
        return key

    async def download(self, session: S3Session, file_ref: str) -> bytes:
        """Fetch a file and verify its checksum"""
        try:
            response = await self._call(
                session.client.get_object,
                Bucket=session.bucket,
                Key=file_ref,
                ChecksumMode="ENABLED",
            )
            data = await self._call(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                raise FileNotFound(f"File not found: {file_ref}") from e
            raise RemoteStorageError(f"Download of {file_ref} failed: {e}") from e
        except FlexibleChecksumError as e:
            raise CorruptFile(f"Corrupt file {file_ref}: {e}") from e

        if not verify_checksum(data, response):
            raise CorruptFile(f"Corrupt file {file_ref}: checksum mismatch")
        return data

    async def delete(self, session: S3Session, file_ref: str, scope_folder_ref: Optional[str] = None):
        """Delete a file, searching one folder's children or the whole account"""
        if scope_folder_ref:
            if not await self._folder_exists(session, scope_folder_ref):
                raise FolderNotFound(f"Folder {scope_folder_ref} not found")
            candidates = await self._list(session, scope_folder_ref, delimiter="/")
            logger.debug("Searching folder %s: %d files", scope_folder_ref, len(candidates))
        else:
            candidates = await self._list(session)
            logger.debug("Searching account: %d files", len(candidates))

        if not any(obj.get("Key") == file_ref for obj in candidates):
            sample = ", ".join(obj.get("Key", "?") for obj in candidates[:5])
            logger.debug("File %s not found; available: %s", file_ref, sample or "none")
            raise FileNotFound(f"File not found: {file_ref}")

        try:
            await self._call(session.client.delete_object, Bucket=session.bucket, Key=file_ref)
        except ClientError as e:
            raise RemoteStorageError(f"Delete of {file_ref} failed: {e}") from e
        logger.debug("Deleted %s", file_ref)

    async def list_all_files(self, session: S3Session, folder_ref: Optional[str] = None) -> List[RemoteFile]:
        """Download every file directly inside a folder (root if omitted), best effort"""
        if folder_ref and not await self._folder_exists(session, folder_ref):
            raise FolderNotFound(f"Folder {folder_ref} not found")

        prefix = folder_ref or ""
        entries = await self._list(session, prefix, delimiter="/")
        logger.info(
            "Scanning %s: %d entries found",
            f"folder {folder_ref}" if folder_ref else "root folder",
            len(entries),
        )

        files: List[RemoteFile] = []
        for entry in entries:
            key = entry.get("Key")
            name = _basename(key) if key else ""
            if not key or not name or key == prefix or key.endswith("/"):
                logger.warning("Skipping entry with missing id or name: %s", key or "unknown")
                continue

            try:
                data = await self.download(session, key)
            except Exception as e:
                logger.error("Failed to download %s (%s): %s", name, key, e)
                continue

            if not data:
                logger.warning("Skipping empty file: %s", name)
                continue

            extension = get_extension(name)
            files.append(
                RemoteFile(
                    file_ref=key,
                    name=name,
                    data=data,
                    extension=extension,
                    mime_type=get_mime_type(extension),
                    size=len(data),
                )
            )
            logger.debug("Downloaded %s (%d bytes)", name, len(data))

        logger.info("Listing complete: %d/%d files retrieved", len(files), len(entries))
        return files

    async def create_folder(self, session: S3Session, name: str, parent_ref: Optional[str] = None) -> str:
        """Create a folder marker and return its reference"""
        name = name.strip().strip("/")
        if not name:
            raise RemoteStorageError("Folder name is required")
        prefix = await self._resolve_folder(session, parent_ref)
        key = f"{prefix}{name}/"
        try:
            await self._call(session.client.put_object, Bucket=session.bucket, Key=key, Body=b"")
        except ClientError as e:
            raise RemoteStorageError(f"Could not create folder {name}: {e}") from e
        return key

    async def get_file_url(self, session: S3Session, file_ref: str, expires_in: int = 3600) -> str:
        """Temporary download URL"""
        if not await self._exists(session, file_ref):
            raise FileNotFound(f"File not found: {file_ref}")
        return await self._call(
            session.client.generate_presigned_url,
            "get_object",
            Params={"Bucket": session.bucket, "Key": file_ref},
            ExpiresIn=expires_in,
        )

    async def replace_file(self, session: S3Session, file_ref: str, name: str, mime_type: str, data: bytes) -> str:
        """Replace a file's content; the new file lands in the old one's folder"""
        if not await self._exists(session, file_ref):
            raise FileNotFound(f"File to update not found: {file_ref}")
        parent = _parent_prefix(file_ref)
        await self._call(session.client.delete_object, Bucket=session.bucket, Key=file_ref)
        return await self.upload(session, name, mime_type, data, parent or None)
