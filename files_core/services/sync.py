# files_core/services/sync.py

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ..models.database import Document
from ..utils.file_types import detect_category
from ..utils.tags import SYNCED_TAG, merge_tags
from .activity import ActivityService
from .remote_storage import RemoteFile, RemoteStorageGateway

logger = logging.getLogger(__name__)

SYNC_DESCRIPTION = "Synced from remote storage"


@dataclass
class SyncResult:
    created_count: int = 0
    updated_count: int = 0
    created: List[Document] = field(default_factory=list)
    updated: List[Document] = field(default_factory=list)


@dataclass
class _KnownDocument:
    """Projection of a local document used as the reconciliation index"""
    id: object
    content_hash: str
    name: str
    tags: str


class SyncReconciler:
    """
    Reconciles the remote file listing against local document metadata.

    The content hash (SHA-256 of the bytes) is the join key: a file that was
    renamed, moved or re-uploaded elsewhere still maps to the same document.
    Every remote file ends up with exactly one document record.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        gateway: RemoteStorageGateway,
        activity: ActivityService,
    ):
        self._session_factory = session_factory
        self._gateway = gateway
        self._activity = activity

    @staticmethod
    def calculate_hash(data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()

    async def _load_index(self) -> Dict[str, _KnownDocument]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document.id, Document.content_hash, Document.name, Document.tags)
            )
            rows = result.all()

        index: Dict[str, _KnownDocument] = {}
        for row in rows:
            if row.content_hash and row.content_hash not in index:
                index[row.content_hash] = _KnownDocument(row.id, row.content_hash, row.name, row.tags or "")
        logger.info("%d documents found in the database", len(rows))
        return index

    async def synchronize(self, default_owner_id, folder_ref: Optional[str] = None) -> SyncResult:
        """
        Bring local metadata in line with the remote store.

        Known hashes update the existing document (name, type, tags, size,
        file reference); unknown hashes create a document owned by
        default_owner_id. Files that fail to download or persist are skipped.
        """
        logger.info(
            "Starting remote storage sync (%s)",
            f"folder {folder_ref}" if folder_ref else "whole account",
        )
        async with self._gateway.session(default_owner_id) as session:
            remote_files = await self._gateway.list_all_files(session, folder_ref)
        logger.info("%d files found in remote storage", len(remote_files))

        index = await self._load_index()
        result = SyncResult()

        for remote_file in remote_files:
            content_hash = self.calculate_hash(remote_file.data)
            logger.debug("Processing %s (hash: %s...)", remote_file.name, content_hash[:12])

            known = index.get(content_hash)
            try:
                if known:
                    document = await self._update_document(known, remote_file, default_owner_id)
                    known.name = document.name
                    known.tags = document.tags
                    result.updated.append(document)
                else:
                    document = await self._create_document(remote_file, content_hash, default_owner_id)
                    index[content_hash] = _KnownDocument(document.id, content_hash, document.name, document.tags)
                    result.created.append(document)
            except Exception as e:
                logger.error("Failed to sync %s: %s", remote_file.name, e)
                continue

        result.created_count = len(result.created)
        result.updated_count = len(result.updated)
        logger.info(
            "Sync complete: %d document(s) created, %d document(s) updated",
            result.created_count,
            result.updated_count,
        )
        return result

    async def _update_document(self, known: _KnownDocument, remote_file: RemoteFile, user_id) -> Document:
        category = detect_category(remote_file.name, remote_file.mime_type)
        logger.debug("Existing document found: %s, updating", known.name)

        async with self._session_factory() as db:
            document = await db.get(Document, known.id)
            if document is None:
                raise LookupError(f"Document {known.id} disappeared during sync")
            document.name = remote_file.name
            document.type = category
            document.tags = merge_tags(document.tags, category, SYNCED_TAG)
            document.size = remote_file.size
            document.file_ref = remote_file.file_ref
            document.modified_at = datetime.utcnow()
            await db.commit()

        await self._activity.log(
            action="DOCUMENT_SYNC",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document updated during remote sync: {remote_file.name}",
            metadata={"outcome": "updated", "file_ref": remote_file.file_ref},
        )
        return document

    async def _create_document(self, remote_file: RemoteFile, content_hash: str, owner_id) -> Document:
        category = detect_category(remote_file.name, remote_file.mime_type)
        logger.debug("New file detected: %s", remote_file.name)

        async with self._session_factory() as db:
            document = Document(
                name=remote_file.name,
                type=category,
                size=remote_file.size,
                description=SYNC_DESCRIPTION,
                tags=merge_tags(category, SYNCED_TAG),
                file_ref=remote_file.file_ref,
                content_hash=content_hash,
                owner_id=owner_id,
            )
            db.add(document)
            await db.commit()

        await self._activity.log(
            action="DOCUMENT_SYNC",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=owner_id,
            document_id=document.id,
            details=f"New document synced from remote storage: {document.name}",
            metadata={"outcome": "created", "file_ref": remote_file.file_ref},
        )
        return document
