# files_core/services/documents.py
"""Document metadata backed by the remote object store"""
import hashlib
import logging
import os
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

import aiofiles
from sqlalchemy import select, func, or_, literal
from sqlalchemy.orm import sessionmaker

from ..exceptions import EntityNotFound, OwnerNotFound, ValidationFailed
from ..models.database import Document, Folder, User
from ..models.schemas import DocumentCreate, DocumentFilters, DocumentUpdate
from ..utils.file_types import detect_category, get_extension, get_mime_type
from ..utils.tags import normalize_tags, split_tags
from .activity import ActivityService
from .remote_storage import RemoteStorageGateway
from .sync import SyncReconciler, SyncResult

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "type")


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@dataclass
class DownloadedDocument:
    data: bytes
    filename: str
    mime_type: str


class DocumentService:
    """Handles document CRUD; file bytes live in the remote store"""

    def __init__(
        self,
        session_factory: sessionmaker,
        gateway: RemoteStorageGateway,
        activity: ActivityService,
        reconciler: SyncReconciler,
        url_expiry: int = 3600,
    ):
        self._session_factory = session_factory
        self._gateway = gateway
        self._activity = activity
        self._reconciler = reconciler
        self._url_expiry = url_expiry

    async def resolve_owner(self, owner_id=None, owner_email: str = None) -> User:
        """Find the owning user by id, falling back to email"""
        if not owner_id and not owner_email:
            raise ValidationFailed("owner_id or owner_email is required")

        async with self._session_factory() as db:
            if owner_id:
                user = await db.get(User, owner_id)
            else:
                result = await db.execute(select(User).where(User.email == owner_email))
                user = result.scalar_one_or_none()

        if not user:
            raise OwnerNotFound(f"No user found for {owner_id or owner_email}")
        return user

    async def _read_payload(self, data: DocumentCreate):
        """Return (file name, mime type, bytes) from a path or an inline file"""
        if data.file_path:
            path = os.path.abspath(data.file_path)
            if not os.path.isfile(path):
                raise ValidationFailed(f"File not found: {data.file_path}")
            async with aiofiles.open(path, "rb") as f:
                content = await f.read()
            name = os.path.basename(path)
            return name, get_mime_type(get_extension(name)), content

        if data.file:
            return data.file.name, data.file.mime_type, data.file.data

        raise ValidationFailed("No file content provided to create the document")

    async def create(self, data: DocumentCreate) -> Document:
        owner = await self.resolve_owner(data.owner_id, data.owner_email)
        file_name, mime_type, content = await self._read_payload(data)

        folder_ref = data.remote_folder_ref
        if data.folder_id:
            async with self._session_factory() as db:
                folder = await db.get(Folder, data.folder_id)
            if not folder or folder.owner_id != owner.id:
                raise EntityNotFound(f"Folder {data.folder_id} not found")
            folder_ref = folder.remote_ref or folder_ref

        async with self._gateway.session(owner.id) as session:
            file_ref = await self._gateway.upload(session, file_name, mime_type, content, folder_ref)

        try:
            async with self._session_factory() as db:
                document = Document(
                    name=data.name,
                    type=data.type or detect_category(file_name, mime_type),
                    category=data.category,
                    size=len(content),
                    description=data.description,
                    tags=normalize_tags(data.tags),
                    file_ref=file_ref,
                    content_hash=hashlib.sha256(content).hexdigest(),
                    owner_id=owner.id,
                    folder_id=data.folder_id,
                )
                db.add(document)
                await db.commit()
        except Exception:
            await self._discard_upload(owner.id, file_ref)
            raise

        await self._activity.log(
            action="DOCUMENT_CREATE",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=owner.id,
            document_id=document.id,
            details=f"Document created: {document.name} ({document.type})",
        )
        logger.info("Created document %s for %s", document.id, owner.email)
        return document

    async def _discard_upload(self, owner_id, file_ref: str):
        """Remove a file whose record could not be saved"""
        try:
            async with self._gateway.session(owner_id) as session:
                await self._gateway.delete(session, file_ref)
            logger.info("Removed orphaned upload %s", file_ref)
        except Exception as e:
            logger.warning("Could not remove orphaned upload %s: %s", file_ref, e)

    async def get(self, document_id) -> Optional[Document]:
        async with self._session_factory() as db:
            return await db.get(Document, document_id)

    async def _require(self, document_id) -> Document:
        document = await self.get(document_id)
        if not document:
            raise EntityNotFound(f"Document {document_id} not found")
        return document

    async def get_by_name_and_owner(self, name: str, owner_email: str) -> Optional[Document]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document)
                .join(User, User.id == Document.owner_id)
                .where(Document.name == name, User.email == owner_email)
                .order_by(Document.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def list(self, skip: int = 0, take: int = 20, filters: Optional[DocumentFilters] = None) -> List[Document]:
        query = select(Document)
        if filters:
            if filters.type:
                query = query.where(Document.type == filters.type)
            if filters.category:
                query = query.where(Document.category == filters.category)
            if filters.owner_id:
                query = query.where(Document.owner_id == filters.owner_id)
            if filters.tags:
                # tags are stored comma-joined; match whole tags only
                padded = literal(",") + func.coalesce(Document.tags, "") + literal(",")
                query = query.where(
                    or_(*(padded.like(f"%,{_escape_like(tag)},%", escape="\\") for tag in split_tags(filters.tags)))
                )
            if filters.search:
                pattern = f"%{_escape_like(filters.search.lower())}%"
                query = query.where(
                    or_(
                        func.lower(Document.name).like(pattern, escape="\\"),
                        func.lower(Document.description).like(pattern, escape="\\"),
                    )
                )

        query = query.order_by(Document.created_at.desc()).offset(skip).limit(take)
        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def list_for_owner(self, owner_id, skip: int = 0, take: int = 20) -> List[Document]:
        return await self.list(skip, take, DocumentFilters(owner_id=owner_id))

    async def list_favorites(self, owner_id) -> List[Document]:
        async with self._session_factory() as db:
            result = await db.execute(
                select(Document)
                .where(Document.owner_id == owner_id, Document.is_favorite.is_(True))
                .order_by(Document.created_at.desc())
            )
            return list(result.scalars().all())

    async def update(self, document_id, data: DocumentUpdate, user_id) -> Document:
        changes = data.model_dump(exclude_unset=True)
        if changes.get("is_favorite", False) is None:
            del changes["is_favorite"]
        if not changes:
            raise ValidationFailed("No changes provided")
        cleared = [field for field in REQUIRED_FIELDS if field in changes and not changes[field]]
        if cleared:
            raise ValidationFailed(f"Document {', '.join(cleared)} cannot be empty")
        if "tags" in changes:
            changes["tags"] = normalize_tags(changes["tags"])

        async with self._session_factory() as db:
            document = await db.get(Document, document_id)
            if not document:
                raise EntityNotFound(f"Document {document_id} not found")
            for field, value in changes.items():
                setattr(document, field, value)
            document.modified_at = datetime.utcnow()
            await db.commit()

        await self._activity.log(
            action="DOCUMENT_UPDATE",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document updated: {document.name} ({', '.join(changes)})",
        )
        return document

    async def toggle_favorite(self, document_id, user_id) -> Document:
        async with self._session_factory() as db:
            document = await db.get(Document, document_id)
            if not document:
                raise EntityNotFound(f"Document {document_id} not found")
            document.is_favorite = not document.is_favorite
            document.modified_at = datetime.utcnow()
            await db.commit()

        await self._activity.log(
            action="DOCUMENT_FAVORITE" if document.is_favorite else "DOCUMENT_UNFAVORITE",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document {'added to' if document.is_favorite else 'removed from'} favorites: {document.name}",
        )
        return document

    async def move_to_folder(self, document_id, folder_id, user_id) -> Document:
        """Move a document into a folder, or to the root when folder_id is None"""
        async with self._session_factory() as db:
            document = await db.get(Document, document_id)
            if not document:
                raise EntityNotFound(f"Document {document_id} not found")
            if folder_id:
                folder = await db.get(Folder, folder_id)
                if not folder or folder.owner_id != document.owner_id:
                    raise EntityNotFound(f"Folder {folder_id} not found")
            previous = document.folder_id
            document.folder_id = folder_id
            document.modified_at = datetime.utcnow()
            await db.commit()

        await self._activity.log(
            action="DOCUMENT_MOVE",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document moved: {document.name}",
            metadata={
                "from": str(previous) if previous else None,
                "to": str(folder_id) if folder_id else None,
            },
        )
        return document

    async def delete(self, document_id, user_id, scope_folder_ref: Optional[str] = None):
        """Delete a document; the remote file is removed on a best-effort basis"""
        document = await self._require(document_id)

        # logged first so the entry can still reference the document
        await self._activity.log(
            action="DOCUMENT_DELETE",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document deleted: {document.name}",
        )

        if document.file_ref:
            try:
                async with self._gateway.session(document.owner_id) as session:
                    await self._gateway.delete(session, document.file_ref, scope_folder_ref)
                logger.info("Remote file deleted: %s", document.file_ref)
            except Exception as e:
                logger.warning(
                    "Could not delete remote file %s, removing the record anyway: %s",
                    document.file_ref,
                    e,
                )

        async with self._session_factory() as db:
            record = await db.get(Document, document_id)
            if record:
                await db.delete(record)
                await db.commit()

    async def download(self, document_id, user_id) -> DownloadedDocument:
        document = await self._require(document_id)
        if not document.file_ref:
            raise ValidationFailed(f"No file attached to document {document.name}")

        async with self._gateway.session(document.owner_id) as session:
            data = await self._gateway.download(session, document.file_ref)

        await self._activity.log(
            action="DOCUMENT_DOWNLOAD",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Document downloaded: {document.name}",
        )
        return DownloadedDocument(
            data=data,
            filename=document.name,
            mime_type=get_mime_type(get_extension(document.name)),
        )

    async def get_url(self, document_id, user_id) -> Dict:
        document = await self._require(document_id)
        if not document.file_ref:
            raise ValidationFailed(f"No file attached to document {document.name}")

        async with self._gateway.session(document.owner_id) as session:
            url = await self._gateway.get_file_url(session, document.file_ref, self._url_expiry)

        await self._activity.log(
            action="DOCUMENT_DOWNLOAD",
            entity="DOCUMENT",
            entity_id=document.id,
            user_id=user_id,
            document_id=document.id,
            details=f"Temporary URL generated for: {document.name}",
        )
        return {"url": url, "expires_in": self._url_expiry}

    async def stats(self) -> Dict:
        async with self._session_factory() as db:
            total = await db.scalar(select(func.count(Document.id)))
            total_size = await db.scalar(select(func.coalesce(func.sum(Document.size), 0)))
            result = await db.execute(
                select(Document.type, func.count(Document.id), func.coalesce(func.sum(Document.size), 0))
                .group_by(Document.type)
                .order_by(func.count(Document.id).desc())
            )
            by_type = {doc_type: {"count": count, "size": size} for doc_type, count, size in result.all()}

        return {
            "total_documents": total or 0,
            "total_size": total_size or 0,
            "by_type": by_type,
        }

    async def tag_counts(self) -> List[tuple]:
        """(tag, count) pairs, most used first"""
        async with self._session_factory() as db:
            result = await db.execute(select(Document.tags).where(Document.tags != ""))
            counter = Counter(tag for (tags,) in result.all() for tag in split_tags(tags))
        return counter.most_common()

    async def synchronize(self, default_owner_id, folder_ref: Optional[str] = None) -> SyncResult:
        return await self._reconciler.synchronize(default_owner_id, folder_ref)
