# files_core/services/folders.py
"""Folder tree per owner"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.orm import sessionmaker

from ..exceptions import DuplicateEntity, EntityNotFound, InvalidOperation, ValidationFailed
from ..models.database import Document, Folder
from ..models.schemas import FolderUpdate
from .activity import ActivityService
from .remote_storage import RemoteStorageGateway

logger = logging.getLogger(__name__)


@dataclass
class FolderSummary:
    folder: Folder
    document_count: int
    subfolder_count: int
    total_size: int


class FolderService:
    """Handles folder CRUD and tree invariants"""

    def __init__(
        self,
        session_factory: sessionmaker,
        activity: ActivityService,
        gateway: Optional[RemoteStorageGateway] = None,
    ):
        self._session_factory = session_factory
        self._activity = activity
        self._gateway = gateway

    async def _sibling_exists(self, db, owner_id, parent_id, name: str, exclude_id=None) -> bool:
        query = select(Folder.id).where(Folder.owner_id == owner_id, Folder.name == name)
        if parent_id:
            query = query.where(Folder.parent_id == parent_id)
        else:
            query = query.where(Folder.parent_id.is_(None))
        if exclude_id:
            query = query.where(Folder.id != exclude_id)
        return (await db.execute(query)).first() is not None

    async def _owned(self, db, folder_id, owner_id) -> Optional[Folder]:
        result = await db.execute(
            select(Folder).where(Folder.id == folder_id, Folder.owner_id == owner_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        owner_id,
        name: str,
        description: str = None,
        color: str = None,
        parent_id=None,
        mirror_remote: bool = False,
    ) -> Folder:
        name = (name or "").strip()
        if not name:
            raise ValidationFailed("Folder name is required")

        async with self._session_factory() as db:
            parent = None
            if parent_id:
                parent = await self._owned(db, parent_id, owner_id)
                if not parent:
                    raise EntityNotFound("Parent folder not found or not owned by this user")

            if await self._sibling_exists(db, owner_id, parent_id, name):
                raise DuplicateEntity(f"A folder named {name} already exists here")

            remote_ref = None
            if mirror_remote:
                if not self._gateway:
                    raise InvalidOperation("Remote storage is not configured")
                async with self._gateway.session(owner_id) as session:
                    remote_ref = await self._gateway.create_folder(
                        session, name, parent.remote_ref if parent else None
                    )

            folder = Folder(
                owner_id=owner_id,
                parent_id=parent_id,
                name=name,
                description=description.strip() if description else None,
                color=color or "#3B82F6",
                remote_ref=remote_ref,
            )
            db.add(folder)
            await db.commit()

        await self._activity.log(
            action="FOLDER_CREATE",
            entity="FOLDER",
            entity_id=folder.id,
            user_id=owner_id,
            details=f"Folder created: {folder.name}",
            metadata={"parent_id": str(parent_id) if parent_id else None, "remote_ref": remote_ref},
        )
        return folder

    async def get(self, folder_id, owner_id) -> Folder:
        async with self._session_factory() as db:
            folder = await self._owned(db, folder_id, owner_id)
        if not folder:
            raise EntityNotFound(f"Folder {folder_id} not found")
        return folder

    async def _summaries(self, owner_id, parent_id=None) -> List[FolderSummary]:
        async with self._session_factory() as db:
            query = select(Folder).where(Folder.owner_id == owner_id)
            if parent_id:
                query = query.where(Folder.parent_id == parent_id)
            else:
                query = query.where(Folder.parent_id.is_(None))
            folders = (await db.execute(query.order_by(Folder.name))).scalars().all()

            summaries = []
            for folder in folders:
                doc_count, total_size = (
                    await db.execute(
                        select(func.count(Document.id), func.coalesce(func.sum(Document.size), 0))
                        .where(Document.folder_id == folder.id)
                    )
                ).one()
                subfolders = await db.scalar(select(func.count(Folder.id)).where(Folder.parent_id == folder.id))
                summaries.append(FolderSummary(folder, doc_count, subfolders or 0, total_size or 0))
            return summaries

    async def list_root(self, owner_id) -> List[FolderSummary]:
        return await self._summaries(owner_id)

    async def list_children(self, parent_id, owner_id) -> List[FolderSummary]:
        await self.get(parent_id, owner_id)
        return await self._summaries(owner_id, parent_id)

    async def is_descendant(self, ancestor_id, folder_id) -> bool:
        """True when folder_id is ancestor_id itself or lies below it"""
        async with self._session_factory() as db:
            current = folder_id
            seen = set()
            while current and current not in seen:
                if current == ancestor_id:
                    return True
                seen.add(current)
                current = await db.scalar(select(Folder.parent_id).where(Folder.id == current))
        return False

    async def update(self, folder_id, owner_id, data: FolderUpdate) -> Folder:
        changes = data.model_dump(exclude_unset=True)
        if data.name is not None and not data.name.strip():
            raise ValidationFailed("Folder name cannot be empty")

        reparent = data.move_to_root or data.parent_id is not None
        new_parent_id = None if data.move_to_root else data.parent_id

        async with self._session_factory() as db:
            folder = await self._owned(db, folder_id, owner_id)
            if not folder:
                raise EntityNotFound(f"Folder {folder_id} not found")

            target_parent = new_parent_id if reparent else folder.parent_id
            if reparent and new_parent_id:
                if not await self._owned(db, new_parent_id, owner_id):
                    raise EntityNotFound("Parent folder not found")
                if await self.is_descendant(folder.id, new_parent_id):
                    raise InvalidOperation("Cannot move a folder into itself or one of its subfolders")

            target_name = data.name.strip() if data.name else folder.name
            if (reparent or data.name) and await self._sibling_exists(
                db, owner_id, target_parent, target_name, exclude_id=folder.id
            ):
                raise DuplicateEntity(f"A folder named {target_name} already exists here")

            folder.name = target_name
            if data.description is not None:
                folder.description = data.description.strip()
            if data.color:
                folder.color = data.color
            if reparent:
                folder.parent_id = new_parent_id
            await db.commit()

        await self._activity.log(
            action="FOLDER_UPDATE",
            entity="FOLDER",
            entity_id=folder.id,
            user_id=owner_id,
            details=f"Folder updated: {folder.name} ({', '.join(sorted(changes))})",
        )
        return folder

    async def delete(self, folder_id, owner_id):
        """Delete an empty folder"""
        async with self._session_factory() as db:
            folder = await self._owned(db, folder_id, owner_id)
            if not folder:
                raise EntityNotFound(f"Folder {folder_id} not found")

            documents = await db.scalar(select(func.count(Document.id)).where(Document.folder_id == folder.id))
            children = await db.scalar(select(func.count(Folder.id)).where(Folder.parent_id == folder.id))
            if documents or children:
                raise InvalidOperation(
                    f"Cannot delete a non-empty folder ({documents} documents, {children} subfolders)"
                )

            name = folder.name
            await db.delete(folder)
            await db.commit()

        await self._activity.log(
            action="FOLDER_DELETE",
            entity="FOLDER",
            entity_id=folder_id,
            user_id=owner_id,
            details=f"Folder deleted: {name}",
        )

    async def get_path(self, folder_id, owner_id) -> str:
        """Slash-joined names from the root down to the folder"""
        names = []
        current = folder_id
        async with self._session_factory() as db:
            while current:
                folder = await self._owned(db, current, owner_id)
                if not folder:
                    raise EntityNotFound(f"Folder {current} not found")
                names.append(folder.name)
                current = folder.parent_id
        return "/".join(reversed(names))
