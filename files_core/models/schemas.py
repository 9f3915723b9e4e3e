# files_core/models/schemas.py

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Literal, Union
from datetime import datetime
from uuid import UUID

# User Schemas
class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1)
    password: str = Field(min_length=1)

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None

class UserLookup(BaseModel):
    id: Optional[UUID] = None
    email: Optional[EmailStr] = None

class UserUpdateRequest(UserLookup):
    changes: UserUpdate

class UserVerify(BaseModel):
    email: EmailStr
    password: str

class PageRequest(BaseModel):
    skip: int = Field(default=0, ge=0)
    take: int = Field(default=20, gt=0, le=500)

# Document Schemas
class FilePayload(BaseModel):
    name: str
    data: bytes
    mime_type: str = "application/octet-stream"

class DocumentCreate(BaseModel):
    name: str = Field(min_length=1)
    type: Optional[str] = None
    category: Optional[str] = None  # deprecated
    description: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None
    owner_id: Optional[UUID] = None
    owner_email: Optional[EmailStr] = None
    file_path: Optional[str] = None
    file: Optional[FilePayload] = None
    folder_id: Optional[UUID] = None
    remote_folder_ref: Optional[str] = None

class DocumentUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[Union[str, List[str]]] = None
    is_favorite: Optional[bool] = None

class DocumentLookup(BaseModel):
    id: Optional[UUID] = None
    name: Optional[str] = None
    owner_email: Optional[EmailStr] = None

class DocumentUpdateRequest(BaseModel):
    id: UUID
    user_email: EmailStr
    changes: DocumentUpdate

class DocumentFilters(BaseModel):
    type: Optional[str] = None
    category: Optional[str] = None
    owner_id: Optional[UUID] = None
    tags: Optional[List[str]] = None
    search: Optional[str] = None

class DocumentListRequest(PageRequest):
    owner_email: Optional[EmailStr] = None
    favorites_only: bool = False
    filters: DocumentFilters = Field(default_factory=DocumentFilters)

class DocumentAction(BaseModel):
    id: UUID
    user_email: EmailStr

class DocumentDelete(DocumentAction):
    scope_folder_ref: Optional[str] = None

class DocumentMove(DocumentAction):
    folder_id: Optional[UUID] = None

# Folder Schemas
class FolderCreate(BaseModel):
    name: str
    owner_email: EmailStr
    description: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[UUID] = None
    mirror_remote: bool = False

class FolderUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None
    parent_id: Optional[UUID] = None
    move_to_root: bool = False

class FolderUpdateRequest(BaseModel):
    id: UUID
    owner_email: EmailStr
    changes: FolderUpdate

class FolderRef(BaseModel):
    id: UUID
    owner_email: EmailStr

class FolderListRequest(BaseModel):
    owner_email: EmailStr
    parent_id: Optional[UUID] = None

# Credential Schemas
class CredentialUpsert(BaseModel):
    user_email: EmailStr
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)
    is_active: bool = True

class CredentialView(BaseModel):
    id: UUID
    user_id: UUID
    email: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

# Activity Schemas
class LogQuery(BaseModel):
    filter_type: Literal["all", "user", "document", "action"] = "all"
    user_email: Optional[EmailStr] = None
    document_id: Optional[UUID] = None
    action: Optional[str] = None
    limit: int = Field(default=50, gt=0, le=1000)
    offset: int = Field(default=0, ge=0)

class ActivityResponse(BaseModel):
    id: str
    type: str
    document: str
    document_id: Optional[str]
    user_id: Optional[str]
    date: datetime
    details: Optional[str] = None

# Sync Schemas
class SyncRequest(BaseModel):
    owner_email: EmailStr
    folder_ref: Optional[str] = None
