# files_core/models/__init__.py
"""Database models and schemas"""
from .database import Base, User, Folder, Document, Credential, ActivityLog
__all__ = ["Base", "User", "Folder", "Document", "Credential", "ActivityLog"]
from .schemas import *
