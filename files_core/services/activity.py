# files_core/services/activity.py
"""Activity logging service"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import sessionmaker

from ..models.database import ActivityLog, User, Document
from ..models.schemas import ActivityResponse

logger = logging.getLogger(__name__)

DOCUMENT_ACTIONS = [
    "DOCUMENT_CREATE",
    "DOCUMENT_UPDATE",
    "DOCUMENT_UPLOAD",
    "DOCUMENT_DOWNLOAD",
    "DOCUMENT_FAVORITE",
    "DOCUMENT_UNFAVORITE",
]

ACTIVITY_TYPES = {
    "DOCUMENT_CREATE": "create",
    "DOCUMENT_UPDATE": "edit",
    "DOCUMENT_UPLOAD": "upload",
    "DOCUMENT_DOWNLOAD": "download",
    "DOCUMENT_FAVORITE": "favorite",
    "DOCUMENT_UNFAVORITE": "unfavorite",
    "DOCUMENT_SYNC": "sync",
    "USER_CREATE": "signup",
    "USER_LOGIN": "login",
    "USER_UPDATE": "profile_update",
}


class ActivityService:
    """Handles activity logging (append-only audit trail)"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def log(
        self,
        action: str,
        entity: str,
        entity_id,
        user_id=None,
        document_id=None,
        details: str = None,
        metadata: dict = None,
    ) -> Optional[ActivityLog]:
        """Log an action. Never raises; failures are reported and swallowed."""
        try:
            async with self._session_factory() as db:
                activity = ActivityLog(
                    action=action,
                    entity=entity,
                    entity_id=str(entity_id),
                    user_id=user_id,
                    document_id=document_id,
                    details=details,
                    meta_data=metadata,
                )
                db.add(activity)
                await db.commit()
                return activity
        except Exception as e:
            logger.error("Failed to record activity %s for %s %s: %s", action, entity, entity_id, e)
            return None

    async def _query(self, query) -> List[ActivityLog]:
        async with self._session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    async def get_user_logs(self, user_id, limit: int = 50) -> List[ActivityLog]:
        return await self._query(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )

    async def get_user_logs_by_email(self, email: str, limit: int = 50) -> List[ActivityLog]:
        return await self._query(
            select(ActivityLog)
            .join(User, User.id == ActivityLog.user_id)
            .where(User.email == email)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )

    async def get_document_logs(self, document_id, limit: int = 50) -> List[ActivityLog]:
        """Logs for a document, including ones whose document has since been deleted"""
        return await self._query(
            select(ActivityLog)
            .where(
                or_(
                    ActivityLog.document_id == document_id,
                    ActivityLog.entity_id == str(document_id),
                )
            )
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )

    async def get_all_logs(self, limit: int = 100, offset: int = 0) -> List[ActivityLog]:
        return await self._query(
            select(ActivityLog)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

    async def get_logs_by_action(self, action: str, limit: int = 50) -> List[ActivityLog]:
        return await self._query(
            select(ActivityLog)
            .where(ActivityLog.action == action)
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )

    async def search(self, text: str, limit: int = 50) -> List[ActivityLog]:
        """Case-insensitive search in action and details"""
        pattern = f"%{text.lower()}%"
        return await self._query(
            select(ActivityLog)
            .where(
                or_(
                    func.lower(ActivityLog.details).like(pattern),
                    func.lower(ActivityLog.action).like(pattern),
                )
            )
            .order_by(ActivityLog.created_at.desc())
            .limit(limit)
        )

    async def stats(self, since_days: Optional[int] = None) -> Dict:
        """Counts per action and per entity"""
        async with self._session_factory() as db:
            count_q = select(func.count(ActivityLog.id))
            action_q = select(ActivityLog.action, func.count(ActivityLog.id)).group_by(ActivityLog.action)
            entity_q = select(ActivityLog.entity, func.count(ActivityLog.id)).group_by(ActivityLog.entity)
            if since_days:
                cutoff = ActivityLog.created_at >= datetime.utcnow() - timedelta(days=since_days)
                count_q = count_q.where(cutoff)
                action_q = action_q.where(cutoff)
                entity_q = entity_q.where(cutoff)

            total = await db.scalar(count_q)
            by_action = await db.execute(action_q)
            by_entity = await db.execute(entity_q)
            return {
                "total": total or 0,
                "by_action": dict(by_action.all()),
                "by_entity": dict(by_entity.all()),
            }

    async def recent_activities(self, user_id, limit: int = 10) -> List[ActivityResponse]:
        """Recent document activity for a user in a readable form"""
        async with self._session_factory() as db:
            result = await db.execute(
                select(ActivityLog, Document.name)
                .outerjoin(Document, Document.id == ActivityLog.document_id)
                .where(
                    ActivityLog.user_id == user_id,
                    ActivityLog.action.in_(DOCUMENT_ACTIONS + ["DOCUMENT_SYNC"]),
                )
                .order_by(ActivityLog.created_at.desc())
                .limit(limit)
            )
            return [
                ActivityResponse(
                    id=str(log.id),
                    type=ACTIVITY_TYPES.get(log.action, "activity"),
                    document=document_name or "Deleted document",
                    document_id=str(log.document_id) if log.document_id else None,
                    user_id=str(log.user_id) if log.user_id else None,
                    date=log.created_at,
                    details=log.details,
                )
                for log, document_name in result.all()
            ]
