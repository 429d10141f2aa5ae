from typing import List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showroom.core.utils import dumps
from showroom.models.audit import AuditLog


class AuditService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def log_action(self, user_id: Optional[str], username: Optional[str], action: str,
                         target: str = None, details: dict = None, ip_address: str = None):
        """
        Record who moved which transaction. Runs after the business commit,
        so a failure here is logged and never undoes the change it describes.
        """
        entry = AuditLog(
            user_id=user_id,
            username=username,
            action=action,
            target=target,
            details=dumps(details) if details else None,
            ip_address=ip_address,
        )
        try:
            self.session.add(entry)
            await self.session.commit()
        except Exception as e:
            logger.error(f"Audit entry {action} on {target} was not written: {e}")
            await self.session.rollback()
            return
        logger.info(f"AUDIT {action} {target} by {username or 'guest'} ({user_id or '-'})")

    async def recent(self, target: str = None, limit: int = 100) -> List[AuditLog]:
        """Newest first; optionally only the trail of one transaction, e.g. "order:<id>"."""
        stmt = select(AuditLog).order_by(AuditLog.id.desc()).limit(limit)
        if target:
            stmt = stmt.where(AuditLog.target == target)
        result = await self.session.execute(stmt)
        return result.scalars().all()
