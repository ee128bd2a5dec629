from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict, Iterable
import structlog

from campaign_hub.models.campaign import utcnow
from campaign_hub.models.user import User
from campaign_hub.services.base import guarded

logger = structlog.get_logger(__name__)

UNKNOWN_USER = "Unknown User"


class UserDirectory:
    """Local record of callers seen through the identity resolver"""

    @staticmethod
    async def remember(db: Session, identity) -> User:
        """Insert the caller on first sight; refresh name and email when they change"""
        def db_upsert():
            user = db.query(User).filter(User.id == identity.id).first()

            if user is None:
                user = User(id=identity.id, email=identity.email, name=identity.name)
                db.add(user)
                try:
                    db.commit()
                except IntegrityError:
                    # Another request registered the same caller first
                    db.rollback()
                    return db.query(User).filter(User.id == identity.id).first()
                logger.info("User registered in directory", user_id=identity.id)
                return user

            if user.name != identity.name or user.email != identity.email:
                user.name = identity.name
                user.email = identity.email
                user.updated_at = utcnow()
                db.commit()
            return user

        return await guarded(db, "record user", db_upsert, table="users", user_id=identity.id)

    @staticmethod
    async def display_names(db: Session, user_ids: Iterable[str]) -> Dict[str, str]:
        """Map user IDs to display names; unresolvable IDs map to ``Unknown User``"""
        ids = set(user_ids)
        if not ids:
            return {}

        def db_query():
            return db.query(User.id, User.name).filter(User.id.in_(ids)).all()

        rows = await guarded(db, "resolve user names", db_query, table="users")
        names = {row.id: row.name for row in rows}
        return {user_id: names.get(user_id, UNKNOWN_USER) for user_id in ids}
