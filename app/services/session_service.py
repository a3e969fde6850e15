"""
Session principal store — the opaque session id <-> live user mapping.

The session only ever carries the user's id. Every request re-resolves the
full user, so role changes and deactivations take effect immediately. A
session whose id no longer resolves to an active user is treated as "no
session" (None), never as an error.
"""

import logging
import uuid

from app.models.user import User
from app.storage import Storage

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, storage: Storage):
        self.storage = storage

    def serialize(self, principal: User) -> str:
        return str(principal.id)

    async def deserialize(self, session_id: str | None) -> User | None:
        if not session_id:
            return None
        try:
            user_id = uuid.UUID(str(session_id))
        except ValueError:
            logger.info("Discarding malformed session id")
            return None

        user = await self.storage.get_user(user_id)
        if user is None:
            logger.info("Session refers to missing user %s", user_id)
            return None
        if not user.is_active:
            logger.info("Session refers to inactive user %s", user_id)
            return None
        return user
