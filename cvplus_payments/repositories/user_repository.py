"""User profile repository."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from cvplus_payments.models.user import UserProfile

logger = logging.getLogger(__name__)


class UserRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get(self, user_id: str) -> Optional[UserProfile]:
        if not user_id:
            return None
        return self.db_session.get(UserProfile, user_id)

    def exists(self, user_id: str) -> bool:
        return self.get(user_id) is not None
