"""CV job lookup and meeting request persistence."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from cvplus_payments.models.cv_job import CvJob
from cvplus_payments.models.meeting import MeetingRequest

logger = logging.getLogger(__name__)


class MeetingRepository:

    def __init__(self, db_session: Session):
        self.db_session = db_session

    def get_job(self, job_id: str) -> Optional[CvJob]:
        return self.db_session.get(CvJob, job_id)

    def create_meeting(self, fields: Dict[str, Any]) -> MeetingRequest:
        meeting = MeetingRequest(**fields)
        self.db_session.add(meeting)
        try:
            self.db_session.commit()
        except Exception:
            self.db_session.rollback()
            raise
        return meeting
