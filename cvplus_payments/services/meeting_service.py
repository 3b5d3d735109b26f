"""
Meeting booking against a public CV.

A meeting request is stored as pending together with a Google Calendar
template link; nothing is written to anyone's calendar.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from sqlalchemy.orm import Session

from cvplus_payments.errors import (
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from cvplus_payments.models.base import utcnow
from cvplus_payments.models.meeting import MeetingStatus
from cvplus_payments.repositories.meeting_repository import MeetingRepository

logger = logging.getLogger(__name__)

MIN_DURATION_MINUTES = 15
MAX_DURATION_MINUTES = 180

GOOGLE_CALENDAR_TEMPLATE_URL = "https://calendar.google.com/calendar/render"
CALENDAR_DATE_FORMAT = "%Y%m%dT%H%M%SZ"

DEFAULT_PROFESSIONAL_NAME = "Professional"
DEFAULT_PROFESSIONAL_EMAIL = "contact@example.com"
DEFAULT_MEETING_TYPE = "consultation"
REQUESTED_VIA = "availability-calendar"


@dataclass
class MeetingInvite:
    calendar_url: str
    meeting_details: Dict[str, Any]


def build_meeting_invite(
    attendee_email: str,
    duration: int,
    professional_name: str,
    professional_email: str,
    meeting_type: Optional[str],
    start: datetime,
) -> MeetingInvite:
    """Build a Google Calendar template link for a proposed meeting."""
    end = start + timedelta(minutes=duration)
    label = (meeting_type or DEFAULT_MEETING_TYPE).replace("_", " ").title()
    title = f"{label} with {professional_name}"
    description = (
        f"{duration}-minute {label.lower()} requested via CVPlus.\n"
        f"Organizer: {professional_name} <{professional_email}>"
    )

    query = urlencode({
        "action": "TEMPLATE",
        "text": title,
        "dates": f"{start:{CALENDAR_DATE_FORMAT}}/{end:{CALENDAR_DATE_FORMAT}}",
        "details": description,
        "add": ",".join([professional_email, attendee_email]),
    })

    return MeetingInvite(
        calendar_url=f"{GOOGLE_CALENDAR_TEMPLATE_URL}?{query}",
        meeting_details={
            "title": title,
            "description": description,
            "duration": duration,
            "startTime": start.isoformat(),
            "endTime": end.isoformat(),
            "attendees": [professional_email, attendee_email],
            "meetingType": meeting_type or DEFAULT_MEETING_TYPE,
        },
    )


def proposed_start(now: datetime) -> datetime:
    """Next full hour, one day out."""
    return (now + timedelta(days=1)).replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


class MeetingService:

    def __init__(self, db_session: Session, clock: Optional[Callable[[], datetime]] = None):
        self.db = db_session
        self._now = clock or utcnow
        self._meetings = MeetingRepository(db_session)

    def book_meeting(
        self,
        caller_uid: str,
        job_id: str,
        duration: int,
        attendee_email: str,
        attendee_name: Optional[str] = None,
        meeting_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record a meeting request for a CV the caller owns.

        Raises:
            InvalidArgumentError: Bad job id, duration or email
            NotFoundError: Job does not exist
            FailedPreconditionError: Job has no parsed CV data
            PermissionDeniedError: Caller does not own the job
        """
        if not job_id:
            raise InvalidArgumentError("Invalid jobId provided")
        if duration is None or not MIN_DURATION_MINUTES <= duration <= MAX_DURATION_MINUTES:
            raise InvalidArgumentError(
                f"Invalid duration. Must be between {MIN_DURATION_MINUTES} "
                f"and {MAX_DURATION_MINUTES} minutes"
            )
        if not attendee_email or "@" not in attendee_email:
            raise InvalidArgumentError("Invalid attendee email provided")

        job = self._meetings.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        if not job.parsed_data:
            raise FailedPreconditionError("CV data not found")
        if job.user_id != caller_uid:
            raise PermissionDeniedError("You can only book meetings for your own CV")

        parsed = job.parsed_data
        personal_info = parsed.get("personalInfo") or {}
        professional_name = (
            personal_info.get("name")
            or (parsed.get("personalInformation") or {}).get("name")
            or DEFAULT_PROFESSIONAL_NAME
        )
        professional_email = personal_info.get("email") or DEFAULT_PROFESSIONAL_EMAIL

        invite = build_meeting_invite(
            attendee_email=attendee_email,
            duration=duration,
            professional_name=professional_name,
            professional_email=professional_email,
            meeting_type=meeting_type,
            start=proposed_start(self._now()),
        )

        meeting = self._meetings.create_meeting({
            "job_id": job_id,
            "attendee_email": attendee_email,
            "attendee_name": attendee_name or attendee_email,
            "professional_name": professional_name,
            "professional_email": professional_email,
            "duration": duration,
            "meeting_type": meeting_type,
            "status": MeetingStatus.PENDING,
            "calendar_url": invite.calendar_url,
            "meeting_details": invite.meeting_details,
            "requested_via": REQUESTED_VIA,
        })

        # No attendee PII in logs
        logger.info("Meeting request created", extra={
            "meeting_id": meeting.id,
            "job_id": job_id,
            "duration": duration,
        })

        return {
            "success": True,
            "meetingId": meeting.id,
            "calendarUrl": invite.calendar_url,
            "meetingDetails": invite.meeting_details,
            "message": "Meeting request created successfully. The professional will be notified.",
        }
