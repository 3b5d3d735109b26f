"""
Call scheduling and meeting booking handlers.

sendSchedulingEmail is public (FAQ page form); bookMeeting requires an
authenticated caller who owns the CV job.
"""

import logging

from fastapi import APIRouter, Depends

from cvplus_payments.api.auth import CallerIdentity, get_caller
from cvplus_payments.api.dependencies import get_meeting_service, get_scheduling_service
from cvplus_payments.api.schemas import BookMeetingRequest, SendSchedulingEmailRequest
from cvplus_payments.errors import run_handler
from cvplus_payments.services.meeting_service import MeetingService
from cvplus_payments.services.scheduling_service import SchedulingRequest, SchedulingService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/functions", tags=["scheduling"])


@router.post("/sendSchedulingEmail")
def send_scheduling_email(
    body: SendSchedulingEmailRequest,
    service: SchedulingService = Depends(get_scheduling_service),
):
    request = SchedulingRequest(
        name=body.name,
        email=body.email,
        phone=body.phone,
        date=body.date,
        time=body.time,
        message=body.message,
    )
    return run_handler(
        "sendSchedulingRequest",
        lambda: service.send_scheduling_request(request),
    )


@router.post("/bookMeeting")
def book_meeting(
    body: BookMeetingRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: MeetingService = Depends(get_meeting_service),
):
    return run_handler(
        "bookMeeting",
        lambda: service.book_meeting(
            caller_uid=caller.uid,
            job_id=body.job_id,
            duration=body.duration,
            attendee_email=body.attendee_email,
            attendee_name=body.attendee_name,
            meeting_type=body.meeting_type,
        ),
        context={"job_id": body.job_id},
    )
